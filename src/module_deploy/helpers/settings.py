"""Settings document parsing and validation."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import jsonschema

from .error_handler import SettingsError
from .logger import get_logger
from .utils import load_json, load_yaml

DEFAULT_SETTINGS_FILE = "settings.json"
DEFAULT_TOKEN_PREFIX = "<<"
DEFAULT_TOKEN_SUFFIX = ">>"

# Resource types removed before anything else. Locks block deletion of their
# scope and role assignments/diagnostic settings outlive their parent.
DEFAULT_REMOVAL_SEQUENCE = [
    "Microsoft.Authorization/locks",
    "Microsoft.Authorization/roleAssignments",
    "Microsoft.Insights/diagnosticSettings",
    "Microsoft.Network/privateEndpoints/privateDnsZoneGroups",
    "Microsoft.Network/privateEndpoints",
    "Microsoft.OperationsManagement/solutions",
    "Microsoft.OperationalInsights/workspaces/linkedServices",
    "Microsoft.OperationalInsights/workspaces",
    "Microsoft.Resources/resourceGroups",
]


@dataclass
class LocalToken:
    """Named token configured in the settings document."""

    name: str
    value: str


@dataclass
class ParameterFileTokensConfig:
    """Token replacement configuration."""

    token_prefix: str = DEFAULT_TOKEN_PREFIX
    token_suffix: str = DEFAULT_TOKEN_SUFFIX
    local_tokens: List[LocalToken] = field(default_factory=list)


@dataclass
class Settings:
    """Project settings threaded through every pipeline step."""

    parameter_file_tokens: ParameterFileTokensConfig = field(
        default_factory=ParameterFileTokensConfig
    )
    enable_default_telemetry: Optional[bool] = None
    removal_sequence: List[str] = field(
        default_factory=lambda: list(DEFAULT_REMOVAL_SEQUENCE)
    )

    @classmethod
    def from_file(cls, settings_file: str) -> "Settings":
        """Load settings from a JSON/YAML file with schema validation."""
        is_valid, errors, data = validate_settings_file(settings_file)
        if not is_valid:
            raise SettingsError(f"Invalid settings file {settings_file}", errors)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create settings from a dictionary."""
        tokens_data = data.get("parameterFileTokens") or {}

        local_tokens = [
            LocalToken(name=str(token["name"]), value=_stringify(token["value"]))
            for token in tokens_data.get("localTokens") or []
        ]

        tokens_config = ParameterFileTokensConfig(
            token_prefix=tokens_data.get("tokenPrefix") or DEFAULT_TOKEN_PREFIX,
            token_suffix=tokens_data.get("tokenSuffix") or DEFAULT_TOKEN_SUFFIX,
            local_tokens=local_tokens,
        )

        removal_sequence = data.get("removalSequence")
        if removal_sequence is None:
            removal_sequence = list(DEFAULT_REMOVAL_SEQUENCE)

        return cls(
            parameter_file_tokens=tokens_config,
            enable_default_telemetry=_parse_optional_bool(
                data.get("enableDefaultTelemetry")
            ),
            removal_sequence=list(removal_sequence),
        )

    @property
    def local_token_map(self) -> Dict[str, str]:
        """Local tokens as a name -> value mapping."""
        return {token.name: token.value for token in self.parameter_file_tokens.local_tokens}


def load_settings(settings_file: Optional[str] = None) -> Settings:
    """
    Load the settings document, falling back to defaults when it is absent.

    Args:
        settings_file: Path to the settings file (defaults to settings.json)

    Returns:
        Parsed settings
    """
    logger = get_logger("settings")
    settings_file = settings_file or DEFAULT_SETTINGS_FILE

    if not os.path.exists(settings_file):
        logger.info(f"Settings file {settings_file} not found, using defaults")
        return Settings()

    logger.debug(f"Loading settings from {settings_file}")
    return Settings.from_file(settings_file)


def load_schema() -> Dict[str, Any]:
    """Load the settings schema."""
    schema_path = Path(__file__).parent / "settings-schema.yaml"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    return load_yaml(str(schema_path))


def validate_settings_schema(
    settings_data: Dict[str, Any], schema: Dict[str, Any] = None
) -> Tuple[bool, List[str]]:
    """
    Validate settings data against the schema.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    if schema is None:
        schema = load_schema()

    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(settings_data), key=lambda e: list(e.path))

    error_messages = []
    for error in errors:
        path = (
            " -> ".join(str(p) for p in error.absolute_path)
            if error.absolute_path
            else "root"
        )
        error_messages.append(f"Path '{path}': {error.message}")

    return not error_messages, error_messages


def validate_settings_file(
    settings_file: str,
) -> Tuple[bool, List[str], Dict[str, Any]]:
    """
    Validate a settings file completely (syntax + schema).

    Returns:
        Tuple of (is_valid, list_of_error_messages, parsed_data)
    """
    # .json documents are parsed as JSON, tab indentation included
    loader = load_json if settings_file.lower().endswith(".json") else load_yaml
    try:
        data = loader(settings_file)
    except FileNotFoundError:
        return False, [f"File not found: {settings_file}"], {}
    except Exception as e:
        return False, [f"Syntax error: {e}"], {}

    if not isinstance(data, dict):
        return False, ["Settings document must be an object"], {}

    schema_valid, schema_errors = validate_settings_schema(data)
    if not schema_valid:
        return False, schema_errors, data

    return True, [], data


def _parse_optional_bool(value: Any) -> Optional[bool]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if str(value).strip().lower() in ("true", "1", "yes"):
        return True
    if str(value).strip().lower() in ("false", "0", "no"):
        return False
    raise SettingsError(f"enableDefaultTelemetry must be a boolean, got {value!r}")


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
