"""Template inspection helpers shared by validation and deployment."""

import json
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handler import MissingTemplateFile
from .logger import get_logger
from .settings import Settings
from .utils import read_text

TELEMETRY_PARAMETER = "enableDefaultTelemetry"
MAX_DEPLOYMENT_NAME_LENGTH = 64
GENERIC_TEMPLATE_NAMES = ("deploy", "main")


def ensure_file_exists(file_path: Optional[str], kind: str = "Template") -> None:
    """Raise MissingTemplateFile if file_path is set but missing."""
    if file_path and not os.path.isfile(file_path):
        raise MissingTemplateFile(file_path, kind=kind)


def generate_deployment_name(
    template_file_path: str, now: Optional[datetime] = None
) -> str:
    """
    Build a unique deployment name from the template path.

    'modules/storage/deploy.bicep' becomes 'storage-20240101T120000000Z'.
    """
    stem = os.path.splitext(os.path.basename(template_file_path))[0]
    if stem.lower() in GENERIC_TEMPLATE_NAMES:
        parent = os.path.basename(os.path.dirname(os.path.abspath(template_file_path)))
        prefix = parent or f"templateDeployment-{stem}"
    else:
        prefix = stem

    prefix = re.sub(r"[^\w\-.()]", "-", prefix)
    now = now or datetime.now(timezone.utc)
    # yyyyMMddTHHmmssffffZ
    timestamp = now.strftime("%Y%m%dT%H%M%S") + f"{now.microsecond // 100:04d}Z"

    return f"{prefix}-{timestamp}"[:MAX_DEPLOYMENT_NAME_LENGTH]


def template_declares_parameter(template_file_path: str, parameter_name: str) -> bool:
    """True if the Bicep or ARM JSON template declares the parameter."""
    content = read_text(template_file_path)

    if template_file_path.lower().endswith(".json"):
        try:
            template = json.loads(content)
        except json.JSONDecodeError:
            get_logger("template").warning(
                f"Could not parse {template_file_path} as JSON"
            )
            return False
        parameters = template.get("parameters") if isinstance(template, dict) else None
        return isinstance(parameters, dict) and parameter_name in parameters

    pattern = re.compile(rf"^\s*param\s+{re.escape(parameter_name)}\b", re.MULTILINE)
    return bool(pattern.search(content))


def resolve_additional_parameters(request, settings: Settings) -> Dict[str, Any]:
    """
    Additional parameters for a request, including injected project defaults.

    The telemetry default from the settings is added only when the template
    declares the parameter and the caller did not override it.
    """
    parameters = dict(request.additional_parameters or {})

    if (
        settings.enable_default_telemetry is not None
        and TELEMETRY_PARAMETER not in parameters
        and template_declares_parameter(request.template_file_path, TELEMETRY_PARAMETER)
    ):
        parameters[TELEMETRY_PARAMETER] = settings.enable_default_telemetry

    return parameters


def provider_scope_kwargs(target) -> Dict[str, Optional[str]]:
    """Keyword arguments identifying the target scope for provider calls."""
    return {
        "resource_group_name": target.resource_group_name or None,
        "management_group_id": target.management_group_id or None,
        "subscription_id": target.subscription_id or None,
    }
