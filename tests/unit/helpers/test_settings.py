"""Unit tests for settings loading and validation."""

import json

import pytest

from module_deploy.helpers.error_handler import SettingsError
from module_deploy.helpers.settings import (
    DEFAULT_REMOVAL_SEQUENCE,
    DEFAULT_TOKEN_PREFIX,
    DEFAULT_TOKEN_SUFFIX,
    Settings,
    load_settings,
    validate_settings_file,
    validate_settings_schema,
)


class TestSettingsFromDict:
    """Test settings parsing."""

    def test_defaults(self):
        settings = Settings.from_dict({})
        assert settings.parameter_file_tokens.token_prefix == DEFAULT_TOKEN_PREFIX
        assert settings.parameter_file_tokens.token_suffix == DEFAULT_TOKEN_SUFFIX
        assert settings.local_token_map == {}
        assert settings.enable_default_telemetry is None
        assert settings.removal_sequence == DEFAULT_REMOVAL_SEQUENCE

    def test_full_document(self):
        settings = Settings.from_dict(
            {
                "parameterFileTokens": {
                    "tokenPrefix": "[[",
                    "tokenSuffix": "]]",
                    "localTokens": [
                        {"name": "namePrefix", "value": "carml"},
                        {"name": "flag", "value": True},
                    ],
                },
                "enableDefaultTelemetry": "false",
                "removalSequence": ["Microsoft.Authorization/locks"],
            }
        )
        assert settings.parameter_file_tokens.token_prefix == "[["
        assert settings.parameter_file_tokens.token_suffix == "]]"
        assert settings.local_token_map == {"namePrefix": "carml", "flag": "true"}
        assert settings.enable_default_telemetry is False
        assert settings.removal_sequence == ["Microsoft.Authorization/locks"]

    def test_invalid_telemetry_value(self):
        with pytest.raises(SettingsError):
            Settings.from_dict({"enableDefaultTelemetry": "sometimes"})


class TestLoadSettings:
    """Test loading settings files."""

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "settings.json"))
        assert settings == Settings()

    def test_load_json_file(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(
            json.dumps(
                {
                    "parameterFileTokens": {"localTokens": [{"name": "a", "value": "b"}]},
                    "enableDefaultTelemetry": True,
                }
            )
        )

        settings = load_settings(str(settings_file))

        assert settings.local_token_map == {"a": "b"}
        assert settings.enable_default_telemetry is True

    def test_load_tab_indented_json_file(self, tmp_path):
        """Test that tab indented JSON settings load."""
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(
            json.dumps(
                {
                    "parameterFileTokens": {
                        "tokenPrefix": "<<",
                        "localTokens": [{"name": "namePrefix", "value": "carml"}],
                    },
                    "enableDefaultTelemetry": False,
                },
                indent="\t",
            )
        )

        settings = load_settings(str(settings_file))

        assert settings.local_token_map == {"namePrefix": "carml"}
        assert settings.enable_default_telemetry is False

    def test_load_json_file_with_bom(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_bytes(b"\xef\xbb\xbf" + json.dumps({"removalSequence": []}).encode("utf-8"))

        assert load_settings(str(settings_file)).removal_sequence == []

    def test_load_yaml_file_with_env_vars(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NAME_PREFIX", "fromenv")
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text(
            "parameterFileTokens:\n"
            "  localTokens:\n"
            "    - name: namePrefix\n"
            "      value: ${NAME_PREFIX}\n"
        )

        settings = load_settings(str(settings_file))

        assert settings.local_token_map == {"namePrefix": "fromenv"}

    def test_invalid_file_raises(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text(json.dumps({"parameterFileTokens": {"localTokens": [{"name": "a"}]}}))

        with pytest.raises(SettingsError) as exc_info:
            load_settings(str(settings_file))
        assert exc_info.value.errors


class TestSettingsSchema:
    """Test schema validation."""

    def test_valid_document(self):
        is_valid, errors = validate_settings_schema(
            {"parameterFileTokens": {"tokenPrefix": "<<", "tokenSuffix": ">>", "localTokens": []}}
        )
        assert is_valid
        assert errors == []

    def test_wrong_type(self):
        is_valid, errors = validate_settings_schema({"removalSequence": "not-a-list"})
        assert not is_valid
        assert any("removalSequence" in error for error in errors)

    def test_syntax_error(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("{: broken")

        is_valid, errors, data = validate_settings_file(str(settings_file))

        assert not is_valid
        assert errors[0].startswith("Syntax error")
        assert data == {}

    def test_non_object_document(self, tmp_path):
        settings_file = tmp_path / "settings.json"
        settings_file.write_text("[1, 2]")

        is_valid, errors, _ = validate_settings_file(str(settings_file))

        assert not is_valid
        assert errors == ["Settings document must be an object"]
