"""Unit tests for template validation."""

import pytest

from module_deploy.helpers.az_cli import AzCliError
from module_deploy.helpers.error_handler import MissingTemplateFile, TemplateValidationError
from module_deploy.helpers.scope import DeploymentScope
from module_deploy.helpers.settings import Settings
from module_deploy.helpers.validation import TemplateValidator
from module_deploy.pipeline.models import DeploymentRequest, DeploymentTarget


def _request(module_files, **target):
    template, parameters = module_files
    return DeploymentRequest(
        template_file_path=template,
        parameter_file_path=parameters,
        location="westeurope",
        target=DeploymentTarget(**target),
    )


class TestTemplateValidator:
    """Test TemplateValidator."""

    def test_validate_success(self, provider, settings, module_files):
        result = TemplateValidator(provider, settings).validate(
            _request(module_files, resource_group_name="rg")
        )

        assert result.scope == DeploymentScope.RESOURCE_GROUP
        provider.validate_deployment.assert_called_once()
        args, kwargs = provider.validate_deployment.call_args
        assert args[0] == DeploymentScope.RESOURCE_GROUP
        assert args[2] == module_files[0]
        assert args[3] == "westeurope"
        assert kwargs["parameter_file_path"] == module_files[1]
        assert kwargs["resource_group_name"] == "rg"

    @pytest.mark.parametrize(
        "target, expected",
        [
            ({"resource_group_name": "rg", "management_group_id": "mg"}, DeploymentScope.RESOURCE_GROUP),
            ({"management_group_id": "mg", "subscription_id": "sub"}, DeploymentScope.MANAGEMENT_GROUP),
            ({"subscription_id": "sub"}, DeploymentScope.SUBSCRIPTION),
        ],
    )
    def test_validate_uses_one_scope(self, provider, settings, module_files, target, expected):
        TemplateValidator(provider, settings).validate(_request(module_files, **target))

        assert provider.validate_deployment.call_count == 1
        assert provider.validate_deployment.call_args[0][0] == expected

    def test_telemetry_default_injected(self, provider, module_files):
        settings = Settings(enable_default_telemetry=False)

        result = TemplateValidator(provider, settings).validate(_request(module_files))

        assert result.parameters == {"enableDefaultTelemetry": False}
        kwargs = provider.validate_deployment.call_args[1]
        assert kwargs["additional_parameters"] == {"enableDefaultTelemetry": False}

    def test_provider_rejection(self, provider, settings, module_files):
        provider.validate_deployment.side_effect = AzCliError(
            ["az"], 1, "InvalidTemplate: missing parameter"
        )

        with pytest.raises(TemplateValidationError) as exc_info:
            TemplateValidator(provider, settings).validate(_request(module_files))

        assert "InvalidTemplate" in str(exc_info.value.diagnostics)

    def test_error_in_response(self, provider, settings, module_files):
        provider.validate_deployment.return_value = {"error": {"code": "InvalidTemplate"}}

        with pytest.raises(TemplateValidationError):
            TemplateValidator(provider, settings).validate(_request(module_files))

    def test_missing_template(self, provider, settings, tmp_path):
        request = DeploymentRequest(
            template_file_path=str(tmp_path / "missing.bicep"), location="westeurope"
        )

        with pytest.raises(MissingTemplateFile):
            TemplateValidator(provider, settings).validate(request)

        provider.validate_deployment.assert_not_called()

    def test_missing_parameter_file(self, provider, settings, module_files, tmp_path):
        request = DeploymentRequest(
            template_file_path=module_files[0],
            parameter_file_path=str(tmp_path / "missing.json"),
            location="westeurope",
        )

        with pytest.raises(MissingTemplateFile) as exc_info:
            TemplateValidator(provider, settings).validate(request)

        assert exc_info.value.kind == "Parameter"
