"""Unit tests for deployment execution."""

from unittest.mock import patch

import pytest

from module_deploy.helpers.az_cli import AzCliError
from module_deploy.helpers.deployment import (
    DeploymentExecutor,
    extract_outputs,
    failed_operation_messages,
    provisioning_state,
)
from module_deploy.helpers.error_handler import DeploymentError, MissingTemplateFile
from module_deploy.helpers.scope import DeploymentScope
from module_deploy.helpers.settings import Settings
from module_deploy.pipeline.models import DeploymentRequest, DeploymentState, DeploymentTarget

FAILED_OPERATION = {
    "properties": {
        "provisioningState": "Failed",
        "targetResource": {"id": "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/st"},
        "statusMessage": {"error": {"code": "StorageAccountAlreadyTaken", "message": "Name taken"}},
    }
}


def _request(module_files, **target):
    template, parameters = module_files
    return DeploymentRequest(
        template_file_path=template,
        parameter_file_path=parameters,
        location="westeurope",
        target=DeploymentTarget(**target),
    )


def _executor(provider, settings=None, retry_limit=1):
    return DeploymentExecutor(provider, settings or Settings(), retry_limit=retry_limit, retry_interval=0)


class TestResponseHelpers:
    """Test deployment document helpers."""

    def test_extract_outputs(self):
        response = {
            "properties": {
                "outputs": {
                    "name": {"type": "String", "value": "st"},
                    "ids": {"type": "Array", "value": ["a", "b"]},
                    "empty": {"type": "String"},
                }
            }
        }
        assert extract_outputs(response) == {"name": "st", "ids": ["a", "b"], "empty": None}

    def test_extract_outputs_without_outputs(self):
        assert extract_outputs({"properties": {}}) == {}
        assert extract_outputs(None) == {}

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("Succeeded", DeploymentState.SUCCEEDED),
            ("Failed", DeploymentState.FAILED),
            ("Canceled", DeploymentState.CANCELED),
            ("Cancelled", DeploymentState.CANCELED),
            ("Running", DeploymentState.IN_PROGRESS),
            ("Accepted", DeploymentState.PENDING),
            (None, DeploymentState.PENDING),
        ],
    )
    def test_provisioning_state(self, value, expected):
        assert provisioning_state({"properties": {"provisioningState": value}}) == expected

    def test_failed_operation_messages(self):
        operations = [
            FAILED_OPERATION,
            {"properties": {"provisioningState": "Succeeded"}},
            {"properties": {"provisioningState": "Failed", "statusMessage": "plain text"}},
        ]

        messages = failed_operation_messages(operations)

        assert messages == [
            "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/st: "
            "StorageAccountAlreadyTaken: Name taken",
            "<deployment>: plain text",
        ]


class TestDeploymentExecutor:
    """Test DeploymentExecutor."""

    def test_deploy_success(self, provider, module_files):
        result = _executor(provider).deploy(_request(module_files, resource_group_name="rg"))

        assert result.succeeded
        assert result.state == DeploymentState.SUCCEEDED
        assert result.deployment_name.startswith("storageAccounts-")
        assert result.outputs["name"] == "st"
        assert result.failure_detail is None
        provider.resource_group_exists.assert_called_once_with("rg", None)
        provider.create_resource_group.assert_not_called()

    def test_creates_missing_resource_group(self, provider, module_files):
        provider.resource_group_exists.return_value = False

        _executor(provider).deploy(_request(module_files, resource_group_name="rg", subscription_id="sub"))

        provider.create_resource_group.assert_called_once_with("rg", "westeurope", "sub")

    def test_subscription_scope_skips_resource_group(self, provider, module_files):
        _executor(provider).deploy(_request(module_files, subscription_id="sub"))

        provider.resource_group_exists.assert_not_called()
        assert provider.create_deployment.call_args[0][0] == DeploymentScope.SUBSCRIPTION

    def test_failed_state_is_suppressed(self, provider, module_files):
        provider.create_deployment.return_value = {"properties": {"provisioningState": "Failed"}}
        provider.list_deployment_operations.return_value = [FAILED_OPERATION]

        result = _executor(provider).deploy(_request(module_files, resource_group_name="rg"), suppress_throw=True)

        assert not result.succeeded
        assert result.state == DeploymentState.FAILED
        assert result.deployment_name
        assert isinstance(result.failure_detail, DeploymentError)
        assert "StorageAccountAlreadyTaken" in str(result.failure_detail)

    def test_failed_state_raises_without_suppress(self, provider, module_files):
        provider.create_deployment.return_value = {"properties": {"provisioningState": "Canceled"}}

        with pytest.raises(DeploymentError) as exc_info:
            _executor(provider).deploy(_request(module_files, resource_group_name="rg"), suppress_throw=False)

        assert exc_info.value.state == "Canceled"
        assert exc_info.value.deployment_name

    def test_success_does_not_raise_without_suppress(self, provider, module_files):
        result = _executor(provider).deploy(_request(module_files), suppress_throw=False)
        assert result.succeeded

    def test_non_terminal_state_is_failure(self, provider, module_files):
        provider.create_deployment.return_value = {"properties": {"provisioningState": "Running"}}

        result = _executor(provider).deploy(_request(module_files))

        assert result.state == DeploymentState.FAILED

    def test_rejected_deployment_has_no_name(self, provider, module_files):
        provider.create_deployment.side_effect = AzCliError(["az"], 1, "InvalidTemplateDeployment")
        provider.show_deployment.side_effect = AzCliError(["az"], 3, "DeploymentNotFound")

        result = _executor(provider).deploy(_request(module_files, resource_group_name="rg"))

        assert result.deployment_name == ""
        assert result.state == DeploymentState.FAILED
        assert "InvalidTemplateDeployment" in result.failure_detail.details
        provider.list_deployment_operations.assert_not_called()

    def test_cli_failure_after_acceptance_keeps_name(self, provider, module_files):
        provider.create_deployment.side_effect = AzCliError(["az"], 1, "DeploymentFailed")
        provider.show_deployment.return_value = {"properties": {"provisioningState": "Failed"}}
        provider.list_deployment_operations.return_value = [FAILED_OPERATION]

        result = _executor(provider).deploy(_request(module_files, resource_group_name="rg"))

        assert result.deployment_name.startswith("storageAccounts-")
        assert result.failure_detail.cause is provider.create_deployment.side_effect
        assert len(result.failure_detail.details) == 2

    def test_resource_group_creation_failure(self, provider, module_files):
        provider.resource_group_exists.return_value = False
        provider.create_resource_group.side_effect = AzCliError(["az"], 1, "AuthorizationFailed")

        result = _executor(provider).deploy(_request(module_files, resource_group_name="rg"))

        assert result.deployment_name == ""
        assert not result.succeeded
        provider.create_deployment.assert_not_called()

    @patch("module_deploy.helpers.deployment.time.sleep")
    def test_retries_until_success(self, mock_sleep, provider, module_files):
        success = provider.create_deployment.return_value
        provider.create_deployment.side_effect = [
            {"properties": {"provisioningState": "Failed"}},
            success,
        ]

        result = _executor(provider, retry_limit=3).deploy(_request(module_files))

        assert result.succeeded
        assert provider.create_deployment.call_count == 2
        mock_sleep.assert_called_once_with(0)

    @patch("module_deploy.helpers.deployment.time.sleep")
    def test_retry_limit_exhausted(self, mock_sleep, provider, module_files):
        provider.create_deployment.return_value = {"properties": {"provisioningState": "Failed"}}

        result = _executor(provider, retry_limit=3).deploy(_request(module_files))

        assert not result.succeeded
        assert provider.create_deployment.call_count == 3
        assert mock_sleep.call_count == 2

    def test_telemetry_override_passed_through(self, provider, module_files):
        request = _request(module_files)
        request.additional_parameters = {"enableDefaultTelemetry": True}

        _executor(provider, Settings(enable_default_telemetry=False)).deploy(request)

        kwargs = provider.create_deployment.call_args[1]
        assert kwargs["additional_parameters"] == {"enableDefaultTelemetry": True}

    def test_missing_template(self, provider, tmp_path):
        request = DeploymentRequest(template_file_path=str(tmp_path / "nope.bicep"), location="westeurope")

        with pytest.raises(MissingTemplateFile):
            _executor(provider).deploy(request)
