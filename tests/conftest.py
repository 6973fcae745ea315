import json
import os
from unittest.mock import MagicMock

import pytest

from module_deploy.helpers import logger as logger_module
from module_deploy.helpers.settings import Settings


def pytest_configure(config):
    """Create the directory that receives one log file per test."""
    log_dir = "tests/test-outputs"
    os.makedirs(log_dir, exist_ok=True)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_setup(item):
    """Hook to configure a separate log file for each test."""
    log_dir = "tests/test-outputs"
    os.makedirs(log_dir, exist_ok=True)

    item.config.option.log_file = os.path.join(log_dir, f"{item.name}.log")

    yield


@pytest.fixture(autouse=True)
def reset_logging_state(monkeypatch):
    """Keep CLI logging configuration from leaking between tests."""
    monkeypatch.setenv(logger_module.LOG_LEVEL_ENV_VAR, "WARNING")
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    monkeypatch.setattr(logger_module, "_json_output_mode", None)


@pytest.fixture
def provider():
    """Provider double that succeeds unless told otherwise."""
    mock = MagicMock()
    mock.validate_deployment.return_value = {"properties": {"provisioningState": "Succeeded"}}
    mock.create_deployment.return_value = {
        "properties": {
            "provisioningState": "Succeeded",
            "outputs": {
                "resourceId": {"type": "String", "value": "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/st"},
                "name": {"type": "String", "value": "st"},
            },
        }
    }
    mock.list_deployment_operations.return_value = []
    mock.resource_group_exists.return_value = True
    return mock


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def module_files(tmp_path):
    """A Bicep template declaring the telemetry parameter and a tokenized parameter file."""
    module_dir = tmp_path / "storageAccounts"
    module_dir.mkdir()

    template = module_dir / "deploy.bicep"
    template.write_text(
        "param name string\n"
        "param enableDefaultTelemetry bool = true\n"
        "resource st 'Microsoft.Storage/storageAccounts@2022-09-01' = {\n"
        "  name: name\n"
        "}\n"
        "output name string = st.name\n"
    )

    parameters = module_dir / "parameters.json"
    parameters.write_text(
        json.dumps(
            {
                "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentParameters.json#",
                "contentVersion": "1.0.0.0",
                "parameters": {
                    "name": {"value": "<<namePrefix>>st001"},
                    "resourceGroup": {"value": "<<resourceGroupName>>"},
                },
            },
            indent=2,
        )
    )
    return str(template), str(parameters)
