"""Deploy command implementation."""

import json
from typing import Optional

import typer

from ..helpers.az_cli import AzureCli
from ..helpers.deployment import DeploymentExecutor
from ..helpers.error_handler import (
    DeploymentError,
    ModuleDeployError,
    handle_error,
    handle_success,
)
from ..helpers.settings import load_settings
from ..pipeline.models import DeploymentRequest, DeploymentTarget
from ..pipeline.orchestrator import publish_outputs


def deploy_command(
    template_file: str,
    location: str,
    parameter_file: Optional[str] = None,
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
    settings_file: Optional[str] = None,
    retry_limit: int = 3,
    outputs_file: Optional[str] = None,
    output: str = "TEXT",
) -> None:
    """
    Deploy a template and print its outputs.

    Args:
        template_file: Template to deploy
        location: Deployment location
        parameter_file: Optional parameter file
        resource_group_name: Target resource group
        subscription_id: Target subscription
        management_group_id: Target management group
        settings_file: Settings document
        retry_limit: Deployment attempts before giving up
        outputs_file: File to append name=value outputs to
        output: Output format (TEXT or JSON)
    """
    try:
        settings = load_settings(settings_file)
        request = DeploymentRequest(
            template_file_path=template_file,
            parameter_file_path=parameter_file,
            location=location,
            target=DeploymentTarget(
                resource_group_name=resource_group_name,
                subscription_id=subscription_id,
                management_group_id=management_group_id,
            ),
        )
        executor = DeploymentExecutor(AzureCli(), settings, retry_limit=retry_limit)
        result = executor.deploy(request, suppress_throw=True)
    except ModuleDeployError as e:
        handle_error(str(e))
        return

    deployment_output = publish_outputs(result, outputs_file)

    if output.upper() == "JSON":
        typer.echo(
            json.dumps(
                {
                    "deploymentName": result.deployment_name,
                    "state": result.state.value,
                    "deploymentOutput": result.outputs,
                    "error": str(result.failure_detail) if result.failure_detail else None,
                },
                indent=2,
                default=str,
            )
        )
    else:
        typer.echo(f"deploymentName: {result.deployment_name}")
        for name, value in result.outputs.items():
            typer.echo(f"{name}: {value}")
        typer.echo(f"deploymentOutput: {deployment_output}")

    try:
        result.raise_for_status()
    except DeploymentError as e:
        handle_error(str(e))
        return

    if output.upper() != "JSON":
        handle_success(f"Deployment {result.deployment_name} succeeded")
