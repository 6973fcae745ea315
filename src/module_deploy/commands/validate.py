"""Validate command implementation."""

import json
from typing import Optional

import typer

from ..helpers.az_cli import AzureCli
from ..helpers.error_handler import ModuleDeployError, handle_error, handle_success
from ..helpers.settings import load_settings
from ..helpers.validation import TemplateValidator
from ..pipeline.models import DeploymentRequest, DeploymentTarget


def validate_command(
    template_file: str,
    location: str,
    parameter_file: Optional[str] = None,
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
    settings_file: Optional[str] = None,
    output: str = "TEXT",
) -> None:
    """Validate a template deployment without deploying it."""
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
        result = TemplateValidator(AzureCli(), settings).validate(request)
    except ModuleDeployError as e:
        handle_error(str(e))
        return

    if output.upper() == "JSON":
        typer.echo(
            json.dumps(
                {
                    "templateFilePath": result.template_file_path,
                    "scope": result.scope.value,
                    "valid": True,
                },
                indent=2,
            )
        )
    else:
        handle_success(f"Template {template_file} is valid ({result.scope.value} scope)")
