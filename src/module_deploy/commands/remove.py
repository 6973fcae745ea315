"""Remove command implementation."""

import json
from typing import Optional

import typer

from ..helpers.az_cli import AzureCli
from ..helpers.error_handler import (
    ModuleDeployError,
    handle_error,
    handle_success,
    handle_warning,
)
from ..helpers.removal import DeploymentRemover
from ..helpers.settings import load_settings
from ..pipeline.models import DeploymentTarget, RemovalRequest


def remove_command(
    deployment_name: str,
    template_file: str,
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
    settings_file: Optional[str] = None,
    output: str = "TEXT",
) -> None:
    """Remove the resources created by a deployment. Failures only warn."""
    try:
        settings = load_settings(settings_file)
    except ModuleDeployError as e:
        handle_error(str(e))
        return

    request = RemovalRequest(
        deployment_name=deployment_name,
        template_file_path=template_file,
        target=DeploymentTarget(
            resource_group_name=resource_group_name,
            subscription_id=subscription_id,
            management_group_id=management_group_id,
        ),
    )
    report = DeploymentRemover(AzureCli(), settings).remove(request)

    if output.upper() == "JSON":
        typer.echo(
            json.dumps(
                {
                    "deploymentName": deployment_name,
                    "removed": report.removed,
                    "alreadyAbsent": report.already_absent,
                    "warnings": [str(w) for w in report.warnings],
                },
                indent=2,
            )
        )
        return

    for warning in report.warnings:
        handle_warning(str(warning))
    handle_success(
        f"Removed {len(report.removed)} resource(s), "
        f"{len(report.already_absent)} already absent"
    )
