"""Run command: the complete module validation pipeline."""

import json
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from ..helpers.az_cli import AzureCli
from ..helpers.error_handler import (
    DeploymentError,
    ModuleDeployError,
    handle_error,
    handle_info,
    handle_success,
    handle_warning,
)
from ..helpers.settings import load_settings
from ..helpers.tokens import parse_custom_tokens
from ..pipeline.models import DeploymentTarget, PipelineInputs, RunContext
from ..pipeline.orchestrator import ModuleValidationPipeline

console = Console()


def run_command(
    template_file: str,
    parameter_file: str,
    location: str,
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
    custom_tokens: Optional[str] = None,
    remove_deployment: bool = True,
    settings_file: Optional[str] = None,
    retry_limit: int = 3,
    outputs_file: Optional[str] = None,
    output: str = "TEXT",
) -> None:
    """
    Replace tokens, validate, deploy and (by default) remove a module.

    Removal also runs after a failed deployment as long as the deployment
    was created. Removal problems are reported as warnings and do not change
    the exit code.
    """
    json_output = output.upper() == "JSON"

    try:
        settings = load_settings(settings_file)
        inputs = PipelineInputs(
            template_file_path=template_file,
            parameter_file_path=parameter_file,
            location=location,
            target=DeploymentTarget(
                resource_group_name=resource_group_name,
                subscription_id=subscription_id,
                management_group_id=management_group_id,
            ),
            custom_tokens=parse_custom_tokens(custom_tokens),
            remove_deployment=remove_deployment,
            outputs_file=outputs_file,
        )
    except (ModuleDeployError, ValueError) as e:
        handle_error(str(e))
        return

    provider = AzureCli(subscription_id=subscription_id)
    if not provider.is_available():
        handle_error(f"Azure CLI '{provider.executable}' not found on PATH")
        return

    pipeline = ModuleValidationPipeline(
        provider,
        settings,
        retry_limit=retry_limit,
        on_step=None if json_output else _print_step,
    )

    error: Optional[ModuleDeployError] = None
    try:
        pipeline.run(inputs)
    except DeploymentError as e:
        error = e
    except ModuleDeployError as e:
        handle_error(str(e))
        return

    context = pipeline.last_context
    if json_output:
        typer.echo(json.dumps(_summary(context, error), indent=2, default=str))
    else:
        _print_summary(context)

    if error is not None:
        handle_error(str(error))
    elif not json_output:
        handle_success(f"Module {template_file} validated")


def _print_step(title: str) -> None:
    console.print(f"\n[blue]▶ {escape(title)}[/blue]")


def _print_summary(context: RunContext) -> None:
    deployment = context.deployment
    typer.echo(f"deploymentName: {deployment.deployment_name}")
    for name, value in deployment.outputs.items():
        typer.echo(f"{name}: {value}")
    typer.echo(f"deploymentOutput: {context.deployment_output}")

    if context.removal is not None:
        console.print("\n[blue]🎯 Removal Summary[/blue]")
        typer.echo(f"  ✅ Removed: {len(context.removal.removed)}")
        typer.echo(f"  ⚠️  Already absent: {len(context.removal.already_absent)}")
        for warning in context.removal.warnings:
            handle_warning(str(warning))
    elif context.removal_skipped_reason:
        handle_info(f"Removal skipped: {context.removal_skipped_reason}")


def _summary(context: RunContext, error: Optional[ModuleDeployError]) -> dict:
    deployment = context.deployment
    summary = {
        "deploymentName": deployment.deployment_name,
        "state": deployment.state.value,
        "deploymentOutput": deployment.outputs,
        "removal": None,
        "error": str(error) if error else None,
    }
    if context.removal is not None:
        summary["removal"] = {
            "removed": context.removal.removed,
            "alreadyAbsent": context.removal.already_absent,
            "warnings": [str(w) for w in context.removal.warnings],
        }
    elif context.removal_skipped_reason:
        summary["removal"] = {"skipped": context.removal_skipped_reason}
    return summary
