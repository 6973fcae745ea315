#!/usr/bin/env python3
"""
Module deployment CLI - validate, deploy and remove infrastructure-as-code modules
"""

import os

import typer

from . import __version__
from .commands.deploy import deploy_command
from .commands.remove import remove_command
from .commands.run import run_command
from .commands.tokens import replace_tokens_command
from .commands.validate import validate_command
from .helpers.logger import LOG_LEVEL_ENV_VAR, set_json_output_mode, setup_logger
from .helpers.settings import DEFAULT_SETTINGS_FILE


def configure_logging(output_format: str = "TEXT", log_level: str = None):
    """Configure logging based on output format and log level."""
    # CLI option > environment > default
    if log_level is None:
        log_level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    os.environ[LOG_LEVEL_ENV_VAR] = log_level.upper()

    json_output = output_format.upper() == "JSON"
    set_json_output_mode(json_output)
    setup_logger("module_deploy", log_level.upper(), json_output)


app = typer.Typer(
    help="Module deployment CLI - validate, deploy and remove template deployments",
    no_args_is_help=True,
    add_completion=False,
    epilog="💡 Use 'module-deploy <command> --help' for command-specific help",
)

LOG_LEVEL = None


def _version_callback(value: bool):
    if value:
        typer.echo(f"module-deploy {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Set logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        case_sensitive=False,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
):
    """Module deployment CLI - validate, deploy and remove template deployments."""
    global LOG_LEVEL
    LOG_LEVEL = log_level


TEMPLATE_FILE = typer.Option(
    ..., "--template-file", "-t", help="Path to the template file to use for deployment"
)
LOCATION = typer.Option(
    ..., "--location", "-l", help="The location to use for deployment"
)
RESOURCE_GROUP = typer.Option(
    None, "--resource-group-name", "-g", help="The resource group to deploy to"
)
SUBSCRIPTION = typer.Option(
    None, "--subscription-id", "-s", help="The subscription to deploy to"
)
MANAGEMENT_GROUP = typer.Option(
    None, "--management-group-id", "-m", help="The management group to deploy to"
)
SETTINGS = typer.Option(
    DEFAULT_SETTINGS_FILE, "--settings", help="Path to the settings file"
)
OUTPUT = typer.Option(
    "TEXT", "--output", "-o", help="Output format: TEXT (default) or JSON"
)


@app.command(
    "run",
    help="Replace tokens, validate, deploy and remove a module. Example: module-deploy run -t modules/storage/deploy.bicep -p modules/storage/.test/parameters.json -l westeurope -g validation-rg",
    rich_help_panel="Pipeline Commands",
)
def run(
    template_file: str = TEMPLATE_FILE,
    parameter_file: str = typer.Option(
        ..., "--parameter-file", "-p", help="Path to the parameter file to use for deployment"
    ),
    location: str = LOCATION,
    resource_group_name: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION,
    management_group_id: str = MANAGEMENT_GROUP,
    custom_tokens: str = typer.Option(
        None,
        "--custom-tokens",
        help='Additional parameter file token pairs in json format, e.g. {"tokenName":"tokenValue"}',
    ),
    remove_deployment: bool = typer.Option(
        True,
        "--remove-deployment/--no-remove-deployment",
        help="Remove the deployed resources afterwards",
    ),
    settings_file: str = SETTINGS,
    retry_limit: int = typer.Option(
        3, "--retry-limit", min=1, help="Deployment attempts before giving up"
    ),
    outputs_file: str = typer.Option(
        None,
        "--outputs-file",
        envvar="GITHUB_OUTPUT",
        help="File to append name=value deployment outputs to",
    ),
    output: str = OUTPUT,
):
    """Run the complete module validation pipeline."""
    configure_logging(output, LOG_LEVEL)
    run_command(
        template_file,
        parameter_file,
        location,
        resource_group_name,
        subscription_id,
        management_group_id,
        custom_tokens,
        remove_deployment,
        settings_file,
        retry_limit,
        outputs_file,
        output,
    )


@app.command(
    "replace-tokens",
    help="Replace tokens in a parameter file. Example: module-deploy replace-tokens -p parameters.json -g validation-rg",
    rich_help_panel="Step Commands",
)
def replace_tokens(
    parameter_file: str = typer.Option(
        ..., "--parameter-file", "-p", help="Path to the parameter file to convert"
    ),
    resource_group_name: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION,
    management_group_id: str = MANAGEMENT_GROUP,
    custom_tokens: str = typer.Option(
        None, "--custom-tokens", help="Additional token pairs in json format"
    ),
    swap_value_with_name: bool = typer.Option(
        False, "--swap-value-with-name", help="Replace values with their token placeholders"
    ),
    output_directory: str = typer.Option(
        None, "--output-directory", "-d", help="Write the converted file to this directory"
    ),
    settings_file: str = SETTINGS,
    output: str = OUTPUT,
):
    """Replace parameter file tokens."""
    configure_logging(output, LOG_LEVEL)
    replace_tokens_command(
        parameter_file,
        settings_file,
        resource_group_name,
        subscription_id,
        management_group_id,
        custom_tokens,
        swap_value_with_name,
        output_directory,
        output,
    )


@app.command(
    "validate",
    help="Validate a template deployment. Example: module-deploy validate -t deploy.bicep -p parameters.json -l westeurope -g validation-rg",
    rich_help_panel="Step Commands",
)
def validate(
    template_file: str = TEMPLATE_FILE,
    parameter_file: str = typer.Option(
        None, "--parameter-file", "-p", help="Path to the parameter file"
    ),
    location: str = LOCATION,
    resource_group_name: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION,
    management_group_id: str = MANAGEMENT_GROUP,
    settings_file: str = SETTINGS,
    output: str = OUTPUT,
):
    """Validate a template deployment without deploying."""
    configure_logging(output, LOG_LEVEL)
    validate_command(
        template_file,
        location,
        parameter_file,
        resource_group_name,
        subscription_id,
        management_group_id,
        settings_file,
        output,
    )


@app.command(
    "deploy",
    help="Deploy a template. Example: module-deploy deploy -t deploy.bicep -p parameters.json -l westeurope -g validation-rg",
    rich_help_panel="Step Commands",
)
def deploy(
    template_file: str = TEMPLATE_FILE,
    parameter_file: str = typer.Option(
        None, "--parameter-file", "-p", help="Path to the parameter file"
    ),
    location: str = LOCATION,
    resource_group_name: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION,
    management_group_id: str = MANAGEMENT_GROUP,
    settings_file: str = SETTINGS,
    retry_limit: int = typer.Option(
        3, "--retry-limit", min=1, help="Deployment attempts before giving up"
    ),
    outputs_file: str = typer.Option(
        None,
        "--outputs-file",
        envvar="GITHUB_OUTPUT",
        help="File to append name=value deployment outputs to",
    ),
    output: str = OUTPUT,
):
    """Deploy a template and print its outputs."""
    configure_logging(output, LOG_LEVEL)
    deploy_command(
        template_file,
        location,
        parameter_file,
        resource_group_name,
        subscription_id,
        management_group_id,
        settings_file,
        retry_limit,
        outputs_file,
        output,
    )


@app.command(
    "remove",
    help="Remove the resources of a deployment. Example: module-deploy remove -n storage-20240101T120000000Z -t deploy.bicep -g validation-rg",
    rich_help_panel="Step Commands",
)
def remove(
    deployment_name: str = typer.Option(
        ..., "--deployment-name", "-n", help="Name of the deployment to remove"
    ),
    template_file: str = TEMPLATE_FILE,
    resource_group_name: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION,
    management_group_id: str = MANAGEMENT_GROUP,
    settings_file: str = SETTINGS,
    output: str = OUTPUT,
):
    """Remove the resources created by a deployment."""
    configure_logging(output, LOG_LEVEL)
    remove_command(
        deployment_name,
        template_file,
        resource_group_name,
        subscription_id,
        management_group_id,
        settings_file,
        output,
    )


if __name__ == "__main__":
    app()
