"""Replace-tokens command implementation."""

import json
from typing import Optional

import typer

from ..helpers.error_handler import ModuleDeployError, handle_error, handle_success
from ..helpers.settings import load_settings
from ..helpers.tokens import build_token_map, convert_tokens_in_file, parse_custom_tokens
from ..pipeline.models import DeploymentTarget


def replace_tokens_command(
    parameter_file: str,
    settings_file: str,
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
    custom_tokens: Optional[str] = None,
    swap_value_with_name: bool = False,
    output_directory: Optional[str] = None,
    output: str = "TEXT",
) -> None:
    """
    Replace parameter file tokens with built-in, local and custom token values.

    Args:
        parameter_file: Parameter file to convert
        settings_file: Settings document with token prefix, suffix and local tokens
        resource_group_name: Value of the resourceGroupName token
        subscription_id: Value of the subscriptionId token
        management_group_id: Value of the managementGroupId token
        custom_tokens: JSON object of additional tokens
        swap_value_with_name: Turn values back into placeholders
        output_directory: Write the converted file there instead of in place
        output: Output format (TEXT or JSON)
    """
    try:
        settings = load_settings(settings_file)
        target = DeploymentTarget(
            resource_group_name=resource_group_name,
            subscription_id=subscription_id,
            management_group_id=management_group_id,
        )
        tokens = build_token_map(target, settings, parse_custom_tokens(custom_tokens))
        written = convert_tokens_in_file(
            parameter_file,
            tokens,
            settings.parameter_file_tokens.token_prefix,
            settings.parameter_file_tokens.token_suffix,
            swap_value_with_name=swap_value_with_name,
            output_directory=output_directory,
        )
    except (ModuleDeployError, ValueError) as e:
        handle_error(str(e))
        return

    if output.upper() == "JSON":
        typer.echo(json.dumps({"file": written, "tokens": sorted(tokens)}, indent=2))
    else:
        handle_success(f"Replaced {len(tokens)} token(s) in {written}")
