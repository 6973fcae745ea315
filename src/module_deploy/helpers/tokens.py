"""Parameter file token replacement."""

import json
import os
import re
from typing import Dict, List, Optional

from .error_handler import MissingTemplateFile
from .logger import get_logger
from .settings import Settings
from .utils import has_utf8_bom, read_text, write_text

TENANT_ID_ENV_VAR = "ARM_TENANT_ID"
DEPLOYMENT_SP_ID_ENV_VAR = "DEPLOYMENT_SP_ID"


def build_token_map(
    target,
    settings: Settings,
    custom_tokens: Optional[Dict[str, str]] = None,
    tenant_id: Optional[str] = None,
    deployment_sp_id: Optional[str] = None,
) -> Dict[str, str]:
    """
    Compose the token map for one run.

    Later sources override earlier ones: built-in run context tokens, then
    local tokens from the settings, then caller supplied custom tokens.

    Args:
        target: DeploymentTarget of the run
        settings: Project settings
        custom_tokens: Tokens passed in by the caller
        tenant_id: Tenant id (defaults to $ARM_TENANT_ID)
        deployment_sp_id: Deployment principal id (defaults to $DEPLOYMENT_SP_ID)

    Returns:
        Token name -> replacement value
    """
    logger = get_logger("tokens")

    tokens = {
        "resourceGroupName": target.resource_group_name or "",
        "subscriptionId": target.subscription_id or "",
        "managementGroupId": target.management_group_id or "",
        "tenantId": tenant_id
        if tenant_id is not None
        else os.environ.get(TENANT_ID_ENV_VAR, ""),
        "deploymentSpId": deployment_sp_id
        if deployment_sp_id is not None
        else os.environ.get(DEPLOYMENT_SP_ID_ENV_VAR, ""),
    }

    local_tokens = settings.local_token_map
    if local_tokens:
        logger.info(f"Using local tokens [{', '.join(local_tokens)}]")
        tokens.update(local_tokens)

    if custom_tokens:
        logger.info(f"Using custom parameter file tokens [{', '.join(custom_tokens)}]")
        tokens.update({name: str(value) for name, value in custom_tokens.items()})

    return tokens


def parse_custom_tokens(raw: Optional[str]) -> Dict[str, str]:
    """
    Parse custom tokens given as a JSON object, e.g. '{"tokenName":"tokenValue"}'.

    Raises:
        ValueError: If the string is not a JSON object
    """
    if raw is None or not raw.strip():
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Custom parameter file tokens are not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ValueError("Custom parameter file tokens must be a JSON object")

    return {str(name): "" if value is None else str(value) for name, value in data.items()}


def find_tokens(content: str, token_prefix: str, token_suffix: str) -> List[str]:
    """Names of all placeholders present in content, in order of appearance."""
    pattern = re.compile(
        re.escape(token_prefix) + r"(\w[\w.\-]*?)" + re.escape(token_suffix)
    )
    names = []
    for match in pattern.finditer(content):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def replace_tokens(
    content: str,
    tokens: Dict[str, str],
    token_prefix: str,
    token_suffix: str,
    swap_value_with_name: bool = False,
) -> str:
    """
    Replace every known placeholder in content.

    Placeholders without a token in the map are left untouched. With
    swap_value_with_name the direction is reversed and each non-empty value
    is turned back into its placeholder. Replacement is a single pass, so
    substituted text is never scanned again.
    """
    if swap_value_with_name:
        # longest values first
        lookup = {}
        for name, value in tokens.items():
            if value and value not in lookup:
                lookup[value] = f"{token_prefix}{name}{token_suffix}"
        alternatives = sorted(lookup, key=len, reverse=True)
        pattern = "|".join(re.escape(value) for value in alternatives)
    else:
        lookup = dict(tokens)
        alternatives = sorted(lookup, key=len, reverse=True)
        pattern = (
            re.escape(token_prefix)
            + "("
            + "|".join(re.escape(name) for name in alternatives)
            + ")"
            + re.escape(token_suffix)
        )

    if not alternatives:
        return content

    def substitute(match):
        if swap_value_with_name:
            return lookup[match.group(0)]
        return lookup[match.group(1)]

    return re.sub(pattern, substitute, content)


def convert_tokens_in_file(
    file_path: str,
    tokens: Dict[str, str],
    token_prefix: str,
    token_suffix: str,
    swap_value_with_name: bool = False,
    output_directory: Optional[str] = None,
) -> str:
    """
    Replace tokens in a parameter file.

    Args:
        file_path: File to convert
        tokens: Token name -> value
        token_prefix: Placeholder prefix, e.g. '<<'
        token_suffix: Placeholder suffix, e.g. '>>'
        swap_value_with_name: Replace values with their placeholders instead
        output_directory: Write the result there instead of in place

    Returns:
        Path of the written file

    Raises:
        MissingTemplateFile: If file_path does not exist
    """
    logger = get_logger("tokens")

    if not os.path.isfile(file_path):
        raise MissingTemplateFile(file_path, kind="Parameter")

    bom = has_utf8_bom(file_path)
    content = read_text(file_path)
    converted = replace_tokens(
        content, tokens, token_prefix, token_suffix, swap_value_with_name
    )

    if not swap_value_with_name:
        unresolved = find_tokens(converted, token_prefix, token_suffix)
        if unresolved:
            logger.debug(f"Tokens left unresolved in {file_path}: {', '.join(unresolved)}")

    destination = file_path
    if output_directory:
        os.makedirs(output_directory, exist_ok=True)
        destination = os.path.join(output_directory, os.path.basename(file_path))

    write_text(destination, converted, bom=bom)
    logger.info(f"Converted tokens in {file_path} -> {destination}")
    return destination
