"""Utility functions for the module deployment CLI."""

import json
import os
import re
from typing import Any, Dict, List, Union

import yaml

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]*))?\}")


def substitute_env_vars(data: Union[Dict, List, str]) -> Union[Dict, List, str]:
    """
    Recursively substitute environment variables in loaded YAML/JSON data.

    Supports ${VAR_NAME} and ${VAR_NAME:default_value} syntax. Unset variables
    without a default resolve to an empty string.

    Args:
        data: Loaded data (dict, list, or string)

    Returns:
        Data with environment variables substituted
    """
    if isinstance(data, dict):
        return {key: substitute_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    elif isinstance(data, str):

        def replace_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.getenv(var_name, default_value)

        return ENV_VAR_PATTERN.sub(replace_var, data)
    else:
        return data


def load_yaml(file_path: str) -> Dict[str, Any]:
    """
    Load and parse a YAML (or JSON) file.

    Args:
        file_path: Path to the file

    Returns:
        Parsed content as dictionary, with environment variables substituted

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file contains invalid YAML
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return substitute_env_vars(data) if data is not None else {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Invalid YAML syntax in {file_path}: {e}")


def load_json(file_path: str) -> Dict[str, Any]:
    """
    Load and parse a JSON file.

    Args:
        file_path: Path to the file

    Returns:
        Parsed content, with environment variables substituted

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file contains invalid JSON
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    content = read_text(file_path)
    if not content.strip():
        return {}
    return substitute_env_vars(json.loads(content))


def has_utf8_bom(file_path: str) -> bool:
    """True if the file starts with a UTF-8 byte order mark."""
    with open(file_path, "rb") as f:
        return f.read(3) == b"\xef\xbb\xbf"


def read_text(file_path: str) -> str:
    """Read a text file, tolerating a UTF-8 byte order mark."""
    with open(file_path, "r", encoding="utf-8-sig") as f:
        return f.read()


def write_text(file_path: str, content: str, bom: bool = False) -> None:
    """Write a text file as UTF-8, optionally with a byte order mark."""
    with open(file_path, "w", encoding="utf-8-sig" if bom else "utf-8") as f:
        f.write(content)
