"""Logging configuration for the module deployment CLI."""

import logging
import os
import sys

LOG_LEVEL_ENV_VAR = "MODULE_DEPLOY_LOG_LEVEL"

# Set by the CLI once the output format is known
_json_output_mode = None


def setup_logger(
    name: str, level: str = "INFO", json_output: bool = False
) -> logging.Logger:
    """
    Set up logger with appropriate handlers.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, send logs to stderr to avoid contaminating JSON stdout

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # Clear existing handlers
    logger.handlers.clear()

    logger.setLevel(getattr(logging, level.upper()))

    # stderr for JSON output keeps stdout parseable
    handler = logging.StreamHandler(sys.stderr if json_output else sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str, json_output: bool = None) -> logging.Logger:
    """Get or create logger with appropriate configuration."""
    logger_name = f"module_deploy.{name}"

    if json_output is None:
        json_output = (
            _json_output_mode
            if _json_output_mode is not None
            else _detect_json_output_mode()
        )

    level = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    return setup_logger(logger_name, level, json_output)


def set_json_output_mode(json_output: bool) -> None:
    """Route all loggers created from now on to stderr (JSON) or stdout."""
    global _json_output_mode
    _json_output_mode = json_output


def _detect_json_output_mode() -> bool:
    """
    Detect if we're in JSON output mode by checking command line arguments.

    Returns:
        True if JSON output mode is detected, False otherwise
    """
    args = sys.argv
    for i, arg in enumerate(args):
        if arg == "--output" and i + 1 < len(args):
            return args[i + 1].upper() == "JSON"
        elif arg.startswith("--output="):
            return arg.split("=", 1)[1].upper() == "JSON"

    return False
