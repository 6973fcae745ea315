"""Error types and error handling utilities for the module deployment CLI."""

from typing import Any, List, Optional

import typer


class ModuleDeployError(Exception):
    """Base class for all module deployment failures."""


class MissingTemplateFile(ModuleDeployError, FileNotFoundError):
    """A template or parameter file does not exist."""

    def __init__(self, file_path: str, kind: str = "Template"):
        self.file_path = str(file_path)
        self.kind = kind
        super().__init__(f"{kind} file not found: {self.file_path}")


class SettingsError(ModuleDeployError):
    """The settings document could not be loaded or is invalid."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}:\n  " + "\n  ".join(self.errors)
        super().__init__(message)


class TemplateValidationError(ModuleDeployError):
    """The provider rejected the template during validation."""

    def __init__(self, template_file_path: str, diagnostics: Any):
        self.template_file_path = template_file_path
        self.diagnostics = diagnostics
        super().__init__(
            f"Template validation failed for {template_file_path}: {diagnostics}"
        )


class DeploymentError(ModuleDeployError):
    """A deployment reached a non-successful terminal state."""

    def __init__(
        self,
        deployment_name: str,
        state: str,
        details: Optional[List[str]] = None,
        cause: Optional[BaseException] = None,
    ):
        self.deployment_name = deployment_name
        self.state = state
        self.details = details or []
        self.cause = cause

        message = f"Deployment '{deployment_name or '<unnamed>'}' ended in state {state}"
        if self.details:
            message += ":\n  " + "\n  ".join(self.details)
        elif cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ResourceRemovalWarning(UserWarning):
    """A single resource could not be removed. Collected, never raised."""

    def __init__(self, resource_id: str, message: str):
        self.resource_id = resource_id
        self.message = message
        super().__init__(f"Failed to remove {resource_id}: {message}")


def handle_error(message: str, exit_code: int = 1) -> None:
    """Handle errors consistently across the CLI."""
    typer.echo(f"❌ Error: {message}", err=True)
    raise typer.Exit(exit_code)


def handle_warning(message: str) -> None:
    """Handle warnings consistently across the CLI."""
    typer.echo(f"⚠️ Warning: {message}")


def handle_success(message: str) -> None:
    """Handle success messages consistently across the CLI."""
    typer.echo(f"✅ {message}")


def handle_info(message: str) -> None:
    """Handle info messages consistently across the CLI."""
    typer.echo(f"ℹ️ {message}")
