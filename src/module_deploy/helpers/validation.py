"""Template validation against the provider."""

from ..pipeline.models import DeploymentRequest, ValidationResult
from .az_cli import AzCliError
from .error_handler import TemplateValidationError
from .logger import get_logger
from .settings import Settings
from .template import (
    ensure_file_exists,
    generate_deployment_name,
    provider_scope_kwargs,
    resolve_additional_parameters,
)


class TemplateValidator:
    """Validate a deployment request without deploying it."""

    def __init__(self, provider, settings: Settings):
        self.provider = provider
        self.settings = settings
        self.logger = get_logger("validation")

    def validate(self, request: DeploymentRequest) -> ValidationResult:
        """
        Validate the template and parameters at the resolved scope.

        Raises:
            MissingTemplateFile: If the template or parameter file is missing
            TemplateValidationError: If the provider rejects the deployment
        """
        ensure_file_exists(request.template_file_path, "Template")
        ensure_file_exists(request.parameter_file_path, "Parameter")

        scope = request.target.scope
        parameters = resolve_additional_parameters(request, self.settings)
        name = generate_deployment_name(request.template_file_path)

        self.logger.info(
            f"Validating {request.template_file_path} at {request.target.describe()}"
        )
        if parameters:
            self.logger.debug(f"Additional parameters: {parameters}")

        try:
            response = self.provider.validate_deployment(
                scope,
                name,
                request.template_file_path,
                request.location,
                parameter_file_path=request.parameter_file_path,
                additional_parameters=parameters,
                **provider_scope_kwargs(request.target),
            )
        except AzCliError as e:
            raise TemplateValidationError(request.template_file_path, e.stderr) from e

        # Validation can succeed as a command but still report an error object
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            raise TemplateValidationError(request.template_file_path, error)

        self.logger.info(f"Template {request.template_file_path} is valid")
        return ValidationResult(
            template_file_path=request.template_file_path,
            scope=scope,
            parameters=parameters,
            diagnostics=response,
        )
