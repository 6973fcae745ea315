"""Template deployment execution."""

import json
import time
from typing import Any, Dict, List

from ..pipeline.models import DeploymentRequest, DeploymentResult, DeploymentState
from .az_cli import AzCliError
from .error_handler import DeploymentError
from .logger import get_logger
from .scope import DeploymentScope
from .settings import Settings
from .template import (
    ensure_file_exists,
    generate_deployment_name,
    provider_scope_kwargs,
    resolve_additional_parameters,
)

DEFAULT_RETRY_LIMIT = 3
DEFAULT_RETRY_INTERVAL = 5


def extract_outputs(response: Any) -> Dict[str, Any]:
    """Unwrap deployment outputs from their {type, value} wrappers."""
    if not isinstance(response, dict):
        return {}
    properties = response.get("properties") or {}
    outputs = properties.get("outputs") or {}

    unwrapped = {}
    for name, output in outputs.items():
        if isinstance(output, dict) and "value" in output:
            unwrapped[name] = output["value"]
        elif isinstance(output, dict) and "type" in output:
            unwrapped[name] = None
        else:
            unwrapped[name] = output
    return unwrapped


def provisioning_state(response: Any) -> DeploymentState:
    """Read the provisioning state from a deployment document."""
    if not isinstance(response, dict):
        return DeploymentState.PENDING
    properties = response.get("properties") or {}
    return DeploymentState.from_provider(properties.get("provisioningState"))


def failed_operation_messages(operations: List[Dict[str, Any]]) -> List[str]:
    """Status messages of the failed operations of a deployment."""
    messages = []
    for operation in operations or []:
        properties = operation.get("properties") or {}
        if DeploymentState.from_provider(
            properties.get("provisioningState")
        ) != DeploymentState.FAILED:
            continue

        target = properties.get("targetResource") or {}
        resource = target.get("id") or target.get("resourceName") or "<deployment>"

        status = properties.get("statusMessage") or {}
        error = status.get("error") if isinstance(status, dict) else None
        if isinstance(error, dict):
            message = f"{error.get('code', 'Error')}: {error.get('message', '')}".strip()
        else:
            message = json.dumps(status) if not isinstance(status, str) else status
        messages.append(f"{resource}: {message}")
    return messages


class DeploymentExecutor:
    """Create deployments and report them as typed results."""

    def __init__(
        self,
        provider,
        settings: Settings,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
    ):
        self.provider = provider
        self.settings = settings
        self.retry_limit = max(1, retry_limit)
        self.retry_interval = retry_interval
        self.logger = get_logger("deployment")

    def deploy(
        self, request: DeploymentRequest, suppress_throw: bool = True
    ) -> DeploymentResult:
        """
        Deploy a template and wait for a terminal state.

        Args:
            request: What to deploy and where
            suppress_throw: Return failures as a result instead of raising

        Returns:
            DeploymentResult with name, state, outputs and failure detail

        Raises:
            MissingTemplateFile: If the template or parameter file is missing
            DeploymentError: On failure when suppress_throw is False
        """
        ensure_file_exists(request.template_file_path, "Template")
        ensure_file_exists(request.parameter_file_path, "Parameter")

        name = generate_deployment_name(request.template_file_path)
        result = self._deploy_with_retries(request, name)

        if result.succeeded:
            self.logger.info(
                f"Deployment {result.deployment_name} succeeded with "
                f"{len(result.outputs)} output(s)"
            )
        else:
            self.logger.error(str(result.failure_detail))

        if not suppress_throw:
            result.raise_for_status()
        return result

    def _deploy_with_retries(
        self, request: DeploymentRequest, name: str
    ) -> DeploymentResult:
        scope = request.target.scope
        parameters = resolve_additional_parameters(request, self.settings)
        scope_kwargs = provider_scope_kwargs(request.target)

        try:
            if scope == DeploymentScope.RESOURCE_GROUP:
                self._ensure_resource_group(request)
        except AzCliError as e:
            return DeploymentResult(
                deployment_name="",
                state=DeploymentState.FAILED,
                failure_detail=DeploymentError(name, DeploymentState.FAILED.value, cause=e),
            )

        result = DeploymentResult(deployment_name="")
        for attempt in range(1, self.retry_limit + 1):
            self.logger.info(
                f"Deploying {request.template_file_path} as {name} to "
                f"{request.target.describe()} (attempt {attempt}/{self.retry_limit})"
            )
            try:
                response = self.provider.create_deployment(
                    scope,
                    name,
                    request.template_file_path,
                    request.location,
                    parameter_file_path=request.parameter_file_path,
                    additional_parameters=parameters,
                    **scope_kwargs,
                )
                result = self._result_from_response(name, response, request)
            except AzCliError as e:
                result = self._result_from_failure(name, request, e)

            if result.succeeded:
                return result

            if attempt < self.retry_limit:
                self.logger.warning(
                    f"Deployment {name} ended in state {result.state.value}, "
                    f"retrying in {self.retry_interval}s"
                )
                time.sleep(self.retry_interval)

        return result

    def _ensure_resource_group(self, request: DeploymentRequest) -> None:
        target = request.target
        if self.provider.resource_group_exists(
            target.resource_group_name, target.subscription_id or None
        ):
            return
        self.logger.info(
            f"Creating resource group {target.resource_group_name} in {request.location}"
        )
        self.provider.create_resource_group(
            target.resource_group_name, request.location, target.subscription_id or None
        )

    def _result_from_response(
        self, name: str, response: Any, request: DeploymentRequest
    ) -> DeploymentResult:
        state = provisioning_state(response)
        if state == DeploymentState.SUCCEEDED:
            return DeploymentResult(
                deployment_name=name,
                outputs=extract_outputs(response),
                state=state,
            )

        if not state.is_terminal:
            # az returned before the deployment finished
            state = DeploymentState.FAILED
        details = self._failure_details(name, request)
        return DeploymentResult(
            deployment_name=name,
            state=state,
            failure_detail=DeploymentError(name, state.value, details),
        )

    def _result_from_failure(
        self, name: str, request: DeploymentRequest, error: AzCliError
    ) -> DeploymentResult:
        deployment_name = name
        state = DeploymentState.FAILED
        try:
            deployment = self.provider.show_deployment(
                request.target.scope, name, **provider_scope_kwargs(request.target)
            )
            reported = provisioning_state(deployment)
            if reported.is_terminal and reported != DeploymentState.SUCCEEDED:
                state = reported
        except AzCliError as show_error:
            if show_error.is_not_found:
                # rejected before the provider accepted it
                deployment_name = ""
            else:
                self.logger.debug(f"Could not read deployment {name}: {show_error}")

        details = self._failure_details(name, request) if deployment_name else []
        if error.stderr:
            details.append(error.stderr)

        return DeploymentResult(
            deployment_name=deployment_name,
            state=state,
            failure_detail=DeploymentError(name, state.value, details, cause=error),
        )

    def _failure_details(self, name: str, request: DeploymentRequest) -> List[str]:
        try:
            operations = self.provider.list_deployment_operations(
                request.target.scope, name, **provider_scope_kwargs(request.target)
            )
        except AzCliError as e:
            self.logger.debug(f"Could not list operations of {name}: {e}")
            return []
        return failed_operation_messages(operations)
