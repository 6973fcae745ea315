"""Module validation pipeline: tokens, validation, deployment and removal."""

import json
import uuid
from typing import Callable, Optional

from ..helpers.deployment import (
    DEFAULT_RETRY_INTERVAL,
    DEFAULT_RETRY_LIMIT,
    DeploymentExecutor,
)
from ..helpers.logger import get_logger
from ..helpers.removal import DeploymentRemover
from ..helpers.settings import Settings
from ..helpers.tokens import build_token_map, convert_tokens_in_file
from ..helpers.validation import TemplateValidator
from .models import (
    DeploymentRequest,
    DeploymentResult,
    PipelineInputs,
    RemovalRequest,
    RunContext,
)


def should_remove(remove_deployment: bool, result: Optional[DeploymentResult]) -> bool:
    """Removal runs iff it is enabled and the deployment got a name."""
    return bool(remove_deployment and result is not None and result.deployment_name)


def format_output_line(name: str, value) -> str:
    """One step output entry. Multiline values are wrapped in a random delimiter."""
    value = "" if value is None else str(value)
    if "\n" not in value and "\r" not in value:
        return f"{name}={value}"

    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}"


def publish_outputs(result: DeploymentResult, outputs_file: Optional[str] = None) -> str:
    """
    Serialize deployment outputs and optionally append them to a step outputs file.

    The file receives `deploymentName`, one entry per output and
    `deploymentOutput` in the `name=value` format CI runners read. Values
    spanning several lines use the `name<<DELIMITER` block form.

    Returns:
        Deployment outputs as compact JSON
    """
    deployment_output = json.dumps(result.outputs, separators=(",", ":"), default=str)

    if outputs_file:
        lines = [f"deploymentName={result.deployment_name}"]
        for name, value in result.outputs.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value, separators=(",", ":"))
            lines.append(format_output_line(name, value))
        lines.append(f"deploymentOutput={deployment_output}")
        with open(outputs_file, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    return deployment_output


class ModuleValidationPipeline:
    """Replace tokens, validate, deploy and optionally remove a module."""

    def __init__(
        self,
        provider,
        settings: Settings,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        on_step: Optional[Callable[[str], None]] = None,
    ):
        self.provider = provider
        self.settings = settings
        self.validator = TemplateValidator(provider, settings)
        self.executor = DeploymentExecutor(
            provider, settings, retry_limit=retry_limit, retry_interval=retry_interval
        )
        self.remover = DeploymentRemover(
            provider, settings, retry_limit=retry_limit, retry_interval=retry_interval
        )
        self.on_step = on_step or (lambda step: None)
        self.last_context: Optional[RunContext] = None
        self.logger = get_logger("pipeline")

    def run(self, inputs: PipelineInputs) -> RunContext:
        """
        Execute the pipeline for one template and parameter file.

        Validation errors abort immediately. A failed deployment is still
        cleaned up when removal is enabled and then raised.

        Raises:
            MissingTemplateFile: If an input file is missing
            TemplateValidationError: If validation fails
            DeploymentError: If the deployment did not succeed
        """
        context = RunContext(inputs=inputs, settings=self.settings)
        self.last_context = context

        self._step(f"Replace parameter file tokens [{inputs.parameter_file_path}]")
        self.replace_tokens(context)

        request = DeploymentRequest(
            template_file_path=inputs.template_file_path,
            parameter_file_path=inputs.parameter_file_path,
            location=inputs.location,
            target=inputs.target,
        )

        self._step(f"Validate [{inputs.template_file_path}]")
        context.validation = self.validator.validate(request)

        self._step(
            f"Deploy [{inputs.template_file_path}] with parameters [{inputs.parameter_file_path}]"
        )
        context.deployment = self.executor.deploy(request, suppress_throw=True)
        context.deployment_output = publish_outputs(
            context.deployment, inputs.outputs_file
        )
        self.logger.info(f"Deployment output: {context.deployment_output}")

        if should_remove(inputs.remove_deployment, context.deployment):
            self._step(
                f"Remove [{inputs.template_file_path}] from parameters [{inputs.parameter_file_path}]"
            )
            context.removal = self.remover.remove(
                RemovalRequest(
                    deployment_name=context.deployment.deployment_name,
                    template_file_path=inputs.template_file_path,
                    target=inputs.target,
                )
            )
            for warning in context.removal.warnings:
                self.logger.warning(str(warning))
        elif not inputs.remove_deployment:
            context.removal_skipped_reason = "removal disabled"
        else:
            context.removal_skipped_reason = "deployment has no name"

        context.deployment.raise_for_status()
        return context

    def replace_tokens(self, context: RunContext) -> None:
        inputs = context.inputs
        context.tokens = build_token_map(
            inputs.target,
            self.settings,
            custom_tokens=inputs.custom_tokens,
            tenant_id=inputs.tenant_id,
            deployment_sp_id=inputs.deployment_sp_id,
        )
        convert_tokens_in_file(
            inputs.parameter_file_path,
            context.tokens,
            self.settings.parameter_file_tokens.token_prefix,
            self.settings.parameter_file_tokens.token_suffix,
        )

    def _step(self, title: str) -> None:
        self.logger.info(title)
        self.on_step(title)
