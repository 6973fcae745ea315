"""Run-scoped data model shared by the pipeline steps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..helpers.error_handler import DeploymentError, ResourceRemovalWarning
from ..helpers.scope import DeploymentScope, resolve_scope
from ..helpers.settings import Settings


@dataclass
class DeploymentTarget:
    """Where a deployment goes. At most one identifier decides the scope."""

    resource_group_name: Optional[str] = None
    subscription_id: Optional[str] = None
    management_group_id: Optional[str] = None

    @property
    def scope(self) -> DeploymentScope:
        return resolve_scope(
            self.resource_group_name, self.subscription_id, self.management_group_id
        )

    def describe(self) -> str:
        """Human readable scope description for log output."""
        scope = self.scope
        if scope == DeploymentScope.RESOURCE_GROUP:
            return f"resource group '{self.resource_group_name}'"
        if scope == DeploymentScope.MANAGEMENT_GROUP:
            return f"management group '{self.management_group_id}'"
        if self.subscription_id:
            return f"subscription '{self.subscription_id}'"
        return "current subscription"


@dataclass
class DeploymentRequest:
    """Template deployment or validation request."""

    template_file_path: str
    location: str
    target: DeploymentTarget = field(default_factory=DeploymentTarget)
    parameter_file_path: Optional[str] = None
    additional_parameters: Dict[str, Any] = field(default_factory=dict)


class DeploymentState(str, Enum):
    """Provisioning state of a deployment."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> "DeploymentState":
        """Map a provider provisioningState onto the state machine."""
        if not value:
            return cls.PENDING
        normalized = value.strip().lower()
        for state in cls:
            if state.value.lower() == normalized:
                return state
        if normalized in ("cancelled",):
            return cls.CANCELED
        if normalized in ("accepted", "created", "notspecified"):
            return cls.PENDING
        # Running, Deleting, Updating, Waiting ...
        return cls.IN_PROGRESS

    @property
    def is_terminal(self) -> bool:
        return self in (
            DeploymentState.SUCCEEDED,
            DeploymentState.FAILED,
            DeploymentState.CANCELED,
        )


@dataclass
class ValidationResult:
    """Outcome of a successful validation."""

    template_file_path: str
    scope: DeploymentScope
    parameters: Dict[str, Any] = field(default_factory=dict)
    diagnostics: Any = None


@dataclass
class DeploymentResult:
    """Typed outcome of a deployment. Failure is data, not control flow."""

    deployment_name: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)
    state: DeploymentState = DeploymentState.PENDING
    failure_detail: Optional[DeploymentError] = None

    @property
    def succeeded(self) -> bool:
        return self.state == DeploymentState.SUCCEEDED and self.failure_detail is None

    def raise_for_status(self) -> None:
        """Raise the captured failure, if any."""
        if self.succeeded:
            return
        if self.failure_detail is not None:
            raise self.failure_detail
        raise DeploymentError(self.deployment_name, self.state.value)


@dataclass
class RemovalRequest:
    """Removal of the resources a deployment created."""

    deployment_name: str
    template_file_path: str
    target: DeploymentTarget = field(default_factory=DeploymentTarget)


@dataclass
class RemovalReport:
    """What a removal did. Warnings never fail the run."""

    removed: List[str] = field(default_factory=list)
    already_absent: List[str] = field(default_factory=list)
    warnings: List[ResourceRemovalWarning] = field(default_factory=list)


@dataclass
class PipelineInputs:
    """Invocation surface of the module validation pipeline."""

    template_file_path: str
    parameter_file_path: str
    location: str
    target: DeploymentTarget = field(default_factory=DeploymentTarget)
    custom_tokens: Dict[str, str] = field(default_factory=dict)
    remove_deployment: bool = True
    tenant_id: Optional[str] = None
    deployment_sp_id: Optional[str] = None
    outputs_file: Optional[str] = None


@dataclass
class RunContext:
    """State handed from one pipeline stage to the next."""

    inputs: PipelineInputs
    settings: Optional[Settings] = None
    tokens: Dict[str, str] = field(default_factory=dict)
    validation: Optional[ValidationResult] = None
    deployment: Optional[DeploymentResult] = None
    deployment_output: str = "{}"
    removal: Optional[RemovalReport] = None
    removal_skipped_reason: Optional[str] = None
