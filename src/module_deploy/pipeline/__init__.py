"""
Pipeline module for module deployments.

Contains the run-scoped data model. The orchestrator lives in
``module_deploy.pipeline.orchestrator``.
"""

from .models import (
    DeploymentRequest,
    DeploymentResult,
    DeploymentState,
    DeploymentTarget,
    PipelineInputs,
    RemovalReport,
    RemovalRequest,
    RunContext,
    ValidationResult,
)

__all__ = [
    "DeploymentTarget",
    "DeploymentRequest",
    "DeploymentState",
    "DeploymentResult",
    "ValidationResult",
    "RemovalRequest",
    "RemovalReport",
    "PipelineInputs",
    "RunContext",
]
