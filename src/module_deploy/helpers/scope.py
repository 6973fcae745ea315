"""Deployment scope resolution."""

from enum import Enum
from typing import Optional


class DeploymentScope(str, Enum):
    """Level at which a deployment, validation or removal operates."""

    RESOURCE_GROUP = "resourceGroup"
    MANAGEMENT_GROUP = "managementGroup"
    SUBSCRIPTION = "subscription"

    @property
    def az_group(self) -> str:
        """Name of the matching `az deployment` command group."""
        return {
            DeploymentScope.RESOURCE_GROUP: "group",
            DeploymentScope.MANAGEMENT_GROUP: "mg",
            DeploymentScope.SUBSCRIPTION: "sub",
        }[self]


def resolve_scope(
    resource_group_name: Optional[str] = None,
    subscription_id: Optional[str] = None,
    management_group_id: Optional[str] = None,
) -> DeploymentScope:
    """
    Pick exactly one scope from the supplied identifiers.

    Precedence is resource group, then management group, then subscription.
    A subscription id alongside a resource group only selects the
    subscription the resource group lives in. With nothing set the
    deployment targets the current subscription.
    """
    if resource_group_name:
        return DeploymentScope.RESOURCE_GROUP
    if management_group_id:
        return DeploymentScope.MANAGEMENT_GROUP
    return DeploymentScope.SUBSCRIPTION
