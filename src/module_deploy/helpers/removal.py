"""Removal of the resources created by a deployment."""

import re
import time
from typing import Dict, List, Optional, Set

from ..pipeline.models import DeploymentState, RemovalReport, RemovalRequest
from .az_cli import AzCliError
from .error_handler import ResourceRemovalWarning
from .logger import get_logger
from .scope import DeploymentScope
from .settings import Settings

DEPLOYMENT_RESOURCE_TYPE = "Microsoft.Resources/deployments"
DEFAULT_REMOVAL_RETRY_LIMIT = 3
DEFAULT_REMOVAL_RETRY_INTERVAL = 5

_NESTED_DEPLOYMENT_PATTERNS = (
    (
        DeploymentScope.RESOURCE_GROUP,
        re.compile(
            r"^/subscriptions/(?P<subscription>[^/]+)/resourceGroups/(?P<group>[^/]+)"
            r"/providers/Microsoft\.Resources/deployments/(?P<name>[^/]+)$",
            re.IGNORECASE,
        ),
    ),
    (
        DeploymentScope.SUBSCRIPTION,
        re.compile(
            r"^/subscriptions/(?P<subscription>[^/]+)"
            r"/providers/Microsoft\.Resources/deployments/(?P<name>[^/]+)$",
            re.IGNORECASE,
        ),
    ),
    (
        DeploymentScope.MANAGEMENT_GROUP,
        re.compile(
            r"^/providers/Microsoft\.Management/managementGroups/(?P<group>[^/]+)"
            r"/providers/Microsoft\.Resources/deployments/(?P<name>[^/]+)$",
            re.IGNORECASE,
        ),
    ),
)


def get_resource_type(resource_id: str) -> str:
    """
    Resource type of a resource id.

    '/subscriptions/s/resourceGroups/rg/providers/Microsoft.KeyVault/vaults/kv/secrets/x'
    gives 'Microsoft.KeyVault/vaults/secrets'.
    """
    parts = resource_id.strip("/").split("/")
    lowered = [part.lower() for part in parts]

    if "providers" not in lowered:
        if len(parts) >= 4 and lowered[2] == "resourcegroups":
            return "Microsoft.Resources/resourceGroups"
        return "Microsoft.Resources/subscriptions"

    index = len(lowered) - 1 - lowered[::-1].index("providers")
    provider_parts = parts[index + 1 :]
    if not provider_parts:
        return ""
    namespace, rest = provider_parts[0], provider_parts[1:]
    types = rest[0::2]
    return "/".join([namespace, *types])


def filter_child_resources(resource_ids: List[str], removal_sequence: List[str]) -> List[str]:
    """
    Drop resources whose parent is removed as well.

    Deleting a parent deletes its children. Children whose type is in the
    removal sequence are kept because they must go first.
    """
    sequence = {resource_type.lower() for resource_type in removal_sequence}
    lowered = [resource_id.lower().rstrip("/") for resource_id in resource_ids]

    kept = []
    for resource_id, candidate in zip(resource_ids, lowered):
        if get_resource_type(resource_id).lower() in sequence:
            kept.append(resource_id)
            continue
        has_parent = any(
            other != candidate and candidate.startswith(other + "/") for other in lowered
        )
        if not has_parent:
            kept.append(resource_id)
    return kept


def order_resources(resource_ids: List[str], removal_sequence: List[str]) -> List[str]:
    """Resources of the sequence types first, in sequence order, then the rest."""
    remaining = list(resource_ids)
    ordered = []
    for resource_type in removal_sequence:
        matching = [
            resource_id
            for resource_id in remaining
            if get_resource_type(resource_id).lower() == resource_type.lower()
        ]
        ordered.extend(matching)
        remaining = [resource_id for resource_id in remaining if resource_id not in matching]
    return ordered + remaining


class DeploymentRemover:
    """Remove what a deployment created. Best effort, never aborts."""

    def __init__(
        self,
        provider,
        settings: Settings,
        retry_limit: int = DEFAULT_REMOVAL_RETRY_LIMIT,
        retry_interval: float = DEFAULT_REMOVAL_RETRY_INTERVAL,
    ):
        self.provider = provider
        self.settings = settings
        self.retry_limit = max(1, retry_limit)
        self.retry_interval = retry_interval
        self.logger = get_logger("removal")

    def remove(self, request: RemovalRequest) -> RemovalReport:
        """
        Remove every resource successfully created by the deployment.

        Already absent resources count as removed. Other failures are retried
        and finally reported as warnings.
        """
        report = RemovalReport()
        target = request.target

        self.logger.info(
            f"Removing deployment {request.deployment_name} of "
            f"{request.template_file_path} from {target.describe()}"
        )

        try:
            resource_ids = self.get_deployment_resource_ids(
                request.deployment_name,
                target.scope,
                resource_group_name=target.resource_group_name or None,
                management_group_id=target.management_group_id or None,
                subscription_id=target.subscription_id or None,
            )
        except AzCliError as e:
            if e.is_not_found:
                self.logger.info(f"Deployment {request.deployment_name} not found, nothing to remove")
                return report
            report.warnings.append(ResourceRemovalWarning(request.deployment_name, e.stderr))
            return report

        to_remove = order_resources(
            filter_child_resources(resource_ids, self.settings.removal_sequence),
            self.settings.removal_sequence,
        )
        if not to_remove:
            self.logger.info("No resources to remove")
            return report

        self.logger.info(f"Resources to remove ({len(to_remove)}):")
        for resource_id in to_remove:
            self.logger.info(f"  - {resource_id}")

        failures = self._remove_with_retries(to_remove, report)
        for resource_id, message in failures.items():
            warning = ResourceRemovalWarning(resource_id, message)
            self.logger.warning(str(warning))
            report.warnings.append(warning)

        return report

    def _remove_with_retries(
        self, resource_ids: List[str], report: RemovalReport
    ) -> Dict[str, str]:
        pending = list(resource_ids)
        failures: Dict[str, str] = {}

        for attempt in range(1, self.retry_limit + 1):
            failures = {}
            for resource_id in pending:
                try:
                    self.provider.delete_resource(resource_id)
                    self.logger.info(f"Removed {resource_id}")
                    report.removed.append(resource_id)
                except AzCliError as e:
                    if e.is_not_found:
                        self.logger.info(f"Already absent: {resource_id}")
                        report.already_absent.append(resource_id)
                    else:
                        failures[resource_id] = e.stderr or str(e)

            pending = [resource_id for resource_id in pending if resource_id in failures]
            if not pending:
                break

            if attempt < self.retry_limit:
                self.logger.warning(
                    f"{len(pending)} resource(s) could not be removed, "
                    f"retrying in {self.retry_interval}s"
                )
                time.sleep(self.retry_interval)

        return failures

    def get_deployment_resource_ids(
        self,
        deployment_name: str,
        scope: DeploymentScope,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
        _seen: Optional[Set[str]] = None,
    ) -> List[str]:
        """Ids of the resources created by a deployment, nested deployments included."""
        seen = _seen if _seen is not None else set()
        key = f"{scope.value}:{resource_group_name}:{management_group_id}:{deployment_name}".lower()
        if key in seen:
            return []
        seen.add(key)

        operations = self.provider.list_deployment_operations(
            scope,
            deployment_name,
            resource_group_name=resource_group_name,
            management_group_id=management_group_id,
            subscription_id=subscription_id,
        )

        resource_ids: List[str] = []
        for operation in operations:
            properties = operation.get("properties") or {}
            if (properties.get("provisioningOperation") or "Create") != "Create":
                continue
            if DeploymentState.from_provider(
                properties.get("provisioningState")
            ) != DeploymentState.SUCCEEDED:
                continue

            target = properties.get("targetResource") or {}
            resource_id = target.get("id")
            if not resource_id:
                continue

            resource_type = target.get("resourceType") or get_resource_type(resource_id)
            if resource_type.lower() == DEPLOYMENT_RESOURCE_TYPE.lower():
                nested = self._collect_nested(resource_id, subscription_id, seen)
                resource_ids.extend(rid for rid in nested if rid not in resource_ids)
            elif resource_id not in resource_ids:
                resource_ids.append(resource_id)

        return resource_ids

    def _collect_nested(
        self, deployment_id: str, subscription_id: Optional[str], seen: Set[str]
    ) -> List[str]:
        for scope, pattern in _NESTED_DEPLOYMENT_PATTERNS:
            match = pattern.match(deployment_id)
            if not match:
                continue
            groups = match.groupdict()
            try:
                return self.get_deployment_resource_ids(
                    groups["name"],
                    scope,
                    resource_group_name=groups.get("group")
                    if scope == DeploymentScope.RESOURCE_GROUP
                    else None,
                    management_group_id=groups.get("group")
                    if scope == DeploymentScope.MANAGEMENT_GROUP
                    else None,
                    subscription_id=groups.get("subscription") or subscription_id,
                    _seen=seen,
                )
            except AzCliError as e:
                self.logger.warning(f"Could not read nested deployment {deployment_id}: {e}")
                return []

        self.logger.warning(f"Skipping nested deployment with unsupported scope: {deployment_id}")
        return []
