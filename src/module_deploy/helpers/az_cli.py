"""Azure CLI wrapper used as the deployment provider."""

import json
import re
import shutil
import subprocess
from typing import Any, Dict, List, Optional

from .logger import get_logger
from .scope import DeploymentScope

NOT_FOUND_MARKERS = (
    "ResourceNotFound",
    "ResourceGroupNotFound",
    "DeploymentNotFound",
    "NotFound",
    "could not be found",
    "was not found",
    "does not exist",
)

RESOURCE_GROUP_ID_PATTERN = re.compile(
    r"^/subscriptions/(?P<subscription>[^/]+)/resourceGroups/(?P<name>[^/]+)/?$",
    re.IGNORECASE,
)


class AzCliError(Exception):
    """An az command exited with a non-zero code."""

    def __init__(self, command: List[str], returncode: int, stderr: str):
        self.command = command
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        super().__init__(
            f"'{' '.join(command[:4])} ...' failed with exit code {returncode}: {self.stderr}"
        )

    @property
    def is_not_found(self) -> bool:
        """True when the provider reports the target as absent."""
        return any(marker in self.stderr for marker in NOT_FOUND_MARKERS)


class AzureCli:
    """Deployment provider backed by the `az` command line."""

    def __init__(self, executable: str = "az", subscription_id: Optional[str] = None):
        self.executable = executable
        self.subscription_id = subscription_id or None
        self.logger = get_logger("az_cli")

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def run(
        self,
        args: List[str],
        subscription_id: Optional[str] = None,
        use_default_subscription: bool = True,
    ) -> Any:
        """
        Run an az command and decode its JSON output.

        Args:
            args: Arguments after the executable, e.g. ["group", "exists", ...]
            subscription_id: Subscription override for this call
            use_default_subscription: Add the client subscription when no override is given

        Returns:
            Decoded JSON (None for empty output)

        Raises:
            AzCliError: If the command fails
        """
        cmd = [self.executable, *args, "--output", "json", "--only-show-errors"]
        subscription = subscription_id or (
            self.subscription_id if use_default_subscription else None
        )
        if subscription:
            cmd += ["--subscription", subscription]

        self.logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            raise AzCliError(cmd, result.returncode, result.stderr)

        output = result.stdout.strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            return output

    def _scope_args(
        self,
        scope: DeploymentScope,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> List[str]:
        if scope == DeploymentScope.RESOURCE_GROUP:
            return ["--resource-group", resource_group_name]
        args = []
        if scope == DeploymentScope.MANAGEMENT_GROUP:
            args += ["--management-group-id", management_group_id]
        if location:
            args += ["--location", location]
        return args

    def _template_args(
        self,
        template_file_path: str,
        parameter_file_path: Optional[str],
        additional_parameters: Optional[Dict[str, Any]],
    ) -> List[str]:
        args = ["--template-file", template_file_path]
        if parameter_file_path:
            args += ["--parameters", f"@{parameter_file_path}"]
        if additional_parameters:
            args += [
                "--parameters",
                json.dumps(
                    {name: {"value": value} for name, value in additional_parameters.items()}
                ),
            ]
        return args

    def validate_deployment(
        self,
        scope: DeploymentScope,
        name: str,
        template_file_path: str,
        location: str,
        parameter_file_path: Optional[str] = None,
        additional_parameters: Optional[Dict[str, Any]] = None,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> Any:
        """Validate a template at the given scope without deploying it."""
        args = ["deployment", scope.az_group, "validate", "--name", name]
        args += self._scope_args(scope, resource_group_name, management_group_id, location)
        args += self._template_args(
            template_file_path, parameter_file_path, additional_parameters
        )
        return self.run(args, subscription_id)

    def create_deployment(
        self,
        scope: DeploymentScope,
        name: str,
        template_file_path: str,
        location: str,
        parameter_file_path: Optional[str] = None,
        additional_parameters: Optional[Dict[str, Any]] = None,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> Any:
        """Create a deployment and block until it reaches a terminal state."""
        args = ["deployment", scope.az_group, "create", "--name", name]
        args += self._scope_args(scope, resource_group_name, management_group_id, location)
        args += self._template_args(
            template_file_path, parameter_file_path, additional_parameters
        )
        return self.run(args, subscription_id)

    def show_deployment(
        self,
        scope: DeploymentScope,
        name: str,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> Any:
        args = ["deployment", scope.az_group, "show", "--name", name]
        args += self._scope_args(scope, resource_group_name, management_group_id)
        return self.run(args, subscription_id)

    def list_deployment_operations(
        self,
        scope: DeploymentScope,
        name: str,
        resource_group_name: Optional[str] = None,
        management_group_id: Optional[str] = None,
        subscription_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Resource operations performed by a deployment."""
        args = ["deployment", "operation", scope.az_group, "list", "--name", name]
        args += self._scope_args(scope, resource_group_name, management_group_id)
        return self.run(args, subscription_id) or []

    def delete_resource(self, resource_id: str) -> None:
        """Delete a resource by id. Resource groups go through `az group delete`."""
        match = RESOURCE_GROUP_ID_PATTERN.match(resource_id)
        if match:
            self.run(
                ["group", "delete", "--name", match.group("name"), "--yes"],
                match.group("subscription"),
            )
            return
        # the id already carries its subscription
        self.run(
            ["resource", "delete", "--ids", resource_id],
            use_default_subscription=False,
        )

    def resource_group_exists(
        self, resource_group_name: str, subscription_id: Optional[str] = None
    ) -> bool:
        return bool(
            self.run(["group", "exists", "--name", resource_group_name], subscription_id)
        )

    def create_resource_group(
        self,
        resource_group_name: str,
        location: str,
        subscription_id: Optional[str] = None,
    ) -> Any:
        return self.run(
            ["group", "create", "--name", resource_group_name, "--location", location],
            subscription_id,
        )
