"""Workspace snapshot shared by publish and unpublish.

FabricWorkspace validates the run inputs, resolves the target workspace and
holds the four maps a reconciliation works from:

- repository_items / deployed_items: type -> name -> Item
- repository_folders / deployed_folders: "/A/B" -> folder id

Each refresh_* method rebuilds one map from scratch.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.fabric_client.endpoint import FabricEndpoint
from src.parameters.models import EnvironmentParameter
from src.parameters.parameter_file import ParameterFile
from src.parameters.substitution import SubstitutionContext

from .config import FeatureFlags
from .constants import DEFAULT_API_ROOT_URL, ITEM_ATTR_LOOKUP, PARAMETER_FILE_NAME
from .deployed_state import DeployedStateFetcher
from .errors import InputError, ParsingError
from .models import Item
from .scanner import RepositoryScanner, load_repository_folders
from .validate_input import (
    validate_environment,
    validate_item_type_in_scope,
    validate_repository_directory,
    validate_workspace_id,
    validate_workspace_name,
)

logger = logging.getLogger(__name__)


class FabricWorkspace:
    """A target Fabric workspace and the repository published into it.

    Example:
        >>> workspace = FabricWorkspace(
        ...     repository_directory="./workspace",
        ...     endpoint=endpoint,
        ...     workspace_id="8b6e2c7a-4c1f-4e3a-9d3a-0f6f1c2b9a11",
        ...     environment="PROD",
        ... )
        >>> workspace.refresh_repository_items()
    """

    def __init__(
        self,
        repository_directory: str,
        endpoint: FabricEndpoint,
        workspace_id: Optional[str] = None,
        workspace_name: Optional[str] = None,
        item_type_in_scope: Optional[List[str]] = None,
        environment: str = "N/A",
        feature_flags: Optional[FeatureFlags] = None,
        parameter_file_path: Optional[str] = None,
        api_root_url: str = DEFAULT_API_ROOT_URL,
    ):
        """Validate inputs, resolve the workspace id and load the parameter file.

        Args:
            repository_directory: Local directory holding the item definitions
            endpoint: Invoker used for every API call
            workspace_id: Target workspace guid (takes precedence over the name)
            workspace_name: Target workspace display name
            item_type_in_scope: Item types to publish (None means all)
            environment: Environment key selecting parameter values
            feature_flags: Feature flags for this run
            parameter_file_path: Parameter file (defaults to parameter.yml in the repository)
            api_root_url: Fabric API root

        Raises:
            InputError: If an input is invalid or the workspace cannot be resolved
            ParameterFileError: If the parameter file is invalid
        """
        self.endpoint = endpoint
        self.api_root_url = api_root_url.rstrip("/")
        self.repository_directory: Path = validate_repository_directory(repository_directory)
        self.item_type_in_scope = validate_item_type_in_scope(item_type_in_scope)
        self.environment = validate_environment(environment)
        self.feature_flags = feature_flags or FeatureFlags()

        if workspace_id:
            self.workspace_id = validate_workspace_id(workspace_id)
        elif workspace_name:
            self.workspace_id = self._resolve_workspace_id(validate_workspace_name(workspace_name))
        else:
            raise InputError("Either workspace_id or workspace_name must be provided.")

        if parameter_file_path:
            self.parameter_file_path = Path(parameter_file_path)
        else:
            self.parameter_file_path = self.repository_directory / PARAMETER_FILE_NAME

        self.repository_items: Dict[str, Dict[str, Item]] = {}
        self.deployed_items: Dict[str, Dict[str, Item]] = {}
        self.workspace_items: Dict[str, Dict[str, Dict[str, str]]] = {}
        self.repository_folders: Dict[str, str] = {}
        self.deployed_folders: Dict[str, str] = {}
        self._spark_pools: Optional[List[Dict[str, Any]]] = None

        self.fetcher = DeployedStateFetcher(self.endpoint, self.base_api_url)
        self._refresh_parameter_file()

    @property
    def base_api_url(self) -> str:
        return f"{self.api_root_url}/v1/workspaces/{self.workspace_id}"

    def _resolve_workspace_id(self, workspace_name: str) -> str:
        response = self.endpoint.invoke("GET", f"{self.api_root_url}/v1/workspaces")
        for workspace in (response.body or {}).get("value", []):
            if workspace.get("displayName") == workspace_name:
                logger.info(f"Resolved workspace '{workspace_name}' to {workspace['id']}")
                return workspace["id"]
        raise InputError(f"Workspace ID could not be resolved from workspace name: {workspace_name}.")

    def _refresh_parameter_file(self) -> None:
        self.environment_parameter = EnvironmentParameter()
        self.environment_parameter = ParameterFile(self.parameter_file_path).load()

    def refresh_repository_items(self) -> None:
        """Rescan the repository, carrying known guids forward from deployed_items."""
        scanner = RepositoryScanner(self.repository_directory, self.feature_flags.folder_publish_enabled)
        self.repository_items = scanner.scan(self.repository_folders, self.deployed_items)

    def refresh_deployed_items(self) -> None:
        self.deployed_items, self.workspace_items = self.fetcher.fetch_items()

    def refresh_repository_folders(self) -> None:
        self.repository_folders = load_repository_folders(self.repository_directory)

    def refresh_deployed_folders(self) -> None:
        self.deployed_folders = self.fetcher.fetch_folders()

    def lookup_item_attribute(self, item_type: str, item_name: str, attribute: str) -> str:
        """Resolve an attribute of a deployed item for ``$items`` expressions.

        The deployed state is refreshed first so items published earlier in
        the same run are visible.

        Raises:
            ParsingError: If the type, item or attribute is unknown
        """
        self.refresh_deployed_items()

        if attribute not in ITEM_ATTR_LOOKUP:
            raise ParsingError(
                f"Attribute '{attribute}' is invalid or not supported. Must be one of {', '.join(ITEM_ATTR_LOOKUP)}"
            )
        if item_type not in self.workspace_items:
            raise ParsingError(f"Item type '{item_type}' not found in deployed items")
        if item_name not in self.workspace_items[item_type]:
            raise ParsingError(f"Item '{item_name}' not found as a deployed {item_type}")

        return self.workspace_items[item_type][item_name][attribute]

    def lookup_spark_pool(self, pool_name: str, pool_type: str) -> str:
        """Return the id of the workspace Spark pool with the given name and type.

        Raises:
            InputError: If no such pool exists
        """
        if self._spark_pools is None:
            self._spark_pools = self.fetcher.list_spark_pools()

        for pool in self._spark_pools:
            if pool.get("name") == pool_name and pool.get("type") == pool_type:
                return pool["id"]
        raise InputError(f"Spark pool '{pool_name}' of type '{pool_type}' not found in workspace")

    def substitution_context(self) -> SubstitutionContext:
        return SubstitutionContext(
            workspace_id=self.workspace_id,
            environment=self.environment,
            repository_directory=self.repository_directory,
            item_attribute_lookup=self.lookup_item_attribute,
            spark_pool_lookup=self.lookup_spark_pool,
        )
