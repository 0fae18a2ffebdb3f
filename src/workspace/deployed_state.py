"""Deployed-state fetcher.

Reads the deployed side of a reconciliation from the Fabric API: items (with
the extra properties parameter expressions can reference), folders and Spark
pools.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import dpath

from src.fabric_client.endpoint import FabricEndpoint

from .constants import PROPERTY_PATH_MAPPING
from .models import Item

logger = logging.getLogger(__name__)

ItemMap = Dict[str, Dict[str, Item]]
WorkspaceItemMap = Dict[str, Dict[str, Dict[str, str]]]


class DeployedStateFetcher:
    """Lists what is currently deployed in a workspace.

    Every call returns freshly built maps; nothing is cached between calls.
    """

    def __init__(self, endpoint: FabricEndpoint, base_api_url: str):
        self.endpoint = endpoint
        self.base_api_url = base_api_url

    def fetch_items(self) -> Tuple[ItemMap, WorkspaceItemMap]:
        """Fetch deployed items.

        Returns:
            Tuple of (deployed_items, workspace_items). ``deployed_items`` maps
            type -> name -> Item; ``workspace_items`` maps type -> name ->
            ``{"id", "sqlendpoint"}`` for parameter lookups.
        """
        deployed_items: ItemMap = {}
        workspace_items: WorkspaceItemMap = {}

        for entry in self._fetch_pages(f"{self.base_api_url}/items"):
            item_type = entry["type"]
            item_name = entry["displayName"]
            item_guid = entry["id"]
            sql_endpoint = ""

            if item_type in PROPERTY_PATH_MAPPING:
                sql_endpoint = self._fetch_property(item_type, item_name, item_guid)

            deployed_items.setdefault(item_type, {})[item_name] = Item(
                type=item_type,
                name=item_name,
                description=entry.get("description") or "",
                guid=item_guid,
                folder_id=entry.get("folderId") or "",
            )
            workspace_items.setdefault(item_type, {})[item_name] = {
                "id": item_guid,
                "sqlendpoint": sql_endpoint,
            }

        logger.debug(f"Fetched {sum(len(v) for v in deployed_items.values())} deployed item(s)")
        return deployed_items, workspace_items

    def _fetch_property(self, item_type: str, item_name: str, item_guid: str) -> str:
        url = f"{self.base_api_url}/{item_type.lower()}s/{item_guid}"
        response = self.endpoint.invoke("GET", url)
        value = dpath.get(response.body or {}, PROPERTY_PATH_MAPPING[item_type], default="")
        if not value:
            logger.debug(f"Failed to get endpoint for {item_type} '{item_name}'")
        return value or ""

    def fetch_folders(self) -> Dict[str, str]:
        """Fetch deployed folders as a path -> id map.

        The folder list is paged; each page may carry a ``continuationUri``
        header pointing at the next one. Paths are built by following
        ``parentFolderId`` links, e.g. ``/Notebooks/Processing``.
        """
        folders = self._fetch_pages(f"{self.base_api_url}/folders")
        by_id = {folder["id"]: folder for folder in folders}

        def full_path(folder: Dict[str, Any], seen: frozenset = frozenset()) -> str:
            parent = by_id.get(folder.get("parentFolderId") or "")
            if parent and parent["id"] not in seen:
                return f"{full_path(parent, seen | {folder['id']})}/{folder['displayName']}"
            return f"/{folder['displayName']}"

        return {full_path(folder): folder["id"] for folder in folders}

    def list_spark_pools(self) -> List[Dict[str, Any]]:
        """List the workspace Spark pools (``id``, ``name``, ``type``)."""
        response = self.endpoint.invoke("GET", f"{self.base_api_url}/spark/pools")
        return self._values(response.body)

    def _fetch_pages(self, url: str) -> List[Dict[str, Any]]:
        """GET a list endpoint, following ``continuationUri`` headers to the last page."""
        values: List[Dict[str, Any]] = []
        request_url: Optional[str] = url

        while request_url:
            response = self.endpoint.invoke("GET", request_url)
            values.extend(self._values(response.body))
            request_url = response.headers.get("continuationUri")
        return values

    @staticmethod
    def _values(body: Any) -> List[Dict[str, Any]]:
        if not isinstance(body, dict):
            return []
        return body.get("value") or []
