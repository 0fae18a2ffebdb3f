"""Deletion of deployed items that no longer exist in the repository."""

import logging
import re
from typing import List

from src.fabric_client.errors import FabricClientError, OperationCancelledError
from src.workspace.constants import INDENT, UNPUBLISH_FLAG_MAPPING, UNPUBLISH_ORDER
from src.workspace.fabric_workspace import FabricWorkspace
from src.workspace.validate_input import validate_regex

from .folders import FolderPublisher

logger = logging.getLogger(__name__)


class OrphanUnpublisher:
    """Removes orphaned items (deployed but absent from the repository).

    Types are processed consumers first, so an item is deleted before the
    items it depends on. Lakehouses, warehouses and SQL databases hold data
    and are only deleted when their feature flag is enabled.

    Example:
        >>> OrphanUnpublisher(workspace).unpublish_orphans(exclude_regex="^DEBUG")
    """

    def __init__(self, workspace: FabricWorkspace):
        self.workspace = workspace
        self.feature_flags = workspace.feature_flags

    def find_orphans(self, item_type: str, exclude_regex: "re.Pattern[str]") -> List[str]:
        """Return deployed names of a type missing from the repository, minus regex matches."""
        deployed = self.workspace.deployed_items.get(item_type, {})
        repository = self.workspace.repository_items.get(item_type, {})
        return sorted(
            name for name in deployed
            if name not in repository and not exclude_regex.search(name)
        )

    def unpublish_orphans(self, exclude_regex: str = "^$") -> List[str]:
        """Delete every orphaned item, then orphaned folders.

        Args:
            exclude_regex: Item names matching this regex are kept

        Returns:
            List of "<type>/<name>" entries that were deleted

        Raises:
            InputError: If the regex does not compile
        """
        pattern = validate_regex(exclude_regex, "exclude_regex")
        workspace = self.workspace

        workspace.refresh_deployed_items()
        workspace.refresh_repository_items()

        deleted = []
        for item_type in UNPUBLISH_ORDER:
            if item_type not in workspace.item_type_in_scope:
                continue

            flag = UNPUBLISH_FLAG_MAPPING.get(item_type)
            if flag and not self.feature_flags.is_enabled(flag):
                if self.find_orphans(item_type, pattern):
                    logger.warning(f"Skipping unpublish of {item_type} items; enable the '{flag}' feature flag")
                continue

            for item_name in self.find_orphans(item_type, pattern):
                if self._unpublish_item(item_type, item_name):
                    deleted.append(f"{item_type}/{item_name}")

        workspace.refresh_deployed_items()
        workspace.refresh_deployed_folders()

        if self.feature_flags.folder_publish_enabled:
            workspace.refresh_repository_folders()
            FolderPublisher(workspace).unpublish_folders()

        return deleted

    def _unpublish_item(self, item_type: str, item_name: str) -> bool:
        item_guid = self.workspace.deployed_items[item_type][item_name].guid
        logger.info(f"Unpublishing {item_type} '{item_name}'")
        try:
            self.workspace.endpoint.invoke("DELETE", f"{self.workspace.base_api_url}/items/{item_guid}")
        except OperationCancelledError:
            raise
        except FabricClientError as e:
            logger.warning(f"Failed to unpublish {item_type} '{item_name}'. Raw exception: {e}")
            return False
        logger.info(f"{INDENT}Unpublished")
        return True
