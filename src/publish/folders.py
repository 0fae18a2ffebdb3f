"""Publish and unpublish of workspace folders."""

import logging
import re
from typing import Set

from src.fabric_client.errors import FabricClientError, OperationCancelledError
from src.workspace.constants import INDENT, INVALID_FOLDER_CHAR_REGEX
from src.workspace.errors import InputError
from src.workspace.fabric_workspace import FabricWorkspace
from src.workspace.scanner import parent_folder_path

logger = logging.getLogger(__name__)


def _depth(folder_path: str) -> int:
    return folder_path.count("/")


class FolderPublisher:
    """Mirrors the repository folder tree into the workspace."""

    def __init__(self, workspace: FabricWorkspace):
        self.workspace = workspace

    def publish_folders(self) -> None:
        """Create every repository folder missing from the workspace.

        Parents are created before children. Folder ids already deployed
        (or just created) are written back into ``repository_folders`` so
        items can be placed in them.

        Raises:
            InputError: If a folder name contains characters Fabric rejects
        """
        workspace = self.workspace
        logger.info("Publishing Workspace Folders")

        for folder_path in sorted(workspace.repository_folders, key=_depth):
            if folder_path in workspace.deployed_folders:
                workspace.repository_folders[folder_path] = workspace.deployed_folders[folder_path]
                logger.debug(f"Folder exists: {folder_path}")
                continue

            folder_name = folder_path.split("/")[-1]
            if re.search(INVALID_FOLDER_CHAR_REGEX, folder_name):
                raise InputError(f"Folder name '{folder_name}' contains invalid characters.")

            body = {"displayName": folder_name}
            parent_id = workspace.repository_folders.get(parent_folder_path(folder_path))
            if parent_id:
                body["parentFolderId"] = parent_id

            response = workspace.endpoint.invoke("POST", f"{workspace.base_api_url}/folders", body=body)
            workspace.repository_folders[folder_path] = response.body["id"]
            logger.debug(f"Published folder: {folder_path}")

        logger.info(f"{INDENT}Published")

    def unpublish_folders(self) -> None:
        """Delete deployed folders that are no longer in the repository.

        Folders are deleted deepest first. A folder that still holds a
        deployed item, or is an ancestor of one, is kept. Per-folder failures
        are logged as warnings.
        """
        workspace = self.workspace
        protected = self._protected_folder_ids()

        orphans = [
            path
            for path in sorted(workspace.deployed_folders, key=_depth, reverse=True)
            if path not in workspace.repository_folders and workspace.deployed_folders[path] not in protected
        ]
        if not orphans:
            return

        logger.info("Unpublishing Workspace Folders")
        for folder_path in orphans:
            folder_id = workspace.deployed_folders[folder_path]
            try:
                workspace.endpoint.invoke("DELETE", f"{workspace.base_api_url}/folders/{folder_id}")
                logger.debug(f"Unpublished folder: {folder_path}")
            except OperationCancelledError:
                raise
            except FabricClientError as e:
                logger.warning(f"Failed to unpublish folder '{folder_path}'. Raw exception: {e}")

        logger.info(f"{INDENT}Unpublished")

    def _protected_folder_ids(self) -> Set[str]:
        workspace = self.workspace
        id_to_path = {folder_id: path for path, folder_id in workspace.deployed_folders.items()}
        protected = set()

        for items in workspace.deployed_items.values():
            for item in items.values():
                path = id_to_path.get(item.folder_id)
                while path:
                    protected.add(workspace.deployed_folders[path])
                    path = parent_folder_path(path)

        return protected
