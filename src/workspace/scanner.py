"""Repository scanner.

Builds the repository side of a reconciliation: the item map (type -> name ->
Item) discovered from ``.platform`` marker files, and the folder map
(relative path -> folder id) read from the folder manifest or derived from the
directory tree.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from .constants import FOLDER_MANIFEST_FILE, ITEM_MARKER_FILE
from .errors import ParsingError
from .models import Item

logger = logging.getLogger(__name__)

ItemMap = Dict[str, Dict[str, Item]]


def relative_folder_path(root_dir: Path, directory: Path) -> str:
    """Return the workspace folder path of a directory ("/A/B", root is "")."""
    relative = Path(directory).relative_to(root_dir).as_posix()
    return "" if relative == "." else f"/{relative}"


def parent_folder_path(folder_path: str) -> str:
    return "/".join(folder_path.split("/")[:-1])


def load_repository_folders(root_dir: Path) -> Dict[str, str]:
    """Load the repository folder map.

    The manifest ``.workspace_folders.json`` at the repository root is a list
    of ``{"path": "/A/B", "id": "<guid>"}`` records. Without a manifest every
    directory that holds an item at any depth (and is not an item itself) is a
    folder with an unknown id.

    Args:
        root_dir: Repository root

    Returns:
        Dict mapping folder path to folder id

    Raises:
        ParsingError: If the manifest is not a list of path/id records
    """
    root_dir = Path(root_dir)
    manifest_path = root_dir / FOLDER_MANIFEST_FILE

    if manifest_path.is_file():
        return _read_folder_manifest(manifest_path)

    folders: Dict[str, str] = {}
    for item_dir in _find_item_directories(root_dir):
        folder_path = parent_folder_path(relative_folder_path(root_dir, item_dir))
        while folder_path:
            folders.setdefault(folder_path, "")
            folder_path = parent_folder_path(folder_path)

    logger.debug(f"Derived {len(folders)} repository folder(s) from directory tree")
    return folders


def _read_folder_manifest(manifest_path: Path) -> Dict[str, str]:
    try:
        records = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ParsingError(f"Error reading folder manifest: {e}", str(manifest_path)) from e

    if not isinstance(records, list):
        raise ParsingError("Folder manifest must be a list of {path, id} records", str(manifest_path))

    folders: Dict[str, str] = {}
    for record in records:
        if not isinstance(record, dict) or not isinstance(record.get("path"), str):
            raise ParsingError(f"Invalid folder record: {record}", str(manifest_path))
        path = "/" + record["path"].strip("/")
        if path == "/":
            continue
        folders[path] = record.get("id") or ""

    logger.debug(f"Loaded {len(folders)} repository folder(s) from {manifest_path.name}")
    return folders


def _find_item_directories(root_dir: Path) -> List[Path]:
    item_dirs = []
    for root, dirs, files in os.walk(root_dir):
        dirs.sort()
        if ITEM_MARKER_FILE in files:
            item_dirs.append(Path(root))
    return item_dirs


class RepositoryScanner:
    """Discovers items in a repository directory.

    Example:
        >>> scanner = RepositoryScanner(Path("./workspace"))
        >>> items = scanner.scan(repository_folders, deployed_items)
        >>> items["Notebook"]["Hello World"].logical_id
    """

    def __init__(self, root_dir: Path, folder_publish_enabled: bool = True):
        self.root_dir = Path(root_dir)
        self.folder_publish_enabled = folder_publish_enabled

    def scan(
        self,
        repository_folders: Optional[Dict[str, str]] = None,
        deployed_items: Optional[ItemMap] = None,
    ) -> ItemMap:
        """Scan the repository and build a fresh item map.

        Args:
            repository_folders: Folder path -> folder id, used for placement
            deployed_items: Deployed item map, used to carry known guids forward

        Returns:
            Dict mapping item type to a dict of item name to Item

        Raises:
            ParsingError: If a .platform file is unreadable, lacks required
                fields or has an empty logicalId
        """
        repository_folders = repository_folders or {}
        deployed_items = deployed_items or {}
        items: ItemMap = {}
        empty_logical_id_paths = []

        for directory in _find_item_directories(self.root_dir):
            marker_path = directory / ITEM_MARKER_FILE

            if not any(entry.name != ITEM_MARKER_FILE for entry in directory.iterdir()):
                logger.warning(f"Directory {directory.name} is empty.")
                continue

            metadata, logical_id = self._read_marker(marker_path)
            if not logical_id.strip():
                empty_logical_id_paths.append(str(marker_path))
                continue

            item_type = metadata["type"]
            item_name = metadata["displayName"]

            if self.folder_publish_enabled:
                folder_path = parent_folder_path(relative_folder_path(self.root_dir, directory))
                folder_id = repository_folders.get(folder_path, "")
            else:
                folder_id = ""

            deployed = deployed_items.get(item_type, {}).get(item_name)

            item = Item(
                type=item_type,
                name=item_name,
                description=metadata.get("description") or "",
                guid=deployed.guid if deployed else "",
                logical_id=logical_id,
                path=directory,
                folder_id=folder_id,
            )
            item.collect_item_files()
            items.setdefault(item_type, {})[item_name] = item

        if empty_logical_id_paths:
            if len(empty_logical_id_paths) == 1:
                raise ParsingError("logicalId cannot be empty", empty_logical_id_paths[0])
            raise ParsingError(
                "logicalId cannot be empty in the following files:\n" + "\n".join(empty_logical_id_paths)
            )

        logger.info(f"Found {sum(len(v) for v in items.values())} item(s) in {self.root_dir}")
        return items

    @staticmethod
    def _read_marker(marker_path: Path):
        try:
            marker = json.loads(marker_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ParsingError(f"Cannot read marker file: {e}", str(marker_path)) from e
        except ValueError as e:
            raise ParsingError(f"Error decoding JSON: {e}", str(marker_path)) from e

        metadata = marker.get("metadata") if isinstance(marker, dict) else None
        config = marker.get("config") if isinstance(marker, dict) else None

        if not isinstance(metadata, dict) or "type" not in metadata or "displayName" not in metadata:
            raise ParsingError("displayName & type are required", str(marker_path))
        if not isinstance(config, dict) or "logicalId" not in config:
            raise ParsingError("logicalId is required", str(marker_path))

        logical_id = config["logicalId"]
        return metadata, logical_id if isinstance(logical_id, str) else ""
