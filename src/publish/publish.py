"""Top-level publish and unpublish runs."""

import logging
from typing import Callable, List, Optional

from src.workspace.constants import PUBLISH_ORDER
from src.workspace.fabric_workspace import FabricWorkspace
from src.workspace.models import Item

from .folders import FolderPublisher
from .publisher import ItemPublisher
from .unpublisher import OrphanUnpublisher

logger = logging.getLogger(__name__)

HeaderCallback = Callable[[str], None]


def _section(header: Optional[HeaderCallback], title: str) -> None:
    logger.info(title)
    if header:
        header(title)


def publish_all_items(
    workspace: FabricWorkspace,
    item_name_exclude_regex: Optional[str] = None,
    header: Optional[HeaderCallback] = None,
) -> List[Item]:
    """Publish every in-scope repository item to the workspace.

    Folders are published first (unless disabled), then items type by type
    in dependency order. The run stops at the first item that fails.

    Args:
        workspace: Workspace to publish into
        item_name_exclude_regex: Item names matching this regex are skipped
        header: Optional callback receiving section titles for display

    Returns:
        Items that were processed, in publish order (skipped ones have
        ``skip_publish`` set)

    Raises:
        ItemPublishError: If an item fails to publish
        InputError: If a folder name or regex is invalid
    """
    if item_name_exclude_regex:
        logger.warning(
            "Using item_name_exclude_regex is risky as it can prevent needed dependencies from being deployed."
        )

    if workspace.feature_flags.folder_publish_enabled:
        workspace.refresh_deployed_folders()
        workspace.refresh_repository_folders()
        _section(header, "Publishing Workspace Folders")
        FolderPublisher(workspace).publish_folders()

    workspace.refresh_deployed_items()
    workspace.refresh_repository_items()

    publisher = ItemPublisher(workspace, item_name_exclude_regex=item_name_exclude_regex)
    processed: List[Item] = []

    for item_type in PUBLISH_ORDER:
        if item_type not in workspace.item_type_in_scope:
            continue
        items = workspace.repository_items.get(item_type, {})
        if not items:
            continue

        _section(header, f"Publishing {item_type}s")
        for item in items.values():
            publisher.publish(item)
            processed.append(item)

    return processed


def unpublish_all_orphan_items(
    workspace: FabricWorkspace,
    item_name_exclude_regex: str = "^$",
    header: Optional[HeaderCallback] = None,
) -> List[str]:
    """Delete deployed items (and folders) that are absent from the repository.

    Returns:
        List of "<type>/<name>" entries that were deleted
    """
    _section(header, "Unpublishing Orphaned Items")
    return OrphanUnpublisher(workspace).unpublish_orphans(exclude_regex=item_name_exclude_regex)
