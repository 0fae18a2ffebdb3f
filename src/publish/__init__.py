"""Publish and unpublish of repository items and folders.

This package reconciles the repository snapshot against the deployed
workspace: items are created or updated in dependency order, orphaned items
and folders are removed.
"""

from .folders import FolderPublisher
from .publisher import ItemPublisher
from .unpublisher import OrphanUnpublisher
from .publish import publish_all_items, unpublish_all_orphan_items

__all__ = [
    'FolderPublisher',
    'ItemPublisher',
    'OrphanUnpublisher',
    'publish_all_items',
    'unpublish_all_orphan_items',
]
