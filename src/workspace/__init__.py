"""Workspace model for Fabric sync.

This package holds both sides of a reconciliation: the items and folders
found in the local repository and the ones deployed in the target workspace.
"""

from .config import ConfigLoader, FeatureFlags, WorkspaceConfig
from .models import FileItem, Item
from .errors import (
    WorkspaceError,
    InputError,
    ParsingError,
    ConfigError,
    ItemPublishError,
)

__all__ = [
    'ConfigLoader',
    'FeatureFlags',
    'WorkspaceConfig',
    'FileItem',
    'Item',
    'WorkspaceError',
    'InputError',
    'ParsingError',
    'ConfigError',
    'ItemPublishError',
]
