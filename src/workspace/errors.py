"""Typed exception hierarchy for workspace errors.

This module defines the exceptions raised while validating input, scanning the
repository and publishing items. All exceptions inherit from WorkspaceError and
include descriptive messages with context to help with debugging.
"""

from typing import Optional

from src.fabric_client.errors import SyncError


class WorkspaceError(SyncError):
    """Base exception for all workspace errors."""
    pass


class InputError(WorkspaceError):
    """Raised when caller input is malformed (workspace id, directory, item types)."""

    def __init__(self, message: str):
        super().__init__(message)


class ParsingError(WorkspaceError):
    """Raised when an item marker file or substitution expression cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        if file_path:
            full_message = f"{message} ({file_path})"
        else:
            full_message = message
        super().__init__(full_message)
        self.file_path = file_path
        self.original_message = message


class ConfigError(WorkspaceError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class ItemPublishError(WorkspaceError):
    """Raised when publishing a single item fails.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, item_type: str, item_name: str, reason: Optional[str] = None):
        message = f"Failed to publish {item_type} '{item_name}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.item_type = item_type
        self.item_name = item_name
        self.reason = reason
