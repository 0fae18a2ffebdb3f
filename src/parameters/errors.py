"""Exceptions raised while loading a parameter file."""

from typing import Optional

from src.fabric_client.errors import SyncError


class ParameterFileError(SyncError):
    """Raised when the parameter file is invalid.

    A parameter file is validated as a whole before any rule is applied, so
    this error always means nothing was substituted.
    """

    def __init__(self, message: str, file_path: Optional[str] = None):
        if file_path:
            full_message = f"Invalid parameter file {file_path}: {message}"
        else:
            full_message = f"Invalid parameter file: {message}"
        super().__init__(full_message)
        self.file_path = file_path
        self.original_message = message
