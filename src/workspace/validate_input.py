"""Validation of caller-supplied workspace inputs.

Every function returns the validated (and possibly normalized) value or raises
InputError. Validation happens once, when the workspace is constructed.
"""

import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional

from .constants import ACCEPTED_ITEM_TYPES, VALID_GUID_REGEX
from .errors import InputError

logger = logging.getLogger(__name__)


def validate_workspace_id(workspace_id: str) -> str:
    """Validate that the workspace id is a guid.

    Raises:
        InputError: If the value is not a string or not a valid guid
    """
    if not isinstance(workspace_id, str):
        raise InputError("The provided workspace_id is not of type str.")
    if not re.match(VALID_GUID_REGEX, workspace_id):
        raise InputError("The provided workspace_id is not a valid guid.")
    return workspace_id


def validate_workspace_name(workspace_name: str) -> str:
    if not isinstance(workspace_name, str) or not workspace_name.strip():
        raise InputError("The provided workspace_name must be a non-empty string.")
    return workspace_name


def validate_environment(environment: str) -> str:
    if not isinstance(environment, str):
        raise InputError("The provided environment is not of type str.")
    return environment


def validate_repository_directory(repository_directory: str) -> Path:
    """Validate that the repository directory exists and resolve it.

    Returns:
        Absolute path of the repository directory

    Raises:
        InputError: If the directory does not exist
    """
    if not isinstance(repository_directory, (str, Path)):
        raise InputError("The provided repository_directory is not of type str.")

    path = Path(repository_directory)
    if not path.is_dir():
        raise InputError(f"The provided repository_directory '{repository_directory}' does not exist.")

    resolved = path.resolve()
    if not path.is_absolute():
        logger.info(f"Relative directory path '{path}' resolved as '{resolved}'")
    return resolved


def validate_item_type_in_scope(item_types: Optional[Iterable[str]]) -> List[str]:
    """Validate the list of item types in scope.

    Args:
        item_types: Item types, or None for every accepted type

    Returns:
        List of item types

    Raises:
        InputError: If the list contains None or an unsupported type
    """
    if item_types is None:
        return list(ACCEPTED_ITEM_TYPES)

    if isinstance(item_types, str):
        raise InputError("The provided item_type_in_scope must be a list of str.")

    values = list(item_types)
    if any(item_type is None for item_type in values):
        raise InputError("Item type list contains null values.")

    for item_type in values:
        if item_type not in ACCEPTED_ITEM_TYPES:
            raise InputError(
                f"Invalid or unsupported item type: '{item_type}'. "
                f"Must be one of {', '.join(ACCEPTED_ITEM_TYPES)}."
            )
    return values


def validate_regex(pattern: str, field_name: str = "regex") -> "re.Pattern[str]":
    """Compile a regex supplied by the caller.

    Raises:
        InputError: If the pattern does not compile
    """
    try:
        return re.compile(pattern)
    except (re.error, TypeError) as e:
        raise InputError(f"Invalid {field_name} '{pattern}': {e}")
