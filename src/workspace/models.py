"""Data models for workspace items.

This module defines the in-memory representation of deployable items and the
files backing them. Both sides of a reconciliation (repository and deployed
workspace) are built from these dataclasses, constructed fresh on every
refresh.
"""

import base64
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Union

from .constants import TEXT_FILE_EXTENSIONS
from .errors import ParsingError

logger = logging.getLogger(__name__)


def _walk_json_objects(node: Any) -> Iterator[Dict[str, Any]]:
    """Yield every JSON object in a parsed document, depth first."""
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk_json_objects(value)
    elif isinstance(node, list):
        for value in node:
            yield from _walk_json_objects(value)


@dataclass
class FileItem:
    """One physical file backing an item.

    Text files (.json, .txt) keep their contents as a string and, when the
    contents parse as JSON, a structured view in ``json_body``. A text file
    that is not valid JSON still keeps its raw text. Every other file is
    binary and keeps its raw bytes.

    Attributes:
        item_path: Root directory of the owning item
        file_path: Absolute path of the file
        type: "text" or "binary", decided by extension
        contents: str for text files, bytes for binary files
        json_body: Parsed JSON view of a text file, or None
    """
    item_path: Path
    file_path: Path
    type: str = field(init=False, default="text")
    contents: Union[str, bytes] = field(init=False, default="")
    json_body: Any = field(init=False, default=None)
    IMMUTABLE_FIELDS: ClassVar[set] = {"item_path", "file_path"}

    def __post_init__(self) -> None:
        self.type = "text" if self.file_path.suffix.lower() in TEXT_FILE_EXTENSIONS else "binary"
        try:
            if self.type == "text":
                self.set_contents(self.file_path.read_text(encoding="utf-8"))
            else:
                self.contents = self.file_path.read_bytes()
        except (OSError, UnicodeDecodeError) as e:
            raise ParsingError(f"Error reading file {self.file_path}. Exception: {e}") from e

    def __setattr__(self, key: str, value: Any) -> None:
        if key in self.IMMUTABLE_FIELDS and hasattr(self, key):
            raise AttributeError(f"file {key} is immutable")
        super().__setattr__(key, value)

    @property
    def name(self) -> str:
        return self.file_path.name

    @property
    def relative_path(self) -> str:
        """Item-root relative path, normalized to forward slashes."""
        return self.file_path.relative_to(self.item_path).as_posix()

    @property
    def base64_payload(self) -> Dict[str, str]:
        """Definition part for this file, as expected by the Fabric API."""
        raw = self.contents.encode("utf-8") if isinstance(self.contents, str) else self.contents
        return {
            "path": self.relative_path,
            "payload": base64.b64encode(raw).decode("ascii"),
            "payloadType": "InlineBase64",
        }

    def set_contents(self, text: str) -> None:
        """Replace the text contents and rebuild the structured view."""
        self.contents = text
        try:
            self.json_body = json.loads(text)
        except ValueError:
            self.json_body = None

    def sync_contents_from_json(self) -> None:
        """Re-serialize the structured view into the text contents."""
        self.contents = json.dumps(self.json_body, indent=2, ensure_ascii=False)

    def contains(self, text: str) -> bool:
        if isinstance(self.contents, bytes):
            return text.encode("utf-8") in self.contents
        return text in self.contents

    def replace_text(self, old: str, new: str) -> bool:
        """Replace a literal string in the file, whatever its type.

        Returns:
            True if the file changed
        """
        if isinstance(self.contents, bytes):
            old_bytes, new_bytes = old.encode("utf-8"), new.encode("utf-8")
            if old_bytes not in self.contents:
                return False
            self.contents = self.contents.replace(old_bytes, new_bytes)
            return True

        if old not in self.contents:
            return False
        self.set_contents(self.contents.replace(old, new))
        return True


@dataclass
class Item:
    """One deployable unit of workspace content.

    ``type``, ``name`` and ``description`` are set-once: assigning them again
    after construction raises AttributeError. ``guid``, ``folder_id`` and
    ``skip_publish`` are ordinary mutable state.

    Attributes:
        type: Item type (e.g. "Notebook")
        name: Display name, unique within type and workspace
        description: Item description
        guid: Remote identifier, empty until first publish
        logical_id: Author-assigned identifier from the .platform file
        path: Item directory (repository side only)
        item_files: Files backing the item
        folder_id: Remote folder placement ("" for workspace root)
        skip_publish: Set when the item was excluded from publish
    """
    type: str
    name: str
    description: str
    guid: str = ""
    logical_id: str = ""
    path: Path = field(default_factory=Path)
    item_files: List[FileItem] = field(default_factory=list)
    folder_id: str = ""
    skip_publish: bool = False
    IMMUTABLE_FIELDS: ClassVar[set] = {"type", "name", "description"}

    def __setattr__(self, key: str, value: Any) -> None:
        if key in self.IMMUTABLE_FIELDS and getattr(self, key, None) is not None:
            raise AttributeError(f"item {key} is immutable")
        super().__setattr__(key, value)

    def collect_item_files(self) -> None:
        """Collect every file under the item directory, in a stable order."""
        self.item_files = []
        for root, dirs, files in os.walk(self.path):
            dirs.sort()
            for file_name in sorted(files):
                self.item_files.append(FileItem(Path(self.path), Path(root, file_name)))

    def replace_in_body(self, key: str, value: str) -> int:
        """Set every ``key`` found in the JSON files of this item to ``value``.

        Args:
            key: JSON object key to look for at any depth
            value: Replacement value

        Returns:
            Number of keys replaced
        """
        replaced = 0
        for item_file in self.item_files:
            if item_file.json_body is None:
                continue

            changed = False
            for obj in _walk_json_objects(item_file.json_body):
                if key in obj and obj[key] != value:
                    obj[key] = value
                    changed = True
                    replaced += 1
            if changed:
                item_file.sync_contents_from_json()

        return replaced

    def get_file(self, relative_path: str) -> Optional[FileItem]:
        for item_file in self.item_files:
            if item_file.relative_path == relative_path:
                return item_file
        return None
