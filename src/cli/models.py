"""Data models for CLI operations.

This module defines the exit codes and the summary records the CLI displays
after a run.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): General error (config issues, validation failures)
    - PUBLISH_FAILED (2): An item failed to publish
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    PUBLISH_FAILED = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4


@dataclass
class PublishSummary:
    """Result of a publish run for display to the user.

    Attributes:
        published_by_type: Item type -> number of items published
        skipped: "<type>/<name>" of items skipped by the exclusion regex

    Example:
        >>> summary = PublishSummary.from_items(processed_items)
        >>> summary.published_count
    """
    published_by_type: Dict[str, int] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def published_count(self) -> int:
        return sum(self.published_by_type.values())

    @classmethod
    def from_items(cls, items: Iterable) -> "PublishSummary":
        summary = cls()
        for item in items:
            if item.skip_publish:
                summary.skipped.append(f"{item.type}/{item.name}")
            else:
                summary.published_by_type[item.type] = summary.published_by_type.get(item.type, 0) + 1
        return summary
