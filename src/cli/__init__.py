"""Command-line interface for Fabric workspace sync.

This package provides the `fabric-sync` CLI tool that publishes a repository
of item definitions to a Fabric workspace and removes orphaned items, with
colored output and exit codes suited to CI pipelines.
"""

from .models import ExitCode, PublishSummary
from .output import OutputHandler

__all__ = [
    'ExitCode',
    'PublishSummary',
    'OutputHandler',
]
