"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
section headers, colored status messages and run summaries. Supports
verbosity levels and the --no-color flag.
"""

from typing import List

from rich.console import Console
from rich.rule import Rule

from src.cli.models import PublishSummary


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.print_header("Publishing Notebooks")
        >>> handler.print_publish_summary(PublishSummary())
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.console = Console(
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
        )

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print_header(self, title: str) -> None:
        """Display a section header such as "Publishing Notebooks".

        Args:
            title: Section title
        """
        self.console.print()
        self.console.print(Rule(f"[bold purple]{title}[/bold purple]", style="purple"))

    def print_publish_summary(self, summary: PublishSummary) -> None:
        """Display publish summary with color coding.

        Args:
            summary: Counts of published and skipped items
        """
        self.console.print("\n[bold]Publish Summary:[/bold]")

        for item_type, count in sorted(summary.published_by_type.items()):
            self.console.print(f"  [green]↑[/green] {item_type}: {count} item(s) published")

        if summary.skipped:
            self.console.print(f"  [yellow]⊘[/yellow] Skipped: {len(summary.skipped)} item(s)")
            for name in summary.skipped:
                self.debug(f"    • {name}")

        if summary.published_count == 0 and not summary.skipped:
            self.console.print("\n[yellow]No items to publish[/yellow]")
        else:
            self.console.print(
                f"\n[green]Publish completed: {summary.published_count} item(s) total[/green]"
            )

    def print_unpublish_summary(self, deleted: List[str]) -> None:
        """Display orphan deletion summary.

        Args:
            deleted: "<type>/<name>" entries that were deleted
        """
        self.console.print("\n[bold]Unpublish Summary:[/bold]")

        for entry in deleted:
            self.console.print(f"  [red]✗[/red] {entry}")

        if not deleted:
            self.console.print("\n[yellow]No orphaned items deleted[/yellow]")
        else:
            self.console.print(f"\n[green]Unpublish completed: {len(deleted)} item(s) deleted[/green]")
