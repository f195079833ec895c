"""Console output for the FlagSync CLI."""

import json
from typing import Any

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Writes status messages, summaries and JSON results.

    Status messages go to stderr so that ``--json`` output on stdout stays
    machine readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Print results as JSON and suppress status text
            quiet: Suppress non-essential output
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(soft_wrap=True, highlight=False)
        self.err_console = Console(stderr=True, soft_wrap=True, highlight=False)

    @property
    def show_status(self) -> bool:
        return not (self.quiet or self.json_output)

    def info(self, message: str) -> None:
        if self.show_status:
            self.err_console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self.show_status:
            self.err_console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if not self.quiet:
            self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error message. Errors are never suppressed."""
        self.err_console.print(f"Error: {message}", style="bold red", markup=False)

    def print(self, message: str) -> None:
        """Print a result line to stdout."""
        if not self.json_output:
            self.console.print(message, markup=False)

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Item", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)
