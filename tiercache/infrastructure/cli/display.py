"""Console output for the tiercache CLI, rendered with rich."""

import logging
from typing import Any, Dict, Optional

from rich.box import ROUNDED
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)


class ConsoleDisplay:
    """Writes command results, errors and status tables to the terminal."""

    def __init__(self, console: Optional[Console] = None, error_console: Optional[Console] = None):
        self._console = console or Console()
        self._error_console = error_console or self._console

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    @console.setter
    def console(self, console: Console) -> None:
        self._console = console
        self._error_console = console

    def display_value(self, value: Any) -> None:
        """Prints a cached value as plain text (no markup interpretation)."""
        self._console.print(str(value), markup=False, highlight=False)

    def display_info(self, info_message: str) -> None:
        self._console.print(f"[blue]Info:[/blue] {info_message}")

    def display_warning(self, warning_message: str) -> None:
        self._console.print(f"[yellow]Warning:[/yellow] {warning_message}")

    def display_error(self, error_message: str) -> None:
        logger.debug(f"Displaying error: {error_message}")
        self._error_console.print(f"[bold red]Error:[/bold red] {error_message}")

    def display_table(self, title: str, rows: Dict[str, Any]) -> None:
        """Shows a two-column name/value table."""
        table = Table(title=title, show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")
        for name, value in rows.items():
            table.add_row(name, str(value))
        self._console.print(table)
