"""Rich console rendering for sync status and summaries.

One shared Console instance; renderers take plain values so the core layer
stays free of domain imports.
"""

from typing import Mapping, Optional

from rich.console import Console
from rich.table import Table

from .output import is_silent

_console: Console | None = None


def get_console() -> Console:
    """Get or create the global Rich Console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def counts_table(title: str, counts: Mapping[str, int]) -> Table:
    """Two-column table of labelled counts; zero counts are dimmed."""
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("What", style="bold")
    table.add_column("Count", justify="right")
    for label, count in counts.items():
        table.add_row(label, str(count), style=None if count else "dim")
    return table


def status_table(rows: Mapping[str, str], title: str = "Sync status") -> Table:
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for label, value in rows.items():
        table.add_row(label, value)
    return table


def render(renderable, console: Optional[Console] = None) -> None:
    """Print a Rich renderable unless output is silenced on this thread."""
    if is_silent():
        return
    (console or get_console()).print(renderable)
