"""Rich-based console output for the ffmovie CLI"""

from typing import Any, Iterable, Tuple

from rich.console import Console
from rich.table import Table
from rich.text import Text

console = Console()


def print_error(message: str) -> None:
    text = Text("✗ ", style="bold red") + Text(message, style="bold")
    console.print(text)


def print_success(message: str) -> None:
    text = Text("✓ ", style="green") + Text(message, style="green")
    console.print(text)


def print_info(message: str) -> None:
    text = Text("ℹ ", style="bold blue") + Text(message, style="blue")
    console.print(text)


def print_header(title: str, width: int = 60) -> None:
    """Print the title centred between two rules."""
    console.rule(style="bold blue", characters="=")
    console.print(title.center(width), style="bold blue")
    console.rule(style="bold blue", characters="=")


def print_attributes(title: str, attributes: Iterable[Tuple[str, Any]]) -> None:
    """Print probed media attributes as a two-column table; unknown values show as '-'."""
    table = Table(title=title, show_header=False)
    table.add_column("attribute", style="bold")
    table.add_column("value")
    for name, value in attributes:
        table.add_row(name, "-" if value is None else str(value))
    console.print(table)


def print_intervals(intervals) -> None:
    """Print black intervals one "start end" pair per line."""
    if not intervals:
        print_info("No black intervals found")
        return
    for interval in intervals:
        console.print(f"{interval.start} {interval.end}", highlight=False)
