"""Shared Rich console for buildgraph CLI output."""

from rich.console import Console

console = Console()

STATUS_STYLES = {
    "success": "green",
    "failed": "red bold",
    "skipped": "yellow",
}
"""Rich styles used when rendering publish and build statuses"""


def error(message: str, console: Console = console) -> None:
    """Print an error message in red."""
    console.print(f"[red bold]{message}[/red bold]")


def success(message: str, console: Console = console) -> None:
    """Print a success message in green."""
    console.print(f"[green]{message}[/green]")


def warning(message: str, console: Console = console) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]{message}[/yellow]")


def styled_status(status: str) -> str:
    """Wrap a status value in Rich markup for table cells."""
    style = STATUS_STYLES.get(status, "white")
    return f"[{style}]{status}[/{style}]"
