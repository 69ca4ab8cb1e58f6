"""Console output helpers for the CLI."""

from __future__ import annotations

from rich.console import Console


class Output:
    """Styled messages on stderr; plain results on stdout."""

    def __init__(self) -> None:
        self.console = Console(stderr=True, highlight=False)
        self.stdout = Console(highlight=False)

    def info(self, msg: str) -> None:
        self.console.print(msg)

    def success(self, msg: str) -> None:
        self.console.print(f"[bold green]✓[/bold green] {msg}")

    def warning(self, msg: str) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {msg}")

    def error(self, msg: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {msg}")

    def hint(self, msg: str) -> None:
        self.console.print(f"[dim]Hint:[/dim] {msg}")

    def result(self, msg: str) -> None:
        self.stdout.print(msg)


out = Output()
