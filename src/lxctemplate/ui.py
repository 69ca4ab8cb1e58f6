"""Progress reporting for builds.

Steps never print directly.  They report through a :class:`Ui`, which
the caller supplies: the CLI passes a :class:`ConsoleUi`, tests pass a
recorder.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.markup import escape


class Ui(Protocol):
    """Sink for user-facing build progress."""

    def info(self, msg: str) -> None: ...

    def dim(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...

    def success(self, msg: str) -> None: ...


class ConsoleUi:
    """Render progress on a rich console, prefixed with the build name."""

    def __init__(self, console: Console | None = None, prefix: str = "lxctemplate"):
        self._console = console or Console(stderr=True, highlight=False)
        self._prefix = prefix

    def _print(self, style: str, msg: str) -> None:
        self._console.print(f"[{style}]==> {escape(self._prefix)}: {escape(msg)}[/{style}]")

    def info(self, msg: str) -> None:
        self._print("bold", msg)

    def dim(self, msg: str) -> None:
        self._print("dim", msg)

    def warning(self, msg: str) -> None:
        self._print("yellow", msg)

    def error(self, msg: str) -> None:
        self._print("bold red", msg)

    def success(self, msg: str) -> None:
        self._print("bold green", msg)
