"""Decorators for CLI commands."""

from functools import wraps
from typing import Callable, Coroutine, TypeVar

import typer
from rich.markup import escape

from lxctemplate.errors import BuildCancelled, BuildError, ConfigError

from .output import out

R = TypeVar("R")

EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130


def handle_build_errors(func: Callable[..., Coroutine[None, None, R]]) -> Callable[..., Coroutine[None, None, R]]:
    """Decorator that turns build errors into messages and exit codes."""
    @wraps(func)
    async def wrapper(*args: object, **kwargs: object) -> R:
        try:
            return await func(*args, **kwargs)
        except ConfigError as e:
            out.error("Invalid configuration:")
            for line in str(e).splitlines():
                out.info(f"  {escape(line)}")
            raise typer.Exit(EXIT_CONFIG)
        except BuildCancelled:
            out.error("Build was cancelled.")
            raise typer.Exit(EXIT_CANCELLED)
        except BuildError as e:
            out.error(escape(str(e)))
            out.hint("Any leftover container must be removed by hand if cleanup reported errors.")
            raise typer.Exit(EXIT_FAILURE)
    return wrapper
