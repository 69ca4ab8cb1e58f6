"""Typer app that accepts ``async def`` commands."""

from __future__ import annotations

import asyncio
import inspect
from functools import wraps
from typing import Any, Callable

import typer


class AsyncTyper(typer.Typer):
    """A :class:`typer.Typer` whose commands may be coroutines.

    Each coroutine command is run to completion with :func:`asyncio.run`.
    """

    def command(self, *args: Any, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        decorator = super().command(*args, **kwargs)

        def wrapper(func: Callable[..., Any]) -> Callable[..., Any]:
            if inspect.iscoroutinefunction(func):
                @wraps(func)
                def sync_func(*f_args: Any, **f_kwargs: Any) -> Any:
                    return asyncio.run(func(*f_args, **f_kwargs))

                decorator(sync_func)
                return func
            return decorator(func)

        return wrapper
