# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Ordered pipeline of async steps with reverse-order cleanup.

Create a :class:`Pipeline` instance at module level and use its
:meth:`~Pipeline.step` method as a class decorator.  When the steps are
split across files, each file just imports the pipeline instance and
decorates its step classes; no central list to maintain.

Each step pairs forward work (``run``) with compensating work
(``cleanup``).  The runner executes steps in order until one halts, the
run is cancelled, or every step has finished, and then unwinds the
steps that actually ran in reverse order.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar, overload

from .errors import BuildError

logger = logging.getLogger(__name__)

# Default order for steps that don't specify one.
_DEFAULT_ORDER = 500


class StepAction(enum.Enum):
    """Outcome of a single step's ``run``."""

    CONTINUE = "continue"
    HALT = "halt"
    CANCELLED = "cancelled"


class RunStatus(enum.Enum):
    """State of a pipeline run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    HALTED = "halted"
    CANCELLED = "cancelled"


class RunState(Protocol):
    """What the runner needs from a run context: somewhere to put the error."""

    error: BaseException | None


_Ctx = TypeVar("_Ctx", bound=RunState)
_Ctx_contra = TypeVar("_Ctx_contra", bound=RunState, contravariant=True)


class Step(Protocol[_Ctx_contra]):
    """One unit of forward work plus its compensating cleanup.

    ``cleanup`` must be safe to call when ``run`` failed partway, and is
    expected to report its own failures rather than raise.
    """

    name: str

    async def run(self, ctx: _Ctx_contra) -> StepAction: ...

    async def cleanup(self, ctx: _Ctx_contra, status: RunStatus) -> None: ...


_StepFactory = Callable[[], Step[_Ctx]]


@dataclass
class RunResult:
    """What happened during one pipeline run."""

    status: RunStatus
    error: BaseException | None = None
    executed: list[str] = field(default_factory=list)
    cleanup_errors: list[tuple[str, BaseException]] = field(default_factory=list)


async def run_steps(
    steps: Sequence[Step[_Ctx]],
    ctx: _Ctx,
    cancel: asyncio.Event | None = None,
) -> RunResult:
    """Run *steps* in order against *ctx*, then clean up in reverse.

    Cancellation is cooperative: *cancel* is only checked before a step
    starts, never while one is in progress.

    A :class:`BuildError` raised by a step halts the run and is stored
    in ``ctx.error`` unless an earlier error is already there.  Any
    other exception still unwinds the executed steps before it
    propagates.
    """
    status = RunStatus.RUNNING
    executed: list[Step[_Ctx]] = []
    result = RunResult(status=status)

    try:
        for s in steps:
            if cancel is not None and cancel.is_set():
                logger.info("Run cancelled before step %s", s.name)
                status = RunStatus.CANCELLED
                break

            executed.append(s)
            result.executed.append(s.name)
            logger.debug("Running step %s", s.name)
            try:
                action = await s.run(ctx)
            except BuildError as e:
                if ctx.error is None:
                    ctx.error = e
                action = StepAction.HALT

            if action is StepAction.HALT:
                logger.info("Step %s halted the run", s.name)
                status = RunStatus.HALTED
                break
            if action is StepAction.CANCELLED:
                logger.info("Step %s observed cancellation", s.name)
                status = RunStatus.CANCELLED
                break
        else:
            status = RunStatus.COMPLETED
    finally:
        if status is RunStatus.RUNNING:
            # An unexpected exception escaped a step
            status = RunStatus.HALTED
        result.status = status
        result.cleanup_errors = await _cleanup(executed, ctx, status)

    if status is RunStatus.HALTED:
        result.error = ctx.error
    return result


async def _cleanup(
    executed: Sequence[Step[_Ctx]],
    ctx: _Ctx,
    status: RunStatus,
) -> list[tuple[str, BaseException]]:
    """Invoke ``cleanup`` on *executed* in reverse, collecting failures."""
    errors: list[tuple[str, BaseException]] = []
    for s in reversed(executed):
        logger.debug("Cleaning up step %s (%s)", s.name, status.value)
        try:
            await s.cleanup(ctx, status)
        except Exception as e:
            logger.exception("Cleanup of step %s failed", s.name)
            errors.append((s.name, e))
    return errors


class Pipeline(Generic[_Ctx]):
    """A registry of step classes executed by ``order``.

    Ordering
    --------
    Every step has a numeric *order* (default 500).  Steps run in
    ascending order; steps with equal order run in registration
    (decoration) order.  This keeps sequencing explicit even when
    steps live in different modules with unpredictable import order.

    Convention: use multiples of 100 so there's room to insert
    steps between existing ones.

    Example::

        build = Pipeline[BuildContext]("build")

        @build.step(order=200)
        class StartContainer:
            name = "start_container"
            async def run(self, ctx): ...
            async def cleanup(self, ctx, status): ...

    A fresh instance of every registered step is created for each run,
    so steps may keep per-run state on ``self``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: list[tuple[int, int, _StepFactory[_Ctx]]] = []
        self._seq = 0  # registration counter for stable sort

    @overload
    def step(self, factory: _StepFactory[_Ctx]) -> _StepFactory[_Ctx]: ...
    @overload
    def step(self, *, order: int) -> Callable[[_StepFactory[_Ctx]], _StepFactory[_Ctx]]: ...

    def step(
        self,
        factory: _StepFactory[_Ctx] | None = None,
        *,
        order: int = _DEFAULT_ORDER,
    ) -> _StepFactory[_Ctx] | Callable[[_StepFactory[_Ctx]], _StepFactory[_Ctx]]:
        """Register *factory* as a step in this pipeline.

        Can be used bare (``@pipeline.step``) or with arguments
        (``@pipeline.step(order=200)``).
        """
        def _register(f: _StepFactory[_Ctx]) -> _StepFactory[_Ctx]:
            self._entries.append((order, self._seq, f))
            self._seq += 1
            return f

        if factory is not None:
            # Called as @pipeline.step (no parentheses)
            return _register(factory)
        # Called as @pipeline.step(order=...)
        return _register

    def build(self) -> list[Step[_Ctx]]:
        """Instantiate every registered step, in execution order."""
        return [f() for _ord, _seq, f in sorted(self._entries, key=lambda e: e[:2])]

    async def run(self, ctx: _Ctx, cancel: asyncio.Event | None = None) -> RunResult:
        """Execute every registered step in order, then clean up."""
        return await run_steps(self.build(), ctx, cancel)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        ordered = sorted(self._entries, key=lambda e: e[:2])
        names = ", ".join(f"{getattr(f, 'name', f.__name__)}({o})" for o, _s, f in ordered)
        return f"Pipeline({self.name!r}, [{names}])"
