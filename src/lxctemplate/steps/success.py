# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: mark the run as successful."""

from __future__ import annotations

from ..context import BuildContext
from ..pipeline import RunStatus, StepAction
from . import build_pipeline


@build_pipeline.step(order=900)
class Success:
    """Set the success marker so cleanups leave the result alone.

    Must stay the last step: everything before it can still fail.
    """

    name = "success"

    async def run(self, ctx: BuildContext) -> StepAction:
        ctx.succeeded = True
        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        pass
