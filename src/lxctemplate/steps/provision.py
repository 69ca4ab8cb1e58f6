# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: hand the connected container to the provisioners."""

from __future__ import annotations

from ..context import BuildContext
from ..errors import ConnectivityError
from ..hook import HOOK_PROVISION
from ..pipeline import RunStatus, StepAction
from . import build_pipeline


@build_pipeline.step(order=400)
class Provision:
    """Run the provisioning hook against the container.

    Provisioners see the build's generated data (e.g. ``InstanceID``)
    alongside the SSH session.
    """

    name = "provision"

    async def run(self, ctx: BuildContext) -> StepAction:
        if ctx.comm is None:
            raise ConnectivityError("No SSH session to provision with")

        ctx.info("Provisioning with the configured provisioners...")
        await ctx.hook.run(HOOK_PROVISION, ctx.ui, ctx.comm, dict(ctx.generated_data))
        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        pass
