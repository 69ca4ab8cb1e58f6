# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: remove the ephemeral SSH key from the container."""

from __future__ import annotations

import shlex

from ..context import BuildContext
from ..errors import ConnectivityError
from ..pipeline import RunStatus, StepAction
from . import build_pipeline


def _remove_key_command(key_pair_name: str, keys_file: str, sudo: bool = False) -> str:
    prefix = "sudo " if sudo else ""
    pattern = shlex.quote(f"/ {key_pair_name}$/d")
    return f"{prefix}sed -i.bak {pattern} {keys_file}; {prefix}rm -f {keys_file}.bak"


@build_pipeline.step(order=500)
class CleanupTempKeys:
    """Delete the generated public key from ``authorized_keys``.

    Otherwise every container created from the template would trust a
    key that only existed for this build.  Failures are reported but do
    not stop the build.
    """

    name = "cleanup_temp_keys"

    async def run(self, ctx: BuildContext) -> StepAction:
        creds = ctx.credentials
        if creds is None or not creds.clear_authorized_keys or not creds.key_pair_name:
            return StepAction.CONTINUE
        if ctx.comm is None:
            return StepAction.CONTINUE

        ctx.info("Trying to remove ephemeral keys from authorized_keys files")
        commands = [
            _remove_key_command(creds.key_pair_name, "~/.ssh/authorized_keys"),
            _remove_key_command(creds.key_pair_name, "/root/.ssh/authorized_keys", sudo=True),
        ]
        for command in commands:
            try:
                result = await ctx.comm.run(command)
            except ConnectivityError as e:
                ctx.report_error(f"Error cleaning up authorized_keys: {e}")
                continue
            if not result.ok:
                ctx.report_error(
                    f"Error cleaning up authorized_keys (exit {result.exited}): "
                    f"{result.stderr.strip()}"
                )
        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        pass
