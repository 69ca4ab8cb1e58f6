# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: stop the container and dump it to a backup archive."""

from __future__ import annotations

from ..context import BuildContext
from ..errors import ConversionError
from ..pipeline import RunStatus, StepAction
from ..proxmox_client import ProxmoxError
from . import build_pipeline
from .constants import SHUTDOWN_WAIT_MARGIN, VZDUMP_COMPRESS, VZDUMP_MODE
from .helpers import destroy_instance


@build_pipeline.step(order=600)
class ConvertToBackup:
    """Shut the container down and vzdump it into the backup pool.

    Each stage fails with its own message so a halted build says
    whether stopping, starting the dump or the dump itself went wrong.
    """

    name = "convert_to_backup"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config
        client = ctx.client
        ref = ctx.instance
        if ref is None:
            raise ConversionError("error converting container to template, no container")

        ctx.info("Stopping LXC container")
        try:
            upid = await client.shutdown_lxc(ref, timeout=int(cfg.task_timeout))
            await client.wait_for_task(
                ref.node, upid, timeout=cfg.task_timeout + SHUTDOWN_WAIT_MARGIN,
            )
        except ProxmoxError as e:
            raise ConversionError(
                f"error converting container to template, could not stop: {e}"
            ) from e

        ctx.info("Converting LXC container to backup")
        params = {
            "vmid": ref.vmid,
            "mode": VZDUMP_MODE,
            "compress": VZDUMP_COMPRESS,
            "remove": int(cfg.prune_backups),
            "storage": cfg.backup_storage_pool,
        }
        try:
            upid = await client.vzdump(ref.node, params)
        except ProxmoxError as e:
            raise ConversionError(
                f"error converting container to template, failed to create backup: {e}"
            ) from e

        try:
            await client.wait_for_task(ref.node, upid, timeout=cfg.backup_timeout)
        except ProxmoxError as e:
            raise ConversionError(
                f"error converting container to template, failed to wait process completion: {e}"
            ) from e

        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        await destroy_instance(ctx, status)
