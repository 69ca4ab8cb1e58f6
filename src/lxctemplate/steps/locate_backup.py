# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: find the archive the previous step produced."""

from __future__ import annotations

import posixpath

from ..context import BackupRecord, BuildContext
from ..errors import ConnectivityError, NotFoundError
from ..pipeline import RunStatus, StepAction
from ..proxmox_client import ProxmoxError
from . import build_pipeline
from .constants import CONTENT_BACKUP
from .helpers import select_latest_backup


def _archive_extension(fmt: str, name: str) -> str:
    """``tar.gz`` for ``vzdump-lxc-100-...tar.gz``."""
    if fmt:
        return fmt
    stem, last = posixpath.splitext(name)
    _, prev = posixpath.splitext(stem)
    return (prev + last).lstrip(".")


@build_pipeline.step(order=700)
class LocateBackup:
    """Pick the newest backup of the container from the backup pool."""

    name = "locate_backup"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config
        client = ctx.client
        ref = ctx.instance
        if ref is None:
            raise NotFoundError("error finding latest backup: no container")

        ctx.info(f"Finding latest backup for VM ID {ref.vmid} in storage {cfg.backup_storage_pool}")
        try:
            entries = await client.list_storage_content(
                ref.node, cfg.backup_storage_pool, CONTENT_BACKUP,
            )
        except ProxmoxError as e:
            raise ConnectivityError(f"error finding latest backup: {e}") from e

        latest = select_latest_backup(entries, ref.vmid)
        if latest is None:
            raise NotFoundError(f"could not find backup file for LXC container {ref.vmid}")

        try:
            detail = await client.get_storage_item(ref.node, cfg.backup_storage_pool, latest.volid)
        except ProxmoxError as e:
            raise ConnectivityError(f"error finding latest backup: {e}") from e

        path = detail.get("path") or ""
        if not path:
            raise NotFoundError(f"could not find backup file for LXC container {ref.vmid}")

        ctx.backup = BackupRecord(
            volid=latest.volid,
            name=latest.name,
            path=path,
            extension=_archive_extension(latest.format, latest.name),
            created=latest.ctime,
        )
        ctx.info(f"Found backup at {path}")
        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        pass
