# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: publish the backup archive as a container template."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path

import paramiko

from ..communicator import FileTransfer
from ..config import BuilderConfig
from ..context import BuildContext
from ..errors import ConnectivityError, ConversionError, NotFoundError
from ..pipeline import RunStatus, StepAction
from ..proxmox_client import ProxmoxError
from . import build_pipeline
from .constants import GENERATED_TEMPLATE_NAME
from .helpers import destroy_instance, template_file_name

# SFTP runs against the node's own SSH daemon
_SSH_PORT = 22


def _open_transfer(cfg: BuilderConfig) -> FileTransfer:
    return FileTransfer(cfg.proxmox_host, cfg.api_user, cfg.password, port=_SSH_PORT)


def _download(cfg: BuilderConfig, remote_path: str, local_path: Path) -> None:
    with _open_transfer(cfg) as transfer:
        transfer.download(remote_path, local_path)


def _remove(cfg: BuilderConfig, remote_path: str) -> None:
    with _open_transfer(cfg) as transfer:
        transfer.remove(remote_path)


@build_pipeline.step(order=800)
class SaveToTemplate:
    """Copy the backup into the template pool under its final name.

    The archive is fetched over SFTP from the node, uploaded as
    ``vztmpl`` content, and then both the archive and the build
    container are removed.  The template name is recorded for the
    artifact.
    """

    name = "save_to_template"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config
        client = ctx.client
        ref = ctx.instance
        backup = ctx.backup
        if ref is None or backup is None:
            raise NotFoundError("could not find backup file to save as template")

        filename = template_file_name(cfg.template_file, cfg.template_suffix, backup.extension)

        with tempfile.TemporaryDirectory(prefix="vztmpl") as staging:
            local_path = Path(staging) / backup.name

            ctx.info(f"Establishing SFTP connection with [{cfg.api_user}] at [{cfg.proxmox_host}] for template file...")
            ctx.info("Transferring vzdump template backup file to local path...")
            try:
                await asyncio.to_thread(_download, cfg, backup.path, local_path)
            except (paramiko.SSHException, OSError) as e:
                raise ConnectivityError(f"error transferring backup {backup.path}: {e}") from e

            ctx.info(f"Uploading vzdump template backup {filename} to {cfg.template_storage_pool}...")
            try:
                upid = await client.upload_template(
                    ref.node, cfg.template_storage_pool, filename, local_path,
                )
                await client.wait_for_task(ref.node, upid, timeout=cfg.backup_timeout)
            except ProxmoxError as e:
                raise ConversionError(f"error uploading template {filename}: {e}") from e

        ctx.template_name = filename
        ctx.generated_data[GENERATED_TEMPLATE_NAME] = filename

        ctx.dim(f"Removing backup {backup.path}")
        try:
            await asyncio.to_thread(_remove, cfg, backup.path)
        except (paramiko.SSHException, OSError) as e:
            ctx.warning(f"Could not remove backup {backup.path}: {e}")

        ctx.info("Finished. Deleting LXC container")
        try:
            if await client.instance_exists(ref):
                upid = await client.delete_lxc(ref)
                await client.wait_for_task(ref.node, upid, timeout=cfg.task_timeout)
        except ProxmoxError as e:
            ctx.report_error(f"Error deleting container {ref.vmid}. Please delete it manually: {e}")

        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        await destroy_instance(ctx, status)
