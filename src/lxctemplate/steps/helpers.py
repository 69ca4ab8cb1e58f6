# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Helpers shared by the build steps."""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable
from typing import Any

from ..config import BuilderConfig
from ..context import BuildContext, Credentials
from ..models import StorageContent
from ..pipeline import RunStatus
from ..proxmox_client import ProxmoxError
from .constants import BACKUP_NAME_PATTERN, CONTENT_TEMPLATE


def container_params(
    config: BuilderConfig,
    vmid: int,
    credentials: Credentials | None,
) -> dict[str, Any]:
    """Parameters for ``POST /nodes/{node}/lxc``.

    Args:
        config: Build configuration.
        vmid: ID the container will be created with.
        credentials: SSH credentials; a public key, if present, is
            installed for root.

    Returns:
        Form fields for the create call.
    """
    net = ["name=eth0", f"bridge={config.bridge}"]
    if config.uses_dhcp:
        net.append("ip=dhcp")
    else:
        net.append(f"ip={config.provision_ip}/{config.provision_netmask}")
        net.append(f"gw={config.provision_gateway_ip}")
    net += ["firewall=0", f"hwaddr={config.provision_mac}"]
    net0 = ",".join(net)
    params: dict[str, Any] = {
        "vmid": vmid,
        "ostemplate": f"{config.template_storage_pool}:{CONTENT_TEMPLATE}/{config.template_file}",
        "hostname": config.hostname or f"lxctemplate-{vmid}",
        "storage": config.filesystem_storage,
        "rootfs": f"{config.filesystem_storage}:{config.filesystem_size}",
        "memory": config.memory,
        "cores": config.cores,
        "unprivileged": int(config.unprivileged),
        "force": 1,
        "net0": net0,
    }

    if config.ssh_password:
        params["password"] = config.ssh_password
    if credentials is not None and credentials.public_key:
        params["ssh-public-keys"] = credentials.public_key
    if config.unprivileged:
        # Needed for systemd and nested containers in unprivileged mode
        params["features"] = "keyctl=1,nesting=1"
    if config.pool:
        params["pool"] = config.pool

    return params


def select_latest_backup(
    entries: Iterable[StorageContent], vmid: int
) -> StorageContent | None:
    """Pick the newest vzdump archive of container *vmid*.

    Entries sharing the newest creation time resolve to whichever was
    listed first, so the choice is only as stable as the listing order.
    """
    pattern = re.compile(BACKUP_NAME_PATTERN.format(vmid=vmid))
    latest: StorageContent | None = None
    for entry in entries:
        if not pattern.match(entry.name):
            continue
        if latest is None or entry.ctime > latest.ctime:
            latest = entry
    return latest


def strip_extensions(filename: str, count: int = 2) -> str:
    """Remove up to *count* extensions from the base name of *filename*."""
    name = posixpath.basename(filename)
    for _ in range(count):
        name = posixpath.splitext(name)[0]
    return name


def template_file_name(template_file: str, suffix: str, extension: str) -> str:
    """Name for the uploaded template.

    ``ubuntu-base.tar.gz`` with suffix ``v2`` and archive extension
    ``tar.gz`` becomes ``ubuntu-base_v2.tar.gz``.
    """
    stem = strip_extensions(template_file)
    extension = extension.lstrip(".")
    if not extension:
        # Keep whatever the source template had
        base = posixpath.basename(template_file)
        return f"{stem}_{suffix}{base[len(stem):]}"
    return f"{stem}_{suffix}.{extension}"


async def destroy_instance(ctx: BuildContext, status: RunStatus) -> None:
    """Stop and delete the build container, if there is one to delete.

    Safe to call from several cleanups and more than once: a container
    that is already gone is not an error.  Failures are reported, never
    raised.
    """
    ref = ctx.instance
    if ref is None:
        return

    # After a successful run the container was consumed by the
    # conversion and may no longer exist under this ID
    if ctx.succeeded or status is RunStatus.COMPLETED:
        return

    timeout = ctx.config.task_timeout
    try:
        containers = await ctx.client.list_containers(ref.node)
    except ProxmoxError as e:
        ctx.report_error(
            f"Could not look up container {ref.vmid}. "
            f"Please delete it manually if it still exists: {e}"
        )
        return

    current = next((c for c in containers if c.vmid == ref.vmid), None)
    if current is None:
        return

    if current.status == "running":
        ctx.info("Stopping LXC container")
        try:
            upid = await ctx.client.stop_lxc(ref)
            await ctx.client.wait_for_task(ref.node, upid, timeout=timeout)
        except ProxmoxError as e:
            ctx.report_error(
                f"Error stopping container {ref.vmid}. Please stop and delete it manually: {e}"
            )

    ctx.info("Deleting LXC container")
    try:
        upid = await ctx.client.delete_lxc(ref)
        await ctx.client.wait_for_task(ref.node, upid, timeout=timeout)
    except ProxmoxError as e:
        ctx.report_error(f"Error deleting container {ref.vmid}. Please delete it manually: {e}")
