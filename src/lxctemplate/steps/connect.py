# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: open an SSH session to the running container."""

from __future__ import annotations

import asyncio

from ..communicator import SSHCommunicator
from ..context import BuildContext, CredentialSource
from ..errors import ConnectivityError
from ..pipeline import RunStatus, StepAction
from ..proxmox_client import ProxmoxError
from . import build_pipeline

_ADDRESS_POLL_INTERVAL = 2.0


async def _container_host(ctx: BuildContext) -> str:
    """The configured SSH host, else the container's first IPv4 address."""
    if ctx.config.ssh_host:
        return ctx.config.ssh_host

    if ctx.instance is None:
        raise ConnectivityError("no container to connect to")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + ctx.config.ssh_timeout
    while True:
        try:
            interfaces = await ctx.client.guest_interfaces(ctx.instance)
        except ProxmoxError as e:
            raise ConnectivityError(f"Could not read container interfaces: {e}") from e

        for iface in interfaces:
            if iface.name == "lo" or not iface.ipv4 or iface.ipv4.startswith("127."):
                continue
            return iface.ipv4

        # DHCP may not have finished yet
        if loop.time() + _ADDRESS_POLL_INTERVAL >= deadline:
            raise ConnectivityError("Found no IP addresses on container")
        await asyncio.sleep(_ADDRESS_POLL_INTERVAL)


@build_pipeline.step(order=300)
class Connect:
    """Wait for SSH to come up in the container and connect to it."""

    name = "connect"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config
        creds = ctx.credentials
        host = await _container_host(ctx)

        comm = SSHCommunicator(
            host,
            port=cfg.ssh_port,
            user=cfg.ssh_username,
            password=cfg.ssh_password or None,
            pkey=creds.key if creds else None,
            agent_auth=creds is not None and creds.source is CredentialSource.AGENT,
            timeout=cfg.ssh_timeout,
        )
        ctx.info(f"Waiting for SSH to become available on {host}...")
        await comm.connect()
        ctx.comm = comm
        ctx.info("Connected to SSH!")
        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        if ctx.comm is None:
            return
        await ctx.comm.close()
