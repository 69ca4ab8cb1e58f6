# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: create and start the LXC container."""

from __future__ import annotations

import logging

from ..context import BuildContext
from ..errors import AllocationError, ResourceCreationError
from ..models import InstanceRef
from ..pipeline import RunStatus, StepAction
from ..proxmox_client import ProxmoxClient, ProxmoxError
from . import build_pipeline
from .constants import GENERATED_INSTANCE_ID, MIN_VMID, VMID_ALLOCATION_ATTEMPTS
from .helpers import container_params, destroy_instance

logger = logging.getLogger(__name__)


async def allocate_vmid(client: ProxmoxClient, attempts: int = VMID_ALLOCATION_ATTEMPTS) -> int:
    """Return one past the highest guest ID in use, but at least 100.

    Lookup failures are retried up to *attempts* times in total.

    Raises:
        AllocationError: Every attempt failed.
    """
    for n in range(1, attempts + 1):
        try:
            highest = await client.max_vmid()
        except ProxmoxError as e:
            logger.warning("Error getting max used VM ID: %s (attempt %d/%d)", e, n, attempts)
            continue
        return max(highest + 1, MIN_VMID)
    raise AllocationError("failed to get free VM ID")


@build_pipeline.step(order=200)
class StartContainer:
    """Create the container from the base template and start it.

    Sets ``ctx.instance``, which every later step and cleanup uses to
    find the container.  The handle is only bound once creation has
    succeeded, so a failed creation leaves nothing to clean up.
    """

    name = "start_container"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config
        client = ctx.client

        vmid = cfg.vmid
        if not vmid:
            ctx.info("No VM ID given, getting next free from Proxmox")
            vmid = await allocate_vmid(client)

        ctx.info(f"Creating LXC container {vmid}")
        params = container_params(cfg, vmid, ctx.credentials)
        try:
            upid = await client.create_lxc(cfg.node, params)
            await client.wait_for_task(cfg.node, upid, timeout=cfg.task_timeout)
        except ProxmoxError as e:
            raise ResourceCreationError(f"Error creating container {vmid}: {e}") from e

        ref = InstanceRef(node=cfg.node, vmid=vmid, pool=cfg.pool or None)
        ctx.bind_instance(ref)
        ctx.generated_data[GENERATED_INSTANCE_ID] = vmid

        ctx.info("Starting LXC container")
        try:
            upid = await client.start_lxc(ref)
            await client.wait_for_task(ref.node, upid, timeout=cfg.task_timeout)
        except ProxmoxError as e:
            raise ResourceCreationError(f"Error starting container {vmid}: {e}") from e

        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        await destroy_instance(ctx, status)
