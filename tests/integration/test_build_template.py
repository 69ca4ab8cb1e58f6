# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build a real template and remove it again."""

from __future__ import annotations

import asyncio

import pytest

from lxctemplate import Builder
from lxctemplate.pipeline import RunStatus
from lxctemplate.proxmox_client import ProxmoxClient
from lxctemplate.ui import ConsoleUi

pytestmark = pytest.mark.integration


async def _build_and_destroy(config):
    builder = Builder()
    builder.prepare(config)
    artifact = await builder.run(ConsoleUi(prefix="integration"))

    client = ProxmoxClient.from_config(config)
    try:
        await client.login()
        names = [
            c.name for c in await client.list_storage_content(
                config.node, config.template_storage_pool, "vztmpl",
            )
        ]
        await artifact.destroy(client)
    finally:
        await client.close()
    return builder, artifact, names


def test_build_template(build_config):
    builder, artifact, names = asyncio.run(_build_and_destroy(build_config))

    assert builder.last_result.status is RunStatus.COMPLETED
    assert artifact.template_name in names
    assert artifact.state("generated_data")["TemplateName"] == artifact.template_name
