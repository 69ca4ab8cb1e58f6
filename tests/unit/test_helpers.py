# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for step helpers: container parameters, backup selection, naming, teardown."""

from __future__ import annotations

import asyncio

import pytest

from lxctemplate.context import Credentials, CredentialSource
from lxctemplate.models import InstanceRef, StorageContent
from lxctemplate.pipeline import RunStatus
from lxctemplate.steps.helpers import (
    container_params,
    destroy_instance,
    select_latest_backup,
    strip_extensions,
    template_file_name,
)

from fakes import make_config


def _backup(name: str, ctime: int) -> StorageContent:
    return StorageContent(volid=f"local:backup/{name}", format="tar.gz", ctime=ctime)


class TestContainerParams:
    def test_static_address(self):
        params = container_params(make_config(), 118, None)

        assert params["vmid"] == 118
        assert params["ostemplate"] == "local:vztmpl/ubuntu-base.tar.gz"
        assert params["hostname"] == "lxctemplate-118"
        assert params["rootfs"] == "local-lvm:8"
        assert params["memory"] == 512
        assert params["cores"] == 1
        assert params["unprivileged"] == 0
        assert params["password"] == "changeme"
        assert params["net0"] == (
            "name=eth0,bridge=vmbr0,ip=192.168.1.50/24,gw=192.168.1.1,"
            "firewall=0,hwaddr=1e:eb:08:d1:e7:e2"
        )
        assert "features" not in params
        assert "ssh-public-keys" not in params
        assert "pool" not in params

    def test_dhcp(self):
        cfg = make_config(provision_ip="dhcp", provision_gateway_ip=None)

        net0 = container_params(cfg, 118, None)["net0"]

        assert "ip=dhcp" in net0
        assert "gw=" not in net0

    def test_public_key_pool_and_unprivileged(self):
        cfg = make_config(unprivileged=True, pool="templates", hostname="builder")
        creds = Credentials(CredentialSource.EPHEMERAL, public_key="ssh-rsa AAAA lxctemplate_x")

        params = container_params(cfg, 200, creds)

        assert params["ssh-public-keys"] == "ssh-rsa AAAA lxctemplate_x"
        assert params["features"] == "keyctl=1,nesting=1"
        assert params["unprivileged"] == 1
        assert params["pool"] == "templates"
        assert params["hostname"] == "builder"


class TestSelectLatestBackup:
    def test_newest_wins(self):
        a = _backup("vzdump-lxc-118-2026_10_18-10_00_00.tar.gz", 1)
        b = _backup("vzdump-lxc-118-2026_10_18-12_00_00.tar.gz", 3)
        c = _backup("vzdump-lxc-118-2026_10_18-11_00_00.tar.gz", 2)

        assert select_latest_backup([a, b, c], 118) is b

    def test_other_containers_ignored(self):
        mine = _backup("vzdump-lxc-118-2026_10_18-10_00_00.tar.gz", 1)
        other = _backup("vzdump-lxc-119-2026_10_18-12_00_00.tar.gz", 5)
        prefix = _backup("vzdump-lxc-1180-2026_10_18-12_00_00.tar.gz", 6)
        qemu = _backup("vzdump-qemu-118-2026_10_18-12_00_00.vma.zst", 7)

        assert select_latest_backup([mine, other, prefix, qemu], 118) is mine

    def test_tie_goes_to_first_listed(self):
        first = _backup("vzdump-lxc-118-a.tar.gz", 5)
        second = _backup("vzdump-lxc-118-b.tar.gz", 5)

        assert select_latest_backup([first, second], 118) is first

    def test_none_found(self):
        assert select_latest_backup([], 118) is None
        assert select_latest_backup([_backup("vzdump-lxc-1-x.tar.gz", 1)], 118) is None


class TestNaming:
    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("ubuntu-base.tar.gz", "ubuntu-base"),
            ("debian-12-standard_12.2-1_amd64.tar.zst", "debian-12-standard_12.2-1_amd64"),
            ("local:vztmpl/alpine.tar.xz", "alpine"),
            ("plain", "plain"),
        ],
    )
    def test_strip_extensions(self, filename, expected):
        assert strip_extensions(filename) == expected

    def test_template_file_name(self):
        assert template_file_name("ubuntu-base.tar.gz", "v2", "tar.gz") == "ubuntu-base_v2.tar.gz"

    def test_template_file_name_uses_archive_extension(self):
        assert (
            template_file_name("debian-12.tar.zst", "nginx", ".tar.gz")
            == "debian-12_nginx.tar.gz"
        )

    def test_template_file_name_without_extension(self):
        assert template_file_name("alpine.tar.xz", "v1", "") == "alpine_v1.tar.xz"


class TestDestroyInstance:
    def test_no_instance(self, ctx, client):
        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))
        assert client.calls == []

    def test_running_container_is_stopped_and_deleted(self, ctx, client):
        client.containers[118] = "running"
        ctx.bind_instance(InstanceRef("pve", 118))

        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))

        assert client.call_names == [
            "list_containers",
            "stop_lxc", "wait_for_task",
            "delete_lxc", "wait_for_task",
        ]
        assert 118 not in client.containers

    def test_stopped_container_is_only_deleted(self, ctx, client):
        client.containers[118] = "stopped"
        ctx.bind_instance(InstanceRef("pve", 118))

        asyncio.run(destroy_instance(ctx, RunStatus.CANCELLED))

        assert "stop_lxc" not in client.call_names
        assert client.called("delete_lxc") == [(InstanceRef("pve", 118),)]

    def test_idempotent(self, ctx, client):
        client.containers[118] = "running"
        ctx.bind_instance(InstanceRef("pve", 118))

        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))
        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))

        assert len(client.called("delete_lxc")) == 1
        assert ctx.ui.of("error") == []

    def test_skipped_after_success(self, ctx, client):
        client.containers[118] = "running"
        ctx.bind_instance(InstanceRef("pve", 118))
        ctx.succeeded = True

        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))
        asyncio.run(destroy_instance(ctx, RunStatus.COMPLETED))

        assert client.calls == []

    def test_failures_are_reported_not_raised(self, ctx, client):
        client.containers[118] = "running"
        client.fail("stop_lxc")
        client.fail("delete_lxc")
        ctx.bind_instance(InstanceRef("pve", 118))

        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))

        errors = ctx.ui.of("error")
        assert len(errors) == 2
        assert "Please stop and delete it manually" in errors[0]
        assert "Please delete it manually" in errors[1]

    def test_lookup_failure_is_reported(self, ctx, client):
        client.fail("list_containers")
        ctx.bind_instance(InstanceRef("pve", 118))

        asyncio.run(destroy_instance(ctx, RunStatus.HALTED))

        assert "delete_lxc" not in client.call_names
        assert "Could not look up container 118" in ctx.ui.of("error")[0]
