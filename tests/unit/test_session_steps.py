# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for the steps that work inside the running container."""

from __future__ import annotations

import asyncio

import pytest

from lxctemplate.communicator import CommandResult
from lxctemplate.context import Credentials, CredentialSource
from lxctemplate.errors import ConnectivityError, ProvisionError
from lxctemplate.hook import HOOK_PROVISION
from lxctemplate.models import GuestInterface, InstanceRef
from lxctemplate.pipeline import RunStatus
from lxctemplate.steps.cleanup_temp_keys import CleanupTempKeys
from lxctemplate.steps.connect import Connect
from lxctemplate.steps.provision import Provision

from fakes import FakeCommunicator, FakeHook, make_config, make_context


class TestConnect:
    def test_static_address(self, ctx, communicators):
        ctx.credentials = Credentials(CredentialSource.PASSWORD)

        asyncio.run(Connect().run(ctx))

        (comm,) = communicators
        assert comm.host == "192.168.1.50"
        assert comm.connected
        assert comm.kwargs["password"] == "changeme"
        assert comm.kwargs["user"] == "root"
        assert comm.kwargs["agent_auth"] is False
        assert ctx.comm is comm

    def test_agent_credentials(self, communicators):
        ctx = make_context(make_config(ssh_password=None, ssh_agent_auth=True))
        ctx.credentials = Credentials(CredentialSource.AGENT)

        asyncio.run(Connect().run(ctx))

        assert communicators[0].kwargs["agent_auth"] is True
        assert communicators[0].kwargs["password"] is None

    def test_dhcp_waits_for_address(self, client, communicators):
        ctx = make_context(make_config(provision_ip="dhcp", provision_gateway_ip=None), client)
        ctx.bind_instance(InstanceRef("pve", 118))
        client.interfaces = [
            [GuestInterface(name="lo", inet="127.0.0.1/8")],
            [GuestInterface(name="lo", inet="127.0.0.1/8"), GuestInterface(name="eth0", inet="10.0.0.7/24")],
        ]

        asyncio.run(Connect().run(ctx))

        assert communicators[0].host == "10.0.0.7"
        assert len(client.called("guest_interfaces")) == 2

    def test_dhcp_no_address(self, client, communicators):
        ctx = make_context(
            make_config(provision_ip="dhcp", provision_gateway_ip=None, ssh_timeout=0.05), client,
        )
        ctx.bind_instance(InstanceRef("pve", 118))
        client.interfaces = [[GuestInterface(name="eth0")]]

        with pytest.raises(ConnectivityError, match="Found no IP addresses"):
            asyncio.run(Connect().run(ctx))
        assert communicators == []

    def test_dhcp_without_container(self, client, communicators):
        ctx = make_context(make_config(provision_ip="dhcp", provision_gateway_ip=None), client)

        with pytest.raises(ConnectivityError, match="no container to connect to"):
            asyncio.run(Connect().run(ctx))
        assert communicators == []
        assert client.called("guest_interfaces") == []

    def test_cleanup_closes_session(self, ctx, communicators):
        step = Connect()
        asyncio.run(step.run(ctx))

        asyncio.run(step.cleanup(ctx, RunStatus.COMPLETED))

        assert communicators[0].closed

    def test_cleanup_without_session(self, ctx):
        asyncio.run(Connect().cleanup(ctx, RunStatus.HALTED))


class TestProvision:
    def test_runs_hook_with_generated_data(self, ctx):
        ctx.comm = FakeCommunicator()
        ctx.generated_data["InstanceID"] = 118

        asyncio.run(Provision().run(ctx))

        assert ctx.hook.calls == [(HOOK_PROVISION, {"InstanceID": 118})]

    def test_needs_session(self, ctx):
        with pytest.raises(ConnectivityError):
            asyncio.run(Provision().run(ctx))
        assert ctx.hook.calls == []

    def test_hook_failure_propagates(self):
        ctx = make_context(hook=FakeHook(ProvisionError("apt-get failed")))
        ctx.comm = FakeCommunicator()

        with pytest.raises(ProvisionError, match="apt-get failed"):
            asyncio.run(Provision().run(ctx))


class TestCleanupTempKeys:
    def _ephemeral(self, ctx):
        ctx.credentials = Credentials(
            CredentialSource.EPHEMERAL,
            public_key="ssh-rsa AAAA lxctemplate_abc",
            key_pair_name="lxctemplate_abc",
            clear_authorized_keys=True,
        )
        ctx.comm = FakeCommunicator()
        return ctx.comm

    def test_removes_key_from_both_files(self, ctx):
        comm = self._ephemeral(ctx)

        asyncio.run(CleanupTempKeys().run(ctx))

        assert comm.commands == [
            ("sed -i.bak '/ lxctemplate_abc$/d' ~/.ssh/authorized_keys; "
             "rm -f ~/.ssh/authorized_keys.bak", False),
            ("sudo sed -i.bak '/ lxctemplate_abc$/d' /root/.ssh/authorized_keys; "
             "sudo rm -f /root/.ssh/authorized_keys.bak", False),
        ]

    def test_failures_do_not_halt(self, ctx):
        comm = self._ephemeral(ctx)
        comm.results["sudo"] = CommandResult("sudo", 1, "", "sudo: not found")

        asyncio.run(CleanupTempKeys().run(ctx))

        (error,) = ctx.ui.of("error")
        assert "sudo: not found" in error

    def test_skipped_for_user_keys(self, ctx):
        ctx.credentials = Credentials(CredentialSource.PASSWORD)
        ctx.comm = FakeCommunicator()

        asyncio.run(CleanupTempKeys().run(ctx))

        assert ctx.comm.commands == []
