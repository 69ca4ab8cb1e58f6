# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration for unit tests."""

from __future__ import annotations

import pytest

from fakes import FakeCommunicator, FakeProxmoxClient, FakeUi, make_config, make_context


@pytest.fixture(autouse=True)
def _no_proxmox_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's PROXMOX_* variables out of config defaults."""
    for name in ("PROXMOX_URL", "PROXMOX_USERNAME", "PROXMOX_PASSWORD", "PROXMOX_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def client() -> FakeProxmoxClient:
    return FakeProxmoxClient()


@pytest.fixture
def ui() -> FakeUi:
    return FakeUi()


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def ctx(config, client, ui):
    return make_context(config, client, ui=ui)


@pytest.fixture
def communicators(monkeypatch: pytest.MonkeyPatch) -> list[FakeCommunicator]:
    """Make the connect step hand out fake SSH sessions."""
    from lxctemplate.steps import connect

    created: list[FakeCommunicator] = []

    def factory(host, **kwargs):
        comm = FakeCommunicator(host, **kwargs)
        created.append(comm)
        return comm

    monkeypatch.setattr(connect, "SSHCommunicator", factory)
    monkeypatch.setattr(connect, "_ADDRESS_POLL_INTERVAL", 0.01)
    return created


@pytest.fixture
def transfers(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, str]]:
    """Replace SFTP access to the node with a record of what was asked."""
    from lxctemplate.steps import save_to_template

    log: list[tuple[str, str]] = []

    def download(cfg, remote_path, local_path):
        log.append(("download", remote_path))
        local_path.write_bytes(b"archive")

    def remove(cfg, remote_path):
        log.append(("remove", remote_path))

    monkeypatch.setattr(save_to_template, "_download", download)
    monkeypatch.setattr(save_to_template, "_remove", remove)
    return log
