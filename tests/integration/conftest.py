# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration for integration tests against a real Proxmox VE host.

These tests create and delete containers.  They only run when
``LXCTEMPLATE_TEST_CONFIG`` points at a build configuration for a
disposable node.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from lxctemplate.config import BuilderConfig, load_config

TEST_CONFIG = os.environ.get("LXCTEMPLATE_TEST_CONFIG", "")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless a test configuration is available."""
    if TEST_CONFIG:
        return
    skip = pytest.mark.skip(reason="set LXCTEMPLATE_TEST_CONFIG to run integration tests")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture(scope="session")
def build_config() -> BuilderConfig:
    path = Path(TEST_CONFIG)
    if not path.is_file():
        pytest.fail(f"LXCTEMPLATE_TEST_CONFIG={TEST_CONFIG!r} is not a file")
    return load_config(path)
