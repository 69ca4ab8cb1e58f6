# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build Proxmox VE container templates from a provisioned LXC container."""

__version__ = "0.1.0"

BUILDER_ID = "proxmox-lxc.builder"

from .builder import Builder  # noqa: E402

__all__ = ["BUILDER_ID", "Builder", "__version__"]
