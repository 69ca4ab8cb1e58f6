# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Constants shared across the build steps."""

from __future__ import annotations

# Attempts at finding a free container ID before giving up
VMID_ALLOCATION_ATTEMPTS = 5

# Proxmox reserves guest IDs below 100
MIN_VMID = 100

# Keys published to provisioners and the artifact as generated data
GENERATED_INSTANCE_ID = "InstanceID"
GENERATED_TEMPLATE_NAME = "TemplateName"
GENERATED_DATA_KEYS = (GENERATED_INSTANCE_ID, GENERATED_TEMPLATE_NAME)

# Storage content types
CONTENT_BACKUP = "backup"
CONTENT_TEMPLATE = "vztmpl"

# vzdump settings for turning the container into an archive
VZDUMP_MODE = "stop"
VZDUMP_COMPRESS = "gzip"

# Seconds a shutdown wait outlasts the shutdown's own timeout
SHUTDOWN_WAIT_MARGIN = 10

# vzdump archive names look like vzdump-lxc-<vmid>-2024_01_31-12_00_00.tar.gz
BACKUP_NAME_PATTERN = r"vzdump-lxc-{vmid}-.*?\.tar\.gz"

# Comment prefix of generated key pairs; also used to find them again
# in authorized_keys
KEY_PAIR_PREFIX = "lxctemplate"

# Size of generated RSA keys
RSA_KEY_BITS = 4096
