# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Context dataclasses passed through the build pipeline."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import paramiko

from .communicator import SSHCommunicator
from .config import BuilderConfig
from .hook import Hook
from .models import InstanceRef
from .proxmox_client import ProxmoxClient
from .ui import Ui

logger = logging.getLogger(__name__)


class CredentialSource(enum.Enum):
    """How the SSH communicator authenticates to the container."""

    PASSWORD = "password"
    PRIVATE_KEY_FILE = "private_key_file"
    AGENT = "agent"
    EPHEMERAL = "ephemeral"


@dataclass
class Credentials:
    """SSH credentials chosen by the key pair step."""

    source: CredentialSource
    key: paramiko.PKey | None = None
    public_key: str = ""  # authorized_keys line
    key_pair_name: str = ""
    clear_authorized_keys: bool = False
    debug_key_path: str | None = None


@dataclass(frozen=True)
class BackupRecord:
    """The vzdump archive picked for conversion into a template."""

    volid: str
    name: str
    path: str
    extension: str
    created: datetime


@dataclass
class BuildContext:
    """Context passed through the build pipeline.

    Fields below the collaborators start out empty and are filled in
    as steps complete.  ``None`` always means "not produced yet".

    Steps should guard their own preconditions (e.g. return early from
    cleanup when ``instance`` is None).
    """

    config: BuilderConfig
    client: ProxmoxClient
    hook: Hook
    ui: Ui | None

    # Built up by pipeline steps
    credentials: Credentials | None = None
    instance: InstanceRef | None = None
    comm: SSHCommunicator | None = None
    backup: BackupRecord | None = None
    template_name: str | None = None
    generated_data: dict[str, Any] = field(default_factory=lambda: dict[str, Any]())

    # Run outcome
    error: BaseException | None = None
    succeeded: bool = False

    def bind_instance(self, ref: InstanceRef) -> None:
        """Record the created container; may only happen once per run."""
        if self.instance is not None:
            raise RuntimeError(f"Instance already bound to {self.instance}")
        self.instance = ref

    def info(self, msg: str) -> None:
        logger.debug(msg)
        if self.ui:
            self.ui.info(msg)

    def dim(self, msg: str) -> None:
        logger.debug(msg)
        if self.ui:
            self.ui.dim(msg)

    def warning(self, msg: str) -> None:
        logger.warning(msg)
        if self.ui:
            self.ui.warning(msg)

    def report_error(self, msg: str) -> None:
        logger.error(msg)
        if self.ui:
            self.ui.error(msg)
