"""Provisioning hook: hands the connected container to provisioners.

The builder does not know what provisioning means; it calls the hook
with :data:`HOOK_PROVISION` once the container is reachable.  Callers
embedding the builder can supply their own :class:`Hook`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from .communicator import SSHCommunicator
from .config import ShellProvisionerConfig
from .errors import ProvisionError
from .ui import Ui

logger = logging.getLogger(__name__)

HOOK_PROVISION = "lxctemplate_provision"


class Hook(Protocol):
    async def run(
        self,
        name: str,
        ui: Ui | None,
        comm: SSHCommunicator,
        data: dict[str, Any],
    ) -> None: ...


class ShellHook:
    """Run the configured inline shell provisioners in order."""

    def __init__(self, provisioners: Sequence[ShellProvisionerConfig]):
        self._provisioners = list(provisioners)

    async def run(
        self,
        name: str,
        ui: Ui | None,
        comm: SSHCommunicator,
        data: dict[str, Any],
    ) -> None:
        if name != HOOK_PROVISION:
            return

        for index, prov in enumerate(self._provisioners, start=1):
            if ui:
                ui.info(f"Running shell provisioner {index}/{len(self._provisioners)}")
            for command in prov.inline:
                # Expose build data as {{ placeholders }}, e.g. {{InstanceID}}
                for key, value in data.items():
                    command = command.replace("{{" + key + "}}", str(value))
                if ui:
                    ui.dim(f"$ {command}")
                result = await comm.run(command, sudo=prov.use_sudo)
                for line in result.stdout.splitlines():
                    if ui:
                        ui.dim(line)
                if not result.ok:
                    logger.debug("Provisioner stderr: %s", result.stderr)
                    raise ProvisionError(
                        f"Command {command!r} exited with status {result.exited}: "
                        f"{result.stderr.strip()}"
                    )
