"""The result of a successful build."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .proxmox_client import ProxmoxClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """A container template produced by the builder.

    ``state_data`` carries the build's generated data for consumers
    further down the line, under the ``generated_data`` key.
    """

    builder_id: str
    node: str
    storage: str
    template_name: str
    state_data: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        """Volume id of the template, e.g. ``local:vztmpl/ubuntu_v2.tar.gz``."""
        return f"{self.storage}:vztmpl/{self.template_name}"

    def files(self) -> list[str]:
        return [self.id]

    def state(self, name: str) -> Any:
        return self.state_data.get(name)

    def __str__(self) -> str:
        return f"A template was created: {self.id}"

    async def destroy(self, client: ProxmoxClient) -> None:
        """Delete the template from its storage pool."""
        logger.info("Destroying template: %s", self.id)
        await client.delete_storage_item(self.node, self.storage, self.id)
