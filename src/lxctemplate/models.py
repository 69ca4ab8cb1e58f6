"""Data types for the Proxmox VE API.

The pydantic models only declare the response fields the builder
reads; everything else in a response is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True)
class InstanceRef:
    """Identifies a container on the cluster."""

    node: str
    vmid: int
    pool: str | None = None

    def __str__(self) -> str:
        return f"{self.node}/{self.vmid}"


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StorageContent(_ApiModel):
    """One entry of ``GET /nodes/{node}/storage/{storage}/content``."""

    volid: str
    format: str = ""
    size: int = 0
    ctime: datetime = Field(default_factory=lambda: datetime.fromtimestamp(0, tz=timezone.utc))
    vmid: int | None = None
    content: str = ""

    @field_validator("ctime", mode="before")
    @classmethod
    def _epoch(cls, value: object) -> object:
        # Proxmox reports creation time as a unix timestamp
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return value

    @property
    def name(self) -> str:
        """File name part of the volume id (``local:backup/<name>``)."""
        return self.volid.split(":", 1)[-1].rsplit("/", 1)[-1]


class TaskStatus(_ApiModel):
    """Result of ``GET /nodes/{node}/tasks/{upid}/status``."""

    upid: str = ""
    status: str = ""
    exitstatus: str | None = None
    type: str = ""

    @property
    def finished(self) -> bool:
        return self.status == "stopped"

    @property
    def ok(self) -> bool:
        return self.finished and self.exitstatus == "OK"


class GuestInterface(_ApiModel):
    """One interface reported by ``GET /nodes/{node}/lxc/{vmid}/interfaces``."""

    name: str
    hwaddr: str = ""
    inet: str | None = None
    inet6: str | None = None

    @property
    def ipv4(self) -> str | None:
        """IPv4 address without the prefix length, if any."""
        if not self.inet:
            return None
        return self.inet.split("/", 1)[0]


class ContainerSummary(_ApiModel):
    """One entry of ``GET /nodes/{node}/lxc``."""

    vmid: int
    name: str = ""
    status: str = ""
