"""High-level Proxmox VE REST API client.

This module provides a typed async client for the parts of the Proxmox
VE API the builder uses: container lifecycle, vzdump backups, storage
content and task polling.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import IO, Any
from urllib.parse import quote

import httpx

from .models import ContainerSummary, GuestInterface, InstanceRef, StorageContent, TaskStatus

logger = logging.getLogger(__name__)


class ProxmoxError(Exception):
    """Error from the Proxmox API."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class ProxmoxClient:
    """Async client for the Proxmox VE API.

    Authenticates either with an API token (``user@realm!id=secret``)
    or with a username/password ticket obtained by :meth:`login`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        username: str = "",
        password: str = "",
        token: str = "",
        verify: bool = True,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._token = token
        self._verify = verify
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._csrf_token: str | None = None

    @classmethod
    def from_config(cls, config: "BuilderConfig") -> "ProxmoxClient":
        """Build a client from the builder configuration."""
        return cls(
            config.proxmox_url,
            username=config.username,
            password=config.password,
            token=config.token,
            verify=not config.insecure_skip_tls_verify,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {}
            if self._token:
                headers["Authorization"] = f"PVEAPIToken={self._token}"
            self._client = httpx.AsyncClient(
                transport=self._transport,
                base_url=self._base_url,
                headers=headers,
                verify=self._verify,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Make request and unwrap the Proxmox response envelope.

        Proxmox wraps all responses in ``{"data": <actual data>}``.
        Errors come back as a non-2xx status whose reason phrase holds
        the message, sometimes with per-parameter details in
        ``{"errors": {...}}``.
        """
        client = await self._get_client()
        headers = kwargs.pop("headers", {})
        if method != "GET" and self._csrf_token:
            headers["CSRFPreventionToken"] = self._csrf_token

        try:
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise ProxmoxError(f"{method} {path}: {e}") from e

        if response.is_error:
            message = response.reason_phrase or f"HTTP {response.status_code}"
            try:
                details = response.json().get("errors")
            except ValueError:
                details = None
            if details:
                message = f"{message}: {details}"
            raise ProxmoxError(f"{method} {path}: {message}", response.status_code)

        return response.json().get("data")

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET request."""
        return await self._request("GET", path, params=params)

    async def post(self, path: str, data: dict[str, Any] | None = None) -> Any:
        """POST request with a form-encoded body."""
        return await self._request("POST", path, data=data)

    async def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """DELETE request."""
        return await self._request("DELETE", path, params=params)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def login(self) -> None:
        """Obtain an authentication ticket.

        Does nothing when the client was configured with an API token.
        """
        if self._token:
            return
        data = await self.post(
            "/access/ticket",
            {"username": self._username, "password": self._password},
        )
        if not data or "ticket" not in data:
            raise ProxmoxError("Login did not return a ticket")
        client = await self._get_client()
        client.cookies.set("PVEAuthCookie", data["ticket"])
        self._csrf_token = data.get("CSRFPreventionToken")
        logger.debug("Logged in to %s as %s", self._base_url, self._username)

    async def is_available(self) -> bool:
        """Check if the API is reachable and the session is valid.

        Returns:
            True if Proxmox answered the version query.
        """
        try:
            await self.get("/version")
            return True
        except ProxmoxError:
            return False

    # -------------------------------------------------------------------------
    # Containers
    # -------------------------------------------------------------------------

    async def max_vmid(self) -> int:
        """Highest guest ID in use across the cluster (0 if none)."""
        resources = await self.get("/cluster/resources", {"type": "vm"})
        return max((int(r["vmid"]) for r in resources or [] if "vmid" in r), default=0)

    async def list_containers(self, node: str) -> list[ContainerSummary]:
        """List the containers on *node*."""
        data = await self.get(f"/nodes/{node}/lxc")
        return [ContainerSummary.model_validate(item) for item in data or []]

    async def instance_exists(self, ref: InstanceRef) -> bool:
        """Check whether the container still exists on its node."""
        return any(c.vmid == ref.vmid for c in await self.list_containers(ref.node))

    async def create_lxc(self, node: str, params: dict[str, Any]) -> str:
        """Create a container. Returns the task UPID."""
        return await self.post(f"/nodes/{node}/lxc", params)

    async def start_lxc(self, ref: InstanceRef) -> str:
        """Start a container. Returns the task UPID."""
        return await self.post(f"/nodes/{ref.node}/lxc/{ref.vmid}/status/start")

    async def stop_lxc(self, ref: InstanceRef) -> str:
        """Stop a container immediately. Returns the task UPID."""
        return await self.post(f"/nodes/{ref.node}/lxc/{ref.vmid}/status/stop")

    async def shutdown_lxc(self, ref: InstanceRef, timeout: int = 60) -> str:
        """Gracefully shut down a container. Returns the task UPID."""
        return await self.post(
            f"/nodes/{ref.node}/lxc/{ref.vmid}/status/shutdown",
            {"timeout": timeout},
        )

    async def delete_lxc(self, ref: InstanceRef) -> str:
        """Delete a stopped container. Returns the task UPID."""
        return await self.delete(f"/nodes/{ref.node}/lxc/{ref.vmid}", {"purge": 1})

    async def guest_interfaces(self, ref: InstanceRef) -> list[GuestInterface]:
        """Network interfaces as seen from inside the container."""
        data = await self.get(f"/nodes/{ref.node}/lxc/{ref.vmid}/interfaces")
        return [GuestInterface.model_validate(item) for item in data or []]

    # -------------------------------------------------------------------------
    # Backups and storage
    # -------------------------------------------------------------------------

    async def vzdump(self, node: str, params: dict[str, Any]) -> str:
        """Start a vzdump backup. Returns the task UPID."""
        return await self.post(f"/nodes/{node}/vzdump", params)

    async def list_storage_content(
        self, node: str, storage: str, content: str | None = None
    ) -> list[StorageContent]:
        """List volumes in a storage pool, optionally filtered by content type."""
        params = {"content": content} if content else None
        data = await self.get(f"/nodes/{node}/storage/{storage}/content", params)
        return [StorageContent.model_validate(item) for item in data or []]

    async def get_storage_item(self, node: str, storage: str, volid: str) -> dict[str, Any]:
        """Get details (including the absolute ``path``) of one volume."""
        data = await self.get(
            f"/nodes/{node}/storage/{storage}/content/{quote(volid, safe='')}"
        )
        return data or {}

    async def upload_template(
        self, node: str, storage: str, filename: str, source: Path | IO[bytes]
    ) -> str | None:
        """Upload a container template to a storage pool.

        Returns the task UPID, or None on Proxmox versions that finish
        the upload synchronously.
        """
        if isinstance(source, Path):
            with source.open("rb") as fh:
                return await self._upload(node, storage, filename, fh)
        return await self._upload(node, storage, filename, source)

    async def _upload(self, node: str, storage: str, filename: str, fh: IO[bytes]) -> str | None:
        return await self._request(
            "POST",
            f"/nodes/{node}/storage/{storage}/upload",
            data={"content": "vztmpl"},
            files={"filename": (filename, fh, "application/octet-stream")},
            timeout=None,
        )

    async def delete_storage_item(self, node: str, storage: str, volid: str) -> str | None:
        """Delete a volume from a storage pool."""
        return await self.delete(
            f"/nodes/{node}/storage/{storage}/content/{quote(volid, safe='')}"
        )

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def task_status(self, node: str, upid: str) -> TaskStatus:
        """Get the status of a task."""
        # The UPID contains ':' and must be escaped as a path segment
        data = await self.get(f"/nodes/{node}/tasks/{quote(upid, safe='')}/status")
        return TaskStatus.model_validate(data or {})

    async def wait_for_task(
        self,
        node: str,
        upid: str | None,
        *,
        timeout: float = 60.0,
        poll_interval: float = 1.0,
    ) -> TaskStatus | None:
        """Wait for a task to stop and check it succeeded.

        Args:
            node: Node the task runs on.
            upid: Task id; None (a synchronous call) returns immediately.
            timeout: Seconds to wait before giving up.
            poll_interval: Seconds between status polls.

        Raises:
            ProxmoxError: The task failed or did not finish in time.
        """
        if not upid:
            return None

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            status = await self.task_status(node, upid)
            if status.finished:
                if not status.ok:
                    raise ProxmoxError(f"Task {upid} failed: {status.exitstatus}")
                return status
            if loop.time() >= deadline:
                raise ProxmoxError(f"Task {upid} timed out after {timeout:g}s")
            await asyncio.sleep(poll_interval)


# Avoid circular import: BuilderConfig is only needed at type-check time
from typing import TYPE_CHECKING  # noqa: E402

if TYPE_CHECKING:
    from .config import BuilderConfig
