"""SSH access to the build container and SFTP access to the Proxmox node.

Fabric and paramiko are blocking libraries; the async wrappers here run
them in a worker thread so a step awaits them like any other call.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import paramiko
from fabric import Connection

from .errors import ConnectivityError

logger = logging.getLogger(__name__)

# Seconds between connection attempts while the container boots
_RETRY_INTERVAL = 5.0

# Errors that mean "try again", not "give up"
_TRANSIENT = (paramiko.SSHException, socket.error, EOFError)


@dataclass
class CommandResult:
    """Outcome of a remote command."""

    command: str
    exited: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exited == 0


class SSHCommunicator:
    """A fabric connection to the build container.

    Exactly one of *password*, *pkey* or *agent_auth* is normally used,
    following the credential strategy chosen by the key pair step.
    """

    def __init__(
        self,
        host: str,
        *,
        port: int = 22,
        user: str = "root",
        password: str | None = None,
        pkey: paramiko.PKey | None = None,
        agent_auth: bool = False,
        timeout: float = 300.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self._timeout = timeout
        connect_kwargs: dict[str, Any] = {
            "banner_timeout": 30,
            "allow_agent": agent_auth,
            "look_for_keys": False,
        }
        if password:
            connect_kwargs["password"] = password
        if pkey is not None:
            connect_kwargs["pkey"] = pkey
        self._connect_kwargs = connect_kwargs
        self._conn: Connection | None = None

    def _get_connection(self) -> Connection:
        """Create a Fabric connection to the container."""
        return Connection(
            host=self.host,
            user=self.user,
            port=self.port,
            connect_timeout=30,
            connect_kwargs=self._connect_kwargs,
        )

    async def connect(self) -> None:
        """Open the connection, retrying until the timeout expires.

        Raises:
            ConnectivityError: No connection could be made in time.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        attempt = 0
        while True:
            attempt += 1
            conn = self._get_connection()
            try:
                await asyncio.to_thread(conn.open)
            except paramiko.AuthenticationException as e:
                conn.close()
                raise ConnectivityError(
                    f"SSH authentication to {self.user}@{self.host} failed: {e}"
                ) from e
            except _TRANSIENT as e:
                conn.close()
                logger.debug("SSH attempt %d to %s failed: %s", attempt, self.host, e)
                if loop.time() + _RETRY_INTERVAL >= deadline:
                    raise ConnectivityError(
                        f"Timeout waiting for SSH on {self.host}:{self.port}: {e}"
                    ) from e
                await asyncio.sleep(_RETRY_INTERVAL)
                continue
            self._conn = conn
            logger.info("Connected to %s@%s:%d", self.user, self.host, self.port)
            return

    async def run(self, command: str, *, sudo: bool = False) -> CommandResult:
        """Run *command* in the container and return its result.

        A non-zero exit status is returned, not raised; transport
        failures raise :class:`ConnectivityError`.
        """
        if self._conn is None:
            raise ConnectivityError("Not connected")
        runner = self._conn.sudo if sudo else self._conn.run
        try:
            result = await asyncio.to_thread(runner, command, hide=True, warn=True, in_stream=False)
        except _TRANSIENT as e:
            raise ConnectivityError(f"Lost SSH connection to {self.host}: {e}") from e
        return CommandResult(
            command=command,
            exited=result.exited,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    async def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            await asyncio.to_thread(self._conn.close)
            self._conn = None

    @property
    def connected(self) -> bool:
        return self._conn is not None


class FileTransfer:
    """An SFTP session to the Proxmox node, used to fetch backups.

    Use as a context manager; all methods block and are meant to be
    run in a worker thread.
    """

    def __init__(self, host: str, user: str, password: str, port: int = 22):
        self._conn = Connection(
            host=host,
            user=user,
            port=port,
            connect_timeout=30,
            connect_kwargs={
                "password": password,
                "banner_timeout": 30,
                "allow_agent": False,
                "look_for_keys": False,
            },
        )

    def __enter__(self) -> "FileTransfer":
        self._conn.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._conn.close()

    def download(self, remote_path: str, local_path: Path) -> None:
        self._conn.get(remote_path, local=str(local_path))

    def remove(self, remote_path: str) -> None:
        self._conn.sftp().remove(remote_path)
