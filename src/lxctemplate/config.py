# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build configuration schema, defaults and loading.

The configuration is a flat mapping, usually written as YAML::

    proxmox_url: https://pve.example.com:8006/api2/json
    username: root@pam
    password: secret
    node: pve
    template_file: ubuntu-22.04-standard_22.04-1_amd64.tar.zst
    template_suffix: nginx
    filesystem_storage: local-lvm
    filesystem_size: 8
    provision_ip: 192.168.1.50
    provision_gateway_ip: 192.168.1.1
    ssh_password: changeme
    provisioners:
      - inline:
          - apt-get update
          - apt-get install -y nginx

``provision_ip: dhcp`` lets the container pick up an address itself;
the SSH host is then read from the container's interfaces unless
``ssh_host`` is set.

Values missing from the file fall back to ``PROXMOX_*`` environment
variables where noted, then to the defaults declared below.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Fields that fall back to an environment variable when unset
_ENV_DEFAULTS = {
    "proxmox_url": "PROXMOX_URL",
    "username": "PROXMOX_USERNAME",
    "password": "PROXMOX_PASSWORD",
    "token": "PROXMOX_TOKEN",
}

_API_PATH = "/api2/json"


class ShellProvisionerConfig(BaseModel):
    """Commands run inside the container during provisioning."""

    model_config = ConfigDict(extra="forbid")

    inline: list[str] = Field(default_factory=list)
    use_sudo: bool = False


class BuilderConfig(BaseModel):
    """Validated configuration for one template build."""

    model_config = ConfigDict(extra="forbid")

    # Proxmox connection
    proxmox_url: str = ""
    insecure_skip_tls_verify: bool = False
    username: str = ""
    password: str = ""
    token: str = ""
    node: str = ""
    pool: str = ""
    task_timeout: float = 60.0
    backup_timeout: float = 1800.0

    # Container
    vmid: int = 0
    hostname: str = ""
    memory: int = 512
    cores: int = 1
    unprivileged: bool = False
    template_file: str = ""
    template_suffix: str = ""
    template_storage_pool: str = "local"
    backup_storage_pool: str = "local"
    filesystem_storage: str = ""
    filesystem_size: int = 0
    prune_backups: bool = True

    # Provisioning network
    provision_ip: str = ""
    provision_gateway_ip: str = ""
    provision_netmask: int = 24
    provision_mac: str = "1e:eb:08:d1:e7:e2"
    bridge: str = "vmbr0"

    # SSH communicator
    ssh_host: str = ""
    ssh_port: int = 22
    ssh_username: str = "root"
    ssh_password: str = ""
    ssh_private_key_file: str = ""
    ssh_agent_auth: bool = False
    ssh_timeout: float = 300.0

    # Debugging
    debug: bool = False
    debug_key_path: str = "lxctemplate_debug.pem"

    provisioners: list[ShellProvisionerConfig] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _apply_env_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, env in _ENV_DEFAULTS.items():
            if not data.get(key):
                data[key] = os.environ.get(env, "")
        return data

    @model_validator(mode="after")
    def _check(self) -> "BuilderConfig":
        errors: list[str] = []

        if self.memory < 16:
            logger.info("Memory %d is too small, using default: 512", self.memory)
            self.memory = 512
        if self.cores < 1:
            logger.info("Number of cores %d is too small, using default: 1", self.cores)
            self.cores = 1

        if not self.username:
            errors.append("username must be specified")
        if not self.password:
            errors.append("password must be specified")
        if not self.proxmox_url:
            errors.append("proxmox_url must be specified")
        else:
            parsed = urlparse(self.proxmox_url)
            if not parsed.scheme or not parsed.hostname:
                errors.append(f"could not parse proxmox_url: {self.proxmox_url!r}")
            elif _API_PATH not in parsed.path:
                self.proxmox_url = self.proxmox_url.rstrip("/") + _API_PATH
        if not self.node:
            errors.append("node must be specified")
        if " " in self.template_file:
            errors.append("template_file must not contain spaces")
        if not self.filesystem_storage:
            errors.append("filesystem_storage must be specified")
        if self.filesystem_size <= 0:
            errors.append("filesystem_size must be specified")
        if not self.template_suffix:
            errors.append("template_suffix must be specified")
        if not self.provision_ip:
            errors.append("provision_ip must be specified")
        if not self.provision_gateway_ip and not self.uses_dhcp:
            errors.append("provision_gateway_ip must be specified")

        if errors:
            raise ValueError("; ".join(errors))

        # With DHCP the address is only known once the container runs
        if not self.ssh_host and not self.uses_dhcp:
            self.ssh_host = self.provision_ip
        return self

    @property
    def uses_dhcp(self) -> bool:
        return self.provision_ip.lower() == "dhcp"

    @property
    def proxmox_host(self) -> str:
        """Host name of the Proxmox API endpoint."""
        return urlparse(self.proxmox_url).hostname or ""

    @property
    def api_user(self) -> str:
        """User name without the ``@realm`` part, as used for SSH."""
        return self.username.split("@", 1)[0]


def parse_config(raw: dict[str, Any]) -> BuilderConfig:
    """Validate a raw configuration mapping.

    Raises:
        ConfigError: With every validation problem, one per line.
    """
    try:
        return BuilderConfig.model_validate(raw)
    except ValidationError as e:
        messages = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"])
            msg = err["msg"].removeprefix("Value error, ")
            messages.append(f"{loc}: {msg}" if loc else msg)
        raise ConfigError("\n".join(messages)) from e


def load_config(path: str | Path) -> BuilderConfig:
    """Read and validate a YAML (or JSON) configuration file."""
    path = Path(path)
    try:
        raw = yaml.safe_load(path.read_text())
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: expected a mapping at the top level")
    return parse_config(raw)
