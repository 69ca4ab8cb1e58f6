# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Build step: choose SSH credentials for the communicator."""

from __future__ import annotations

import asyncio
import os
import uuid

import paramiko

from ..context import BuildContext, Credentials, CredentialSource
from ..errors import BuildError, ConfigError
from ..pipeline import RunStatus, StepAction
from . import build_pipeline
from .constants import KEY_PAIR_PREFIX, RSA_KEY_BITS


def _key_pair_name() -> str:
    # uuid1 is time ordered, so names sort by creation
    return f"{KEY_PAIR_PREFIX}_{uuid.uuid1()}"


def _authorized_key(key: paramiko.PKey, comment: str) -> str:
    return f"{key.get_name()} {key.get_base64()} {comment}"


@build_pipeline.step(order=100)
class KeyPair:
    """Pick how the communicator authenticates, creating keys if needed.

    Precedence: a configured password, then a private key file, then
    the SSH agent.  With none of those an ephemeral RSA key pair is
    generated, installed into the container at creation time, and
    removed from its ``authorized_keys`` after provisioning.
    """

    name = "key_pair"

    async def run(self, ctx: BuildContext) -> StepAction:
        cfg = ctx.config

        if cfg.ssh_password:
            ctx.info("Using password for the communicator...")
            ctx.credentials = Credentials(CredentialSource.PASSWORD)
            return StepAction.CONTINUE

        if cfg.ssh_private_key_file:
            ctx.info("Using existing SSH private key for the communicator...")
            try:
                key = paramiko.PKey.from_path(os.path.expanduser(cfg.ssh_private_key_file))
            except (OSError, paramiko.SSHException) as e:
                raise ConfigError(
                    f"Cannot load ssh_private_key_file {cfg.ssh_private_key_file}: {e}"
                ) from e
            comment = _key_pair_name()
            ctx.credentials = Credentials(
                CredentialSource.PRIVATE_KEY_FILE,
                key=key,
                public_key=_authorized_key(key, comment),
                key_pair_name=comment,
            )
            return StepAction.CONTINUE

        if cfg.ssh_agent_auth:
            ctx.info("Using local SSH agent to authenticate connections for the communicator...")
            ctx.credentials = Credentials(CredentialSource.AGENT)
            return StepAction.CONTINUE

        ctx.info("Creating ephemeral key pair for SSH communicator...")
        try:
            key = await asyncio.to_thread(paramiko.RSAKey.generate, RSA_KEY_BITS)
        except (ValueError, paramiko.SSHException) as e:
            raise BuildError(f"Error creating temporary keypair: {e}") from e

        comment = _key_pair_name()
        creds = Credentials(
            CredentialSource.EPHEMERAL,
            key=key,
            public_key=_authorized_key(key, comment),
            key_pair_name=comment,
            clear_authorized_keys=True,
        )
        ctx.credentials = creds
        ctx.info("Created ephemeral SSH key pair for communicator")

        if cfg.debug:
            ctx.info(f"Saving communicator private key for debug purposes: {cfg.debug_key_path}")
            try:
                # paramiko creates the file with mode 0600
                key.write_private_key_file(cfg.debug_key_path)
            except OSError as e:
                raise BuildError(f"Error saving debug key: {e}") from e
            creds.debug_key_path = cfg.debug_key_path

        return StepAction.CONTINUE

    async def cleanup(self, ctx: BuildContext, status: RunStatus) -> None:
        creds = ctx.credentials
        if creds is None or creds.debug_key_path is None:
            return
        if not os.path.exists(creds.debug_key_path):
            return
        try:
            os.remove(creds.debug_key_path)
        except OSError as e:
            ctx.report_error(f"Error removing debug key '{creds.debug_key_path}': {e}")
