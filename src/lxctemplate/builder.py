# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Template builder: one build run from configuration to artifact.

The build itself is a pipeline of step classes (see
:mod:`lxctemplate.steps`).  Each step receives the shared
:class:`~lxctemplate.context.BuildContext`, checks its own
preconditions, and performs one concern; the pipeline unwinds the
steps that ran when the build halts or is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from . import BUILDER_ID
from .artifact import Artifact
from .config import BuilderConfig, parse_config
from .context import BuildContext
from .errors import BuildCancelled, BuildError, ConnectivityError
from .hook import Hook, ShellHook
from .pipeline import Pipeline, RunResult, RunStatus
from .proxmox_client import ProxmoxClient, ProxmoxError
from .steps import build_pipeline
from .steps.constants import GENERATED_DATA_KEYS
from .ui import Ui

logger = logging.getLogger(__name__)


class Builder:
    """Builds one LXC template per :meth:`run`."""

    def __init__(
        self,
        pipeline: Pipeline[BuildContext] = build_pipeline,
        client_factory: type[ProxmoxClient] = ProxmoxClient,
    ):
        """Initialize the builder.

        Args:
            pipeline: Steps to run; the standard build pipeline unless
                a caller needs a different sequence.
            client_factory: Creates the API client from the config.
        """
        self._pipeline = pipeline
        self._client_factory = client_factory
        self._config: BuilderConfig | None = None
        self.last_result: RunResult | None = None

    @property
    def config(self) -> BuilderConfig:
        if self._config is None:
            raise BuildError("Builder has not been prepared")
        return self._config

    def prepare(self, raw: dict[str, Any] | BuilderConfig) -> list[str]:
        """Validate the configuration.

        Returns:
            Names of the generated data the build will publish to
            provisioners and the artifact.

        Raises:
            ConfigError: The configuration is invalid.
        """
        self._config = raw if isinstance(raw, BuilderConfig) else parse_config(raw)
        return list(GENERATED_DATA_KEYS)

    async def run(
        self,
        ui: Ui | None,
        hook: Hook | None = None,
        cancel: asyncio.Event | None = None,
    ) -> Artifact:
        """Run the build and return the template artifact.

        Args:
            ui: Progress sink.
            hook: Provisioning hook; defaults to running the configured
                shell provisioners.
            cancel: Set to stop the build before the next step starts.

        Raises:
            BuildError: A step failed; this is the error it stored.
            BuildCancelled: *cancel* was set before the build finished.
        """
        cfg = self.config
        client = self._client_factory.from_config(cfg)
        try:
            try:
                await client.login()
            except ProxmoxError as e:
                raise ConnectivityError(f"Could not log in to Proxmox: {e}") from e

            ctx = BuildContext(
                config=cfg,
                client=client,
                hook=hook or ShellHook(cfg.provisioners),
                ui=ui,
            )
            result = await self._pipeline.run(ctx, cancel)
        finally:
            await client.close()

        self.last_result = result
        for step_name, err in result.cleanup_errors:
            logger.warning("Cleanup of %s failed: %s", step_name, err)

        if result.status is RunStatus.HALTED:
            if isinstance(result.error, BaseException):
                raise result.error
            raise BuildError("Build halted")
        if result.status is RunStatus.CANCELLED:
            if ctx.template_name:
                # The upload finished before the cancel was seen
                leftover = self._artifact(ctx)
                logger.warning("Build cancelled after %s was uploaded", leftover.id)
                raise BuildCancelled(
                    f"Build was cancelled after template {leftover.id} was uploaded; "
                    "delete it manually if it is not wanted"
                )
            raise BuildCancelled("Build was cancelled")

        # Without a template name the last steps never ran
        if not ctx.template_name:
            raise BuildError("Template ID could not be determined")

        return self._artifact(ctx)

    def _artifact(self, ctx: BuildContext) -> Artifact:
        assert ctx.template_name is not None
        return Artifact(
            builder_id=BUILDER_ID,
            node=self.config.node,
            storage=self.config.template_storage_pool,
            template_name=ctx.template_name,
            state_data={"generated_data": dict(ctx.generated_data)},
        )
