# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Exceptions raised by builder steps."""

from __future__ import annotations


class BuildError(Exception):
    """A fatal error that halts the build.

    Raising one from a step's ``run`` stops forward execution; the
    runner stores it and unwinds the steps that already ran.
    """


class ConfigError(BuildError):
    """The build configuration is invalid."""


class AllocationError(BuildError):
    """No free container ID could be obtained."""


class ResourceCreationError(BuildError):
    """Creating or starting the container failed."""


class ConnectivityError(BuildError):
    """An SSH, SFTP or API session could not be established or used."""


class ProvisionError(BuildError):
    """A provisioner reported failure."""


class ConversionError(BuildError):
    """Stopping, backing up or uploading the container failed."""


class NotFoundError(BuildError):
    """An expected backup or template could not be located."""


class BuildCancelled(Exception):
    """The build was interrupted before it finished.

    Not a :class:`BuildError`: cancellation is not a
    failure of any step and carries no underlying cause.
    """
