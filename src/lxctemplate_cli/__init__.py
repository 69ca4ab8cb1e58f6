"""Command line interface for the LXC template builder."""

from lxctemplate import __version__

__all__ = ["__version__"]
