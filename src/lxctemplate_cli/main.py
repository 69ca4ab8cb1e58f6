#!/usr/bin/env python3
"""
lxctemplate CLI - Main entry point.

Usage:
    lxctemplate [OPTIONS] COMMAND [ARGS]...

Builds Proxmox VE container templates: a temporary LXC container is
created, provisioned over SSH, backed up and uploaded as a template.
"""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.logging import RichHandler
from rich.table import Table

from lxctemplate import Builder
from lxctemplate.config import BuilderConfig, load_config
from lxctemplate.ui import ConsoleUi

from . import __version__
from .async_typer import AsyncTyper
from .decorators import handle_build_errors
from .output import out


app = AsyncTyper(
    name="lxctemplate",
    help="Build Proxmox LXC templates from a provisioned container",
    add_completion=False,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        out.info(f"lxctemplate version {__version__}")
        raise typer.Exit()


def setup_logging(debug: bool, verbose: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=out.console, rich_tracebacks=debug, show_path=debug)],
    )
    # paramiko is chatty at INFO
    logging.getLogger("paramiko").setLevel(logging.WARNING if not debug else logging.INFO)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """
    lxctemplate - Proxmox LXC template builder.

    Creates a temporary container, runs provisioners in it, then turns
    it into a reusable vztmpl archive on the configured storage.
    """
    pass


@app.command()
@handle_build_errors
async def build(
    config: Path = typer.Argument(..., help="Path to the YAML build configuration"),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Keep the generated SSH key on disk and log at debug level",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at info level"),
) -> None:
    """Build a template from CONFIG.

    Ctrl+C stops the build before its next step; the temporary
    container is removed before exiting.
    """
    setup_logging(debug, verbose)

    cfg = load_config(config)
    if debug:
        cfg = cfg.model_copy(update={"debug": True})

    builder = Builder()
    builder.prepare(cfg)

    loop = asyncio.get_running_loop()
    cancel = asyncio.Event()

    def handle_signal() -> None:
        out.warning("Interrupted, cancelling after the current step...")
        cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        artifact = await builder.run(ConsoleUi(out.console), cancel=cancel)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    out.success(str(artifact))
    out.result(artifact.id)


@app.command()
@handle_build_errors
async def validate(
    config: Path = typer.Argument(..., help="Path to the YAML build configuration"),
) -> None:
    """Check CONFIG without contacting Proxmox."""
    cfg = load_config(config)
    out.console.print(_summary_table(cfg))
    out.success("Configuration is valid")


def _summary_table(cfg: BuilderConfig) -> Table:
    table = Table(show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("proxmox_url", cfg.proxmox_url)
    table.add_row("node", cfg.node)
    table.add_row("template_file", cfg.template_file)
    table.add_row("template_suffix", cfg.template_suffix)
    table.add_row("template_storage_pool", cfg.template_storage_pool)
    table.add_row("backup_storage_pool", cfg.backup_storage_pool)
    table.add_row("provision_ip", cfg.provision_ip)
    table.add_row("memory", str(cfg.memory))
    table.add_row("cores", str(cfg.cores))
    table.add_row("provisioners", str(len(cfg.provisioners)))
    return table


def cli() -> None:
    """CLI entry point."""
    prog_name = os.environ.get("LXCTEMPLATE_PROG_NAME", "lxctemplate")
    app(prog_name=prog_name)


if __name__ == "__main__":
    cli()
