#!/usr/bin/env python3
"""lxcforge CLI - provision a single LXC container on Proxmox VE."""

import typer
from rich.console import Console

from lxcforge.cli_provision_commands import register_provision_commands
from lxcforge.core.logger import get_logger

app = typer.Typer(
    name="lxcforge",
    help="""lxcforge - one container per run, nothing left behind on failure

Quick start:
  lxcforge pools                       # Storage pools that can hold the disk
  lxcforge create                      # Provision and run setup.sh inside
  lxcforge create --storage local-zfs  # Skip the storage prompt
""",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

register_provision_commands(app, console)

if __name__ == "__main__":
    app()
