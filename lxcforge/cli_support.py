"""Shared utilities for lxcforge CLI modules."""
from __future__ import annotations

import os
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from lxcforge.services.proxmox.host import HostCapability, get_host
from lxcforge.services.proxmox.storage import StorageMenu

MENU_TITLE = "Storage Pools"
MENU_QUESTION = "Which storage pool you would like to use for the container?"


def is_mock() -> bool:
    """Return True when CLI runs in mock mode."""
    return os.environ.get("LXCFORGE_MOCK") == "1"


def get_host_for_cli(mock: Optional[bool] = None) -> HostCapability:
    """Return the host binding with mock defaults."""
    if mock is None:
        mock = is_mock()
    return get_host(mock=mock)



def render_storage_menu(menu: StorageMenu, console: Console) -> None:
    """Print the candidate pools as a table sized by the menu width."""
    table = Table(title=MENU_TITLE, show_header=True, header_style="bold cyan", width=menu.width)
    table.add_column("Storage", style="cyan", no_wrap=True)
    table.add_column("Details", min_width=menu.label_width, no_wrap=True)
    for row in menu.rows:
        table.add_row(row.tag, row.label)
    console.print(table)


def make_storage_chooser(console: Console):
    """Build an interactive chooser; Ctrl-C or EOF cancels the selection."""

    def choose(menu: StorageMenu) -> Optional[str]:
        render_storage_menu(menu, console)
        try:
            return Prompt.ask(MENU_QUESTION, choices=menu.keys, console=console)
        except (KeyboardInterrupt, EOFError):
            console.print()
            return None

    return choose


def handle_cli_error(
    e: Exception,
    console: Console,
    verbose: bool = False,
    exit_code: int = 1
) -> None:
    """Handle CLI errors with consistent formatting."""
    console.print(f"[red]Error:[/red] {e}")
    if verbose:
        console.print_exception()
    raise typer.Exit(exit_code)


def print_success(console: Console, message: str, prefix: str = "✓") -> None:
    console.print(f"[green]{prefix}[/green] {message}")


def print_info(console: Console, message: str, prefix: str = "ℹ") -> None:
    console.print(f"[cyan]{prefix}[/cyan] {message}")
