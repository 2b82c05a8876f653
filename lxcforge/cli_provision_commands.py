"""Provisioning CLI commands."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from lxcforge.cli_support import (
    get_host_for_cli,
    handle_cli_error,
    is_mock,
    make_storage_chooser,
    print_info,
    print_success,
)
from lxcforge.core.config import ForgeConfig, set_config
from lxcforge.core.errors import HostCommandError, ProvisioningError
from lxcforge.core.logger import configure_logging
from lxcforge.core.provisioner import Provisioner
from lxcforge.services.proxmox.storage import StorageSelector, eligible_pools, format_storage_menu


def register_provision_commands(app: typer.Typer, console: Console) -> None:
    """Attach provisioning commands to the main CLI."""

    @app.command()
    def create(
        storage: Optional[str] = typer.Option(None, "--storage", "-s", help="Storage pool for the container disk (skips the prompt)."),
        setup_script: Optional[str] = typer.Option(None, "--setup-script", help="Second-stage script pushed into the container."),
        config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to lxcforge.yml."),
        verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
        log_file: Optional[str] = typer.Option(None, "--log-file", help="Write logs to this file."),
        yes: bool = typer.Option(False, "--yes", "-y", help="Never prompt; fail if a storage choice is needed."),
    ) -> None:
        """Provision one container and run its setup script."""
        configure_logging(verbose=verbose, log_file=log_file)

        try:
            forge_config = ForgeConfig.load(config)
        except (OSError, ValueError) as e:
            handle_cli_error(e, console, verbose=verbose, exit_code=2)
        if setup_script:
            forge_config.setup_script = setup_script
        if not is_mock() and not Path(forge_config.setup_script).is_file():
            handle_cli_error(
                FileNotFoundError(f"Setup script not found: {forge_config.setup_script}"),
                console, exit_code=2)
        set_config(forge_config)

        chooser = None if yes else make_storage_chooser(console)
        provisioner = Provisioner(
            get_host_for_cli(),
            selector=StorageSelector(chooser=chooser, preselected=storage),
            config=forge_config,
        )

        try:
            result = provisioner.run()
        except ProvisioningError as e:
            # Already logged with its origin by the provisioner
            raise typer.Exit(e.exit_code)
        except KeyboardInterrupt:
            raise typer.Exit(130)

        print_success(console, f"Created container {result.vmid} on '{result.storage}'")
        console.print("\nWebInterface is reachable by going to the following URLs.\n")
        for endpoint in result.endpoints:
            console.print(f"      {endpoint}")
        console.print()

    @app.command()
    def pools(
        all_pools: bool = typer.Option(False, "--all", help="Include pools that cannot hold containers."),
    ) -> None:
        """List storage pools that can hold a container disk."""
        host = get_host_for_cli()
        try:
            found = host.list_storage_pools()
        except HostCommandError as e:
            handle_cli_error(e, console)

        candidates = found if all_pools else eligible_pools(found)
        if not candidates:
            print_info(console, "No storage pool accepts container root filesystems")
            raise typer.Exit(1)

        menu = format_storage_menu(candidates)
        table = Table(title="Storage Pools", show_header=True, header_style="bold cyan")
        table.add_column("Storage", style="cyan")
        table.add_column("Details", min_width=menu.label_width, no_wrap=True)
        table.add_column("Containers")
        for pool, row in zip(candidates, menu.rows):
            table.add_row(row.tag, row.label, "yes" if pool.supports_rootdir else "no")
        console.print(table)
