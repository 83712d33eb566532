"""Command-line interface for focussync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- config: Show or change the sync settings
- sync: Synchronize items and prompts with the remote sheet
- status: Show cursors and outbox counts
- retry-failed: Requeue failed changes
- clear-failed: Drop failed changes
- test-connection: Check the remote endpoint and secret
- daemon: Run the periodic sync until interrupted
"""

from __future__ import annotations

import click

from focussync.client.cli.config import (
    get_config_dir,
    get_db_path,
    open_service,
    open_store,
    setup_logging,
)
from focussync.client.cli.daemon import daemon
from focussync.client.cli.settings import config_cmd
from focussync.client.cli.sync import (
    clear_failed,
    retry_failed,
    status,
    sync,
    test_connection,
)


@click.group()
@click.version_option(package_name="focussync")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
def cli(verbose: bool) -> None:
    """focussync - Sync notes, bookmarks and prompts with a Google Sheet."""
    setup_logging(verbose)


# Settings
cli.add_command(config_cmd)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(retry_failed)
cli.add_command(clear_failed)
cli.add_command(test_connection)

# Background service
cli.add_command(daemon)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_db_path",
    "open_service",
    "open_store",
    "setup_logging",
]
