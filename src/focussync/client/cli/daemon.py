"""Daemon command for the focussync CLI.

Commands:
- daemon: Run the sync service with the periodic trigger
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from focussync.client.cli.config import open_service, open_store
from focussync.client.service import SyncNow
from focussync.client.sync.types import SyncResult

logger = logging.getLogger(__name__)


def _report(result: SyncResult) -> None:
    click.echo(
        f"  ✓ {result.created} created, {result.updated} updated, {result.deleted} deleted"
    )


async def _run_daemon(sync_on_start: bool) -> None:
    async with open_service() as service:
        service.add_listener(_report)
        service.start()
        if sync_on_start:
            await service.handle(SyncNow())
        # Runs until the task is cancelled (Ctrl+C)
        await asyncio.Event().wait()


@click.command()
@click.option(
    "--sync-on-start/--no-sync-on-start",
    default=True,
    help="Run one cycle before waiting for the timer.",
)
def daemon(sync_on_start: bool) -> None:
    """Run the sync service until interrupted.

    Syncs every N minutes as configured with 'focussync config'.
    """
    store = open_store()
    try:
        settings = store.get_settings()
    finally:
        store.close()

    if not settings.is_configured:
        click.echo("Error: Remote store not configured. Run 'focussync config' first.", err=True)
        sys.exit(1)
    if not settings.auto_sync_enabled:
        click.echo("Error: Auto-sync is disabled. Run 'focussync config --auto-sync' first.", err=True)
        sys.exit(1)

    click.echo(
        f"Syncing every {settings.auto_sync_interval_minutes} min with "
        f"{settings.remote_endpoint_url} (Ctrl+C to stop)"
    )
    try:
        asyncio.run(_run_daemon(sync_on_start))
    except KeyboardInterrupt:
        click.echo("\nStopping...")
    logger.info("Daemon stopped")
