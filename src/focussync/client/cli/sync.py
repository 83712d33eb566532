"""Sync commands for the focussync CLI.

Commands:
- sync: Run a sync cycle now
- status: Show cursors and outbox counts
- retry-failed: Requeue failed outbox entries
- clear-failed: Drop failed outbox entries
- test-connection: Check the remote endpoint and secret
"""

from __future__ import annotations

import asyncio
import sys

import click

from focussync.client.api import SheetsClient
from focussync.client.cli.config import open_service, open_store
from focussync.client.service import (
    ClearFailed,
    CountResponse,
    GetSyncStatus,
    RetryFailed,
    SyncNow,
    SyncNowResponse,
    SyncStatusResponse,
)
from focussync.core.timestamps import format_iso, from_epoch_ms

NOT_CONFIGURED_MESSAGE = (
    "Error: Remote store not configured. "
    "Run 'focussync config --endpoint URL --secret SECRET' first."
)


def _require_configured() -> None:
    store = open_store()
    try:
        configured = store.get_settings().is_configured
    finally:
        store.close()
    if not configured:
        click.echo(NOT_CONFIGURED_MESSAGE, err=True)
        sys.exit(1)


def _format_cursor(value: int | None) -> str:
    if not value:
        return "never"
    return format_iso(from_epoch_ms(value))


@click.command()
@click.option("--full", is_flag=True, help="Refetch every remote row instead of the delta.")
def sync(full: bool) -> None:
    """Synchronize items and prompts with the remote sheet.

    Pulls remote changes first, then pushes queued local changes.
    """
    _require_configured()

    async def _run() -> SyncNowResponse:
        async with open_service() as service:
            return await service.handle(SyncNow(force_full_sync=full))

    response = asyncio.run(_run())
    if response.result is None:
        click.echo(f"Error: {response.error}", err=True)
        sys.exit(1)

    result = response.result
    if result.errors:
        click.echo(click.style("Errors:", fg="red"))
        for error in result.errors:
            click.echo(f"  ✗ {error}")

    if not result.success:
        click.echo("Sync failed.", err=True)
        sys.exit(1)

    if not result.has_changes and not result.errors:
        click.echo("Everything is up to date.")
    else:
        click.echo(
            f"Sync complete: {result.created} created, "
            f"{result.updated} updated, "
            f"{result.deleted} deleted"
        )


@click.command()
def status() -> None:
    """Show the sync cursors and the outbox counts."""
    store = open_store()
    try:
        settings = store.get_settings()
    finally:
        store.close()

    async def _run() -> SyncStatusResponse:
        async with open_service() as service:
            return await service.handle(GetSyncStatus())

    counts = asyncio.run(_run())

    click.echo(f"Endpoint:          {settings.remote_endpoint_url or '(not set)'}")
    click.echo(f"Last items pull:   {_format_cursor(settings.last_sync_at_items)}")
    click.echo(f"Last prompts pull: {_format_cursor(settings.last_sync_at_prompts)}")
    click.echo(f"Queued:  {counts.queued}")
    click.echo(f"Syncing: {counts.syncing}")
    failed = f"Failed:  {counts.failed}"
    click.echo(click.style(failed, fg="red") if counts.failed else failed)


@click.command("retry-failed")
def retry_failed() -> None:
    """Requeue failed changes with their retry counters reset."""

    async def _run() -> CountResponse:
        async with open_service() as service:
            return await service.handle(RetryFailed())

    response = asyncio.run(_run())
    click.echo(f"Requeued {response.count} failed change(s).")


@click.command("clear-failed")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def clear_failed(yes: bool) -> None:
    """Drop failed changes; they will not be pushed again."""
    if not yes and not click.confirm("Drop all failed changes?"):
        sys.exit(0)

    async def _run() -> CountResponse:
        async with open_service() as service:
            return await service.handle(ClearFailed())

    response = asyncio.run(_run())
    click.echo(f"Dropped {response.count} failed change(s).")


@click.command("test-connection")
def test_connection() -> None:
    """Check that the remote endpoint accepts the configured secret."""
    _require_configured()

    async def _run() -> bool:
        store = open_store()
        try:
            async with SheetsClient(store.get_settings) as client:
                return await client.test_connection()
        finally:
            store.close()

    if asyncio.run(_run()):
        click.echo("Connection OK.")
    else:
        click.echo("Error: Connection failed. Check the endpoint URL and secret.", err=True)
        sys.exit(1)
