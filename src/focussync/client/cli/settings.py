"""Settings command for the focussync CLI.

Commands:
- config: Show or change the remote connection and auto-sync settings
"""

from __future__ import annotations

from typing import Any

import click

from focussync.client.cli.config import mask_secret, open_store


@click.command("config")
@click.option("--endpoint", default=None, help="Deployment URL of the remote web app.")
@click.option("--secret", default=None, help="Shared secret of the remote web app.")
@click.option(
    "--auto-sync/--no-auto-sync",
    default=None,
    help="Enable or disable the periodic sync.",
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    default=None,
    help="Minutes between automatic syncs.",
)
def config_cmd(
    endpoint: str | None,
    secret: str | None,
    auto_sync: bool | None,
    interval: int | None,
) -> None:
    """Show or change the sync settings.

    Without options, prints the current settings.
    """
    changes: dict[str, Any] = {}
    if endpoint is not None:
        changes["remote_endpoint_url"] = endpoint.strip() or None
    if secret is not None:
        changes["remote_secret"] = secret or None
    if auto_sync is not None:
        changes["auto_sync_enabled"] = auto_sync
    if interval is not None:
        changes["auto_sync_interval_minutes"] = interval

    store = open_store()
    try:
        if changes:
            settings = store.update_settings(**changes)
            click.echo("Settings updated.")
        else:
            settings = store.get_settings()
    finally:
        store.close()

    click.echo(f"Endpoint:      {settings.remote_endpoint_url or '(not set)'}")
    click.echo(f"Secret:        {mask_secret(settings.remote_secret)}")
    state = "on" if settings.auto_sync_enabled else "off"
    click.echo(f"Auto-sync:     {state} (every {settings.auto_sync_interval_minutes} min)")
