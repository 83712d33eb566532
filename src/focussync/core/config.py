"""Sync settings for focussync.

Settings are persisted in the local store and re-read on every use, so a
credential change takes effect on the next remote call without any
invalidation step.
"""

from __future__ import annotations

from dataclasses import dataclass

from focussync.core.types import EntityFamily

DEFAULT_AUTO_SYNC_INTERVAL_MINUTES = 5


@dataclass
class SyncSettings:
    """Sync-relevant settings.

    Attributes:
        remote_endpoint_url: Deployment URL of the remote web app.
        remote_secret: Shared secret sent as the ``secret`` query parameter.
        last_sync_at_items: Pull cursor for items (epoch milliseconds).
        last_sync_at_prompts: Pull cursor for prompts (epoch milliseconds).
        auto_sync_enabled: Whether the periodic trigger is active.
        auto_sync_interval_minutes: Period of the automatic trigger.
    """

    remote_endpoint_url: str | None = None
    remote_secret: str | None = None
    last_sync_at_items: int | None = None
    last_sync_at_prompts: int | None = None
    auto_sync_enabled: bool = False
    auto_sync_interval_minutes: int = DEFAULT_AUTO_SYNC_INTERVAL_MINUTES

    @property
    def is_configured(self) -> bool:
        """Check if the remote store can be contacted.

        Returns:
            True if both endpoint URL and secret are set.
        """
        return bool(self.remote_endpoint_url) and bool(self.remote_secret)

    def last_sync_at(self, family: EntityFamily) -> int | None:
        """Get the pull cursor of a family."""
        if family is EntityFamily.ITEMS:
            return self.last_sync_at_items
        return self.last_sync_at_prompts


def cursor_key(family: EntityFamily) -> str:
    """Name of the settings field holding a family's pull cursor."""
    return f"last_sync_at_{family.value}"
