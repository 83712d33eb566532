"""Configuration utilities for the focussync CLI.

This module provides shared helpers used across CLI commands.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from focussync.client.api import SheetsClient
from focussync.client.service import SyncService
from focussync.client.state import LocalStore

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_config_dir() -> Path:
    """Get the configuration directory for focussync.

    Returns:
        Path to ~/.focussync or equivalent.
    """
    return Path.home() / ".focussync"


def get_db_path() -> Path:
    """Get the path to the local store database."""
    return get_config_dir() / "state.db"


def open_store() -> LocalStore:
    """Open the local store in the configuration directory."""
    return LocalStore(get_db_path())


def setup_logging(verbose: bool) -> None:
    """Route focussync log records to stderr.

    Args:
        verbose: Log at DEBUG instead of WARNING.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    focussync_logger = logging.getLogger("focussync")
    for existing in focussync_logger.handlers[:]:
        focussync_logger.removeHandler(existing)
    focussync_logger.addHandler(handler)
    focussync_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    focussync_logger.propagate = False


def mask_secret(secret: str | None) -> str:
    """Hide all but the last characters of a secret for display."""
    if not secret:
        return "(not set)"
    if len(secret) <= 4:
        return "*" * len(secret)
    return "*" * (len(secret) - 4) + secret[-4:]


@asynccontextmanager
async def open_service() -> AsyncIterator[SyncService]:
    """Open the local store and a remote client wrapped in a service.

    The scheduler is not started; commands that need it call start().
    """
    store = open_store()
    service = SyncService(store, SheetsClient(store.get_settings))
    try:
        yield service
    finally:
        await service.stop()
        store.close()
