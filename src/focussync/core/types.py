"""Shared types for focussync.

This module defines the enums used across the local store, the remote
client and the sync engine.
"""

from __future__ import annotations

from enum import Enum


class EntityFamily(str, Enum):
    """Family of synchronized entities.

    Each family has its own remote sheet, its own outbox and its own
    pull cursor.
    """

    ITEMS = "items"
    PROMPTS = "prompts"


class ItemType(str, Enum):
    """Kind of list item."""

    TASK = "task"
    BOOKMARK = "bookmark"
    NOTE = "note"


class SyncStatus(str, Enum):
    """Whether a local record has reached the remote store."""

    PENDING = "pending"
    SYNCED = "synced"


class QueueOperation(str, Enum):
    """Operation recorded in the outbox."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class QueueStatus(str, Enum):
    """Lifecycle of an outbox entry.

    queued -> syncing -> (removed | queued with retries+1 | failed)
    """

    QUEUED = "queued"
    SYNCING = "syncing"
    FAILED = "failed"


class SyncState(str, Enum):
    """State of the sync orchestrator."""

    IDLE = "idle"
    SYNCING = "syncing"
