"""Core module - Shared models, settings and types."""

from focussync.core.config import SyncSettings
from focussync.core.models import (
    Category,
    Item,
    MetadataLookup,
    Project,
    Prompt,
    QueueEntry,
    Tag,
)
from focussync.core.types import (
    EntityFamily,
    ItemType,
    QueueOperation,
    QueueStatus,
    SyncState,
    SyncStatus,
)

__all__ = [
    # Config
    "SyncSettings",
    # Models
    "Category",
    "Item",
    "MetadataLookup",
    "Project",
    "Prompt",
    "QueueEntry",
    "Tag",
    # Types
    "EntityFamily",
    "ItemType",
    "QueueOperation",
    "QueueStatus",
    "SyncState",
    "SyncStatus",
]
