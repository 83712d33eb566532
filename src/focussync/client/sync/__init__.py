"""Sync engine between the local store and the remote sheet.

Architecture:
    local mutation → LocalStore + SyncQueue.enqueue
    trigger (AutoSyncScheduler or manual) → SyncOrchestrator.full_sync
        pull: SheetsClient → transform → resolver → LocalStore (LWW)
        push: SyncQueue → transform → SheetsClient

Components:
- **SyncQueue**: Durable per-family outbox with retry counters
- **transform**: Pure local <-> remote row conversion
- **resolver**: Name -> id upsert for tags, categories, projects
- **SyncOrchestrator**: Single-flight pull/push cycles
- **AutoSyncScheduler**: Periodic trigger
"""

from focussync.client.sync.orchestrator import SyncOrchestrator
from focussync.client.sync.queue import MAX_RETRIES, SyncQueue
from focussync.client.sync.resolver import (
    DEFAULT_PROJECT_COLORS,
    DEFAULT_TAG_COLORS,
    resolve_category_name,
    resolve_project_name,
    resolve_tag_names,
)
from focussync.client.sync.scheduler import AutoSyncScheduler
from focussync.client.sync.transform import (
    ParsedItem,
    ParsedPrompt,
    favicon_url,
    item_to_row,
    prompt_to_row,
    row_to_item,
    row_to_prompt,
)
from focussync.client.sync.types import BUSY_MESSAGE, QueueCounts, SyncResult

__all__ = [
    # Orchestrator
    "SyncOrchestrator",
    # Queue
    "MAX_RETRIES",
    "SyncQueue",
    # Resolver
    "DEFAULT_PROJECT_COLORS",
    "DEFAULT_TAG_COLORS",
    "resolve_category_name",
    "resolve_project_name",
    "resolve_tag_names",
    # Scheduler
    "AutoSyncScheduler",
    # Transform
    "ParsedItem",
    "ParsedPrompt",
    "favicon_url",
    "item_to_row",
    "prompt_to_row",
    "row_to_item",
    "row_to_prompt",
    # Types
    "BUSY_MESSAGE",
    "QueueCounts",
    "SyncResult",
]
