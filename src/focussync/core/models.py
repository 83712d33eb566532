"""Local entity records.

This module provides:
- Item, Prompt: Synchronized records
- Tag, Category, Project: Metadata referenced by items
- QueueEntry: Pending outbound operation

Records map to and from SQLite rows of the local store. Timestamps are
stored as ISO 8601 text, tag lists as JSON arrays.
"""

from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from focussync.core.timestamps import ensure_utc, now_utc
from focussync.core.types import QueueOperation, QueueStatus, SyncStatus


def _dt(value: str) -> datetime:
    return ensure_utc(datetime.fromisoformat(value))


@dataclass
class Tag:
    """Tag metadata."""

    id: str
    name: str
    color: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Tag:
        return cls(id=row["id"], name=row["name"], color=row["color"])


@dataclass
class Category:
    """Category metadata."""

    id: str
    name: str
    icon: str = "folder"
    parent_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Category:
        return cls(
            id=row["id"],
            name=row["name"],
            icon=row["icon"],
            parent_id=row["parent_id"],
        )


@dataclass
class Project:
    """Project metadata."""

    id: str
    name: str
    color: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Project:
        return cls(id=row["id"], name=row["name"], color=row["color"])


@dataclass
class MetadataLookup:
    """Snapshot of metadata used for id <-> name conversion.

    The lists double as caches during a pull: records created by the
    resolver are appended so later rows reuse them.
    """

    tags: list[Tag] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)


@dataclass
class Item:
    """A task, bookmark or note.

    Attributes:
        id: Natural identifier, shared with the remote row.
        type: One of ItemType values. Not validated (remote data passes through).
        tags: Tag ids, ordered and without duplicates.
        updated_at: Last-writer-wins clock. Refreshed on every local mutation.
        legacy_external_id: Identifier from a former sync backend, never pushed.
    """

    id: str
    type: str
    title: str
    content: str = ""
    url: str | None = None
    favicon_url: str | None = None
    priority: str | None = None
    deadline: date | None = None
    completed: bool = False
    category_id: str | None = None
    project_id: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    sync_status: SyncStatus = SyncStatus.PENDING
    legacy_external_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Item:
        """Create Item from database row."""
        return cls(
            id=row["id"],
            type=row["type"],
            title=row["title"],
            content=row["content"],
            url=row["url"],
            favicon_url=row["favicon_url"],
            priority=row["priority"],
            deadline=date.fromisoformat(row["deadline"]) if row["deadline"] else None,
            completed=bool(row["completed"]),
            category_id=row["category_id"],
            project_id=row["project_id"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
            sync_status=SyncStatus(row["sync_status"]),
            legacy_external_id=row["legacy_external_id"],
        )

    def to_record(self) -> dict[str, Any]:
        """Convert to column values for the items table."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "url": self.url,
            "favicon_url": self.favicon_url,
            "priority": self.priority,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "completed": int(self.completed),
            "category_id": self.category_id,
            "project_id": self.project_id,
            "tags": json.dumps(self.tags),
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
            "sync_status": self.sync_status.value,
            "legacy_external_id": self.legacy_external_id,
        }


@dataclass
class Prompt:
    """An AI prompt.

    Attributes:
        tags: Tag names (prompts do not reference tag records).
        quality: Rating 1..5, or None.
        file_demo: Local attachment. Never sent to the remote store.
    """

    id: str
    title: str
    prompt: str = ""
    description: str = ""
    type: str = "text"
    category: str | None = None
    tags: list[str] = field(default_factory=list)
    note: str = ""
    approved: bool = False
    favorite: bool = False
    quality: int | None = None
    text_demo: str | None = None
    file_demo: str | None = None
    url_demo: str | None = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    sync_status: SyncStatus = SyncStatus.PENDING
    legacy_external_id: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Prompt:
        """Create Prompt from database row."""
        return cls(
            id=row["id"],
            title=row["title"],
            prompt=row["prompt"],
            description=row["description"],
            type=row["type"],
            category=row["category"],
            tags=json.loads(row["tags"]) if row["tags"] else [],
            note=row["note"],
            approved=bool(row["approved"]),
            favorite=bool(row["favorite"]),
            quality=row["quality"],
            text_demo=row["text_demo"],
            file_demo=row["file_demo"],
            url_demo=row["url_demo"],
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
            sync_status=SyncStatus(row["sync_status"]),
            legacy_external_id=row["legacy_external_id"],
        )

    def to_record(self) -> dict[str, Any]:
        """Convert to column values for the prompts table."""
        return {
            "id": self.id,
            "title": self.title,
            "prompt": self.prompt,
            "description": self.description,
            "type": self.type,
            "category": self.category,
            "tags": json.dumps(self.tags),
            "note": self.note,
            "approved": int(self.approved),
            "favorite": int(self.favorite),
            "quality": self.quality,
            "text_demo": self.text_demo,
            "file_demo": self.file_demo,
            "url_demo": self.url_demo,
            "created_at": ensure_utc(self.created_at).isoformat(),
            "updated_at": ensure_utc(self.updated_at).isoformat(),
            "sync_status": self.sync_status.value,
            "legacy_external_id": self.legacy_external_id,
        }


@dataclass
class QueueEntry:
    """Pending outbound operation for one entity.

    Attributes:
        id: Queue-local identifier.
        entity_id: Id of the item or prompt.
        operation: What to apply remotely.
        status: Lifecycle status.
        retries: Failed attempts so far.
        timestamp: Enqueue time in epoch milliseconds (FIFO order).
        last_error: Message of the last failed attempt.
    """

    id: int
    entity_id: str
    operation: QueueOperation
    status: QueueStatus
    retries: int
    timestamp: int
    last_error: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> QueueEntry:
        """Create QueueEntry from database row."""
        return cls(
            id=row["id"],
            entity_id=row["entity_id"],
            operation=QueueOperation(row["operation"]),
            status=QueueStatus(row["status"]),
            retries=row["retries"],
            timestamp=row["timestamp"],
            last_error=row["last_error"],
        )
