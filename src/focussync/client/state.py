"""Local record store for the sync client.

This module provides:
- LocalStore: SQLite-based store for items, prompts, metadata, settings
  and the per-family outboxes
- new_id: Identifier factory for local records

Architecture:
    Local mutations (create_item, update_item, delete_item, ...) write the
    record and enqueue the matching outbox entry. The sync engine writes
    pulled records through save_item / save_prompt, which never enqueue.

    Settings are a key/value table of JSON values, read again on every
    get_settings() call.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any

from focussync.client.sync.queue import SyncQueue
from focussync.core.config import SyncSettings
from focussync.core.models import (
    Category,
    Item,
    MetadataLookup,
    Project,
    Prompt,
    Tag,
)
from focussync.core.timestamps import now_utc
from focussync.core.types import EntityFamily, QueueOperation, SyncStatus

logger = logging.getLogger(__name__)

_SETTINGS_FIELDS = {f.name for f in dataclasses.fields(SyncSettings)}

# Fields a local edit may not change
_IMMUTABLE_FIELDS = {"id", "created_at", "updated_at", "sync_status"}


def new_id() -> str:
    """Generate an identifier for a new local record."""
    return str(uuid.uuid4())


class LocalStore:
    """SQLite-based local store.

    All access goes through one autocommit connection guarded by an RLock.
    """

    def __init__(self, db_path: Path) -> None:
        """Open (and create if needed) the local store.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")

        self._create_tables()

        self._queues = {
            family: SyncQueue(self._conn, self._lock, family) for family in EntityFamily
        }
        for queue in self._queues.values():
            queue.recover_interrupted()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS items (
                id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                title TEXT NOT NULL,
                content TEXT NOT NULL DEFAULT '',
                url TEXT,
                favicon_url TEXT,
                priority TEXT,
                deadline TEXT,
                completed INTEGER NOT NULL DEFAULT 0,
                category_id TEXT,
                project_id TEXT,
                tags TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                sync_status TEXT NOT NULL,
                legacy_external_id TEXT
            );

            CREATE TABLE IF NOT EXISTS prompts (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                prompt TEXT NOT NULL DEFAULT '',
                description TEXT NOT NULL DEFAULT '',
                type TEXT NOT NULL,
                category TEXT,
                tags TEXT NOT NULL DEFAULT '[]',
                note TEXT NOT NULL DEFAULT '',
                approved INTEGER NOT NULL DEFAULT 0,
                favorite INTEGER NOT NULL DEFAULT 0,
                quality INTEGER,
                text_demo TEXT,
                file_demo TEXT,
                url_demo TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                sync_status TEXT NOT NULL,
                legacy_external_id TEXT
            );

            -- Metadata names are unique regardless of case
            CREATE TABLE IF NOT EXISTS tags (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                color TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS categories (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                icon TEXT NOT NULL,
                parent_id TEXT
            );

            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                color TEXT NOT NULL
            );

            -- Key-value settings (JSON values)
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def queue(self, family: EntityFamily) -> SyncQueue:
        """Get the outbox of a family."""
        return self._queues[family]

    # === Generic record access ===

    def _upsert(self, table: str, record: dict[str, Any]) -> None:
        columns = ", ".join(record)
        placeholders = ", ".join("?" for _ in record)
        with self._lock:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(record.values()),
            )

    def _fetch_one(self, table: str, record_id: str) -> sqlite3.Row | None:
        with self._lock:
            return self._conn.execute(
                f"SELECT * FROM {table} WHERE id = ?",
                (record_id,),
            ).fetchone()

    def _fetch_all(self, table: str, order_by: str) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(f"SELECT * FROM {table} ORDER BY {order_by}").fetchall()

    def _delete(self, table: str, record_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        return cursor.rowcount > 0

    def mark_synced(self, family: EntityFamily, entity_id: str) -> None:
        """Flag a record as present on the remote store."""
        with self._lock:
            self._conn.execute(
                f"UPDATE {family.value} SET sync_status = ? WHERE id = ?",
                (SyncStatus.SYNCED.value, entity_id),
            )

    # === Items ===

    def get_item(self, item_id: str) -> Item | None:
        """Get an item by id."""
        row = self._fetch_one("items", item_id)
        return Item.from_row(row) if row else None

    def list_items(self) -> list[Item]:
        """List all items, most recently updated first."""
        return [Item.from_row(row) for row in self._fetch_all("items", "updated_at DESC")]

    def save_item(self, item: Item) -> None:
        """Insert or replace an item without recording a mutation."""
        self._upsert("items", item.to_record())

    def create_item(self, item: Item) -> Item:
        """Create an item locally and queue it for the remote store."""
        item = dataclasses.replace(item, sync_status=SyncStatus.PENDING)
        self.save_item(item)
        self.queue(EntityFamily.ITEMS).enqueue(item.id, QueueOperation.CREATE)
        return item

    def update_item(self, item_id: str, **changes: Any) -> Item:
        """Edit an item locally and queue the update.

        Raises:
            KeyError: If the item does not exist.
            ValueError: If changes touch id, timestamps or sync status.
        """
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(item_id)
        _check_changes(changes)
        item = dataclasses.replace(
            item,
            **changes,
            updated_at=now_utc(),
            sync_status=SyncStatus.PENDING,
        )
        self.save_item(item)
        self.queue(EntityFamily.ITEMS).enqueue(item_id, QueueOperation.UPDATE)
        return item

    def delete_item(self, item_id: str) -> bool:
        """Delete an item locally and queue the remote delete.

        Returns:
            True if the item existed.
        """
        if not self._delete("items", item_id):
            return False
        self.queue(EntityFamily.ITEMS).enqueue(item_id, QueueOperation.DELETE)
        return True

    # === Prompts ===

    def get_prompt(self, prompt_id: str) -> Prompt | None:
        """Get a prompt by id."""
        row = self._fetch_one("prompts", prompt_id)
        return Prompt.from_row(row) if row else None

    def list_prompts(self) -> list[Prompt]:
        """List all prompts, most recently updated first."""
        return [Prompt.from_row(row) for row in self._fetch_all("prompts", "updated_at DESC")]

    def save_prompt(self, prompt: Prompt) -> None:
        """Insert or replace a prompt without recording a mutation."""
        self._upsert("prompts", prompt.to_record())

    def create_prompt(self, prompt: Prompt) -> Prompt:
        """Create a prompt locally and queue it for the remote store."""
        prompt = dataclasses.replace(prompt, sync_status=SyncStatus.PENDING)
        self.save_prompt(prompt)
        self.queue(EntityFamily.PROMPTS).enqueue(prompt.id, QueueOperation.CREATE)
        return prompt

    def update_prompt(self, prompt_id: str, **changes: Any) -> Prompt:
        """Edit a prompt locally and queue the update.

        Raises:
            KeyError: If the prompt does not exist.
            ValueError: If changes touch id, timestamps or sync status.
        """
        prompt = self.get_prompt(prompt_id)
        if prompt is None:
            raise KeyError(prompt_id)
        _check_changes(changes)
        prompt = dataclasses.replace(
            prompt,
            **changes,
            updated_at=now_utc(),
            sync_status=SyncStatus.PENDING,
        )
        self.save_prompt(prompt)
        self.queue(EntityFamily.PROMPTS).enqueue(prompt_id, QueueOperation.UPDATE)
        return prompt

    def delete_prompt(self, prompt_id: str) -> bool:
        """Delete a prompt locally and queue the remote delete.

        Returns:
            True if the prompt existed.
        """
        if not self._delete("prompts", prompt_id):
            return False
        self.queue(EntityFamily.PROMPTS).enqueue(prompt_id, QueueOperation.DELETE)
        return True

    # === Metadata ===

    def list_tags(self) -> list[Tag]:
        """List all tags by name."""
        return [Tag.from_row(row) for row in self._fetch_all("tags", "name")]

    def create_tag(self, name: str, color: str) -> Tag:
        """Create a tag.

        Raises:
            sqlite3.IntegrityError: If a tag with the same name (any case) exists.
        """
        tag = Tag(id=new_id(), name=name, color=color)
        with self._lock:
            self._conn.execute(
                "INSERT INTO tags (id, name, color) VALUES (?, ?, ?)",
                (tag.id, tag.name, tag.color),
            )
        return tag

    def list_categories(self) -> list[Category]:
        """List all categories by name."""
        return [Category.from_row(row) for row in self._fetch_all("categories", "name")]

    def create_category(
        self,
        name: str,
        icon: str = "folder",
        parent_id: str | None = None,
    ) -> Category:
        """Create a category.

        Raises:
            sqlite3.IntegrityError: If a category with the same name (any case) exists.
        """
        category = Category(id=new_id(), name=name, icon=icon, parent_id=parent_id)
        with self._lock:
            self._conn.execute(
                "INSERT INTO categories (id, name, icon, parent_id) VALUES (?, ?, ?, ?)",
                (category.id, category.name, category.icon, category.parent_id),
            )
        return category

    def list_projects(self) -> list[Project]:
        """List all projects by name."""
        return [Project.from_row(row) for row in self._fetch_all("projects", "name")]

    def create_project(self, name: str, color: str) -> Project:
        """Create a project.

        Raises:
            sqlite3.IntegrityError: If a project with the same name (any case) exists.
        """
        project = Project(id=new_id(), name=name, color=color)
        with self._lock:
            self._conn.execute(
                "INSERT INTO projects (id, name, color) VALUES (?, ?, ?)",
                (project.id, project.name, project.color),
            )
        return project

    def load_metadata(self) -> MetadataLookup:
        """Load tags, categories and projects for id <-> name conversion."""
        return MetadataLookup(
            tags=self.list_tags(),
            categories=self.list_categories(),
            projects=self.list_projects(),
        )

    # === Settings ===

    def get_settings(self) -> SyncSettings:
        """Read the current settings.

        Missing keys take the SyncSettings defaults.
        """
        with self._lock:
            rows = self._conn.execute("SELECT key, value FROM settings").fetchall()
        values = {
            row["key"]: json.loads(row["value"])
            for row in rows
            if row["key"] in _SETTINGS_FIELDS
        }
        return SyncSettings(**values)

    def update_settings(self, **changes: Any) -> SyncSettings:
        """Update some settings.

        Raises:
            ValueError: If a key is not a SyncSettings field.

        Returns:
            The settings after the update.
        """
        unknown = set(changes) - _SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        with self._lock:
            for key, value in changes.items():
                self._conn.execute(
                    "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                    (key, json.dumps(value)),
                )
        return self.get_settings()


def _check_changes(changes: dict[str, Any]) -> None:
    forbidden = set(changes) & _IMMUTABLE_FIELDS
    if forbidden:
        raise ValueError(f"Cannot change: {', '.join(sorted(forbidden))}")
