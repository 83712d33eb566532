"""Durable outbox for pending remote operations.

This module provides:
- SyncQueue: SQLite-backed per-family queue of create/update/delete entries
- MAX_RETRIES: Failed attempts before an entry is parked as failed

One entry is recorded per logical local mutation. The orchestrator drains
entries in enqueue order:

    queued -> syncing -> removed              (success)
                      -> queued, retries+1     (failure, retries < 3)
                      -> failed, retries = 3   (failure, threshold reached)

Failed entries stay parked until retry_failed() resets them. There is no
backoff: a requeued entry is attempted again on the next drain.

Persistence shares the local store's connection; each statement commits
immediately (autocommit mode), so entries survive a crash. Entries caught
in ``syncing`` by a crash are returned to ``queued`` by
recover_interrupted() when the store is reopened.
"""

from __future__ import annotations

import logging
import sqlite3
import threading

from focussync.core.models import QueueEntry
from focussync.core.timestamps import now_ms
from focussync.core.types import EntityFamily, QueueOperation, QueueStatus

logger = logging.getLogger(__name__)

MAX_RETRIES = 3

_TABLES = {
    EntityFamily.ITEMS: "item_sync_queue",
    EntityFamily.PROMPTS: "prompt_sync_queue",
}


class SyncQueue:
    """Outbox of one entity family.

    Attributes:
        family: Entity family whose mutations are recorded.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: threading.RLock,
        family: EntityFamily,
    ) -> None:
        """Initialize the queue and create its table.

        Args:
            conn: Open connection of the local store (autocommit mode).
            lock: Lock serializing access to the connection.
            family: Entity family of this queue.
        """
        self._conn = conn
        self._lock = lock
        self.family = family
        self._table = _TABLES[family]

        with self._lock:
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    entity_id TEXT NOT NULL,
                    operation TEXT NOT NULL,
                    status TEXT NOT NULL,
                    retries INTEGER NOT NULL DEFAULT 0,
                    timestamp INTEGER NOT NULL,
                    last_error TEXT
                )
            """)
            self._conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{self._table}_status "
                f"ON {self._table} (status, timestamp)"
            )

    def enqueue(self, entity_id: str, operation: QueueOperation) -> QueueEntry:
        """Record a local mutation.

        Args:
            entity_id: Id of the mutated item or prompt.
            operation: Operation to apply remotely.

        Returns:
            The new entry.
        """
        timestamp = now_ms()
        with self._lock:
            cursor = self._conn.execute(
                f"""
                INSERT INTO {self._table} (entity_id, operation, status, retries, timestamp)
                VALUES (?, ?, ?, 0, ?)
                """,
                (entity_id, operation.value, QueueStatus.QUEUED.value, timestamp),
            )
            entry_id = cursor.lastrowid
        logger.debug("Queued %s %s %s", self.family.value, operation.value, entity_id)
        return QueueEntry(
            id=int(entry_id or 0),
            entity_id=entity_id,
            operation=operation,
            status=QueueStatus.QUEUED,
            retries=0,
            timestamp=timestamp,
        )

    def get(self, entry_id: int) -> QueueEntry | None:
        """Get an entry by id."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT * FROM {self._table} WHERE id = ?",
                (entry_id,),
            ).fetchone()
        return QueueEntry.from_row(row) if row else None

    def entries(self) -> list[QueueEntry]:
        """List all entries in enqueue order, whatever their status."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM {self._table} ORDER BY timestamp, id"
            ).fetchall()
        return [QueueEntry.from_row(row) for row in rows]

    def pending(self) -> list[QueueEntry]:
        """List queued entries, oldest first."""
        with self._lock:
            rows = self._conn.execute(
                f"SELECT * FROM {self._table} WHERE status = ? ORDER BY timestamp, id",
                (QueueStatus.QUEUED.value,),
            ).fetchall()
        return [QueueEntry.from_row(row) for row in rows]

    def mark_syncing(self, entry_id: int) -> None:
        """Mark an entry as being applied remotely."""
        with self._lock:
            self._conn.execute(
                f"UPDATE {self._table} SET status = ? WHERE id = ?",
                (QueueStatus.SYNCING.value, entry_id),
            )

    def remove(self, entry_id: int) -> None:
        """Delete an entry (applied, or no longer relevant)."""
        with self._lock:
            self._conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (entry_id,))

    def record_failure(self, entry: QueueEntry, error: str) -> QueueEntry:
        """Count a failed attempt.

        The entry goes back to ``queued``, or to ``failed`` once it has
        failed MAX_RETRIES times.

        Args:
            entry: Entry that failed.
            error: Error message to keep with the entry.

        Returns:
            The updated entry.
        """
        retries = entry.retries + 1
        status = QueueStatus.FAILED if retries >= MAX_RETRIES else QueueStatus.QUEUED
        with self._lock:
            self._conn.execute(
                f"UPDATE {self._table} SET status = ?, retries = ?, last_error = ? WHERE id = ?",
                (status.value, retries, error, entry.id),
            )
        if status is QueueStatus.FAILED:
            logger.warning(
                "Giving up on %s %s %s after %d attempts: %s",
                self.family.value,
                entry.operation.value,
                entry.entity_id,
                retries,
                error,
            )
        return QueueEntry(
            id=entry.id,
            entity_id=entry.entity_id,
            operation=entry.operation,
            status=status,
            retries=retries,
            timestamp=entry.timestamp,
            last_error=error,
        )

    def counts(self) -> dict[QueueStatus, int]:
        """Count entries by status.

        Returns:
            Mapping with a count for every QueueStatus.
        """
        counts = {status: 0 for status in QueueStatus}
        with self._lock:
            rows = self._conn.execute(
                f"SELECT status, COUNT(*) AS n FROM {self._table} GROUP BY status"
            ).fetchall()
        for row in rows:
            counts[QueueStatus(row["status"])] = row["n"]
        return counts

    def retry_failed(self) -> int:
        """Reset failed entries to queued with zero retries.

        Returns:
            Number of entries reset.
        """
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE {self._table} SET status = ?, retries = 0 WHERE status = ?",
                (QueueStatus.QUEUED.value, QueueStatus.FAILED.value),
            )
        return cursor.rowcount

    def clear_failed(self) -> int:
        """Delete failed entries.

        Returns:
            Number of entries deleted.
        """
        with self._lock:
            cursor = self._conn.execute(
                f"DELETE FROM {self._table} WHERE status = ?",
                (QueueStatus.FAILED.value,),
            )
        return cursor.rowcount

    def recover_interrupted(self) -> int:
        """Return entries left in ``syncing`` to ``queued``.

        Only valid when no drain is running, i.e. when the store opens.

        Returns:
            Number of entries recovered.
        """
        with self._lock:
            cursor = self._conn.execute(
                f"UPDATE {self._table} SET status = ? WHERE status = ?",
                (QueueStatus.QUEUED.value, QueueStatus.SYNCING.value),
            )
        if cursor.rowcount:
            logger.info(
                "Recovered %d interrupted %s queue entries",
                cursor.rowcount,
                self.family.value,
            )
        return cursor.rowcount

    def __len__(self) -> int:
        """Get number of entries, whatever their status."""
        with self._lock:
            row = self._conn.execute(f"SELECT COUNT(*) AS n FROM {self._table}").fetchone()
        return int(row["n"])
