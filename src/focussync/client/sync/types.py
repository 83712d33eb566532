"""Shared result types for sync operations.

This module provides:
- SyncResult: Outcome of a pull, a queue drain, or a full cycle
- QueueCounts: Outbox counts by status
- BUSY_MESSAGE: Error reported when a cycle is already running
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any

BUSY_MESSAGE = "Sync already in progress"


@dataclass
class SyncResult:
    """Result of a sync operation.

    Per-row and per-entry failures are listed in ``errors`` without
    clearing ``success``; only a failed phase (remote unreachable, local
    store error) does.
    """

    success: bool = True
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    @classmethod
    def busy(cls) -> SyncResult:
        """Result returned when another cycle is in flight."""
        return cls(success=False, errors=[BUSY_MESSAGE])

    @classmethod
    def combine(cls, results: list[SyncResult]) -> SyncResult:
        """Sum counts and errors; success only if every part succeeded."""
        return cls(
            success=all(r.success for r in results),
            created=sum(r.created for r in results),
            updated=sum(r.updated for r in results),
            deleted=sum(r.deleted for r in results),
            errors=[e for r in results for e in r.errors],
        )

    @property
    def has_changes(self) -> bool:
        """Check if anything was created, updated or deleted."""
        return self.created > 0 or self.updated > 0 or self.deleted > 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class QueueCounts:
    """Outbox entries by status, both families combined."""

    queued: int = 0
    syncing: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.queued + self.syncing + self.failed

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# Type alias for completion callbacks
SyncCompleteCallback = Callable[[SyncResult], None]
