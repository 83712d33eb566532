"""Background sync service and its message interface.

This module provides:
- SyncService: Long-lived owner of the orchestrator and the scheduler
- Message types: SyncNow, GetSyncStatus, RetryFailed, ClearFailed, UpdateAutoSync
- Response types: one per message

The application shell (UI, CLI, another process) talks to the service with
request/response messages. Typed callers use handle(); JSON callers use
handle_message() with ``{"type": "SYNC_NOW", ...}`` payloads.

Example:
    {"type": "SYNC_NOW"}
    → {"success": true, "result": {"success": true, "created": 1, ...}}
    {"type": "GET_SYNC_STATUS"}
    → {"isSyncing": false, "queued": 2, "syncing": 0, "failed": 1}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, overload

from focussync.client.sync.orchestrator import SyncOrchestrator
from focussync.client.sync.scheduler import AutoSyncScheduler
from focussync.client.sync.types import SyncResult

if TYPE_CHECKING:
    from focussync.client.api import SheetsClient
    from focussync.client.state import LocalStore
    from focussync.client.sync.types import SyncCompleteCallback

logger = logging.getLogger(__name__)


class UnknownMessageError(ValueError):
    """Message type not understood by the service."""


# === Messages ===


@dataclass
class SyncNow:
    """Run a full sync cycle now."""

    TYPE = "SYNC_NOW"

    force_full_sync: bool = False


@dataclass
class GetSyncStatus:
    """Report whether a cycle is running and the outbox counts."""

    TYPE = "GET_SYNC_STATUS"


@dataclass
class RetryFailed:
    """Requeue failed outbox entries."""

    TYPE = "RETRY_FAILED"


@dataclass
class ClearFailed:
    """Drop failed outbox entries."""

    TYPE = "CLEAR_FAILED"


@dataclass
class UpdateAutoSync:
    """Re-read the auto-sync settings and reschedule the periodic trigger."""

    TYPE = "UPDATE_AUTO_SYNC"


Message = SyncNow | GetSyncStatus | RetryFailed | ClearFailed | UpdateAutoSync

_MESSAGE_TYPES: dict[str, type[Message]] = {
    cls.TYPE: cls for cls in (SyncNow, GetSyncStatus, RetryFailed, ClearFailed, UpdateAutoSync)
}


# === Responses ===


@dataclass
class SyncNowResponse:
    success: bool
    result: SyncResult | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.result is not None:
            data["result"] = self.result.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class SyncStatusResponse:
    is_syncing: bool
    queued: int
    syncing: int
    failed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "isSyncing": self.is_syncing,
            "queued": self.queued,
            "syncing": self.syncing,
            "failed": self.failed,
        }


@dataclass
class CountResponse:
    """Response of RETRY_FAILED and CLEAR_FAILED."""

    success: bool
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "count": self.count}


@dataclass
class AutoSyncResponse:
    success: bool
    interval_minutes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "intervalMinutes": self.interval_minutes}


Response = SyncNowResponse | SyncStatusResponse | CountResponse | AutoSyncResponse


def parse_message(data: dict[str, Any]) -> Message:
    """Build a typed message from a JSON payload.

    Raises:
        UnknownMessageError: If the type is missing or unknown.
    """
    msg_type = data.get("type")
    cls = _MESSAGE_TYPES.get(msg_type) if isinstance(msg_type, str) else None
    if cls is None:
        raise UnknownMessageError(f"Unknown message type: {msg_type!r}")
    if cls is SyncNow:
        return SyncNow(force_full_sync=bool(data.get("forceFullSync", False)))
    return cls()


class SyncService:
    """Long-lived sync service.

    Created once at process start; owns the single orchestrator so that
    manual requests and the periodic trigger share one guard.
    """

    def __init__(self, store: LocalStore, client: SheetsClient) -> None:
        """Initialize the service.

        Args:
            store: Local record store.
            client: Remote store client.
        """
        self._store = store
        self._client = client
        self._listeners: list[SyncCompleteCallback] = []
        self.orchestrator = SyncOrchestrator(store, client)
        self.scheduler = AutoSyncScheduler(
            self.orchestrator,
            store.get_settings,
            on_complete=self._notify_complete,
        )

    def add_listener(self, callback: SyncCompleteCallback) -> None:
        """Register a callback for automatic cycles that changed data."""
        self._listeners.append(callback)

    def _notify_complete(self, result: SyncResult) -> None:
        for callback in self._listeners:
            try:
                callback(result)
            except Exception:
                logger.exception("Sync completion listener failed")

    def start(self) -> None:
        """Start the periodic trigger. Needs a running event loop."""
        self.scheduler.start()

    async def stop(self) -> None:
        """Stop the periodic trigger and close the remote client."""
        self.scheduler.stop()
        await self._client.aclose()

    @overload
    async def handle(self, message: SyncNow) -> SyncNowResponse: ...
    @overload
    async def handle(self, message: GetSyncStatus) -> SyncStatusResponse: ...
    @overload
    async def handle(self, message: RetryFailed | ClearFailed) -> CountResponse: ...
    @overload
    async def handle(self, message: UpdateAutoSync) -> AutoSyncResponse: ...

    async def handle(self, message: Message) -> Response:
        """Handle a typed message.

        Raises:
            UnknownMessageError: For unsupported message objects.
        """
        if isinstance(message, SyncNow):
            return await self._sync_now(message)
        if isinstance(message, GetSyncStatus):
            counts = self.orchestrator.get_queue_status()
            return SyncStatusResponse(
                is_syncing=self.orchestrator.is_syncing,
                queued=counts.queued,
                syncing=counts.syncing,
                failed=counts.failed,
            )
        if isinstance(message, RetryFailed):
            return CountResponse(success=True, count=self.orchestrator.retry_failed())
        if isinstance(message, ClearFailed):
            return CountResponse(success=True, count=self.orchestrator.clear_failed())
        if isinstance(message, UpdateAutoSync):
            self.scheduler.reschedule()
            return AutoSyncResponse(success=True, interval_minutes=self.scheduler.interval_minutes)
        raise UnknownMessageError(f"Unsupported message: {message!r}")

    async def handle_message(self, data: dict[str, Any]) -> dict[str, Any]:
        """Handle a JSON message and return a JSON response."""
        response = await self.handle(parse_message(data))
        return response.to_dict()

    async def _sync_now(self, message: SyncNow) -> SyncNowResponse:
        try:
            result = await self.orchestrator.full_sync(message.force_full_sync)
        except Exception as e:
            logger.exception("Manual sync failed")
            return SyncNowResponse(success=False, error=str(e) or type(e).__name__)
        logger.info("Manual sync result: %s", result)
        return SyncNowResponse(success=True, result=result)
