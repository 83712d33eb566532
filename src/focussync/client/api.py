"""HTTP client for the remote spreadsheet store.

This module provides:
- SheetsClient: Async client for the remote web app action API
- APIError, NotConfiguredError: Typed errors
- WriteResult, DeleteResult, BatchOperation, BatchResult: Action payloads

The remote is a script-style web app, not a REST service: every call goes
to the same deployment URL, the action is selected by a query parameter
(GET) or by the JSON body (POST), and authentication is a shared secret
passed as the ``secret`` query parameter. Responses are wrapped in
``{"success": bool, "data": ..., "error": str}``; ``success: false`` is an
error whatever the HTTP status.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx

from focussync.client.rows import ItemRow, PromptRow, RowError
from focussync.core.config import SyncSettings

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", ItemRow, PromptRow)

SettingsProvider = Callable[[], SyncSettings]


class APIError(Exception):
    """Base exception for remote store errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotConfiguredError(APIError):
    """Remote endpoint URL or secret is missing."""


@dataclass
class WriteResult:
    """Result of a create/update action."""

    id: str
    row_index: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WriteResult:
        """Create from API response dictionary."""
        return cls(id=str(data.get("id", "")), row_index=data.get("rowIndex"))


@dataclass
class DeleteResult:
    """Result of a delete action."""

    id: str
    deleted: bool

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeleteResult:
        """Create from API response dictionary."""
        return cls(id=str(data.get("id", "")), deleted=bool(data.get("deleted")))


@dataclass
class BatchOperation:
    """One operation of a batch request.

    Attributes:
        action: Action name (createItem, updatePrompt, deleteItem, ...).
        data: Row for create/update actions.
        id: Entity id for delete actions.
    """

    action: str
    data: ItemRow | PromptRow | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"action": self.action}
        if self.data is not None:
            payload["data"] = self.data.to_dict()
        if self.id is not None:
            payload["id"] = self.id
        return payload


@dataclass
class BatchResult:
    """Outcome of one batch operation."""

    success: bool
    id: str | None = None
    error: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BatchResult:
        """Create from API response dictionary."""
        return cls(
            success=bool(data.get("success")),
            id=data.get("id"),
            error=data.get("error"),
        )


class SheetsClient:
    """Async HTTP client for the remote spreadsheet store.

    Credentials are read from the settings provider on every request, so
    updating the settings is enough for the next call to use them.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            settings_provider: Returns the current sync settings.
            timeout: Request timeout in seconds.
        """
        self._settings_provider = settings_provider
        self._timeout = timeout
        # Apps Script answers with a redirect to the actual content host.
        self._client = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> SheetsClient:
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.aclose()

    async def request(
        self,
        method: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send an action request and unwrap the response envelope.

        Args:
            method: ``GET`` or ``POST``.
            params: Extra query parameters (the secret is always added).
            body: JSON body for POST actions.

        Returns:
            The ``data`` member of the response.

        Raises:
            NotConfiguredError: If endpoint URL or secret is missing.
            APIError: On transport failure, invalid JSON or ``success: false``.
        """
        settings = self._settings_provider()
        if not settings.is_configured:
            raise NotConfiguredError("Remote store not configured")

        query = {"secret": settings.remote_secret or "", **(params or {})}
        action = (body or {}).get("action") or query.get("action")
        logger.debug("%s action=%s", method, action)

        try:
            response = await self._client.request(
                method,
                settings.remote_endpoint_url or "",
                params=query,
                json=body,
            )
        except httpx.HTTPError as e:
            raise APIError(f"Request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid response from remote (HTTP {response.status_code})",
                response.status_code,
            ) from e

        if not isinstance(payload, dict) or not payload.get("success"):
            message = None
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message")
            raise APIError(message or "Unknown error", response.status_code)

        return payload.get("data")

    @staticmethod
    def _parse_rows(data: Any, row_cls: type[RowT]) -> list[RowT]:
        """Parse a list of row objects, skipping rows without ID."""
        if not isinstance(data, list):
            raise APIError("Unexpected response: expected a list of rows")
        rows: list[RowT] = []
        for raw in data:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed row: %r", raw)
                continue
            try:
                rows.append(row_cls.from_dict(raw))
            except RowError as e:
                logger.warning("Skipping row: %s", e)
        return rows

    # === Items ===

    async def get_all_items(self) -> list[ItemRow]:
        """Get every item row."""
        data = await self.request("GET", {"action": "getItems"})
        return self._parse_rows(data, ItemRow)

    async def get_modified_items_since(self, timestamp: int) -> list[ItemRow]:
        """Get item rows modified after a timestamp.

        Args:
            timestamp: Epoch milliseconds.
        """
        data = await self.request("GET", {"action": "getItems", "since": str(timestamp)})
        return self._parse_rows(data, ItemRow)

    async def create_item(self, row: ItemRow) -> WriteResult:
        """Append an item row."""
        data = await self.request("POST", body={"action": "createItem", "data": row.to_dict()})
        return WriteResult.from_dict(data or {})

    async def update_item(self, row: ItemRow) -> WriteResult:
        """Update the item row with the same ID."""
        data = await self.request("POST", body={"action": "updateItem", "data": row.to_dict()})
        return WriteResult.from_dict(data or {})

    async def delete_item(self, item_id: str) -> DeleteResult:
        """Delete an item row."""
        data = await self.request("POST", body={"action": "deleteItem", "id": item_id})
        return DeleteResult.from_dict(data or {})

    # === Prompts ===

    async def get_all_prompts(self) -> list[PromptRow]:
        """Get every prompt row."""
        data = await self.request("GET", {"action": "getPrompts"})
        return self._parse_rows(data, PromptRow)

    async def get_modified_prompts_since(self, timestamp: int) -> list[PromptRow]:
        """Get prompt rows modified after a timestamp.

        Args:
            timestamp: Epoch milliseconds.
        """
        data = await self.request("GET", {"action": "getPrompts", "since": str(timestamp)})
        return self._parse_rows(data, PromptRow)

    async def create_prompt(self, row: PromptRow) -> WriteResult:
        """Append a prompt row."""
        data = await self.request("POST", body={"action": "createPrompt", "data": row.to_dict()})
        return WriteResult.from_dict(data or {})

    async def update_prompt(self, row: PromptRow) -> WriteResult:
        """Update the prompt row with the same ID."""
        data = await self.request("POST", body={"action": "updatePrompt", "data": row.to_dict()})
        return WriteResult.from_dict(data or {})

    async def delete_prompt(self, prompt_id: str) -> DeleteResult:
        """Delete a prompt row."""
        data = await self.request("POST", body={"action": "deletePrompt", "id": prompt_id})
        return DeleteResult.from_dict(data or {})

    # === Batch & utility ===

    async def batch(self, operations: list[BatchOperation]) -> list[BatchResult]:
        """Apply several operations in one request.

        Returns:
            One result per operation, in order.
        """
        data = await self.request(
            "POST",
            body={"action": "batch", "operations": [op.to_dict() for op in operations]},
        )
        return [BatchResult.from_dict(r) for r in data or []]

    async def test_connection(self) -> bool:
        """Check that the remote answers with valid credentials.

        Returns:
            True if the remote reports ``ok``. Never raises.
        """
        try:
            data = await self.request("GET", {"action": "test"})
        except Exception as e:
            logger.debug("Connection test failed: %s", e)
            return False
        return isinstance(data, dict) and data.get("ok") is True
