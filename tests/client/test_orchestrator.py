"""Tests for the sync orchestrator."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from focussync.client.api import APIError, SheetsClient
from focussync.client.rows import ItemRow, PromptRow
from focussync.client.state import LocalStore
from focussync.client.sync.orchestrator import SyncOrchestrator
from focussync.client.sync.queue import MAX_RETRIES
from focussync.client.sync.types import BUSY_MESSAGE
from focussync.core.models import Item, Prompt
from focussync.core.types import (
    EntityFamily,
    QueueOperation,
    QueueStatus,
    SyncState,
    SyncStatus,
)

JAN_1 = datetime(2024, 1, 1, tzinfo=UTC)
JUN_1 = datetime(2024, 6, 1, tzinfo=UTC)


def milk_row(**overrides: object) -> ItemRow:
    """Remote row for the 'Buy milk' task."""
    data: dict[str, object] = {
        "ID": "a1",
        "Type": "task",
        "Title": "Buy milk",
        "Tags": "errand,home",
        "Completed": "FALSE",
        "UpdatedAt": "2024-01-01T00:00:00Z",
    }
    data.update(overrides)
    return ItemRow.from_dict(data)


@pytest.fixture
def client() -> MagicMock:
    """Remote client whose queries return no rows."""
    mock = MagicMock(spec=SheetsClient)
    mock.get_all_items.return_value = []
    mock.get_modified_items_since.return_value = []
    mock.get_all_prompts.return_value = []
    mock.get_modified_prompts_since.return_value = []
    return mock


@pytest.fixture
def orchestrator(configured_store: LocalStore, client: MagicMock) -> SyncOrchestrator:
    """Orchestrator over a configured store and the mock client."""
    return SyncOrchestrator(configured_store, client)


def called_methods(client: MagicMock) -> list[str]:
    """Names of client methods called, in order."""
    return [name for name, _args, _kwargs in client.mock_calls]


class TestPull:
    """Tests for pulling remote rows into the local store."""

    @pytest.mark.asyncio
    async def test_fresh_pull_creates_item_and_tags(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """A row unknown locally is created with its tags resolved."""
        client.get_all_items.return_value = [milk_row()]

        result = await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        assert result.success is True
        assert result.created == 1
        items = configured_store.list_items()
        assert len(items) == 1
        item = items[0]
        assert item.id == "a1"
        assert item.type == "task"
        assert item.title == "Buy milk"
        assert item.completed is False
        assert item.updated_at == JAN_1
        assert item.sync_status == SyncStatus.SYNCED
        tags = {tag.id: tag.name for tag in configured_store.list_tags()}
        assert sorted(tags.values()) == ["errand", "home"]
        assert [tags[tag_id] for tag_id in item.tags] == ["errand", "home"]
        assert len(configured_store.queue(EntityFamily.ITEMS)) == 0

    @pytest.mark.asyncio
    async def test_pull_twice_is_idempotent(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """Pulling the same rows again leaves the store unchanged."""
        client.get_all_items.return_value = [milk_row(Category="Home", Project="Chores")]

        await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)
        items_before = configured_store.list_items()
        metadata_before = configured_store.load_metadata()

        await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        assert configured_store.list_items() == items_before
        assert configured_store.load_metadata() == metadata_before

    @pytest.mark.asyncio
    async def test_newer_local_item_wins(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """A remote row older than the local record is skipped."""
        configured_store.save_item(Item(id="a1", type="task", title="Local title", updated_at=JUN_1))
        client.get_all_items.return_value = [milk_row()]

        result = await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        assert result.created == 0
        assert result.updated == 0
        item = configured_store.get_item("a1")
        assert item is not None
        assert item.title == "Local title"
        assert configured_store.list_tags() == []

    @pytest.mark.asyncio
    async def test_newer_remote_row_overrides(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """A remote row newer than the local record replaces its content."""
        created_at = datetime(2023, 1, 1, tzinfo=UTC)
        configured_store.save_item(
            Item(
                id="a1",
                type="task",
                title="Old title",
                created_at=created_at,
                updated_at=datetime(2023, 6, 1, tzinfo=UTC),
                legacy_external_id="legacy-1",
            )
        )
        client.get_all_items.return_value = [milk_row()]

        result = await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        assert result.updated == 1
        item = configured_store.get_item("a1")
        assert item is not None
        assert item.title == "Buy milk"
        assert item.updated_at == JAN_1
        assert item.created_at == created_at
        assert item.legacy_external_id == "legacy-1"
        assert item.sync_status == SyncStatus.SYNCED

    @pytest.mark.asyncio
    async def test_equal_clocks_remote_item_wins(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """On equal updated_at the remote content is taken."""
        configured_store.save_item(Item(id="a1", type="task", title="local", updated_at=JAN_1))
        client.get_all_items.return_value = [milk_row(Title="remote")]

        result = await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        assert result.updated == 1
        item = configured_store.get_item("a1")
        assert item is not None
        assert item.title == "remote"

    @pytest.mark.asyncio
    async def test_bookmark_gets_favicon(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        client.get_all_items.return_value = [
            milk_row(ID="b1", Type="bookmark", URL="https://docs.python.org/3/", Tags="")
        ]

        await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        item = configured_store.get_item("b1")
        assert item is not None
        assert item.favicon_url == "https://www.google.com/s2/favicons?domain=docs.python.org&sz=32"

    @pytest.mark.asyncio
    async def test_delta_pull_uses_cursor(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """With a cursor set, only rows modified since are fetched."""
        configured_store.update_settings(last_sync_at_items=1700000000000)

        result = await orchestrator.pull(EntityFamily.ITEMS)

        assert result.success is True
        client.get_modified_items_since.assert_awaited_once_with(1700000000000)
        client.get_all_items.assert_not_awaited()
        cursor = configured_store.get_settings().last_sync_at_items
        assert cursor is not None
        assert cursor > 1700000000000

    @pytest.mark.asyncio
    async def test_forced_pull_ignores_cursor(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.update_settings(last_sync_at_items=1700000000000)

        await orchestrator.pull(EntityFamily.ITEMS, force_full_sync=True)

        client.get_all_items.assert_awaited_once()
        client.get_modified_items_since.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_pull_keeps_cursor(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """The cursor only advances after a successful pull."""
        client.get_all_items.side_effect = APIError("Request failed: timeout")

        result = await orchestrator.pull(EntityFamily.ITEMS)

        assert result.success is False
        assert result.errors == ["Request failed: timeout"]
        assert configured_store.get_settings().last_sync_at_items is None
        assert orchestrator.is_syncing is False

    @pytest.mark.asyncio
    async def test_pull_prompts(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        client.get_all_prompts.return_value = [
            PromptRow.from_dict(
                {
                    "ID": "p1",
                    "Title": "Summarize",
                    "Tags": "writing",
                    "Quality": 4,
                    "Approved": True,
                    "UpdatedAt": "2024-01-01T00:00:00Z",
                }
            )
        ]

        result = await orchestrator.pull(EntityFamily.PROMPTS)

        assert result.created == 1
        prompt = configured_store.get_prompt("p1")
        assert prompt is not None
        assert prompt.tags == ["writing"]
        assert prompt.quality == 4
        assert prompt.approved is True
        assert prompt.file_demo is None
        assert configured_store.get_settings().last_sync_at_prompts is not None

    @pytest.mark.asyncio
    async def test_pull_keeps_local_attachment(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """file_demo never comes from the remote, so a pull must not clear it."""
        configured_store.save_prompt(
            Prompt(id="p1", title="Old", file_demo="/tmp/demo.png", updated_at=JAN_1)
        )
        client.get_all_prompts.return_value = [
            PromptRow.from_dict({"ID": "p1", "Title": "New", "UpdatedAt": "2024-06-01T00:00:00Z"})
        ]

        await orchestrator.pull(EntityFamily.PROMPTS)

        prompt = configured_store.get_prompt("p1")
        assert prompt is not None
        assert prompt.title == "New"
        assert prompt.file_demo == "/tmp/demo.png"

    @pytest.mark.asyncio
    async def test_newer_local_prompt_wins(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.save_prompt(Prompt(id="p1", title="Local", updated_at=JUN_1))
        client.get_all_prompts.return_value = [
            PromptRow.from_dict({"ID": "p1", "Title": "Remote", "UpdatedAt": "2024-01-01T00:00:00Z"})
        ]

        result = await orchestrator.pull(EntityFamily.PROMPTS)

        assert result.updated == 0
        prompt = configured_store.get_prompt("p1")
        assert prompt is not None
        assert prompt.title == "Local"

    @pytest.mark.asyncio
    async def test_equal_clocks_remote_prompt_wins(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """On equal updated_at the remote content is taken."""
        configured_store.save_prompt(Prompt(id="p1", title="local", updated_at=JAN_1))
        client.get_all_prompts.return_value = [
            PromptRow.from_dict({"ID": "p1", "Title": "remote", "UpdatedAt": "2024-01-01T00:00:00Z"})
        ]

        result = await orchestrator.pull(EntityFamily.PROMPTS)

        assert result.updated == 1
        prompt = configured_store.get_prompt("p1")
        assert prompt is not None
        assert prompt.title == "remote"


class TestProcessQueue:
    """Tests for pushing queued local mutations."""

    @pytest.mark.asyncio
    async def test_drains_creates(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """Every queued create is pushed once and removed."""
        for item_id in ["a", "b", "c"]:
            configured_store.create_item(Item(id=item_id, type="note", title=item_id))

        result = await orchestrator.process_queue(EntityFamily.ITEMS)

        assert result.success is True
        assert result.created == 3
        assert client.create_item.await_count == 3
        assert len(configured_store.queue(EntityFamily.ITEMS)) == 0
        assert all(item.sync_status == SyncStatus.SYNCED for item in configured_store.list_items())

    @pytest.mark.asyncio
    async def test_push_renders_names(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        tag = configured_store.create_tag("python", "#000")
        project = configured_store.create_project("Learning", "#123")
        configured_store.create_item(
            Item(id="a", type="task", title="t", tags=[tag.id], project_id=project.id)
        )

        await orchestrator.process_queue(EntityFamily.ITEMS)

        row = client.create_item.await_args.args[0]
        assert row.tags == "python"
        assert row.project == "Learning"

    @pytest.mark.asyncio
    async def test_update_and_delete(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.save_item(Item(id="a", type="note", title="n"))
        configured_store.save_item(Item(id="b", type="note", title="n"))
        configured_store.update_item("a", title="renamed")
        configured_store.delete_item("b")

        result = await orchestrator.process_queue(EntityFamily.ITEMS)

        assert result.updated == 1
        assert result.deleted == 1
        assert client.update_item.await_args.args[0].title == "renamed"
        client.delete_item.assert_awaited_once_with("b")

    @pytest.mark.asyncio
    async def test_local_delete_wins(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """An update for an entity gone locally is dropped without a remote call."""
        configured_store.queue(EntityFamily.ITEMS).enqueue("gone", QueueOperation.UPDATE)

        result = await orchestrator.process_queue(EntityFamily.ITEMS)

        assert result.success is True
        assert result.errors == []
        assert client.mock_calls == []
        assert len(configured_store.queue(EntityFamily.ITEMS)) == 0

    @pytest.mark.asyncio
    async def test_update_then_delete_pushes_only_delete(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.save_item(Item(id="a", type="note", title="n"))
        configured_store.update_item("a", title="renamed")
        configured_store.delete_item("a")

        result = await orchestrator.process_queue(EntityFamily.ITEMS)

        assert called_methods(client) == ["delete_item"]
        assert result.deleted == 1
        assert result.updated == 0

    @pytest.mark.asyncio
    async def test_failure_counts_retry(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """A failed push is recorded on the entry, not on the result's success."""
        configured_store.create_item(Item(id="a", type="note", title="n"))
        client.create_item.side_effect = APIError("boom")

        result = await orchestrator.process_queue(EntityFamily.ITEMS)

        assert result.success is True
        assert result.errors == ["create a: boom"]
        entry = configured_store.queue(EntityFamily.ITEMS).pending()[0]
        assert entry.retries == 1
        assert entry.last_error == "boom"

    @pytest.mark.asyncio
    async def test_one_attempt_per_drain(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """A drain terminates even when every push fails."""
        configured_store.create_item(Item(id="a", type="note", title="n"))
        configured_store.create_item(Item(id="b", type="note", title="n"))
        client.create_item.side_effect = APIError("boom")

        await orchestrator.process_queue(EntityFamily.ITEMS)

        assert client.create_item.await_count == 2

    @pytest.mark.asyncio
    async def test_parked_after_max_retries_then_retried(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.create_item(Item(id="a", type="note", title="n"))
        client.create_item.side_effect = APIError("boom")

        for _ in range(MAX_RETRIES + 1):
            await orchestrator.process_queue(EntityFamily.ITEMS)

        assert client.create_item.await_count == MAX_RETRIES
        status = orchestrator.get_queue_status()
        assert (status.queued, status.failed) == (0, 1)

        assert orchestrator.retry_failed() == 1

        entry = configured_store.queue(EntityFamily.ITEMS).pending()[0]
        assert entry.status == QueueStatus.QUEUED
        assert entry.retries == 0

    @pytest.mark.asyncio
    async def test_clear_failed(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.create_prompt(Prompt(id="p1", title="t"))
        client.create_prompt.side_effect = APIError("boom")
        for _ in range(MAX_RETRIES):
            await orchestrator.process_queue(EntityFamily.PROMPTS)

        assert orchestrator.clear_failed() == 1

        assert orchestrator.get_queue_status().total == 0

    @pytest.mark.asyncio
    async def test_prompts_push_without_attachment(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.create_prompt(Prompt(id="p1", title="t", file_demo="/tmp/demo.png"))

        result = await orchestrator.process_queue(EntityFamily.PROMPTS)

        assert result.created == 1
        row = client.create_prompt.await_args.args[0]
        assert "/tmp/demo.png" not in row.to_dict().values()


class TestFullSync:
    """Tests for complete cycles and the single-flight guard."""

    @pytest.mark.asyncio
    async def test_phase_order(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        """Each family is pulled before its queue is pushed."""
        configured_store.create_item(Item(id="a", type="note", title="n"))
        configured_store.create_prompt(Prompt(id="p1", title="t"))

        result = await orchestrator.full_sync()

        assert called_methods(client) == [
            "get_all_items",
            "create_item",
            "get_all_prompts",
            "create_prompt",
        ]
        assert result.success is True
        assert result.created == 2

    @pytest.mark.asyncio
    async def test_stops_when_items_pull_fails(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.create_item(Item(id="a", type="note", title="n"))
        client.get_all_items.side_effect = APIError("offline")

        result = await orchestrator.full_sync()

        assert result.success is False
        assert called_methods(client) == ["get_all_items"]
        assert len(configured_store.queue(EntityFamily.ITEMS).pending()) == 1

    @pytest.mark.asyncio
    async def test_force_full_sync(
        self, orchestrator: SyncOrchestrator, configured_store: LocalStore, client: MagicMock
    ) -> None:
        configured_store.update_settings(
            last_sync_at_items=1700000000000, last_sync_at_prompts=1700000000000
        )

        await orchestrator.force_full_sync()

        client.get_all_items.assert_awaited_once()
        client.get_all_prompts.assert_awaited_once()
        client.get_modified_items_since.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_configured_is_vacuous_success(
        self, store: LocalStore, client: MagicMock
    ) -> None:
        """Without credentials nothing is attempted and nothing fails."""
        store.create_item(Item(id="a", type="note", title="n"))
        orchestrator = SyncOrchestrator(store, client)

        result = await orchestrator.full_sync()

        assert result.success is True
        assert result.errors == []
        assert client.mock_calls == []
        assert len(store.queue(EntityFamily.ITEMS).pending()) == 1

    @pytest.mark.asyncio
    async def test_busy_rejection(
        self, orchestrator: SyncOrchestrator, client: MagicMock
    ) -> None:
        """A second request during a cycle fails at once without remote calls."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_pull() -> list[ItemRow]:
            started.set()
            await release.wait()
            return []

        client.get_all_items.side_effect = slow_pull
        first = asyncio.create_task(orchestrator.full_sync())
        await started.wait()
        assert orchestrator.is_syncing is True
        assert orchestrator.state == SyncState.SYNCING
        calls_before = len(client.mock_calls)

        second = await orchestrator.full_sync()

        assert second.success is False
        assert second.errors == [BUSY_MESSAGE]
        assert len(client.mock_calls) == calls_before

        release.set()
        first_result = await first
        assert first_result.success is True
        assert orchestrator.is_syncing is False
        assert orchestrator.state == SyncState.IDLE

    @pytest.mark.asyncio
    async def test_guard_released_after_unexpected_error(
        self, orchestrator: SyncOrchestrator, client: MagicMock
    ) -> None:
        client.get_all_items.side_effect = RuntimeError("bug")

        result = await orchestrator.full_sync()

        assert result.success is False
        assert result.errors == ["bug"]
        assert orchestrator.is_syncing is False
