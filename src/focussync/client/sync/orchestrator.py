"""Bidirectional sync between the local store and the remote sheet.

This module provides:
- SyncOrchestrator: Pull (remote -> local) and push (outbox -> remote)
  cycles with last-writer-wins conflict resolution

Key design: local records use ids, the sheet uses names.
- Push: ids -> names, from metadata loaded at the start of the drain
- Pull: names -> ids, creating missing tags/categories/projects

A full cycle runs pull(items) -> push(items) -> pull(prompts) -> push(prompts)
so remote changes are merged before deciding what still needs pushing.

Only one cycle runs at a time. The guard is a plain flag checked before the
first await: a request arriving while a cycle is running is rejected with
a busy result, never queued.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from focussync.client.api import APIError
from focussync.client.sync.resolver import (
    resolve_category_name,
    resolve_project_name,
    resolve_tag_names,
)
from focussync.client.sync.transform import (
    favicon_url,
    item_to_row,
    prompt_to_row,
    row_to_item,
    row_to_prompt,
)
from focussync.client.sync.types import QueueCounts, SyncResult
from focussync.core.config import cursor_key
from focussync.core.models import Item, Prompt
from focussync.core.timestamps import now_ms, now_utc
from focussync.core.types import (
    EntityFamily,
    ItemType,
    QueueOperation,
    QueueStatus,
    SyncState,
    SyncStatus,
)

if TYPE_CHECKING:
    from focussync.client.api import SheetsClient
    from focussync.client.rows import ItemRow, PromptRow
    from focussync.client.state import LocalStore
    from focussync.core.models import MetadataLookup, QueueEntry

logger = logging.getLogger(__name__)


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


class SyncOrchestrator:
    """Drives sync cycles for items and prompts.

    Created once per process and shared by every trigger (manual request,
    periodic timer), which all go through the same guard.
    """

    def __init__(self, store: LocalStore, client: SheetsClient) -> None:
        """Initialize the orchestrator.

        Args:
            store: Local record store.
            client: Remote store client.
        """
        self._store = store
        self._client = client
        self._syncing = False

    @property
    def is_syncing(self) -> bool:
        """Check if a cycle is in flight."""
        return self._syncing

    @property
    def state(self) -> SyncState:
        """Current state of the orchestrator."""
        return SyncState.SYNCING if self._syncing else SyncState.IDLE

    async def _exclusive(self, operation: Callable[[], Awaitable[SyncResult]]) -> SyncResult:
        """Run an operation unless another one is in flight."""
        if self._syncing:
            logger.info("Sync requested while another is running, rejecting")
            return SyncResult.busy()
        self._syncing = True
        try:
            return await operation()
        finally:
            self._syncing = False

    # === Public operations ===

    async def pull(self, family: EntityFamily, force_full_sync: bool = False) -> SyncResult:
        """Merge remote changes of one family into the local store.

        Args:
            family: Entity family to pull.
            force_full_sync: Fetch every row instead of the delta since the cursor.
        """
        return await self._exclusive(lambda: self._pull(family, force_full_sync))

    async def process_queue(self, family: EntityFamily) -> SyncResult:
        """Push the queued local mutations of one family."""
        return await self._exclusive(lambda: self._process_queue(family))

    async def full_sync(self, force_full_sync: bool = False) -> SyncResult:
        """Run a complete cycle for both families.

        If pulling items fails (remote unreachable, local store error) the
        cycle stops there and that result is returned.

        Args:
            force_full_sync: Ignore the pull cursors.

        Returns:
            Combined result; ``success`` only if all four phases succeeded.
        """
        return await self._exclusive(lambda: self._full_sync(force_full_sync))

    async def force_full_sync(self) -> SyncResult:
        """Run a complete cycle that refetches every remote row."""
        return await self.full_sync(force_full_sync=True)

    def get_queue_status(self) -> QueueCounts:
        """Count outbox entries by status across both families."""
        counts = QueueCounts()
        for family in EntityFamily:
            by_status = self._store.queue(family).counts()
            counts.queued += by_status[QueueStatus.QUEUED]
            counts.syncing += by_status[QueueStatus.SYNCING]
            counts.failed += by_status[QueueStatus.FAILED]
        return counts

    def retry_failed(self) -> int:
        """Requeue every failed entry with its retry counter reset.

        Returns:
            Number of entries requeued.
        """
        count = sum(self._store.queue(family).retry_failed() for family in EntityFamily)
        if count:
            logger.info("Requeued %d failed entries", count)
        return count

    def clear_failed(self) -> int:
        """Drop every failed entry.

        Returns:
            Number of entries dropped.
        """
        count = sum(self._store.queue(family).clear_failed() for family in EntityFamily)
        if count:
            logger.info("Dropped %d failed entries", count)
        return count

    # === Cycle ===

    async def _full_sync(self, force_full_sync: bool) -> SyncResult:
        pull_items = await self._pull(EntityFamily.ITEMS, force_full_sync)
        if not pull_items.success:
            return pull_items

        push_items = await self._process_queue(EntityFamily.ITEMS)
        pull_prompts = await self._pull(EntityFamily.PROMPTS, force_full_sync)
        push_prompts = await self._process_queue(EntityFamily.PROMPTS)

        result = SyncResult.combine([pull_items, push_items, pull_prompts, push_prompts])
        logger.info(
            "Sync finished: success=%s created=%d updated=%d deleted=%d errors=%d",
            result.success,
            result.created,
            result.updated,
            result.deleted,
            len(result.errors),
        )
        return result

    # === Pull ===

    async def _pull(self, family: EntityFamily, force_full_sync: bool) -> SyncResult:
        settings = self._store.get_settings()
        if not settings.is_configured:
            logger.debug("Remote store not configured, skipping %s pull", family.value)
            return SyncResult()

        result = SyncResult()
        since = None if force_full_sync else settings.last_sync_at(family)

        try:
            if family is EntityFamily.ITEMS:
                await self._pull_items(since, result)
            else:
                await self._pull_prompts(since, result)
            # The cursor marks the end of this pull session, not the newest
            # row seen; rows written remotely during the pull wait for a
            # full sync.
            self._store.update_settings(**{cursor_key(family): now_ms()})
        except APIError as e:
            logger.warning("Pulling %s failed: %s", family.value, e)
            result.success = False
            result.errors.append(_describe(e))
        except Exception as e:
            logger.exception("Unexpected error while pulling %s", family.value)
            result.success = False
            result.errors.append(_describe(e))

        return result

    async def _pull_items(self, since: int | None, result: SyncResult) -> None:
        if since:
            rows = await self._client.get_modified_items_since(since)
        else:
            rows = await self._client.get_all_items()
        logger.info("%s items pull: fetched %d rows", "Delta" if since else "Full", len(rows))

        metadata = self._store.load_metadata()
        local_by_id = {item.id: item for item in self._store.list_items()}

        for row in rows:
            try:
                self._merge_item(row, local_by_id, metadata, result)
            except Exception as e:
                logger.exception("Failed to merge item %s", row.id)
                result.errors.append(f"pull {row.id}: {_describe(e)}")

    def _merge_item(
        self,
        row: ItemRow,
        local_by_id: dict[str, Item],
        metadata: MetadataLookup,
        result: SyncResult,
    ) -> None:
        parsed = row_to_item(row)
        local = local_by_id.get(parsed.id)

        if local is not None and local.updated_at > parsed.updated_at:
            # Local wins; its queued mutation will push it
            logger.debug("Keeping newer local item %s", parsed.id)
            return

        tag_ids = resolve_tag_names(self._store, parsed.tag_names, metadata.tags)
        category_id = resolve_category_name(self._store, parsed.category_name, metadata.categories)
        project_id = resolve_project_name(self._store, parsed.project_name, metadata.projects)

        favicon = None
        if parsed.type == ItemType.BOOKMARK and parsed.url:
            favicon = favicon_url(parsed.url)

        if local is not None:
            merged = dataclasses.replace(
                local,
                type=parsed.type,
                title=parsed.title,
                content=parsed.content,
                url=parsed.url,
                favicon_url=favicon or local.favicon_url,
                priority=parsed.priority,
                deadline=parsed.deadline,
                completed=parsed.completed,
                tags=tag_ids,
                category_id=category_id,
                project_id=project_id,
                sync_status=SyncStatus.SYNCED,
                updated_at=parsed.updated_at,
            )
            self._store.save_item(merged)
            result.updated += 1
        else:
            merged = Item(
                id=parsed.id,
                type=parsed.type,
                title=parsed.title,
                content=parsed.content,
                url=parsed.url,
                favicon_url=favicon,
                priority=parsed.priority,
                deadline=parsed.deadline,
                completed=parsed.completed,
                category_id=category_id,
                project_id=project_id,
                tags=tag_ids,
                created_at=now_utc(),
                updated_at=parsed.updated_at,
                sync_status=SyncStatus.SYNCED,
            )
            self._store.save_item(merged)
            result.created += 1

        local_by_id[merged.id] = merged

    async def _pull_prompts(self, since: int | None, result: SyncResult) -> None:
        if since:
            rows = await self._client.get_modified_prompts_since(since)
        else:
            rows = await self._client.get_all_prompts()
        logger.info("%s prompts pull: fetched %d rows", "Delta" if since else "Full", len(rows))

        local_by_id = {prompt.id: prompt for prompt in self._store.list_prompts()}

        for row in rows:
            try:
                self._merge_prompt(row, local_by_id, result)
            except Exception as e:
                logger.exception("Failed to merge prompt %s", row.id)
                result.errors.append(f"pull {row.id}: {_describe(e)}")

    def _merge_prompt(
        self,
        row: PromptRow,
        local_by_id: dict[str, Prompt],
        result: SyncResult,
    ) -> None:
        parsed = row_to_prompt(row)
        local = local_by_id.get(parsed.id)

        if local is not None and local.updated_at > parsed.updated_at:
            logger.debug("Keeping newer local prompt %s", parsed.id)
            return

        if local is not None:
            merged = dataclasses.replace(
                local,
                title=parsed.title,
                description=parsed.description,
                prompt=parsed.prompt,
                type=parsed.type,
                category=parsed.category,
                tags=parsed.tags,
                note=parsed.note,
                approved=parsed.approved,
                favorite=parsed.favorite,
                quality=parsed.quality,
                text_demo=parsed.text_demo,
                url_demo=parsed.url_demo,
                sync_status=SyncStatus.SYNCED,
                updated_at=parsed.updated_at,
            )
            self._store.save_prompt(merged)
            result.updated += 1
        else:
            merged = Prompt(
                id=parsed.id,
                title=parsed.title,
                description=parsed.description,
                prompt=parsed.prompt,
                type=parsed.type,
                category=parsed.category,
                tags=parsed.tags,
                note=parsed.note,
                approved=parsed.approved,
                favorite=parsed.favorite,
                quality=parsed.quality,
                text_demo=parsed.text_demo,
                file_demo=None,
                url_demo=parsed.url_demo,
                created_at=now_utc(),
                updated_at=parsed.updated_at,
                sync_status=SyncStatus.SYNCED,
            )
            self._store.save_prompt(merged)
            result.created += 1

        local_by_id[merged.id] = merged

    # === Push ===

    async def _process_queue(self, family: EntityFamily) -> SyncResult:
        settings = self._store.get_settings()
        if not settings.is_configured:
            logger.debug("Remote store not configured, skipping %s queue", family.value)
            return SyncResult()

        result = SyncResult()
        queue = self._store.queue(family)

        try:
            # Names are rendered from current metadata, including records
            # created by the pull that just ran.
            metadata = self._store.load_metadata() if family is EntityFamily.ITEMS else None
            pending = queue.pending()
            if pending:
                logger.info("Processing %d queued %s", len(pending), family.value)

            for entry in pending:
                try:
                    await self._push_entry(family, entry, metadata, result)
                except APIError as e:
                    logger.warning(
                        "Failed to %s %s %s: %s",
                        entry.operation.value,
                        family.value,
                        entry.entity_id,
                        e,
                    )
                    result.errors.append(f"{entry.operation.value} {entry.entity_id}: {_describe(e)}")
                    queue.record_failure(entry, _describe(e))
                except Exception as e:
                    logger.exception(
                        "Unexpected error while pushing %s %s",
                        family.value,
                        entry.entity_id,
                    )
                    result.errors.append(f"{entry.operation.value} {entry.entity_id}: {_describe(e)}")
                    queue.record_failure(entry, _describe(e))
        except Exception as e:
            logger.exception("Processing the %s queue failed", family.value)
            result.success = False
            result.errors.append(_describe(e))

        return result

    async def _push_entry(
        self,
        family: EntityFamily,
        entry: QueueEntry,
        metadata: MetadataLookup | None,
        result: SyncResult,
    ) -> None:
        queue = self._store.queue(family)
        queue.mark_syncing(entry.id)

        if entry.operation is QueueOperation.DELETE:
            if family is EntityFamily.ITEMS:
                await self._client.delete_item(entry.entity_id)
            else:
                await self._client.delete_prompt(entry.entity_id)
            result.deleted += 1
            queue.remove(entry.id)
            return

        if family is EntityFamily.ITEMS:
            item = self._store.get_item(entry.entity_id)
            if item is None:
                logger.debug("Item %s deleted locally, dropping %s", entry.entity_id, entry.operation.value)
                queue.remove(entry.id)
                return
            item_row = item_to_row(item, metadata)
            if entry.operation is QueueOperation.CREATE:
                await self._client.create_item(item_row)
            else:
                await self._client.update_item(item_row)
        else:
            prompt = self._store.get_prompt(entry.entity_id)
            if prompt is None:
                logger.debug("Prompt %s deleted locally, dropping %s", entry.entity_id, entry.operation.value)
                queue.remove(entry.id)
                return
            prompt_row = prompt_to_row(prompt)
            if entry.operation is QueueOperation.CREATE:
                await self._client.create_prompt(prompt_row)
            else:
                await self._client.update_prompt(prompt_row)

        if entry.operation is QueueOperation.CREATE:
            result.created += 1
        else:
            result.updated += 1
        self._store.mark_synced(family, entry.entity_id)
        queue.remove(entry.id)
