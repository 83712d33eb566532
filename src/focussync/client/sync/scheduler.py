"""Periodic trigger for automatic sync.

This module provides:
- AutoSyncScheduler: Runs a full sync cycle every N minutes

The interval and the on/off switch live in the sync settings. Call
reschedule() after changing them; the job also re-checks the settings when
it fires, so a cycle never starts after auto-sync was switched off.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

if TYPE_CHECKING:
    from focussync.client.api import SettingsProvider
    from focussync.client.sync.orchestrator import SyncOrchestrator
    from focussync.client.sync.types import SyncCompleteCallback

logger = logging.getLogger(__name__)

JOB_ID = "auto_sync"


class AutoSyncScheduler:
    """Scheduler for the periodic sync cycle."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        settings_provider: SettingsProvider,
        on_complete: SyncCompleteCallback | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            orchestrator: Orchestrator shared with manual triggers.
            settings_provider: Returns the current sync settings.
            on_complete: Called after a cycle that changed something.
        """
        self._orchestrator = orchestrator
        self._settings_provider = settings_provider
        self._on_complete = on_complete
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    @property
    def interval_minutes(self) -> int | None:
        """Interval of the scheduled job, or None if no job is scheduled."""
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(JOB_ID)
        if job is None:
            return None
        return int(job.trigger.interval.total_seconds() // 60)

    async def _sync_job(self) -> None:
        """Job function for the periodic sync."""
        settings = self._settings_provider()
        if not settings.auto_sync_enabled:
            logger.info("Auto-sync disabled, skipping")
            return
        if not settings.is_configured:
            logger.info("Remote store not configured, skipping auto-sync")
            return

        logger.info("Auto-sync triggered")
        try:
            result = await self._orchestrator.full_sync()
        except Exception:
            logger.exception("Error during auto-sync")
            return

        logger.info(
            "Auto-sync result: success=%s created=%d updated=%d deleted=%d",
            result.success,
            result.created,
            result.updated,
            result.deleted,
        )
        if self._on_complete and result.has_changes:
            self._on_complete(result)

    def start(self) -> None:
        """Start the scheduler and install the job from the settings.

        Must be called from a running event loop.
        """
        if self._scheduler is not None:
            return  # Already running

        self._scheduler = AsyncIOScheduler()
        self._scheduler.start()
        self.reschedule()

    def reschedule(self) -> None:
        """Re-read the settings and install or remove the job."""
        if self._scheduler is None:
            return

        settings = self._settings_provider()
        if self._scheduler.get_job(JOB_ID) is not None:
            self._scheduler.remove_job(JOB_ID)

        interval = settings.auto_sync_interval_minutes
        if settings.auto_sync_enabled and interval > 0:
            self._scheduler.add_job(
                self._sync_job,
                trigger=IntervalTrigger(minutes=interval),
                id=JOB_ID,
                name="Periodic sync",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info("Auto-sync enabled: every %d minutes", interval)
        else:
            logger.info("Auto-sync disabled")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Auto-sync scheduler stopped")
