"""Scheduler manager for import list syncs and notification polling."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from curatarr.scheduler.executor import JobExecutor

if TYPE_CHECKING:
    from curatarr.config import Config
    from curatarr.models.lists import ImportListConfig
    from curatarr.notifications import ActivityNotificationPipeline
    from curatarr.state import SyncRunRecord
    from curatarr.store.activity import ActivityLogStore
    from curatarr.store.lists import ImportListStore
    from curatarr.sync import ImportListSyncPipeline, SyncResult

logger = logging.getLogger(__name__)

LIST_JOB_PREFIX = "import-list:"
NOTIFICATION_JOB_ID = "notifications:poll"
ACTIVITY_PRUNE_JOB_ID = "activity:prune"


def list_job_id(list_id: str) -> str:
    """Scheduler job id for an import list."""
    return f"{LIST_JOB_PREFIX}{list_id}"


def first_run_time(config: ImportListConfig, now: datetime | None = None) -> datetime:
    """When a list's job should first fire: now if overdue, else when it comes due."""
    now = now or datetime.now(UTC)
    next_at = config.next_sync_at()
    if next_at is None or next_at <= now:
        return now
    return next_at


@dataclass
class ScheduledJob:
    """A job currently registered with the scheduler."""

    job_id: str
    name: str
    next_run: datetime | None
    interval_minutes: float | None


class SchedulerManager:
    """Keeps one interval job per enabled import list plus housekeeping jobs.

    Housekeeping is a notification poll and a daily prune of the local
    activity log.

    Jobs use ``max_instances=1`` and ``coalesce=True`` so a slow sync never
    overlaps itself and missed ticks collapse into one run. Removing a job
    only affects future ticks; a run already in progress completes.
    """

    def __init__(
        self,
        config: Config,
        pipeline: ImportListSyncPipeline,
        lists: ImportListStore,
        notifier: ActivityNotificationPipeline | None = None,
        activity: ActivityLogStore | None = None,
    ) -> None:
        """Initialize the scheduler manager.

        Args:
            config: Application configuration
            pipeline: The import list sync pipeline
            lists: Import list store used to discover jobs
            notifier: The notification pipeline to poll, if any
            activity: Local activity log pruned after
                ``scheduler.activity_retention_days``
        """
        self._config = config
        self._pipeline = pipeline
        self._lists = lists
        self._notifier = notifier
        self._activity = activity
        self._executor = JobExecutor(
            pipeline,
            notifier,
            activity=activity,
            retention_days=config.scheduler.activity_retention_days,
        )
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the scheduler. Must be called with a running event loop."""
        if self.is_running:
            return
        self._scheduler = AsyncIOScheduler(timezone=UTC)
        self._scheduler.start()
        self.refresh_jobs()
        if self._notifier is not None:
            self._scheduler.add_job(
                self._executor.poll_notifications,
                trigger=IntervalTrigger(seconds=self._config.scheduler.notification_interval),
                id=NOTIFICATION_JOB_ID,
                name="Notification poll",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        if self._activity is not None and self._config.scheduler.activity_retention_days > 0:
            self._scheduler.add_job(
                self._executor.prune_activity,
                trigger=IntervalTrigger(days=1),
                id=ACTIVITY_PRUNE_JOB_ID,
                name="Activity prune",
                replace_existing=True,
                next_run_time=datetime.now(UTC),
                max_instances=1,
                coalesce=True,
            )
        logger.info("Scheduler started with %d job(s)", len(self._scheduler.get_jobs()))

    def stop(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
        self._scheduler = None

    def refresh_jobs(self, now: datetime | None = None) -> None:
        """Bring list jobs in line with the enabled import lists.

        Jobs of disabled or deleted lists are removed; new lists get a job;
        lists whose refresh interval changed get their job replaced.
        """
        if self._scheduler is None:
            return
        wanted = {list_job_id(cfg.id): cfg for cfg in self._lists.enabled()}

        for job in self._scheduler.get_jobs():
            if job.id.startswith(LIST_JOB_PREFIX) and job.id not in wanted:
                self._scheduler.remove_job(job.id)
                logger.info("Removed sync job %s", job.id)

        for job_id, cfg in wanted.items():
            interval = timedelta(minutes=cfg.refresh_interval)
            existing = self._scheduler.get_job(job_id)
            if existing is not None and getattr(existing.trigger, "interval", None) == interval:
                continue
            self._scheduler.add_job(
                self._executor.sync_list,
                trigger=IntervalTrigger(minutes=cfg.refresh_interval),
                args=[cfg.id],
                id=job_id,
                name=f"Sync {cfg.name}",
                replace_existing=True,
                next_run_time=first_run_time(cfg, now),
                max_instances=1,
                coalesce=True,
            )
            logger.info("Scheduled sync of '%s' every %d minutes", cfg.name, cfg.refresh_interval)

    def get_jobs(self) -> list[ScheduledJob]:
        """Get the registered jobs."""
        if self._scheduler is None:
            return []
        jobs = []
        for job in self._scheduler.get_jobs():
            interval = getattr(job.trigger, "interval", None)
            jobs.append(
                ScheduledJob(
                    job_id=job.id,
                    name=job.name,
                    next_run=job.next_run_time,
                    interval_minutes=interval.total_seconds() / 60 if interval else None,
                )
            )
        return jobs

    async def run_now(self, list_id: str) -> SyncResult:
        """Sync a list immediately, outside its schedule.

        Raises:
            ImportListNotFoundError: If the list id is unknown
            SyncInProgressError: If the list is already syncing
        """
        return await self._pipeline.sync(list_id)

    def get_history(
        self, list_id: str | None = None, limit: int | None = None
    ) -> list[SyncRunRecord]:
        """Get recorded sync runs, newest first."""
        if self._pipeline.state is None:
            return []
        return self._pipeline.state.get_sync_history(list_id, limit)
