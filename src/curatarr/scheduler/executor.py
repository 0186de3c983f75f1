"""Job bodies run by the scheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from curatarr.sync import ImportListNotFoundError, SyncInProgressError, SyncResult

if TYPE_CHECKING:
    from curatarr.notifications import ActivityNotificationPipeline
    from curatarr.store.activity import ActivityLogStore
    from curatarr.sync import ImportListSyncPipeline

logger = logging.getLogger(__name__)


class JobExecutor:
    """Runs scheduled import list syncs, notification polls and activity pruning.

    Job bodies never raise: a failed run is logged and the next tick
    tries again.
    """

    def __init__(
        self,
        pipeline: ImportListSyncPipeline,
        notifier: ActivityNotificationPipeline | None = None,
        activity: ActivityLogStore | None = None,
        retention_days: int = 0,
    ) -> None:
        """Initialize the job executor.

        Args:
            pipeline: The import list sync pipeline
            notifier: The notification pipeline, if polling is enabled
            activity: The local activity log to prune
            retention_days: Age in days after which activity events are
                deleted; 0 keeps them forever
        """
        self._pipeline = pipeline
        self._notifier = notifier
        self._activity = activity
        self._retention_days = retention_days

    async def sync_list(self, list_id: str) -> SyncResult | None:
        """Run a scheduled sync of one list.

        Returns:
            The SyncResult, or None if the run was skipped or crashed
        """
        try:
            return await self._pipeline.sync(list_id)
        except SyncInProgressError:
            logger.info("Scheduled sync of '%s' skipped: already running", list_id)
        except ImportListNotFoundError:
            logger.warning("Scheduled sync of '%s' skipped: list no longer exists", list_id)
        except Exception:
            logger.exception("Scheduled sync of '%s' failed", list_id)
        return None

    async def poll_notifications(self) -> None:
        """Run one notification poll."""
        if self._notifier is None:
            return
        try:
            await self._notifier.poll()
        except Exception:
            logger.exception("Notification poll crashed")

    async def prune_activity(self) -> int:
        """Delete activity events older than the retention period.

        Returns:
            The number of events deleted
        """
        if self._activity is None or self._retention_days <= 0:
            return 0
        try:
            removed = self._activity.prune(self._retention_days)
        except Exception:
            logger.exception("Activity pruning failed")
            return 0
        if removed:
            logger.info(
                "Pruned %d activity event(s) older than %d days", removed, self._retention_days
            )
        return removed
