"""Background scheduling of import list syncs, notification polls and pruning."""

from curatarr.scheduler.executor import JobExecutor
from curatarr.scheduler.manager import (
    ACTIVITY_PRUNE_JOB_ID,
    LIST_JOB_PREFIX,
    NOTIFICATION_JOB_ID,
    ScheduledJob,
    SchedulerManager,
    first_run_time,
    list_job_id,
)

__all__ = [
    "ACTIVITY_PRUNE_JOB_ID",
    "LIST_JOB_PREFIX",
    "NOTIFICATION_JOB_ID",
    "JobExecutor",
    "ScheduledJob",
    "SchedulerManager",
    "first_run_time",
    "list_job_id",
]
