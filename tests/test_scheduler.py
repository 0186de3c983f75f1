"""Tests for the scheduler module."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from curatarr.config import Config, SchedulerConfig
from curatarr.models.lists import ImportListConfig
from curatarr.scheduler import (
    ACTIVITY_PRUNE_JOB_ID,
    NOTIFICATION_JOB_ID,
    JobExecutor,
    SchedulerManager,
    first_run_time,
    list_job_id,
)
from curatarr.state import StateManager, SyncRunRecord
from curatarr.store import ActivityLogStore, ImportListStore
from curatarr.sync import ImportListNotFoundError, SyncInProgressError, SyncResult

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _list(list_id: str, **kwargs: object) -> ImportListConfig:
    data: dict[str, object] = {"id": list_id, "name": list_id.title(), "provider_type": "tmdb"}
    data.update(kwargs)
    return ImportListConfig.model_validate(data)


class TestFirstRunTime:
    """Tests for first_run_time."""

    def test_never_synced_runs_now(self) -> None:
        """A list that never synced is due immediately."""
        assert first_run_time(_list("a"), NOW) == NOW

    def test_overdue_runs_now(self) -> None:
        """An overdue list runs immediately."""
        config = _list("a", last_sync=NOW - timedelta(hours=13), refresh_interval=720)
        assert first_run_time(config, NOW) == NOW

    def test_not_yet_due_waits(self) -> None:
        """A recently synced list waits for its interval."""
        config = _list("a", last_sync=NOW - timedelta(minutes=30), refresh_interval=60)
        assert first_run_time(config, NOW) == NOW + timedelta(minutes=30)

    def test_list_job_id(self) -> None:
        """Job ids are prefixed per list."""
        assert list_job_id("popular") == "import-list:popular"


class TestJobExecutor:
    """Tests for JobExecutor."""

    @pytest.mark.asyncio
    async def test_sync_list_returns_result(self) -> None:
        """A successful run returns the SyncResult."""
        pipeline = MagicMock()
        pipeline.sync = AsyncMock(return_value=SyncResult(list_id="a", added=2))

        result = await JobExecutor(pipeline).sync_list("a")

        assert result is not None
        assert result.added == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [SyncInProgressError("a"), ImportListNotFoundError("a"), RuntimeError("boom")],
    )
    async def test_sync_list_swallows_errors(self, error: Exception) -> None:
        """Failures are logged and never propagate."""
        pipeline = MagicMock()
        pipeline.sync = AsyncMock(side_effect=error)

        assert await JobExecutor(pipeline).sync_list("a") is None

    @pytest.mark.asyncio
    async def test_poll_notifications(self) -> None:
        """The notifier is polled; a crash is contained."""
        notifier = MagicMock()
        notifier.poll = AsyncMock(side_effect=RuntimeError("boom"))

        await JobExecutor(MagicMock(), notifier).poll_notifications()

        notifier.poll.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_poll_without_notifier(self) -> None:
        """Polling without a notifier does nothing."""
        await JobExecutor(MagicMock()).poll_notifications()

    @pytest.mark.asyncio
    async def test_prune_activity_deletes_old_events(self, tmp_path: Path) -> None:
        """Events older than the retention period are deleted."""
        path = tmp_path / "activity.json"
        path.write_text(
            json.dumps(
                {
                    "events": [
                        {
                            "id": 1,
                            "event_type": "grabbed",
                            "message": "old",
                            "created_at": (datetime.now(UTC) - timedelta(days=40)).isoformat(),
                        },
                        {
                            "id": 2,
                            "event_type": "grabbed",
                            "message": "new",
                            "created_at": datetime.now(UTC).isoformat(),
                        },
                    ]
                }
            )
        )
        activity = ActivityLogStore(path)
        executor = JobExecutor(MagicMock(), activity=activity, retention_days=30)

        removed = await executor.prune_activity()

        assert removed == 1
        assert [e.message for e in activity.recent()] == ["new"]

    @pytest.mark.asyncio
    async def test_prune_activity_disabled(self) -> None:
        """A retention of 0 days keeps everything."""
        activity = MagicMock()

        assert await JobExecutor(MagicMock(), activity=activity).prune_activity() == 0
        activity.prune.assert_not_called()

    @pytest.mark.asyncio
    async def test_prune_activity_swallows_errors(self) -> None:
        """A failing prune is logged and reports nothing deleted."""
        activity = MagicMock()
        activity.prune.side_effect = OSError("read-only")

        executor = JobExecutor(MagicMock(), activity=activity, retention_days=7)

        assert await executor.prune_activity() == 0
        activity.prune.assert_called_once_with(7)


class TestSchedulerManager:
    """Tests for SchedulerManager."""

    def _manager(
        self, tmp_path: Path, notifier: MagicMock | None = None
    ) -> tuple[SchedulerManager, ImportListStore, MagicMock]:
        lists = ImportListStore(tmp_path / "lists.json")
        pipeline = MagicMock()
        pipeline.sync = AsyncMock(return_value=SyncResult(list_id="x"))
        pipeline.state = StateManager(tmp_path / "state.json")
        return SchedulerManager(Config(), pipeline, lists, notifier), lists, pipeline

    def test_not_running_before_start(self, tmp_path: Path) -> None:
        """A fresh manager has no jobs."""
        manager, _, _ = self._manager(tmp_path)

        assert manager.is_running is False
        assert manager.get_jobs() == []

    @pytest.mark.asyncio
    async def test_start_registers_enabled_lists(self, tmp_path: Path) -> None:
        """One job per enabled list plus the notification poll."""
        recent = datetime.now(UTC)
        manager, lists, _ = self._manager(tmp_path, notifier=MagicMock())
        lists.add(_list("popular", last_sync=recent, refresh_interval=60))
        lists.add(_list("disabled", enabled=False))

        manager.start()
        try:
            jobs = {job.job_id: job for job in manager.get_jobs()}
        finally:
            manager.stop()

        assert set(jobs) == {list_job_id("popular"), NOTIFICATION_JOB_ID}
        assert jobs[list_job_id("popular")].interval_minutes == 60
        assert manager.is_running is False

    @pytest.mark.asyncio
    async def test_refresh_tracks_list_changes(self, tmp_path: Path) -> None:
        """Deleted lists lose their job and interval changes replace it."""
        recent = datetime.now(UTC)
        manager, lists, _ = self._manager(tmp_path)
        lists.add(_list("a", last_sync=recent, refresh_interval=60))
        lists.add(_list("b", last_sync=recent, refresh_interval=60))

        manager.start()
        try:
            lists.remove("a")
            lists.update(_list("b", last_sync=recent, refresh_interval=120))
            manager.refresh_jobs()
            jobs = manager.get_jobs()
        finally:
            manager.stop()

        assert [job.job_id for job in jobs] == [list_job_id("b")]
        assert jobs[0].interval_minutes == 120

    @pytest.mark.asyncio
    async def test_refresh_drops_disabled_list(self, tmp_path: Path) -> None:
        """Disabling a list removes its job on the next refresh."""
        manager, lists, _ = self._manager(tmp_path)
        lists.add(_list("a", last_sync=datetime.now(UTC)))

        manager.start()
        try:
            lists.modify("a", {"enabled": False})
            manager.refresh_jobs()
            jobs = manager.get_jobs()
        finally:
            manager.stop()

        assert jobs == []

    @pytest.mark.asyncio
    async def test_start_registers_daily_activity_prune(self, tmp_path: Path) -> None:
        """An activity store gets a daily prune job."""
        lists = ImportListStore(tmp_path / "lists.json")
        activity = ActivityLogStore(tmp_path / "activity.json")
        manager = SchedulerManager(Config(), MagicMock(), lists, activity=activity)

        manager.start()
        try:
            jobs = {job.job_id: job for job in manager.get_jobs()}
        finally:
            manager.stop()

        assert set(jobs) == {ACTIVITY_PRUNE_JOB_ID}
        assert jobs[ACTIVITY_PRUNE_JOB_ID].interval_minutes == 24 * 60

    @pytest.mark.asyncio
    async def test_zero_retention_skips_prune_job(self, tmp_path: Path) -> None:
        """A retention of 0 days registers no prune job."""
        config = Config(scheduler=SchedulerConfig(activity_retention_days=0))
        activity = ActivityLogStore(tmp_path / "activity.json")
        manager = SchedulerManager(
            config, MagicMock(), ImportListStore(tmp_path / "lists.json"), activity=activity
        )

        manager.start()
        try:
            jobs = manager.get_jobs()
        finally:
            manager.stop()

        assert jobs == []

    @pytest.mark.asyncio
    async def test_run_now_delegates_to_pipeline(self, tmp_path: Path) -> None:
        """run_now syncs through the pipeline."""
        manager, _, pipeline = self._manager(tmp_path)

        await manager.run_now("a")

        pipeline.sync.assert_awaited_once_with("a")

    def test_get_history(self, tmp_path: Path) -> None:
        """History is read from the pipeline's state, newest first."""
        manager, _, pipeline = self._manager(tmp_path)
        pipeline.state.add_sync_run(SyncRunRecord(list_id="a", started_at=NOW))
        pipeline.state.add_sync_run(
            SyncRunRecord(list_id="b", started_at=NOW + timedelta(minutes=1))
        )

        assert [r.list_id for r in manager.get_history()] == ["b", "a"]
        assert [r.list_id for r in manager.get_history("a")] == ["a"]
