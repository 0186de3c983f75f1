"""State file management for notification polling and sync history."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - used at runtime

from pydantic import ValidationError

from curatarr.models.activity import NotificationItem
from curatarr.store.base import read_json, write_json_atomic

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


@dataclass
class PollState:
    """Cursor, de-duplication set and feed of the notification poller.

    ``cursor`` is None until the first successful poll (cold start).
    """

    cursor: int | None = None
    seen_ids: set[int] = field(default_factory=set)
    feed: list[NotificationItem] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "cursor": self.cursor,
            "seen_ids": sorted(self.seen_ids),
            "feed": [n.model_dump(mode="json") for n in self.feed],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> PollState:
        """Create from dictionary."""
        cursor = data.get("cursor")
        if not isinstance(cursor, int) or isinstance(cursor, bool):
            cursor = None

        seen_raw = data.get("seen_ids", [])
        if not isinstance(seen_raw, list):
            seen_raw = []

        feed_raw = data.get("feed", [])
        if not isinstance(feed_raw, list):
            feed_raw = []
        feed: list[NotificationItem] = []
        for entry in feed_raw:
            try:
                feed.append(NotificationItem.model_validate(entry))
            except ValidationError:
                continue

        return cls(
            cursor=cursor,
            seen_ids={int(i) for i in seen_raw if isinstance(i, int)},
            feed=feed,
        )


@dataclass
class SyncRunRecord:
    """Record of one import list sync."""

    list_id: str
    started_at: datetime
    completed_at: datetime | None = None
    state: str = "done"
    added: int = 0
    existing: int = 0
    failed: int = 0
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "list_id": self.list_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "state": self.state,
            "added": self.added,
            "existing": self.existing,
            "failed": self.failed,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> SyncRunRecord:
        """Create from dictionary."""

        def _count(key: str) -> int:
            value = data.get(key, 0)
            return int(value) if isinstance(value, (int, float)) else 0

        message = data.get("message")
        return cls(
            list_id=str(data.get("list_id", "")),
            started_at=_parse_datetime(data.get("started_at")) or datetime.now(UTC),
            completed_at=_parse_datetime(data.get("completed_at")),
            state=str(data.get("state", "done")),
            added=_count("added"),
            existing=_count("existing"),
            failed=_count("failed"),
            message=message if isinstance(message, str) else None,
        )


@dataclass
class StateFile:
    """Persisted runtime state."""

    version: int = STATE_VERSION
    poll: PollState = field(default_factory=PollState)
    sync_history: list[SyncRunRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "poll": self.poll.to_dict(),
            "sync_history": [r.to_dict() for r in self.sync_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> StateFile:
        """Create from dictionary."""
        version = data.get("version", STATE_VERSION)
        if not isinstance(version, int):
            version = STATE_VERSION

        poll_data = data.get("poll")
        poll = PollState.from_dict(poll_data) if isinstance(poll_data, dict) else PollState()

        history_data = data.get("sync_history", [])
        if not isinstance(history_data, list):
            history_data = []
        history = [SyncRunRecord.from_dict(r) for r in history_data if isinstance(r, dict)]

        return cls(version=version, poll=poll, sync_history=history)


class StateManager:
    """Manager for loading and saving the state file."""

    def __init__(self, path: Path) -> None:
        """Initialize the state manager.

        Args:
            path: Path to the state file
        """
        self.path = path
        self._state: StateFile | None = None

    def load(self) -> StateFile:
        """Load state from file, creating empty state if file doesn't exist.

        Returns:
            The loaded or empty StateFile
        """
        if self._state is not None:
            return self._state

        data = read_json(self.path)
        self._state = StateFile.from_dict(data) if data is not None else StateFile()
        return self._state

    def save(self) -> None:
        """Save state to file."""
        if self._state is None:
            return

        try:
            write_json_atomic(self.path, self._state.to_dict())
        except OSError as e:
            logger.error("Failed to save state file %s: %s", self.path, e)

    def get_poll_state(self) -> PollState:
        """Get the notification poll state."""
        return self.load().poll

    def set_poll_state(self, poll: PollState) -> None:
        """Replace the notification poll state and save.

        Args:
            poll: The new poll state
        """
        state = self.load()
        state.poll = poll
        self.save()

    def add_sync_run(self, record: SyncRunRecord, limit: int = 100) -> None:
        """Append a sync run record, keeping only the newest ``limit`` records.

        Args:
            record: The run to record
            limit: Maximum number of records kept
        """
        state = self.load()
        state.sync_history.append(record)
        if limit > 0 and len(state.sync_history) > limit:
            state.sync_history = state.sync_history[-limit:]
        self.save()

    def get_sync_history(
        self, list_id: str | None = None, limit: int | None = None
    ) -> list[SyncRunRecord]:
        """Get sync run records, newest first.

        Args:
            list_id: Only return runs of this list
            limit: Maximum number of records to return
        """
        records = [
            r for r in reversed(self.load().sync_history) if list_id is None or r.list_id == list_id
        ]
        return records[:limit] if limit is not None else records
