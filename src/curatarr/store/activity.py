"""Local append-only activity log."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from curatarr.models.activity import EVENT_LABELS, ActivityEvent
from curatarr.store.base import JsonStore, dump_models, load_models

if TYPE_CHECKING:
    from pathlib import Path


class ActivityLogStore(JsonStore):
    """Activity events with strictly increasing ids.

    Ids are never reused, even after pruning, so pollers can use the highest
    id they have seen as a cursor.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._events: list[ActivityEvent] = []
        self._next_id = 1

    def _decode(self, data: dict[str, Any]) -> None:
        self._events = load_models(data.get("events"), ActivityEvent, self.path)
        highest = max((e.id for e in self._events), default=0)
        next_id = data.get("next_id", 1)
        if not isinstance(next_id, int):
            next_id = 1
        self._next_id = max(next_id, highest + 1)

    def _encode(self) -> dict[str, Any]:
        return {"next_id": self._next_id, "events": dump_models(self._events)}

    def append(
        self,
        event_type: str,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        details: str | None = None,
    ) -> ActivityEvent:
        """Record an event and return it with its assigned id."""
        self._ensure_loaded()
        event = ActivityEvent(
            id=self._next_id,
            event_type=event_type,
            message=message,
            event_label=EVENT_LABELS.get(event_type),
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        self._next_id += 1
        self._events.append(event)
        self._save()
        return event

    def recent(self, limit: int = 50) -> list[ActivityEvent]:
        """Get the most recent events, newest first."""
        self._ensure_loaded()
        if limit <= 0:
            return []
        return sorted(self._events, key=lambda e: e.id, reverse=True)[:limit]

    async def fetch_recent(self, limit: int = 50) -> list[ActivityEvent]:
        """Async form of ``recent`` for notification polling."""
        return self.recent(limit)

    def prune(self, days: int) -> int:
        """Delete events older than ``days`` days.

        Returns:
            The number of events deleted
        """
        self._ensure_loaded()
        cutoff = datetime.now(UTC) - timedelta(days=days)
        keep = [e for e in self._events if e.created_at >= cutoff]
        removed = len(self._events) - len(keep)
        if removed:
            self._events = keep
            self._save()
        return removed
