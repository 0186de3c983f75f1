"""Activity log to notification feed pipeline.

The poller reads the most recent activity events, keeps those that are
notification-worthy and newer than its cursor, and prepends them to a
bounded, newest-first feed. The first poll of a fresh state only sets the
cursor so that historical activity is never replayed as notifications.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from curatarr.models.activity import ActivityEvent, EventType, NotificationItem, Severity
from curatarr.state import PollState

if TYPE_CHECKING:
    from curatarr.state import StateManager

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_FETCH_LIMIT = 30

# Ids at or below the cursor are filtered out anyway, so only the newest
# ids need to be remembered.
SEEN_ID_LIMIT = 1000

NOTIFICATION_EVENTS = frozenset(
    {
        EventType.GRABBED,
        EventType.DOWNLOADED,
        EventType.IMPORTED,
        EventType.UNMONITORED,
        EventType.SCAN_COMPLETED,
        EventType.FAILED,
        EventType.DELETED,
    }
)

SEVERITIES: dict[str, Severity] = {
    EventType.IMPORTED: Severity.SUCCESS,
    EventType.DOWNLOADED: Severity.SUCCESS,
    EventType.FAILED: Severity.ERROR,
    EventType.DELETED: Severity.ERROR,
    EventType.UNMONITORED: Severity.WARNING,
    EventType.GRABBED: Severity.INFO,
    EventType.SCAN_COMPLETED: Severity.INFO,
}

TITLES: dict[str, str] = {
    EventType.GRABBED: "Release Grabbed",
    EventType.DOWNLOADED: "Download Complete",
    EventType.IMPORTED: "Download Imported",
    EventType.SCAN_COMPLETED: "Library Scan Complete",
    EventType.UNMONITORED: "Auto-Unmonitored",
    EventType.FAILED: "Download Failed",
    EventType.DELETED: "Deleted",
}


class NotificationFetchError(Exception):
    """Raised when the activity log cannot be read."""


class ActivitySource(Protocol):
    """An activity log that can list its newest events."""

    async def fetch_recent(self, limit: int = 50) -> list[ActivityEvent]: ...


def severity_for(event_type: str) -> Severity:
    """Map an event type to a notification severity."""
    return SEVERITIES.get(event_type, Severity.INFO)


def title_for(event_type: str, label: str | None = None) -> str:
    """Title for an event: its own label, the known title, or the humanized type."""
    if label:
        return label
    return TITLES.get(event_type, event_type.replace("_", " "))


def to_notification(event: ActivityEvent) -> NotificationItem:
    """Convert an activity event into an unread notification."""
    return NotificationItem(
        id=event.id,
        severity=severity_for(event.event_type),
        title=title_for(event.event_type, event.event_label),
        message=event.message,
        timestamp=event.created_at,
        entity_type=event.entity_type,
        entity_id=event.entity_id,
    )


def advance(
    state: PollState,
    events: Iterable[ActivityEvent],
    capacity: int = DEFAULT_CAPACITY,
) -> tuple[PollState, list[NotificationItem]]:
    """Apply one batch of activity events to a poll state.

    The input state is not modified.

    Args:
        state: Current poll state
        events: Recently fetched events, in any order
        capacity: Maximum feed length

    Returns:
        Tuple of (new state, new notifications newest first)
    """
    batch = list(events)
    if not batch:
        return state, []

    max_id = max(e.id for e in batch)

    if state.cursor is None:
        return PollState(cursor=max_id, seen_ids=set(state.seen_ids), feed=list(state.feed)), []

    fresh = sorted(
        (
            e
            for e in batch
            if e.event_type in NOTIFICATION_EVENTS
            and e.id > state.cursor
            and e.id not in state.seen_ids
        ),
        key=lambda e: e.id,
    )

    seen = set(state.seen_ids)
    feed = list(state.feed)
    emitted: list[NotificationItem] = []
    for event in fresh:
        seen.add(event.id)
        notification = to_notification(event)
        feed.insert(0, notification)
        emitted.insert(0, notification)

    if len(seen) > SEEN_ID_LIMIT:
        seen = set(sorted(seen)[-SEEN_ID_LIMIT:])

    new_state = PollState(cursor=max(state.cursor, max_id), seen_ids=seen, feed=feed[:capacity])
    return new_state, emitted


class ActivityNotificationPipeline:
    """Polls an activity log and maintains the persisted notification feed.

    Every mutation is written through the state manager, so a restarted
    process resumes from the persisted cursor instead of replaying history.
    """

    def __init__(
        self,
        source: ActivitySource,
        state_manager: StateManager,
        *,
        capacity: int = DEFAULT_CAPACITY,
        fetch_limit: int = DEFAULT_FETCH_LIMIT,
        timeout: float = 30.0,
        has_credentials: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            source: Activity log to poll
            state_manager: Persistence for the poll state
            capacity: Maximum number of notifications kept
            fetch_limit: Number of recent events fetched per poll
            timeout: Bound in seconds on each fetch
            has_credentials: Polling is skipped while this returns False
        """
        self.source = source
        self.state_manager = state_manager
        self.capacity = capacity
        self.fetch_limit = fetch_limit
        self.timeout = timeout
        self.has_credentials = has_credentials or (lambda: True)
        self._poll_lock = asyncio.Lock()

    @property
    def state(self) -> PollState:
        """The current poll state."""
        return self.state_manager.get_poll_state()

    def _commit(self, state: PollState) -> None:
        self.state_manager.set_poll_state(state)

    @property
    def notifications(self) -> list[NotificationItem]:
        """The feed, newest first."""
        return list(self.state.feed)

    @property
    def unread_count(self) -> int:
        """Number of unread notifications."""
        return sum(1 for n in self.state.feed if not n.read)

    async def _fetch(self) -> list[ActivityEvent]:
        try:
            return await asyncio.wait_for(
                self.source.fetch_recent(self.fetch_limit), timeout=self.timeout
            )
        except TimeoutError as e:
            raise NotificationFetchError("Timed out reading activity log") from e
        except httpx.HTTPStatusError as e:
            raise NotificationFetchError(
                f"Activity log returned HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValidationError, OSError) as e:
            raise NotificationFetchError(f"Activity log unavailable: {e}") from e

    async def poll(self) -> list[NotificationItem]:
        """Fetch recent activity and add new notifications to the feed.

        Fetch errors are logged and leave the state unchanged.

        Returns:
            Newly added notifications, newest first
        """
        if not self.has_credentials():
            logger.debug("Skipping notification poll: no credentials")
            return []

        async with self._poll_lock:
            try:
                events = await self._fetch()
            except NotificationFetchError as e:
                cause = e.__cause__
                if (
                    isinstance(cause, httpx.HTTPStatusError)
                    and cause.response.status_code == 401
                ):
                    logger.debug("Notification poll unauthorized")
                else:
                    logger.warning("Notification poll failed: %s", e)
                return []

            current = self.state
            new_state, emitted = advance(current, events, self.capacity)
            if new_state is not current:
                self._commit(new_state)
            if emitted:
                logger.info("Added %d notification(s)", len(emitted))
            return emitted

    def mark_read(self, notification_id: int) -> bool:
        """Mark one notification read. Returns True if it exists."""
        state = self.state
        for n in state.feed:
            if n.id == notification_id:
                n.read = True
                self._commit(state)
                return True
        return False

    def mark_all_read(self) -> int:
        """Mark every notification read.

        Returns:
            Number of notifications that were unread
        """
        state = self.state
        changed = 0
        for n in state.feed:
            if not n.read:
                n.read = True
                changed += 1
        if changed:
            self._commit(state)
        return changed

    def remove(self, notification_id: int) -> bool:
        """Remove one notification. Returns True if it existed."""
        state = self.state
        feed = [n for n in state.feed if n.id != notification_id]
        if len(feed) == len(state.feed):
            return False
        state.feed = feed
        self._commit(state)
        return True

    def clear_all(self) -> None:
        """Forget the feed, cursor and seen ids; the next poll is a cold start."""
        self._commit(PollState())

    def add_notification(
        self,
        title: str,
        message: str = "",
        *,
        severity: Severity = Severity.INFO,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> NotificationItem:
        """Add a locally generated notification with a clock-based id."""
        state = self.state
        notification_id = int(time.time() * 1000)
        existing = {n.id for n in state.feed}
        while notification_id in existing:
            notification_id += 1
        notification = NotificationItem(
            id=notification_id,
            severity=severity,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        state.feed = [notification, *state.feed][: self.capacity]
        self._commit(state)
        return notification
