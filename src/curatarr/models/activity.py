"""Activity log and notification models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class EventType(StrEnum):
    """Known activity event types.

    The activity log may carry types not listed here; consumers fall back
    to generic handling for those.
    """

    GRABBED = "grabbed"
    DOWNLOADED = "downloaded"
    IMPORTED = "imported"
    RENAMED = "renamed"
    DELETED = "deleted"
    ADDED = "added"
    SCAN_COMPLETED = "scan_completed"
    METADATA_REFRESHED = "metadata_refreshed"
    UNMONITORED = "unmonitored"
    FAILED = "failed"


EVENT_LABELS: dict[str, str] = {
    EventType.GRABBED: "Release Grabbed",
    EventType.DOWNLOADED: "Download Completed",
    EventType.IMPORTED: "Download Imported",
    EventType.RENAMED: "File Renamed",
    EventType.DELETED: "File Deleted",
    EventType.ADDED: "Added to Library",
    EventType.UNMONITORED: "Auto-Unmonitored",
    EventType.SCAN_COMPLETED: "Library Scan",
    EventType.METADATA_REFRESHED: "Metadata Refreshed",
    EventType.FAILED: "Download Failed",
}


class Severity(StrEnum):
    """Notification severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ActivityEvent(BaseModel):
    """An entry of the append-only activity log."""

    id: int
    event_type: str
    message: str = ""
    event_label: str | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    details: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NotificationItem(BaseModel):
    """An entry of the client-visible notification feed."""

    id: int
    severity: Severity = Severity.INFO
    title: str
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    read: bool = False
    entity_type: str | None = None
    entity_id: str | None = None
