"""Pydantic models for library entities, lists and activity."""

from curatarr.models.activity import (
    EVENT_LABELS,
    ActivityEvent,
    EventType,
    NotificationItem,
    Severity,
)
from curatarr.models.common import MediaType
from curatarr.models.filters import CustomFilter, FilterConditions
from curatarr.models.library import LibraryItem, QualityProfile
from curatarr.models.lists import (
    CandidateItem,
    Exclusion,
    ImportListConfig,
    MinimumAvailability,
    MonitorPolicy,
    PreviewItem,
)

__all__ = [
    "EVENT_LABELS",
    "ActivityEvent",
    "CandidateItem",
    "CustomFilter",
    "EventType",
    "Exclusion",
    "FilterConditions",
    "ImportListConfig",
    "LibraryItem",
    "MediaType",
    "MinimumAvailability",
    "MonitorPolicy",
    "NotificationItem",
    "PreviewItem",
    "QualityProfile",
    "Severity",
]
