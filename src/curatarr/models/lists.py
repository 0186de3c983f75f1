"""Import list, candidate and exclusion models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from curatarr.models.common import MediaType


class MonitorPolicy(StrEnum):
    """Which seasons of an added series are monitored."""

    ALL = "all"
    FUTURE = "future"
    MISSING = "missing"
    EXISTING = "existing"
    FIRST_SEASON = "firstSeason"
    LATEST_SEASON = "latestSeason"
    NONE = "none"


class MinimumAvailability(StrEnum):
    """When an added movie is considered available for search."""

    ANNOUNCED = "announced"
    IN_CINEMAS = "inCinemas"
    RELEASED = "released"
    PREDB = "preDB"


DEFAULT_REFRESH_INTERVAL = 720


class ImportListConfig(BaseModel):
    """Configuration of one external reference list."""

    id: str
    name: str
    provider_type: str
    media_type: MediaType = MediaType.MOVIE
    enabled: bool = True
    auto_add: bool = True
    search_on_add: bool = False
    quality_profile_id: str | None = None
    root_folder: str | None = None
    monitor: MonitorPolicy = MonitorPolicy.ALL
    minimum_availability: MinimumAvailability = MinimumAvailability.RELEASED
    list_id: str | None = None
    url: str | None = None
    refresh_interval: int = Field(default=DEFAULT_REFRESH_INTERVAL, ge=1)
    last_sync: datetime | None = None

    @field_validator("provider_type")
    @classmethod
    def _normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    def next_sync_at(self) -> datetime | None:
        """When the list is next due, or None if it has never synced."""
        if self.last_sync is None:
            return None
        return self.last_sync + timedelta(minutes=self.refresh_interval)

    def is_due(self, now: datetime | None = None) -> bool:
        """Check if the list is enabled and its refresh interval has elapsed."""
        if not self.enabled:
            return False
        next_at = self.next_sync_at()
        if next_at is None:
            return True
        return next_at <= (now or datetime.now(UTC))


class CandidateItem(BaseModel):
    """A normalized entry returned by an external list provider."""

    title: str
    year: int | None = None
    external_id: str | None = None
    imdb_id: str | None = None
    media_type: MediaType = MediaType.MOVIE

    @field_validator("external_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: object) -> object:
        if isinstance(v, int):
            return str(v)
        return v


class PreviewItem(CandidateItem):
    """A candidate annotated with its reconciliation status."""

    in_library: bool = False
    excluded: bool = False


class Exclusion(BaseModel):
    """A permanent "never auto-add" marker for an external item."""

    id: str
    external_id: str
    media_type: MediaType
    title: str = ""
    year: int | None = None
    reason: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("external_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: object) -> object:
        if isinstance(v, int):
            return str(v)
        return v
