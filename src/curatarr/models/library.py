"""Library entity and quality profile models."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, computed_field, model_validator

from curatarr.models.common import MediaType


class QualityProfile(BaseModel):
    """A quality profile with an optional cutoff label.

    A profile without a cutoff never asks for upgrades.
    """

    id: str
    name: str
    cutoff: str | None = None
    media_type: Literal["movie", "series", "both"] = "both"

    def applies_to(self, media_type: MediaType) -> bool:
        """Check if this profile can be assigned to the given media type."""
        return self.media_type == "both" or self.media_type == media_type.value


class LibraryItem(BaseModel):
    """A movie or series tracked in the library.

    Downloaded content is tracked as a count so that season-based entities
    and single-file movies share one representation: a movie expects one
    file, a series expects one file per aired episode.
    """

    id: str
    media_type: MediaType
    title: str
    year: int | None = None
    external_id: str | None = None
    imdb_id: str | None = None
    monitored: bool = True
    quality: str | None = None
    quality_profile_id: str | None = None
    root_folder: str | None = None
    monitor: str | None = None
    minimum_availability: str | None = None
    downloaded_count: int = Field(default=0, ge=0)
    expected_count: int = Field(default=1, ge=0)
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @model_validator(mode="before")
    @classmethod
    def _accept_has_file(cls, data: Any) -> Any:
        """Map a plain ``has_file`` flag onto the download counters."""
        if not isinstance(data, dict) or "has_file" not in data:
            return data
        data = dict(data)
        has_file = bool(data.pop("has_file"))
        if "downloaded_count" not in data:
            expected = data.get("expected_count", 1)
            data["downloaded_count"] = expected if has_file else 0
        return data

    @computed_field  # type: ignore[prop-decorator]
    @property
    def has_file(self) -> bool:
        """Whether all expected content has been downloaded."""
        return self.expected_count > 0 and self.downloaded_count >= self.expected_count

    @property
    def has_downloads(self) -> bool:
        """Whether any content at all has been downloaded."""
        return self.downloaded_count > 0
