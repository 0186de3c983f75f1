"""Custom library filter models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class FilterConditions(BaseModel):
    """Optional, conjunctive filter conditions. An unset field is a wildcard."""

    monitored: bool | None = None
    has_file: bool | None = None
    cutoff_met: bool | None = None
    quality_profile_id: str | None = None
    quality: str | None = None
    min_year: int | None = None
    max_year: int | None = None

    def is_empty(self) -> bool:
        """Check if no condition is set."""
        return not self.model_dump(exclude_none=True)


class CustomFilter(BaseModel):
    """A user-defined, named library filter."""

    id: str
    name: str
    conditions: FilterConditions = Field(default_factory=FilterConditions)
