"""Common models shared between movies and series."""

from __future__ import annotations

from enum import StrEnum


class MediaType(StrEnum):
    """Kind of library entity."""

    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def parse(cls, value: str) -> MediaType:
        """Parse a media type, accepting the "tv" and plural aliases.

        Args:
            value: Raw media type string (e.g. "movie", "tv", "series")

        Returns:
            The matching MediaType

        Raises:
            ValueError: If the value is not a known media type
        """
        lowered = value.strip().lower()
        if lowered in ("tv", "show", "shows"):
            return cls.SERIES
        if lowered == "movies":
            return cls.MOVIE
        return cls(lowered)
