"""TMDB API client."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from curatarr.clients.base import BaseClient
from curatarr.models.common import MediaType
from curatarr.models.lists import CandidateItem

TMDB_BASE_URL = "https://api.themoviedb.org/3"


def _tmdb_path(media_type: MediaType) -> str:
    return "movie" if media_type == MediaType.MOVIE else "tv"


class TMDBResult(BaseModel):
    """A movie or TV entry as returned by TMDB list endpoints."""

    id: int
    title: str | None = None
    name: str | None = None
    release_date: str | None = None
    first_air_date: str | None = None
    original_language: str | None = None
    media_type: str | None = None

    @property
    def display_title(self) -> str:
        """Movie title or series name."""
        return self.title or self.name or ""

    @property
    def year(self) -> int | None:
        """Year of the first release or air date, if known."""
        date = self.release_date or self.first_air_date or ""
        head = date.split("-", 1)[0]
        return int(head) if head.isdigit() else None

    def to_candidate(self, media_type: MediaType) -> CandidateItem:
        """Convert to a list candidate of the given media type."""
        if self.media_type == "tv":
            media_type = MediaType.SERIES
        elif self.media_type == "movie":
            media_type = MediaType.MOVIE
        return CandidateItem(
            title=self.display_title,
            year=self.year,
            external_id=str(self.id),
            media_type=media_type,
        )


class TMDBClient(BaseClient):
    """Client for the TMDB v3 API.

    Example:
        async with TMDBClient("api-key") as client:
            movies = await client.discover(MediaType.MOVIE, sort_by="popularity.desc")
            tmdb_id = await client.find_by_imdb("tt0133093", MediaType.MOVIE)
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = TMDB_BASE_URL,
        timeout: float = 30.0,
        cache_ttl: int = 300,
        max_retries: int = 3,
    ) -> None:
        super().__init__(
            base_url,
            params={"api_key": api_key},
            timeout=timeout,
            cache_ttl=cache_ttl,
            max_retries=max_retries,
        )

    async def discover(
        self,
        media_type: MediaType,
        *,
        sort_by: str = "popularity.desc",
        page: int = 1,
        english_only: bool = True,
        extra: dict[str, Any] | None = None,
    ) -> list[TMDBResult]:
        """Fetch one page of the discover endpoint.

        Args:
            media_type: Movies or series
            sort_by: TMDB sort order
            page: 1-based page number
            english_only: Restrict to English-language originals
            extra: Additional discover parameters

        Returns:
            The page results, filtered to English originals when requested
        """
        params: dict[str, Any] = {"page": page, "sort_by": sort_by, **(extra or {})}
        if english_only:
            params["with_original_language"] = "en"
        data = await self._get(f"/discover/{_tmdb_path(media_type)}", params=params)
        return self._results(data, english_only)

    async def collection(
        self, media_type: MediaType, name: str, *, english_only: bool = True
    ) -> list[TMDBResult]:
        """Fetch a named collection such as "now_playing" or "airing_today"."""
        data = await self._get(f"/{_tmdb_path(media_type)}/{name}", params={"language": "en-US"})
        return self._results(data, english_only)

    async def get_list(self, list_id: int) -> list[TMDBResult]:
        """Fetch the items of a user-curated TMDB list."""
        data = await self._get(f"/list/{list_id}")
        items = data.get("items", []) if isinstance(data, dict) else []
        return [TMDBResult.model_validate(item) for item in items]

    async def find_by_imdb(self, imdb_id: str, media_type: MediaType) -> int | None:
        """Resolve an IMDb id to a TMDB id.

        Returns:
            The TMDB id, or None if TMDB knows no match of that media type
        """
        data = await self._get(f"/find/{imdb_id}", params={"external_source": "imdb_id"})
        key = "movie_results" if media_type == MediaType.MOVIE else "tv_results"
        results = data.get(key, []) if isinstance(data, dict) else []
        if not results:
            return None
        return int(results[0]["id"])

    @staticmethod
    def _results(data: Any, english_only: bool) -> list[TMDBResult]:
        raw = data.get("results", []) if isinstance(data, dict) else []
        results = [TMDBResult.model_validate(item) for item in raw]
        if english_only:
            results = [r for r in results if r.original_language == "en"]
        return results
