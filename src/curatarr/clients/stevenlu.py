"""StevenLu popular movies feed client."""

from __future__ import annotations

from pydantic import BaseModel

from curatarr.clients.base import BaseClient

STEVENLU_BASE_URL = "https://s3.amazonaws.com"
STEVENLU_FEED_PATH = "/popular-movies/movies.json"


class StevenLuMovie(BaseModel):
    """An entry of the StevenLu feed."""

    title: str
    imdb_id: str | None = None
    year: int | None = None


class StevenLuClient(BaseClient):
    """Client for the StevenLu popular movies JSON feed."""

    def __init__(
        self,
        *,
        base_url: str = STEVENLU_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        super().__init__(base_url, timeout=timeout, max_retries=max_retries)

    async def fetch_movies(self) -> list[StevenLuMovie]:
        """Fetch the current feed."""
        data = await self._get(STEVENLU_FEED_PATH)
        return [StevenLuMovie.model_validate(item) for item in data or []]
