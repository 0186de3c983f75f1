"""External list providers.

A provider turns an import list configuration into an ordered list of
candidate items. Provider failures (network, auth, malformed payloads) are
raised as ``ProviderError`` so a sync can abort without applying anything.
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from curatarr.clients.stevenlu import StevenLuClient
from curatarr.clients.tmdb import TMDBClient
from curatarr.models.common import MediaType
from curatarr.models.lists import CandidateItem, ImportListConfig

if TYPE_CHECKING:
    from curatarr.config import Config

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised when an external list cannot be fetched."""


class ExternalListProvider(Protocol):
    """Source of candidate items for an import list."""

    async def fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        """Fetch the list's current items in provider order."""
        ...

    async def preview(self, config: ImportListConfig) -> list[CandidateItem]:
        """Fetch items for display; same contract as ``fetch``."""
        ...


class _ListProvider:
    """Shared ``preview`` and error wrapping for concrete providers."""

    name = "provider"

    async def fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        try:
            return await self._fetch(config)
        except ProviderError:
            raise
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"{self.name} returned HTTP {e.response.status_code} for list '{config.name}'"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"{self.name} request failed for list '{config.name}': {e}") from e
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            raise ProviderError(f"{self.name} returned malformed data for '{config.name}'") from e

    async def preview(self, config: ImportListConfig) -> list[CandidateItem]:
        return await self.fetch(config)

    async def _fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        raise NotImplementedError


class TMDBListProvider(_ListProvider):
    """TMDB discover endpoints, named collections and user lists.

    Supported list ids: ``popular``, ``top_rated``, ``now_playing`` /
    ``on_the_air``, ``upcoming`` / ``airing_today``, or a numeric TMDB list
    id. Unknown ids fall back to ``popular``.
    """

    name = "TMDB"

    def __init__(
        self,
        api_key: str,
        *,
        english_only: bool = True,
        pages: int = 3,
        timeout: float = 30.0,
        base_url: str | None = None,
    ) -> None:
        self.api_key = api_key
        self.english_only = english_only
        self.pages = pages
        self.timeout = timeout
        self.base_url = base_url

    def _client(self) -> TMDBClient:
        if self.base_url:
            return TMDBClient(self.api_key, base_url=self.base_url, timeout=self.timeout)
        return TMDBClient(self.api_key, timeout=self.timeout)

    async def _fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        list_id = (config.list_id or "popular").strip()
        async with self._client() as client:
            if list_id in ("now_playing", "on_the_air"):
                results = await client.collection(
                    config.media_type,
                    "now_playing" if config.media_type == MediaType.MOVIE else "on_the_air",
                    english_only=self.english_only,
                )
            elif list_id in ("upcoming", "airing_today"):
                results = await client.collection(
                    config.media_type,
                    "upcoming" if config.media_type == MediaType.MOVIE else "airing_today",
                    english_only=self.english_only,
                )
            elif list_id.isdigit():
                results = await client.get_list(int(list_id))
            elif list_id == "top_rated":
                results = await self._discover(
                    client, config.media_type, "vote_average.desc", {"vote_count.gte": 1000}
                )
            else:
                results = await self._discover(client, config.media_type, "popularity.desc")
        return [r.to_candidate(config.media_type) for r in results]

    async def _discover(
        self,
        client: TMDBClient,
        media_type: MediaType,
        sort_by: str,
        extra: dict[str, Any] | None = None,
    ) -> list[Any]:
        results = []
        for page in range(1, self.pages + 1):
            results.extend(
                await client.discover(
                    media_type,
                    sort_by=sort_by,
                    page=page,
                    english_only=self.english_only,
                    extra=extra,
                )
            )
        return results

    async def popular(self, config: ImportListConfig) -> list[CandidateItem]:
        """Fetch TMDB popular titles for the list's media type."""
        return await self.fetch(config.model_copy(update={"list_id": "popular"}))

    async def upcoming(self, config: ImportListConfig) -> list[CandidateItem]:
        """Fetch upcoming movies or series airing today."""
        return await self.fetch(config.model_copy(update={"list_id": "upcoming"}))


class TraktListProvider(_ListProvider):
    """Trakt public lists, served from the equivalent TMDB collections.

    ``trending`` and ``popular`` map to TMDB popular, ``anticipated`` to TMDB
    upcoming; any other list id yields no items.
    """

    name = "Trakt"

    def __init__(self, tmdb: TMDBListProvider) -> None:
        self.tmdb = tmdb

    async def _fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        list_id = (config.list_id or "").strip().lower()
        if list_id in ("trending", "popular"):
            return await self.tmdb.popular(config)
        if list_id == "anticipated":
            return await self.tmdb.upcoming(config)
        logger.info("Trakt list '%s' is not supported, returning no items", list_id)
        return []


class StevenLuListProvider(_ListProvider):
    """StevenLu popular movies feed.

    The feed carries IMDb ids only. When a TMDB API key is given, each id
    is resolved to a TMDB id; unresolved entries keep only their
    IMDb id and will be reported as failures by the sync.
    """

    name = "StevenLu"

    def __init__(
        self,
        *,
        tmdb_api_key: str | None = None,
        timeout: float = 30.0,
        feed_url: str | None = None,
        tmdb_base_url: str | None = None,
    ) -> None:
        self.tmdb_api_key = tmdb_api_key
        self.timeout = timeout
        self.feed_url = feed_url
        self.tmdb_base_url = tmdb_base_url

    def _feed_client(self) -> StevenLuClient:
        if self.feed_url:
            return StevenLuClient(base_url=self.feed_url, timeout=self.timeout)
        return StevenLuClient(timeout=self.timeout)

    async def _fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        async with self._feed_client() as feed:
            movies = await feed.fetch_movies()

        candidates = [
            CandidateItem(
                title=m.title, year=m.year, imdb_id=m.imdb_id, media_type=MediaType.MOVIE
            )
            for m in movies
        ]
        if not self.tmdb_api_key:
            return candidates

        kwargs: dict[str, Any] = {"timeout": self.timeout}
        if self.tmdb_base_url:
            kwargs["base_url"] = self.tmdb_base_url
        async with TMDBClient(self.tmdb_api_key, **kwargs) as tmdb:
            return [await self._resolve(tmdb, c) for c in candidates]

    async def _resolve(self, tmdb: TMDBClient, candidate: CandidateItem) -> CandidateItem:
        if not candidate.imdb_id:
            return candidate
        try:
            tmdb_id = await tmdb.find_by_imdb(candidate.imdb_id, MediaType.MOVIE)
        except httpx.HTTPError as e:
            logger.warning("Failed to resolve IMDb id %s: %s", candidate.imdb_id, e)
            return candidate
        if tmdb_id is None:
            return candidate
        return candidate.model_copy(update={"external_id": str(tmdb_id)})


class StaticListProvider(_ListProvider):
    """Candidates read from a local JSON or TOML file.

    The file path is taken from ``url`` or ``list_id``. The document is
    either a list of candidate objects or an object with an ``items`` list.
    """

    name = "Static list"

    async def _fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        source = config.url or config.list_id
        if not source:
            raise ProviderError(f"Static list '{config.name}' has no file path")
        path = Path(source).expanduser()
        try:
            if path.suffix == ".toml":
                with path.open("rb") as f:
                    data: Any = tomllib.load(f)
            else:
                with path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
        except FileNotFoundError as e:
            raise ProviderError(f"Static list file not found: {path}") from e
        except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
            raise ProviderError(f"Cannot read static list {path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("items", [])
        if not isinstance(data, list):
            raise ProviderError(f"Static list {path} must hold a list of items")
        return [
            CandidateItem.model_validate({"media_type": config.media_type, **entry})
            for entry in data
        ]


class ProviderRegistry:
    """Maps a list's ``provider_type`` to its provider."""

    def __init__(self, providers: dict[str, ExternalListProvider] | None = None) -> None:
        self._providers: dict[str, ExternalListProvider] = dict(providers or {})

    def register(self, provider_type: str, provider: ExternalListProvider) -> None:
        """Register or replace the provider for a type."""
        self._providers[provider_type.lower()] = provider

    def types(self) -> list[str]:
        """Get the registered provider types."""
        return sorted(self._providers)

    def get(self, provider_type: str) -> ExternalListProvider:
        """Get the provider for a type.

        Raises:
            ProviderError: If no provider is registered for the type
        """
        provider = self._providers.get(provider_type.lower())
        if provider is None:
            raise ProviderError(f"Unknown or unconfigured list provider: '{provider_type}'")
        return provider

    async def fetch(self, config: ImportListConfig) -> list[CandidateItem]:
        """Fetch a list through its provider."""
        return await self.get(config.provider_type).fetch(config)

    async def preview(self, config: ImportListConfig) -> list[CandidateItem]:
        """Preview a list through its provider."""
        return await self.get(config.provider_type).preview(config)

    @classmethod
    def from_config(cls, config: Config) -> ProviderRegistry:
        """Build the registry from application config.

        TMDB-backed providers are only registered when TMDB is configured.
        """
        registry = cls()
        registry.register("static", StaticListProvider())
        tmdb_key = config.tmdb.api_key if config.tmdb else None
        registry.register(
            "stevenlu", StevenLuListProvider(tmdb_api_key=tmdb_key, timeout=config.timeout)
        )
        if config.tmdb is not None:
            tmdb = TMDBListProvider(
                config.tmdb.api_key,
                english_only=config.tmdb.english_only,
                pages=config.tmdb.pages,
                timeout=config.timeout,
            )
            registry.register("tmdb", tmdb)
            registry.register("trakt", TraktListProvider(tmdb))
        return registry


class ListPreset(BaseModel):
    """A ready-made list id for a provider."""

    id: str
    name: str
    list_id: str


class ListType(BaseModel):
    """A provider type offered for a media type."""

    type: str
    name: str
    description: str
    presets: list[ListPreset] = Field(default_factory=list)


def _presets(*entries: tuple[str, str]) -> list[ListPreset]:
    return [ListPreset(id=list_id, name=name, list_id=list_id) for list_id, name in entries]


_TRAKT_PRESETS = (
    ("trending", "Trakt Trending"),
    ("popular", "Trakt Popular"),
    ("anticipated", "Trakt Most Anticipated"),
)

_STATIC_TYPE = ListType(
    type="static",
    name="Static File",
    description="Import from a local JSON or TOML file",
)


def list_types() -> dict[MediaType, list[ListType]]:
    """Catalog of provider types and their presets per media type."""
    return {
        MediaType.MOVIE: [
            ListType(
                type="tmdb",
                name="TMDB Lists",
                description="Import from TMDB lists or collections",
                presets=_presets(
                    ("popular", "TMDB Popular"),
                    ("top_rated", "TMDB Top Rated"),
                    ("now_playing", "TMDB Now Playing"),
                    ("upcoming", "TMDB Upcoming"),
                ),
            ),
            ListType(
                type="trakt",
                name="Trakt Lists",
                description="Import from Trakt public lists",
                presets=_presets(*_TRAKT_PRESETS),
            ),
            ListType(
                type="stevenlu",
                name="StevenLu List",
                description="Popular movies from StevenLu",
            ),
            _STATIC_TYPE,
        ],
        MediaType.SERIES: [
            ListType(
                type="tmdb",
                name="TMDB Lists",
                description="Import from TMDB TV lists",
                presets=_presets(
                    ("popular", "TMDB Popular"),
                    ("top_rated", "TMDB Top Rated"),
                    ("on_the_air", "TMDB On The Air"),
                    ("airing_today", "TMDB Airing Today"),
                ),
            ),
            ListType(
                type="trakt",
                name="Trakt Lists",
                description="Import from Trakt public TV lists",
                presets=_presets(*_TRAKT_PRESETS),
            ),
            _STATIC_TYPE,
        ],
    }
