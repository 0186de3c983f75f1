"""Tests for external list providers and the provider registry."""

import json
from pathlib import Path

import pytest
import respx
from httpx import Response

from curatarr.config import Config, TMDBConfig
from curatarr.models.common import MediaType
from curatarr.models.lists import ImportListConfig
from curatarr.providers import (
    ProviderError,
    ProviderRegistry,
    StaticListProvider,
    StevenLuListProvider,
    TMDBListProvider,
    TraktListProvider,
    list_types,
)

TMDB = "https://api.themoviedb.org/3"


def _config(provider: str, list_id: str | None = None, **kwargs: object) -> ImportListConfig:
    data: dict[str, object] = {
        "id": "test",
        "name": "Test list",
        "provider_type": provider,
        "list_id": list_id,
    }
    data.update(kwargs)
    return ImportListConfig.model_validate(data)


def _page(*entries: tuple[int, str]) -> dict[str, object]:
    return {
        "results": [
            {"id": tmdb_id, "title": title, "release_date": "2023-01-01", "original_language": "en"}
            for tmdb_id, title in entries
        ]
    }


class TestTMDBListProvider:
    """Tests for TMDBListProvider."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_popular_fetches_pages_in_order(self) -> None:
        """Popular lists concatenate discover pages in provider order."""
        route = respx.get(f"{TMDB}/discover/movie")
        route.side_effect = [
            Response(200, json=_page((1, "One"), (2, "Two"))),
            Response(200, json=_page((3, "Three"))),
        ]
        provider = TMDBListProvider("key", pages=2)

        candidates = await provider.fetch(_config("tmdb", "popular"))

        assert [c.external_id for c in candidates] == ["1", "2", "3"]
        assert route.call_count == 2
        assert route.calls[0].request.url.params["sort_by"] == "popularity.desc"

    @respx.mock
    @pytest.mark.asyncio
    async def test_top_rated_uses_vote_sort(self) -> None:
        """top_rated sorts by vote average with a minimum vote count."""
        route = respx.get(f"{TMDB}/discover/movie").mock(
            return_value=Response(200, json=_page((5, "Five")))
        )
        provider = TMDBListProvider("key", pages=1)

        await provider.fetch(_config("tmdb", "top_rated"))

        params = route.calls.last.request.url.params
        assert params["sort_by"] == "vote_average.desc"
        assert params["vote_count.gte"] == "1000"

    @respx.mock
    @pytest.mark.asyncio
    async def test_series_now_playing_maps_to_on_the_air(self) -> None:
        """Series collections use the TV endpoint names."""
        respx.get(f"{TMDB}/tv/on_the_air").mock(
            return_value=Response(
                200,
                json={"results": [{"id": 9, "name": "Show", "original_language": "en"}]},
            )
        )
        provider = TMDBListProvider("key")

        candidates = await provider.fetch(
            _config("tmdb", "now_playing", media_type=MediaType.SERIES)
        )

        assert candidates[0].title == "Show"
        assert candidates[0].media_type == MediaType.SERIES

    @respx.mock
    @pytest.mark.asyncio
    async def test_numeric_list_id(self) -> None:
        """A numeric list id reads a TMDB user list."""
        respx.get(f"{TMDB}/list/42").mock(
            return_value=Response(200, json={"items": [{"id": 7, "title": "Seven"}]})
        )

        candidates = await TMDBListProvider("key").fetch(_config("tmdb", "42"))

        assert [c.title for c in candidates] == ["Seven"]

    @respx.mock
    @pytest.mark.asyncio
    async def test_http_error_becomes_provider_error(self) -> None:
        """HTTP failures surface as ProviderError."""
        respx.get(f"{TMDB}/movie/upcoming").mock(return_value=Response(401))

        with pytest.raises(ProviderError, match="HTTP 401"):
            await TMDBListProvider("bad").fetch(_config("tmdb", "upcoming"))

    @respx.mock
    @pytest.mark.asyncio
    async def test_malformed_payload_becomes_provider_error(self) -> None:
        """Payloads that fail validation surface as ProviderError."""
        respx.get(f"{TMDB}/movie/upcoming").mock(
            return_value=Response(200, json={"results": [{"title": "no id"}]})
        )

        with pytest.raises(ProviderError, match="malformed"):
            await TMDBListProvider("key").fetch(_config("tmdb", "upcoming"))


class TestTraktListProvider:
    """Tests for TraktListProvider."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_trending_maps_to_popular(self) -> None:
        """Trending lists are served from TMDB popular."""
        respx.get(f"{TMDB}/discover/movie").mock(return_value=Response(200, json=_page((1, "A"))))
        provider = TraktListProvider(TMDBListProvider("key", pages=1))

        candidates = await provider.fetch(_config("trakt", "trending"))

        assert [c.external_id for c in candidates] == ["1"]

    @pytest.mark.asyncio
    async def test_unknown_list_is_empty(self) -> None:
        """Unsupported Trakt lists yield no items."""
        provider = TraktListProvider(TMDBListProvider("key"))
        assert await provider.fetch(_config("trakt", "watched")) == []


class TestStevenLuListProvider:
    """Tests for StevenLuListProvider."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_resolves_imdb_ids(self) -> None:
        """IMDb ids are resolved to TMDB ids; unknown ones stay unresolved."""
        respx.get("https://s3.amazonaws.com/popular-movies/movies.json").mock(
            return_value=Response(
                200,
                json=[
                    {"title": "Dune", "imdb_id": "tt1160419"},
                    {"title": "Obscure", "imdb_id": "tt0000001"},
                ],
            )
        )
        respx.get(f"{TMDB}/find/tt1160419").mock(
            return_value=Response(200, json={"movie_results": [{"id": 438631}]})
        )
        respx.get(f"{TMDB}/find/tt0000001").mock(
            return_value=Response(200, json={"movie_results": []})
        )

        provider = StevenLuListProvider(tmdb_api_key="key")
        candidates = await provider.fetch(_config("stevenlu"))

        assert [c.external_id for c in candidates] == ["438631", None]
        assert candidates[1].imdb_id == "tt0000001"

    @respx.mock
    @pytest.mark.asyncio
    async def test_without_tmdb_key_keeps_imdb_only(self) -> None:
        """Without a TMDB key no resolution is attempted."""
        respx.get("https://s3.amazonaws.com/popular-movies/movies.json").mock(
            return_value=Response(200, json=[{"title": "Dune", "imdb_id": "tt1160419"}])
        )

        candidates = await StevenLuListProvider().fetch(_config("stevenlu"))

        assert candidates[0].external_id is None
        assert candidates[0].imdb_id == "tt1160419"


class TestStaticListProvider:
    """Tests for StaticListProvider."""

    @pytest.mark.asyncio
    async def test_reads_json_items(self, tmp_path: Path) -> None:
        """Entries default to the list's media type."""
        path = tmp_path / "picks.json"
        path.write_text(json.dumps({"items": [{"title": "Heat", "year": 1995, "external_id": 949}]}))

        candidates = await StaticListProvider().fetch(
            _config("static", url=str(path), media_type=MediaType.MOVIE)
        )

        assert candidates[0].external_id == "949"
        assert candidates[0].media_type == MediaType.MOVIE

    @pytest.mark.asyncio
    async def test_reads_toml(self, tmp_path: Path) -> None:
        """TOML files with an items array are supported."""
        path = tmp_path / "picks.toml"
        path.write_text('[[items]]\ntitle = "Severance"\nexternal_id = "95396"\n')

        candidates = await StaticListProvider().fetch(
            _config("static", str(path), media_type=MediaType.SERIES)
        )

        assert candidates[0].media_type == MediaType.SERIES

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a ProviderError."""
        with pytest.raises(ProviderError, match="not found"):
            await StaticListProvider().fetch(_config("static", str(tmp_path / "nope.json")))

    @pytest.mark.asyncio
    async def test_invalid_entries(self, tmp_path: Path) -> None:
        """Entries without a title are malformed."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"year": 2000}]))

        with pytest.raises(ProviderError):
            await StaticListProvider().fetch(_config("static", str(path)))


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_unknown_type(self) -> None:
        """Unknown provider types raise ProviderError."""
        with pytest.raises(ProviderError, match="Unknown"):
            ProviderRegistry().get("imdb")

    def test_from_config_without_tmdb(self) -> None:
        """Only providers that need no TMDB key are registered."""
        registry = ProviderRegistry.from_config(Config())
        assert registry.types() == ["static", "stevenlu"]

    def test_from_config_with_tmdb(self) -> None:
        """TMDB and Trakt are registered when TMDB is configured."""
        registry = ProviderRegistry.from_config(Config(tmdb=TMDBConfig(api_key="key")))
        assert registry.types() == ["static", "stevenlu", "tmdb", "trakt"]

    def test_lookup_is_case_insensitive(self) -> None:
        """Provider types are matched case-insensitively."""
        registry = ProviderRegistry()
        provider = StaticListProvider()
        registry.register("Static", provider)
        assert registry.get("STATIC") is provider


class TestListTypes:
    """Tests for the provider catalog."""

    def test_catalog_has_both_media_types(self) -> None:
        """Movies and series each offer TMDB presets."""
        catalog = list_types()
        for media_type in (MediaType.MOVIE, MediaType.SERIES):
            assert "tmdb" in [t.type for t in catalog[media_type]]
