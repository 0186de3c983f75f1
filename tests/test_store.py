"""Tests for the JSON-backed stores."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from curatarr.models.activity import EventType
from curatarr.models.common import MediaType
from curatarr.models.filters import FilterConditions
from curatarr.models.library import LibraryItem, QualityProfile
from curatarr.models.lists import ImportListConfig
from curatarr.store import (
    ActivityLogStore,
    CustomFilterStore,
    ExclusionStore,
    ImportListStore,
    LibraryStore,
)
from curatarr.store.base import read_json, write_json_atomic


def _movie(item_id: str, external_id: str | None, title: str = "Heat", year: int = 1995) -> LibraryItem:
    return LibraryItem(
        id=item_id,
        media_type=MediaType.MOVIE,
        title=title,
        year=year,
        external_id=external_id,
    )


class TestJsonFiles:
    """Tests for the atomic JSON helpers."""

    def test_write_then_read(self, tmp_path: Path) -> None:
        """Written documents are read back, creating parent directories."""
        path = tmp_path / "nested" / "doc.json"
        write_json_atomic(path, {"version": 1, "items": []})

        assert read_json(path) == {"version": 1, "items": []}
        assert [p.name for p in path.parent.iterdir()] == ["doc.json"]

    def test_read_missing_file(self, tmp_path: Path) -> None:
        """A missing file reads as None."""
        assert read_json(tmp_path / "missing.json") is None

    def test_read_corrupt_file(self, tmp_path: Path) -> None:
        """A corrupt file reads as None instead of raising."""
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert read_json(path) is None

    def test_read_non_object(self, tmp_path: Path) -> None:
        """A JSON document that is not an object reads as None."""
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert read_json(path) is None


class TestLibraryStore:
    """Tests for LibraryStore."""

    def test_empty_when_file_missing(self, tmp_path: Path) -> None:
        """A new store starts empty."""
        assert LibraryStore(tmp_path / "library.json").list_all() == []

    @pytest.mark.asyncio
    async def test_create_if_absent_persists(self, tmp_path: Path) -> None:
        """Created items survive a reload from disk."""
        path = tmp_path / "library.json"
        store = LibraryStore(path)

        item, created = await store.create_if_absent(_movie("a", "949"))

        assert created is True
        assert item.id == "a"
        reloaded = LibraryStore(path)
        assert [i.id for i in reloaded.list_all()] == ["a"]
        assert json.loads(path.read_text())["version"] == 1

    @pytest.mark.asyncio
    async def test_create_if_absent_returns_existing(self, tmp_path: Path) -> None:
        """An item with the same external id is not created twice."""
        store = LibraryStore(tmp_path / "library.json")
        await store.create_if_absent(_movie("a", "949"))

        item, created = await store.create_if_absent(_movie("b", "949"))

        assert created is False
        assert item.id == "a"
        assert len(store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_create_adds_once(self, tmp_path: Path) -> None:
        """Concurrent creates of one external item produce a single entry."""
        store = LibraryStore(tmp_path / "library.json")

        results = await asyncio.gather(
            *(store.create_if_absent(_movie(f"id{i}", "949")) for i in range(5))
        )

        assert sum(created for _, created in results) == 1
        assert len(store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_same_external_id_different_media_type(self, tmp_path: Path) -> None:
        """External ids are scoped by media type."""
        store = LibraryStore(tmp_path / "library.json")
        await store.create_if_absent(_movie("a", "1396"))
        series = LibraryItem(id="b", media_type=MediaType.SERIES, title="X", external_id="1396")

        _, created = await store.create_if_absent(series)

        assert created is True
        assert store.find_by_external_id("1396", MediaType.SERIES) is not None

    @pytest.mark.asyncio
    async def test_find_by_title_year(self, tmp_path: Path) -> None:
        """Title lookup ignores case and requires the same year."""
        store = LibraryStore(tmp_path / "library.json")
        await store.create_if_absent(_movie("a", None, title="The Thing", year=1982))

        assert store.find_by_title_year("the thing", 1982, MediaType.MOVIE) is not None
        assert store.find_by_title_year("The Thing", 2011, MediaType.MOVIE) is None

    @pytest.mark.asyncio
    async def test_remove(self, tmp_path: Path) -> None:
        """Items are removed by id, once."""
        path = tmp_path / "library.json"
        store = LibraryStore(path)
        await store.create_if_absent(_movie("a", "949"))

        assert store.remove("a") is True
        assert store.remove("a") is False
        assert LibraryStore(path).list_all() == []

    @pytest.mark.asyncio
    async def test_failed_write_leaves_memory_unchanged(self, tmp_path: Path) -> None:
        """A create whose write fails is rolled back so a retry can add it."""
        path = tmp_path / "library.json"
        store = LibraryStore(path)

        with (
            patch("curatarr.store.base.write_json_atomic", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            await store.create_if_absent(_movie("a", "949"))

        assert store.list_all() == []
        assert store.find_by_external_id("949", MediaType.MOVIE) is None

        _, created = await store.create_if_absent(_movie("a", "949"))

        assert created is True
        assert [i.id for i in LibraryStore(path).list_all()] == ["a"]

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_records(self, tmp_path: Path) -> None:
        """Records already on disk survive a later failed write."""
        store = LibraryStore(tmp_path / "library.json")
        await store.create_if_absent(_movie("a", "949"))

        with (
            patch("curatarr.store.base.write_json_atomic", side_effect=OSError),
            pytest.raises(OSError),
        ):
            store.remove("a")

        assert [i.id for i in store.list_all()] == ["a"]

    def test_profiles(self, tmp_path: Path) -> None:
        """Profiles are added or replaced by id."""
        store = LibraryStore(tmp_path / "library.json")
        store.add_profile(QualityProfile(id="hd", name="HD", cutoff="WEBDL-1080p"))
        store.add_profile(QualityProfile(id="hd", name="HD", cutoff="Bluray-1080p"))

        assert len(store.profiles()) == 1
        assert store.get_profile("hd").cutoff == "Bluray-1080p"  # type: ignore[union-attr]
        assert store.get_profile("uhd") is None

    def test_invalid_records_skipped(self, tmp_path: Path) -> None:
        """Invalid records are dropped with a warning; valid ones load."""
        path = tmp_path / "library.json"
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "items": [
                        {"id": "a", "media_type": "movie", "title": "Heat"},
                        {"id": "b", "media_type": "podcast", "title": "Nope"},
                    ],
                }
            )
        )

        assert [i.id for i in LibraryStore(path).list_all()] == ["a"]


class TestImportListStore:
    """Tests for ImportListStore."""

    def _config(self, list_id: str = "popular", **kwargs: object) -> ImportListConfig:
        data: dict[str, object] = {"id": list_id, "name": list_id, "provider_type": "tmdb"}
        data.update(kwargs)
        return ImportListConfig.model_validate(data)

    def test_add_and_get(self, tmp_path: Path) -> None:
        """Lists are persisted and looked up by id."""
        path = tmp_path / "lists.json"
        ImportListStore(path).add(self._config())

        stored = ImportListStore(path).get("popular")
        assert stored is not None
        assert stored.provider_type == "tmdb"

    def test_add_duplicate_raises(self, tmp_path: Path) -> None:
        """Duplicate ids are rejected."""
        store = ImportListStore(tmp_path / "lists.json")
        store.add(self._config())
        with pytest.raises(ValueError, match="already exists"):
            store.add(self._config())

    def test_due_for_sync(self, tmp_path: Path) -> None:
        """Never-synced and overdue enabled lists are due."""
        now = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
        store = ImportListStore(tmp_path / "lists.json")
        store.add(self._config("never"))
        store.add(self._config("overdue", last_sync=now - timedelta(hours=13)))
        store.add(self._config("fresh", last_sync=now - timedelta(hours=1)))
        store.add(self._config("disabled", enabled=False))

        assert [cfg.id for cfg in store.due_for_sync(now)] == ["never", "overdue"]

    def test_update_last_sync(self, tmp_path: Path) -> None:
        """update_last_sync stores the time and keeps other fields."""
        when = datetime(2024, 6, 1, tzinfo=UTC)
        store = ImportListStore(tmp_path / "lists.json")
        store.add(self._config(auto_add=False))

        store.update_last_sync("popular", when)

        stored = store.get("popular")
        assert stored is not None
        assert stored.last_sync == when
        assert stored.auto_add is False

    def test_update_last_sync_unknown(self, tmp_path: Path) -> None:
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            ImportListStore(tmp_path / "lists.json").update_last_sync("nope")

    def test_remove(self, tmp_path: Path) -> None:
        """remove reports whether the list existed."""
        store = ImportListStore(tmp_path / "lists.json")
        store.add(self._config())
        assert store.remove("popular") is True
        assert store.remove("popular") is False

    def test_modify_changes_given_fields(self, tmp_path: Path) -> None:
        """modify validates and persists changes and never changes the id."""
        path = tmp_path / "lists.json"
        store = ImportListStore(path)
        store.add(self._config(auto_add=False))

        updated = store.modify("popular", {"enabled": False, "refresh_interval": 60, "id": "x"})

        assert updated.id == "popular"
        assert updated.auto_add is False
        stored = ImportListStore(path).get("popular")
        assert stored is not None
        assert (stored.enabled, stored.refresh_interval) == (False, 60)

    def test_modify_rejects_invalid_values(self, tmp_path: Path) -> None:
        """Invalid values raise ValidationError and leave the list unchanged."""
        store = ImportListStore(tmp_path / "lists.json")
        store.add(self._config())

        with pytest.raises(ValidationError):
            store.modify("popular", {"refresh_interval": 0})

        assert store.get("popular").refresh_interval == 720  # type: ignore[union-attr]

    def test_modify_unknown_raises(self, tmp_path: Path) -> None:
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            ImportListStore(tmp_path / "lists.json").modify("nope", {"enabled": False})


class TestExclusionStore:
    """Tests for ExclusionStore."""

    def test_add_and_is_excluded(self, tmp_path: Path) -> None:
        """An excluded id is reported for its media type only."""
        store = ExclusionStore(tmp_path / "exclusions.json")
        store.add("949", MediaType.MOVIE, title="Heat", year=1995)

        assert store.is_excluded("949", MediaType.MOVIE) is True
        assert store.is_excluded("949", MediaType.SERIES) is False
        assert store.is_excluded(None, MediaType.MOVIE) is False

    def test_add_is_idempotent(self, tmp_path: Path) -> None:
        """Adding the same key twice keeps a single entry."""
        store = ExclusionStore(tmp_path / "exclusions.json")
        first = store.add("949", MediaType.MOVIE)
        second = store.add("949", MediaType.MOVIE, reason="again")

        assert second.id == first.id
        assert store.count() == 1

    def test_remove_by_id_and_external_id(self, tmp_path: Path) -> None:
        """Exclusions can be removed by id or by external id."""
        store = ExclusionStore(tmp_path / "exclusions.json")
        a = store.add("1", MediaType.MOVIE)
        store.add("2", MediaType.MOVIE)

        assert store.remove(a.id) is True
        assert store.remove_by_external_id("2", MediaType.MOVIE) is True
        assert store.remove_by_external_id("2", MediaType.MOVIE) is False
        assert store.count() == 0

    def test_clear_by_media_type(self, tmp_path: Path) -> None:
        """Clearing one media type leaves the other untouched."""
        store = ExclusionStore(tmp_path / "exclusions.json")
        store.add("1", MediaType.MOVIE)
        store.add("2", MediaType.MOVIE)
        store.add("3", MediaType.SERIES)

        removed = store.clear(MediaType.MOVIE)

        assert removed == 2
        assert [e.external_id for e in store.all()] == ["3"]

    def test_clear_all(self, tmp_path: Path) -> None:
        """Clearing without a media type removes everything."""
        path = tmp_path / "exclusions.json"
        store = ExclusionStore(path)
        store.add("1", MediaType.MOVIE)
        store.add("3", MediaType.SERIES)

        assert store.clear() == 2
        assert ExclusionStore(path).count() == 0

    def test_all_newest_first(self, tmp_path: Path) -> None:
        """Listing returns newest exclusions first."""
        path = tmp_path / "exclusions.json"
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "exclusions": [
                        {
                            "id": "old",
                            "external_id": "1",
                            "media_type": "movie",
                            "created_at": "2024-01-01T00:00:00+00:00",
                        },
                        {
                            "id": "new",
                            "external_id": "2",
                            "media_type": "movie",
                            "created_at": "2024-05-01T00:00:00+00:00",
                        },
                    ],
                }
            )
        )

        assert [e.id for e in ExclusionStore(path).all()] == ["new", "old"]


class TestCustomFilterStore:
    """Tests for CustomFilterStore."""

    def test_add_generates_id(self, tmp_path: Path) -> None:
        """Generated ids carry the custom_ prefix."""
        store = CustomFilterStore(tmp_path / "filters.json")
        custom = store.add("4K", FilterConditions(quality="2160p"))

        assert custom.id.startswith("custom_")
        assert store.get(custom.id) == custom

    def test_add_duplicate_id(self, tmp_path: Path) -> None:
        """Explicit ids must be unique."""
        store = CustomFilterStore(tmp_path / "filters.json")
        store.add("One", filter_id="custom_one")
        with pytest.raises(ValueError):
            store.add("Two", filter_id="custom_one")

    def test_update_and_remove(self, tmp_path: Path) -> None:
        """Filters can be updated and removed."""
        path = tmp_path / "filters.json"
        store = CustomFilterStore(path)
        custom = store.add("Old")

        store.update(custom.model_copy(update={"name": "Old movies"}))
        assert CustomFilterStore(path).get(custom.id).name == "Old movies"  # type: ignore[union-attr]

        assert store.remove(custom.id) is True
        assert store.all() == []

    def test_modify_keeps_unchanged_fields(self, tmp_path: Path) -> None:
        """modify only replaces what it is given."""
        store = CustomFilterStore(tmp_path / "filters.json")
        custom = store.add("4K", FilterConditions(quality="2160p", has_file=False))

        renamed = store.modify(custom.id, name="4K missing")
        assert renamed.conditions == custom.conditions

        changed = store.modify(custom.id, conditions=FilterConditions(quality="1080p"))
        assert changed.name == "4K missing"
        assert changed.conditions.has_file is None

    def test_modify_unknown_raises(self, tmp_path: Path) -> None:
        """Unknown filter ids raise KeyError."""
        with pytest.raises(KeyError):
            CustomFilterStore(tmp_path / "filters.json").modify("nope", name="x")


class TestActivityLogStore:
    """Tests for ActivityLogStore."""

    def test_append_assigns_increasing_ids(self, tmp_path: Path) -> None:
        """Ids increase by one and labels are filled in."""
        store = ActivityLogStore(tmp_path / "activity.json")
        first = store.append(EventType.ADDED, "Added Heat")
        second = store.append(EventType.GRABBED, "Grabbed Heat")

        assert (first.id, second.id) == (1, 2)
        assert first.event_label == "Added to Library"

    def test_recent_newest_first(self, tmp_path: Path) -> None:
        """recent returns newest first, limited."""
        store = ActivityLogStore(tmp_path / "activity.json")
        for i in range(5):
            store.append(EventType.ADDED, f"event {i}")

        assert [e.id for e in store.recent(3)] == [5, 4, 3]

    def test_ids_not_reused_after_prune(self, tmp_path: Path) -> None:
        """Pruning does not make ids restart."""
        path = tmp_path / "activity.json"
        path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "next_id": 3,
                    "events": [
                        {
                            "id": 1,
                            "event_type": "added",
                            "created_at": "2000-01-01T00:00:00+00:00",
                        },
                        {
                            "id": 2,
                            "event_type": "added",
                            "created_at": "2000-01-02T00:00:00+00:00",
                        },
                    ],
                }
            )
        )
        store = ActivityLogStore(path)

        assert store.prune(days=30) == 2
        event = ActivityLogStore(path).append(EventType.ADDED, "new")
        assert event.id == 3

    @pytest.mark.asyncio
    async def test_fetch_recent(self, tmp_path: Path) -> None:
        """The async fetch returns the same events as recent."""
        store = ActivityLogStore(tmp_path / "activity.json")
        store.append(EventType.DOWNLOADED, "done")

        events = await store.fetch_recent(10)

        assert [e.event_type for e in events] == ["downloaded"]
