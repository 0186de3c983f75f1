"""Tests for quality cutoff evaluation."""

from pathlib import Path

from curatarr.cutoff import is_cutoff_met, is_cutoff_unmet, resolve_profile
from curatarr.models.common import MediaType
from curatarr.models.library import LibraryItem, QualityProfile
from curatarr.store.library import LibraryStore

HD_PROFILE = QualityProfile(id="hd", name="HD-1080p", cutoff="Bluray-1080p")
ANY_PROFILE = QualityProfile(id="any", name="Any")
PROFILES = {p.id: p for p in (HD_PROFILE, ANY_PROFILE)}


def _item(**kwargs: object) -> LibraryItem:
    data: dict[str, object] = {
        "id": "m1",
        "media_type": MediaType.MOVIE,
        "title": "Heat",
        "quality_profile_id": "hd",
        "downloaded_count": 1,
    }
    data.update(kwargs)
    return LibraryItem.model_validate(data)


class TestIsCutoffMet:
    """Tests for is_cutoff_met."""

    def test_quality_below_cutoff(self) -> None:
        """A lower-ranked quality does not meet the cutoff."""
        assert is_cutoff_met(_item(quality="HDTV-720p"), PROFILES.get) is False

    def test_quality_equal_to_cutoff(self) -> None:
        """Reaching the cutoff exactly meets it."""
        assert is_cutoff_met(_item(quality="Bluray-1080p"), PROFILES.get) is True

    def test_quality_above_cutoff(self) -> None:
        """A higher-ranked quality meets the cutoff."""
        assert is_cutoff_met(_item(quality="Remux-2160p"), PROFILES.get) is True

    def test_no_profile(self) -> None:
        """Items without a profile meet their cutoff."""
        assert is_cutoff_met(_item(quality_profile_id=None, quality="SDTV"), PROFILES.get)

    def test_unknown_profile(self) -> None:
        """An unresolvable profile id counts as met."""
        assert is_cutoff_met(_item(quality_profile_id="gone", quality="SDTV"), PROFILES.get)

    def test_profile_without_cutoff(self) -> None:
        """A profile with no cutoff never asks for upgrades."""
        assert is_cutoff_met(_item(quality_profile_id="any", quality="SDTV"), PROFILES.get)

    def test_nothing_downloaded(self) -> None:
        """Items without downloads meet their cutoff."""
        assert is_cutoff_met(_item(downloaded_count=0, quality=None), PROFILES.get)

    def test_downloaded_without_quality_label(self) -> None:
        """A download with no recorded quality counts as met."""
        assert is_cutoff_met(_item(quality=None), PROFILES.get)

    def test_accepts_profile_store(self, tmp_path: Path) -> None:
        """A LibraryStore can be passed as the profile lookup."""
        store = LibraryStore(tmp_path / "library.json")
        store.add_profile(HD_PROFILE)

        assert is_cutoff_met(_item(quality="HDTV-720p"), store) is False
        assert resolve_profile(store, "hd") == HD_PROFILE


class TestIsCutoffUnmet:
    """Tests for is_cutoff_unmet."""

    def test_unmet_requires_downloads(self) -> None:
        """Items with nothing downloaded are never cutoff-unmet."""
        assert is_cutoff_unmet(_item(downloaded_count=0, quality="SDTV"), PROFILES.get) is False

    def test_unmet_below_cutoff(self) -> None:
        """Downloaded items below cutoff are unmet."""
        assert is_cutoff_unmet(_item(quality="WEBDL-720p"), PROFILES.get) is True

    def test_partial_series_download_counts(self) -> None:
        """A series with some episodes downloaded is evaluated."""
        series = _item(
            media_type=MediaType.SERIES,
            expected_count=10,
            downloaded_count=3,
            quality="HDTV-720p",
        )
        assert series.has_file is False
        assert is_cutoff_unmet(series, PROFILES.get) is True
