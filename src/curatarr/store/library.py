"""Library items and quality profiles."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from curatarr.models.library import LibraryItem, QualityProfile
from curatarr.store.base import JsonStore, dump_models, load_models

if TYPE_CHECKING:
    from pathlib import Path

    from curatarr.models.common import MediaType

logger = logging.getLogger(__name__)


class LibraryStore(JsonStore):
    """Library items and the quality profiles they reference.

    Reads are synchronous. ``create_if_absent`` is serialized by a lock so
    that concurrent syncs adding the same external item create it once.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._items: list[LibraryItem] = []
        self._profiles: list[QualityProfile] = []
        self._create_lock = asyncio.Lock()

    def _decode(self, data: dict[str, Any]) -> None:
        self._items = load_models(data.get("items"), LibraryItem, self.path)
        self._profiles = load_models(data.get("profiles"), QualityProfile, self.path)

    def _encode(self) -> dict[str, Any]:
        return {"items": dump_models(self._items), "profiles": dump_models(self._profiles)}

    def list_all(self, media_type: MediaType | None = None) -> list[LibraryItem]:
        """Get all items, optionally restricted to one media type."""
        self._ensure_loaded()
        if media_type is None:
            return list(self._items)
        return [i for i in self._items if i.media_type == media_type]

    def get(self, item_id: str) -> LibraryItem | None:
        """Get an item by its library id."""
        self._ensure_loaded()
        return next((i for i in self._items if i.id == item_id), None)

    def find_by_external_id(self, external_id: str, media_type: MediaType) -> LibraryItem | None:
        """Find an item by its external reference id."""
        self._ensure_loaded()
        return next(
            (
                i
                for i in self._items
                if i.external_id == external_id and i.media_type == media_type
            ),
            None,
        )

    def find_by_title_year(
        self, title: str, year: int | None, media_type: MediaType
    ) -> LibraryItem | None:
        """Find an item by case-insensitive title and release year."""
        self._ensure_loaded()
        wanted = title.strip().casefold()
        return next(
            (
                i
                for i in self._items
                if i.media_type == media_type
                and i.year == year
                and i.title.strip().casefold() == wanted
            ),
            None,
        )

    async def create_if_absent(self, item: LibraryItem) -> tuple[LibraryItem, bool]:
        """Add an item unless one with the same external id and media type exists.

        Args:
            item: The item to add

        Returns:
            Tuple of (stored item, created). ``created`` is False when an
            existing item was returned instead.
        """
        async with self._create_lock:
            if item.external_id:
                existing = self.find_by_external_id(item.external_id, item.media_type)
                if existing is not None:
                    return existing, False
            self._ensure_loaded()
            self._items.append(item)
            self._save()
            logger.debug("Added %s '%s' to library", item.media_type, item.title)
            return item, True

    def remove(self, item_id: str) -> bool:
        """Remove an item. Returns True if it existed."""
        self._ensure_loaded()
        before = len(self._items)
        self._items = [i for i in self._items if i.id != item_id]
        if len(self._items) == before:
            return False
        self._save()
        return True

    def profiles(self) -> list[QualityProfile]:
        """Get all quality profiles."""
        self._ensure_loaded()
        return list(self._profiles)

    def get_profile(self, profile_id: str) -> QualityProfile | None:
        """Get a quality profile by id."""
        self._ensure_loaded()
        return next((p for p in self._profiles if p.id == profile_id), None)

    def add_profile(self, profile: QualityProfile) -> None:
        """Add or replace a quality profile."""
        self._ensure_loaded()
        self._profiles = [p for p in self._profiles if p.id != profile.id]
        self._profiles.append(profile)
        self._save()
