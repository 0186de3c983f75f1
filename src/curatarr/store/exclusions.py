"""Exclusion list store."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from curatarr.models.lists import Exclusion
from curatarr.store.base import JsonStore, dump_models, load_models

if TYPE_CHECKING:
    from pathlib import Path

    from curatarr.models.common import MediaType

logger = logging.getLogger(__name__)


class ExclusionStore(JsonStore):
    """Items that import list syncs must never add.

    An exclusion is keyed by (external id, media type); adding the same key
    twice returns the existing entry.
    """

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._entries: list[Exclusion] = []

    def _decode(self, data: dict[str, Any]) -> None:
        self._entries = load_models(data.get("exclusions"), Exclusion, self.path)

    def _encode(self) -> dict[str, Any]:
        return {"exclusions": dump_models(self._entries)}

    def _find(self, external_id: str, media_type: MediaType) -> Exclusion | None:
        self._ensure_loaded()
        return next(
            (
                e
                for e in self._entries
                if e.external_id == external_id and e.media_type == media_type
            ),
            None,
        )

    def is_excluded(self, external_id: str | None, media_type: MediaType) -> bool:
        """Check if an external item is excluded."""
        if not external_id:
            return False
        return self._find(external_id, media_type) is not None

    def add(
        self,
        external_id: str,
        media_type: MediaType,
        *,
        title: str = "",
        year: int | None = None,
        reason: str | None = None,
    ) -> Exclusion:
        """Exclude an external item.

        Returns:
            The new exclusion, or the existing one for the same key
        """
        existing = self._find(str(external_id), media_type)
        if existing is not None:
            return existing
        entry = Exclusion(
            id=uuid.uuid4().hex[:12],
            external_id=external_id,
            media_type=media_type,
            title=title,
            year=year,
            reason=reason,
        )
        self._entries.append(entry)
        self._save()
        logger.info("Excluded %s %s (%s)", media_type, external_id, title or "untitled")
        return entry

    def get(self, exclusion_id: str) -> Exclusion | None:
        """Get an exclusion by id."""
        self._ensure_loaded()
        return next((e for e in self._entries if e.id == exclusion_id), None)

    def remove(self, exclusion_id: str) -> bool:
        """Remove an exclusion by id. Returns True if it existed."""
        self._ensure_loaded()
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.id != exclusion_id]
        if len(self._entries) == before:
            return False
        self._save()
        return True

    def remove_by_external_id(self, external_id: str, media_type: MediaType) -> bool:
        """Remove the exclusion for an external item. Returns True if it existed."""
        entry = self._find(external_id, media_type)
        if entry is None:
            return False
        return self.remove(entry.id)

    def clear(self, media_type: MediaType | None = None) -> int:
        """Remove all exclusions, or only those of one media type.

        Returns:
            The number of exclusions removed
        """
        self._ensure_loaded()
        keep = [] if media_type is None else [e for e in self._entries if e.media_type != media_type]
        removed = len(self._entries) - len(keep)
        if removed:
            self._entries = keep
            self._save()
        return removed

    def all(self, media_type: MediaType | None = None) -> list[Exclusion]:
        """Get exclusions, newest first."""
        self._ensure_loaded()
        entries = [e for e in self._entries if media_type is None or e.media_type == media_type]
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def count(self, media_type: MediaType | None = None) -> int:
        """Count exclusions, optionally of one media type."""
        return len(self.all(media_type))
