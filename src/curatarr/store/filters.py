"""Custom library filter store."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from curatarr.models.filters import CustomFilter, FilterConditions
from curatarr.store.base import JsonStore, dump_models, load_models

if TYPE_CHECKING:
    from pathlib import Path


def new_filter_id() -> str:
    """Generate an id for a user-defined filter."""
    return f"custom_{uuid.uuid4().hex[:12]}"


class CustomFilterStore(JsonStore):
    """User-defined filters, in the order they were created."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._filters: list[CustomFilter] = []

    def _decode(self, data: dict[str, Any]) -> None:
        self._filters = load_models(data.get("filters"), CustomFilter, self.path)

    def _encode(self) -> dict[str, Any]:
        return {"filters": dump_models(self._filters)}

    def all(self) -> list[CustomFilter]:
        """Get every filter."""
        self._ensure_loaded()
        return list(self._filters)

    def get(self, filter_id: str) -> CustomFilter | None:
        """Get a filter by id."""
        self._ensure_loaded()
        return next((f for f in self._filters if f.id == filter_id), None)

    def add(
        self,
        name: str,
        conditions: FilterConditions | None = None,
        *,
        filter_id: str | None = None,
    ) -> CustomFilter:
        """Create a filter.

        Args:
            name: Display name
            conditions: Conditions to store; defaults to an empty (match-all) set
            filter_id: Explicit id; generated when omitted

        Returns:
            The stored filter

        Raises:
            ValueError: If ``filter_id`` is already taken
        """
        fid = filter_id or new_filter_id()
        if self.get(fid) is not None:
            raise ValueError(f"Filter '{fid}' already exists")
        custom = CustomFilter(id=fid, name=name, conditions=conditions or FilterConditions())
        self._filters.append(custom)
        self._save()
        return custom

    def update(self, custom: CustomFilter) -> None:
        """Replace a filter by id.

        Raises:
            KeyError: If no filter has that id
        """
        self._ensure_loaded()
        for idx, existing in enumerate(self._filters):
            if existing.id == custom.id:
                self._filters[idx] = custom
                self._save()
                return
        raise KeyError(custom.id)

    def modify(
        self,
        filter_id: str,
        *,
        name: str | None = None,
        conditions: FilterConditions | None = None,
    ) -> CustomFilter:
        """Rename a filter and/or replace its conditions.

        Raises:
            KeyError: If no filter has that id
        """
        current = self.get(filter_id)
        if current is None:
            raise KeyError(filter_id)
        changes: dict[str, Any] = {}
        if name is not None:
            changes["name"] = name
        if conditions is not None:
            changes["conditions"] = conditions
        updated = current.model_copy(update=changes)
        self.update(updated)
        return updated

    def remove(self, filter_id: str) -> bool:
        """Remove a filter. Returns True if it existed."""
        self._ensure_loaded()
        before = len(self._filters)
        self._filters = [f for f in self._filters if f.id != filter_id]
        if len(self._filters) == before:
            return False
        self._save()
        return True
