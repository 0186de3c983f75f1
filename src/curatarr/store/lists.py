"""Import list configuration store."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from curatarr.models.lists import ImportListConfig
from curatarr.store.base import JsonStore, dump_models, load_models

if TYPE_CHECKING:
    from pathlib import Path


class ImportListStore(JsonStore):
    """Configured import lists, in insertion order."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self._lists: list[ImportListConfig] = []

    def _decode(self, data: dict[str, Any]) -> None:
        self._lists = load_models(data.get("lists"), ImportListConfig, self.path)

    def _encode(self) -> dict[str, Any]:
        return {"lists": dump_models(self._lists)}

    def all(self) -> list[ImportListConfig]:
        """Get every configured list."""
        self._ensure_loaded()
        return list(self._lists)

    def get(self, list_id: str) -> ImportListConfig | None:
        """Get a list by id."""
        self._ensure_loaded()
        return next((cfg for cfg in self._lists if cfg.id == list_id), None)

    def add(self, config: ImportListConfig) -> None:
        """Add a new list.

        Raises:
            ValueError: If a list with the same id already exists
        """
        if self.get(config.id) is not None:
            raise ValueError(f"Import list '{config.id}' already exists")
        self._lists.append(config)
        self._save()

    def update(self, config: ImportListConfig) -> None:
        """Replace a list by id.

        Raises:
            KeyError: If no list has that id
        """
        self._ensure_loaded()
        for idx, existing in enumerate(self._lists):
            if existing.id == config.id:
                self._lists[idx] = config
                self._save()
                return
        raise KeyError(config.id)

    def modify(self, list_id: str, changes: dict[str, Any]) -> ImportListConfig:
        """Change some fields of a stored list and return the new config.

        The id is never changed, even if ``changes`` names one.

        Raises:
            KeyError: If no list has that id
            pydantic.ValidationError: If a changed value is invalid
        """
        current = self.get(list_id)
        if current is None:
            raise KeyError(list_id)
        updated = ImportListConfig.model_validate(
            {**current.model_dump(), **changes, "id": list_id}
        )
        self.update(updated)
        return updated

    def remove(self, list_id: str) -> bool:
        """Remove a list. Returns True if it existed."""
        self._ensure_loaded()
        before = len(self._lists)
        self._lists = [cfg for cfg in self._lists if cfg.id != list_id]
        if len(self._lists) == before:
            return False
        self._save()
        return True

    def enabled(self) -> list[ImportListConfig]:
        """Get every enabled list."""
        return [cfg for cfg in self.all() if cfg.enabled]

    def due_for_sync(self, now: datetime | None = None) -> list[ImportListConfig]:
        """Get enabled lists that never synced or whose refresh interval elapsed."""
        now = now or datetime.now(UTC)
        return [cfg for cfg in self.all() if cfg.is_due(now)]

    def update_last_sync(self, list_id: str, when: datetime | None = None) -> None:
        """Record a completed sync time for a list.

        Raises:
            KeyError: If no list has that id
        """
        config = self.get(list_id)
        if config is None:
            raise KeyError(list_id)
        self.update(config.model_copy(update={"last_sync": when or datetime.now(UTC)}))
