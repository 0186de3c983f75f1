"""JSON document persistence shared by the stores and the state file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

STORE_VERSION = 1

M = TypeVar("M", bound=BaseModel)


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a temp file beside ``path`` and move it into place.

    Args:
        path: Destination file
        data: JSON-serializable document

    Raises:
        OSError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from ``path``.

    Returns:
        The decoded object, or None if the file is missing, unreadable,
        or does not hold a JSON object
    """
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to load %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a JSON object", path)
        return None
    return data


def load_models(raw: Any, model: type[M], path: Path) -> list[M]:
    """Validate a list of raw records, skipping invalid entries with a warning."""
    if not isinstance(raw, list):
        return []
    result: list[M] = []
    for entry in raw:
        try:
            result.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid %s record in %s: %s", model.__name__, path, e)
    return result


def dump_models(models: list[Any]) -> list[dict[str, Any]]:
    """Serialize models to JSON-ready dictionaries."""
    return [m.model_dump(mode="json") for m in models]


class JsonStore:
    """A collection persisted as one JSON document.

    The document is loaded lazily on first access and written back after
    every mutation. A missing or corrupt file yields an empty store.
    Subclasses implement ``_decode`` and ``_encode``.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store.

        Args:
            path: Path to the JSON document
        """
        self.path = path
        self._loaded = False
        self._persisted: dict[str, Any] = {}

    def _decode(self, data: dict[str, Any]) -> None:
        raise NotImplementedError

    def _encode(self) -> dict[str, Any]:
        raise NotImplementedError

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._persisted = read_json(self.path) or {}
            self._decode(self._persisted)
            self._loaded = True

    def _save(self) -> None:
        """Write the collection to disk.

        If the write fails the in-memory collection is restored to the last
        document that reached disk, so memory never holds unsaved records.

        Raises:
            OSError: If the file cannot be written
        """
        document = {"version": STORE_VERSION, **self._encode()}
        try:
            write_json_atomic(self.path, document)
        except OSError:
            self._decode(self._persisted)
            raise
        self._persisted = document

    def reload(self) -> None:
        """Drop the in-memory copy so the next access rereads the file."""
        self._loaded = False
