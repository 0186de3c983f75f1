"""JSON-backed stores for the library, import lists, exclusions, filters and activity."""

from curatarr.store.activity import ActivityLogStore
from curatarr.store.exclusions import ExclusionStore
from curatarr.store.filters import CustomFilterStore
from curatarr.store.library import LibraryStore
from curatarr.store.lists import ImportListStore

__all__ = [
    "ActivityLogStore",
    "CustomFilterStore",
    "ExclusionStore",
    "ImportListStore",
    "LibraryStore",
]
