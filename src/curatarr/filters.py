"""Library filters: built-in status views and user-defined custom filters."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from curatarr.cutoff import is_cutoff_met, is_cutoff_unmet
from curatarr.models.filters import CustomFilter, FilterConditions
from curatarr.quality import normalize_label, resolution_group

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from curatarr.cutoff import ProfileLookup
    from curatarr.models.library import LibraryItem, QualityProfile

    Lookup = ProfileLookup | Callable[[str], QualityProfile | None]


class StatusFilter(Enum):
    """Built-in library views.

    Attributes:
        ALL: Every item
        MONITORED: Monitored items
        UNMONITORED: Unmonitored items
        MISSING: Items without all expected files
        WANTED: Monitored items without all expected files
        DOWNLOADED: Items with all expected files
        CUTOFF_UNMET: Items with downloads below their profile cutoff
    """

    ALL = "all"
    MONITORED = "monitored"
    UNMONITORED = "unmonitored"
    MISSING = "missing"
    WANTED = "wanted"
    DOWNLOADED = "downloaded"
    CUTOFF_UNMET = "cutoff_unmet"


# Filter values that select a whole resolution group rather than one label.
RESOLUTION_TOKENS: dict[str, str] = {
    "2160p": "2160p",
    "4k": "2160p",
    "uhd": "2160p",
    "1080p": "1080p",
    "720p": "720p",
    "480p": "480p",
    "sd": "480p",
}


def _matches_quality(item_quality: str | None, wanted: str) -> bool:
    """Match an item's label against an exact label or a resolution group token."""
    if not item_quality:
        return False
    wanted_norm = normalize_label(wanted)
    if normalize_label(item_quality) == wanted_norm:
        return True
    group = RESOLUTION_TOKENS.get(wanted_norm)
    if group is None:
        return False
    return resolution_group(item_quality) == group


def matches(item: LibraryItem, custom_filter: CustomFilter, lookup: Lookup) -> bool:
    """Evaluate a custom filter against a library item.

    Every set condition must hold. A condition that references a field the
    item does not have (no year, no quality, no profile) fails rather than
    raising.

    Args:
        item: The library item
        custom_filter: The filter to evaluate
        lookup: Profile store or callable used for the cutoff condition

    Returns:
        True if the item satisfies all set conditions
    """
    return matches_conditions(item, custom_filter.conditions, lookup)


def matches_conditions(item: LibraryItem, conditions: FilterConditions, lookup: Lookup) -> bool:
    """Evaluate bare filter conditions against a library item."""
    if conditions.monitored is not None and item.monitored != conditions.monitored:
        return False

    if conditions.has_file is not None and item.has_file != conditions.has_file:
        return False

    if conditions.cutoff_met is not None:
        # Cutoff status is undefined for items with nothing downloaded.
        if not item.has_downloads:
            return False
        if is_cutoff_met(item, lookup) != conditions.cutoff_met:
            return False

    if (
        conditions.quality_profile_id is not None
        and item.quality_profile_id != conditions.quality_profile_id
    ):
        return False

    if conditions.quality is not None and not _matches_quality(item.quality, conditions.quality):
        return False

    if conditions.min_year is not None and (item.year is None or item.year < conditions.min_year):
        return False

    return not (
        conditions.max_year is not None and (item.year is None or item.year > conditions.max_year)
    )


def matches_status(item: LibraryItem, status: StatusFilter, lookup: Lookup) -> bool:
    """Evaluate a built-in status view against a library item."""
    if status == StatusFilter.MONITORED:
        return item.monitored
    if status == StatusFilter.UNMONITORED:
        return not item.monitored
    if status == StatusFilter.MISSING:
        return not item.has_file
    if status == StatusFilter.WANTED:
        return item.monitored and not item.has_file
    if status == StatusFilter.DOWNLOADED:
        return item.has_file
    if status == StatusFilter.CUTOFF_UNMET:
        return is_cutoff_unmet(item, lookup)
    return True


def apply(
    items: Iterable[LibraryItem],
    selection: StatusFilter | CustomFilter | None,
    lookup: Lookup,
    search: str | None = None,
) -> list[LibraryItem]:
    """Filter items by a status view or custom filter plus an optional title search.

    Args:
        items: Library items to filter, order is preserved
        selection: Status view, custom filter, or None for all items
        lookup: Profile store or callable used for cutoff evaluation
        search: Case-insensitive substring to match against titles

    Returns:
        The matching items
    """
    term = search.lower() if search else None
    result = []
    for item in items:
        if term and term not in item.title.lower():
            continue
        if isinstance(selection, CustomFilter):
            if not matches(item, selection, lookup):
                continue
        elif selection is not None and not matches_status(item, selection, lookup):
            continue
        result.append(item)
    return result


def describe(conditions: FilterConditions) -> list[str]:
    """Describe set conditions as short human-readable labels."""
    labels: list[str] = []
    if conditions.monitored is not None:
        labels.append("Monitored" if conditions.monitored else "Unmonitored")
    if conditions.has_file is not None:
        labels.append("Has File" if conditions.has_file else "Missing File")
    if conditions.cutoff_met is not None:
        labels.append("Cutoff Met" if conditions.cutoff_met else "Cutoff Unmet")
    if conditions.quality_profile_id is not None:
        labels.append(f"Profile: {conditions.quality_profile_id}")
    if conditions.quality is not None:
        labels.append(f"Quality: {conditions.quality}")
    if conditions.min_year is not None:
        labels.append(f"From: {conditions.min_year}")
    if conditions.max_year is not None:
        labels.append(f"To: {conditions.max_year}")
    return labels
