"""Quality cutoff evaluation for library items."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from curatarr.quality import rank

if TYPE_CHECKING:
    from collections.abc import Callable

    from curatarr.models.library import LibraryItem, QualityProfile


class ProfileLookup(Protocol):
    """Anything that resolves a quality profile id to a profile."""

    def get_profile(self, profile_id: str) -> QualityProfile | None:
        """Get a profile by id, or None if unknown."""
        ...


def resolve_profile(
    lookup: ProfileLookup | Callable[[str], QualityProfile | None],
    profile_id: str,
) -> QualityProfile | None:
    """Resolve a profile through either a store or a plain callable."""
    getter = getattr(lookup, "get_profile", None)
    if getter is not None:
        return getter(profile_id)
    return lookup(profile_id)  # type: ignore[operator]


def is_cutoff_met(
    item: LibraryItem,
    lookup: ProfileLookup | Callable[[str], QualityProfile | None],
) -> bool:
    """Decide whether an item's acquired quality satisfies its profile cutoff.

    Missing data never reports an unmet cutoff: an item without a profile,
    without downloaded content, whose profile has no cutoff, or without a
    recorded quality label is considered to meet its cutoff.

    Args:
        item: The library item to evaluate
        lookup: Profile store or callable mapping profile id to profile

    Returns:
        True if the item's quality ranks at or above the profile cutoff
    """
    if not item.quality_profile_id or not item.has_downloads:
        return True

    profile = resolve_profile(lookup, item.quality_profile_id)
    if profile is None or not profile.cutoff:
        return True

    # TODO: revisit with product whether an unrecorded quality should count as unmet
    if not item.quality:
        return True

    return rank(item.quality) >= rank(profile.cutoff)


def is_cutoff_unmet(
    item: LibraryItem,
    lookup: ProfileLookup | Callable[[str], QualityProfile | None],
) -> bool:
    """Check if an item has downloads that fall short of its cutoff."""
    return item.has_downloads and not is_cutoff_met(item, lookup)
