"""Quality label ranking.

Quality labels are free-form text coming from upstream tools ("Bluray-1080p",
"WEB 1080p", "HDTV-720p", ...), so they are classified heuristically rather
than parsed against a closed set. A label is scored on two independent axes:

* resolution tier: 0 (unknown), 1 (480p/SD), 2 (720p), 3 (1080p), 4 (2160p/4K)
* source tier: 0 (unknown), 10 (DVD/SDTV), 20 (HDTV), 25 (WEBRip), 30 (WEBDL),
  40 (Bluray), 50 (Remux)

and ranked as ``resolution_tier * 100 + source_tier``. Resolution always
dominates: any 1080p source outranks any 720p source.

Example::

    >>> rank("Bluray-1080p")
    340
    >>> rank("HDTV-1080p") > rank("Bluray-720p")
    True
"""

from __future__ import annotations

# (markers, tier) pairs evaluated in order; the first pair with a matching
# marker wins.
RESOLUTION_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("2160", "4k", "uhd"), 4),
    (("1080",), 3),
    (("720",), 2),
    (("480", "sd"), 1),
)

# "web" alone is the combined WEB group; it must come after the WEBRip
# markers so that "WEBRip-1080p" keeps the WEBRip tier.
SOURCE_TIERS: tuple[tuple[tuple[str, ...], int], ...] = (
    (("remux",), 50),
    (("bluray", "blu-ray", "bdrip", "brrip"), 40),
    (("webdl", "web-dl", "web dl"), 30),
    (("webrip", "web-rip", "web rip"), 25),
    (("web",), 30),
    (("hdtv",), 20),
    (("dvd", "sdtv"), 10),
)

RESOLUTION_GROUPS: dict[int, str] = {
    4: "2160p",
    3: "1080p",
    2: "720p",
    1: "480p",
}


def _first_tier(label: str | None, table: tuple[tuple[tuple[str, ...], int], ...]) -> int:
    text = (label or "").lower()
    if not text:
        return 0
    for markers, tier in table:
        if any(marker in text for marker in markers):
            return tier
    return 0


def resolution_tier(label: str | None) -> int:
    """Get the resolution tier (0-4) of a quality label."""
    return _first_tier(label, RESOLUTION_TIERS)


def source_tier(label: str | None) -> int:
    """Get the source tier (0-50) of a quality label."""
    return _first_tier(label, SOURCE_TIERS)


def rank(label: str | None) -> int:
    """Map a quality label to a comparable rank.

    Args:
        label: Quality label, e.g. "Bluray-1080p". None and empty or
            unrecognized labels rank 0.

    Returns:
        ``resolution_tier * 100 + source_tier``; higher is better
    """
    return resolution_tier(label) * 100 + source_tier(label)


def compare(a: str | None, b: str | None) -> int:
    """Compare two labels: negative if a ranks lower, 0 if tied, positive if higher."""
    return rank(a) - rank(b)


def resolution_group(label: str | None) -> str | None:
    """Get the canonical resolution group ("1080p", ...) of a label, if any."""
    return RESOLUTION_GROUPS.get(resolution_tier(label))


def normalize_label(label: str | None) -> str:
    """Normalize a label for equality checks (case, dashes and whitespace)."""
    return "".join(ch for ch in (label or "").lower() if ch != "-" and not ch.isspace())
