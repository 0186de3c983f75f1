"""curatarr - Keep a media library in step with external reference lists.

Import lists (TMDB, Trakt, StevenLu, static files) are fetched, diffed
against the library and exclusions, and missing items are added. The
library's activity log is turned into a deduplicated notification feed,
and library items can be ranked by quality and sliced with custom filters.

Quick Start
-----------
Sync a configured list::

    from curatarr import Config, build_services

    services = build_services(Config.load())
    result = await services.pipeline.sync("tmdb-popular")
    print(f"{result.added} added, {result.existing} already present")

Preview a list without changing anything::

    for item in await services.pipeline.preview("tmdb-popular"):
        print(item.title, item.in_library, item.excluded)

Rank quality labels::

    from curatarr import quality

    quality.rank("Bluray-2160p")  # 440
    quality.compare("WEBDL-1080p", "HDTV-1080p") > 0  # True

CLI Usage
---------
::

    curatarr lists add tmdb-popular -p tmdb --list popular
    curatarr lists preview tmdb-popular
    curatarr lists sync tmdb-popular
    curatarr filters apply cutoff_unmet
    curatarr serve

Classes
-------
ImportListSyncPipeline
    Fetch, diff and apply one import list.
ActivityNotificationPipeline
    Turn activity log events into a bounded notification feed.
ProviderRegistry
    Map provider type names to external list providers.
"""

from curatarr.config import Config, ConfigurationError
from curatarr.notifications import ActivityNotificationPipeline
from curatarr.providers import ProviderError, ProviderRegistry
from curatarr.services import Services, build_services
from curatarr.sync import ImportListSyncPipeline, SyncResult

__version__ = "0.4.0"

__all__ = [
    "ActivityNotificationPipeline",
    "Config",
    "ConfigurationError",
    "ImportListSyncPipeline",
    "ProviderError",
    "ProviderRegistry",
    "Services",
    "SyncResult",
    "build_services",
    "__version__",
]
