"""Wiring of stores and pipelines from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from curatarr.clients.activity import ActivityClient
from curatarr.notifications import ActivityNotificationPipeline
from curatarr.providers import ProviderRegistry
from curatarr.search import SearchQueue
from curatarr.state import StateManager
from curatarr.store import (
    ActivityLogStore,
    CustomFilterStore,
    ExclusionStore,
    ImportListStore,
    LibraryStore,
)
from curatarr.sync import ImportListSyncPipeline

if TYPE_CHECKING:
    from curatarr.config import ActivityConfig, Config
    from curatarr.models.activity import ActivityEvent


class RemoteActivityLog:
    """Activity source backed by a remote activity endpoint."""

    def __init__(self, config: ActivityConfig, timeout: float = 30.0) -> None:
        self.config = config
        self.timeout = timeout

    def has_credentials(self) -> bool:
        return bool(self.config.api_key)

    async def fetch_recent(self, limit: int = 50) -> list[ActivityEvent]:
        async with ActivityClient(
            self.config.url, self.config.api_key, timeout=self.timeout
        ) as client:
            return await client.fetch_recent(limit)


@dataclass
class Services:
    """Everything the CLI and the server operate on."""

    config: Config
    library: LibraryStore
    lists: ImportListStore
    exclusions: ExclusionStore
    filters: CustomFilterStore
    activity: ActivityLogStore
    state: StateManager
    providers: ProviderRegistry
    search: SearchQueue
    pipeline: ImportListSyncPipeline
    notifier: ActivityNotificationPipeline


def build_services(config: Config, providers: ProviderRegistry | None = None) -> Services:
    """Create stores and pipelines for a configuration.

    Args:
        config: Application configuration
        providers: Provider registry to use instead of the configured one

    Returns:
        The wired Services
    """
    library = LibraryStore(config.data.library_file)
    lists = ImportListStore(config.data.lists_file)
    exclusions = ExclusionStore(config.data.exclusions_file)
    activity = ActivityLogStore(config.data.activity_file)
    state = StateManager(config.state.path)
    registry = providers or ProviderRegistry.from_config(config)
    search = SearchQueue.from_config(config)

    pipeline = ImportListSyncPipeline(
        lists,
        registry,
        library,
        exclusions,
        activity=activity,
        search=search,
        state=state,
        timeout=config.timeout,
        history_limit=config.scheduler.history_limit,
    )

    if config.activity is not None:
        remote = RemoteActivityLog(config.activity, timeout=config.timeout)
        notifier = ActivityNotificationPipeline(
            remote,
            state,
            capacity=config.notifications.capacity,
            fetch_limit=config.notifications.fetch_limit,
            timeout=config.timeout,
            has_credentials=remote.has_credentials,
        )
    else:
        notifier = ActivityNotificationPipeline(
            activity,
            state,
            capacity=config.notifications.capacity,
            fetch_limit=config.notifications.fetch_limit,
            timeout=config.timeout,
        )

    return Services(
        config=config,
        library=library,
        lists=lists,
        exclusions=exclusions,
        filters=CustomFilterStore(config.data.filters_file),
        activity=activity,
        state=state,
        providers=registry,
        search=search,
        pipeline=pipeline,
        notifier=notifier,
    )
