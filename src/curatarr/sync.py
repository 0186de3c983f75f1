"""Import list synchronization.

A sync run moves through ``FETCHING -> DIFFING -> APPLYING -> DONE`` or
ends in ``FAILED`` when the provider cannot deliver the list. Candidates
are handled strictly in provider order. Preview shares the fetch and diff
steps but only ever sees read-only views of the library and exclusions.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from curatarr.models.activity import EventType
from curatarr.models.common import MediaType
from curatarr.models.library import LibraryItem
from curatarr.models.lists import MonitorPolicy, PreviewItem
from curatarr.providers import ProviderError
from curatarr.state import SyncRunRecord

if TYPE_CHECKING:
    from curatarr.models.lists import CandidateItem, ImportListConfig
    from curatarr.state import StateManager
    from curatarr.store.lists import ImportListStore

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class SyncState(Enum):
    """Phase of a sync run."""

    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class ItemApplyError(Exception):
    """Raised when a single candidate cannot be added to the library."""


class SyncInProgressError(Exception):
    """Raised when a sync is requested for a list that is already syncing."""

    def __init__(self, list_id: str) -> None:
        super().__init__(f"Import list '{list_id}' is already syncing")
        self.list_id = list_id


class ImportListNotFoundError(Exception):
    """Raised when an import list id is unknown."""

    def __init__(self, list_id: str) -> None:
        super().__init__(f"Import list '{list_id}' not found")
        self.list_id = list_id


@dataclass
class SyncResult:
    """Outcome of one sync run.

    Excluded candidates are not counted anywhere. ``pending`` holds the
    candidates that would have been added by a list with auto-add disabled.
    """

    list_id: str
    added: int = 0
    existing: int = 0
    failed: int = 0
    failures: list[str] = field(default_factory=list)
    pending: list[CandidateItem] = field(default_factory=list)
    message: str | None = None
    state: SyncState = SyncState.DONE

    def record_failure(self, reason: str) -> None:
        """Count a failed candidate and keep its reason."""
        self.failed += 1
        self.failures.append(reason)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "list_id": self.list_id,
            "state": self.state.value,
            "added": self.added,
            "existing": self.existing,
            "failed": self.failed,
            "failures": list(self.failures),
            "pending": [c.model_dump(mode="json") for c in self.pending],
            "message": self.message,
        }


class CandidateProvider(Protocol):
    """Fetches candidates for a list; ``ProviderRegistry`` satisfies this."""

    async def fetch(self, config: ImportListConfig) -> list[CandidateItem]: ...

    async def preview(self, config: ImportListConfig) -> list[CandidateItem]: ...


class LibraryReader(Protocol):
    """Read-only library access used for diffing."""

    def find_by_external_id(self, external_id: str, media_type: MediaType) -> LibraryItem | None: ...

    def find_by_title_year(
        self, title: str, year: int | None, media_type: MediaType
    ) -> LibraryItem | None: ...


class LibraryWriter(Protocol):
    """Idempotent library creation used for applying."""

    async def create_if_absent(self, item: LibraryItem) -> tuple[LibraryItem, bool]: ...


class ExclusionReader(Protocol):
    def is_excluded(self, external_id: str | None, media_type: MediaType) -> bool: ...


class ActivityRecorder(Protocol):
    def append(
        self,
        event_type: str,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
        details: str | None = None,
    ) -> Any: ...


class SearchTrigger(Protocol):
    def enqueue(self, item_id: str) -> None: ...


class Decision(Enum):
    """How the diff classified a candidate."""

    EXISTING = "existing"
    EXCLUDED = "excluded"
    UNRESOLVED = "unresolved"
    PENDING = "pending"


class ListDiffer:
    """Classify candidates against the library and the exclusion set.

    Only read-only collaborators are accepted, so a differ cannot mutate
    anything no matter who calls it.
    """

    def __init__(self, library: LibraryReader, exclusions: ExclusionReader) -> None:
        self.library = library
        self.exclusions = exclusions

    def in_library(self, candidate: CandidateItem) -> bool:
        """Match by external id first, then by title and year."""
        if candidate.external_id:
            found = self.library.find_by_external_id(candidate.external_id, candidate.media_type)
            if found is not None:
                return True
        found = self.library.find_by_title_year(
            candidate.title, candidate.year, candidate.media_type
        )
        return found is not None

    def classify(self, candidate: CandidateItem) -> Decision:
        """Classify one candidate."""
        if self.in_library(candidate):
            return Decision.EXISTING
        if self.exclusions.is_excluded(candidate.external_id, candidate.media_type):
            return Decision.EXCLUDED
        if not candidate.external_id:
            return Decision.UNRESOLVED
        return Decision.PENDING

    def diff(self, candidates: list[CandidateItem]) -> list[tuple[CandidateItem, Decision]]:
        """Classify candidates, preserving provider order."""
        return [(c, self.classify(c)) for c in candidates]

    def annotate(self, candidates: list[CandidateItem]) -> list[PreviewItem]:
        """Annotate candidates with their library and exclusion status."""
        result = []
        for candidate, decision in self.diff(candidates):
            result.append(
                PreviewItem(
                    **candidate.model_dump(),
                    in_library=decision == Decision.EXISTING,
                    excluded=decision == Decision.EXCLUDED,
                )
            )
        return result


def build_library_item(config: ImportListConfig, candidate: CandidateItem) -> LibraryItem:
    """Create the library entry for a candidate using the list's add options."""
    is_series = candidate.media_type == MediaType.SERIES
    return LibraryItem(
        id=uuid.uuid4().hex[:12],
        media_type=candidate.media_type,
        title=candidate.title,
        year=candidate.year,
        external_id=candidate.external_id,
        imdb_id=candidate.imdb_id,
        monitored=config.monitor != MonitorPolicy.NONE,
        quality_profile_id=config.quality_profile_id,
        root_folder=config.root_folder,
        monitor=config.monitor.value if is_series else None,
        minimum_availability=None if is_series else config.minimum_availability.value,
        expected_count=0 if is_series else 1,
    )


class ListApplier:
    """Add pending candidates to the library one at a time."""

    def __init__(
        self,
        library: LibraryWriter,
        *,
        activity: ActivityRecorder | None = None,
        search: SearchTrigger | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.library = library
        self.activity = activity
        self.search = search
        self.timeout = timeout

    async def apply(self, config: ImportListConfig, candidate: CandidateItem) -> bool:
        """Add one candidate.

        Returns:
            True if it was created, False if an equal item already existed

        Raises:
            ItemApplyError: If the item could not be created
        """
        item = build_library_item(config, candidate)
        try:
            stored, created = await asyncio.wait_for(
                self.library.create_if_absent(item), timeout=self.timeout
            )
        except TimeoutError as e:
            raise ItemApplyError(f"{candidate.title}: timed out adding to library") from e
        except Exception as e:
            raise ItemApplyError(f"{candidate.title}: {e}") from e

        if not created:
            return False

        self._record_added(config, stored)
        if config.search_on_add and self.search is not None:
            try:
                self.search.enqueue(stored.id)
            except Exception:
                logger.exception("Failed to queue search for %s", stored.title)
        return True

    def _record_added(self, config: ImportListConfig, item: LibraryItem) -> None:
        if self.activity is None:
            return
        year = f" ({item.year})" if item.year else ""
        try:
            self.activity.append(
                EventType.ADDED,
                f"{item.title}{year} added from import list '{config.name}'",
                entity_type=item.media_type.value,
                entity_id=item.id,
            )
        except OSError as e:
            logger.warning("Failed to record activity for %s: %s", item.title, e)


class ImportListSyncPipeline:
    """Fetch, diff and apply import lists.

    At most one sync per list id runs at a time; a second request while one
    is in flight raises ``SyncInProgressError``. Different lists sync
    independently.

    Example:
        pipeline = ImportListSyncPipeline(lists, registry, library, exclusions)
        result = await pipeline.sync("popular-movies")
        print(result.added, result.existing, result.failed)
    """

    def __init__(
        self,
        lists: ImportListStore,
        providers: CandidateProvider,
        library: Any,
        exclusions: ExclusionReader,
        *,
        activity: ActivityRecorder | None = None,
        search: SearchTrigger | None = None,
        state: StateManager | None = None,
        timeout: float = 30.0,
        history_limit: int = 100,
    ) -> None:
        """Initialize the pipeline.

        Args:
            lists: Store of import list configurations
            providers: Candidate source, usually a ProviderRegistry
            library: Library store, used read-only for diffing and for creation
            exclusions: Exclusion lookup
            activity: Where "added" events are recorded
            search: Where searches for added items are queued
            state: Where run history is recorded
            timeout: Bound in seconds on each provider and library call
            history_limit: Number of run records kept
        """
        self.lists = lists
        self.providers = providers
        self.differ = ListDiffer(library, exclusions)
        self.applier = ListApplier(library, activity=activity, search=search, timeout=timeout)
        self.state = state
        self.timeout = timeout
        self.history_limit = history_limit
        self._locks: dict[str, asyncio.Lock] = {}
        self._phases: dict[str, SyncState] = {}

    def _get_config(self, list_id: str) -> ImportListConfig:
        config = self.lists.get(list_id)
        if config is None:
            raise ImportListNotFoundError(list_id)
        return config

    def is_syncing(self, list_id: str) -> bool:
        """Check if a sync for the list is in flight."""
        lock = self._locks.get(list_id)
        return lock is not None and lock.locked()

    def phase(self, list_id: str) -> SyncState:
        """Current or last phase of the list's sync."""
        return self._phases.get(list_id, SyncState.IDLE)

    async def preview(self, list_id: str) -> list[PreviewItem]:
        """Fetch and diff a list without changing anything.

        Raises:
            ImportListNotFoundError: If the list id is unknown
            ProviderError: If the list cannot be fetched
        """
        config = self._get_config(list_id)
        try:
            candidates = await asyncio.wait_for(
                self.providers.preview(config), timeout=self.timeout
            )
        except TimeoutError as e:
            raise ProviderError(f"Timed out fetching list '{config.name}'") from e
        except ProviderError:
            raise
        except Exception as e:
            logger.exception("Unexpected error previewing list '%s'", config.name)
            raise ProviderError(f"Unexpected error fetching list: {e}") from e
        return self.differ.annotate(candidates)

    async def sync(self, list_id: str, on_progress: ProgressCallback | None = None) -> SyncResult:
        """Run one sync of a list.

        Args:
            list_id: The import list id
            on_progress: Called with (done, total) after each candidate

        Returns:
            The SyncResult. A provider failure yields state FAILED with
            ``failed=1`` and leaves ``last_sync`` untouched.

        Raises:
            ImportListNotFoundError: If the list id is unknown
            SyncInProgressError: If the list is already syncing
        """
        lock = self._locks.setdefault(list_id, asyncio.Lock())
        if lock.locked():
            raise SyncInProgressError(list_id)

        async with lock:
            config = self._get_config(list_id)
            started_at = datetime.now(UTC)
            try:
                result = await self._run(config, on_progress)
            finally:
                if self._phases.get(list_id) not in (SyncState.DONE, SyncState.FAILED):
                    self._phases[list_id] = SyncState.FAILED
            self._record_run(config, result, started_at)
            return result

    async def _run(self, config: ImportListConfig, on_progress: ProgressCallback | None) -> SyncResult:
        result = SyncResult(list_id=config.id)

        self._phases[config.id] = SyncState.FETCHING
        logger.info("Syncing import list '%s' (%s)", config.name, config.provider_type)
        try:
            candidates = await asyncio.wait_for(self.providers.fetch(config), timeout=self.timeout)
        except TimeoutError:
            return self._failed(result, f"Timed out fetching list '{config.name}'")
        except ProviderError as e:
            return self._failed(result, str(e))
        except Exception as e:
            logger.exception("Unexpected error fetching list '%s'", config.name)
            return self._failed(result, f"Unexpected error fetching list: {e}")

        self._phases[config.id] = SyncState.DIFFING
        decisions = self.differ.diff(candidates)

        self._phases[config.id] = SyncState.APPLYING
        total = len(decisions)
        for done, (candidate, decision) in enumerate(decisions, start=1):
            await self._apply_one(config, candidate, decision, result)
            if on_progress is not None:
                on_progress(done, total)

        self._phases[config.id] = SyncState.DONE
        result.state = SyncState.DONE
        try:
            self.lists.update_last_sync(config.id)
        except KeyError:
            logger.warning("Import list '%s' was removed during sync", config.id)

        logger.info(
            "Import list '%s' synced: %d added, %d existing, %d failed",
            config.name,
            result.added,
            result.existing,
            result.failed,
        )
        return result

    async def _apply_one(
        self,
        config: ImportListConfig,
        candidate: CandidateItem,
        decision: Decision,
        result: SyncResult,
    ) -> None:
        if decision == Decision.EXISTING:
            result.existing += 1
            return
        if decision == Decision.EXCLUDED:
            logger.debug("Skipping excluded item '%s'", candidate.title)
            return
        if decision == Decision.UNRESOLVED:
            result.record_failure(f"{candidate.title}: no external id")
            return
        if not config.auto_add:
            result.pending.append(candidate)
            return

        try:
            created = await self.applier.apply(config, candidate)
        except ItemApplyError as e:
            logger.error("Failed to add '%s': %s", candidate.title, e)
            result.record_failure(str(e))
            return
        if created:
            result.added += 1
        else:
            result.existing += 1

    def _failed(self, result: SyncResult, message: str) -> SyncResult:
        logger.warning("Import list sync failed: %s", message)
        self._phases[result.list_id] = SyncState.FAILED
        result.state = SyncState.FAILED
        result.failed = 1
        result.failures = [message]
        result.message = message
        return result

    def _record_run(
        self, config: ImportListConfig, result: SyncResult, started_at: datetime
    ) -> None:
        if self.state is None:
            return
        self.state.add_sync_run(
            SyncRunRecord(
                list_id=config.id,
                started_at=started_at,
                completed_at=datetime.now(UTC),
                state=result.state.value,
                added=result.added,
                existing=result.existing,
                failed=result.failed,
                message=result.message,
            ),
            limit=self.history_limit,
        )

    async def sync_due(self, now: datetime | None = None) -> dict[str, SyncResult]:
        """Sync every enabled list whose refresh interval has elapsed.

        Lists already syncing are skipped.

        Returns:
            Results keyed by list id
        """
        due = self.lists.due_for_sync(now)
        results: dict[str, SyncResult] = {}

        async def _one(list_id: str) -> None:
            try:
                results[list_id] = await self.sync(list_id)
            except SyncInProgressError:
                logger.info("Skipping '%s': sync already in progress", list_id)
            except ImportListNotFoundError:
                logger.info("Skipping '%s': list was removed", list_id)

        await asyncio.gather(*(_one(cfg.id) for cfg in due))
        return results
