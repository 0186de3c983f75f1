"""HTTP API server for import lists, exclusions, filters and notifications."""

from __future__ import annotations

import asyncio
import logging
import secrets
from datetime import UTC, datetime
from typing import Annotated, Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from curatarr import __version__
from curatarr.config import Config
from curatarr.cutoff import is_cutoff_met, resolve_profile
from curatarr.filters import StatusFilter, apply
from curatarr.models.activity import NotificationItem
from curatarr.models.common import MediaType
from curatarr.models.filters import CustomFilter, FilterConditions
from curatarr.models.library import LibraryItem
from curatarr.models.lists import (
    Exclusion,
    ImportListConfig,
    MinimumAvailability,
    MonitorPolicy,
    PreviewItem,
)
from curatarr.providers import ProviderError, list_types
from curatarr.quality import rank, resolution_tier, source_tier
from curatarr.scheduler import SchedulerManager
from curatarr.services import Services, build_services
from curatarr.sync import ImportListNotFoundError, SyncInProgressError

logger = logging.getLogger(__name__)


def _validate_api_key(api_key: str | None, config: Config) -> bool:
    """Validate the X-Api-Key header against the configured server key.

    Args:
        api_key: The API key from the X-Api-Key header.
        config: Application configuration.

    Returns:
        True if no key is configured or the key matches.
    """
    expected = config.server.api_key
    if not expected:
        return True
    if not api_key:
        return False
    return secrets.compare_digest(api_key, expected)


class ExclusionCreate(BaseModel):
    """Request body for excluding an external item."""

    external_id: str
    media_type: MediaType
    title: str = ""
    year: int | None = None
    reason: str | None = None


class FilterCreate(BaseModel):
    """Request body for creating a custom filter."""

    name: str = Field(min_length=1)
    conditions: FilterConditions = Field(default_factory=FilterConditions)
    id: str | None = None


class FilterUpdate(BaseModel):
    """Request body for changing a custom filter. Omitted fields keep their value."""

    name: str | None = Field(default=None, min_length=1)
    conditions: FilterConditions | None = None


class ImportListUpdate(BaseModel):
    """Request body for changing an import list.

    Only the fields present in the request are changed; sending ``null``
    for an optional field such as ``quality_profile_id`` clears it.
    """

    name: str | None = None
    provider_type: str | None = None
    media_type: MediaType | None = None
    enabled: bool | None = None
    auto_add: bool | None = None
    search_on_add: bool | None = None
    quality_profile_id: str | None = None
    root_folder: str | None = None
    monitor: MonitorPolicy | None = None
    minimum_availability: MinimumAvailability | None = None
    list_id: str | None = None
    url: str | None = None
    refresh_interval: int | None = Field(default=None, ge=1)


class RankResponse(BaseModel):
    label: str
    rank: int
    resolution_tier: int
    source_tier: int


def _parse_media_type(value: str | None) -> MediaType | None:
    if value is None:
        return None
    try:
        return MediaType.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Unknown media type '{value}'") from e


def create_app(
    config: Config | None = None,
    *,
    services: Services | None = None,
    scheduler: SchedulerManager | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration. If None, loads from default sources.
        services: Pre-built stores and pipelines; built from config if None.
        scheduler: Scheduler manager reported by /status and refreshed when
            lists change.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = services.config if services is not None else Config.load()
    if services is None:
        services = build_services(config)

    app = FastAPI(
        title="curatarr",
        description="Import list sync, library filters and activity notifications",
        version=__version__,
    )
    app.state.services = services
    app.state.scheduler = scheduler

    def require_api_key(
        x_api_key: Annotated[str | None, Header(alias="X-Api-Key")] = None,
    ) -> None:
        if not _validate_api_key(x_api_key, config):
            raise HTTPException(status_code=401, detail="Invalid or missing X-Api-Key header")

    api = APIRouter(prefix="/api", dependencies=[Depends(require_api_key)])

    def _refresh_schedule() -> None:
        manager = app.state.scheduler
        if manager is not None and manager.is_running:
            manager.refresh_jobs()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/status")
    async def status() -> dict[str, Any]:
        """Status endpoint showing store and scheduler state."""
        manager = app.state.scheduler
        lists = services.lists.all()
        result: dict[str, Any] = {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": __version__,
            "tmdb_configured": config.tmdb is not None,
            "import_lists": len(lists),
            "enabled_lists": len([cfg for cfg in lists if cfg.enabled]),
            "unread_notifications": services.notifier.unread_count,
            "scheduler": {"enabled": False},
        }
        if manager is not None:
            result["scheduler"] = {
                "enabled": True,
                "running": manager.is_running,
                "jobs": len(manager.get_jobs()),
                "recent_runs": [r.to_dict() for r in manager.get_history(limit=5)],
            }
        return result

    # --- Import lists ---

    @api.get("/lists")
    async def get_lists() -> list[ImportListConfig]:
        return services.lists.all()

    @api.post("/lists", status_code=201)
    async def add_list(config_in: ImportListConfig) -> ImportListConfig:
        try:
            services.lists.add(config_in)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        _refresh_schedule()
        return config_in

    @api.put("/lists/{list_id}")
    async def update_list(list_id: str, body: ImportListUpdate) -> ImportListConfig:
        """Change an import list and bring its scheduled job in line."""
        try:
            updated = services.lists.modify(list_id, body.model_dump(exclude_unset=True))
        except KeyError as e:
            raise HTTPException(status_code=404, detail=f"Import list '{list_id}' not found") from e
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=str(e)) from e
        _refresh_schedule()
        return updated

    @api.delete("/lists/{list_id}")
    async def delete_list(list_id: str) -> dict[str, bool]:
        if not services.lists.remove(list_id):
            raise HTTPException(status_code=404, detail=f"Import list '{list_id}' not found")
        _refresh_schedule()
        return {"removed": True}

    @api.get("/list-types")
    async def get_list_types() -> dict[str, Any]:
        return {str(media): [t.model_dump() for t in types] for media, types in list_types().items()}

    @api.post("/lists/{list_id}/sync")
    async def sync_list(list_id: str) -> dict[str, Any]:
        """Sync a list now. 409 if the list is already syncing."""
        try:
            result = await services.pipeline.sync(list_id)
        except ImportListNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except SyncInProgressError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return result.to_dict()

    @api.get("/lists/{list_id}/preview")
    async def preview_list(list_id: str) -> list[PreviewItem]:
        try:
            return await services.pipeline.preview(list_id)
        except ImportListNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except ProviderError as e:
            raise HTTPException(status_code=502, detail=str(e)) from e

    # --- Exclusions ---

    @api.get("/exclusions")
    async def get_exclusions(media_type: str | None = None) -> list[Exclusion]:
        return services.exclusions.all(_parse_media_type(media_type))

    @api.post("/exclusions", status_code=201)
    async def add_exclusion(body: ExclusionCreate) -> Exclusion:
        return services.exclusions.add(
            body.external_id,
            body.media_type,
            title=body.title,
            year=body.year,
            reason=body.reason,
        )

    @api.delete("/exclusions/{exclusion_id}")
    async def delete_exclusion(exclusion_id: str) -> dict[str, bool]:
        if not services.exclusions.remove(exclusion_id):
            raise HTTPException(status_code=404, detail=f"Exclusion '{exclusion_id}' not found")
        return {"removed": True}

    @api.delete("/exclusions/external/{media_type}/{external_id}")
    async def delete_exclusion_by_external_id(media_type: str, external_id: str) -> dict[str, bool]:
        parsed = _parse_media_type(media_type)
        assert parsed is not None
        if not services.exclusions.remove_by_external_id(external_id, parsed):
            raise HTTPException(
                status_code=404, detail=f"No exclusion for {parsed.value} {external_id}"
            )
        return {"removed": True}

    @api.delete("/exclusions")
    async def clear_exclusions(media_type: str | None = None) -> dict[str, int]:
        return {"removed": services.exclusions.clear(_parse_media_type(media_type))}

    # --- Library, quality and filters ---

    @api.get("/library")
    async def get_library(
        filter_id: Annotated[str | None, Query(alias="filter")] = None,
        search: str | None = None,
        media_type: str | None = None,
    ) -> list[LibraryItem]:
        """List library items through a status view or custom filter."""
        selection: StatusFilter | CustomFilter | None = None
        if filter_id:
            try:
                selection = StatusFilter(filter_id)
            except ValueError:
                selection = services.filters.get(filter_id)
                if selection is None:
                    raise HTTPException(
                        status_code=400, detail=f"Unknown filter '{filter_id}'"
                    ) from None
        items = services.library.list_all(_parse_media_type(media_type))
        return apply(items, selection, services.library, search)

    @api.delete("/library/{item_id}")
    async def delete_library_item(item_id: str, exclude: bool = False) -> dict[str, Any]:
        """Remove a library item.

        With ``exclude=true`` the item's external id is excluded first, so
        import lists will not add it back on their next sync.
        """
        item = services.library.get(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Library item '{item_id}' not found")
        exclusion: Exclusion | None = None
        if exclude:
            if not item.external_id:
                raise HTTPException(
                    status_code=400,
                    detail=f"Library item '{item_id}' has no external id to exclude",
                )
            exclusion = services.exclusions.add(
                item.external_id,
                item.media_type,
                title=item.title,
                year=item.year,
                reason="Removed from library",
            )
        services.library.remove(item_id)
        return {
            "removed": True,
            "exclusion": exclusion.model_dump(mode="json") if exclusion else None,
        }

    @api.get("/library/{item_id}/cutoff")
    async def get_cutoff(item_id: str) -> dict[str, Any]:
        item = services.library.get(item_id)
        if item is None:
            raise HTTPException(status_code=404, detail=f"Library item '{item_id}' not found")
        profile = (
            resolve_profile(services.library, item.quality_profile_id)
            if item.quality_profile_id
            else None
        )
        cutoff = profile.cutoff if profile else None
        return {
            "item_id": item.id,
            "quality": item.quality,
            "quality_rank": rank(item.quality),
            "cutoff": cutoff,
            "cutoff_rank": rank(cutoff) if cutoff else None,
            "cutoff_met": is_cutoff_met(item, services.library),
        }

    @api.get("/quality/rank")
    async def get_rank(label: str) -> RankResponse:
        return RankResponse(
            label=label,
            rank=rank(label),
            resolution_tier=resolution_tier(label),
            source_tier=source_tier(label),
        )

    @api.get("/filters")
    async def get_filters() -> list[CustomFilter]:
        return services.filters.all()

    @api.post("/filters", status_code=201)
    async def add_filter(body: FilterCreate) -> CustomFilter:
        try:
            return services.filters.add(body.name, body.conditions, filter_id=body.id)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e

    @api.put("/filters/{filter_id}")
    async def update_filter(filter_id: str, body: FilterUpdate) -> CustomFilter:
        try:
            return services.filters.modify(filter_id, name=body.name, conditions=body.conditions)
        except KeyError as e:
            raise HTTPException(status_code=404, detail=f"Filter '{filter_id}' not found") from e

    @api.delete("/filters/{filter_id}")
    async def delete_filter(filter_id: str) -> dict[str, bool]:
        if not services.filters.remove(filter_id):
            raise HTTPException(status_code=404, detail=f"Filter '{filter_id}' not found")
        return {"removed": True}

    # --- Notifications ---

    @api.get("/notifications")
    async def get_notifications() -> list[NotificationItem]:
        return services.notifier.notifications

    @api.get("/notifications/unread")
    async def get_unread_count() -> dict[str, int]:
        return {"unread": services.notifier.unread_count}

    @api.post("/notifications/refresh")
    async def refresh_notifications() -> list[NotificationItem]:
        """Poll the activity log now and return the new notifications."""
        return await services.notifier.poll()

    @api.post("/notifications/read-all")
    async def mark_all_read() -> dict[str, int]:
        return {"marked": services.notifier.mark_all_read()}

    @api.post("/notifications/{notification_id}/read")
    async def mark_read(notification_id: int) -> dict[str, bool]:
        if not services.notifier.mark_read(notification_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"read": True}

    @api.delete("/notifications/{notification_id}")
    async def delete_notification(notification_id: int) -> dict[str, bool]:
        if not services.notifier.remove(notification_id):
            raise HTTPException(status_code=404, detail="Notification not found")
        return {"removed": True}

    @api.delete("/notifications")
    async def clear_notifications() -> dict[str, bool]:
        services.notifier.clear_all()
        return {"cleared": True}

    app.include_router(api)

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,  # noqa: ARG001
        exc: Exception,  # noqa: ARG001
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled exception in API handler")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


def run_server(
    host: str = "0.0.0.0",
    port: int = 8080,
    config: Config | None = None,
    log_level: str = "info",
    scheduler_enabled: bool = True,
) -> None:
    """Run the API server with the search queue and optional scheduler.

    Args:
        host: Host to bind to.
        port: Port to listen on.
        config: Application configuration.
        log_level: Logging level for uvicorn.
        scheduler_enabled: Whether to start the scheduler.
    """
    if config is None:
        config = Config.load()

    services = build_services(config)
    scheduler_manager: SchedulerManager | None = None
    if scheduler_enabled and config.scheduler.enabled:
        scheduler_manager = SchedulerManager(
            config,
            services.pipeline,
            services.lists,
            services.notifier,
            activity=services.activity,
        )
        logger.info("Scheduler configured and will start with server")

    app = create_app(config, services=services, scheduler=scheduler_manager)

    async def run_with_background() -> None:
        """Run uvicorn with search queue and scheduler lifecycle management."""
        server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level=log_level))

        await services.search.start()
        if scheduler_manager is not None:
            try:
                scheduler_manager.start()
            except Exception as e:
                logger.error("Failed to start scheduler: %s", e)

        try:
            await server.serve()
        finally:
            if scheduler_manager is not None:
                scheduler_manager.stop()
            await services.search.stop()

    asyncio.run(run_with_background())
