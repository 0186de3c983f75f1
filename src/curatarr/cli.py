"""Command-line interface for curatarr."""

from __future__ import annotations

import asyncio
import json
import os
from enum import Enum
from typing import TYPE_CHECKING, Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from curatarr.config import Config, ConfigurationError
from curatarr.filters import StatusFilter, apply, describe
from curatarr.log import configure_logging
from curatarr.models.common import MediaType
from curatarr.models.filters import CustomFilter, FilterConditions
from curatarr.models.lists import ImportListConfig, MinimumAvailability, MonitorPolicy
from curatarr.providers import ProviderError, list_types
from curatarr.quality import rank, resolution_tier, source_tier
from curatarr.services import Services, build_services
from curatarr.sync import ImportListNotFoundError, SyncInProgressError, SyncResult

if TYPE_CHECKING:
    from curatarr.models.activity import NotificationItem
    from curatarr.models.lists import PreviewItem

app = typer.Typer(
    name="curatarr",
    help="Sync external reference lists into a media library and follow its activity.",
    no_args_is_help=True,
)
quality_app = typer.Typer(help="Inspect quality label ranking.")
app.add_typer(quality_app, name="quality")

lists_app = typer.Typer(help="Manage and sync import lists.")
app.add_typer(lists_app, name="lists")

exclusions_app = typer.Typer(help="Manage items that lists must never add.")
app.add_typer(exclusions_app, name="exclusions")

filters_app = typer.Typer(help="Manage and apply custom library filters.")
app.add_typer(filters_app, name="filters")

notifications_app = typer.Typer(help="Show and manage activity notifications.")
app.add_typer(notifications_app, name="notifications")

console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""

    JSON = "json"
    TABLE = "table"
    SIMPLE = "simple"


def _resolve_log_level(cli_level: str | None) -> str:
    """Pick the log level: CLI flag, then environment, then config file, then info."""
    if cli_level:
        return cli_level
    env_level = os.environ.get("CURATARR_LOG_LEVEL")
    if env_level:
        return env_level
    try:
        return Config.load().logging.level
    except ConfigurationError:
        return "info"


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-l",
            help="Logging level (debug, info, warning, error, critical).",
        ),
    ] = None,
) -> None:
    """Sync external reference lists into a media library."""
    level = _resolve_log_level(log_level)
    try:
        configure_logging(level.lower())
    except ValueError as e:
        error_console.print(f"[red]Invalid log level:[/red] {e}")
        raise typer.Exit(1) from e
    ctx.obj = level.lower()


def get_services() -> Services:
    """Load configuration and wire the stores, exiting 2 on bad configuration."""
    try:
        config = Config.load()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2) from e
    return build_services(config)


def _parse_media_type(value: str | None) -> MediaType | None:
    if value is None:
        return None
    try:
        return MediaType.parse(value)
    except ValueError:
        error_console.print(f"[red]Invalid media type:[/red] {value}. Must be: movie or series")
        raise typer.Exit(2) from None


def _print_json(data: object) -> None:
    console.print(json.dumps(data, indent=2, default=str))


@app.command()
def version() -> None:
    """Show version information."""
    from curatarr import __version__

    console.print(f"curatarr version {__version__}")


# --- quality ---


@quality_app.command("rank")
def quality_rank(
    labels: Annotated[list[str], typer.Argument(help="Quality labels, e.g. 'Bluray-1080p'")],
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show the rank of quality labels, highest first."""
    ranked = sorted(labels, key=rank, reverse=True)

    if output_format == OutputFormat.JSON:
        _print_json(
            [
                {
                    "label": label,
                    "rank": rank(label),
                    "resolution_tier": resolution_tier(label),
                    "source_tier": source_tier(label),
                }
                for label in ranked
            ]
        )
    elif output_format == OutputFormat.SIMPLE:
        for label in ranked:
            console.print(f"{label}: {rank(label)}")
    else:
        table = Table(title="Quality Ranking")
        table.add_column("Label", style="cyan")
        table.add_column("Resolution", style="yellow")
        table.add_column("Source", style="green")
        table.add_column("Rank", style="bold")
        for label in ranked:
            table.add_row(
                label, str(resolution_tier(label)), str(source_tier(label)), str(rank(label))
            )
        console.print(table)


# --- lists ---


@lists_app.command("list")
def lists_list(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """List configured import lists."""
    services = get_services()
    configs = services.lists.all()

    if not configs:
        console.print("[dim]No import lists configured[/dim]")
        raise typer.Exit(0)

    if output_format == OutputFormat.JSON:
        _print_json([cfg.model_dump(mode="json") for cfg in configs])
    elif output_format == OutputFormat.SIMPLE:
        for cfg in configs:
            console.print(f"{cfg.id}: {cfg.name} ({cfg.provider_type})")
    else:
        table = Table(title="Import Lists")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Provider", style="yellow")
        table.add_column("Type", style="blue")
        table.add_column("Enabled", style="green")
        table.add_column("Auto Add")
        table.add_column("Last Sync", style="magenta")
        for cfg in configs:
            table.add_row(
                cfg.id,
                cfg.name,
                f"{cfg.provider_type}:{cfg.list_id}" if cfg.list_id else cfg.provider_type,
                cfg.media_type.value,
                "Yes" if cfg.enabled else "No",
                "Yes" if cfg.auto_add else "No",
                cfg.last_sync.strftime("%Y-%m-%d %H:%M") if cfg.last_sync else "never",
            )
        console.print(table)


@lists_app.command("add")
def lists_add(
    list_id: Annotated[str, typer.Argument(help="Unique list id")],
    provider: Annotated[
        str, typer.Option("--provider", "-p", help="Provider type: tmdb, trakt, stevenlu, static")
    ],
    name: Annotated[str | None, typer.Option("--name", "-n", help="Display name")] = None,
    media_type: Annotated[
        str, typer.Option("--media-type", "-m", help="movie or series")
    ] = "movie",
    source: Annotated[
        str | None,
        typer.Option("--list", help="Provider list id, e.g. 'popular' or a TMDB list number"),
    ] = None,
    url: Annotated[str | None, typer.Option("--url", help="Source URL or file path")] = None,
    interval: Annotated[
        int, typer.Option("--interval", "-i", min=1, help="Refresh interval in minutes")
    ] = 720,
    auto_add: Annotated[
        bool, typer.Option("--auto-add/--no-auto-add", help="Add new items on sync")
    ] = True,
    search_on_add: Annotated[
        bool, typer.Option("--search/--no-search", help="Trigger a search for added items")
    ] = False,
    profile: Annotated[
        str | None, typer.Option("--profile", help="Quality profile id for added items")
    ] = None,
    root_folder: Annotated[
        str | None, typer.Option("--root-folder", help="Root folder for added items")
    ] = None,
    monitor: Annotated[
        MonitorPolicy, typer.Option("--monitor", help="Monitor policy for added series")
    ] = MonitorPolicy.ALL,
    minimum_availability: Annotated[
        MinimumAvailability,
        typer.Option("--minimum-availability", help="Minimum availability for added movies"),
    ] = MinimumAvailability.RELEASED,
    enabled: Annotated[
        bool, typer.Option("--enabled/--disabled", help="Whether the list is synced")
    ] = True,
) -> None:
    """Add an import list.

    Examples:
        curatarr lists add tmdb-popular -p tmdb --list popular
        curatarr lists add trending-tv -p trakt -m series --list trending
        curatarr lists add picks -p static --url ~/picks.json --no-auto-add
    """
    services = get_services()
    parsed_type = _parse_media_type(media_type)
    assert parsed_type is not None

    if provider.lower() not in services.providers.types():
        error_console.print(
            f"[red]Unknown provider:[/red] {provider}. "
            f"Available: {', '.join(services.providers.types())}"
        )
        raise typer.Exit(2)

    config = ImportListConfig(
        id=list_id,
        name=name or list_id,
        provider_type=provider,
        media_type=parsed_type,
        enabled=enabled,
        auto_add=auto_add,
        search_on_add=search_on_add,
        quality_profile_id=profile,
        root_folder=root_folder,
        monitor=monitor,
        minimum_availability=minimum_availability,
        list_id=source,
        url=url,
        refresh_interval=interval,
    )
    try:
        services.lists.add(config)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(2) from e

    console.print(f"[green]Import list '{config.name}' added[/green]")
    console.print("[dim]Note: Restart 'curatarr serve' to schedule new lists[/dim]")


def _modify_list(services: Services, list_id: str, changes: dict[str, object]) -> ImportListConfig:
    try:
        return services.lists.modify(list_id, changes)
    except KeyError:
        error_console.print(f"[red]Import list not found:[/red] {list_id}")
        raise typer.Exit(1) from None
    except ValidationError as e:
        error_console.print(f"[red]Invalid value:[/red] {e}")
        raise typer.Exit(2) from e


@lists_app.command("update")
def lists_update(
    list_id: Annotated[str, typer.Argument(help="Import list id to change")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="Display name")] = None,
    source: Annotated[
        str | None, typer.Option("--list", help="Provider list id")
    ] = None,
    url: Annotated[str | None, typer.Option("--url", help="Source URL or file path")] = None,
    interval: Annotated[
        int | None, typer.Option("--interval", "-i", min=1, help="Refresh interval in minutes")
    ] = None,
    auto_add: Annotated[
        bool | None, typer.Option("--auto-add/--no-auto-add", help="Add new items on sync")
    ] = None,
    search_on_add: Annotated[
        bool | None,
        typer.Option("--search/--no-search", help="Trigger a search for added items"),
    ] = None,
    profile: Annotated[
        str | None, typer.Option("--profile", help="Quality profile id for added items")
    ] = None,
    root_folder: Annotated[
        str | None, typer.Option("--root-folder", help="Root folder for added items")
    ] = None,
    monitor: Annotated[
        MonitorPolicy | None, typer.Option("--monitor", help="Monitor policy for added series")
    ] = None,
    minimum_availability: Annotated[
        MinimumAvailability | None,
        typer.Option("--minimum-availability", help="Minimum availability for added movies"),
    ] = None,
    enabled: Annotated[
        bool | None, typer.Option("--enabled/--disabled", help="Whether the list is synced")
    ] = None,
) -> None:
    """Change settings of an import list. Options not given are left as they are.

    Examples:
        curatarr lists update tmdb-popular --interval 360
        curatarr lists update picks --no-auto-add --profile hd
    """
    changes = {
        key: value
        for key, value in {
            "name": name,
            "list_id": source,
            "url": url,
            "refresh_interval": interval,
            "auto_add": auto_add,
            "search_on_add": search_on_add,
            "quality_profile_id": profile,
            "root_folder": root_folder,
            "monitor": monitor,
            "minimum_availability": minimum_availability,
            "enabled": enabled,
        }.items()
        if value is not None
    }
    if not changes:
        error_console.print("[yellow]Nothing to update:[/yellow] pass at least one option")
        raise typer.Exit(2)

    services = get_services()
    config = _modify_list(services, list_id, changes)
    console.print(f"[green]Import list '{config.name}' updated[/green]")
    console.print("[dim]Note: Restart 'curatarr serve' to apply schedule changes[/dim]")


@lists_app.command("enable")
def lists_enable(
    list_id: Annotated[str, typer.Argument(help="Import list id to enable")],
) -> None:
    """Enable scheduled syncs of an import list."""
    config = _modify_list(get_services(), list_id, {"enabled": True})
    console.print(f"[green]Import list '{config.name}' enabled[/green]")


@lists_app.command("disable")
def lists_disable(
    list_id: Annotated[str, typer.Argument(help="Import list id to disable")],
) -> None:
    """Stop scheduled syncs of an import list. Manual syncs still work."""
    config = _modify_list(get_services(), list_id, {"enabled": False})
    console.print(f"[yellow]Import list '{config.name}' disabled[/yellow]")


@lists_app.command("remove")
def lists_remove(
    list_id: Annotated[str, typer.Argument(help="Import list id to remove")],
) -> None:
    """Remove an import list."""
    services = get_services()
    if services.lists.remove(list_id):
        console.print(f"[green]Import list '{list_id}' removed[/green]")
    else:
        error_console.print(f"[red]Import list not found:[/red] {list_id}")
        raise typer.Exit(1)


def _print_sync_result(result: SyncResult, output_format: OutputFormat) -> None:
    if output_format == OutputFormat.JSON:
        _print_json(result.to_dict())
        return
    if output_format == OutputFormat.SIMPLE:
        console.print(
            f"{result.list_id}: {result.state.value} "
            f"added={result.added} existing={result.existing} failed={result.failed}"
        )
        return

    style = "green" if result.failed == 0 else "yellow"
    if result.state.value == "failed":
        style = "red"
    console.print(f"[bold]Result:[/bold] [{style}]{result.state.value}[/{style}]")
    console.print(f"  Added: {result.added}")
    console.print(f"  Already in library: {result.existing}")
    console.print(f"  Failed: {result.failed}")
    if result.pending:
        console.print(f"  Pending (auto-add disabled): {len(result.pending)}")
    for failure in result.failures[:5]:
        error_console.print(f"    [red]- {failure}[/red]")
    if len(result.failures) > 5:
        error_console.print(f"    [dim]... and {len(result.failures) - 5} more[/dim]")


@lists_app.command("sync")
def lists_sync(
    list_id: Annotated[str, typer.Argument(help="Import list id to sync")],
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Sync an import list into the library now."""
    services = get_services()

    async def run() -> SyncResult:
        await services.search.start()
        try:
            if output_format != OutputFormat.TABLE:
                result = await services.pipeline.sync(list_id)
            else:
                with Progress(
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    TaskProgressColumn(),
                    console=console,
                    transient=True,
                ) as progress:
                    task = progress.add_task(f"Syncing {list_id}", total=None)

                    def on_progress(done: int, total: int) -> None:
                        progress.update(task, completed=done, total=total)

                    result = await services.pipeline.sync(list_id, on_progress)
            await services.search.join()
            return result
        finally:
            await services.search.stop()

    try:
        result = asyncio.run(run())
    except ImportListNotFoundError as e:
        error_console.print(f"[red]Import list not found:[/red] {e.list_id}")
        raise typer.Exit(1) from e
    except SyncInProgressError as e:
        error_console.print(f"[yellow]Sync already in progress:[/yellow] {e.list_id}")
        raise typer.Exit(1) from e

    _print_sync_result(result, output_format)
    if result.state.value == "failed":
        raise typer.Exit(1)


@lists_app.command("sync-due")
def lists_sync_due(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.SIMPLE,
) -> None:
    """Sync every enabled list whose refresh interval has elapsed.

    Meant for running from cron when 'curatarr serve' runs without its scheduler.
    """
    services = get_services()

    async def run() -> dict[str, SyncResult]:
        await services.search.start()
        try:
            results = await services.pipeline.sync_due()
            await services.search.join()
            return results
        finally:
            await services.search.stop()

    results = asyncio.run(run())
    if not results:
        console.print("[dim]No import lists are due[/dim]")
        raise typer.Exit(0)

    if output_format == OutputFormat.JSON:
        _print_json([result.to_dict() for result in results.values()])
    else:
        for result in results.values():
            if output_format == OutputFormat.TABLE:
                console.print(f"[bold cyan]{result.list_id}[/bold cyan]")
            _print_sync_result(result, output_format)
    if any(result.state.value == "failed" for result in results.values()):
        raise typer.Exit(1)


def _preview_status(item: PreviewItem) -> str:
    if item.excluded:
        return "[red]excluded[/red]"
    if item.in_library:
        return "[dim]in library[/dim]"
    if item.external_id is None:
        return "[yellow]unresolved[/yellow]"
    return "[green]new[/green]"


@lists_app.command("preview")
def lists_preview(
    list_id: Annotated[str, typer.Argument(help="Import list id to preview")],
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show what a sync would do without changing anything."""
    services = get_services()
    try:
        items = asyncio.run(services.pipeline.preview(list_id))
    except ImportListNotFoundError as e:
        error_console.print(f"[red]Import list not found:[/red] {e.list_id}")
        raise typer.Exit(1) from e
    except ProviderError as e:
        error_console.print(f"[red]Error fetching list:[/red] {e}")
        raise typer.Exit(1) from e

    if output_format == OutputFormat.JSON:
        _print_json([item.model_dump(mode="json") for item in items])
    elif output_format == OutputFormat.SIMPLE:
        for item in items:
            flag = "excluded" if item.excluded else "in-library" if item.in_library else "new"
            console.print(f"{item.title} ({item.year or '?'}): {flag}")
    else:
        table = Table(title=f"Preview of {list_id}")
        table.add_column("Title", style="cyan")
        table.add_column("Year", style="blue")
        table.add_column("External ID", style="dim")
        table.add_column("Status")
        for item in items:
            table.add_row(
                item.title, str(item.year or ""), item.external_id or "", _preview_status(item)
            )
        console.print(table)
        new_count = len([i for i in items if not i.in_library and not i.excluded])
        console.print(f"[bold]{new_count}[/bold] of {len(items)} item(s) would be added")


@lists_app.command("types")
def lists_types(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show the available provider types and their presets."""
    catalog = list_types()

    if output_format == OutputFormat.JSON:
        _print_json(
            {str(media): [t.model_dump() for t in types] for media, types in catalog.items()}
        )
        return

    for media, types in catalog.items():
        table = Table(title=f"{media.value.title()} Lists")
        table.add_column("Type", style="cyan")
        table.add_column("Name", style="bold")
        table.add_column("Presets", style="dim")
        for list_type in types:
            table.add_row(
                list_type.type,
                list_type.name,
                ", ".join(p.list_id for p in list_type.presets),
            )
        console.print(table)


@lists_app.command("history")
def lists_history(
    list_id: Annotated[str | None, typer.Argument(help="Only show this list")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Maximum records to show")] = 20,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show recent sync runs."""
    services = get_services()
    history = services.state.get_sync_history(list_id, limit)

    if not history:
        console.print("[dim]No history found[/dim]")
        raise typer.Exit(0)

    if output_format == OutputFormat.JSON:
        _print_json([record.to_dict() for record in history])
        return

    table = Table(title="Sync History")
    table.add_column("List", style="cyan")
    table.add_column("Started", style="blue")
    table.add_column("State")
    table.add_column("Added", style="green")
    table.add_column("Existing", style="dim")
    table.add_column("Failed", style="red")
    for record in history:
        state_style = "red" if record.state == "failed" else "green"
        table.add_row(
            record.list_id,
            record.started_at.strftime("%Y-%m-%d %H:%M"),
            f"[{state_style}]{record.state}[/{state_style}]",
            str(record.added),
            str(record.existing),
            str(record.failed),
        )
    console.print(table)


# --- exclusions ---


@exclusions_app.command("list")
def exclusions_list(
    media_type: Annotated[
        str | None, typer.Option("--media-type", "-m", help="Only this media type")
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """List exclusions, newest first."""
    services = get_services()
    entries = services.exclusions.all(_parse_media_type(media_type))

    if not entries:
        console.print("[dim]No exclusions[/dim]")
        raise typer.Exit(0)

    if output_format == OutputFormat.JSON:
        _print_json([e.model_dump(mode="json") for e in entries])
    elif output_format == OutputFormat.SIMPLE:
        for entry in entries:
            console.print(f"{entry.id}: {entry.media_type.value}/{entry.external_id} {entry.title}")
    else:
        table = Table(title="Exclusions")
        table.add_column("ID", style="dim")
        table.add_column("Type", style="blue")
        table.add_column("External ID", style="yellow")
        table.add_column("Title", style="cyan")
        table.add_column("Reason")
        for entry in entries:
            title = f"{entry.title} ({entry.year})" if entry.year else entry.title
            table.add_row(
                entry.id, entry.media_type.value, entry.external_id, title, entry.reason or ""
            )
        console.print(table)


@exclusions_app.command("add")
def exclusions_add(
    external_id: Annotated[str, typer.Argument(help="External (TMDB) id to exclude")],
    media_type: Annotated[
        str, typer.Option("--media-type", "-m", help="movie or series")
    ] = "movie",
    title: Annotated[str, typer.Option("--title", "-t", help="Title, for display")] = "",
    year: Annotated[int | None, typer.Option("--year", "-y", help="Year, for display")] = None,
    reason: Annotated[str | None, typer.Option("--reason", "-r", help="Why it is excluded")] = None,
) -> None:
    """Exclude an item so import lists never add it."""
    services = get_services()
    parsed_type = _parse_media_type(media_type)
    assert parsed_type is not None
    entry = services.exclusions.add(
        external_id, parsed_type, title=title, year=year, reason=reason
    )
    console.print(f"[green]Excluded {parsed_type.value} {external_id}[/green] (id {entry.id})")


@exclusions_app.command("remove")
def exclusions_remove(
    exclusion_id: Annotated[
        str, typer.Argument(help="Exclusion id, or external id with --external")
    ],
    external: Annotated[
        bool, typer.Option("--external", "-e", help="Treat the argument as an external id")
    ] = False,
    media_type: Annotated[
        str, typer.Option("--media-type", "-m", help="Media type of the external id")
    ] = "movie",
) -> None:
    """Remove an exclusion so import lists may add the item again.

    Examples:
        curatarr exclusions remove 3f2a9c1b7d4e
        curatarr exclusions remove 949 --external
    """
    services = get_services()
    if external:
        parsed_type = _parse_media_type(media_type)
        assert parsed_type is not None
        if services.exclusions.remove_by_external_id(exclusion_id, parsed_type):
            console.print(f"[green]Exclusion of {parsed_type.value} {exclusion_id} removed[/green]")
        else:
            error_console.print(
                f"[red]No exclusion for {parsed_type.value}:[/red] {exclusion_id}"
            )
            raise typer.Exit(1)
        return

    if services.exclusions.remove(exclusion_id):
        console.print(f"[green]Exclusion '{exclusion_id}' removed[/green]")
    else:
        error_console.print(f"[red]Exclusion not found:[/red] {exclusion_id}")
        raise typer.Exit(1)


@exclusions_app.command("clear")
def exclusions_clear(
    media_type: Annotated[
        str | None, typer.Option("--media-type", "-m", help="Only clear this media type")
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Remove all exclusions, or all of one media type."""
    services = get_services()
    parsed_type = _parse_media_type(media_type)
    scope = f"{parsed_type.value} exclusions" if parsed_type else "all exclusions"
    if not yes:
        typer.confirm(f"Remove {scope}?", abort=True)
    removed = services.exclusions.clear(parsed_type)
    console.print(f"[green]Removed {removed} exclusion(s)[/green]")


# --- filters ---


@filters_app.command("list")
def filters_list(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """List custom filters."""
    services = get_services()
    custom = services.filters.all()

    if not custom:
        console.print("[dim]No custom filters[/dim]")
        raise typer.Exit(0)

    if output_format == OutputFormat.JSON:
        _print_json([f.model_dump(mode="json") for f in custom])
        return

    table = Table(title="Custom Filters")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Conditions")
    for item in custom:
        table.add_row(item.id, item.name, ", ".join(describe(item.conditions)) or "-")
    console.print(table)


@filters_app.command("add")
def filters_add(
    name: Annotated[str, typer.Argument(help="Filter name")],
    monitored: Annotated[
        bool | None, typer.Option("--monitored/--unmonitored", help="Monitored state")
    ] = None,
    has_file: Annotated[
        bool | None, typer.Option("--has-file/--missing-file", help="Downloaded state")
    ] = None,
    cutoff_met: Annotated[
        bool | None, typer.Option("--cutoff-met/--cutoff-unmet", help="Quality cutoff state")
    ] = None,
    profile: Annotated[str | None, typer.Option("--profile", help="Quality profile id")] = None,
    quality: Annotated[
        str | None, typer.Option("--quality", "-q", help="Quality label or resolution, e.g. 4k")
    ] = None,
    min_year: Annotated[int | None, typer.Option("--from", help="Earliest year")] = None,
    max_year: Annotated[int | None, typer.Option("--to", help="Latest year")] = None,
) -> None:
    """Save a custom filter.

    Examples:
        curatarr filters add "4K upgrades" --quality 2160p --cutoff-unmet
        curatarr filters add "Old missing" --missing-file --to 1999
    """
    services = get_services()
    conditions = FilterConditions(
        monitored=monitored,
        has_file=has_file,
        cutoff_met=cutoff_met,
        quality_profile_id=profile,
        quality=quality,
        min_year=min_year,
        max_year=max_year,
    )
    custom = services.filters.add(name, conditions)
    console.print(f"[green]Filter '{custom.name}' saved[/green] (id {custom.id})")


@filters_app.command("update")
def filters_update(
    filter_id: Annotated[str, typer.Argument(help="Filter id to change")],
    name: Annotated[str | None, typer.Option("--name", "-n", help="New name")] = None,
    reset: Annotated[
        bool, typer.Option("--reset", help="Clear all conditions before applying the options")
    ] = False,
    monitored: Annotated[
        bool | None, typer.Option("--monitored/--unmonitored", help="Monitored state")
    ] = None,
    has_file: Annotated[
        bool | None, typer.Option("--has-file/--missing-file", help="Downloaded state")
    ] = None,
    cutoff_met: Annotated[
        bool | None, typer.Option("--cutoff-met/--cutoff-unmet", help="Quality cutoff state")
    ] = None,
    profile: Annotated[str | None, typer.Option("--profile", help="Quality profile id")] = None,
    quality: Annotated[
        str | None, typer.Option("--quality", "-q", help="Quality label or resolution, e.g. 4k")
    ] = None,
    min_year: Annotated[int | None, typer.Option("--from", help="Earliest year")] = None,
    max_year: Annotated[int | None, typer.Option("--to", help="Latest year")] = None,
) -> None:
    """Rename a custom filter or change its conditions.

    Conditions not given keep their value unless --reset is passed.

    Examples:
        curatarr filters update custom_1a2b3c --name "4K missing" --missing-file
        curatarr filters update custom_1a2b3c --reset --quality 1080p
    """
    services = get_services()
    current = services.filters.get(filter_id)
    if current is None:
        error_console.print(f"[red]Filter not found:[/red] {filter_id}")
        raise typer.Exit(1)

    given = {
        key: value
        for key, value in {
            "monitored": monitored,
            "has_file": has_file,
            "cutoff_met": cutoff_met,
            "quality_profile_id": profile,
            "quality": quality,
            "min_year": min_year,
            "max_year": max_year,
        }.items()
        if value is not None
    }
    conditions: FilterConditions | None = None
    if reset or given:
        base = {} if reset else current.conditions.model_dump()
        conditions = FilterConditions.model_validate({**base, **given})

    if name is None and conditions is None:
        error_console.print("[yellow]Nothing to update:[/yellow] pass at least one option")
        raise typer.Exit(2)

    custom = services.filters.modify(filter_id, name=name, conditions=conditions)
    console.print(f"[green]Filter '{custom.name}' updated[/green]")
    for line in describe(custom.conditions):
        console.print(f"  {line}")


@filters_app.command("remove")
def filters_remove(
    filter_id: Annotated[str, typer.Argument(help="Filter id to remove")],
) -> None:
    """Remove a custom filter."""
    services = get_services()
    if services.filters.remove(filter_id):
        console.print(f"[green]Filter '{filter_id}' removed[/green]")
    else:
        error_console.print(f"[red]Filter not found:[/red] {filter_id}")
        raise typer.Exit(1)


@filters_app.command("apply")
def filters_apply(
    selection: Annotated[
        str, typer.Argument(help="Status view (monitored, missing, cutoff_unmet, ...) or filter id")
    ] = "all",
    search: Annotated[str | None, typer.Option("--search", "-s", help="Title search")] = None,
    media_type: Annotated[
        str | None, typer.Option("--media-type", "-m", help="Only this media type")
    ] = None,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """List library items matching a status view or custom filter."""
    services = get_services()

    chosen: StatusFilter | CustomFilter
    try:
        chosen = StatusFilter(selection.lower())
    except ValueError:
        custom = services.filters.get(selection)
        if custom is None:
            error_console.print(f"[red]Unknown filter:[/red] {selection}")
            raise typer.Exit(1) from None
        chosen = custom

    items = apply(
        services.library.list_all(_parse_media_type(media_type)),
        chosen,
        services.library,
        search,
    )

    if output_format == OutputFormat.JSON:
        _print_json([item.model_dump(mode="json") for item in items])
    elif output_format == OutputFormat.SIMPLE:
        for item in items:
            console.print(f"{item.title} ({item.year or '?'})")
    else:
        table = Table(title=f"Library: {selection}")
        table.add_column("Title", style="cyan")
        table.add_column("Year", style="blue")
        table.add_column("Type", style="dim")
        table.add_column("Monitored")
        table.add_column("Quality", style="yellow")
        table.add_column("Files")
        for item in items:
            table.add_row(
                item.title,
                str(item.year or ""),
                item.media_type.value,
                "Yes" if item.monitored else "No",
                item.quality or "-",
                f"{item.downloaded_count}/{item.expected_count}",
            )
        console.print(table)
        console.print(f"[dim]{len(items)} item(s)[/dim]")


# --- notifications ---


def _print_notifications(items: list[NotificationItem], output_format: OutputFormat) -> None:
    if output_format == OutputFormat.JSON:
        _print_json([n.model_dump(mode="json") for n in items])
        return
    if output_format == OutputFormat.SIMPLE:
        for n in items:
            console.print(f"{n.id} {n.severity.value.upper()} {n.title}: {n.message}")
        return

    table = Table(title="Notifications")
    table.add_column("ID", style="dim")
    table.add_column("When", style="blue")
    table.add_column("Title", style="cyan")
    table.add_column("Message")
    severity_styles = {"success": "green", "warning": "yellow", "error": "red"}
    for n in items:
        style = severity_styles.get(n.severity.value, "white")
        title = n.title if n.read else f"[bold]{n.title}[/bold]"
        table.add_row(
            str(n.id),
            n.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"[{style}]{title}[/{style}]",
            n.message,
        )
    console.print(table)


@notifications_app.command("show")
def notifications_show(
    unread: Annotated[bool, typer.Option("--unread", "-u", help="Only unread")] = False,
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Show the notification feed, newest first."""
    services = get_services()
    items = services.notifier.notifications
    if unread:
        items = [n for n in items if not n.read]

    if not items:
        console.print("[dim]No notifications[/dim]")
        raise typer.Exit(0)

    _print_notifications(items, output_format)
    console.print(f"[dim]{services.notifier.unread_count} unread[/dim]")


@notifications_app.command("poll")
def notifications_poll(
    output_format: Annotated[
        OutputFormat, typer.Option("--format", "-f", help="Output format")
    ] = OutputFormat.TABLE,
) -> None:
    """Poll the activity log once and show what is new."""
    services = get_services()
    emitted = asyncio.run(services.notifier.poll())
    if not emitted:
        console.print("[dim]No new activity[/dim]")
        raise typer.Exit(0)
    _print_notifications(emitted, output_format)


@notifications_app.command("read")
def notifications_read(
    notification_id: Annotated[
        int | None, typer.Argument(help="Notification id; omit to mark all read")
    ] = None,
) -> None:
    """Mark one or all notifications as read."""
    services = get_services()
    if notification_id is None:
        count = services.notifier.mark_all_read()
        console.print(f"[green]Marked {count} notification(s) read[/green]")
        return
    if not services.notifier.mark_read(notification_id):
        error_console.print(f"[red]Notification not found:[/red] {notification_id}")
        raise typer.Exit(1)
    console.print(f"[green]Notification {notification_id} marked read[/green]")


@notifications_app.command("clear")
def notifications_clear(
    notification_id: Annotated[
        int | None, typer.Argument(help="Notification id; omit to clear the feed")
    ] = None,
) -> None:
    """Remove one notification, or clear the feed and reset the activity cursor."""
    services = get_services()
    if notification_id is None:
        services.notifier.clear_all()
        console.print("[green]Notifications cleared[/green]")
        return
    if not services.notifier.remove(notification_id):
        error_console.print(f"[red]Notification not found:[/red] {notification_id}")
        raise typer.Exit(1)
    console.print(f"[green]Notification {notification_id} removed[/green]")


# --- server ---


@app.command()
def serve(
    ctx: typer.Context,
    host: Annotated[
        str | None,
        typer.Option("--host", "-h", help="Host to bind the API server to."),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port to listen on."),
    ] = None,
    scheduler: Annotated[
        bool,
        typer.Option(
            "--scheduler/--no-scheduler",
            help="Enable or disable scheduled list syncs and notification polling.",
        ),
    ] = True,
) -> None:
    """Start the API server.

    The scheduler syncs every enabled import list on its refresh interval
    and polls the activity log for notifications. Disable it with
    --no-scheduler to only serve the API.

    Example:
        curatarr serve --port 8080
        curatarr -l debug serve --no-scheduler
    """
    from curatarr.server import run_server

    try:
        config = Config.load()
    except ConfigurationError as e:
        error_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(2) from e

    server_host = host or config.server.host
    server_port = port or config.server.port
    scheduler_enabled = scheduler and config.scheduler.enabled

    console.print("[bold green]Starting curatarr server[/bold green]")
    console.print(f"  Host: {server_host}")
    console.print(f"  Port: {server_port}")
    console.print(f"  TMDB configured: {'Yes' if config.tmdb else 'No'}")
    console.print(f"  API key required: {'Yes' if config.server.api_key else 'No'}")
    console.print(f"  Scheduler: {'Enabled' if scheduler_enabled else 'Disabled'}")
    console.print()
    console.print(f"  Status: http://{server_host}:{server_port}/status")
    console.print()

    run_server(
        host=server_host,
        port=server_port,
        config=config,
        log_level=ctx.obj or "info",
        scheduler_enabled=scheduler_enabled,
    )


if __name__ == "__main__":
    app()
