"""Command-line interface for the TV tracker."""

import asyncio
import logging
import sys
import time

import click

from . import __version__
from .config import get_settings
from .constants import DEFAULT_FEED_LIMIT, WatchFilter
from .errors import TrackerError
from .models import Show, make_show_id
from .watchlist_service import WatchlistService, build_service

logger = logging.getLogger(__name__)

LOG_LEVEL_CHOICE = click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False)


def setup_logging(level: str):
    """Configure logging for the application."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


def _service(ctx: click.Context) -> WatchlistService:
    """Build the service once per invocation, failing with a readable message."""
    if ctx.obj.get("service") is None:
        try:
            ctx.obj["service"] = build_service(get_settings())
        except TrackerError as e:
            raise click.ClickException(str(e))
    return ctx.obj["service"]


def _format_progress(show: Show) -> str:
    marker = "✓" if show.watched else " "
    return f"[{marker}] {show.id:<16} {show.title} ({show.watched_episodes_count}/{show.total_episodes})"


def _format_next(show: Show) -> str:
    nxt = show.next_episode
    if nxt is None:
        return "caught up"
    return f"S{nxt.season or 0:02d}E{nxt.episode or 0:02d} {nxt.title} (aired {nxt.air_date})"


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", type=LOG_LEVEL_CHOICE, default=None, help="Logging level (defaults to config)")
@click.pass_context
def main(ctx: click.Context, log_level: str):
    """Track which episodes of your shows you have watched."""
    ctx.ensure_object(dict)
    settings = get_settings()
    setup_logging(log_level or settings.log_level)


@main.command()
@click.argument("query")
@click.pass_context
def search(ctx: click.Context, query: str):
    """Search the show catalog."""
    try:
        results = _service(ctx).search(query)
    except TrackerError as e:
        raise click.ClickException(str(e))

    settings = get_settings()
    if not results:
        click.echo("No shows found.")
    for meta in results:
        click.echo(f"{make_show_id(meta.source_id, settings.id_prefix):<18} {meta.title} ({meta.year or '?'}, {meta.platform or '?'})")


@main.command()
@click.argument("show_id")
@click.pass_context
def add(ctx: click.Context, show_id: str):
    """Add a show (e.g. tvmaze-169) and fetch its episodes."""
    try:
        show = asyncio.run(_service(ctx).add_show(show_id))
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Added {show.title}: {show.total_episodes} episodes")


@main.command()
@click.argument("show_id")
@click.pass_context
def remove(ctx: click.Context, show_id: str):
    """Stop tracking a show."""
    try:
        _service(ctx).remove_show(show_id)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(f"Removed {show_id}")


@main.command(name="list")
@click.option(
    "--filter",
    "watch_filter",
    type=click.Choice([f.value for f in WatchFilter]),
    default=WatchFilter.ALL.value,
    help="Show all, watched or unwatched shows",
)
@click.pass_context
def list_shows(ctx: click.Context, watch_filter: str):
    """List tracked shows with progress."""
    shows = _service(ctx).list_shows(WatchFilter(watch_filter))
    if not shows:
        click.echo("Watchlist is empty.")
    for show in shows:
        click.echo(f"{_format_progress(show)}  next: {_format_next(show)}")


@main.command()
@click.argument("show_id")
@click.pass_context
def show(ctx: click.Context, show_id: str):
    """Show seasons and episodes of a tracked show."""
    try:
        tracked = _service(ctx).get_show(show_id)
    except TrackerError as e:
        raise click.ClickException(str(e))

    click.echo(_format_progress(tracked))
    click.echo(f"Next: {_format_next(tracked)}")
    click.echo(f"Last updated: {tracked.last_updated or 'never'}")
    for season in tracked.seasons:
        label = f"Season {season.number}" if season.number else "Unknown season"
        click.echo(f"\n{label} ({season.watched_episodes}/{season.total_episodes})")
        for ep in season.episodes:
            marker = "x" if ep.watched else " "
            click.echo(f"  [{marker}] {ep.id:<9} E{ep.number or 0:02d} {ep.title} ({ep.air_date or 'TBA'})")


@main.command()
@click.argument("show_id")
@click.argument("episode_id", type=int)
@click.pass_context
def watch(ctx: click.Context, show_id: str, episode_id: int):
    """Toggle the watched flag of one episode."""
    try:
        updated = _service(ctx).toggle_episode(show_id, episode_id)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(_format_progress(updated))


@main.command(name="mark-season")
@click.argument("show_id")
@click.argument("season", type=int)
@click.option("--unwatched", is_flag=True, help="Clear instead of set")
@click.pass_context
def mark_season(ctx: click.Context, show_id: str, season: int, unwatched: bool):
    """Mark every aired episode of a season as watched."""
    try:
        updated = _service(ctx).set_season_watched(show_id, season, not unwatched)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(_format_progress(updated))


@main.command(name="mark-show")
@click.argument("show_id")
@click.option("--unwatched", is_flag=True, help="Clear instead of set")
@click.pass_context
def mark_show(ctx: click.Context, show_id: str, unwatched: bool):
    """Mark every aired episode of a show as watched."""
    try:
        updated = _service(ctx).set_show_watched(show_id, not unwatched)
    except TrackerError as e:
        raise click.ClickException(str(e))
    click.echo(_format_progress(updated))


@main.command()
@click.option("--upcoming", is_flag=True, help="List episodes that have not aired yet")
@click.option("--limit", type=int, default=DEFAULT_FEED_LIMIT, show_default=True)
@click.option("--reverse", is_flag=True, help="Reverse the default ordering")
@click.pass_context
def feed(ctx: click.Context, upcoming: bool, limit: int, reverse: bool):
    """List unwatched episodes across all shows."""
    service = _service(ctx)
    if upcoming:
        entries = service.upcoming_episodes(limit=limit, soonest_first=not reverse)
    else:
        entries = service.latest_unwatched(limit=limit, newest_first=not reverse)

    if not entries:
        click.echo("Nothing to watch.")
    for entry in entries:
        ep = entry.episode
        click.echo(f"{ep.air_date}  {entry.show_title} S{ep.season or 0:02d}E{ep.number or 0:02d} {ep.title}")


@main.command()
@click.option("--force", is_flag=True, help="Refresh every show, not only stale ones")
@click.pass_context
def refresh(ctx: click.Context, force: bool):
    """Refresh episode data for stale shows."""
    service = _service(ctx)
    result = asyncio.run(service.orchestrator.refresh_stale(force=force))
    pending = service.store.flush()

    click.echo(f"\n=== Refresh Results ===")
    click.echo(f"Updated: {result.updated}")
    click.echo(f"Errors: {result.errors}")
    if result.failed_ids:
        click.echo(f"Failed: {', '.join(result.failed_ids)}")
    if pending:
        click.echo(f"Not saved: {pending} shows")
    sys.exit(0 if result.success and not pending else 1)


@main.command()
@click.pass_context
def stats(ctx: click.Context):
    """Show watchlist totals and estimated watch time."""
    totals = _service(ctx).stats()

    click.echo(f"Shows: {totals.watched_shows}/{totals.total_shows} watched")
    click.echo(f"Episodes: {totals.watched_episodes}/{totals.total_episodes} watched ({totals.completion_percentage}%)")
    click.echo(
        f"Watch time: {totals.watch_time_minutes} minutes "
        f"({totals.watch_time_hours} hours, {totals.watch_time_days} days)"
    )


@main.command()
@click.option(
    "--interval",
    type=int,
    default=None,
    help="Refresh interval in minutes (defaults to config, 1440 = daily)",
)
@click.pass_context
def run(ctx: click.Context, interval: int):
    """Run continuous refresh at the configured interval."""
    settings = get_settings()
    interval = interval or settings.refresh_interval_minutes
    service = _service(ctx)

    logger.info("=" * 60)
    logger.info("Starting TV Tracker refresh service")
    logger.info(f"Tracked shows: {len(service.store.all())}")
    logger.info(f"Interval: {interval} minutes ({interval // 60}h {interval % 60}m)")
    logger.info("=" * 60)

    start = time.monotonic()
    try:
        asyncio.run(service.orchestrator.run_forever(interval * 60))
    except KeyboardInterrupt:
        logger.info("")
        logger.info("=" * 60)
        logger.info("Service stopped by user")
        logger.info(f"Uptime: {int(time.monotonic() - start)} seconds")
        logger.info("=" * 60)
        sys.exit(0)


if __name__ == "__main__":
    main()
