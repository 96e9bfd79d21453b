"""Watchlist operations exposed to callers (CLI, scripts)."""

import asyncio
import logging
from datetime import datetime
from typing import Optional

from .config import Settings, get_settings
from .constants import DEFAULT_EPISODE_MINUTES, DEFAULT_FEED_LIMIT, SOURCE_TAG, WatchFilter
from .errors import ValidationFailure
from .models import FeedEntry, Show, ShowMetadata, WatchStats, as_utc, make_show_id, parse_show_id, utcnow
from .persistence import JsonFilePersistence
from .refresh import RefreshOrchestrator
from .store import WatchlistStore
from .sync_engine import set_season_watched, set_show_watched, toggle_episode
from .tvmaze_client import TVMazeClient

logger = logging.getLogger(__name__)


class WatchlistService:
    """Search, add, remove and mark shows; every write goes through the store."""

    def __init__(
        self,
        store: WatchlistStore,
        source: TVMazeClient,
        orchestrator: RefreshOrchestrator,
        id_prefix: str = SOURCE_TAG,
    ):
        self.store = store
        self.source = source
        self.orchestrator = orchestrator
        self.id_prefix = id_prefix

    def search(self, query: str) -> list[ShowMetadata]:
        """Search the episode source's catalog."""
        if not query or not query.strip():
            raise ValidationFailure("Search query is required")
        return self.source.search_shows(query.strip())

    async def add_show(self, show_id: str, now: Optional[datetime] = None) -> Show:
        """Track a new show and fetch its episodes right away.

        The show is stored first with no episodes, so a failed episode
        fetch still leaves it tracked (and stale) for the next refresh.
        """
        source_id = parse_show_id(show_id, self.id_prefix)
        show_id = make_show_id(source_id, self.id_prefix)
        if self.store.contains(show_id):
            raise ValidationFailure(f"{show_id} is already in the watchlist")

        metadata = await asyncio.to_thread(self.source.get_show, source_id)
        # Re-check after the await, another caller may have added it meanwhile
        if self.store.contains(show_id):
            raise ValidationFailure(f"{show_id} is already in the watchlist")

        show = Show(id=show_id, metadata=metadata, added_date=as_utc(now) if now else utcnow())
        self.store.add(show)
        logger.info(f"Added {metadata.title} ({show_id}) to watchlist")

        if not await self.orchestrator.refresh_show(show_id, now):
            logger.warning(f"Episodes for {show_id} will be fetched on the next refresh")
        return self.store.get(show_id) or show

    def remove_show(self, show_id: str) -> None:
        if not self.store.remove(show_id):
            raise ValidationFailure(f"{show_id} is not in the watchlist")
        logger.info(f"Removed {show_id} from watchlist")

    def _require(self, show_id: str) -> Show:
        show = self.store.get(show_id)
        if show is None:
            raise ValidationFailure(f"{show_id} is not in the watchlist")
        return show

    def toggle_episode(self, show_id: str, episode_id: int, now: Optional[datetime] = None) -> Show:
        self._require(show_id)
        return self.store.update(show_id, lambda show: toggle_episode(show, episode_id, now))

    def set_season_watched(
        self, show_id: str, season: int, watched: bool, now: Optional[datetime] = None
    ) -> Show:
        self._require(show_id)
        return self.store.update(show_id, lambda show: set_season_watched(show, season, watched, now))

    def set_show_watched(self, show_id: str, watched: bool, now: Optional[datetime] = None) -> Show:
        self._require(show_id)
        return self.store.update(show_id, lambda show: set_show_watched(show, watched, now))

    def get_show(self, show_id: str) -> Show:
        return self._require(show_id)

    def list_shows(self, watch_filter: WatchFilter = WatchFilter.ALL) -> list[Show]:
        """Tracked shows, most recently added first."""
        shows = sorted(self.store.all(), key=lambda show: as_utc(show.added_date), reverse=True)
        if watch_filter == WatchFilter.WATCHED:
            return [show for show in shows if show.watched]
        if watch_filter == WatchFilter.UNWATCHED:
            return [show for show in shows if not show.watched]
        return shows

    def _feed(self, aired: bool, now: datetime) -> list[FeedEntry]:
        entries = []
        for show in self.store.all():
            if show.watched:
                continue
            for episode in show.episodes:
                if episode.watched or episode.has_aired(now) != aired:
                    continue
                if not aired and episode.air_date is None:
                    continue
                entries.append(FeedEntry(show_id=show.id, show_title=show.title, episode=episode))
        return entries

    def latest_unwatched(
        self, limit: int = DEFAULT_FEED_LIMIT, newest_first: bool = True, now: Optional[datetime] = None
    ) -> list[FeedEntry]:
        """Aired episodes not yet watched, across all unfinished shows."""
        now = as_utc(now) if now is not None else utcnow()
        entries = self._feed(aired=True, now=now)
        entries.sort(key=lambda entry: entry.episode.aired_at, reverse=newest_first)
        return entries[:limit]

    def upcoming_episodes(
        self, limit: int = DEFAULT_FEED_LIMIT, soonest_first: bool = True, now: Optional[datetime] = None
    ) -> list[FeedEntry]:
        """Scheduled episodes that have not aired yet."""
        now = as_utc(now) if now is not None else utcnow()
        entries = self._feed(aired=False, now=now)
        entries.sort(key=lambda entry: entry.episode.aired_at, reverse=not soonest_first)
        return entries[:limit]

    def stats(self) -> WatchStats:
        """Totals across the watchlist; watch time uses each episode's runtime."""
        shows = self.store.all()
        total_episodes = sum(show.total_episodes for show in shows)
        watched_episodes = sum(show.watched_episodes_count for show in shows)
        minutes = sum(
            episode.runtime or DEFAULT_EPISODE_MINUTES
            for show in shows
            for episode in show.episodes
            if episode.watched
        )
        return WatchStats(
            total_shows=len(shows),
            watched_shows=sum(1 for show in shows if show.watched),
            total_episodes=total_episodes,
            watched_episodes=watched_episodes,
            watch_time_minutes=minutes,
            completion_percentage=round(watched_episodes * 100 / total_episodes) if total_episodes else 0,
        )


def build_service(settings: Optional[Settings] = None) -> WatchlistService:
    """Wire store, source and orchestrator from settings and load the list."""
    if settings is None:
        settings = get_settings()

    store = WatchlistStore(JsonFilePersistence(settings.storage_path))
    store.load()
    source = TVMazeClient(
        base_url=settings.source_base_url,
        timeout=settings.source_timeout,
        user_agent=settings.user_agent,
    )
    orchestrator = RefreshOrchestrator.from_settings(store, source, settings)
    return WatchlistService(store, source, orchestrator, id_prefix=settings.id_prefix)
