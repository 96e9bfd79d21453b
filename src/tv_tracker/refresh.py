"""Batch refresh of tracked shows against the episode source."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from .config import Settings
from .constants import (
    DEFAULT_BATCH_DELAY_SECONDS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_STALE_AFTER_HOURS,
    ShowState,
)
from .errors import ShowNotFound, SourceUnavailable
from .models import Episode, RefreshResult, Show, as_utc, utcnow
from .store import WatchlistStore
from .sync_engine import apply_refresh

logger = logging.getLogger(__name__)

# Outcomes of a single show refresh
_UPDATED = "updated"
_FAILED = "failed"
_DISCARDED = "discarded"


class EpisodeSource(Protocol):
    """Anything that can list a show's episodes (see TVMazeClient)."""

    def get_episodes(self, source_id: int) -> list[Episode]: ...


class RefreshOrchestrator:
    """Finds stale shows and refreshes them in rate-limited batches.

    Fetches within a batch run concurrently in worker threads; batches run
    one after another with ``batch_delay`` seconds between them. Results are
    applied through :meth:`WatchlistStore.update` on the event loop.
    """

    def __init__(
        self,
        store: WatchlistStore,
        source: EpisodeSource,
        stale_after: timedelta = timedelta(hours=DEFAULT_STALE_AFTER_HOURS),
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
        sleep=asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.source = source
        self.stale_after = stale_after
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep
        self._in_flight: set[str] = set()

    @classmethod
    def from_settings(cls, store: WatchlistStore, source: EpisodeSource, settings: Settings):
        return cls(
            store,
            source,
            stale_after=settings.stale_after,
            batch_size=settings.batch_size,
            batch_delay=settings.batch_delay,
        )

    def state_of(self, show: Show, now: Optional[datetime] = None) -> ShowState:
        """Refresh state derived from in-flight fetches and ``last_updated``."""
        if show.id in self._in_flight:
            return ShowState.REFRESHING
        if show.last_updated is None:
            return ShowState.STALE
        now = as_utc(now) if now is not None else utcnow()
        if now - as_utc(show.last_updated) > self.stale_after:
            return ShowState.STALE
        return ShowState.FRESH

    def stale_shows(self, now: Optional[datetime] = None) -> list[Show]:
        return [show for show in self.store.all() if self.state_of(show, now) == ShowState.STALE]

    async def refresh_show(self, show_id: str, now: Optional[datetime] = None) -> bool:
        """Refresh one show. Returns True when fresh data was applied."""
        return await self._refresh(show_id, now) == _UPDATED

    async def _refresh(self, show_id: str, now: Optional[datetime]) -> str:
        show = self.store.get(show_id)
        if show is None:
            logger.warning(f"Cannot refresh {show_id}: not in watchlist")
            return _DISCARDED
        if show_id in self._in_flight:
            logger.debug(f"{show_id} is already refreshing")
            return _DISCARDED

        self._in_flight.add(show_id)
        try:
            fresh = await asyncio.to_thread(self.source.get_episodes, show.metadata.source_id)
        except (SourceUnavailable, ShowNotFound) as e:
            logger.warning(f"Failed to refresh {show.title} ({show_id}): {e}")
            return _FAILED
        except Exception:
            logger.exception(f"Unexpected error refreshing {show.title} ({show_id})")
            return _FAILED
        finally:
            self._in_flight.discard(show_id)

        # Apply to the show's current value, not the one read before the fetch
        when = now if now is not None else utcnow()
        updated = self.store.update(show_id, lambda current: apply_refresh(current, fresh, when))
        if updated is None:
            logger.info(f"{show_id} was removed while refreshing, discarding result")
            return _DISCARDED

        logger.info(
            f"Updated {updated.title}: {updated.total_episodes} episodes, "
            f"{updated.watched_episodes_count} watched"
        )
        return _UPDATED

    async def refresh_stale(self, now: Optional[datetime] = None, force: bool = False) -> RefreshResult:
        """Refresh every stale show (every show with ``force``).

        Per-show failures are counted, never raised.
        """
        check_time = as_utc(now) if now is not None else utcnow()
        result = RefreshResult()

        if force:
            candidates = [show for show in self.store.all() if show.id not in self._in_flight]
        else:
            candidates = self.stale_shows(check_time)
        show_ids = [show.id for show in candidates]

        logger.info(f"Found {len(show_ids)} shows to refresh")
        if not show_ids:
            return result

        batches = [show_ids[i:i + self.batch_size] for i in range(0, len(show_ids), self.batch_size)]
        for index, batch in enumerate(batches, start=1):
            logger.info(f"Refreshing batch {index}/{len(batches)} ({len(batch)} shows)")
            outcomes = await asyncio.gather(*(self._refresh(show_id, now) for show_id in batch))

            for show_id, outcome in zip(batch, outcomes):
                if outcome == _UPDATED:
                    result.updated += 1
                elif outcome == _FAILED:
                    result.errors += 1
                    result.failed_ids.append(show_id)
                else:
                    result.skipped += 1

            if index < len(batches):
                await self._sleep(self.batch_delay)

        logger.info(
            f"Refresh completed: {result.updated} updated, {result.errors} errors, "
            f"{result.skipped} skipped"
        )
        return result

    async def run_forever(self, interval_seconds: float, stop_event: Optional[asyncio.Event] = None) -> int:
        """Refresh on a fixed interval until ``stop_event`` is set.

        Returns the number of completed cycles.
        """
        run_count = 0
        while stop_event is None or not stop_event.is_set():
            run_count += 1
            logger.info(f"Starting refresh run #{run_count}...")
            try:
                await self.refresh_stale()
            except Exception:
                logger.exception(f"Refresh run #{run_count} failed")

            pending = self.store.flush()
            if pending:
                logger.warning(f"{pending} shows still not saved to storage")

            logger.info(f"Waiting {interval_seconds:.0f} seconds until next refresh...")
            if stop_event is None:
                await self._sleep(interval_seconds)
                continue
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                pass
        return run_count
