"""Shared builders and fakes for the test suite."""

import threading
from datetime import datetime, timezone

from tv_tracker.errors import ShowNotFound, SourceUnavailable
from tv_tracker.models import Episode, Show, ShowMetadata

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_episode(episode_id, season=1, number=None, air_date="2024-01-01", **fields):
    return Episode(
        id=episode_id,
        season=season,
        number=number if number is not None else episode_id,
        title=fields.pop("title", f"Episode {episode_id}"),
        air_date=air_date,
        **fields,
    )


def make_metadata(source_id=1, title=None):
    return ShowMetadata(source_id=source_id, title=title or f"Show {source_id}")


def make_show(source_id=1, episodes=(), last_updated=None, tag="tvmaze", **fields):
    return Show(
        id=f"{tag}-{source_id}",
        metadata=make_metadata(source_id),
        episodes=list(episodes),
        last_updated=last_updated,
        **fields,
    )


class FakeSource:
    """In-memory episode source; episode fetches for ids in ``failures`` raise SourceUnavailable."""

    def __init__(self, episodes=None, failures=(), shows=None):
        self.episodes = episodes or {}
        self.failures = set(failures)
        self.shows = shows or {}
        self.calls = []
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def get_episodes(self, source_id):
        with self._lock:
            self.calls.append(source_id)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if source_id in self.failures:
                raise SourceUnavailable(f"source down for {source_id}")
            return [ep.model_copy() for ep in self.episodes.get(source_id, [])]
        finally:
            with self._lock:
                self.active -= 1

    def get_show(self, source_id):
        if source_id not in self.shows:
            raise ShowNotFound(f"no show {source_id}")
        return self.shows[source_id]

    def search_shows(self, query):
        return [meta for meta in self.shows.values() if query.lower() in meta.title.lower()]


class BlockingSource(FakeSource):
    """Holds every fetch until ``release`` is set."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def get_episodes(self, source_id):
        self.started.set()
        self.release.wait(timeout=5)
        return super().get_episodes(source_id)


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
