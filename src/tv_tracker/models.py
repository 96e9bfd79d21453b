"""Data models for tracked shows and episodes."""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import SOURCE_TAG
from .errors import ValidationFailure


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def make_show_id(source_id: int, tag: str = SOURCE_TAG) -> str:
    """Build a namespaced show id such as ``tvmaze-12345``."""
    return f"{tag}-{source_id}"


def parse_show_id(show_id: str, tag: str = SOURCE_TAG) -> int:
    """Extract the source's numeric id from a namespaced show id."""
    if not show_id or not isinstance(show_id, str):
        raise ValidationFailure("Show id is required")
    prefix, _, raw = show_id.strip().rpartition("-")
    if prefix != tag or not raw.isdigit() or int(raw) < 1:
        raise ValidationFailure(f"Invalid show id: {show_id!r} (expected {tag}-<number>)")
    return int(raw)


class Episode(BaseModel):
    """A single episode with its watch state."""

    # Stable source id, used as the merge key across refreshes
    id: int
    season: Optional[int] = None
    number: Optional[int] = None
    title: str = ""

    air_date: Optional[date] = None
    air_time: Optional[str] = None
    runtime: Optional[int] = None
    summary: Optional[str] = None

    # Watch data
    watched: bool = False
    watched_date: Optional[datetime] = None

    @field_validator("air_date", "air_time", "summary", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """The source sends empty strings for unknown values."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def clear_stale_watched_date(self):
        """watched_date is only meaningful while watched is set."""
        if not self.watched:
            self.watched_date = None
        return self

    @property
    def aired_at(self) -> Optional[datetime]:
        """Start of the air date in UTC.

        ``air_time`` is the network's local time with no zone, so it is kept
        for display only and does not move the aired boundary.
        """
        if self.air_date is None:
            return None
        return datetime.combine(self.air_date, time.min, tzinfo=timezone.utc)

    def has_aired(self, now: datetime) -> bool:
        """Return True when the air date is on or before ``now``."""
        aired_at = self.aired_at
        return aired_at is not None and aired_at <= as_utc(now)


class Season(BaseModel):
    """Derived, non-persisted grouping of a show's episodes."""

    number: int
    episodes: list[Episode] = Field(default_factory=list)
    total_episodes: int = Field(default=0, ge=0)
    watched_episodes: int = Field(default=0, ge=0)


class NextEpisode(BaseModel):
    """Snapshot of the next episode to watch, taken at recompute time."""

    season: Optional[int] = None
    episode: Optional[int] = None
    title: str = ""
    air_date: Optional[date] = None
    air_time: Optional[str] = None
    runtime: Optional[int] = None


class ShowMetadata(BaseModel):
    """Descriptive show data passed through from the source untouched."""

    source_id: int
    title: str
    year: Optional[str] = None
    platform: Optional[str] = None
    genres: list[str] = Field(default_factory=list)
    status: Optional[str] = None
    poster: Optional[str] = None
    rating: Optional[float] = None
    summary: Optional[str] = None
    language: Optional[str] = None
    runtime: Optional[int] = None
    premiered: Optional[date] = None
    official_site: Optional[str] = None
    source_url: Optional[str] = None

    @field_validator("premiered", mode="before")
    @classmethod
    def blank_premiere(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Show(BaseModel):
    """A tracked show with its episodes and derived aggregates.

    ``seasons``, ``total_episodes``, ``watched_episodes_count``,
    ``next_episode`` and ``watched`` are derived from ``episodes`` and are
    only ever written by :func:`tv_tracker.sync_engine.recompute_show`.
    """

    id: str
    metadata: ShowMetadata
    added_date: datetime = Field(default_factory=utcnow)

    episodes: list[Episode] = Field(default_factory=list)
    seasons: list[Season] = Field(default_factory=list)
    total_episodes: int = Field(default=0, ge=0)
    watched_episodes_count: int = Field(default=0, ge=0)
    next_episode: Optional[NextEpisode] = None
    watched: bool = False

    # None until the first successful episode fetch
    last_updated: Optional[datetime] = None

    @property
    def title(self) -> str:
        return self.metadata.title

    def find_episode(self, episode_id: int) -> Optional[Episode]:
        for episode in self.episodes:
            if episode.id == episode_id:
                return episode
        return None


class FeedEntry(BaseModel):
    """An episode listed in a cross-show feed."""

    show_id: str
    show_title: str
    episode: Episode


class RefreshResult(BaseModel):
    """Result of a batch refresh run."""

    updated: int = 0
    errors: int = 0
    skipped: int = 0
    failed_ids: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.errors == 0


class WatchStats(BaseModel):
    """Watchlist totals and estimated watch time."""

    total_shows: int = 0
    watched_shows: int = 0
    total_episodes: int = 0
    watched_episodes: int = 0
    watch_time_minutes: int = 0
    completion_percentage: int = 0

    @property
    def watch_time_hours(self) -> int:
        return self.watch_time_minutes // 60

    @property
    def watch_time_days(self) -> int:
        return self.watch_time_hours // 24
