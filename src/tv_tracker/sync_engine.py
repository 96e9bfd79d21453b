"""Core sync engine: merging, next-episode resolution and show recompute.

Every function here is pure. Shows and episodes are never mutated in
place; each operation returns a new ``Show`` built by ``recompute_show``,
which is the only place derived fields are written.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from .errors import ValidationFailure
from .models import Episode, NextEpisode, Show, as_utc, utcnow
from .seasons import group_into_seasons, season_key

logger = logging.getLogger(__name__)


def merge_episodes(prior: Iterable[Episode], fresh: Iterable[Episode]) -> list[Episode]:
    """Merge freshly fetched episodes with previously stored watch state.

    The fresh list decides which episodes exist and all their metadata.
    The prior list decides ``watched``/``watched_date``, matched by id only.
    Episodes missing from the fresh list are dropped.
    """
    prior_by_id = {episode.id: episode for episode in prior}
    merged: list[Episode] = []
    seen: set[int] = set()

    for episode in fresh:
        if episode.id in seen:
            logger.debug(f"Ignoring duplicate episode id {episode.id} in fresh list")
            continue
        seen.add(episode.id)

        previous = prior_by_id.get(episode.id)
        if previous is not None:
            watch_state = {"watched": previous.watched, "watched_date": previous.watched_date}
        else:
            watch_state = {"watched": False, "watched_date": None}
        merged.append(episode.model_copy(update=watch_state))

    dropped = [episode for episode_id, episode in prior_by_id.items() if episode_id not in seen]
    if dropped:
        dropped_watched = sum(1 for episode in dropped if episode.watched)
        logger.info(f"Dropped {len(dropped)} episodes no longer listed by the source")
        if dropped_watched:
            logger.warning(f"{dropped_watched} of the dropped episodes were marked watched")

    return merged


def _next_episode_order(episode: Episode) -> tuple:
    number = episode.number if episode.number is not None else float("inf")
    return (episode.aired_at, season_key(episode), number)


def resolve_next_episode(episodes: Iterable[Episode], now: datetime) -> Optional[NextEpisode]:
    """Pick the earliest aired, unwatched episode, or None when caught up.

    Episodes without an air date count as not aired.
    """
    candidates = [ep for ep in episodes if not ep.watched and ep.has_aired(now)]
    if not candidates:
        return None

    episode = min(candidates, key=_next_episode_order)
    return NextEpisode(
        season=episode.season,
        episode=episode.number,
        title=episode.title,
        air_date=episode.air_date,
        air_time=episode.air_time,
        runtime=episode.runtime,
    )


def recompute_show(
    show: Show,
    episodes: Optional[Iterable[Episode]] = None,
    now: Optional[datetime] = None,
) -> Show:
    """Derive seasons, counts, next episode and watched flag from episodes."""
    now = as_utc(now) if now is not None else utcnow()
    episodes = list(show.episodes if episodes is None else episodes)

    total = len(episodes)
    watched_count = sum(1 for ep in episodes if ep.watched)

    return show.model_copy(
        update={
            "episodes": episodes,
            "seasons": group_into_seasons(episodes),
            "total_episodes": total,
            "watched_episodes_count": watched_count,
            "next_episode": resolve_next_episode(episodes, now),
            "watched": total > 0 and watched_count == total,
            "last_updated": now,
        }
    )


def apply_refresh(show: Show, fresh: Iterable[Episode], now: Optional[datetime] = None) -> Show:
    """Merge a fresh episode list into a show and recompute it."""
    return recompute_show(show, merge_episodes(show.episodes, fresh), now)


def toggle_episode(show: Show, episode_id: int, now: Optional[datetime] = None) -> Show:
    """Flip one episode's watched flag."""
    now = as_utc(now) if now is not None else utcnow()
    if show.find_episode(episode_id) is None:
        raise ValidationFailure(f"Episode {episode_id} is not part of {show.id}")

    episodes = []
    for episode in show.episodes:
        if episode.id == episode_id:
            watched = not episode.watched
            episode = episode.model_copy(
                update={"watched": watched, "watched_date": now if watched else None}
            )
        episodes.append(episode)
    return recompute_show(show, episodes, now)


def _mark(episode: Episode, watched: bool, now: datetime) -> Episode:
    """Apply a bulk watched flag; only aired episodes can become watched."""
    if not watched:
        if not episode.watched:
            return episode
        return episode.model_copy(update={"watched": False, "watched_date": None})

    if episode.watched or not episode.has_aired(now):
        return episode
    return episode.model_copy(update={"watched": True, "watched_date": now})


def set_season_watched(
    show: Show, season_number: int, watched: bool, now: Optional[datetime] = None
) -> Show:
    """Mark or unmark every episode of one season."""
    now = as_utc(now) if now is not None else utcnow()
    if not any(season_key(ep) == season_number for ep in show.episodes):
        raise ValidationFailure(f"Season {season_number} is not part of {show.id}")

    episodes = [
        _mark(ep, watched, now) if season_key(ep) == season_number else ep
        for ep in show.episodes
    ]
    return recompute_show(show, episodes, now)


def set_show_watched(show: Show, watched: bool, now: Optional[datetime] = None) -> Show:
    """Mark or unmark every episode of a show."""
    now = as_utc(now) if now is not None else utcnow()
    episodes = [_mark(ep, watched, now) for ep in show.episodes]
    return recompute_show(show, episodes, now)
