"""Grouping of flat episode lists into seasons."""

from collections import defaultdict
from typing import Iterable

from .constants import UNKNOWN_SEASON
from .models import Episode, Season


def season_key(episode: Episode) -> int:
    """Season bucket for an episode; invalid numbers go to UNKNOWN_SEASON."""
    season = episode.season
    if season is None or season < 1:
        return UNKNOWN_SEASON
    return season


def _episode_order(episode: Episode) -> tuple:
    number = episode.number if episode.number is not None else float("inf")
    return (number, episode.id)


def group_into_seasons(episodes: Iterable[Episode]) -> list[Season]:
    """Group episodes into seasons ordered by number, with fresh counts."""
    buckets: dict[int, list[Episode]] = defaultdict(list)
    for episode in episodes:
        buckets[season_key(episode)].append(episode)

    seasons = []
    for number in sorted(buckets):
        season_episodes = sorted(buckets[number], key=_episode_order)
        seasons.append(
            Season(
                number=number,
                episodes=season_episodes,
                total_episodes=len(season_episodes),
                watched_episodes=sum(1 for ep in season_episodes if ep.watched),
            )
        )
    return seasons
