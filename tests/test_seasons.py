"""Tests for grouping episodes into seasons."""

import random

from tv_tracker.constants import UNKNOWN_SEASON
from tv_tracker.seasons import group_into_seasons

from helpers import make_episode


def test_groups_and_orders_seasons_and_episodes():
    """Test grouping episodes into ordered seasons."""
    episodes = [
        make_episode(5, season=2, number=2),
        make_episode(1, season=1, number=1),
        make_episode(4, season=2, number=1),
        make_episode(3, season=1, number=3),
        make_episode(2, season=1, number=2),
    ]

    seasons = group_into_seasons(episodes)

    assert [s.number for s in seasons] == [1, 2]
    assert [ep.number for ep in seasons[0].episodes] == [1, 2, 3]
    assert [ep.number for ep in seasons[1].episodes] == [1, 2]
    assert seasons[0].total_episodes == 3
    assert seasons[1].total_episodes == 2


def test_counts_watched_episodes():
    """Test per-season watched counts."""
    episodes = [
        make_episode(1, season=1, number=1, watched=True),
        make_episode(2, season=1, number=2),
        make_episode(3, season=1, number=3, watched=True),
    ]

    (season,) = group_into_seasons(episodes)

    assert season.watched_episodes == 2
    assert season.watched_episodes <= season.total_episodes


def test_missing_or_invalid_season_goes_to_unknown_bucket():
    """Test the bucket for episodes without a usable season."""
    episodes = [
        make_episode(1, season=1, number=1),
        make_episode(2, season=None, number=1, watched=True),
        make_episode(3, season=0, number=2),
        make_episode(4, season=-3, number=3),
    ]

    seasons = group_into_seasons(episodes)

    assert [s.number for s in seasons] == [UNKNOWN_SEASON, 1]
    unknown = seasons[0]
    assert [ep.id for ep in unknown.episodes] == [2, 3, 4]
    assert unknown.watched_episodes == 1
    assert sum(s.total_episodes for s in seasons) == len(episodes)


def test_same_output_for_any_input_order():
    """Test that input order does not change the result."""
    episodes = [make_episode(i, season=i % 3 + 1, number=i) for i in range(1, 13)]
    shuffled = list(episodes)
    random.Random(7).shuffle(shuffled)

    assert group_into_seasons(shuffled) == group_into_seasons(episodes)


def test_empty_input():
    """Test grouping no episodes."""
    assert group_into_seasons([]) == []
