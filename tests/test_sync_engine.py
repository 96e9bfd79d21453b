"""Tests for merging, next-episode resolution and show recompute."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tv_tracker.errors import ValidationFailure
from tv_tracker.sync_engine import (
    apply_refresh,
    merge_episodes,
    recompute_show,
    resolve_next_episode,
    set_season_watched,
    set_show_watched,
    toggle_episode,
)

from helpers import NOW, make_episode, make_show

WATCHED_AT = datetime(2024, 1, 5, 20, 0, tzinfo=timezone.utc)


def assert_consistent(show):
    assert show.total_episodes == len(show.episodes)
    assert show.total_episodes == sum(s.total_episodes for s in show.seasons)
    assert show.watched_episodes_count == sum(s.watched_episodes for s in show.seasons)
    assert show.watched == (show.total_episodes > 0 and show.watched_episodes_count == show.total_episodes)


# Merge

def test_merge_preserves_watch_state_by_id():
    """Test that merging keeps watch state keyed by episode id."""
    prior = [make_episode(1, watched=True, watched_date=WATCHED_AT), make_episode(2)]
    fresh = [
        make_episode(1, number=1, title="Renamed pilot", air_date="2023-12-31"),
        make_episode(2, number=2),
    ]

    merged = merge_episodes(prior, fresh)

    assert merged[0].watched is True
    assert merged[0].watched_date == WATCHED_AT
    assert merged[0].title == "Renamed pilot"
    assert merged[0].air_date == date(2023, 12, 31)
    assert merged[1].watched is False


def test_merge_survives_renumbering():
    """Test that renumbered episodes keep their watch state."""
    prior = [make_episode(1, season=1, number=1, watched=True, watched_date=WATCHED_AT)]
    fresh = [make_episode(1, season=2, number=5), make_episode(2, season=1, number=1)]

    merged = merge_episodes(prior, fresh)
    by_id = {ep.id: ep for ep in merged}

    assert by_id[1].watched is True
    assert (by_id[1].season, by_id[1].number) == (2, 5)
    assert by_id[2].watched is False


def test_merge_ignores_watch_flags_in_fresh_data():
    """Test that fresh data cannot set watched flags."""
    fresh = [make_episode(1, watched=True, watched_date=WATCHED_AT)]

    merged = merge_episodes([], fresh)

    assert merged[0].watched is False
    assert merged[0].watched_date is None


def test_merge_drops_episodes_missing_from_fresh_list():
    """Test that episodes gone upstream are dropped."""
    prior = [make_episode(1, watched=True, watched_date=WATCHED_AT), make_episode(2)]
    fresh = [make_episode(2)]

    merged = merge_episodes(prior, fresh)

    assert [ep.id for ep in merged] == [2]


def test_merge_is_idempotent():
    """Test that merging the same list twice changes nothing."""
    prior = [make_episode(1, watched=True, watched_date=WATCHED_AT), make_episode(3)]
    fresh = [make_episode(1, title="New title"), make_episode(2), make_episode(3)]

    once = merge_episodes(prior, fresh)
    twice = merge_episodes(once, fresh)

    assert twice == once


def test_merge_does_not_mutate_inputs():
    """Test that merge returns new episodes."""
    prior = [make_episode(1, watched=True, watched_date=WATCHED_AT)]
    fresh = [make_episode(1, title="Changed")]

    merge_episodes(prior, fresh)

    assert prior[0].title == "Episode 1"
    assert fresh[0].watched is False


def test_apply_refresh_twice_yields_same_show():
    """Test that applying one refresh twice is stable."""
    show = recompute_show(make_show(1, [make_episode(1), make_episode(2)]), now=NOW)
    show = toggle_episode(show, 1, now=NOW)
    fresh = [make_episode(1, title="Fixed"), make_episode(2), make_episode(3, air_date="2024-01-10")]

    once = apply_refresh(show, fresh, now=NOW)
    twice = apply_refresh(once, fresh, now=NOW)

    assert twice == once
    assert once.find_episode(1).watched is True
    assert_consistent(once)


# Next episode

def test_next_episode_example():
    """Test picking the next episode to watch."""
    episodes = [
        make_episode(1, number=1, air_date="2024-01-01", watched=True, watched_date=WATCHED_AT),
        make_episode(2, number=2, air_date="2024-02-01"),
        make_episode(3, number=3, air_date="2024-03-01"),
    ]
    now = datetime(2024, 2, 15, tzinfo=timezone.utc)

    nxt = resolve_next_episode(episodes, now)

    assert nxt is not None
    assert nxt.episode == 2
    assert nxt.air_date == date(2024, 2, 1)


def test_next_episode_none_when_only_future_episodes_left():
    """Test that unaired episodes are never next."""
    episodes = [
        make_episode(1, air_date="2024-01-01", watched=True, watched_date=WATCHED_AT),
        make_episode(2, air_date="2024-02-01"),
        make_episode(3, air_date="2024-03-01"),
    ]

    assert resolve_next_episode(episodes, NOW) is None


def test_next_episode_picks_earliest_air_date_not_list_order():
    """Test that the earliest air date wins over list order."""
    episodes = [
        make_episode(3, season=2, number=1, air_date="2024-01-10"),
        make_episode(1, season=1, number=1, air_date="2024-01-03"),
        make_episode(2, season=1, number=2, air_date="2024-01-05"),
    ]

    assert resolve_next_episode(episodes, NOW).episode == 1


def test_next_episode_ties_broken_by_season_then_number():
    """Test tie breaking on the same air date."""
    episodes = [
        make_episode(4, season=2, number=1, air_date="2024-01-05"),
        make_episode(3, season=1, number=3, air_date="2024-01-05"),
        make_episode(2, season=1, number=2, air_date="2024-01-05"),
    ]

    nxt = resolve_next_episode(episodes, NOW)

    assert (nxt.season, nxt.episode) == (1, 2)


def test_next_episode_skips_missing_air_date():
    """Test that episodes without an air date are skipped."""
    episodes = [make_episode(1, air_date=None), make_episode(2, air_date="2024-01-10")]

    assert resolve_next_episode(episodes, NOW).episode == 2
    assert resolve_next_episode([make_episode(1, air_date=None)], NOW) is None


# Recompute

def test_recompute_derives_all_aggregates():
    """Test the derived counts, seasons and next episode."""
    episodes = [
        make_episode(1, season=1, number=1, watched=True, watched_date=WATCHED_AT),
        make_episode(2, season=1, number=2),
        make_episode(3, season=2, number=1, air_date="2024-06-01"),
    ]

    show = recompute_show(make_show(1), episodes, now=NOW)

    assert show.total_episodes == 3
    assert show.watched_episodes_count == 1
    assert [s.number for s in show.seasons] == [1, 2]
    assert show.next_episode.episode == 2
    assert show.watched is False
    assert show.last_updated == NOW
    assert_consistent(show)


def test_show_with_no_episodes_is_never_watched():
    """Test that an empty show is not watched."""
    show = recompute_show(make_show(1), [], now=NOW)

    assert show.total_episodes == 0
    assert show.watched is False
    assert show.next_episode is None
    assert_consistent(show)


def test_show_watched_when_all_episodes_watched():
    """Test that a fully watched show is watched."""
    episodes = [make_episode(i, watched=True, watched_date=WATCHED_AT) for i in (1, 2)]

    show = recompute_show(make_show(1), episodes, now=NOW)

    assert show.watched is True
    assert show.next_episode is None


def test_recompute_returns_new_show():
    """Test that recompute leaves its input alone."""
    original = make_show(1, [make_episode(1)])

    recompute_show(original, now=NOW)

    assert original.total_episodes == 0
    assert original.last_updated is None


def test_scenario_added_show_then_unaired_fetch():
    """Test a new show whose episodes have not aired."""
    show = make_show(1, tag="source")
    assert (show.total_episodes, show.watched) == (0, False)

    future = NOW + timedelta(days=30)
    fresh = [make_episode(i, air_date=(future + timedelta(days=7 * i)).date().isoformat()) for i in range(1, 11)]
    show = apply_refresh(show, fresh, now=NOW)

    assert show.id == "source-1"
    assert show.total_episodes == 10
    assert show.watched_episodes_count == 0
    assert show.watched is False
    assert show.next_episode is None


# Watched toggles

def test_toggle_episode_sets_and_clears_watched_date():
    """Test toggling an episode on and off."""
    show = recompute_show(make_show(1, [make_episode(1), make_episode(2)]), now=NOW)

    show = toggle_episode(show, 1, now=NOW)
    assert show.find_episode(1).watched is True
    assert show.find_episode(1).watched_date == NOW
    assert show.watched_episodes_count == 1
    assert show.next_episode.episode == 2

    later = NOW + timedelta(hours=1)
    show = toggle_episode(show, 1, now=later)
    assert show.find_episode(1).watched is False
    assert show.find_episode(1).watched_date is None
    assert show.watched_episodes_count == 0
    assert show.last_updated == later


def test_toggle_unknown_episode_rejected():
    """Test toggling an episode the show does not have."""
    show = make_show(1, [make_episode(1)])

    with pytest.raises(ValidationFailure):
        toggle_episode(show, 99, now=NOW)


def test_mark_season_only_marks_aired_episodes():
    """Test that marking a season skips unaired episodes."""
    show = recompute_show(
        make_show(1, [
            make_episode(1, season=1, number=1, air_date="2024-01-10"),
            make_episode(2, season=1, number=2, air_date="2024-01-20"),
            make_episode(3, season=2, number=1, air_date="2024-01-01"),
        ]),
        now=NOW,
    )

    show = set_season_watched(show, 1, True, now=NOW)

    assert show.find_episode(1).watched is True
    assert show.find_episode(2).watched is False
    assert show.find_episode(3).watched is False
    assert show.seasons[0].watched_episodes == 1
    assert show.next_episode.episode == 1 and show.next_episode.season == 2
    assert_consistent(show)


def test_mark_season_keeps_existing_watched_date():
    """Test that re-marking keeps earlier watched dates."""
    show = make_show(1, [make_episode(1, watched=True, watched_date=WATCHED_AT), make_episode(2)])

    show = set_season_watched(show, 1, True, now=NOW)

    assert show.find_episode(1).watched_date == WATCHED_AT
    assert show.find_episode(2).watched_date == NOW


def test_unmark_season_clears_everything():
    """Test unmarking a whole season."""
    show = make_show(1, [
        make_episode(1, watched=True, watched_date=WATCHED_AT),
        make_episode(2, air_date="2025-01-01", watched=True, watched_date=WATCHED_AT),
    ])

    show = set_season_watched(show, 1, False, now=NOW)

    assert all(not ep.watched and ep.watched_date is None for ep in show.episodes)
    assert show.watched_episodes_count == 0


def test_mark_unknown_season_rejected():
    """Test marking a season the show does not have."""
    show = make_show(1, [make_episode(1, season=1)])

    with pytest.raises(ValidationFailure):
        set_season_watched(show, 4, True, now=NOW)


def test_mark_show_watched_skips_unaired():
    """Test that marking a show skips unaired episodes."""
    show = make_show(1, [
        make_episode(1, season=1, air_date="2024-01-01"),
        make_episode(2, season=2, air_date="2024-01-14"),
        make_episode(3, season=2, air_date="2024-02-01"),
        make_episode(4, season=2, air_date=None),
    ])

    show = set_show_watched(show, True, now=NOW)

    assert [ep.watched for ep in show.episodes] == [True, True, False, False]
    assert show.watched is False
    assert show.next_episode is None
    assert_consistent(show)


def test_mark_show_watched_and_unwatched():
    """Test marking and unmarking a whole show."""
    show = make_show(1, [make_episode(1), make_episode(2)])

    show = set_show_watched(show, True, now=NOW)
    assert show.watched is True

    show = set_show_watched(show, False, now=NOW)
    assert show.watched is False
    assert show.watched_episodes_count == 0
    assert show.next_episode.episode == 1
