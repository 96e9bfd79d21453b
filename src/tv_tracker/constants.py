"""Constants used throughout the application."""

from enum import Enum


class ShowState(str, Enum):
    """Refresh state of a tracked show."""

    FRESH = "fresh"
    STALE = "stale"
    REFRESHING = "refreshing"


class WatchFilter(str, Enum):
    """Watchlist filter options."""

    ALL = "all"
    WATCHED = "watched"
    UNWATCHED = "unwatched"


# HTTP Status Codes
HTTP_OK = 200
HTTP_NOT_FOUND = 404

# Episode source
SOURCE_TAG = "tvmaze"
SOURCE_BASE_URL = "https://api.tvmaze.com"
DEFAULT_TIMEOUT_SECONDS = 15

# Season bucket for episodes without a usable season number
UNKNOWN_SEASON = 0

# Refresh defaults
DEFAULT_STALE_AFTER_HOURS = 24
DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY_SECONDS = 1.0
DEFAULT_REFRESH_INTERVAL_MINUTES = 1440  # once per day

# Feed defaults
DEFAULT_FEED_LIMIT = 10

# Watch time estimate for episodes with no runtime
DEFAULT_EPISODE_MINUTES = 45
