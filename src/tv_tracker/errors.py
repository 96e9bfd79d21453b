"""Error taxonomy for the tracker."""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class SourceUnavailable(TrackerError):
    """The episode source could not be reached or answered with an error."""


class ShowNotFound(TrackerError):
    """The episode source has no show with the requested id."""


class PersistenceFailure(TrackerError):
    """Writing to or reading from storage failed."""


class ValidationFailure(TrackerError, ValueError):
    """Malformed caller input, rejected before any state change."""
