"""In-memory watchlist owner backed by a persistence gateway."""

import logging
from typing import Callable, Optional

from .errors import PersistenceFailure, ValidationFailure
from .models import Show
from .persistence import PersistenceGateway

logger = logging.getLogger(__name__)


class WatchlistStore:
    """Owns the current state of every tracked show.

    All writes go through :meth:`update`, which reads the show's current
    value, applies a pure function and stores the result without yielding
    to other tasks in between. Callers on the event loop are therefore
    serialized without locks.

    Each write is followed by exactly one gateway call. A failed write is
    logged and the in-memory state is kept; the show is retried on its
    next write or on :meth:`flush`.
    """

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway
        self._shows: dict[str, Show] = {}
        self._dirty: set[str] = set()
        self._pending_deletes: set[str] = set()

    def load(self) -> int:
        """Replace in-memory state with the gateway's contents."""
        shows = self.gateway.load_all()
        self._shows = {show.id: show for show in shows}
        self._dirty.clear()
        self._pending_deletes.clear()
        return len(self._shows)

    def get(self, show_id: str) -> Optional[Show]:
        return self._shows.get(show_id)

    def contains(self, show_id: str) -> bool:
        return show_id in self._shows

    def all(self) -> list[Show]:
        return list(self._shows.values())

    @property
    def dirty(self) -> set[str]:
        """Shows whose latest state has not reached storage."""
        return set(self._dirty) | set(self._pending_deletes)

    def add(self, show: Show) -> Show:
        if show.id in self._shows:
            raise ValidationFailure(f"{show.id} is already in the watchlist")
        self._shows[show.id] = show
        self._pending_deletes.discard(show.id)
        self._persist(show)
        return show

    def remove(self, show_id: str) -> bool:
        if self._shows.pop(show_id, None) is None:
            return False
        self._dirty.discard(show_id)
        try:
            self.gateway.delete(show_id)
        except PersistenceFailure as e:
            logger.error(f"Failed to delete {show_id} from storage: {e}")
            self._pending_deletes.add(show_id)
        return True

    def update(self, show_id: str, change: Callable[[Show], Show]) -> Optional[Show]:
        """Atomically apply ``change`` to the current value of a show.

        Returns None, without calling ``change``, when the show is no longer
        tracked. Exceptions from ``change`` propagate and leave state intact.
        """
        current = self._shows.get(show_id)
        if current is None:
            return None
        updated = change(current)
        self._shows[show_id] = updated
        self._persist(updated)
        return updated

    def flush(self) -> int:
        """Retry storage writes that failed earlier. Returns remaining count."""
        for show_id in list(self._pending_deletes):
            try:
                self.gateway.delete(show_id)
                self._pending_deletes.discard(show_id)
            except PersistenceFailure as e:
                logger.error(f"Retrying delete of {show_id} failed: {e}")
        for show_id in list(self._dirty):
            show = self._shows.get(show_id)
            if show is None:
                self._dirty.discard(show_id)
                continue
            self._persist(show)
        return len(self.dirty)

    def _persist(self, show: Show) -> bool:
        try:
            self.gateway.upsert(show)
        except PersistenceFailure as e:
            logger.error(f"Failed to save {show.id}: {e}")
            self._dirty.add(show.id)
            return False
        self._dirty.discard(show.id)
        return True
