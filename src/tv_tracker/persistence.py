"""Persistence gateways for the watchlist."""

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .errors import PersistenceFailure
from .models import Show
from .seasons import group_into_seasons

logger = logging.getLogger(__name__)

STORAGE_VERSION = 1


class PersistenceGateway(Protocol):
    """Authoritative storage for tracked shows."""

    def load_all(self) -> list[Show]: ...

    def upsert(self, show: Show) -> None: ...

    def delete(self, show_id: str) -> None: ...


def serialize_show(show: Show) -> dict:
    """Dump a show for storage. Seasons are derived and not stored."""
    return show.model_dump(mode="json", exclude={"seasons"})


def deserialize_show(data: dict) -> Show:
    """Load a stored show and rebuild its season view."""
    show = Show.model_validate(data)
    return show.model_copy(update={"seasons": group_into_seasons(show.episodes)})


class MemoryPersistence:
    """Dict-backed gateway, keeps serialized copies like a real store would."""

    def __init__(self):
        self.data: dict[str, dict] = {}

    def load_all(self) -> list[Show]:
        return [deserialize_show(data) for data in self.data.values()]

    def upsert(self, show: Show) -> None:
        self.data[show.id] = serialize_show(show)

    def delete(self, show_id: str) -> None:
        self.data.pop(show_id, None)


class JsonFilePersistence:
    """Stores the whole watchlist in one JSON document."""

    def __init__(self, path: Path):
        """Initialize gateway with file path."""
        self.path = Path(path)
        self.data = None

    def _load(self) -> dict:
        """Load the document from disk, or start an empty one."""
        if not self.path.exists():
            return {"version": STORAGE_VERSION, "shows": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Failed to read {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("shows"), dict):
            raise PersistenceFailure(f"Unrecognized watchlist format in {self.path}")
        return data

    def _document(self) -> dict:
        if self.data is None:
            self.data = self._load()
        return self.data

    def _save(self) -> None:
        """Write the document atomically (temp file, then replace)."""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.data, f, indent=2)
            tmp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Failed to write {self.path}: {e}") from e
        logger.debug(f"Watchlist saved to {self.path}")

    def load_all(self) -> list[Show]:
        shows = []
        for show_id, data in self._document()["shows"].items():
            try:
                shows.append(deserialize_show(data))
            except ValidationError as e:
                raise PersistenceFailure(f"Stored show {show_id} is invalid: {e}") from e
        logger.info(f"Loaded {len(shows)} shows from {self.path}")
        return shows

    def upsert(self, show: Show) -> None:
        self._document()["shows"][show.id] = serialize_show(show)
        self._save()

    def delete(self, show_id: str) -> None:
        # Save even when the id is already gone from the cached document:
        # an earlier failed save may have left it on disk
        self._document()["shows"].pop(show_id, None)
        self._save()
