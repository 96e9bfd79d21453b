"""TVmaze API client (episode source)."""

import logging
import re
from typing import Optional

import requests
from pydantic import ValidationError

from .base_client import BaseAPIClient
from .constants import DEFAULT_TIMEOUT_SECONDS, SOURCE_BASE_URL
from .errors import SourceUnavailable
from .models import Episode, ShowMetadata

logger = logging.getLogger(__name__)

_HTML_TAG_RE = re.compile(r"<[^>]*>")


def strip_html(text: Optional[str]) -> Optional[str]:
    """Remove HTML tags from source summaries."""
    if not text:
        return None
    return _HTML_TAG_RE.sub("", text).strip() or None


class TVMazeClient(BaseAPIClient):
    """Client for the public TVmaze REST API."""

    BASE_URL = SOURCE_BASE_URL

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize TVmaze client."""
        headers = {"User-Agent": user_agent} if user_agent else None
        super().__init__(
            base_url=base_url or self.BASE_URL,
            timeout=timeout,
            headers=headers,
            session=session,
        )

    def search_shows(self, query: str) -> list[ShowMetadata]:
        """Search the catalog by title."""
        data = self._get_json("/search/shows", params={"q": query})
        try:
            results = [self._parse_show(item.get("show") or {}) for item in data or []]
        except (ValidationError, AttributeError, TypeError) as e:
            raise SourceUnavailable(f"Malformed search results from TVmaze: {e}") from e
        logger.info(f"Found {len(results)} shows matching '{query}'")
        return results

    def get_show(self, source_id: int) -> ShowMetadata:
        """Fetch show metadata, raising ShowNotFound for unknown ids."""
        data = self._get_json(
            f"/shows/{source_id}",
            not_found_message=f"No show with id {source_id} on TVmaze",
        )
        try:
            return self._parse_show(data)
        except (ValidationError, AttributeError, TypeError) as e:
            raise SourceUnavailable(f"Malformed show {source_id} from TVmaze: {e}") from e

    def get_episodes(self, source_id: int) -> list[Episode]:
        """Fetch the complete current episode list for a show.

        An empty list means the show has no published episodes; transport
        and HTTP failures, and payloads that do not parse, raise
        SourceUnavailable instead.
        """
        data = self._get_json(
            f"/shows/{source_id}/episodes",
            not_found_message=f"No show with id {source_id} on TVmaze",
        )
        try:
            episodes = [self._parse_episode(item) for item in data or []]
        except (ValidationError, AttributeError, TypeError) as e:
            raise SourceUnavailable(f"Malformed episodes for show {source_id} from TVmaze: {e}") from e
        logger.debug(f"Fetched {len(episodes)} episodes for show {source_id}")
        return episodes

    def _parse_show(self, show: dict) -> ShowMetadata:
        """Parse a TVmaze show to the common metadata model."""
        premiered = show.get("premiered")
        network = show.get("network") or {}
        web_channel = show.get("webChannel") or {}
        image = show.get("image") or {}
        rating = show.get("rating") or {}

        return ShowMetadata(
            source_id=show.get("id"),
            title=show.get("name") or "",
            year=premiered[:4] if premiered else None,
            platform=network.get("name") or web_channel.get("name"),
            genres=show.get("genres") or [],
            status=show.get("status"),
            poster=image.get("medium"),
            rating=rating.get("average"),
            summary=strip_html(show.get("summary")),
            language=show.get("language"),
            runtime=show.get("runtime"),
            premiered=premiered,
            official_site=show.get("officialSite"),
            source_url=show.get("url"),
        )

    def _parse_episode(self, item: dict) -> Episode:
        """Parse a TVmaze episode to the common model."""
        return Episode(
            id=item.get("id"),
            season=item.get("season"),
            number=item.get("number"),
            title=item.get("name") or "",
            air_date=item.get("airdate"),
            air_time=item.get("airtime"),
            runtime=item.get("runtime"),
            summary=strip_html(item.get("summary")),
        )
