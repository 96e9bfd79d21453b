"""Base API client with common functionality."""

import logging
from typing import Optional

import requests

from .constants import DEFAULT_TIMEOUT_SECONDS, HTTP_NOT_FOUND
from .errors import ShowNotFound, SourceUnavailable

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """Base class for API clients with common request handling.

    Requests are sent once. Retrying is left to the caller, which knows
    whether a failure should be retried on the next refresh cycle.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        headers: Optional[dict] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize API client with a base URL."""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

        default_headers = {"Accept": "application/json"}
        if headers:
            default_headers.update(headers)

        self.session.headers.update(default_headers)

    def _get_json(self, path: str, params: Optional[dict] = None, not_found_message: Optional[str] = None):
        """GET a JSON document, mapping failures onto the tracker's errors.

        When ``not_found_message`` is given a 404 raises ``ShowNotFound``,
        otherwise any non-2xx status raises ``SourceUnavailable``.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Request to {url} failed: {e}")
            raise SourceUnavailable(f"Could not reach {url}: {e}") from e

        if response.status_code == HTTP_NOT_FOUND and not_found_message:
            raise ShowNotFound(not_found_message)

        if not response.ok:
            logger.error(f"Source API error: {response.status_code} for {url}")
            raise SourceUnavailable(f"HTTP {response.status_code} from {url}")

        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailable(f"Invalid JSON from {url}") from e
