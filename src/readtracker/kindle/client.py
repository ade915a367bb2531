"""Client for the Kindle library service.

The service wraps the Kindle web reader: given session cookies and a device
token it returns the library with per-book progress. Requests may be routed
through a TLS-fingerprinting proxy whose URL is passed along with the
credentials.

Response shape::

    {"books": [{"asin": "...", "title": "...", "author": "...",
                "percentComplete": 42.4, "lastOpenedAt": "...",
                "coverUrl": "..."}]}

Items may carry ``authors`` as a list of ``{firstName, lastName}`` objects
instead of a flat ``author`` string.
"""

from typing import Any, Optional, Protocol

import requests
from pydantic import ValidationError

from ..config import get_config
from ..db.schemas import KindleBookSnapshot, KindleCredentials
from ..logging_config import get_logger
from .errors import KindleAuthError, KindleConnectionError, KindleTimeoutError

logger = get_logger(__name__)


class LibraryFetcher(Protocol):
    """Anything that can fetch the current Kindle library."""

    def fetch_library(
        self, credentials: KindleCredentials, proxy_url: Optional[str] = None
    ) -> list[KindleBookSnapshot]: ...


def format_authors(authors: Any) -> str:
    """Join ``{firstName, lastName}`` author objects into one display string."""
    if not isinstance(authors, list) or not authors:
        return "Unknown"
    names = []
    for author in authors:
        if isinstance(author, dict):
            parts = [author.get("firstName"), author.get("lastName")]
            names.append(" ".join(p for p in parts if p) or "Unknown")
        elif author:
            names.append(str(author))
    return ", ".join(names) or "Unknown"


def parse_library_item(item: dict) -> KindleBookSnapshot:
    """Convert one raw library item into a snapshot entry.

    Raises:
        ValidationError: If the item lacks an ASIN or title
    """
    data = dict(item)
    if not data.get("author"):
        data["author"] = format_authors(data.pop("authors", None))
    if "coverUrl" not in data and data.get("imageUrl"):
        data["coverUrl"] = data["imageUrl"]
    return KindleBookSnapshot.model_validate(data)


class KindleLibraryClient:
    """Client for the Kindle library service."""

    def __init__(
        self,
        service_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize client.

        Args:
            service_url: Library service endpoint (defaults to config)
            timeout: Request timeout in seconds (defaults to config)
            session: Optional requests session, mainly for tests
        """
        config = get_config()
        self.service_url = service_url or config.kindle_service_url
        self.timeout = timeout if timeout is not None else config.fetch_timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": "readtracker/0.1"})

    def _post(self, payload: dict) -> dict:
        """Make POST request with error handling."""
        try:
            response = self._session.post(
                self.service_url, json=payload, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise KindleTimeoutError(
                f"Kindle library request timed out after {self.timeout:g}s"
            )
        except requests.exceptions.RequestException as e:
            raise KindleConnectionError(f"Failed to reach Kindle library service: {e}")

        if response.status_code == 401:
            raise KindleAuthError()
        if not response.ok:
            raise KindleConnectionError(
                self._error_message(response), status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError:
            raise KindleConnectionError("Kindle library service returned invalid JSON")

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Sync failed (HTTP {response.status_code})"

    def fetch_library(
        self, credentials: KindleCredentials, proxy_url: Optional[str] = None
    ) -> list[KindleBookSnapshot]:
        """Fetch the current library.

        Args:
            credentials: Stored cookie string and device token
            proxy_url: Optional TLS proxy the service should route through

        Returns:
            One snapshot entry per library item; malformed items are skipped

        Raises:
            KindleAuthError: Credentials were rejected
            KindleTimeoutError: The request exceeded the timeout
            KindleConnectionError: Any other transport or service failure
        """
        payload: dict[str, Any] = {
            "cookies": credentials.cookies,
            "deviceToken": credentials.device_token,
        }
        if proxy_url:
            payload["tlsClientApiUrl"] = proxy_url

        logger.info(
            "Fetching Kindle library",
            url=self.service_url,
            device_token=credentials.device_token[:10] + "...",
            via_proxy=bool(proxy_url),
        )
        data = self._post(payload)
        if not isinstance(data, dict):
            raise KindleConnectionError("Kindle library service returned an unexpected response")

        items = data.get("books") or []
        if not isinstance(items, list):
            raise KindleConnectionError("Kindle library service returned a malformed book list")

        books: list[KindleBookSnapshot] = []
        for item in items:
            try:
                books.append(parse_library_item(item))
            except (ValidationError, TypeError, ValueError) as e:
                asin = item.get("asin") if isinstance(item, dict) else None
                logger.warning("Skipping malformed library item", asin=asin, error=str(e))

        logger.info("Fetched Kindle library", books=len(books))
        return books
