"""
PuppetDB Client

Thin wrapper around a requests Session for the PuppetDB query API.
Every failure (network error, non-2xx status, body that is not JSON) is
raised as TransportFailure; the caller decides whether it is fatal.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import ConnectionConfig
from .queries import Query

logger = logging.getLogger(__name__)


class TransportFailure(Exception):
    """A PuppetDB request did not produce a usable response."""

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: Optional[int] = None,
        body: str = "",
    ):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        self.body = body
        super().__init__(f"{url}: {self.status}")

    @property
    def status(self) -> str:
        """Response code and reason, or the network error text."""
        if self.status_code is None:
            return self.reason
        return f"{self.status_code} {self.reason}".strip()

    @property
    def detail(self) -> str:
        """Response body when the server sent one, otherwise the status."""
        return self.body.strip() or self.status


class PuppetDBClient:
    """
    PuppetDB query API client.

    Uses plain GET requests with query parameters; results are JSON arrays.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10,
        verify: bool = True,
    ):
        self.base_url = base_url.rstrip("/") + "/"
        self.timeout = timeout
        self._session = requests.Session()
        self._session.verify = verify
        self._session.headers.update({"Accept": "application/json"})

    @classmethod
    def from_config(cls, connection: ConnectionConfig) -> "PuppetDBClient":
        return cls(
            connection.base_url,
            timeout=connection.timeout,
            verify=not connection.insecure,
        )

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        """GET a path relative to the base URL and return the decoded JSON."""
        url = self.base_url + path.lstrip("/")
        logger.debug("GET %s params=%s", url, params)

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Request to %s failed: %s", url, e)
            raise TransportFailure(url, str(e)) from e

        if not response.ok:
            logger.error("PuppetDB returned HTTP %s for %s", response.status_code, url)
            raise TransportFailure(
                url,
                response.reason or "",
                status_code=response.status_code,
                body=response.text or "",
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(
                url,
                f"invalid JSON in response: {e}",
                status_code=response.status_code,
                body=response.text or "",
            ) from e

    def query(self, path: str, query: Query) -> List[Dict[str, Any]]:
        """Run a query and return its result rows."""
        result = self.get(path, params=query.to_params())
        if not isinstance(result, list):
            raise TransportFailure(
                self.base_url + path,
                f"expected a JSON array, got {type(result).__name__}",
            )
        return result

    def close(self) -> None:
        self._session.close()
