"""
Page fetching for the harvester.

The harvester only depends on the ``PageFetcher`` protocol; ``HttpPageFetcher``
is the default implementation on top of httpx.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import urlencode

import httpx

from ..config import HarvestConfig

logger = logging.getLogger(__name__)


class HarvestError(Exception):
    """Base class for harvest failures."""


class FetchError(HarvestError):
    """A page could not be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class PageFetcher(Protocol):
    """Returns the rendered content of a page, or raises FetchError."""

    async def fetch(self, url: str) -> str:
        ...


def listing_url(base_url: str, root_id: str, offset: int, page_size: int) -> str:
    """Build the URL of one listing page of a profile."""
    query = urlencode(
        {"user": root_id, "hl": "en", "cstart": offset, "pagesize": page_size}
    )
    return f"{base_url.rstrip('/')}/citations?{query}"


class HttpPageFetcher:
    """Fetches pages over HTTP with a shared connection pool.

    The pool is sized to the harvest concurrency so every concurrent task
    gets its own connection.
    """

    def __init__(
        self,
        config: Optional[HarvestConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or HarvestConfig()
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.fetch_timeout,
                follow_redirects=True,
                headers={
                    "User-Agent": self.config.user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                    "Accept-Language": "en",
                },
                limits=httpx.Limits(
                    max_connections=self.config.max_concurrency + 1,
                    max_keepalive_connections=self.config.max_concurrency,
                ),
            )
        return self._client

    async def fetch(self, url: str) -> str:
        client = self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

        logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
        return response.text

    async def aclose(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpPageFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
