"""RSS Relay — Feed HTTP Client.

Async httpx client for fetching feed documents, with retries on rate
limiting, server errors, timeouts and connection failures.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from rss_relay.config import FeedsConfig
from rss_relay.utils.logger import get_logger

logger = get_logger(__name__)

_ACCEPT = "application/rss+xml, application/atom+xml, application/xml;q=0.9, text/xml;q=0.8, */*;q=0.5"


class FeedClient:
    """Fetches raw feed text over HTTP.

    Attributes:
        config: Feed fetching settings.
        total_requests: Successful requests this session.
    """

    def __init__(
        self,
        config: FeedsConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.config.user_agent, "Accept": _ACCEPT},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.request_timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def fetch(self, url: str) -> Optional[str]:
        """Fetch a feed document.

        Retry strategy:
          - 429 Too Many Requests: wait Retry-After (default 30s) then retry
          - 5xx Server Error: wait 5s × attempt then retry
          - Timeout / connection error: wait 3s × attempt then retry
          - other 4xx: give up immediately

        Args:
            url: Feed URL.

        Returns:
            The response body, or None if every attempt failed.
        """
        client = await self._get_client()
        max_retries = max(1, self.config.max_retries)

        for attempt in range(1, max_retries + 1):
            try:
                resp = await client.get(url)

                if resp.status_code == 429:
                    wait = _retry_after(resp, default=30)
                    logger.warning(
                        "Rate limited (429) by %s on attempt %d/%d. Waiting %ds...",
                        url, attempt, max_retries, wait,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(wait)
                    continue

                if resp.status_code >= 500:
                    wait = 5 * attempt
                    logger.warning(
                        "Server error %d from %s on attempt %d/%d",
                        resp.status_code, url, attempt, max_retries,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                self.total_requests += 1
                return resp.text

            except httpx.HTTPStatusError as e:
                logger.error("HTTP error %d for %s", e.response.status_code, url)
                return None

            except (httpx.TimeoutException, httpx.TransportError) as e:
                logger.warning(
                    "Fetching %s failed on attempt %d/%d: %s",
                    url, attempt, max_retries, e,
                )
                if attempt < max_retries:
                    await asyncio.sleep(3 * attempt)

        logger.error("All %d attempts failed for %s", max_retries, url)
        return None

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "FeedClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _retry_after(resp: httpx.Response, default: int) -> int:
    try:
        return int(resp.headers.get("Retry-After", default))
    except ValueError:
        return default
