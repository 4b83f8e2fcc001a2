"""Single-URL HTTP fetcher with a bounded retry policy.

Architectural role:
    Leaf component of the web retrieval layer. Returns raw response bytes for one
    URL, or raises a typed `FetchError`. Used by the aggregator for page fetches
    and, in single-attempt mode, by the search client.

Retry policy:
    - Transient transport failures (connect/read/write errors, timeouts) are
      retried up to `Settings.max_retries` times with exponential backoff.
    - HTTP 4xx/5xx statuses are never retried; they raise `HttpStatusError`.
    - Malformed URLs raise `InvalidUrl` without any network I/O.
    - Any other httpx error (redirect loop, undecodable body) raises
      `NetworkError` immediately.

Cancellation:
    Every await is an httpx call or a backoff sleep, so cancelling the calling task
    stops the fetch immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from searchsum.core.errors import HttpStatusError, InvalidUrl, NetworkError
from searchsum.core.http import borrow_client
from searchsum.core.settings import Settings


logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


class Fetcher:
    """HTTP GET with timeout and transient-failure retries."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self.settings = settings
        self.client = client

    async def fetch(self, url: str) -> bytes:
        """Fetch one URL and return the response body.

        Args:
            url: Absolute HTTP(S) URL.

        Returns:
            Raw response bytes (possibly empty).

        Raises:
            InvalidUrl: `url` is not a usable HTTP(S) URL.
            HttpStatusError: The server answered with a non-2xx status.
            NetworkError: Transient failures persisted after all retries, or a
                non-retryable transport error occurred.
        """
        attempts = self.settings.max_retries + 1

        for attempt in range(attempts):
            try:
                response = await self._request(url)
            except _TRANSIENT_ERRORS as exc:
                if attempt < attempts - 1:
                    delay = self._backoff(attempt)
                    logger.debug(
                        "Transient error for %s (attempt %d/%d): %s; retrying in %.2fs",
                        url, attempt + 1, attempts, exc, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise NetworkError(
                    url, f"Network error after {attempts} attempt(s) for {url}: {type(exc).__name__}"
                ) from exc
            except httpx.HTTPError as exc:
                # Redirect loops, bad content encoding, proxy and protocol errors.
                raise NetworkError(url, f"Request to {url} failed: {type(exc).__name__}") from exc

            return response.content

        # Unreachable: the loop either returns or raises.
        raise NetworkError(url, f"Request failed without error details for {url}")

    async def fetch_once(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        """Perform exactly one GET attempt and return the successful response.

        Raises:
            InvalidUrl: `url` is not a usable HTTP(S) URL.
            HttpStatusError: Non-2xx status.
            NetworkError: Any transport-level failure.
        """
        try:
            return await self._request(url, params=params)
        except httpx.HTTPError as exc:
            raise NetworkError(url, f"Request to {url} failed: {type(exc).__name__}") from exc

    async def _request(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        if not is_http_url(url):
            raise InvalidUrl(url, f"Invalid URL: {url!r}")

        try:
            async with borrow_client(self.client, self.settings) as client:
                response = await client.get(
                    url,
                    params=params,
                    timeout=self.settings.timeout_seconds,
                )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise InvalidUrl(url, f"Invalid URL: {url!r}") from exc

        if response.is_error:
            raise HttpStatusError(url, response.status_code)

        logger.debug("Fetched %s: status=%d bytes=%d", url, response.status_code, len(response.content))
        return response

    def _backoff(self, attempt: int) -> float:
        """Compute exponential backoff delay for a retry attempt."""
        return self.settings.backoff_seconds * (2 ** attempt)


def is_http_url(url: str) -> bool:
    """Return whether a URL is syntactically valid HTTP(S)."""
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
