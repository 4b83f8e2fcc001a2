"""Search provider client returning ranked result URLs.

Architectural role:
    Issues one HTML search request through the fetcher and parses the results page
    into an ordered `SearchResult`. No retries happen at this layer; callers own the
    retry policy.

Retrieval strategy:
    1. Build the provider URL with the URL-encoded query.
    2. Single GET via `Fetcher.fetch_once`, spaced by `search_min_interval`.
    3. Parse anchors with BeautifulSoup, trying provider selectors in order so
       markup changes degrade to older selectors instead of failing. Google
       selectors always require a result container or `data-ved` anchor, so
       footer and ad links are never ranked.
    4. Unwrap provider redirect links, drop provider-internal URLs.
    5. De-duplicate in first-seen order and cap at `limit`.

Ranking:
    Provider order is preserved. No scoring is computed.

Failure model:
    - `ProviderUnavailable`: endpoint unreachable or non-2xx response.
    - `ProviderMalformedResponse`: body is not a parseable results page.
    - A parsed page without usable result links is a valid empty result.
"""

from __future__ import annotations

import asyncio
import logging
import time
from urllib.parse import parse_qs, urlparse

import httpx
from bs4 import BeautifulSoup

from searchsum.core.errors import FetchError, ProviderMalformedResponse, ProviderUnavailable
from searchsum.core.settings import DEFAULT_RESULT_COUNT, Settings
from searchsum.core.types import SearchResult
from searchsum.retrieval.web.fetcher import Fetcher


logger = logging.getLogger(__name__)


PROVIDERS = {
    "google": {
        "url": "https://www.google.com/search",
        "selectors": (
            "div.g div.yuRUbf > a",
            "div.tF2Cxc > div.yuRUbf > a",
            "div.g a[href]",
            "div.rc > a",
            "div.r > a",
            "a[data-ved]",
        ),
        "internal": (
            "google.com/search",
            "google.com/url",
            "google.com/imgres",
            "accounts.google",
            "support.google",
            "policies.google",
            "maps.google",
            "webcache.googleusercontent",
            "/preferences",
            "/settings",
            "/advanced_search",
            "/setprefs",
        ),
    },
    "duckduckgo": {
        "url": "https://html.duckduckgo.com/html/",
        "selectors": (
            "a.result__a",
            "h2.result__title > a",
            "a[href]",
        ),
        "internal": (
            "duckduckgo.com/y.js",
            "duckduckgo.com/?",
            "duckduckgo.com/html",
            "duck.co/",
        ),
    },
}


class SearchClient:
    """HTML search-page client for the configured provider."""

    def __init__(self, settings: Settings, fetcher: Fetcher) -> None:
        self.settings = settings
        self.fetcher = fetcher
        self.provider = PROVIDERS[settings.search_provider]
        self._throttle_lock = asyncio.Lock()
        self._last_request_at: float | None = None

    async def search(self, query: str, limit: int = DEFAULT_RESULT_COUNT) -> SearchResult:
        """Search the provider and return up to `limit` ranked URLs.

        Args:
            query: Free-text search query.
            limit: Maximum number of URLs, at least 1.

        Returns:
            `SearchResult` in provider rank order, possibly shorter than `limit`.

        Raises:
            ValueError: `limit < 1` or blank query.
            ProviderUnavailable: The endpoint is unreachable or rejected the call.
            ProviderMalformedResponse: The body could not be parsed into links.
        """
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        query = query.strip()
        endpoint = self.settings.search_endpoint or self.provider["url"]

        await self._throttle()

        logger.debug("Searching %s for %r (limit=%d)", endpoint, query, limit)
        try:
            response = await self.fetcher.fetch_once(endpoint, params=self._params(query, limit))
        except FetchError as exc:
            raise ProviderUnavailable(f"Search provider unavailable: {exc}") from exc

        urls = self.parse_results(response.text, limit)
        logger.info("Search for %r returned %d URL(s)", query, len(urls))
        return SearchResult(query=query, urls=tuple(urls))

    def _params(self, query: str, limit: int) -> dict[str, str]:
        if self.settings.search_provider == "duckduckgo":
            return {"q": query}
        return {"q": query, "hl": "en", "num": str(limit)}

    async def _throttle(self) -> None:
        """Space provider calls at least `search_min_interval` seconds apart."""
        interval = self.settings.search_min_interval
        async with self._throttle_lock:
            if self._last_request_at is not None and interval > 0:
                wait = self._last_request_at + interval - time.monotonic()
                if wait > 0:
                    logger.debug("Search throttled for %.2fs", wait)
                    await asyncio.sleep(wait)
            self._last_request_at = time.monotonic()

    def parse_results(self, page: str, limit: int) -> list[str]:
        """Extract ranked result URLs from a provider results page.

        Raises:
            ProviderMalformedResponse: No anchors at all could be parsed.
        """
        if not page or not page.strip():
            raise ProviderMalformedResponse("Search provider returned an empty body")

        soup = BeautifulSoup(page, "html.parser")
        if soup.find("a") is None:
            raise ProviderMalformedResponse("Search results page contains no links")

        for selector in self.provider["selectors"]:
            urls = self._collect(soup, selector, limit)
            if urls:
                logger.debug("Selector %r matched %d URL(s)", selector, len(urls))
                return urls

        logger.warning("No result links found in search page")
        return []

    def _collect(self, soup: BeautifulSoup, selector: str, limit: int) -> list[str]:
        out: list[str] = []
        seen: set[str] = set()

        for link in soup.select(selector):
            href = link.get("href")
            if not href:
                continue
            url = self.unwrap_redirect(href)
            if url is None or not self._is_result_url(url) or url in seen:
                continue
            seen.add(url)
            out.append(url)
            if len(out) >= limit:
                break

        return out

    @staticmethod
    def unwrap_redirect(href: str) -> str | None:
        """Resolve provider redirect links to their target URL.

        Handles Google `/url?q=<target>` and DuckDuckGo `/l/?uddg=<target>`
        links. Absolute URLs are returned unchanged; other relative links are
        provider-internal and yield `None`.
        """
        href = href.strip()
        if href.startswith("//"):
            href = "https:" + href

        parsed = urlparse(href)
        if parsed.path in ("/url", "/l/") or "/url?" in href:
            params = parse_qs(parsed.query)
            for key in ("q", "url", "uddg"):
                values = params.get(key)
                if values and values[0].startswith("http"):
                    return values[0]
            return None

        if href.startswith("http"):
            return href
        return None

    def _is_result_url(self, url: str) -> bool:
        if not url.startswith("https://"):
            return False
        if any(pattern in url for pattern in self.provider["internal"]):
            return False
        try:
            return bool(httpx.URL(url).host)
        except httpx.InvalidURL:
            return False
