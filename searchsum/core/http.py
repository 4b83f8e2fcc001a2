"""Shared `httpx.AsyncClient` construction.

One client is created per pipeline run and passed to the fetcher, search client,
and model client. Components constructed without a client open a short-lived one
per request, matching standalone use.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from searchsum.core.settings import Settings


BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
}


def build_client(settings: Settings, **kwargs) -> httpx.AsyncClient:
    """Create an async client with the configured timeout and headers.

    Extra keyword arguments (for example `transport=` in tests) are forwarded to
    `httpx.AsyncClient`.
    """
    headers = {**BROWSER_HEADERS, "User-Agent": settings.user_agent}
    return httpx.AsyncClient(
        timeout=settings.timeout_seconds,
        follow_redirects=True,
        headers=headers,
        **kwargs,
    )


@asynccontextmanager
async def borrow_client(
    client: httpx.AsyncClient | None,
    settings: Settings,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield `client` unchanged, or a temporary client closed on exit."""
    if client is not None:
        yield client
        return

    async with build_client(settings) as temporary:
        yield temporary
