"""
Pytest configuration and fixtures for searchsum tests.

HTTP traffic is served by `httpx.MockTransport`; handlers may be plain or async
functions, so slow pages can be simulated with `asyncio.sleep`.
"""

import json

import httpx
import pytest

from searchsum.core.http import build_client
from searchsum.core.settings import Settings


@pytest.fixture
def settings() -> Settings:
    """Fast settings: no backoff, no search throttling, no deadline."""
    return Settings(
        search_min_interval=0.0,
        backoff_seconds=0.0,
        max_retries=1,
        deadline_seconds=None,
        max_prompt_chars=4000,
    )


@pytest.fixture
def make_client(settings):
    """Factory building an `httpx.AsyncClient` backed by a mock handler."""

    def factory(handler, client_settings=None):
        return build_client(client_settings or settings, transport=httpx.MockTransport(handler))

    return factory


def html_page(body: str, title: str = "Test Page") -> bytes:
    """Minimal HTML document used as a fetched page."""
    return (
        "<!DOCTYPE html><html><head>"
        f"<title>{title}</title><style>p {{ color: red; }}</style>"
        "</head><body>"
        f"{body}"
        "<script>console.log('tracking');</script>"
        "</body></html>"
    ).encode("utf-8")


def google_results_page(urls) -> str:
    """Google-style results page listing `urls` in rank order."""
    items = "".join(
        f'<div class="g"><div class="yuRUbf"><a href="{url}"><h3>Result {i}</h3></a></div></div>'
        for i, url in enumerate(urls, start=1)
    )
    return (
        "<html><body>"
        '<a href="/preferences">Settings</a>'
        f"<div id=\"search\">{items}</div>"
        "</body></html>"
    )


def ndjson(*objects) -> bytes:
    """Line-delimited JSON body as produced by a streaming completion backend."""
    return "".join(json.dumps(obj) + "\n" for obj in objects).encode("utf-8")
