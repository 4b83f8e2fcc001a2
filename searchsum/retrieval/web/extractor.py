"""HTML-to-text extraction for fetched pages.

Architectural role:
    Converts raw page bytes into plain text for aggregation. The extractor never
    raises: unparseable or non-HTML payloads degrade to an empty string.

Modes:
    - `visible` (default): every visible text node, in document order.
    - `readable`: main-content extraction via `trafilatura`, falling back to the
      `visible` text when trafilatura finds no content.

Determinism:
    Output depends only on the input bytes and the configured mode.
"""

from __future__ import annotations

import logging
import re

import trafilatura
from bs4 import BeautifulSoup, CData, NavigableString


logger = logging.getLogger(__name__)

_HIDDEN_TAGS = ["script", "style", "noscript", "template"]
_TAG_PATTERN = re.compile(rb"<[a-zA-Z!/?]")
_SNIFF_BYTES = 4096


class Extractor:
    """Plain-text extractor for HTML payloads."""

    def __init__(self, mode: str = "visible") -> None:
        if mode not in ("visible", "readable"):
            raise ValueError(f"Unsupported extractor mode: {mode}")
        self.mode = mode

    def extract(self, data: bytes) -> str:
        """Extract visible text from an HTML payload.

        Args:
            data: Raw response body.

        Returns:
            Whitespace-normalized text, or `""` for empty and non-HTML payloads.
        """
        if not data or not looks_like_html(data):
            return ""

        if self.mode == "readable":
            readable = self._readable_text(data)
            if readable:
                return readable

        return visible_text(data)

    @staticmethod
    def _readable_text(data: bytes) -> str:
        html = data.decode("utf-8", errors="replace")
        extracted = trafilatura.extract(
            html,
            include_comments=False,
            include_tables=False,
            include_images=False,
            include_links=False,
            favor_precision=True,
            output_format="txt",
        ) or ""
        return normalize_whitespace(extracted)


def looks_like_html(data: bytes) -> bool:
    """Cheap sniff: no NUL bytes and at least one tag-like token near the start."""
    head = data[:_SNIFF_BYTES]
    if b"\x00" in head:
        return False
    return _TAG_PATTERN.search(head) is not None


def visible_text(data: bytes) -> str:
    """Return all visible text nodes joined by single spaces.

    Script, style, noscript, and template elements are removed together with
    comments, doctype, and other declaration nodes.
    """
    soup = BeautifulSoup(data, "html.parser")

    for element in soup.find_all(_HIDDEN_TAGS):
        element.decompose()

    # Subclasses of NavigableString (Comment, Doctype, Declaration, ...) are markup.
    parts = [
        str(node)
        for node in soup.find_all(string=True)
        if type(node) in (NavigableString, CData)
    ]
    return normalize_whitespace(" ".join(parts))


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to one space and trim both ends."""
    return " ".join(text.split())
