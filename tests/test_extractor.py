"""
Unit tests for HTML text extraction
"""

import pytest

import searchsum.retrieval.web.extractor as extractor_module
from searchsum.retrieval.web.extractor import Extractor, looks_like_html, normalize_whitespace


PAGE = (
    b"<!DOCTYPE html><html><head><title>Test Page</title>"
    b"<style>body { color: red; }</style></head>"
    b"<body><!-- hidden note --><h1>Hello</h1>"
    b"<p>This is   a\n\t test.</p>"
    b"<script>var x = 1;</script><noscript>Enable JS</noscript>"
    b"</body></html>"
)


class TestVisibleExtraction:
    """Test cases for the default `visible` mode"""

    def test_drops_script_style_and_comments(self):
        text = Extractor().extract(PAGE)

        assert text == "Test Page Hello This is a test."
        assert "var x" not in text
        assert "color" not in text
        assert "hidden note" not in text
        assert "Enable JS" not in text

    def test_is_deterministic(self):
        """Identical bytes give identical output across calls and instances"""
        first = Extractor().extract(PAGE)
        second = Extractor().extract(PAGE)
        third = Extractor().extract(bytes(PAGE))

        assert first == second == third

    def test_malformed_html_is_best_effort(self):
        text = Extractor().extract(b"<div><p>Unclosed <b>bold</div></span> tail")

        assert text == "Unclosed bold tail"

    @pytest.mark.parametrize(
        "payload",
        [
            b"",
            b"%PDF-1.4\x00\x01\x02binary",
            b'{"key": "value"}',
            b"just some plain text without markup",
        ],
    )
    def test_non_html_payloads_degrade_to_empty(self, payload):
        assert Extractor().extract(payload) == ""

    def test_non_utf8_bytes_do_not_raise(self):
        text = Extractor().extract(b"<p>caf\xe9 \xff\xfe ok</p>")

        assert "ok" in text

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError):
            Extractor("fancy")


class TestReadableExtraction:
    """Test cases for the trafilatura-backed `readable` mode"""

    def test_uses_trafilatura_output(self, monkeypatch):
        calls = []

        def fake_extract(html, **kwargs):
            calls.append(kwargs)
            return "Main   article\n\ncontent"

        monkeypatch.setattr(extractor_module.trafilatura, "extract", fake_extract)

        assert Extractor("readable").extract(PAGE) == "Main article content"
        assert calls and calls[0]["include_comments"] is False

    def test_falls_back_to_visible_text(self, monkeypatch):
        monkeypatch.setattr(extractor_module.trafilatura, "extract", lambda html, **kwargs: None)

        assert Extractor("readable").extract(PAGE) == "Test Page Hello This is a test."


def test_looks_like_html():
    assert looks_like_html(b"<html><body>x</body></html>")
    assert looks_like_html(b"  <!doctype html>")
    assert not looks_like_html(b"a < b and c > d")
    assert not looks_like_html(b"<p>\x00</p>")


def test_normalize_whitespace():
    assert normalize_whitespace("  a \n\n b\t\tc  ") == "a b c"
