"""
Unit tests for the page fetcher retry policy
"""

import httpx
import pytest

from searchsum.core.errors import ErrorKind, HttpStatusError, InvalidUrl, NetworkError
from searchsum.retrieval.web.fetcher import Fetcher, is_http_url


class TestFetcher:
    """Test cases for Fetcher"""

    @pytest.mark.asyncio
    async def test_fetch_returns_body_bytes(self, settings, make_client):
        """Successful fetch returns the raw body"""
        def handler(request):
            return httpx.Response(200, content=b"<p>hello</p>")

        async with make_client(handler) as client:
            body = await Fetcher(settings, client).fetch("https://example.com/page")

        assert body == b"<p>hello</p>"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [403, 404, 500, 503])
    async def test_http_status_is_not_retried(self, settings, make_client, status):
        """4xx/5xx statuses surface immediately as HttpStatusError"""
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(status)

        async with make_client(handler) as client:
            with pytest.raises(HttpStatusError) as excinfo:
                await Fetcher(settings, client).fetch("https://example.com/page")

        assert excinfo.value.status_code == status
        assert excinfo.value.kind is ErrorKind.HTTP_STATUS_ERROR
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transient_error_is_retried_once(self, settings, make_client):
        """A connection error followed by success yields the body"""
        calls = []

        def handler(request):
            calls.append(request.url)
            if len(calls) == 1:
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, content=b"ok")

        async with make_client(handler) as client:
            body = await Fetcher(settings, client).fetch("https://example.com/page")

        assert body == b"ok"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_network_error(self, settings, make_client):
        """Persistent timeouts raise NetworkError after max_retries + 1 attempts"""
        calls = []

        def handler(request):
            calls.append(request.url)
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError) as excinfo:
                await Fetcher(settings, client).fetch("https://example.com/slow")

        assert len(calls) == settings.max_retries + 1
        assert isinstance(excinfo.value.__cause__, httpx.ReadTimeout)
        assert excinfo.value.url == "https://example.com/slow"

    @pytest.mark.asyncio
    async def test_zero_retries_makes_single_attempt(self, settings, make_client):
        """max_retries=0 disables retrying"""
        calls = []

        def handler(request):
            calls.append(request.url)
            raise httpx.ConnectError("refused", request=request)

        no_retry = settings.replace(max_retries=0)
        async with make_client(handler, no_retry) as client:
            with pytest.raises(NetworkError):
                await Fetcher(no_retry, client).fetch("https://example.com/page")

        assert len(calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["", "not a url", "ftp://example.com/file", "https://", "javascript:alert(1)"])
    async def test_invalid_url_never_hits_network(self, settings, make_client, url):
        """Malformed input raises InvalidUrl without a request"""
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200)

        async with make_client(handler) as client:
            with pytest.raises(InvalidUrl):
                await Fetcher(settings, client).fetch(url)

        assert calls == []

    @pytest.mark.asyncio
    async def test_fetch_once_does_not_retry(self, settings, make_client):
        """Single-attempt mode maps transport errors to NetworkError"""
        calls = []

        def handler(request):
            calls.append(request.url)
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError):
                await Fetcher(settings, client).fetch_once("https://example.com/search", params={"q": "x"})

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_once_forwards_params(self, settings, make_client):
        """Query parameters are URL-encoded onto the request"""
        seen = {}

        def handler(request):
            seen["q"] = request.url.params.get("q")
            return httpx.Response(200, text="<html></html>")

        async with make_client(handler) as client:
            response = await Fetcher(settings, client).fetch_once(
                "https://example.com/search", params={"q": "rust programming"}
            )

        assert response.status_code == 200
        assert seen["q"] == "rust programming"


def test_is_http_url():
    assert is_http_url("https://example.com/a")
    assert is_http_url("http://example.com")
    assert not is_http_url("mailto:someone@example.com")
    assert not is_http_url("/relative/path")


class TestNonRetryableTransportErrors:
    """httpx errors outside the transient set still surface as typed fetch errors"""

    @pytest.mark.asyncio
    async def test_redirect_loop_is_network_error(self, settings, make_client):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(302, headers={"Location": str(request.url)})

        async with make_client(handler) as client:
            with pytest.raises(NetworkError) as excinfo:
                await Fetcher(settings, client).fetch("https://loop.test/")

        assert isinstance(excinfo.value.__cause__, httpx.TooManyRedirects)
        assert excinfo.value.kind is ErrorKind.NETWORK_ERROR
        # One redirect chain only: the loop is not retried.
        assert len(calls) == client.max_redirects + 1

    @pytest.mark.asyncio
    async def test_undecodable_body_is_network_error(self, settings, make_client):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all")

        async with make_client(handler) as client:
            with pytest.raises(NetworkError) as excinfo:
                await Fetcher(settings, client).fetch("https://broken-gzip.test/")

        assert isinstance(excinfo.value.__cause__, httpx.DecodingError)
        assert len(calls) == 1
