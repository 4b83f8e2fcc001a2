"""Error taxonomy shared by every pipeline stage.

Architectural role:
    Gives each failure mode a concrete exception class tagged with an `ErrorKind`.
    Fetch-level errors are caught and isolated inside the aggregator; every other
    kind surfaces as the terminal `Failed(kind)` state of `searchsum.core.engine`.

Cause chains:
    Low-level `httpx` exceptions are chained with `raise ... from exc`. Use
    `describe_cause_chain` to render the chain as one human-readable line.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Stable failure identifiers reported by the pipeline and the CLI."""

    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    PROVIDER_MALFORMED_RESPONSE = "ProviderMalformedResponse"
    INVALID_URL = "InvalidUrl"
    NETWORK_ERROR = "NetworkError"
    HTTP_STATUS_ERROR = "HttpStatusError"
    EMPTY_CONTENT = "EmptyContent"
    MODEL_UNREACHABLE = "ModelUnreachable"
    MODEL_RESPONSE_ERROR = "ModelResponseError"
    ALL_FETCHES_FAILED = "AllFetchesFailed"
    TIMEOUT = "Timeout"

    def __str__(self) -> str:
        return self.value


class SearchSumError(Exception):
    """Base class for all searchsum errors."""

    kind: ErrorKind


# Search provider


class ProviderUnavailable(SearchSumError):
    """Raised when the search endpoint cannot be reached or rejects the request."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class ProviderMalformedResponse(SearchSumError):
    """Raised when a search results page cannot be parsed into URLs."""

    kind = ErrorKind.PROVIDER_MALFORMED_RESPONSE


# Page fetching


class FetchError(SearchSumError):
    """Base class for per-URL fetch failures."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class InvalidUrl(FetchError):
    kind = ErrorKind.INVALID_URL


class NetworkError(FetchError):
    kind = ErrorKind.NETWORK_ERROR


class HttpStatusError(FetchError):
    kind = ErrorKind.HTTP_STATUS_ERROR

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"HTTP {status_code} for {url}")
        self.status_code = status_code


# Model backend


class ModelUnreachable(SearchSumError):
    """Raised when the completion service cannot be contacted."""

    kind = ErrorKind.MODEL_UNREACHABLE


class ModelResponseError(SearchSumError):
    """Raised on error statuses and malformed or incomplete completion payloads."""

    kind = ErrorKind.MODEL_RESPONSE_ERROR


# Pipeline


class AllFetchesFailed(SearchSumError):
    kind = ErrorKind.ALL_FETCHES_FAILED


class PipelineTimeout(SearchSumError):
    kind = ErrorKind.TIMEOUT


def describe_cause_chain(exc: BaseException) -> str:
    """Render an exception and its `__cause__`/`__context__` chain on one line.

    Example:
        `"HTTP 503 for https://x <- Server error '503 Service Unavailable'"`
    """
    parts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc

    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current).strip() or type(current).__name__
        if not parts or parts[-1] != text:
            parts.append(text)
        current = current.__cause__ or current.__context__

    return " <- ".join(parts)
