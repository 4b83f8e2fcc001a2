"""Concurrent fetch-and-extract fan-out over ranked URLs.

Architectural role:
    Turns a `SearchResult` into one `AggregatedDocument`. Each URL gets exactly one
    task (`Fetcher.fetch` + `Extractor.extract`); per-URL failures are isolated so
    sibling fetches always run to completion.

Ordering model:
    Outcomes are written into a fixed-size buffer slot owned by the task's rank
    index, never appended on completion. The merge step reads the buffer in rank
    order, so the document order is independent of completion timing. Each slot is
    written exactly once by exactly one task, so no locking is needed.

Concurrency:
    A semaphore bounds in-flight fetches (`Settings.concurrency_limit`, default one
    slot per URL). `Settings.fetch_rate_limit` additionally spaces fetch starts to
    at most that many per second. Cancelling `aggregate` cancels every
    outstanding task.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Sequence

from searchsum.core.errors import ErrorKind, FetchError
from searchsum.core.types import (
    AggregatedDocument,
    AggregationReport,
    DocumentSegment,
    FetchFailure,
    FetchSuccess,
    PageFetchOutcome,
)
from searchsum.retrieval.web.extractor import Extractor
from searchsum.retrieval.web.fetcher import Fetcher


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, PageFetchOutcome], None]


class RateLimiter:
    """Spaces successive `wait()` returns at least `1 / rate` seconds apart.

    Args:
        rate: Allowed page fetches per second.
    """

    def __init__(self, rate: float) -> None:
        if rate <= 0:
            raise ValueError("rate must be positive")
        self.interval = 1.0 / rate
        self._lock = asyncio.Lock()
        self._next_at: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            now = time.monotonic()
            if self._next_at is not None and self._next_at > now:
                await asyncio.sleep(self._next_at - now)
                now = time.monotonic()
            self._next_at = now + self.interval


class Aggregator:
    """Fan-out scheduler collecting one outcome per URL."""

    def __init__(
        self,
        fetcher: Fetcher,
        extractor: Extractor,
        concurrency_limit: int | None = None,
        rate_limit: float | None = None,
    ) -> None:
        if concurrency_limit is not None and concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self.fetcher = fetcher
        self.extractor = extractor
        self.concurrency_limit = concurrency_limit
        self.rate_limiter = RateLimiter(rate_limit) if rate_limit is not None else None

    async def aggregate(
        self,
        urls: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> AggregationReport:
        """Fetch and extract every URL concurrently and merge in rank order.

        Args:
            urls: Ranked URLs; each is attempted exactly once.
            on_progress: Optional `(completed, total, outcome)` callback invoked as
                each task settles.

        Returns:
            `AggregationReport` with the merged document and every outcome.
            `report.all_failed` signals that no URL produced text.
        """
        urls = list(urls)
        total = len(urls)
        if total == 0:
            return AggregationReport(document=AggregatedDocument(), outcomes=())

        ceiling = min(self.concurrency_limit or total, total)
        semaphore = asyncio.Semaphore(ceiling)
        slots: list[PageFetchOutcome | None] = [None] * total
        completed = 0

        async def worker(index: int, url: str) -> None:
            nonlocal completed
            async with semaphore:
                outcome = await self._fetch_one(url)
            slots[index] = outcome
            completed += 1
            if on_progress is not None:
                on_progress(completed, total, outcome)

        logger.info("Fetching %d page(s) with concurrency=%d", total, ceiling)
        tasks = [asyncio.ensure_future(worker(index, url)) for index, url in enumerate(urls)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        outcomes = tuple(outcome for outcome in slots if outcome is not None)
        report = AggregationReport(document=merge_outcomes(outcomes), outcomes=outcomes)

        logger.info(
            "Completed: %d of %d pages scraped successfully",
            report.succeeded,
            report.attempted,
        )
        return report

    async def _fetch_one(self, url: str) -> PageFetchOutcome:
        if self.rate_limiter is not None:
            await self.rate_limiter.wait()

        try:
            body = await self.fetcher.fetch(url)
            text = self.extractor.extract(body)
        except FetchError as exc:
            logger.warning("Fetch failed for %s: %s (%s)", url, exc.kind, exc)
            return FetchFailure(source_url=url, reason=exc.kind, detail=str(exc))
        except Exception as exc:
            # A single page must never abort its siblings or the run.
            logger.warning("Unexpected error for %s: %s", url, exc, exc_info=True)
            return FetchFailure(
                source_url=url,
                reason=ErrorKind.NETWORK_ERROR,
                detail=f"{type(exc).__name__}: {exc}",
            )

        if not text:
            logger.warning("No extractable text at %s", url)
            return FetchFailure(
                source_url=url,
                reason=ErrorKind.EMPTY_CONTENT,
                detail=f"No extractable text at {url}",
            )

        return FetchSuccess(source_url=url, text=text)


def merge_outcomes(outcomes: Sequence[PageFetchOutcome]) -> AggregatedDocument:
    """Build the document from successful outcomes, preserving their order."""
    segments = tuple(
        DocumentSegment(source_url=outcome.source_url, text=outcome.text)
        for outcome in outcomes
        if isinstance(outcome, FetchSuccess)
    )
    return AggregatedDocument(segments=segments)
