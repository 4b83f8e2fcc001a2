"""Pipeline orchestration for search, aggregation, prompting, and completion.

Architectural role:
    Wires `SearchClient -> Aggregator -> PromptBuilder -> ModelClient` and owns the
    run's state machine, overall deadline, and terminal outcome. Used by the CLI.

Control-flow model:
    `Idle -> Searching -> Aggregating -> Building -> Completing -> Done`, with
    `Failed(reason)` reachable from every non-terminal state. Stages run strictly
    one after another; concurrency exists only inside Aggregating.

Deadline:
    When `Settings.deadline_seconds` elapses, the active stage is cancelled
    (including every outstanding fetch task) and the run ends `Failed(Timeout)`
    naming that stage.

All-fetches-failed policy:
    `Settings.all_failed_policy` decides what happens when no page yields text:
    - `degrade`: continue with a bare-question prompt.
    - `abort`: end the run `Failed(AllFetchesFailed)`.

Error handling strategy:
    Per-URL failures are absorbed by the aggregator. Every `SearchSumError` raised
    by a stage ends the run `Failed(kind)` with a rendered cause chain; the run
    itself never raises for these. Other exceptions propagate.
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from searchsum.core.errors import (
    AllFetchesFailed,
    ErrorKind,
    PipelineTimeout,
    SearchSumError,
    describe_cause_chain,
)
from searchsum.core.http import build_client
from searchsum.core.settings import DEFAULT_RESULT_COUNT, Settings
from searchsum.core.types import (
    PipelineFailure,
    PipelineResult,
    PipelineState,
)
from searchsum.llm.client import FragmentSink, ModelClient
from searchsum.prompting.prompt_builder import PromptBuilder
from searchsum.retrieval.aggregator import Aggregator, ProgressCallback
from searchsum.retrieval.web.extractor import Extractor
from searchsum.retrieval.web.fetcher import Fetcher
from searchsum.retrieval.web.search_client import SearchClient


logger = logging.getLogger(__name__)


class Pipeline:
    """Single-use-per-run orchestrator over the pipeline components."""

    def __init__(
        self,
        settings: Settings,
        search_client: SearchClient,
        aggregator: Aggregator,
        prompt_builder: PromptBuilder,
        model_client: ModelClient,
    ) -> None:
        self.settings = settings
        self.search_client = search_client
        self.aggregator = aggregator
        self.prompt_builder = prompt_builder
        self.model_client = model_client

        self.state = PipelineState.IDLE
        self._history: list[PipelineState] = [PipelineState.IDLE]

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient) -> "Pipeline":
        """Build the default component graph sharing one HTTP client."""
        fetcher = Fetcher(settings, client=client)
        return cls(
            settings=settings,
            search_client=SearchClient(settings, fetcher),
            aggregator=Aggregator(
                fetcher,
                Extractor(settings.extractor_mode),
                concurrency_limit=settings.concurrency_limit,
                rate_limit=settings.fetch_rate_limit,
            ),
            prompt_builder=PromptBuilder(settings.max_prompt_chars),
            model_client=ModelClient(settings, client=client),
        )

    async def run(
        self,
        query: str,
        question: str,
        limit: int = DEFAULT_RESULT_COUNT,
        model: str | None = None,
        on_fragment: FragmentSink | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PipelineResult:
        """Execute one search-fetch-summarize run.

        Args:
            query: Search query text.
            question: Question placed at the head of the prompt.
            limit: Number of search results to fetch (>= 1).
            model: Model name; defaults to `Settings.model_name`.
            on_fragment: Receives streamed answer fragments.
            on_progress: Receives aggregation progress updates.

        Returns:
            `PipelineResult` in state `DONE` or `FAILED`.

        Raises:
            RuntimeError: The pipeline instance was already used.
            ValueError: Invalid `limit` or empty query.
        """
        if self.state is not PipelineState.IDLE:
            raise RuntimeError("Pipeline instances run once; create a new one per run")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if not query or not query.strip():
            raise ValueError("query must not be empty")

        result = PipelineResult(state=self.state, history=self._history)
        started = time.perf_counter()

        try:
            await asyncio.wait_for(
                self._run_stages(result, query, question, limit, model, on_fragment, on_progress),
                timeout=self.settings.deadline_seconds,
            )
        except asyncio.TimeoutError:
            stage = self.state
            timeout = PipelineTimeout(
                f"deadline of {self.settings.deadline_seconds}s exceeded during {stage}"
            )
            self._fail(result, timeout.kind, stage, str(timeout))
        except SearchSumError as exc:
            self._fail(result, exc.kind, self.state, describe_cause_chain(exc))

        result.elapsed_seconds = time.perf_counter() - started
        return result

    async def _run_stages(
        self,
        result: PipelineResult,
        query: str,
        question: str,
        limit: int,
        model: str | None,
        on_fragment: FragmentSink | None,
        on_progress: ProgressCallback | None,
    ) -> None:
        self._transition(result, PipelineState.SEARCHING)
        result.search = await self.search_client.search(query, limit)

        self._transition(result, PipelineState.AGGREGATING)
        result.aggregation = await self.aggregator.aggregate(result.search.urls, on_progress)

        if result.aggregation.all_failed:
            if self.settings.all_failed_policy == "abort":
                raise AllFetchesFailed(
                    f"No page text retrieved from {result.aggregation.attempted} URL(s)"
                )
            logger.warning(
                "No page text retrieved from %d URL(s); continuing with the bare question",
                result.aggregation.attempted,
            )

        self._transition(result, PipelineState.BUILDING)
        result.prompt = self.prompt_builder.build(question, result.aggregation.document)

        self._transition(result, PipelineState.COMPLETING)
        result.answer = await self.model_client.complete(
            result.prompt,
            model or self.settings.model_name,
            on_fragment=on_fragment,
        )

        self._transition(result, PipelineState.DONE)

    def _transition(self, result: PipelineResult, state: PipelineState) -> None:
        logger.info("Pipeline state: %s -> %s", self.state, state)
        self.state = state
        self._history.append(state)
        result.state = state

    def _fail(
        self,
        result: PipelineResult,
        kind: ErrorKind,
        stage: PipelineState,
        cause: str,
    ) -> None:
        result.failure = PipelineFailure(kind=kind, stage=stage, cause=cause)
        logger.error("Pipeline failed: %s", result.failure.describe())
        self._transition(result, PipelineState.FAILED)


async def run_pipeline(
    settings: Settings,
    query: str,
    question: str,
    limit: int = DEFAULT_RESULT_COUNT,
    model: str | None = None,
    on_fragment: FragmentSink | None = None,
    on_progress: ProgressCallback | None = None,
    **client_kwargs,
) -> PipelineResult:
    """Run one pipeline with a shared HTTP client that is closed afterwards.

    Extra keyword arguments are forwarded to `httpx.AsyncClient`.
    """
    async with build_client(settings, **client_kwargs) as client:
        pipeline = Pipeline.from_settings(settings, client)
        return await pipeline.run(
            query,
            question,
            limit=limit,
            model=model,
            on_fragment=on_fragment,
            on_progress=on_progress,
        )
