"""Data contracts passed between pipeline stages.

Architectural role:
    Defines the immutable values flowing through
    `SearchClient -> Aggregator -> PromptBuilder -> ModelClient`, plus the
    pipeline state enumeration and the terminal `PipelineResult`.

Determinism:
    All classes are plain frozen data holders. Ordering guarantees (rank order of
    URLs and document segments) are established by the producers, not here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from searchsum.core.errors import ErrorKind


@dataclass(frozen=True)
class SearchResult:
    """Ranked result URLs for one query, in provider order."""

    query: str
    urls: tuple[str, ...] = ()

    def __len__(self) -> int:
        return len(self.urls)

    def __iter__(self):
        return iter(self.urls)


@dataclass(frozen=True)
class FetchSuccess:
    source_url: str
    text: str

    ok = True


@dataclass(frozen=True)
class FetchFailure:
    source_url: str
    reason: ErrorKind
    detail: str = ""

    ok = False


PageFetchOutcome = Union[FetchSuccess, FetchFailure]


@dataclass(frozen=True)
class DocumentSegment:
    source_url: str
    text: str


@dataclass(frozen=True)
class AggregatedDocument:
    """Extracted page texts in original URL rank order.

    Only successful fetches contribute segments; `len(doc)` is the character
    length of `doc.text`.
    """

    segments: tuple[DocumentSegment, ...] = ()

    SEPARATOR = "\n\n"

    @property
    def text(self) -> str:
        return self.SEPARATOR.join(segment.text for segment in self.segments)

    @property
    def is_empty(self) -> bool:
        return not self.segments

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class AggregationReport:
    """Aggregator output: merged document plus the per-URL outcome buffer."""

    document: AggregatedDocument
    outcomes: tuple[PageFetchOutcome, ...] = ()

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def failures(self) -> tuple[FetchFailure, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    @property
    def all_failed(self) -> bool:
        """True when no URL produced text, including when there were no URLs."""
        return self.document.is_empty


@dataclass(frozen=True)
class Prompt:
    text: str
    question: str
    truncated: bool = False
    segments_included: int = 0

    def __len__(self) -> int:
        return len(self.text)


@dataclass(frozen=True)
class Answer:
    text: str
    model: str
    fragments: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


class PipelineState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    AGGREGATING = "aggregating"
    BUILDING = "building"
    COMPLETING = "completing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PipelineFailure:
    """Reason attached to the `Failed` terminal state.

    Attributes:
        kind: Error classification.
        stage: State that was active when the failure occurred.
        cause: Human-readable cause chain.
    """

    kind: ErrorKind
    stage: PipelineState
    cause: str

    def describe(self) -> str:
        return f"{self.kind} during {self.stage}: {self.cause}"


@dataclass
class PipelineResult:
    """Terminal outcome of one pipeline run, owned by the caller."""

    state: PipelineState
    history: list[PipelineState]
    search: SearchResult | None = None
    aggregation: AggregationReport | None = None
    prompt: Prompt | None = None
    answer: Answer | None = None
    failure: PipelineFailure | None = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE

    @property
    def degraded_note(self) -> str | None:
        """Note for runs that completed with fewer pages than requested."""
        report = self.aggregation
        if report is None or report.failed == 0:
            return None
        return (
            f"degraded input: {report.succeeded} of {report.attempted} pages "
            "fetched successfully"
        )
