"""Prompt assembly from a user question and the aggregated web document.

This module only builds prompt strings. Retrieval, aggregation, and model
invocation happen outside this module.

Design constraints:
    - Deterministic construction for identical inputs.
    - Fixed ordering: question first, then sources in rank order.
    - Bounded output: the prompt never exceeds `max_chars` while the question
      alone fits; the document tail is cut first and the question never is.
    - No I/O, no global state.
"""

from __future__ import annotations

import logging

from searchsum.core.types import AggregatedDocument, DocumentSegment, Prompt


logger = logging.getLogger(__name__)


# =========================================================
# SOURCE BLOCK FORMAT
# =========================================================
# Each extracted page is rendered as:
#   Source: <url>
#   <text>
#   ---
# Blocks are separated by a newline and follow the document's rank order.

SOURCE_SEPARATOR = "---"
QUESTION_SEPARATOR = "\n\n"


def render_segment(segment: DocumentSegment) -> str:
    """Render one document segment as a labelled source block."""
    return f"Source: {segment.source_url}\n{segment.text.strip()}\n{SOURCE_SEPARATOR}"


def render_document(doc: AggregatedDocument) -> str:
    return "\n".join(render_segment(segment) for segment in doc.segments)


class PromptBuilder:
    """Budgeted prompt builder.

    Args:
        max_chars: Maximum prompt length in characters.
    """

    def __init__(self, max_chars: int) -> None:
        if max_chars < 1:
            raise ValueError("max_chars must be >= 1")
        self.max_chars = max_chars

    def build(self, question: str, doc: AggregatedDocument) -> Prompt:
        """Combine `question` and `doc` into a single model prompt.

        Args:
            question: User question; inserted verbatim (outer whitespace stripped).
            doc: Aggregated document, possibly empty.

        Returns:
            `Prompt` whose `truncated` flag reports whether document text was cut
            and whose `segments_included` counts the source blocks that remain
            (fully or partially).

        Edge cases:
            - Empty `doc`: the prompt is the question alone.
            - Question longer than the budget: the prompt is the bare question.
        """
        question = question.strip()

        if doc.is_empty:
            return Prompt(text=question, question=question)

        context = render_document(doc)
        remaining = self.max_chars - len(question) - len(QUESTION_SEPARATOR)

        if remaining <= 0:
            logger.warning(
                "Question uses the whole prompt budget (%d chars); dropping all %d source(s)",
                self.max_chars,
                len(doc.segments),
            )
            return Prompt(text=question, question=question, truncated=True)

        truncated = len(context) > remaining
        if truncated:
            context = context[:remaining].rstrip()
            logger.warning(
                "Prompt exceeded budget and was truncated: %d -> %d context chars (budget=%d)",
                len(render_document(doc)),
                len(context),
                self.max_chars,
            )

        if not context:
            return Prompt(text=question, question=question, truncated=True)

        return Prompt(
            text=f"{question}{QUESTION_SEPARATOR}{context}",
            question=question,
            truncated=truncated,
            segments_included=_count_sources(context, doc),
        )


def _count_sources(context: str, doc: AggregatedDocument) -> int:
    """Count source blocks whose header survived truncation."""
    count = 0
    offset = 0
    for segment in doc.segments:
        header = f"Source: {segment.source_url}"
        position = context.find(header, offset)
        if position < 0:
            break
        count += 1
        offset = position + len(header)
    return count
