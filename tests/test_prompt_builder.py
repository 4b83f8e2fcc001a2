"""
Unit tests for prompt assembly
"""

import pytest

from searchsum.core.types import AggregatedDocument, DocumentSegment
from searchsum.prompting.prompt_builder import PromptBuilder, render_document, render_segment


QUESTION = "based on the content provided what is : rust programming"

DOC = AggregatedDocument(
    segments=(
        DocumentSegment("https://site-a.test/", "Rust is a systems programming language."),
        DocumentSegment("https://site-b.test/", "It focuses on memory safety."),
    )
)


class TestPromptBuilder:
    """Test cases for PromptBuilder"""

    def test_question_comes_first_then_sources_in_order(self):
        prompt = PromptBuilder(4000).build(QUESTION, DOC)

        assert prompt.text == (
            f"{QUESTION}\n\n"
            "Source: https://site-a.test/\nRust is a systems programming language.\n---\n"
            "Source: https://site-b.test/\nIt focuses on memory safety.\n---"
        )
        assert prompt.question == QUESTION
        assert not prompt.truncated
        assert prompt.segments_included == 2

    def test_is_deterministic(self):
        builder = PromptBuilder(4000)

        assert builder.build(QUESTION, DOC) == builder.build(QUESTION, DOC)

    def test_empty_document_gives_question_alone(self):
        prompt = PromptBuilder(4000).build(f"  {QUESTION}\n", AggregatedDocument())

        assert prompt.text == QUESTION
        assert prompt.segments_included == 0
        assert not prompt.truncated

    @pytest.mark.parametrize("budget", [80, 100, 130, 150])
    def test_budget_is_never_exceeded(self, budget):
        prompt = PromptBuilder(budget).build(QUESTION, DOC)

        assert len(prompt.text) <= budget
        assert prompt.text.startswith(QUESTION)
        assert prompt.truncated

    def test_tail_is_cut_and_question_kept(self):
        full = PromptBuilder(4000).build(QUESTION, DOC).text
        prompt = PromptBuilder(len(full) - 10).build(QUESTION, DOC)

        assert prompt.truncated
        assert full.startswith(prompt.text)
        assert "memory safety" not in prompt.text
        assert prompt.segments_included == 2

    def test_only_first_source_survives_tight_budget(self):
        first_block = render_segment(DOC.segments[0])
        prompt = PromptBuilder(len(QUESTION) + 2 + len(first_block) + 5).build(QUESTION, DOC)

        assert "Source: https://site-a.test/" in prompt.text
        assert "site-b.test" not in prompt.text
        assert prompt.segments_included == 1

    def test_question_longer_than_budget(self):
        prompt = PromptBuilder(10).build(QUESTION, DOC)

        assert prompt.text == QUESTION
        assert prompt.truncated
        assert prompt.segments_included == 0

    def test_exact_fit_is_not_truncated(self):
        full = PromptBuilder(4000).build(QUESTION, DOC).text
        prompt = PromptBuilder(len(full)).build(QUESTION, DOC)

        assert prompt.text == full
        assert not prompt.truncated

    def test_invalid_budget(self):
        with pytest.raises(ValueError):
            PromptBuilder(0)


def test_render_document_strips_segment_text():
    doc = AggregatedDocument(segments=(DocumentSegment("https://x.test/", "  padded  "),))

    assert render_document(doc) == "Source: https://x.test/\npadded\n---"
