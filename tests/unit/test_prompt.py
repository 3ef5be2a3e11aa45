"""Unit tests for PromptBuilder: context assembly under a character budget."""
import json

from app.rag.models import Chunk, ScoredResult
from app.rag.prompt import (
    EMPTY_CONTEXT,
    SYSTEM_INSTRUCTION,
    PromptBuilder,
    build_prompt,
)


def big_chunks(count: int = 15, size: int = 10000):
    return [
        {"page_content": "B" * size, "metadata": {"source": f"chunk_{i}"}}
        for i in range(count)
    ]


class TestPromptContent:
    def test_grounding_markers(self, sample_chunks):
        prompt = build_prompt("What is X?", sample_chunks)

        assert "SYSTEM INSTRUCTIONS" in prompt
        assert "What is X?" in prompt
        assert "Source: intro.txt" in prompt
        assert "Source: vectors.md" in prompt
        assert prompt.endswith("ANSWER:")

    def test_layout(self, sample_chunks):
        prompt = build_prompt("What is Gemini?", sample_chunks)

        assert prompt.startswith(SYSTEM_INSTRUCTION)
        assert '\n\nUSER QUERY:\n"What is Gemini?"\n\nCONTEXT:\n' in prompt
        assert prompt.index("intro.txt") < prompt.index("vectors.md")

    def test_instruction_has_refusal_and_citation_rules(self):
        assert "I cannot answer this question based on the provided context." in SYSTEM_INSTRUCTION
        assert "[Source:" in SYSTEM_INSTRUCTION

    def test_record_carries_metadata_and_content(self, sample_chunks):
        prompt = build_prompt("q", sample_chunks[:1])
        metadata = json.dumps(sample_chunks[0]["metadata"], ensure_ascii=False)

        assert f"Metadata: {metadata}\n" in prompt
        assert "Content:\nGemini is a family" in prompt
        assert "\n---\n" in prompt

    def test_empty_context_placeholder(self):
        assert EMPTY_CONTEXT in build_prompt("Query", [])
        assert "No context provided." in build_prompt("Query", None)

    def test_source_label_fallbacks(self):
        results = [
            {"content": "titled", "metadata": {"title": "Handbook"}},
            {"content": "bare", "metadata": {}},
            {"content": "no metadata"},
        ]

        prompt = build_prompt("q", results)

        assert "Source: Handbook" in prompt
        assert prompt.count("Source: Unknown Source") == 2

    def test_accepts_chunk_and_scored_result_objects(self):
        results = [
            Chunk(content="from a chunk", metadata={"source": "c.txt"}),
            ScoredResult(content="from a hit", metadata={"source": "h.txt"}, raw_score=0.9, normalized_score=0.9),
        ]

        prompt = build_prompt("q", results)

        assert "Source: c.txt" in prompt
        assert "from a hit" in prompt


class TestBudget:
    def test_small_prompt_not_truncated(self, sample_chunks):
        prompt = PromptBuilder().assemble("q", sample_chunks)

        assert not prompt.truncated
        assert prompt.included_results == 2

    def test_large_context_is_cut_at_record_boundaries(self):
        prompt = PromptBuilder(max_context_chars=120000).assemble("Test Limit", big_chunks())

        assert prompt.truncated
        assert len(prompt.full_text) <= 120000
        assert 0 < prompt.included_results < 15
        assert prompt.full_text.endswith("ANSWER:")
        # Whole records only
        assert prompt.context_block.count("B" * 10000) == prompt.included_results
        assert prompt.context_block.count("Content:\n") == prompt.included_results
        last = prompt.included_results - 1
        assert f"Source: chunk_{last}\n" in prompt.full_text
        assert f"Source: chunk_{last + 1}\n" not in prompt.full_text

    def test_first_record_over_budget_leaves_placeholder(self):
        prompt = PromptBuilder(max_context_chars=2000).assemble("q", big_chunks(count=2, size=5000))

        assert prompt.truncated
        assert prompt.included_results == 0
        assert prompt.context_block == EMPTY_CONTEXT
        assert len(prompt.full_text) <= 2000

    def test_limit_too_small_for_placeholder_leaves_context_empty(self):
        skeleton = len(PromptBuilder().build_prompt("q", []).replace(EMPTY_CONTEXT, ""))
        limit = skeleton + 5

        prompt = PromptBuilder(max_context_chars=limit).assemble("q", [{"content": "A" * 100}])

        assert prompt.truncated
        assert prompt.included_results == 0
        assert prompt.context_block == ""
        assert len(prompt.full_text) <= limit
        assert prompt.full_text.endswith("ANSWER:")

    def test_placeholder_kept_when_it_fits_the_limit(self):
        skeleton = len(PromptBuilder().build_prompt("q", []).replace(EMPTY_CONTEXT, ""))
        limit = skeleton + len(EMPTY_CONTEXT)

        prompt = PromptBuilder(max_context_chars=limit).assemble("q", [{"content": "A" * 100}])

        assert prompt.context_block == EMPTY_CONTEXT
        assert len(prompt.full_text) == limit

    def test_explicit_zero_limit_is_not_replaced_by_default(self):
        builder = PromptBuilder(max_context_chars=0)

        prompt = builder.assemble("q", [{"content": "text"}])

        assert builder.max_context_chars == 0
        assert prompt.truncated
        assert prompt.included_results == 0

    def test_later_records_dropped_after_first_overflow(self):
        results = [
            {"content": "A" * 500, "metadata": {"source": "a"}},
            {"content": "B" * 5000, "metadata": {"source": "b"}},
            {"content": "C" * 10, "metadata": {"source": "c"}},
        ]

        prompt = PromptBuilder(max_context_chars=2500).assemble("q", results)

        assert prompt.included_results == 1
        assert "Source: a\n" in prompt.full_text
        assert "Source: c\n" not in prompt.full_text

    def test_prompt_str_is_full_text(self, sample_chunks):
        prompt = PromptBuilder().assemble("q", sample_chunks)
        assert str(prompt) == prompt.full_text
