"""Prompt assembly for grounded answer generation.

Builds a single prompt string out of a fixed system instruction, the user
query and a context block with one delimited record per retrieved chunk.
The prompt is kept under a character budget by dropping whole records.
"""
import json
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import structlog

from app import config
from app.rag.models import Prompt, document_fields

logger = structlog.get_logger()

SYSTEM_INSTRUCTION = """SYSTEM INSTRUCTIONS:
You are a knowledgeable and helpful assistant.
Answer the user's query using ONLY the information in the CONTEXT section below.

RULES & RESPONSE STYLE:
1. **Grounding**: Rely solely on the provided context. Do not draw on outside knowledge.
2. **No Guessing**: If the context does not contain the answer, reply exactly: "I cannot answer this question based on the provided context." Never invent an answer.
3. **Citations**: Cite every source you use, referencing its label as [Source: <label>].
4. **Tone**: Professional, concise and direct.
5. **Formatting**: Use Markdown for readability (bullet points, bold for key terms)."""

EMPTY_CONTEXT = "No context provided."
UNKNOWN_SOURCE = "Unknown Source"
ANSWER_CUE = "ANSWER:"


class PromptBuilder:
    """Assembles budget-bounded prompts from a query and retrieved chunks."""

    def __init__(self, max_context_chars: Optional[int] = None):
        """Initialize the prompt builder.

        Args:
            max_context_chars: Maximum prompt length in characters
                (default from config)
        """
        self.max_context_chars = (
            config.MAX_CONTEXT_CHARS if max_context_chars is None else max_context_chars
        )

    def build_prompt(self, query: str, results: Optional[Sequence[Any]]) -> str:
        """Build the final prompt string for the generation model.

        Args:
            query: The user's query
            results: Retrieved chunks, each a mapping or object with content
                and metadata

        Returns:
            Prompt text ending with the answer cue
        """
        return self.assemble(query, results).full_text

    def assemble(self, query: str, results: Optional[Sequence[Any]]) -> Prompt:
        """Build the prompt and keep its parts.

        The full prompt is built once; if it is over budget the context block
        is rebuilt once keeping only the whole records that fit.

        Args:
            query: The user's query
            results: Retrieved chunks in ranking order

        Returns:
            Prompt with its system instruction, query, context and full text
        """
        query = query or ""
        results = list(results or [])

        context_block, included = self._format_context(results)
        full_text = self._build_prompt_string(query, context_block)
        truncated = False

        if len(full_text) > self.max_context_chars:
            logger.info(
                "prompt_over_budget_truncating_context",
                current_length=len(full_text),
                limit=self.max_context_chars,
                result_count=len(results),
            )

            budget = self.max_context_chars - len(self._build_prompt_string(query, ""))
            context_block, included = self._format_context(results, budget=budget)
            if not included and len(context_block) > budget:
                # Not even the placeholder fits
                context_block = ""
            full_text = self._build_prompt_string(query, context_block)
            truncated = True

            logger.info(
                "prompt_truncated",
                final_length=len(full_text),
                included_results=included,
                dropped_results=len(results) - included,
            )

        return Prompt(
            system_instruction=SYSTEM_INSTRUCTION,
            query=query,
            context_block=context_block,
            full_text=full_text,
            included_results=included,
            truncated=truncated,
        )

    def _build_prompt_string(self, query: str, context_block: str) -> str:
        return (
            f"{SYSTEM_INSTRUCTION}\n\n"
            f'USER QUERY:\n"{query}"\n\n'
            f"CONTEXT:\n{context_block}\n\n"
            f"{ANSWER_CUE}"
        )

    def _format_context(
        self, results: List[Any], budget: Optional[int] = None
    ) -> Tuple[str, int]:
        """Format results as delimited records.

        Args:
            results: Retrieved chunks in ranking order
            budget: If given, stop before the first record that would push
                the block past this many characters

        Returns:
            Tuple of (context_block, number_of_records_included)
        """
        if not results:
            return EMPTY_CONTEXT, 0

        records = []
        total_chars = 0

        for result in results:
            record = self._format_record(result)

            if budget is not None and total_chars + len(record) > budget:
                break

            records.append(record)
            total_chars += len(record)

        if not records:
            return EMPTY_CONTEXT, 0

        return "".join(records), len(records)

    def _format_record(self, result: Any) -> str:
        content, metadata = document_fields(result)
        source = metadata.get("source") or metadata.get("title") or UNKNOWN_SOURCE

        return (
            "\n---\n"
            f"Source: {source}\n"
            f"Metadata: {json.dumps(metadata, ensure_ascii=False, default=str)}\n"
            "Content:\n"
            f"{content}\n"
            "---\n"
        )


# Singleton instance for convenience
_builder_instance = None


def get_prompt_builder() -> PromptBuilder:
    """Get a singleton prompt builder instance.

    Returns:
        PromptBuilder instance with default config
    """
    global _builder_instance
    if _builder_instance is None:
        _builder_instance = PromptBuilder()
    return _builder_instance


# Convenience function
def build_prompt(query: str, results: Optional[Iterable[Any]]) -> str:
    """Build a prompt with the default builder (convenience function).

    Args:
        query: The user's query
        results: Retrieved chunks

    Returns:
        Prompt text
    """
    return get_prompt_builder().build_prompt(query, list(results or []))
