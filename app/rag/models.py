"""Data model shared by the RAG text pipeline."""
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class RawDocument:
    """A document as handed over by an ingestion source."""

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A bounded excerpt of a normalized document, ready for embedding."""

    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScoredResult:
    """A single search hit with its raw and canonical similarity score.

    Both scores are None when the search backend could not report them.
    """

    content: str
    metadata: Dict[str, Any]
    raw_score: Optional[float]
    normalized_score: Optional[float]

    @property
    def scores_known(self) -> bool:
        return self.normalized_score is not None


@dataclass
class Prompt:
    """An assembled prompt and the parts it was built from."""

    system_instruction: str
    query: str
    context_block: str
    full_text: str
    included_results: int = 0
    truncated: bool = False

    def __str__(self) -> str:
        return self.full_text


def document_fields(document: Any) -> Tuple[str, Dict[str, Any]]:
    """Content and metadata of a mapping, Chunk, ScoredResult or LangChain-style document."""
    if isinstance(document, Mapping):
        content = document.get("page_content") or document.get("content") or document.get("text") or ""
        metadata = document.get("metadata") or {}
    else:
        content = (
            getattr(document, "page_content", None)
            or getattr(document, "content", None)
            or getattr(document, "text", None)
            or ""
        )
        metadata = getattr(document, "metadata", None) or {}
    return content, dict(metadata)
