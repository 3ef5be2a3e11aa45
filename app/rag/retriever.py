"""Retriever for similarity search over an external vector backend.

Handles:
- Query validation
- Vector search through the backend collaborator
- Score normalization and threshold filtering
- Degraded mode when the backend cannot report scores
- Prompt assembly from the surviving results
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import structlog

from app import config
from app.rag.models import Prompt, ScoredResult
from app.rag.prompt import PromptBuilder
from app.rag.scoring import filter_results, score_results, unscored_results

logger = structlog.get_logger()


class VectorSearchBackend(Protocol):
    """Vector database able to run a nearest-neighbour search for a query.

    ``similarity_search_with_score`` may be missing or raise
    NotImplementedError; the retriever then falls back to
    ``similarity_search`` and reports scores as unknown.
    """

    async def similarity_search_with_score(
        self, query: str, k: int, metadata_filter: Optional[Dict[str, Any]] = None
    ) -> Sequence[Tuple[Any, float]]:
        ...

    async def similarity_search(
        self, query: str, k: int, metadata_filter: Optional[Dict[str, Any]] = None
    ) -> Sequence[Any]:
        ...


class Retriever:
    """Semantic retriever for RAG pipeline."""

    def __init__(
        self,
        backend: VectorSearchBackend,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        """Initialize the retriever.

        Args:
            backend: Vector search collaborator
            top_k: Number of results to retrieve (default from config)
            min_score: Minimum normalized similarity (default from config)
            prompt_builder: Builder used by ``retrieve_prompt``
        """
        self.backend = backend
        self.top_k = top_k or config.RETRIEVAL_TOP_K
        self.min_score = config.MIN_SIMILARITY_SCORE if min_score is None else min_score
        self.prompt_builder = prompt_builder or PromptBuilder()

        logger.info(
            "retriever_initialized",
            backend=type(backend).__name__,
            top_k=self.top_k,
            min_score=self.min_score,
        )

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> List[ScoredResult]:
        """Retrieve relevant chunks for a query.

        Args:
            query: User query text
            top_k: Number of results to request (overrides default)
            min_score: Minimum normalized similarity (overrides default)
            metadata_filter: Optional metadata filter passed to the backend

        Returns:
            List of ScoredResult objects in backend ranking order; empty if
            nothing passes the threshold

        Raises:
            ValueError: If ``top_k`` is below 1 or ``min_score`` is outside [0, 1]
            RuntimeError: If the backend search fails
        """
        if not query or not query.strip():
            logger.warning("empty_query_provided")
            return []

        top_k = top_k or self.top_k
        min_score = self.min_score if min_score is None else min_score

        if top_k < 1:
            raise ValueError(f"top_k ({top_k}) must be at least 1")
        if not 0 <= min_score <= 1:
            raise ValueError(f"min_score ({min_score}) must be between 0 and 1")

        logger.info(
            "retrieval_started",
            query_length=len(query),
            top_k=top_k,
            min_score=min_score,
            has_filter=bool(metadata_filter),
        )

        try:
            scored = await self._search(query, top_k, metadata_filter)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise RuntimeError(f"Retrieval failed: {e}") from e

        results = filter_results(scored, min_score)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            results_returned=len(results),
            total_results=len(scored),
            top_score=results[0].normalized_score if results else None,
        )

        return results

    async def retrieve_prompt(
        self,
        query: str,
        top_k: Optional[int] = None,
        min_score: Optional[float] = None,
        metadata_filter: Optional[Dict[str, Any]] = None,
    ) -> Prompt:
        """Retrieve context for a query and assemble the generation prompt.

        Args:
            query: User query text
            top_k: Number of results to request
            min_score: Minimum normalized similarity
            metadata_filter: Optional metadata filter

        Returns:
            Assembled Prompt
        """
        results = await self.retrieve(
            query, top_k=top_k, min_score=min_score, metadata_filter=metadata_filter
        )
        return self.prompt_builder.assemble(query, results)

    async def _search(
        self, query: str, top_k: int, metadata_filter: Optional[Dict[str, Any]]
    ) -> List[ScoredResult]:
        search_with_score = getattr(self.backend, "similarity_search_with_score", None)

        if search_with_score is not None:
            try:
                raw_results = await search_with_score(query, top_k, metadata_filter)
                return score_results(raw_results)
            except NotImplementedError:
                pass

        logger.warning(
            "scored_search_unavailable_using_unscored",
            backend=type(self.backend).__name__,
        )
        documents = await self.backend.similarity_search(query, top_k, metadata_filter)
        return unscored_results(documents)
