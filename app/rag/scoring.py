"""Similarity score normalization and threshold filtering.

Vector backends report relevance in different conventions (distances,
signed cosine similarities, plain similarities). Scores are mapped onto a
canonical similarity without being told which convention is active:

- raw > 1: a distance, normalized as 1 - raw
- raw < 0: a cosine similarity in [-1, 1], normalized as (raw + 1) / 2
- otherwise: already a similarity in [0, 1]
"""
import math
from typing import Any, Iterable, List, Optional, Sequence

import structlog

from app.rag.models import ScoredResult, document_fields

logger = structlog.get_logger()


def normalize_score(raw: Optional[float]) -> Optional[float]:
    """Map a backend-specific score onto a canonical similarity.

    Never raises. An unknown (None) score stays unknown and NaN maps to 0.0.

    Args:
        raw: Score as reported by the vector backend

    Returns:
        Normalized similarity score, or None if the raw score is unknown
    """
    if raw is None:
        return None

    raw = float(raw)
    if math.isnan(raw):
        return 0.0

    if raw > 1:
        return 1 - raw
    if raw < 0:
        return (raw + 1) / 2
    return raw


def score_results(raw_results: Iterable[Sequence[Any]]) -> List[ScoredResult]:
    """Build scored results from raw backend output, keeping backend order.

    Args:
        raw_results: Either ``(content, metadata, raw_score)`` triples or
            ``(document, raw_score)`` pairs as returned by LangChain-style
            vector stores

    Returns:
        List of ScoredResult objects
    """
    results = []

    for raw in raw_results:
        if len(raw) == 3:
            content, metadata, raw_score = raw
            metadata = dict(metadata or {})
            content = content or ""
        else:
            document, raw_score = raw
            content, metadata = document_fields(document)

        results.append(
            ScoredResult(
                content=content,
                metadata=metadata,
                raw_score=raw_score,
                normalized_score=normalize_score(raw_score),
            )
        )

    return results


def unscored_results(documents: Iterable[Any]) -> List[ScoredResult]:
    """Wrap documents from a backend that cannot report scores.

    Both scores are set to None rather than a made-up number.

    Args:
        documents: Mappings or document-like objects

    Returns:
        List of ScoredResult objects with unknown scores
    """
    results = []
    for document in documents:
        content, metadata = document_fields(document)
        results.append(
            ScoredResult(
                content=content,
                metadata=metadata,
                raw_score=None,
                normalized_score=None,
            )
        )
    return results


def filter_results(results: Sequence[ScoredResult], min_score: float) -> List[ScoredResult]:
    """Keep results at or above the similarity threshold.

    Input order is preserved (backends return results already ranked).
    Results with an unknown score are never excluded.

    Args:
        results: Scored results in backend order
        min_score: Minimum normalized similarity to keep

    Returns:
        Surviving results; an empty list if none pass
    """
    kept = [
        result
        for result in results
        if not result.scores_known or result.normalized_score >= min_score
    ]

    if results and not kept:
        logger.warning(
            "no_results_above_threshold",
            min_score=min_score,
            total_results=len(results),
        )
    else:
        logger.debug(
            "results_filtered",
            min_score=min_score,
            kept=len(kept),
            total_results=len(results),
        )

    return kept
