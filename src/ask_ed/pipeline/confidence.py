"""Confidence scoring for retrieval outcomes."""

from __future__ import annotations

from collections.abc import Sequence

from ask_ed.config import CONFIDENCE
from ask_ed.pipeline.documents import (
    EMPTY_CONFIDENCE,
    SearchConfidence,
    SearchMethod,
    SearchResult,
)


def _band(value: float, bands: Sequence[tuple[float, float]], floor: float) -> float:
    """Score of the first band whose exclusive lower bound is below value."""
    for lower_bound, score in bands:
        if value > lower_bound:
            return score
    return floor


def calculate_confidence(results: Sequence[SearchResult], method: SearchMethod) -> SearchConfidence:
    """
    Score a result set by how it was retrieved.

    Semantic results are scored on their best similarity; keyword and
    fuzzy results on how many came back, since their similarities are
    fixed sentinels.

    Args:
        results: Retrieved passages.
        method: Strategy that produced them.

    Returns:
        SearchConfidence. Empty input always yields the NONE confidence.
    """
    if not results or method is SearchMethod.NONE:
        return EMPTY_CONFIDENCE

    best_similarity = max(r.similarity for r in results)
    count = len(results)

    if method is SearchMethod.SEMANTIC:
        score = _band(best_similarity, CONFIDENCE.SEMANTIC, CONFIDENCE.SEMANTIC_FLOOR)
    elif method is SearchMethod.KEYWORD:
        score = _band(count, CONFIDENCE.KEYWORD, CONFIDENCE.KEYWORD_FLOOR)
    else:
        score = _band(count, CONFIDENCE.FUZZY, CONFIDENCE.FUZZY_FLOOR)

    return SearchConfidence(
        score=score,
        method=method,
        result_count=count,
        best_similarity=best_similarity,
    )
