"""Score normalization and merging of vector and lexical result sets."""

import logging
from typing import Dict, List

from capture_search.models import SearchResult

logger = logging.getLogger(__name__)


def normalize_scores(results: List[SearchResult]) -> List[SearchResult]:
    """
    Min-max normalize relevance scores to [0, 1].

    If every score is equal (including a single result), all become 1.0.
    Returns new result objects; the inputs are not modified.
    """
    if not results:
        return []

    scores = [r.relevance_score for r in results]
    min_score = min(scores)
    max_score = max(scores)

    if min_score == max_score:
        return [r.model_copy(update={"relevance_score": 1.0}) for r in results]

    span = max_score - min_score
    return [
        r.model_copy(update={"relevance_score": (r.relevance_score - min_score) / span})
        for r in results
    ]


def combine_and_deduplicate(
    vector_results: List[SearchResult],
    fts_results: List[SearchResult],
    limit: int,
) -> List[SearchResult]:
    """
    Merge two result sets into one ranked, de-duplicated list.

    Each set is normalized on its own. Vector results are inserted first;
    an id found in both sets gets the mean of its two normalized scores and
    the "combined" method label. The merged list is sorted by descending
    score and truncated to limit.
    """
    logger.debug(
        f"Combining {len(vector_results)} vector and {len(fts_results)} lexical results "
        f"(limit={limit})"
    )

    merged: Dict[str, SearchResult] = {}

    for result in normalize_scores(vector_results):
        merged[result.id] = result

    for result in normalize_scores(fts_results):
        existing = merged.get(result.id)
        if existing is None:
            merged[result.id] = result
            continue

        combined_score = (existing.relevance_score + result.relevance_score) / 2
        merged[result.id] = existing.model_copy(
            update={"relevance_score": combined_score, "search_method": "combined"}
        )
        logger.debug(
            f"Combined duplicate result {result.id}: vector={existing.relevance_score:.3f}, "
            f"fts={result.relevance_score:.3f}, combined={combined_score:.3f}"
        )

    # sorted() is stable, so equal scores keep vector-first insertion order
    ranked = sorted(merged.values(), key=lambda r: r.relevance_score, reverse=True)

    logger.debug(
        f"Results combined: {len(vector_results) + len(fts_results)} in, "
        f"{len(ranked)} unique, {min(len(ranked), limit)} returned"
    )
    return ranked[:limit]
