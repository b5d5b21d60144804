"""Tests for score normalization and result merging."""

from datetime import datetime

import pytest

from capture_search.models import SearchResult, SearchResultMetadata
from capture_search.search.ranking import combine_and_deduplicate, normalize_scores


def result(item_id, score, method="vector"):
    now = datetime(2024, 1, 1)
    return SearchResult(
        id=item_id,
        title=item_id,
        excerpt="",
        content_type="text",
        relevance_score=score,
        search_method=method,
        metadata=SearchResultMetadata(created_at=now, updated_at=now),
    )


def test_normalize_empty():
    assert normalize_scores([]) == []


def test_normalize_min_max():
    normalized = normalize_scores([result("a", 0.9), result("b", 0.5), result("c", 0.7)])

    scores = [r.relevance_score for r in normalized]
    assert scores == pytest.approx([1.0, 0.0, 0.5])
    assert min(scores) == 0.0
    assert max(scores) == 1.0


def test_normalize_constant_scores():
    normalized = normalize_scores([result("a", 0.3), result("b", 0.3)])

    assert [r.relevance_score for r in normalized] == [1.0, 1.0]


def test_normalize_single_result():
    assert normalize_scores([result("a", 0.2)])[0].relevance_score == 1.0


def test_normalize_does_not_mutate_input():
    original = [result("a", 0.9), result("b", 0.5)]

    normalize_scores(original)

    assert original[1].relevance_score == 0.5


def test_duplicate_gets_mean_score_and_combined_label():
    vector = [result("X", 0.9), result("V", 0.1), result("W", 0.5)]  # X -> 1.0
    fts = [result("X", 1.0, "fts"), result("F", 1.0, "fts")]  # constant -> 1.0

    merged = combine_and_deduplicate(vector, fts, limit=10)

    by_id = {r.id: r for r in merged}
    assert by_id["X"].relevance_score == pytest.approx(1.0)
    assert by_id["X"].search_method == "combined"
    assert by_id["F"].search_method == "fts"
    assert by_id["V"].search_method == "vector"
    assert len(merged) == 4


def test_mean_of_normalized_scores():
    """A duplicate normalized to 0.8 (vector) and 0.4 (fts) ends at 0.6."""
    vector = [result("hi", 1.0), result("X", 0.8), result("lo", 0.0)]
    fts = [result("hi2", 1.0, "fts"), result("X", 0.4, "fts"), result("lo2", 0.0, "fts")]

    merged = combine_and_deduplicate(vector, fts, limit=10)

    x = next(r for r in merged if r.id == "X")
    assert x.relevance_score == pytest.approx(0.6)
    assert x.search_method == "combined"


def test_sorted_descending_and_limited():
    vector = [result("a", 0.2), result("b", 0.9), result("c", 0.5)]
    fts = [result("d", 1.0, "fts"), result("e", 1.0, "fts")]

    merged = combine_and_deduplicate(vector, fts, limit=3)

    scores = [r.relevance_score for r in merged]
    assert len(merged) == 3
    assert scores == sorted(scores, reverse=True)
    # Ties keep vector-first order
    assert merged[0].id == "b"
