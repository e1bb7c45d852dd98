"""Unit tests for BM25 statistics helpers."""

from __future__ import annotations

import math

import pytest

from bookshelf_search.search.phrase import phrase_frequency
from bookshelf_search.search.stats import BM25, calculate_idf, compute_field_length_stats


pytestmark = pytest.mark.unit


def test_compute_field_length_stats_average() -> None:
    stats = compute_field_length_stats({"body": {0: 4, 1: 6}, "title": {}})

    assert stats["body"].total_terms == 10
    assert stats["body"].average_length == 5.0
    assert stats["title"].average_length == 0.0


def test_idf_is_positive_and_decreases_with_document_frequency() -> None:
    rare = calculate_idf(1, 100)
    common = calculate_idf(50, 100)
    everywhere = calculate_idf(100, 100)

    assert rare > common > everywhere > 0
    assert calculate_idf(1, 0) == 0.0
    assert rare == pytest.approx(math.log(1 + 99.5 / 1.5))


def test_bm25_weight() -> None:
    bm25 = BM25()

    assert bm25.weight(0, 10, 10.0) == 0.0
    assert bm25.weight(1, 10, 10.0) == pytest.approx(1.0)
    assert bm25.weight(1, 5, 10.0) > bm25.weight(1, 20, 10.0)
    assert bm25.weight(3, 10, 10.0) > bm25.weight(1, 10, 10.0)


def test_bm25_without_length_normalization() -> None:
    flat = BM25(b=0.0)

    assert flat.weight(2, 5, 10.0) == flat.weight(2, 50, 10.0)


def test_phrase_frequency_counts_aligned_starts() -> None:
    assert phrase_frequency([[0, 5, 9], [1, 7, 10]], [0, 1]) == 2
    assert phrase_frequency([[0], [2]], [0, 2]) == 1
    assert phrase_frequency([[0], [3]], [0, 1]) == 0
    assert phrase_frequency([], []) == 0
