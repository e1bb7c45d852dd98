"""Unit tests for query scoring."""

from __future__ import annotations

import pytest

from bookshelf_search.search.query import BooleanQuery, EmptyQuery, Occur, PhraseQuery, TermQuery
from bookshelf_search.search.schema import create_bookshelf_schema
from bookshelf_search.search.storage import IndexWriter, Searcher


pytestmark = pytest.mark.unit


@pytest.fixture
def searcher() -> Searcher:
    writer = IndexWriter(create_bookshelf_schema())
    for section, title, body in [
        ("ownership", "Ownership", "ownership rules in rust"),
        ("borrowing", "Borrowing", "borrowing and ownership"),
        ("lifetimes", "Lifetimes", "lifetimes rules"),
        ("rules", "Rules", "rules ownership"),
    ]:
        writer.add_document({"book": "b", "section": section, "title": title, "breadcrumbs": title, "body": body})
    return writer.commit().searcher()


def test_empty_query_matches_nothing(searcher: Searcher) -> None:
    assert EmptyQuery().score(searcher) == {}


def test_term_query_scores_matching_documents(searcher: Searcher) -> None:
    scores = TermQuery("body", "ownership").score(searcher)

    assert set(scores) == {0, 1, 3}
    assert all(score > 0 for score in scores.values())
    assert TermQuery("body", "missing").score(searcher) == {}


def test_shorter_field_scores_higher(searcher: Searcher) -> None:
    scores = TermQuery("body", "ownership").score(searcher)

    assert scores[3] > scores[0]


def test_phrase_query_requires_consecutive_terms(searcher: Searcher) -> None:
    scores = PhraseQuery("body", ("ownership", "rules"), (0, 1)).score(searcher)

    assert set(scores) == {0}


def test_phrase_query_needs_two_terms() -> None:
    with pytest.raises(ValueError, match="at least two terms"):
        PhraseQuery("body", ("ownership",), (0,))


def test_boolean_must_intersects_and_must_not_excludes(searcher: Searcher) -> None:
    both = BooleanQuery.of([(Occur.MUST, TermQuery("body", "ownership")), (Occur.MUST, TermQuery("body", "rules"))])
    assert set(both.score(searcher)) == {0, 3}

    excluded = BooleanQuery.of(
        [(Occur.MUST, TermQuery("body", "ownership")), (Occur.MUST_NOT, TermQuery("body", "borrowing"))]
    )
    assert set(excluded.score(searcher)) == {0, 3}


def test_boolean_should_unions_without_must(searcher: Searcher) -> None:
    query = BooleanQuery.of(
        [(Occur.SHOULD, TermQuery("title", "lifetimes")), (Occur.SHOULD, TermQuery("title", "borrowing"))]
    )

    assert set(query.score(searcher)) == {1, 2}


def test_boolean_should_only_boosts_with_must(searcher: Searcher) -> None:
    base = TermQuery("body", "ownership")
    query = BooleanQuery.of([(Occur.MUST, base), (Occur.SHOULD, TermQuery("title", "borrowing"))])

    scores = query.score(searcher)

    assert set(scores) == {0, 1, 3}
    assert scores[1] > base.score(searcher)[1]
