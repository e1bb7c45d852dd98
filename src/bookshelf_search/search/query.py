"""Executable query objects produced by the query parser.

Each query scores itself against a ``Searcher`` and returns a mapping of
document address to BM25 relevance. Queries are immutable value objects; all
per-search state lives in local variables, so one query may run on several
threads at once.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from bookshelf_search.search.phrase import phrase_frequency
from bookshelf_search.search.stats import calculate_idf


if TYPE_CHECKING:
    from bookshelf_search.search.storage import Searcher


class Occur(str, Enum):
    """How a clause participates in a boolean query."""

    MUST = "must"
    SHOULD = "should"
    MUST_NOT = "must_not"


class Query:
    """Base class for executable queries."""

    def score(self, searcher: Searcher) -> dict[int, float]:  # pragma: no cover - interface definition
        raise NotImplementedError


@dataclass(frozen=True)
class EmptyQuery(Query):
    """Matches nothing. Produced for blank queries or queries with no usable terms."""

    def score(self, searcher: Searcher) -> dict[int, float]:
        return {}


@dataclass(frozen=True)
class TermQuery(Query):
    """Single analyzed term in one field."""

    field: str
    term: str

    def score(self, searcher: Searcher) -> dict[int, float]:
        index = searcher.index
        postings = index.get_postings(self.field, self.term)
        if not postings:
            return {}

        idf = calculate_idf(len(postings), searcher.doc_count)
        avg_length = searcher.average_length(self.field)
        boost = searcher.schema.get_boost(self.field)
        scores: dict[int, float] = {}
        for posting in postings:
            doc_length = index.field_length(self.field, posting.doc_address)
            weight = searcher.scoring.weight(posting.frequency, doc_length, avg_length)
            scores[posting.doc_address] = idf * weight * boost
        return scores


@dataclass(frozen=True)
class PhraseQuery(Query):
    """Consecutive analyzed terms in one field.

    ``offsets`` holds each term's position relative to the first term.
    """

    field: str
    terms: tuple[str, ...]
    offsets: tuple[int, ...]

    def __post_init__(self) -> None:
        if len(self.terms) < 2 or len(self.terms) != len(self.offsets):
            raise ValueError("Phrase query needs at least two terms with matching offsets")

    def score(self, searcher: Searcher) -> dict[int, float]:
        index = searcher.index
        postings_per_term = [index.get_postings(self.field, term) for term in self.terms]
        if any(not postings for postings in postings_per_term):
            return {}

        by_doc = [{posting.doc_address: posting.positions for posting in postings} for postings in postings_per_term]
        candidates = set(by_doc[0])
        for positions_by_doc in by_doc[1:]:
            candidates &= positions_by_doc.keys()
        if not candidates:
            return {}

        idf_sum = sum(calculate_idf(len(postings), searcher.doc_count) for postings in postings_per_term)
        avg_length = searcher.average_length(self.field)
        boost = searcher.schema.get_boost(self.field)
        scores: dict[int, float] = {}
        for address in candidates:
            frequency = phrase_frequency([positions[address] for positions in by_doc], self.offsets)
            if frequency <= 0:
                continue
            doc_length = index.field_length(self.field, address)
            weight = searcher.scoring.weight(frequency, doc_length, avg_length)
            scores[address] = idf_sum * weight * boost
        return scores


@dataclass(frozen=True)
class BooleanQuery(Query):
    """Combination of sub-queries.

    With at least one MUST clause a document has to match all of them and
    SHOULD clauses only add score; otherwise a document has to match at least
    one SHOULD clause. MUST_NOT clauses always exclude.
    """

    clauses: tuple[tuple[Occur, Query], ...]

    @classmethod
    def of(cls, clauses: Sequence[tuple[Occur, Query]]) -> BooleanQuery:
        return cls(tuple(clauses))

    def score(self, searcher: Searcher) -> dict[int, float]:
        must = [query.score(searcher) for occur, query in self.clauses if occur == Occur.MUST]
        should = [query.score(searcher) for occur, query in self.clauses if occur == Occur.SHOULD]
        excluded: set[int] = set()
        for occur, query in self.clauses:
            if occur == Occur.MUST_NOT:
                excluded.update(query.score(searcher))

        scores: dict[int, float] = {}
        if must:
            matching = set(must[0])
            for clause_scores in must[1:]:
                matching &= clause_scores.keys()
            for address in matching:
                scores[address] = sum(clause_scores[address] for clause_scores in must)
            for clause_scores in should:
                for address, value in clause_scores.items():
                    if address in scores:
                        scores[address] += value
        else:
            for clause_scores in should:
                for address, value in clause_scores.items():
                    scores[address] = scores.get(address, 0.0) + value

        for address in excluded:
            scores.pop(address, None)
        return scores
