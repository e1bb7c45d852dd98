"""In-memory postings storage for the bookshelf search stack.

The storage module provides:

* ``IndexWriter`` - accepts schema-aware documents, assigns each one a dense
  document address and accumulates postings, field lengths and stored values.
* ``SearchIndex`` - the immutable result of ``IndexWriter.commit()``. Every
  container is a read-only view so the index can be shared by any number of
  threads without locking.
* ``Searcher`` - a lightweight read handle that runs a query into a collector
  and retrieves stored fields.

The API intentionally mirrors concepts from Whoosh/Lucene (writer, commit,
searcher) so the query and collector layers stay storage agnostic.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from bookshelf_search.search.analyzers import Analyzer, KeywordAnalyzer, get_analyzer
from bookshelf_search.search.schema import Schema, SchemaField, TextField
from bookshelf_search.search.stats import BM25, FieldLengthStats, compute_field_length_stats


if TYPE_CHECKING:
    from bookshelf_search.search.collector import TopDocsCollector
    from bookshelf_search.search.query import Query


logger = logging.getLogger(__name__)

DocAddress = int


class StorageError(ValueError):
    """Raised when invalid documents or operations are encountered."""


@dataclass(frozen=True, slots=True)
class Posting:
    """Occurrences of one term in one field of one document.

    Frequency is derived from the number of positions.
    """

    doc_address: DocAddress
    positions: tuple[int, ...]

    @property
    def frequency(self) -> int:
        return len(self.positions)


def build_field_analyzer(schema_field: SchemaField) -> Analyzer:
    """Return the analyzer used for ``schema_field`` at index and query time."""
    if isinstance(schema_field, TextField):
        return get_analyzer(schema_field.analyzer_name)
    return KeywordAnalyzer()


class SearchIndex:
    """Committed, immutable inverted index plus stored-field table."""

    def __init__(
        self,
        schema: Schema,
        postings: Mapping[str, Mapping[str, tuple[Posting, ...]]],
        field_lengths: Mapping[str, Mapping[DocAddress, int]],
        stored_fields: tuple[Mapping[str, str], ...],
    ) -> None:
        self._schema = schema
        self._postings = MappingProxyType(
            {field: MappingProxyType(dict(terms)) for field, terms in postings.items()}
        )
        self._field_lengths = MappingProxyType(
            {field: MappingProxyType(dict(lengths)) for field, lengths in field_lengths.items()}
        )
        self._stored_fields = tuple(MappingProxyType(dict(doc)) for doc in stored_fields)
        self._field_stats = MappingProxyType(compute_field_length_stats(self._field_lengths))

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def doc_count(self) -> int:
        return len(self._stored_fields)

    @property
    def field_stats(self) -> Mapping[str, FieldLengthStats]:
        return self._field_stats

    def get_postings(self, field_name: str, term: str) -> tuple[Posting, ...]:
        """Return postings for a specific term in a field."""
        return self._postings.get(field_name, MappingProxyType({})).get(term, ())

    def field_length(self, field_name: str, address: DocAddress) -> int:
        return self._field_lengths.get(field_name, MappingProxyType({})).get(address, 0)

    def terms(self, field_name: str) -> tuple[str, ...]:
        return tuple(self._postings.get(field_name, {}))

    def stored_document(self, address: DocAddress) -> Mapping[str, str]:
        if not 0 <= address < len(self._stored_fields):
            msg = f"Unknown document address {address}"
            raise StorageError(msg)
        return self._stored_fields[address]

    def searcher(self) -> Searcher:
        return Searcher(self)


class Searcher:
    """Read handle over a committed index."""

    def __init__(self, index: SearchIndex, *, scoring: BM25 | None = None) -> None:
        self.index = index
        self.scoring = scoring or BM25()

    @property
    def schema(self) -> Schema:
        return self.index.schema

    @property
    def doc_count(self) -> int:
        return self.index.doc_count

    def average_length(self, field_name: str) -> float:
        stats = self.index.field_stats.get(field_name)
        return stats.average_length if stats else 0.0

    def search(self, query: Query, collector: TopDocsCollector) -> None:
        """Score ``query`` against the index and feed every match into ``collector``.

        The collector is reset first; it never carries matches from an
        earlier search.
        """
        collector.reset()
        for address, score in query.score(self).items():
            collector.collect(address, score)

    def doc(self, address: DocAddress) -> dict[str, str]:
        """Return the stored fields of a document in schema order."""
        stored = self.index.stored_document(address)
        return {f.name: stored[f.name] for f in self.schema.stored_fields if f.name in stored}


class IndexWriter:
    """Accumulates documents and produces exactly one ``SearchIndex``."""

    def __init__(self, schema: Schema) -> None:
        self.schema = schema
        self._analyzers = {f.name: build_field_analyzer(f) for f in schema if f.indexed}
        self._postings: dict[str, dict[str, list[Posting]]] = defaultdict(lambda: defaultdict(list))
        self._field_lengths: dict[str, dict[DocAddress, int]] = defaultdict(dict)
        self._stored: list[dict[str, str]] = []
        self._committed = False

    @property
    def doc_count(self) -> int:
        return len(self._stored)

    def add_document(self, document: Mapping[str, object]) -> DocAddress:
        """Index ``document`` and return its document address.

        Every schema field must be present with a string value; unknown
        fields are rejected.
        """
        if self._committed:
            raise StorageError("Index writer already committed")

        unknown = sorted(set(document) - set(self.schema.field_names))
        if unknown:
            msg = f"Unknown fields: {', '.join(unknown)}"
            raise StorageError(msg)

        values: dict[str, str] = {}
        for schema_field in self.schema:
            if schema_field.name not in document:
                msg = f"Missing field '{schema_field.name}'"
                raise StorageError(msg)
            value = document[schema_field.name]
            if not isinstance(value, str):
                msg = f"Field '{schema_field.name}' expects text, got {type(value).__name__}"
                raise StorageError(msg)
            values[schema_field.name] = value

        address = len(self._stored)
        for field_name, analyzer in self._analyzers.items():
            positions: dict[str, list[int]] = defaultdict(list)
            tokens = analyzer(values[field_name])
            for token in tokens:
                positions[token.text].append(token.position)
            field_postings = self._postings[field_name]
            for term, term_positions in positions.items():
                field_postings[term].append(Posting(address, tuple(term_positions)))
            self._field_lengths[field_name][address] = len(tokens)

        self._stored.append({f.name: values[f.name] for f in self.schema.stored_fields})
        return address

    def commit(self) -> SearchIndex:
        """Freeze everything added so far into a read-only ``SearchIndex``."""
        if self._committed:
            raise StorageError("Index writer already committed")
        self._committed = True

        index = SearchIndex(
            self.schema,
            postings={
                field: {term: tuple(entries) for term, entries in terms.items()}
                for field, terms in self._postings.items()
            },
            field_lengths=self._field_lengths,
            stored_fields=tuple(self._stored),
        )
        logger.debug("Committed index with %d documents", index.doc_count)
        return index
