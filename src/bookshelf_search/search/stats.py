"""Okapi BM25 scoring primitives.

Kept free of storage types: callers pass plain counts, which keeps the maths
testable on its own.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import math


@dataclass(frozen=True)
class FieldLengthStats:
    """Token totals of one field across every document that has it."""

    field: str
    total_terms: int
    document_count: int

    @classmethod
    def from_lengths(cls, field: str, lengths: Iterable[int]) -> FieldLengthStats:
        counted = [max(length, 0) for length in lengths]
        return cls(field=field, total_terms=sum(counted), document_count=len(counted))

    @property
    def average_length(self) -> float:
        return self.total_terms / self.document_count if self.document_count else 0.0


def compute_field_length_stats(field_lengths: Mapping[str, Mapping[int, int]]) -> dict[str, FieldLengthStats]:
    return {name: FieldLengthStats.from_lengths(name, lengths.values()) for name, lengths in field_lengths.items()}


def calculate_idf(doc_freq: int, total_docs: int) -> float:
    """Smoothed inverse document frequency, ``ln(1 + (N - df + 0.5) / (df + 0.5))``.

    Always positive, so a term present in every document still adds a little
    to a match instead of subtracting from it.
    """
    if total_docs <= 0:
        return 0.0
    doc_freq = min(max(doc_freq, 0), total_docs)
    return math.log1p((total_docs - doc_freq + 0.5) / (doc_freq + 0.5))


@dataclass(frozen=True)
class BM25:
    """Term-frequency saturation (``k1``) and length normalization (``b``)."""

    k1: float = 1.2
    b: float = 0.75

    def weight(self, tf: int, doc_length: int, avg_doc_length: float) -> float:
        """Return the BM25 weight of ``tf`` occurrences, excluding IDF."""
        if tf <= 0:
            return 0.0
        length_ratio = doc_length / avg_doc_length if avg_doc_length > 0 else 1.0
        return tf * (self.k1 + 1) / (tf + self.k1 * (1 - self.b + self.b * length_ratio))
