"""Top-K ranking collector."""

from __future__ import annotations

from dataclasses import dataclass
import heapq


@dataclass(frozen=True, order=True)
class ScoredDoc:
    """A matched document address together with its relevance score."""

    score: float
    address: int


class TopDocsCollector:
    """Keeps the ``limit`` best matches of one search.

    Ordering is descending score with ties broken by ascending document
    address, so repeated searches over the same index return identical
    rankings. ``reset()`` must be called before each search; ``Searcher.search``
    does it for you.
    """

    def __init__(self, limit: int = 10) -> None:
        if limit < 1:
            raise ValueError("Collector limit must be at least 1")
        self.limit = limit
        # Min-heap keyed on (score, -address): the root is the weakest kept match.
        self._heap: list[tuple[float, int]] = []

    def reset(self) -> None:
        self._heap = []

    def collect(self, address: int, score: float) -> None:
        entry = (score, -address)
        if len(self._heap) < self.limit:
            heapq.heappush(self._heap, entry)
        elif entry > self._heap[0]:
            heapq.heapreplace(self._heap, entry)

    def docs(self) -> list[ScoredDoc]:
        """Return kept matches, best first."""
        ranked = sorted(self._heap, reverse=True)
        return [ScoredDoc(score=score, address=-negated) for score, negated in ranked]

    def __len__(self) -> int:
        return len(self._heap)
