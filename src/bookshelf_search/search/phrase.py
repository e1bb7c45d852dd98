"""Positional helpers for phrase queries.

A phrase matches wherever every term occurs at its expected offset from a
common start position. Offsets come from the analyzer, so a token dropped
between two phrase words still leaves its gap.
"""

from __future__ import annotations

from collections.abc import Sequence


def phrase_frequency(term_positions: Sequence[Sequence[int]], offsets: Sequence[int]) -> int:
    """Count start positions at which the whole phrase occurs.

    Args:
        term_positions: Positions of each phrase term within one document field,
            aligned with ``offsets``.
        offsets: Position of each term relative to the first phrase term.

    Returns:
        Number of phrase occurrences, 0 when the phrase is absent.
    """
    if not term_positions or len(term_positions) != len(offsets):
        return 0

    base_offset = offsets[0]
    candidates = {position - base_offset for position in term_positions[0]}
    for positions, offset in zip(term_positions[1:], offsets[1:], strict=True):
        if not candidates:
            return 0
        candidates &= {position - offset for position in positions}
    return len(candidates)
