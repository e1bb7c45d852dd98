"""Trace identifiers carried across async tasks and executor threads.

The current ids live in a ``ContextVar``. The query pool submits work through
``contextvars.copy_context()``, so log lines written by a worker thread carry
the trace id of the request that queued the query.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
import secrets


@dataclass(frozen=True)
class TraceIds:
    trace_id: str
    span_id: str

    def with_span(self, span_id: str) -> TraceIds:
        return replace(self, span_id=span_id)


current_ids: ContextVar[TraceIds | None] = ContextVar("bookshelf_trace_ids", default=None)


def new_trace_id() -> str:
    """32 hex characters, the W3C trace-id width."""
    return secrets.token_hex(16)


def new_span_id() -> str:
    """16 hex characters, the W3C span-id width."""
    return secrets.token_hex(8)


def current_trace_ids() -> TraceIds:
    """Return the ids bound to this context, starting a new trace if none is bound."""
    ids = current_ids.get()
    if ids is None:
        ids = TraceIds(new_trace_id(), new_span_id())
        current_ids.set(ids)
    return ids


def bind_trace(trace_id: str | None = None) -> Token[TraceIds | None]:
    """Bind ``trace_id`` (or a fresh one) with a new span id; returns the reset token."""
    return current_ids.set(TraceIds(trace_id or new_trace_id(), new_span_id()))


def bind_span(span_id: str) -> None:
    current_ids.set(current_trace_ids().with_span(span_id))
