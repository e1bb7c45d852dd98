"""Observability module for OpenTelemetry tracing, Prometheus metrics, and logging."""

from bookshelf_search.observability.context import TraceIds, bind_trace, current_trace_ids
from bookshelf_search.observability.logging import JsonFormatter, configure_logging
from bookshelf_search.observability.metrics import (
    INDEX_DOC_COUNT,
    POOL_PENDING,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    get_metrics_content_type,
    track_latency,
)
from bookshelf_search.observability.tracing import (
    TracingMiddleware,
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
)


__all__ = [
    "INDEX_DOC_COUNT",
    "POOL_PENDING",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "TraceIds",
    "TracingMiddleware",
    "bind_trace",
    "configure_logging",
    "configure_trace_exporter",
    "create_span",
    "current_trace_ids",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_tracing",
    "track_latency",
]
