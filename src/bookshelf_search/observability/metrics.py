"""Prometheus metrics for the search service."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


SEARCH_REQUESTS = Counter(
    "search_requests_total",
    "Search requests by outcome",
    ["status"],
)

SEARCH_LATENCY = Histogram(
    "search_latency_seconds",
    "Query execution latency inside a pool worker",
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

INDEX_DOC_COUNT = Gauge(
    "index_document_count",
    "Documents in the committed index",
)

POOL_PENDING = Gauge(
    "query_pool_pending",
    "Queries queued or running in the executor pool",
)


@contextmanager
def track_latency(histogram: Histogram) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
