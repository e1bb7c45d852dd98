"""Service layer - query execution between the HTTP boundary and the index."""

from bookshelf_search.service_layer.executor_pool import (
    QueryExecutor,
    QueryExecutorPool,
    serialize_results,
)


__all__ = [
    "QueryExecutor",
    "QueryExecutorPool",
    "serialize_results",
]
