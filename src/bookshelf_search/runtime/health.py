"""Health endpoint factory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse


if TYPE_CHECKING:
    from starlette.requests import Request

    from bookshelf_search.search.indexer import IndexBuildResult
    from bookshelf_search.service_layer import QueryExecutorPool


def build_health_endpoint(build_result: IndexBuildResult, pool: QueryExecutorPool):
    """Return a coroutine function reporting index and pool state."""

    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "healthy",
                "documents": build_result.documents_indexed,
                "books": dict(build_result.documents_per_book),
                "books_skipped": list(build_result.books_skipped),
                "pool_size": pool.size,
            }
        )

    return health_check
