"""Composable builder for the search HTTP application.

Routes:
    GET /search?query=...    ranked results as a JSON array
    GET /health              index and pool summary
    GET /metrics             Prometheus exposition
    /bookshelf/<book>/...    rendered book files (optional)

The ``/search`` endpoint is the only boundary between the HTTP transport and
the query executor pool. Every per-request failure is converted to a response
here and never escapes to other requests.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Mount, Route
from starlette.staticfiles import StaticFiles

from bookshelf_search.errors import DispatchError, MissingParameterError, QueryParseError, SearchError
from bookshelf_search.observability import (
    SEARCH_REQUESTS,
    TracingMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from bookshelf_search.runtime.health import build_health_endpoint


if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from starlette.requests import Request

    from bookshelf_search.search.indexer import BookSource, IndexBuildResult
    from bookshelf_search.service_layer import QueryExecutorPool


logger = logging.getLogger(__name__)

MISSING_QUERY_REASON = "Unable to find query URL parameter"
SEARCH_FAILED_REASON = "Error executing search query"
INTERNAL_ERROR_REASON = "Internal Server Error"
STATIC_PREFIX = "/bookshelf"


def error_response(reason: str, status_code: int = 500) -> Response:
    """Plain-text error carrying ``reason`` in the body and the ``x-error-reason`` header.

    ASGI servers always send the standard reason phrase for a status code, so
    the specific reason travels in the body and header instead.
    """
    return PlainTextResponse(reason, status_code=status_code, headers={"x-error-reason": reason})


def extract_query(request: Request) -> str:
    """Return the raw ``query`` parameter or raise ``MissingParameterError``."""
    raw_query = request.query_params.get("query")
    if raw_query is None:
        raise MissingParameterError(MISSING_QUERY_REASON)
    return raw_query


def build_search_endpoint(pool: QueryExecutorPool):
    """Return the ``/search`` coroutine bound to ``pool``."""

    async def search(request: Request) -> Response:
        try:
            raw_query = extract_query(request)
        except MissingParameterError:
            SEARCH_REQUESTS.labels(status="missing_query").inc()
            return error_response(MISSING_QUERY_REASON)

        try:
            body = await pool.execute(raw_query)
        except QueryParseError as exc:
            logger.info("Rejected query %r: %s", raw_query, exc)
            SEARCH_REQUESTS.labels(status="parse_error").inc()
            return error_response(SEARCH_FAILED_REASON)
        except SearchError:
            logger.error("Search execution failed for %r", raw_query, exc_info=True)
            SEARCH_REQUESTS.labels(status="search_error").inc()
            return error_response(SEARCH_FAILED_REASON)
        except DispatchError as exc:
            logger.error("Unable to dispatch query %r: %s", raw_query, exc)
            SEARCH_REQUESTS.labels(status="dispatch_error").inc()
            return error_response(INTERNAL_ERROR_REASON)
        except Exception:
            logger.error("Query pool failure for %r", raw_query, exc_info=True)
            SEARCH_REQUESTS.labels(status="dispatch_error").inc()
            return error_response(INTERNAL_ERROR_REASON)

        SEARCH_REQUESTS.labels(status="ok").inc()
        return Response(body, media_type="application/json")

    return search


async def metrics_endpoint(request: Request) -> Response:
    return Response(get_metrics(), media_type=get_metrics_content_type())


class AppBuilder:
    """Builds the ASGI app around an already committed index and its pool."""

    def __init__(
        self,
        pool: QueryExecutorPool,
        build_result: IndexBuildResult,
        *,
        static_books: Sequence[BookSource] = (),
        debug: bool = False,
    ) -> None:
        self.pool = pool
        self.build_result = build_result
        self.static_books = list(static_books)
        self.debug = debug

    def build(self) -> Starlette:
        """Build and return the Starlette application."""
        app = Starlette(
            debug=self.debug,
            routes=self._build_routes(),
            lifespan=self._build_lifespan_manager(),
        )
        app.add_middleware(TracingMiddleware)
        app.state.pool = self.pool
        return app

    def _build_routes(self) -> list[Route | Mount]:
        routes: list[Route | Mount] = [
            Route("/search", endpoint=build_search_endpoint(self.pool), methods=["GET"]),
            Route("/health", endpoint=build_health_endpoint(self.build_result, self.pool), methods=["GET"]),
            Route("/metrics", endpoint=metrics_endpoint, methods=["GET"]),
        ]
        for book in self.static_books:
            path = f"{STATIC_PREFIX}/{book.name}"
            routes.append(
                Mount(path, app=StaticFiles(directory=book.output_path, html=True, check_dir=False), name=book.name)
            )
            logger.debug("Serving %s at %s", book.output_path, path)
        return routes

    def _build_lifespan_manager(self):
        pool = self.pool

        @asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            try:
                yield
            finally:
                pool.shutdown(wait=False)

        return lifespan
