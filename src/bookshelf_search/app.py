"""Process entry point.

Startup happens in two strictly ordered phases:

1. Build phase - every configured book is loaded into one index, which is
   committed and frozen. Any failure exits the process with status 1 before
   the HTTP listener is bound.
2. Serve phase - a fixed pool of query executors shares the committed index
   and uvicorn serves the Starlette app.

Usage:
    bookshelf-search

    # or with explicit settings
    SEARCH_ROOT=/srv/books SEARCH_BOOKS=nomicon,rust-by-example python -m bookshelf_search.app
"""

from __future__ import annotations

import logging
import sys

from pydantic import ValidationError
from starlette.applications import Starlette

from bookshelf_search.app_builder import AppBuilder
from bookshelf_search.config import Settings
from bookshelf_search.errors import StartupIndexingError
from bookshelf_search.observability import configure_logging, configure_trace_exporter, init_tracing
from bookshelf_search.search.indexer import IndexBuilder, IndexBuildResult, books_from_settings
from bookshelf_search.service_layer import QueryExecutorPool


logger = logging.getLogger(__name__)


def build_index(settings: Settings) -> IndexBuildResult:
    """Run the blocking build phase."""
    books = books_from_settings(settings.get_books(), settings.root, settings.output_dir)
    builder = IndexBuilder(books, build_command=settings.get_build_command())
    return builder.build()


def create_app(settings: Settings) -> Starlette:
    """Index every book, start the executor pool and return the ASGI app.

    Raises:
        StartupIndexingError: when indexing fails or the pool cannot be configured.
    """
    build_result = build_index(settings)
    try:
        pool = QueryExecutorPool(
            build_result.index,
            size=settings.pool_size,
            default_fields=settings.get_search_fields(),
            result_limit=settings.result_limit,
            max_pending=settings.max_pending,
        )
    except ValueError as exc:
        raise StartupIndexingError("search_fields", str(exc)) from exc

    static_books = (
        books_from_settings(settings.get_books(), settings.root, settings.output_dir) if settings.serve_static else []
    )
    return AppBuilder(
        pool,
        build_result,
        static_books=static_books,
        debug=settings.log_level in ("trace", "debug"),
    ).build()


def main() -> None:
    """Main entry point for the search server."""
    import uvicorn

    try:
        settings = Settings()
    except ValidationError as exc:
        configure_logging()
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)

    configure_logging(settings.python_log_level, settings.json_logs, access_log=settings.access_log)
    init_tracing()
    configure_trace_exporter(settings.otlp_endpoint)

    try:
        app = create_app(settings)
    except StartupIndexingError as exc:
        logger.critical("Startup indexing failed: %s", exc, exc_info=exc.__cause__ is not None)
        sys.exit(1)

    logger.info("Listening on %s:%d", settings.host, settings.port)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,
    )


if __name__ == "__main__":
    main()
