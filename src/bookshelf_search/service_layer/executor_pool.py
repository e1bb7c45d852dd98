"""Fixed-size pool of query executors over one shared, read-only index.

Each worker thread owns one ``QueryExecutor`` (its own parser and collector)
created the first time the thread starts. The committed ``SearchIndex`` is the
only object shared between workers; it is never mutated, so no locking is
needed beyond the executor's work queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
import contextvars
import logging
import threading

import orjson

from bookshelf_search.errors import DispatchError, QueryParseError, SearchExecutionError
from bookshelf_search.observability import POOL_PENDING, SEARCH_LATENCY, create_span, track_latency
from bookshelf_search.search.collector import TopDocsCollector
from bookshelf_search.search.query_parser import QueryParser
from bookshelf_search.search.schema import DEFAULT_SEARCH_FIELDS
from bookshelf_search.search.storage import SearchIndex


logger = logging.getLogger(__name__)

DEFAULT_POOL_SIZE = 8
DEFAULT_RESULT_LIMIT = 10


def serialize_results(documents: Sequence[Mapping[str, str]]) -> str:
    """Serialize stored-field documents as a JSON array followed by a newline."""
    return orjson.dumps([dict(document) for document in documents]).decode("utf-8") + "\n"


class QueryExecutor:
    """Runs one query end-to-end: parse, search, collect, retrieve, serialize."""

    def __init__(
        self,
        index: SearchIndex,
        *,
        default_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
        result_limit: int = DEFAULT_RESULT_LIMIT,
    ) -> None:
        self.index = index
        self.query_parser = QueryParser(index.schema, default_fields)
        self.collector = TopDocsCollector(result_limit)

    def handle(self, raw_query: str) -> str:
        """Execute ``raw_query`` and return the serialized top results.

        Raises:
            QueryParseError: the query does not compile against the schema.
            SearchExecutionError: searching or stored-field retrieval failed.
        """
        query = self.query_parser.parse(raw_query)
        try:
            searcher = self.index.searcher()
            searcher.search(query, self.collector)
            documents = []
            for scored in self.collector.docs():
                document = searcher.doc(scored.address)
                logger.debug("Address: %d score=%.4f", scored.address, scored.score)
                documents.append(document)
        except QueryParseError:
            raise
        except Exception as exc:
            raise SearchExecutionError(f"Search failed for {raw_query!r}: {exc}") from exc
        finally:
            self.collector.reset()
        return serialize_results(documents)


class QueryExecutorPool:
    """Bounded set of worker threads consuming one shared query queue."""

    def __init__(
        self,
        index: SearchIndex,
        *,
        size: int = DEFAULT_POOL_SIZE,
        default_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
        result_limit: int = DEFAULT_RESULT_LIMIT,
        max_pending: int = 0,
    ) -> None:
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        # Fail at startup, not on the first request, when the field list is bad.
        QueryParser(index.schema, default_fields)

        self.index = index
        self.size = size
        self.default_fields = tuple(default_fields)
        self.result_limit = result_limit
        self.max_pending = max_pending
        self._local = threading.local()
        self._slots = threading.BoundedSemaphore(max_pending) if max_pending else None
        self._executor = ThreadPoolExecutor(
            max_workers=size,
            thread_name_prefix="query-executor",
            initializer=self._init_worker,
        )
        logger.info("Query executor pool started with %d workers", size)

    def __enter__(self) -> QueryExecutorPool:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def _init_worker(self) -> None:
        self._local.executor = QueryExecutor(
            self.index,
            default_fields=self.default_fields,
            result_limit=self.result_limit,
        )
        logger.debug("Initialized %s", threading.current_thread().name)

    def _run(self, raw_query: str) -> str:
        executor: QueryExecutor = self._local.executor
        with (
            create_span("search.query", attributes={"search.query": raw_query[:100]}),
            track_latency(SEARCH_LATENCY),
        ):
            return executor.handle(raw_query)

    def _release(self, _future: Future) -> None:
        POOL_PENDING.dec()
        if self._slots is not None:
            self._slots.release()

    def submit(self, raw_query: str) -> Future[str]:
        """Queue ``raw_query`` for the next idle worker.

        Raises:
            DispatchError: the pool is saturated, shut down, or broken.
        """
        if self._slots is not None and not self._slots.acquire(blocking=False):
            raise DispatchError(f"Query pool saturated ({self.max_pending} pending)")

        context = contextvars.copy_context()
        try:
            future = self._executor.submit(context.run, self._run, raw_query)
        except RuntimeError as exc:
            if self._slots is not None:
                self._slots.release()
            raise DispatchError(f"Query pool unavailable: {exc}") from exc

        POOL_PENDING.inc()
        future.add_done_callback(self._release)
        return future

    async def execute(self, raw_query: str) -> str:
        """Run ``raw_query`` on a worker without blocking the event loop."""
        return await asyncio.wrap_future(self.submit(raw_query))

    def shutdown(self, *, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.info("Query executor pool stopped")
