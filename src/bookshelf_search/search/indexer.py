"""Book indexing pipeline.

Every book is rendered by an external site generator into a document store
artifact (``searchindex.js`` or ``searchindex.json``) inside its output
directory. ``IndexBuilder`` loads those artifacts in order, maps each record
onto the bookshelf schema and commits one immutable ``SearchIndex``.

Any failure is fatal: a service with a partial index is never started.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
from pathlib import Path
import subprocess
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bookshelf_search.errors import StartupIndexingError
from bookshelf_search.observability import INDEX_DOC_COUNT, create_span
from bookshelf_search.search.schema import (
    BODY_FIELD,
    BOOK_FIELD,
    BREADCRUMBS_FIELD,
    SECTION_FIELD,
    TITLE_FIELD,
    Schema,
    create_bookshelf_schema,
)
from bookshelf_search.search.storage import IndexWriter, SearchIndex, StorageError


logger = logging.getLogger(__name__)

JS_ARTIFACT = "searchindex.js"
JSON_ARTIFACT = "searchindex.json"
_JS_PREFIX = "window.search = "
_JS_SUFFIX = ";"
_RECORD_FIELDS = (TITLE_FIELD, BREADCRUMBS_FIELD, BODY_FIELD)


class DocumentStore(BaseModel):
    """Document store section of a rendered book's search artifact.

    ``docs`` maps each document reference to its text fields. Renderer
    bookkeeping (``docInfo``, ``length``) is ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    save: bool
    docs: dict[str, dict[str, str]] = Field(default_factory=dict)


@dataclass(frozen=True)
class BookSource:
    """Location of one book on disk."""

    name: str
    root: Path
    output_dir: str = "book"

    @property
    def directory(self) -> Path:
        return self.root / self.name

    @property
    def output_path(self) -> Path:
        return self.directory / self.output_dir

    def artifact_path(self) -> Path:
        """Return the wrapped ``.js`` artifact when present, else the clean JSON one."""
        js_path = self.output_path / JS_ARTIFACT
        if js_path.exists():
            return js_path
        return self.output_path / JSON_ARTIFACT


@dataclass(frozen=True)
class IndexBuildResult:
    """Outcome of one indexing run."""

    index: SearchIndex
    documents_indexed: int
    documents_per_book: Mapping[str, int] = field(default_factory=dict)
    books_skipped: tuple[str, ...] = ()


def strip_js_wrapper(text: str) -> str:
    """Remove the ``window.search = ...;`` assignment around the JSON payload."""
    if not text.startswith(_JS_PREFIX):
        raise ValueError(f"expected artifact to start with {_JS_PREFIX!r}")
    payload = text[len(_JS_PREFIX) :].rstrip()
    if not payload.endswith(_JS_SUFFIX):
        raise ValueError(f"expected artifact to end with {_JS_SUFFIX!r}")
    return payload[: -len(_JS_SUFFIX)]


def parse_document_store(text: str, *, wrapped: bool) -> DocumentStore:
    """Parse artifact text into a ``DocumentStore``.

    Raises ``ValueError`` (including pydantic's ``ValidationError``) for any
    malformed payload.
    """
    payload_text = strip_js_wrapper(text) if wrapped else text
    try:
        payload: Any = orjson.loads(payload_text)
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ValueError("artifact is not a JSON object")

    index_section = payload.get("index")
    if isinstance(index_section, dict) and "documentStore" in index_section:
        store = index_section["documentStore"]
    elif "documentStore" in payload:
        store = payload["documentStore"]
    else:
        raise ValueError("artifact has no documentStore section")
    return DocumentStore.model_validate(store)


def load_document_store(path: Path) -> DocumentStore:
    """Read and parse the artifact at ``path``."""
    text = path.read_text(encoding="utf-8")
    return parse_document_store(text, wrapped=path.suffix == ".js")


class IndexBuilder:
    """Build the single committed index for every configured book."""

    def __init__(
        self,
        books: Sequence[BookSource],
        *,
        schema: Schema | None = None,
        build_command: Sequence[str] = (),
    ) -> None:
        self.books = list(books)
        self.schema = schema or create_bookshelf_schema()
        self.build_command = list(build_command)

    def build(self) -> IndexBuildResult:
        """Index every book and commit once.

        Raises:
            StartupIndexingError: when a book cannot be rendered, read, parsed
                or mapped onto the schema.
        """
        writer = IndexWriter(self.schema)
        documents_per_book: dict[str, int] = {}
        skipped: list[str] = []

        with create_span("index.build", attributes={"index.books": len(self.books)}) as span:
            for book in self.books:
                if self.build_command:
                    self._render(book)

                store = self._load(book)
                if not store.save:
                    logger.warning("Document store saving disabled for book: %s", book.name)
                    skipped.append(book.name)
                    continue

                documents_per_book[book.name] = self._add_book(writer, book, store)
                logger.info("Added %s to search index (%d documents)", book.name, documents_per_book[book.name])

            index = writer.commit()
            span.set_attribute("index.documents", index.doc_count)

        INDEX_DOC_COUNT.set(index.doc_count)
        logger.info("Search index ready (%d documents)", index.doc_count)
        return IndexBuildResult(
            index=index,
            documents_indexed=index.doc_count,
            documents_per_book=documents_per_book,
            books_skipped=tuple(skipped),
        )

    def _render(self, book: BookSource) -> None:
        logger.info("Building %s", book.name)
        try:
            subprocess.run(
                self.build_command,
                cwd=book.directory,
                capture_output=True,
                check=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise StartupIndexingError(
                book.name, f"build command exited with status {exc.returncode}: {detail}"
            ) from exc
        except OSError as exc:
            raise StartupIndexingError(book.name, f"unable to run build command: {exc}") from exc
        logger.info("Built %s", book.name)

    def _load(self, book: BookSource) -> DocumentStore:
        path = book.artifact_path()
        logger.info("Loading document store from %s", path)
        try:
            return load_document_store(path)
        except OSError as exc:
            raise StartupIndexingError(book.name, f"unable to read {path}: {exc}") from exc
        except ValidationError as exc:
            raise StartupIndexingError(book.name, f"malformed document store in {path}: {exc}") from exc
        except ValueError as exc:
            raise StartupIndexingError(book.name, f"malformed artifact {path}: {exc}") from exc

    def _add_book(self, writer: IndexWriter, book: BookSource, store: DocumentStore) -> int:
        added = 0
        for doc_ref in sorted(store.docs):
            record = store.docs[doc_ref]
            missing = [name for name in _RECORD_FIELDS if name not in record]
            if missing:
                raise StartupIndexingError(book.name, f"document {doc_ref!r} is missing {', '.join(missing)}")
            try:
                writer.add_document(
                    {
                        BOOK_FIELD: book.name,
                        SECTION_FIELD: doc_ref,
                        TITLE_FIELD: record[TITLE_FIELD],
                        BREADCRUMBS_FIELD: record[BREADCRUMBS_FIELD],
                        BODY_FIELD: record[BODY_FIELD],
                    }
                )
            except StorageError as exc:
                raise StartupIndexingError(book.name, f"document {doc_ref!r}: {exc}") from exc
            added += 1
        return added


def books_from_settings(names: Sequence[str], root: Path, output_dir: str) -> list[BookSource]:
    return [BookSource(name=name, root=root, output_dir=output_dir) for name in names]
