"""Shared test fixtures and configuration."""

from __future__ import annotations

import os
from pathlib import Path
import sys

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


# Complete test environment that overrides every SEARCH_* setting
TEST_ENV = {
    "SEARCH_LOG_LEVEL": "info",
    "SEARCH_JSON_LOGS": "false",
    "SEARCH_ACCESS_LOG": "false",
    "SEARCH_HOST": "127.0.0.1",
    "SEARCH_PORT": "18080",
    "SEARCH_ROOT": "..",
    "SEARCH_BOOKS": "book/first-edition,book/second-edition,nomicon,rust-by-example",
    "SEARCH_OUTPUT_DIR": "book",
    "SEARCH_BUILD_COMMAND": "",
    "SEARCH_SERVE_STATIC": "true",
    "SEARCH_SEARCH_FIELDS": "title,breadcrumbs,body",
    "SEARCH_POOL_SIZE": "2",
    "SEARCH_RESULT_LIMIT": "10",
    "SEARCH_MAX_PENDING": "0",
    "SEARCH_OTLP_ENDPOINT": "",
}

# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value

from tests.helpers import NOMICON_DOCS, RBE_DOCS, write_book


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Reset SEARCH_* variables to test defaults before each test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


@pytest.fixture
def bookshelf_root(tmp_path: Path) -> Path:
    """Root directory holding two rendered books."""
    write_book(tmp_path, "nomicon", NOMICON_DOCS)
    write_book(tmp_path, "rust-by-example", RBE_DOCS, wrapped=False)
    return tmp_path


@pytest.fixture
def build_result(bookshelf_root: Path):
    """Committed index over the ``bookshelf_root`` books."""
    from bookshelf_search.search.indexer import IndexBuilder, books_from_settings

    books = books_from_settings(["nomicon", "rust-by-example"], bookshelf_root, "book")
    return IndexBuilder(books).build()
