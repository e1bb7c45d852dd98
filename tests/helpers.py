"""Builders for rendered-book fixtures shared across tests."""

from __future__ import annotations

from pathlib import Path

import orjson


NOMICON_DOCS = {
    "meet-safe-and-unsafe.html#meet-safe-and-unsafe": {
        "title": "Meet Safe and Unsafe",
        "breadcrumbs": "Meet Safe and Unsafe",
        "body": "Safe Rust is the true Rust programming language. Unsafe Rust is exactly like Safe Rust.",
    },
    "races.html#data-races-and-race-conditions": {
        "title": "Data Races and Race Conditions",
        "breadcrumbs": "Concurrency » Data Races and Race Conditions",
        "body": "Safe Rust guarantees an absence of data races. A data race has two or more threads.",
    },
    "ownership.html#ownership-and-lifetimes": {
        "title": "Ownership and Lifetimes",
        "breadcrumbs": "Ownership and Lifetimes",
        "body": "Ownership is the breakout feature of Rust. It allows Rust to be memory safe.",
    },
}

RBE_DOCS = {
    "hello.html#hello-world": {
        "title": "Hello World",
        "breadcrumbs": "Hello World",
        "body": "This is the source code of the traditional Hello World program.",
    },
    "scope/borrow.html#borrowing": {
        "title": "Borrowing",
        "breadcrumbs": "Scoping rules » Borrowing",
        "body": "Most of the time, we'd like to access data without taking ownership over it.",
    },
}


def document_store_payload(docs: dict, *, save: bool = True) -> dict:
    """Return a renderer search artifact holding ``docs``."""
    return {
        "doc_urls": sorted(docs),
        "index": {
            "documentStore": {
                "docInfo": {str(i): {"body": 1} for i in range(len(docs))},
                "docs": docs,
                "length": len(docs),
                "save": save,
            },
            "version": "0.9.5",
        },
        "results_options": {"limit_results": 30},
    }


def write_book(root: Path, name: str, docs: dict, *, save: bool = True, wrapped: bool = True) -> Path:
    """Write a rendered book artifact under ``root/name/book``."""
    output = root / name / "book"
    output.mkdir(parents=True, exist_ok=True)
    payload = orjson.dumps(document_store_payload(docs, save=save)).decode("utf-8")
    if wrapped:
        path = output / "searchindex.js"
        path.write_text(f"window.search = {payload};", encoding="utf-8")
    else:
        path = output / "searchindex.json"
        path.write_text(payload, encoding="utf-8")
    return path
