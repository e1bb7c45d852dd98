from __future__ import annotations

import orjson
import pytest
from starlette.testclient import TestClient

from bookshelf_search.app_builder import AppBuilder
from bookshelf_search.errors import DispatchError, SearchExecutionError
from bookshelf_search.search.indexer import books_from_settings
from bookshelf_search.service_layer import QueryExecutorPool


pytestmark = pytest.mark.unit


@pytest.fixture
def pool(build_result):
    executor_pool = QueryExecutorPool(build_result.index, size=2)
    yield executor_pool
    executor_pool.shutdown()


@pytest.fixture
def client(pool, build_result):
    app = AppBuilder(pool, build_result).build()
    with TestClient(app) as test_client:
        yield test_client


def test_search_returns_json_results(client: TestClient) -> None:
    response = client.get("/search", params={"query": "ownership"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    assert response.text.endswith("]\n")
    assert orjson.loads(response.content)[0]["title"] == "Ownership and Lifetimes"


def test_search_without_matches_returns_empty_array(client: TestClient) -> None:
    response = client.get("/search", params={"query": "qwertyuiop"})

    assert response.status_code == 200
    assert response.text == "[]\n"


def test_empty_query_returns_empty_array(client: TestClient) -> None:
    response = client.get("/search?query=")

    assert response.status_code == 200
    assert response.text == "[]\n"


def test_missing_query_parameter(client: TestClient) -> None:
    response = client.get("/search", params={"q": "ownership"})

    assert response.status_code == 500
    assert response.text == "Unable to find query URL parameter"
    assert response.headers["x-error-reason"] == "Unable to find query URL parameter"


def test_unparsable_query(client: TestClient) -> None:
    response = client.get("/search", params={"query": '"never closed'})

    assert response.status_code == 500
    assert response.text == "Error executing search query"
    assert response.headers["x-error-reason"] == "Error executing search query"


def test_deeply_nested_query_is_a_parse_failure(client: TestClient) -> None:
    response = client.get("/search", params={"query": "(" * 400 + "rust" + ")" * 400})

    assert response.status_code == 500
    assert response.text == "Error executing search query"
    assert response.headers["x-error-reason"] == "Error executing search query"


def test_execution_failure(client: TestClient, pool: QueryExecutorPool, monkeypatch) -> None:
    async def failing_execute(raw_query: str) -> str:
        raise SearchExecutionError("index unavailable")

    monkeypatch.setattr(pool, "execute", failing_execute)

    response = client.get("/search", params={"query": "safe"})

    assert response.status_code == 500
    assert response.text == "Error executing search query"


def test_unexpected_pool_failure(client: TestClient, pool: QueryExecutorPool, monkeypatch) -> None:
    async def broken_execute(raw_query: str) -> str:
        raise RuntimeError("worker died")

    monkeypatch.setattr(pool, "execute", broken_execute)

    response = client.get("/search", params={"query": "safe"})

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


def test_stopped_pool_is_internal_error(pool: QueryExecutorPool, build_result) -> None:
    app = AppBuilder(pool, build_result).build()
    pool.shutdown()

    response = TestClient(app).get("/search", params={"query": "safe"})

    assert response.status_code == 500
    assert response.text == "Internal Server Error"


def test_requests_are_independent(client: TestClient) -> None:
    assert client.get("/search").status_code == 500
    assert client.get("/search", params={"query": "safe"}).status_code == 200


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "documents": 5,
        "books": {"nomicon": 3, "rust-by-example": 2},
        "books_skipped": [],
        "pool_size": 2,
    }


def test_metrics_endpoint(client: TestClient) -> None:
    client.get("/search", params={"query": "safe"})

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "search_requests_total" in response.text
    assert "index_document_count" in response.text


def test_rendered_books_are_served(pool, build_result, bookshelf_root) -> None:
    (bookshelf_root / "nomicon" / "book" / "index.html").write_text("<h1>The Rustonomicon</h1>", encoding="utf-8")
    books = books_from_settings(["nomicon"], bookshelf_root, "book")
    app = AppBuilder(pool, build_result, static_books=books).build()

    with TestClient(app) as client:
        page = client.get("/bookshelf/nomicon/")
        missing = client.get("/bookshelf/nomicon/nope.html")

    assert page.status_code == 200
    assert "Rustonomicon" in page.text
    assert missing.status_code == 404


def test_lifespan_shuts_pool_down(pool, build_result) -> None:
    app = AppBuilder(pool, build_result).build()

    with TestClient(app):
        pass

    with pytest.raises(DispatchError, match="unavailable"):
        pool.submit("safe")
