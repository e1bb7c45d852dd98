from __future__ import annotations

from pathlib import Path

import pytest
from starlette.routing import Mount
from starlette.testclient import TestClient
import uvicorn

from bookshelf_search import app as app_module
from bookshelf_search.config import Settings
from bookshelf_search.errors import StartupIndexingError


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def quiet_startup(monkeypatch):
    monkeypatch.setattr(app_module, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(app_module, "init_tracing", lambda *args, **kwargs: None)


@pytest.fixture
def bookshelf_env(monkeypatch, bookshelf_root: Path) -> Path:
    monkeypatch.setenv("SEARCH_ROOT", str(bookshelf_root))
    monkeypatch.setenv("SEARCH_BOOKS", "nomicon,rust-by-example")
    return bookshelf_root


def test_create_app_indexes_and_serves(bookshelf_env: Path) -> None:
    app = app_module.create_app(Settings())

    mounts = [route.path for route in app.routes if isinstance(route, Mount)]
    assert mounts == ["/bookshelf/nomicon", "/bookshelf/rust-by-example"]
    with TestClient(app) as client:
        response = client.get("/search", params={"query": "borrowing"})
    assert response.status_code == 200
    assert "scope/borrow.html#borrowing" in response.text


def test_create_app_without_static_mounts(bookshelf_env: Path, monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_SERVE_STATIC", "false")

    app = app_module.create_app(Settings())

    assert not [route for route in app.routes if isinstance(route, Mount)]


def test_create_app_rejects_unknown_search_field(bookshelf_env: Path, monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_SEARCH_FIELDS", "title,url")

    with pytest.raises(StartupIndexingError, match="search_fields: Unknown default search field 'url'"):
        app_module.create_app(Settings())


def test_main_runs_uvicorn_with_configured_listener(bookshelf_env: Path, monkeypatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    app_module.main()

    assert calls == [{"host": "127.0.0.1", "port": 18080, "log_level": "info", "log_config": None}]


def test_main_exits_when_indexing_fails(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_ROOT", str(tmp_path))
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: pytest.fail("server must not start"))

    with pytest.raises(SystemExit) as exc_info:
        app_module.main()

    assert exc_info.value.code == 1


def test_main_exits_on_invalid_configuration(monkeypatch) -> None:
    monkeypatch.setenv("SEARCH_POOL_SIZE", "0")
    monkeypatch.setattr(uvicorn, "run", lambda *args, **kwargs: pytest.fail("server must not start"))

    with pytest.raises(SystemExit) as exc_info:
        app_module.main()

    assert exc_info.value.code == 1
