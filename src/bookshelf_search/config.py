"""Centralized configuration for bookshelf-search using Pydantic Settings."""

from pathlib import Path
import shlex
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_BOOKS = "book/first-edition,book/second-edition,nomicon,rust-by-example"


def _split_csv(raw_value: str) -> list[str]:
    return [entry.strip() for entry in raw_value.split(",") if entry.strip()]


class Settings(BaseSettings):
    """Strictly typed configuration loaded from ``SEARCH_*`` environment variables.

    Every value is validated once at startup, before any book is indexed.
    """

    model_config = SettingsConfigDict(
        env_prefix="SEARCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        validate_default=True,
        extra="ignore",
    )

    # Logging
    log_level: Literal["trace", "debug", "info", "warning", "error", "critical"] = Field(
        default="info", description="Verbosity of diagnostic logging"
    )
    json_logs: bool = Field(default=False, description="Emit structured JSON log lines")
    access_log: bool = Field(default=True, description="Log every HTTP request through uvicorn.access")

    # Server settings
    host: str = Field(default="127.0.0.1", description="Address the HTTP server binds to")
    port: int = Field(default=8080, ge=1, le=65535, description="Port the HTTP server binds to")

    # Corpora
    root: Path = Field(default=Path(".."), description="Directory containing every book")
    books: str = Field(default=DEFAULT_BOOKS, description="Comma-separated book paths relative to root")
    output_dir: str = Field(default="book", description="Rendered output directory inside each book")
    build_command: str = Field(
        default="",
        description="Command run inside each book directory to render it before indexing (e.g. 'mdbook build')",
    )
    serve_static: bool = Field(default=True, description="Serve each rendered book under /bookshelf/<book>")

    # Search
    search_fields: str = Field(
        default="title,breadcrumbs,body", description="Comma-separated fields searched by bare query terms"
    )
    pool_size: int = Field(default=8, ge=1, le=64, description="Number of query executor workers")
    result_limit: int = Field(default=10, ge=1, le=1000, description="Maximum results per query")
    max_pending: int = Field(
        default=0, ge=0, description="Maximum queued plus running queries; 0 disables the bound"
    )

    # Tracing
    otlp_endpoint: str = Field(default="", description="OTLP/HTTP trace collector endpoint, empty disables export")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

    @field_validator("books")
    @classmethod
    def _check_books(cls, value: str) -> str:
        if not _split_csv(value):
            raise ValueError("SEARCH_BOOKS must name at least one book")
        return value

    @field_validator("search_fields")
    @classmethod
    def _check_search_fields(cls, value: str) -> str:
        if not _split_csv(value):
            raise ValueError("SEARCH_SEARCH_FIELDS must name at least one field")
        return value

    def get_books(self) -> list[str]:
        """Get the configured book paths in indexing order."""
        return _split_csv(self.books)

    def get_search_fields(self) -> list[str]:
        """Get the default query fields."""
        return _split_csv(self.search_fields)

    def get_build_command(self) -> list[str]:
        """Get the render command as an argument vector, empty when disabled."""
        return shlex.split(self.build_command)

    @property
    def python_log_level(self) -> str:
        """Map the verbosity control onto a stdlib logging level name."""
        return "DEBUG" if self.log_level == "trace" else self.log_level.upper()
