"""Exception hierarchy for bookshelf-search.

Startup errors abort the process before the HTTP listener binds. Everything
else is scoped to a single request and is converted to an HTTP response at
the dispatcher boundary.
"""


class BookshelfSearchError(Exception):
    """Base class for all bookshelf-search errors."""


class StartupIndexingError(BookshelfSearchError):
    """A corpus could not be built, read, parsed or indexed."""

    def __init__(self, book: str, message: str) -> None:
        self.book = book
        super().__init__(f"{book}: {message}")


class SearchError(BookshelfSearchError):
    """Base class for failures while executing one search query."""


class QueryParseError(SearchError):
    """The raw query string cannot be compiled against the schema."""


class SearchExecutionError(SearchError):
    """Index search or stored-field retrieval failed after a successful parse."""


class MissingParameterError(BookshelfSearchError):
    """The request carries no ``query`` parameter."""


class DispatchError(BookshelfSearchError):
    """The executor pool could not accept or complete the query."""
