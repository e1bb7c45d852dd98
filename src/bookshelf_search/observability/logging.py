"""Structured JSON logging with trace correlation."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import sys
from typing import Any

import orjson

from bookshelf_search.observability.context import current_trace_ids


_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}
_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the active trace and span ids.

    Keys passed through ``extra=`` are copied into the object.
    """

    MAX_MESSAGE_LEN = 2000

    def format(self, record: logging.LogRecord) -> str:
        ids = current_trace_ids()
        message = record.getMessage()
        if len(message) > self.MAX_MESSAGE_LEN:
            message = message[: self.MAX_MESSAGE_LEN] + "..."

        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": (record.name or "root").rpartition(".")[2],
            "message": message,
            "trace_id": ids.trace_id,
            "span_id": ids.span_id,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS and not key.startswith("_") and key not in entry
        )
        return orjson.dumps(entry, default=str).decode("utf-8")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    *,
    access_log: bool = True,
) -> None:
    """Route every log record to stderr at ``level``.

    Args:
        level: Level name for the root, ``bookshelf_search`` and uvicorn loggers
        json_output: Emit ``JsonFormatter`` lines instead of plain text
        access_log: When False, per-request ``uvicorn.access`` lines are suppressed
    """
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(resolved)

    for name in ("bookshelf_search", "uvicorn", "uvicorn.error"):
        logging.getLogger(name).setLevel(resolved)
    logging.getLogger("uvicorn.access").setLevel(resolved if access_log else logging.WARNING)
