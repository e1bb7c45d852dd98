"""OpenTelemetry tracing for index builds, queries and HTTP requests."""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from bookshelf_search.observability.context import bind_span, bind_trace, current_ids


if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import Span
    from starlette.types import ASGIApp, Message, Receive, Scope, Send


logger = logging.getLogger(__name__)

SERVICE_NAME = "bookshelf-search"
TRACE_HEADER = "x-trace-id"


def init_tracing(service_name: str = SERVICE_NAME) -> TracerProvider:
    """Install an SDK tracer provider for this process."""
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    trace.set_tracer_provider(provider)
    logger.debug("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(endpoint: str, provider: TracerProvider | None = None) -> bool:
    """Export spans to an OTLP/HTTP collector at ``endpoint``.

    Returns False when ``endpoint`` is empty or the exporter cannot be built;
    tracing then stays local and the service keeps running.
    """
    if not endpoint:
        return False

    active_provider = provider or trace.get_tracer_provider()
    if not isinstance(active_provider, TracerProvider):
        active_provider = init_tracing()

    try:
        exporter = OTLPSpanExporter(endpoint=endpoint)
    except Exception as exc:
        logger.error("Failed to configure OTLP exporter for %s: %s", endpoint, exc, exc_info=True)
        return False

    active_provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("OTLP trace export enabled to %s", endpoint)
    return True


def get_tracer() -> trace.Tracer:
    return trace.get_tracer("bookshelf_search")


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span]:
    """Open a span and expose its id to log records written inside it.

    Exceptions are recorded on the span, mark it as failed and propagate.
    """
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            bind_span(format(span_context.span_id, "016x"))
        yield span


class TracingMiddleware:
    """ASGI middleware giving every HTTP request a trace id and a server span.

    The trace id comes from the ``x-trace-id`` request header when present and
    is echoed on the response.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = dict(scope.get("headers", [])).get(TRACE_HEADER.encode(), b"").decode("latin-1")
        token = bind_trace(incoming or None)
        trace_id = current_ids.get().trace_id  # type: ignore[union-attr]
        attributes = {"http.method": scope["method"], "http.route": scope["path"]}

        try:
            with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:

                async def send_with_trace(message: Message) -> None:
                    if message["type"] == "http.response.start":
                        status_code = message["status"]
                        span.set_attribute("http.status_code", status_code)
                        if status_code >= 500:
                            span.set_status(Status(StatusCode.ERROR, f"HTTP {status_code}"))
                        message.setdefault("headers", []).append((TRACE_HEADER.encode(), trace_id.encode()))
                    await send(message)

                await self.app(scope, receive, send_with_trace)
        finally:
            current_ids.reset(token)
