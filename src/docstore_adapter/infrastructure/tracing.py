"""OpenTelemetry tracing configuration.

Spans cover one binding operation or one bootstrap run. Without
``setup_tracing`` the API's no-op tracer is used, so spans cost nothing
unless a collector endpoint is configured.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

TRACER_NAME = "docstore_adapter"
ERROR_KIND_ATTRIBUTE = "docstore.error_kind"

_tracer: trace.Tracer | None = None
_provider: TracerProvider | None = None


def setup_tracing(
    service_name: str = TRACER_NAME,
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Set up OpenTelemetry tracing.

    The global provider can only be set once per process; later calls
    reuse it and only return a tracer.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Whether to also export to console (for debugging)

    Returns:
        Configured tracer instance
    """
    global _tracer, _provider

    if _provider is None:
        from docstore_adapter import __version__

        provider = TracerProvider(
            resource=Resource.create(
                {"service.name": service_name, "service.version": __version__}
            )
        )
        if otlp_endpoint:
            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True))
            )
        if console_export:
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _provider = provider

    _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


def shutdown_tracing() -> None:
    """Flush pending spans and stop exporting."""
    global _provider
    if _provider is not None:
        _provider.shutdown()
        _provider = None


def get_tracer() -> trace.Tracer:
    """Get the global tracer instance."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(TRACER_NAME)
    return _tracer


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """
    Context manager for creating a trace span.

    Attributes whose value is None are left out. An exception escaping the
    block is recorded on the span before it propagates.

    Args:
        name: Name of the span
        attributes: Optional attributes to add to the span

    Yields:
        The created span
    """
    clean = {k: v for k, v in (attributes or {}).items() if v is not None}
    with get_tracer().start_as_current_span(name, attributes=clean) as span:
        yield span


def mark_error(span: trace.Span, kind: str, description: str | None = None) -> None:
    """Flag a span as failed with a classified error kind.

    For failures that are handled inside the span and never escape it.
    """
    span.set_attribute(ERROR_KIND_ATTRIBUTE, kind)
    span.set_status(Status(StatusCode.ERROR, description))
