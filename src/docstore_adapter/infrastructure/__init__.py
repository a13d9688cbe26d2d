"""Infrastructure layer - cross-cutting concerns."""

from docstore_adapter.infrastructure.config import Config, get_config
from docstore_adapter.infrastructure.container import Container, get_container
from docstore_adapter.infrastructure.logging import (
    bind_worker_context,
    clear_worker_context,
    get_logger,
    setup_logging,
)
from docstore_adapter.infrastructure.metrics import setup_metrics, get_metrics, AdapterMetrics
from docstore_adapter.infrastructure.tracing import (
    get_tracer,
    mark_error,
    setup_tracing,
    shutdown_tracing,
    trace_span,
)

__all__ = [
    "Config",
    "get_config",
    "Container",
    "get_container",
    "setup_logging",
    "get_logger",
    "bind_worker_context",
    "clear_worker_context",
    "setup_metrics",
    "get_metrics",
    "AdapterMetrics",
    "setup_tracing",
    "get_tracer",
    "trace_span",
    "mark_error",
    "shutdown_tracing",
]
