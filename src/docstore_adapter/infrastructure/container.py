"""Dependency injection container for the docstore adapter."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import ClassVar

import structlog
from opentelemetry import trace

from docstore_adapter.infrastructure.config import Config, get_config
from docstore_adapter.infrastructure.logging import setup_logging, get_logger
from docstore_adapter.infrastructure.metrics import AdapterMetrics, get_metrics, setup_metrics
from docstore_adapter.infrastructure.tracing import setup_tracing, get_tracer


@dataclass
class Container:
    """Process-wide holder for the adapter's ambient services.

    Every benchmark worker builds its own client, but logging, tracing and
    the metrics registry are configured once per process.
    """

    config: Config
    logger: structlog.stdlib.BoundLogger
    tracer: trace.Tracer
    metrics: AdapterMetrics

    _instance: ClassVar[Container | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def create(cls, config: Config | None = None) -> Container:
        """Create and initialize the container with all dependencies."""
        with cls._lock:
            if cls._instance is not None:
                return cls._instance

            config = config or get_config()
            observability = config.observability

            setup_logging(observability.log_level, observability.log_format)
            logger = get_logger("docstore_adapter")

            if observability.otel_endpoint:
                tracer = setup_tracing(
                    service_name=observability.otel_service_name,
                    otlp_endpoint=observability.otel_endpoint,
                )
            else:
                tracer = get_tracer()

            if observability.metrics_enabled:
                metrics = setup_metrics(port=observability.metrics_port)
            else:
                metrics = get_metrics()

            cls._instance = cls(
                config=config,
                logger=logger,
                tracer=tracer,
                metrics=metrics,
            )

            logger.info(
                "docstore_container_initialized",
                log_level=observability.log_level,
                metrics_enabled=observability.metrics_enabled,
                tracing_endpoint=observability.otel_endpoint,
            )

            return cls._instance

    @classmethod
    def get(cls) -> Container:
        """Get the singleton container instance."""
        if cls._instance is None:
            return cls.create()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the container (useful for testing)."""
        with cls._lock:
            cls._instance = None


def get_container() -> Container:
    """Get the dependency injection container."""
    return Container.get()
