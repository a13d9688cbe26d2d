"""Prometheus metrics for the docstore adapter."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class AdapterMetrics:
    """Registry of all docstore adapter metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Operation metrics
        self.operations_total = Counter(
            "docstore_operations_total",
            "Total number of binding operations",
            ["operation", "status"],  # status: ok, error
            registry=self._registry,
        )

        self.operation_latency_seconds = Histogram(
            "docstore_operation_latency_seconds",
            "Binding operation latency in seconds",
            ["operation"],  # insert, read, update, delete, scan
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.5, 1.0),
            registry=self._registry,
        )

        self.operation_errors_total = Counter(
            "docstore_operation_errors_total",
            "Failed binding operations by classified cause",
            ["operation", "kind"],
            registry=self._registry,
        )

        # Bootstrap metrics
        self.bootstrap_retries_total = Counter(
            "docstore_bootstrap_retries_total",
            "Schema bootstrap retries caused by concurrent creators",
            ["reason"],
            registry=self._registry,
        )

        self.bootstrap_failures_total = Counter(
            "docstore_bootstrap_failures_total",
            "Worker initializations that left the shared pool uninstalled",
            registry=self._registry,
        )

        self.shared_pool_installs_total = Counter(
            "docstore_shared_pool_installs_total",
            "Shared pool install attempts",
            ["outcome"],  # installed, observed
            registry=self._registry,
        )

        # Pool metrics
        self.pool_acquire_seconds = Histogram(
            "docstore_pool_acquire_seconds",
            "Time spent waiting for a pooled session",
            buckets=(0.00001, 0.0001, 0.001, 0.01, 0.1, 1.0, 10.0),
            registry=self._registry,
        )

        self.pool_connections_in_use = Gauge(
            "docstore_pool_connections_in_use",
            "Pooled sessions currently lent to operations",
            registry=self._registry,
        )

        # Adapter info
        self.info = Info(
            "docstore_adapter",
            "Docstore adapter information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: AdapterMetrics | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> AdapterMetrics:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = AdapterMetrics(registry)

    from docstore_adapter import __version__
    _metrics.info.info({
        "version": __version__,
    })

    # Start HTTP server for Prometheus scraping
    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> AdapterMetrics:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = AdapterMetrics()
    return _metrics
