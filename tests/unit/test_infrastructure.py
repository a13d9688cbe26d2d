"""Unit tests for logging, metrics, tracing and the container."""

from __future__ import annotations

import json

import pytest
import structlog

from docstore_adapter.infrastructure.config import Config, ObservabilityConfig
from docstore_adapter.infrastructure.container import Container, get_container
from docstore_adapter.infrastructure.logging import (
    bind_worker_context,
    clear_worker_context,
    get_logger,
    setup_logging,
)
from docstore_adapter.infrastructure.metrics import AdapterMetrics
from docstore_adapter.infrastructure.tracing import mark_error, trace_span


@pytest.fixture(autouse=True)
def restore_structlog():
    yield
    structlog.reset_defaults()


@pytest.mark.unit
class TestLogging:
    """Tests for structured logging setup."""

    def test_json_logs_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO", "json")

        get_logger("test", component="pool").info("pool_ready", size=4)

        captured = capsys.readouterr()
        assert captured.out == ""
        event = json.loads(captured.err.strip().splitlines()[-1])
        assert event["event"] == "pool_ready"
        assert event["component"] == "pool"
        assert event["size"] == 4
        assert event["level"] == "info"

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("WARNING", "json")

        get_logger("test").info("hidden")

        assert "hidden" not in capsys.readouterr().err

    def test_unknown_level_rejected(self) -> None:
        with pytest.raises(ValueError):
            setup_logging("VERBOSE")

    def test_worker_context(self, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("INFO", "json")
        bind_worker_context(docstore_url="memory:ycsb")

        get_logger("test").info("bound")
        clear_worker_context()
        get_logger("test").info("unbound")

        lines = capsys.readouterr().err.strip().splitlines()
        assert json.loads(lines[-2])["docstore_url"] == "memory:ycsb"
        assert "docstore_url" not in json.loads(lines[-1])


@pytest.mark.unit
class TestMetrics:
    """Tests for AdapterMetrics."""

    def test_counters_are_labelled(self, metrics_registry: AdapterMetrics) -> None:
        metrics_registry.operations_total.labels(operation="read", status="ok").inc()

        assert metrics_registry.operations_total.labels(
            operation="read", status="ok"
        )._value.get() == 1


@pytest.mark.unit
class TestTracing:
    """Tests for trace_span."""

    def test_span_accepts_attributes(self) -> None:
        with trace_span("docstore.test", {"db.key": "user1", "db.url": None}) as span:
            assert span is not None

    def test_exception_propagates(self) -> None:
        with pytest.raises(KeyError):
            with trace_span("docstore.test"):
                raise KeyError("user1")

    def test_mark_error(self) -> None:
        with trace_span("docstore.test") as span:
            mark_error(span, "not_found", "no such key")


@pytest.mark.unit
class TestContainer:
    """Tests for the process-wide container."""

    def test_singleton(self) -> None:
        config = Config(observability=ObservabilityConfig(log_level="ERROR"))

        container = Container.create(config)

        assert get_container() is container
        assert container.config is config
        assert isinstance(container.metrics, AdapterMetrics)

    def test_reset(self) -> None:
        first = Container.create(Config())
        Container.reset()

        assert Container.create(Config()) is not first
