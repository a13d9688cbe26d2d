"""Pytest configuration and fixtures for docstore_adapter tests."""

from __future__ import annotations

import tempfile
import uuid
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from docstore_adapter.adapters.outbound.embedded_storage import get_registry
from docstore_adapter.application.client import DocStoreClient
from docstore_adapter.infrastructure.config import BootstrapConfig, Config, PoolConfig
from docstore_adapter.infrastructure.container import Container
from docstore_adapter.infrastructure.logging import clear_worker_context
from docstore_adapter.infrastructure.metrics import AdapterMetrics


@pytest.fixture(autouse=True)
def isolated_process_state() -> Generator[None, None, None]:
    """Start every test without a shared pool or open storages."""
    DocStoreClient.reset_shared_pool()
    get_registry().clear()
    yield
    # Storages are forgotten first so closing pooled sessions writes nothing.
    get_registry().clear()
    DocStoreClient.reset_shared_pool()
    Container.reset()
    clear_worker_context()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def memory_url() -> str:
    """A memory database URL no other test uses."""
    return f"memory:test-{uuid.uuid4().hex}"


@pytest.fixture
def plocal_url(temp_dir: Path) -> str:
    """A persistent database URL under the test's temporary directory."""
    return f"plocal:{temp_dir / 'databases' / 'ycsb'}"


@pytest.fixture
def test_config() -> Config:
    """Provide a configuration with fast bootstrap retries."""
    return Config(
        pool=PoolConfig(max_size=8, acquire_timeout_seconds=5.0),
        bootstrap=BootstrapConfig(backoff_seconds=0.001, max_attempts=1000),
    )


@pytest.fixture
def metrics_registry() -> AdapterMetrics:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return AdapterMetrics(registry=registry)


@pytest.fixture
def client_factory(test_config: Config, metrics_registry: AdapterMetrics):
    """Build clients sharing the test's configuration and metrics."""

    def create(properties: dict[str, str]) -> DocStoreClient:
        return DocStoreClient(properties, config=test_config, metrics=metrics_registry)

    return create


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
