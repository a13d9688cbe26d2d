"""Unit tests for the bootstrap coordinator."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from docstore_adapter.adapters.outbound.embedded_database import EmbeddedDatabase
from docstore_adapter.adapters.outbound.session_pool import SessionPool
from docstore_adapter.application.bootstrap import (
    SCHEMA_CLASS,
    BootstrapCoordinator,
    BootstrapError,
    RetryPolicy,
    session_pool_factory,
)
from docstore_adapter.application.pool_slot import SharedPoolSlot
from docstore_adapter.application.settings_resolver import ConnectionSettings
from docstore_adapter.infrastructure.config import BootstrapConfig, PoolConfig
from docstore_adapter.infrastructure.metrics import AdapterMetrics
from docstore_adapter.ports.outbound.storage_engine import (
    ClassExistsError,
    SchemaNotCreatedError,
    StorageExistsError,
    StorageNotFoundError,
)


def make_coordinator(
    settings: ConnectionSettings,
    slot: SharedPoolSlot[SessionPool] | None = None,
    **kwargs,
) -> BootstrapCoordinator:
    return BootstrapCoordinator(
        settings=settings,
        pool_slot=slot if slot is not None else SharedPoolSlot(),
        pool_factory=session_pool_factory(PoolConfig(max_size=4)),
        **kwargs,
    )


def fake_database(exists: bool = True) -> MagicMock:
    """A session mock that starts closed and opens on create/open."""
    db = MagicMock()
    db.is_closed = True
    db.exists.return_value = exists

    def opened(*_args) -> None:
        db.is_closed = False

    def closed() -> None:
        db.is_closed = True

    db.create.side_effect = opened
    db.open.side_effect = opened
    db.close.side_effect = closed
    db.schema.exists_class.return_value = False
    return db


@pytest.mark.unit
class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()

        assert policy.backoff_seconds == 0.1
        assert policy.max_attempts == 100

    def test_allows(self) -> None:
        policy = RetryPolicy(max_attempts=2)

        assert policy.allows(1)
        assert policy.allows(2)
        assert not policy.allows(3)

    def test_unbounded(self) -> None:
        assert RetryPolicy(max_attempts=None).allows(10**9)

    def test_from_config(self) -> None:
        policy = RetryPolicy.from_config(BootstrapConfig(backoff_seconds=0.5, max_attempts=7))

        assert policy == RetryPolicy(backoff_seconds=0.5, max_attempts=7)


@pytest.mark.unit
class TestBootstrapCoordinator:
    """Tests for BootstrapCoordinator against the embedded engine."""

    @pytest.fixture
    def settings(self, memory_url: str) -> ConnectionSettings:
        return ConnectionSettings(url=memory_url)

    def test_creates_database_schema_and_pool(self, settings: ConnectionSettings) -> None:
        slot: SharedPoolSlot[SessionPool] = SharedPoolSlot()

        pool = make_coordinator(settings, slot).run()

        assert slot.get() is pool
        assert pool.url == settings.url
        with pool.acquire() as db:
            assert db.schema.classes() == [SCHEMA_CLASS]

    def test_second_run_reuses_pool(self, settings: ConnectionSettings) -> None:
        slot: SharedPoolSlot[SessionPool] = SharedPoolSlot()

        first = make_coordinator(settings, slot).run()
        second = make_coordinator(settings, slot).run()

        assert first is second

    def test_existing_database_is_kept(self, settings: ConnectionSettings) -> None:
        make_coordinator(settings).run()
        with EmbeddedDatabase(settings.url) as db:
            db.open("admin", "admin")
            db.dictionary.put("user1", db.save(db.new_document(SCHEMA_CLASS)))

        make_coordinator(settings).run()

        with EmbeddedDatabase(settings.url) as db:
            db.open("admin", "admin")
            assert db.dictionary.size == 1

    def test_fresh_database_drops_existing(self, settings: ConnectionSettings) -> None:
        make_coordinator(settings).run()
        with EmbeddedDatabase(settings.url) as db:
            db.open("admin", "admin")
            db.dictionary.put("user1", db.save(db.new_document(SCHEMA_CLASS)))

        fresh = settings.model_copy(update={"fresh_database": True})
        make_coordinator(fresh).run()

        with EmbeddedDatabase(settings.url) as db:
            db.open("admin", "admin")
            assert db.dictionary.size == 0
            assert db.schema.exists_class(SCHEMA_CLASS)

    def test_custom_credentials_are_used(self, memory_url: str) -> None:
        settings = ConnectionSettings(url=memory_url, user="bench", password="pw")

        pool = make_coordinator(settings).run()

        with pool.acquire() as db:
            assert db.user == "bench"

    def test_metrics_record_install(
        self, settings: ConnectionSettings, metrics_registry: AdapterMetrics
    ) -> None:
        slot: SharedPoolSlot[SessionPool] = SharedPoolSlot()
        make_coordinator(settings, slot, metrics=metrics_registry).run()
        make_coordinator(settings, slot, metrics=metrics_registry).run()

        installs = metrics_registry.shared_pool_installs_total
        assert installs.labels(outcome="installed")._value.get() == 1
        assert installs.labels(outcome="observed")._value.get() == 1


@pytest.mark.unit
class TestBootstrapRaces:
    """Races with other workers, simulated with a mocked session."""

    @pytest.fixture
    def settings(self) -> ConnectionSettings:
        return ConnectionSettings(url="memory:mocked")

    def run(self, settings: ConnectionSettings, db: MagicMock, **kwargs) -> BootstrapCoordinator:
        pool = MagicMock(spec=SessionPool)
        pool.url = settings.url
        pool.user = settings.user
        coordinator = BootstrapCoordinator(
            settings=settings,
            pool_slot=SharedPoolSlot(),
            pool_factory=lambda _: pool,
            database_factory=lambda _: db,
            **kwargs,
        )
        coordinator.run()
        return coordinator

    def test_database_created_concurrently(self, settings: ConnectionSettings) -> None:
        db = fake_database(exists=False)
        db.create.side_effect = StorageExistsError("exists")

        self.run(settings, db)

        db.open.assert_called_with("admin", "admin")
        db.schema.create_class.assert_called_once_with(SCHEMA_CLASS)
        assert db.is_closed

    def test_schema_retry_after_concurrent_commit(self, settings: ConnectionSettings) -> None:
        db = fake_database()
        db.schema.create_class.side_effect = [
            SchemaNotCreatedError("busy"),
            SchemaNotCreatedError("busy"),
            None,
        ]
        sleep = MagicMock()

        self.run(settings, db, sleep=sleep, retry_policy=RetryPolicy(backoff_seconds=0.25))

        assert db.schema.create_class.call_count == 3
        assert sleep.call_count == 2
        sleep.assert_called_with(0.25)
        # The session is reopened for every attempt.
        assert db.open.call_count == 3

    def test_class_created_concurrently(self, settings: ConnectionSettings) -> None:
        db = fake_database()
        db.schema.create_class.side_effect = ClassExistsError("exists")
        sleep = MagicMock()

        self.run(settings, db, sleep=sleep)

        sleep.assert_not_called()

    def test_existing_class_is_not_recreated(self, settings: ConnectionSettings) -> None:
        db = fake_database()
        db.schema.exists_class.return_value = True

        self.run(settings, db)

        db.schema.create_class.assert_not_called()

    def test_retry_exhaustion(
        self, settings: ConnectionSettings, metrics_registry: AdapterMetrics
    ) -> None:
        db = fake_database()
        db.schema.create_class.side_effect = SchemaNotCreatedError("busy")

        with pytest.raises(BootstrapError):
            self.run(
                settings,
                db,
                sleep=MagicMock(),
                retry_policy=RetryPolicy(backoff_seconds=0, max_attempts=3),
                metrics=metrics_registry,
            )

        assert db.schema.create_class.call_count == 3
        retries = metrics_registry.bootstrap_retries_total.labels(reason="schema_not_committed")
        assert retries._value.get() == 3
        assert db.is_closed

    def test_fresh_drop_raced_by_another_worker(self, settings: ConnectionSettings) -> None:
        db = fake_database(exists=True)
        db.drop.side_effect = StorageNotFoundError("gone")
        fresh = settings.model_copy(update={"fresh_database": True})

        self.run(fresh, db)

        db.drop.assert_called_once()
        db.schema.create_class.assert_called_once_with(SCHEMA_CLASS)

    def test_fresh_drop_skipped_when_absent(self, settings: ConnectionSettings) -> None:
        db = fake_database(exists=False)
        fresh = settings.model_copy(update={"fresh_database": True})

        self.run(fresh, db)

        db.drop.assert_not_called()
        db.create.assert_called_once_with("admin", "admin")

    def test_unexpected_error_propagates(self, settings: ConnectionSettings) -> None:
        db = fake_database()
        db.open.side_effect = RuntimeError("disk on fire")

        with pytest.raises(RuntimeError):
            self.run(settings, db)
