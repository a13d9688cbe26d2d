"""Race-tolerant database and schema bootstrap.

Every benchmark worker calls ``init`` independently, usually at the same
moment, against the same database. The coordinator brings the database
from "unknown state" to "exists, opens, has the usertable class", then
installs the process-wide session pool. Races with other workers are
expected and recovered locally:

    - another worker created the database first  -> StorageExistsError
    - another worker dropped it first (fresh db)   -> StorageNotFoundError
    - another worker is committing the schema      -> SchemaNotCreatedError
    - another worker committed the class first    -> ClassExistsError

Only the schema race needs a retry; it sleeps a fixed backoff between
attempts, bounded by the retry policy.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

from docstore_adapter.adapters.outbound.embedded_database import EmbeddedDatabase
from docstore_adapter.adapters.outbound.session_pool import SessionPool
from docstore_adapter.application.pool_slot import SharedPoolSlot
from docstore_adapter.application.settings_resolver import ConnectionSettings
from docstore_adapter.infrastructure.config import BootstrapConfig, PoolConfig
from docstore_adapter.infrastructure.logging import get_logger
from docstore_adapter.infrastructure.metrics import AdapterMetrics
from docstore_adapter.infrastructure.tracing import trace_span
from docstore_adapter.ports.outbound.storage_engine import (
    ClassExistsError,
    DatabaseSession,
    SchemaNotCreatedError,
    StorageExistsError,
    StorageNotFoundError,
)

logger = get_logger(__name__)

SCHEMA_CLASS = "usertable"

DatabaseFactory = Callable[[str], DatabaseSession]
PoolFactory = Callable[[ConnectionSettings], SessionPool]


class BootstrapError(Exception):
    """Raised when the schema could not be created within the retry policy."""


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-backoff retry bound for the schema creation loop.

    Attributes:
        backoff_seconds: Sleep between attempts.
        max_attempts: Attempts before giving up; None retries forever.
    """

    backoff_seconds: float = 0.1
    max_attempts: int | None = 100

    @classmethod
    def from_config(cls, config: BootstrapConfig) -> RetryPolicy:
        return cls(backoff_seconds=config.backoff_seconds, max_attempts=config.max_attempts)

    def allows(self, attempt: int) -> bool:
        """True if attempt number ``attempt`` (1-based) may run."""
        return self.max_attempts is None or attempt <= self.max_attempts


def session_pool_factory(
    config: PoolConfig,
    metrics: AdapterMetrics | None = None,
) -> PoolFactory:
    """Build the default pool factory for the embedded engine."""

    def create(settings: ConnectionSettings) -> SessionPool:
        return SessionPool(
            url=settings.url,
            user=settings.user,
            password=settings.password,
            max_size=config.max_size,
            acquire_timeout=config.acquire_timeout_seconds,
            metrics=metrics,
        )

    return create


class BootstrapCoordinator:
    """Ensures the database and schema class exist, then installs the pool.

    One coordinator runs per ``init`` call. Coordinators in different
    threads share nothing but the storage and the pool slot.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        pool_slot: SharedPoolSlot[SessionPool],
        pool_factory: PoolFactory,
        retry_policy: RetryPolicy | None = None,
        database_factory: DatabaseFactory = EmbeddedDatabase,
        metrics: AdapterMetrics | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._pool_slot = pool_slot
        self._pool_factory = pool_factory
        self._retry_policy = retry_policy or RetryPolicy()
        self._database_factory = database_factory
        self._metrics = metrics
        self._sleep = sleep
        self._log = logger.bind(url=settings.url)

    def run(self) -> SessionPool:
        """Bootstrap the database and return the shared pool.

        Raises:
            BootstrapError: If the schema retry policy was exhausted.
            StorageError: For any failure that is not a recognized race.
        """
        with trace_span("docstore.bootstrap", {"db.url": self._settings.url}):
            self._log.info("bootstrap_loading_database", fresh=self._settings.fresh_database)

            db = self._database_factory(self._settings.url)
            try:
                if self._settings.fresh_database:
                    self._drop_existing(db)
                self._ensure_database(db)
                self._ensure_schema(db)
            finally:
                if not db.is_closed:
                    db.close()

            return self._install_pool()

    def _drop_existing(self, db: DatabaseSession) -> None:
        if not db.exists():
            return
        try:
            db.open(self._settings.user, self._settings.password)
            db.drop()
            self._log.info("bootstrap_fresh_database_dropped")
        except StorageNotFoundError:
            self._log.info("bootstrap_fresh_database_dropped_concurrently")

    def _ensure_database(self, db: DatabaseSession) -> None:
        if db.exists():
            return
        try:
            db.create(self._settings.user, self._settings.password)
            self._log.info("bootstrap_database_created")
        except StorageExistsError:
            self._log.info("bootstrap_database_created_concurrently")

    def _ensure_schema(self, db: DatabaseSession) -> None:
        attempt = 0
        while True:
            attempt += 1
            if not self._retry_policy.allows(attempt):
                raise BootstrapError(
                    f"Schema class '{SCHEMA_CLASS}' not created on {self._settings.url} "
                    f"after {self._retry_policy.max_attempts} attempts"
                )
            try:
                if db.is_closed:
                    db.open(self._settings.user, self._settings.password)

                schema = db.schema
                if not schema.exists_class(SCHEMA_CLASS):
                    schema.create_class(SCHEMA_CLASS)
                    self._log.info("bootstrap_schema_created", schema_class=SCHEMA_CLASS)
                return
            except ClassExistsError:
                self._log.info("bootstrap_schema_created_concurrently", schema_class=SCHEMA_CLASS)
                return
            except SchemaNotCreatedError:
                if not db.is_closed:
                    db.close()
                if self._metrics is not None:
                    self._metrics.bootstrap_retries_total.labels(reason="schema_not_committed").inc()
                self._log.debug(
                    "bootstrap_schema_retry",
                    attempt=attempt,
                    backoff_seconds=self._retry_policy.backoff_seconds,
                )
                self._sleep(self._retry_policy.backoff_seconds)

    def _install_pool(self) -> SessionPool:
        pool, installed = self._pool_slot.install_if_absent(
            lambda: self._pool_factory(self._settings),
            discard=SessionPool.close,
        )

        if self._metrics is not None:
            outcome = "installed" if installed else "observed"
            self._metrics.shared_pool_installs_total.labels(outcome=outcome).inc()

        if installed:
            self._log.info("shared_pool_installed", pool=repr(pool))
        elif pool.url != self._settings.url or pool.user != self._settings.user:
            self._log.warning(
                "shared_pool_target_mismatch",
                pool_url=pool.url,
                pool_user=pool.user,
            )
        return pool
