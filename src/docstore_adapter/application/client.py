"""Docstore benchmark binding.

One DocStoreClient is created per benchmark worker thread. ``init``
bootstraps the database and installs the process-wide session pool (once,
whichever worker gets there first); every operation then leases a session
from that pool for its own duration only.

Properties to set:
    url=plocal:/tmp/databases/ycsb or memory:ycsb
    database-user=admin
    database-password=admin
    fresh-database=false

Every operation returns Status.OK or Status.ERROR. Failures are classified
(see ErrorKind), logged and counted before being collapsed to ERROR.
"""

from __future__ import annotations

import itertools
import time
from contextlib import contextmanager
from typing import Generator, Mapping

from docstore_adapter.adapters.outbound.session_pool import PooledDatabase, SessionPool
from docstore_adapter.application.bootstrap import (
    SCHEMA_CLASS,
    BootstrapCoordinator,
    RetryPolicy,
    session_pool_factory,
)
from docstore_adapter.application.key_index import KeyIndex
from docstore_adapter.application.pool_slot import SharedPoolSlot
from docstore_adapter.application.settings_resolver import (
    ConnectionSettings,
    resolve_connection_settings,
)
from docstore_adapter.domain.value_objects import ErrorKind, Status
from docstore_adapter.infrastructure.config import Config
from docstore_adapter.infrastructure.container import get_container
from docstore_adapter.infrastructure.logging import (
    bind_worker_context,
    clear_worker_context,
    get_logger,
)
from docstore_adapter.infrastructure.metrics import AdapterMetrics
from docstore_adapter.infrastructure.tracing import mark_error, trace_span
from docstore_adapter.ports.inbound.db_binding import DB, DBError, FieldValues, to_string_map
from docstore_adapter.ports.outbound.storage_engine import (
    AuthenticationError,
    DatabaseClosedError,
    PoolClosedError,
    PoolExhaustedError,
    RecordNotFoundError,
    StorageNotFoundError,
    UnsupportedUrlError,
)

logger = get_logger(__name__)

_CONNECTION_ERRORS = (
    AuthenticationError,
    DatabaseClosedError,
    PoolClosedError,
    PoolExhaustedError,
    StorageNotFoundError,
    UnsupportedUrlError,
)

# Process-wide: shared by every client in this process.
_shared_pool: SharedPoolSlot[SessionPool] = SharedPoolSlot()


class OperationError(Exception):
    """A classified operation failure, raised and handled inside the client."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind


def classify(error: BaseException) -> ErrorKind:
    """Map an exception raised during an operation to its ErrorKind."""
    if isinstance(error, OperationError):
        return error.kind
    if isinstance(error, RecordNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, _CONNECTION_ERRORS):
        return ErrorKind.CONNECTION_FAILURE
    return ErrorKind.ENGINE_FAULT


class DocStoreClient(DB):
    """Benchmark binding over the embedded document store.

    Thread Safety:
        Instances are per worker thread. The shared pool is thread-safe
        and every operation leases its own session.
    """

    def __init__(
        self,
        properties: Mapping[str, str] | None = None,
        config: Config | None = None,
        metrics: AdapterMetrics | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            properties: Benchmark property map (may also be set later).
            config: Ambient configuration; defaults to the process container's.
            metrics: Metrics registry; defaults to the process container's.
        """
        super().__init__(properties)
        if config is None or metrics is None:
            container = get_container()
            config = config or container.config
            metrics = metrics or container.metrics
        self._config = config
        self._metrics = metrics
        self._settings: ConnectionSettings | None = None
        self._pool: SessionPool | None = None

    @property
    def settings(self) -> ConnectionSettings | None:
        """Connection settings resolved by ``init``."""
        return self._settings

    @property
    def observed_pool(self) -> SessionPool | None:
        """The shared pool this client's ``init`` ended up with, None if it failed."""
        return self._pool

    @staticmethod
    def shared_pool() -> SessionPool | None:
        """The process-wide pool, None until a bootstrap succeeded."""
        return _shared_pool.get()

    @staticmethod
    def reset_shared_pool() -> None:
        """Close and forget the process-wide pool (useful for testing)."""
        pool = _shared_pool.clear()
        if pool is not None:
            pool.close()

    def init(self) -> None:
        """Bootstrap the database and install the shared pool.

        A bootstrap failure is logged and swallowed: the worker starts, and
        each of its operations reports ERROR until a pool is installed.

        Raises:
            DBError: If the property map cannot be read.
        """
        try:
            self._settings = resolve_connection_settings(self.properties)
        except (TypeError, ValueError) as e:
            raise DBError(f"Invalid docstore properties: {e}") from e
        bind_worker_context(docstore_url=self._settings.url)

        coordinator = BootstrapCoordinator(
            settings=self._settings,
            pool_slot=_shared_pool,
            pool_factory=session_pool_factory(self._config.pool, self._metrics),
            retry_policy=RetryPolicy.from_config(self._config.bootstrap),
            metrics=self._metrics,
        )
        self._pool = None
        try:
            self._pool = coordinator.run()
        except Exception:
            self._metrics.bootstrap_failures_total.inc()
            logger.exception(
                "bootstrap_failed", detail="could not initialize the shared session pool"
            )

    def cleanup(self) -> None:
        """Leaves the shared pool open; it outlives every worker."""
        clear_worker_context()

    def get_database(self) -> PooledDatabase:
        """Lease a raw session from the shared pool; close it to return it.

        Raises:
            OperationError: If no pool has been installed.
        """
        pool = _shared_pool.get()
        if pool is None:
            raise OperationError(ErrorKind.POOL_UNINITIALIZED, "Shared session pool not initialized")
        return pool.acquire()

    @contextmanager
    def _operation(self, name: str, key: str) -> Generator[list[Status], None, None]:
        """Run one operation: trace, time, classify and collapse failures.

        The body stores its status in the yielded one-element list; any
        exception becomes ERROR.
        """
        outcome = [Status.ERROR]
        started = time.perf_counter()
        with trace_span(f"docstore.{name}", {"db.operation": name, "db.key": key}) as span:
            try:
                yield outcome
            except Exception as e:
                outcome[0] = Status.ERROR
                kind = classify(e)
                mark_error(span, kind.value, str(e))
                self._metrics.operation_errors_total.labels(operation=name, kind=kind.value).inc()
                if kind in (ErrorKind.NOT_FOUND, ErrorKind.POOL_UNINITIALIZED, ErrorKind.INVALID_REQUEST):
                    logger.warning("operation_failed", operation=name, key=key, kind=kind.value, error=str(e))
                else:
                    logger.exception("operation_failed", operation=name, key=key, kind=kind.value)

        status = outcome[0]
        self._metrics.operation_latency_seconds.labels(operation=name).observe(
            time.perf_counter() - started
        )
        self._metrics.operations_total.labels(operation=name, status=status.value.lower()).inc()

    @contextmanager
    def _session(self) -> Generator[PooledDatabase, None, None]:
        """Lease a session for the duration of the block."""
        with self.get_database() as db:
            yield db

    def insert(self, table: str, key: str, values: FieldValues) -> Status:
        """Insert a document under key with the given fields."""
        with self._operation("insert", key) as outcome:
            fields = to_string_map(values)
            with self._session() as db:
                document = db.new_document(SCHEMA_CLASS).update_fields(fields)
                db.save(document)
                KeyIndex(db).put(key, document)
            outcome[0] = Status.OK
        return outcome[0]

    def read(
        self,
        table: str,
        key: str,
        fields: set[str] | None,
        result: dict[str, str],
    ) -> Status:
        """Copy the requested fields (all when fields is None) into result."""
        with self._operation("read", key) as outcome:
            with self._session() as db:
                document = KeyIndex(db).get(key)
                if document is None:
                    raise OperationError(ErrorKind.NOT_FOUND, f"Key {key!r} not found")
                result.update(document.project(fields))
            outcome[0] = Status.OK
        return outcome[0]

    def update(self, table: str, key: str, values: FieldValues) -> Status:
        """Overwrite the given fields; fields not mentioned are kept."""
        with self._operation("update", key) as outcome:
            fields = to_string_map(values)
            with self._session() as db:
                document = KeyIndex(db).get(key)
                if document is None:
                    raise OperationError(ErrorKind.NOT_FOUND, f"Key {key!r} not found")
                document.update_fields(fields)
                db.save(document)
            outcome[0] = Status.OK
        return outcome[0]

    def delete(self, table: str, key: str) -> Status:
        """Remove key and its document; absent keys are not an error."""
        with self._operation("delete", key) as outcome:
            with self._session() as db:
                rid = KeyIndex(db).remove(key)
                if rid is not None:
                    db.delete(rid)
            outcome[0] = Status.OK
        return outcome[0]

    def scan(
        self,
        table: str,
        start_key: str,
        record_count: int,
        fields: set[str] | None,
        result: list[dict[str, str]],
    ) -> Status:
        """Copy up to record_count documents in key order from start_key."""
        with self._operation("scan", start_key) as outcome:
            if fields is None:
                raise OperationError(ErrorKind.INVALID_REQUEST, "scan requires a field set")
            if record_count < 0:
                raise OperationError(
                    ErrorKind.INVALID_REQUEST, f"record_count must be >= 0, got {record_count}"
                )
            with self._session() as db:
                with KeyIndex(db).range_from(start_key, inclusive=True) as cursor:
                    for _, document in itertools.islice(cursor, record_count):
                        result.append(document.project(fields))
            outcome[0] = Status.OK
        return outcome[0]
