"""Session pool implementation.

This adapter implements the DatabasePool port: a bounded set of open
sessions bound to one URL and one user, lent to one operation at a time.

Key concepts:
- Slot: permission to hold a session; there are max_size slots
- Idle list: opened sessions waiting to be reused (most recent first)
- Lease: a PooledDatabase wrapper whose close() returns the session

Thread Safety:
    All operations are thread-safe. ``acquire`` blocks while every slot is
    leased, up to the configured timeout.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from docstore_adapter.adapters.outbound.embedded_database import EmbeddedDatabase
from docstore_adapter.infrastructure.metrics import AdapterMetrics
from docstore_adapter.ports.outbound.storage_engine import (
    DatabaseSession,
    PoolClosedError,
    PoolExhaustedError,
)

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], DatabaseSession]


@dataclass
class PoolStats:
    """Statistics for pool monitoring."""

    max_size: int  # Total number of slots
    in_use: int  # Currently leased sessions
    idle: int  # Opened sessions waiting for reuse
    created: int  # Sessions opened over the pool's lifetime
    closed: bool


class PooledDatabase:
    """A session leased from a SessionPool.

    Behaves like the underlying session except that ``close`` (or leaving
    a ``with`` block) hands it back to the pool instead of closing it.
    """

    def __init__(self, pool: SessionPool, session: DatabaseSession) -> None:
        self._pool = pool
        self._session: DatabaseSession | None = session

    @property
    def is_closed(self) -> bool:
        return self._session is None or self._session.is_closed

    @property
    def is_released(self) -> bool:
        return self._session is None

    def close(self) -> None:
        """Return the session to the pool. Safe to call more than once."""
        session, self._session = self._session, None
        if session is not None:
            self._pool._release(session)

    def __getattr__(self, name: str) -> Any:
        session = self.__dict__.get("_session")
        if session is None:
            raise PoolClosedError(f"Pooled session already released (accessing {name!r})")
        return getattr(session, name)

    def __enter__(self) -> PooledDatabase:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SessionPool:
    """Bounded pool of open sessions for one URL and user.

    Sessions are opened lazily on demand, reused most-recent-first, and
    reopened transparently when the storage behind an idle session went
    away (for example after a database drop).

    Attributes:
        url: The database URL.
        max_size: Maximum number of sessions leased at once.
    """

    def __init__(
        self,
        url: str,
        user: str,
        password: str,
        max_size: int = 64,
        acquire_timeout: float | None = None,
        session_factory: SessionFactory = EmbeddedDatabase,
        metrics: AdapterMetrics | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            url: Database URL every session is opened on.
            user: User to open sessions as.
            password: Password for user.
            max_size: Number of sessions that may be leased at once.
            acquire_timeout: Seconds to wait for a free slot (None waits forever).
            session_factory: Builds a closed session for a URL.
            metrics: Optional metrics registry.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"Pool size must be >= 1, got {max_size}")

        self._url = url
        self._user = user
        self._password = password
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._session_factory = session_factory
        self._metrics = metrics

        self._lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_size)
        self._idle: deque[DatabaseSession] = deque()
        self._in_use = 0
        self._created = 0
        self._closed = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def user(self) -> str:
        return self._user

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _open_session(self) -> DatabaseSession:
        session = self._session_factory(self._url)
        session.open(self._user, self._password)
        with self._lock:
            self._created += 1
        logger.debug("Opened pooled session on %s as %s", self._url, self._user)
        return session

    def _take_idle(self) -> DatabaseSession | None:
        with self._lock:
            while self._idle:
                session = self._idle.pop()
                if not session.is_closed:
                    return session
        return None

    def acquire(self, timeout: float | None = None) -> PooledDatabase:
        """Lease an open session.

        Args:
            timeout: Seconds to wait for a free slot; defaults to the pool's
                acquire_timeout.

        Returns:
            The leased session; close it to return it.

        Raises:
            PoolClosedError: If the pool has been closed.
            PoolExhaustedError: If no slot became free in time.
        """
        if self._closed:
            raise PoolClosedError(f"Pool for {self._url} is closed")

        wait = self._acquire_timeout if timeout is None else timeout
        started = time.perf_counter()
        if not self._slots.acquire(timeout=wait):
            raise PoolExhaustedError(
                f"No pooled session for {self._url} became free within {wait:.3f}s"
            )

        try:
            if self._closed:
                raise PoolClosedError(f"Pool for {self._url} is closed")
            session = self._take_idle() or self._open_session()
        except BaseException:
            self._slots.release()
            raise

        with self._lock:
            self._in_use += 1

        if self._metrics is not None:
            self._metrics.pool_acquire_seconds.observe(time.perf_counter() - started)
            self._metrics.pool_connections_in_use.inc()

        return PooledDatabase(self, session)

    def _release(self, session: DatabaseSession) -> None:
        """Take a leased session back."""
        with self._lock:
            self._in_use -= 1
            keep = not self._closed and not session.is_closed
            if keep:
                self._idle.append(session)

        if not keep:
            session.close()

        if self._metrics is not None:
            self._metrics.pool_connections_in_use.dec()

        self._slots.release()

    def close(self) -> None:
        """Close idle sessions and refuse further acquisition.

        Leased sessions are closed as they come back.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()

        for session in idle:
            session.close()

        logger.info("Closed session pool for %s (%d idle sessions)", self._url, len(idle))

    def get_stats(self) -> PoolStats:
        """Return pool statistics for monitoring."""
        with self._lock:
            return PoolStats(
                max_size=self._max_size,
                in_use=self._in_use,
                idle=len(self._idle),
                created=self._created,
                closed=self._closed,
            )

    def __repr__(self) -> str:
        return f"SessionPool({self._url!r}, user={self._user!r}, max_size={self._max_size})"
