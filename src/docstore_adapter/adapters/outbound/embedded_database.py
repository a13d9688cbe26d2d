"""Embedded database session.

This adapter implements the DatabaseSession port over the process-wide
storage registry. A session is a lightweight handle: creating one touches
no storage until ``exists``, ``create`` or ``open`` is called.

Example:
    db = EmbeddedDatabase("memory:ycsb")
    if not db.exists():
        db.create("admin", "admin")
    else:
        db.open("admin", "admin")
    try:
        doc = db.new_document("usertable").set_field("field0", "value")
        db.save(doc)
    finally:
        db.close()
"""

from __future__ import annotations

from docstore_adapter.adapters.outbound.embedded_storage import (
    EmbeddedDictionary,
    EmbeddedSchema,
    EmbeddedStorage,
    StorageRegistry,
    get_registry,
)
from docstore_adapter.domain.entities import Document
from docstore_adapter.domain.value_objects import RecordId
from docstore_adapter.ports.outbound.storage_engine import (
    DatabaseClosedError,
    StorageNotFoundError,
)


class EmbeddedDatabase:
    """A session against one embedded database URL."""

    def __init__(self, url: str, registry: StorageRegistry | None = None) -> None:
        self._url = url
        self._registry = registry or get_registry()
        self._storage: EmbeddedStorage | None = None
        self._user: str | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def user(self) -> str | None:
        """User the session is open as, None when closed."""
        return self._user if not self.is_closed else None

    @property
    def is_closed(self) -> bool:
        """True if never opened, closed, or the storage was dropped underneath."""
        return self._storage is None or self._storage.dropped

    def _require_open(self) -> EmbeddedStorage:
        storage = self._storage
        if storage is None:
            raise DatabaseClosedError(f"Database {self._url} is not open")
        if storage.dropped:
            raise StorageNotFoundError(f"Database {self._url} was dropped")
        return storage

    def exists(self) -> bool:
        return self._registry.exists(self._url)

    def create(self, user: str = "admin", password: str = "admin") -> None:
        self._storage = self._registry.create(self._url, user, password)
        self._user = user

    def open(self, user: str, password: str) -> None:
        storage = self._registry.get(self._url)
        storage.authenticate(user, password)
        self._storage = storage
        self._user = user

    def close(self) -> None:
        storage, self._storage = self._storage, None
        self._user = None
        if storage is not None and not storage.dropped:
            storage.flush()

    def drop(self) -> None:
        self._require_open()
        self._storage = None
        self._user = None
        self._registry.drop(self._url)

    @property
    def schema(self) -> EmbeddedSchema:
        return self._require_open().schema

    @property
    def dictionary(self) -> EmbeddedDictionary:
        return self._require_open().dictionary

    def new_document(self, class_name: str) -> Document:
        return Document(class_name=class_name)

    def save(self, document: Document) -> RecordId:
        return self._require_open().save(document)

    def load(self, rid: RecordId) -> Document | None:
        return self._require_open().load(rid)

    def delete(self, rid: RecordId) -> bool:
        return self._require_open().delete(rid)

    def __enter__(self) -> EmbeddedDatabase:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else f"open as {self._user}"
        return f"EmbeddedDatabase({self._url!r}, {state})"
