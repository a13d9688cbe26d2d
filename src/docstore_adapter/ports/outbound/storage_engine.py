"""Storage engine port for the document store the binding drives.

This outbound port defines everything the binding needs from a document
engine: database lifecycle by URL, a schema with named classes, a single
global ordered key dictionary, and document persistence.

Key responsibilities:
- Report and change database existence (exists/create/drop)
- Open sessions with credentials
- Create schema classes, signalling a creation race distinctly
- Map string keys to documents in key order
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Iterator, Protocol

from docstore_adapter.domain.entities import Document
from docstore_adapter.domain.value_objects import RecordId


class StorageError(Exception):
    """Base class for errors raised by a storage engine."""


class StorageExistsError(StorageError):
    """Raised when creating a database that already exists."""


class StorageNotFoundError(StorageError):
    """Raised when opening or dropping a database that does not exist."""


class UnsupportedUrlError(StorageError):
    """Raised for a database URL whose scheme the engine cannot serve."""


class AuthenticationError(StorageError):
    """Raised when a session is opened with invalid credentials."""


class DatabaseClosedError(StorageError):
    """Raised when a closed session is used."""


class SchemaNotCreatedError(StorageError):
    """Raised when a schema change could not be committed.

    Signals that another session is committing a schema change at the
    same time; the caller may retry once that change is visible.
    """


class ClassExistsError(StorageError):
    """Raised when creating a schema class that already exists."""


class RecordNotFoundError(StorageError):
    """Raised when loading or deleting a RecordId that holds no document."""


class PoolExhaustedError(StorageError):
    """Raised when no pooled session became free within the timeout."""


class PoolClosedError(StorageError):
    """Raised when acquiring from a pool that has been closed."""


class Schema(Protocol):
    """Protocol for the per-database schema."""

    @abstractmethod
    def exists_class(self, name: str) -> bool:
        """Return True if the class has been committed."""
        ...

    @abstractmethod
    def create_class(self, name: str) -> None:
        """Create a class.

        Raises:
            ClassExistsError: If the class already exists.
            SchemaNotCreatedError: If a concurrent schema change prevented commit.
        """
        ...

    @abstractmethod
    def classes(self) -> list[str]:
        """Return the names of all committed classes."""
        ...


class Dictionary(Protocol):
    """Protocol for the database-wide ordered key dictionary.

    Keys are unique. The dictionary is not scoped to a class: every key in
    the database shares one namespace.
    """

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of keys in the dictionary."""
        ...

    @abstractmethod
    def put(self, key: str, rid: RecordId) -> None:
        """Map key to rid, replacing any existing mapping."""
        ...

    @abstractmethod
    def get(self, key: str) -> RecordId | None:
        """Return the RecordId for key, None if absent."""
        ...

    @abstractmethod
    def remove(self, key: str) -> RecordId | None:
        """Remove key; return the RecordId it mapped to, None if absent."""
        ...

    @abstractmethod
    def iterate_from(self, key: str, inclusive: bool = True) -> Iterator[tuple[str, RecordId]]:
        """Yield (key, rid) in ascending key order starting at key.

        The iterator may hold a latch while open; close it when done.
        """
        ...


class DatabaseSession(Protocol):
    """Protocol for a session against one database URL.

    A session starts closed. ``create`` and ``open`` leave it open;
    ``close`` and ``drop`` leave it closed.

    Thread Safety:
        A session is used by one thread at a time. The storage behind it is
        shared and thread-safe.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        """The database URL this session is bound to."""
        ...

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """True if the session is not open."""
        ...

    @abstractmethod
    def exists(self) -> bool:
        """Return True if the database exists."""
        ...

    @abstractmethod
    def create(self, user: str, password: str) -> None:
        """Create the database and open this session on it.

        Raises:
            StorageExistsError: If the database already exists.
        """
        ...

    @abstractmethod
    def open(self, user: str, password: str) -> None:
        """Open the session.

        Raises:
            StorageNotFoundError: If the database does not exist.
            AuthenticationError: If the credentials are rejected.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close the session. Closing a closed session is a no-op."""
        ...

    @abstractmethod
    def drop(self) -> None:
        """Drop the database the session is open on.

        Raises:
            StorageNotFoundError: If the database no longer exists.
        """
        ...

    @property
    @abstractmethod
    def schema(self) -> Schema:
        """The database schema."""
        ...

    @property
    @abstractmethod
    def dictionary(self) -> Dictionary:
        """The database-wide key dictionary."""
        ...

    @abstractmethod
    def new_document(self, class_name: str) -> Document:
        """Return an unsaved document of the given class."""
        ...

    @abstractmethod
    def save(self, document: Document) -> RecordId:
        """Persist a document, assigning a RecordId on first save."""
        ...

    @abstractmethod
    def load(self, rid: RecordId) -> Document | None:
        """Return a copy of the stored document, None if absent."""
        ...

    @abstractmethod
    def delete(self, rid: RecordId) -> bool:
        """Delete a document; return False if it was absent."""
        ...


class DatabasePool(Protocol):
    """Protocol for a pool of open sessions bound to one URL and user.

    Thread Safety:
        All methods must be thread-safe. Each acquired session is exclusive
        to its borrower until closed.
    """

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    def acquire(self) -> DatabaseSession:
        """Borrow an open session; closing it returns it to the pool.

        Raises:
            PoolExhaustedError: If no session became free within the timeout.
            PoolClosedError: If the pool has been closed.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Close idle sessions and refuse further acquisition."""
        ...
