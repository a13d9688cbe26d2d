"""Outbound ports - dependencies on the storage engine."""

from docstore_adapter.ports.outbound.storage_engine import (
    AuthenticationError,
    ClassExistsError,
    DatabaseClosedError,
    DatabasePool,
    DatabaseSession,
    Dictionary,
    PoolClosedError,
    PoolExhaustedError,
    RecordNotFoundError,
    Schema,
    SchemaNotCreatedError,
    StorageError,
    StorageExistsError,
    StorageNotFoundError,
    UnsupportedUrlError,
)

__all__ = [
    "AuthenticationError",
    "ClassExistsError",
    "DatabaseClosedError",
    "DatabasePool",
    "DatabaseSession",
    "Dictionary",
    "PoolClosedError",
    "PoolExhaustedError",
    "RecordNotFoundError",
    "Schema",
    "SchemaNotCreatedError",
    "StorageError",
    "StorageExistsError",
    "StorageNotFoundError",
    "UnsupportedUrlError",
]
