"""Outbound adapters - the embedded document engine and its session pool."""

from docstore_adapter.adapters.outbound.embedded_database import EmbeddedDatabase
from docstore_adapter.adapters.outbound.embedded_storage import (
    EmbeddedStorage,
    StorageRegistry,
    StorageUrl,
    get_registry,
)
from docstore_adapter.adapters.outbound.session_pool import PooledDatabase, PoolStats, SessionPool

__all__ = [
    "EmbeddedDatabase",
    "EmbeddedStorage",
    "StorageRegistry",
    "StorageUrl",
    "get_registry",
    "PooledDatabase",
    "PoolStats",
    "SessionPool",
]
