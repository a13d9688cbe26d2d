"""Application layer - the benchmark binding and its bootstrap."""

from docstore_adapter.application.bootstrap import (
    SCHEMA_CLASS,
    BootstrapCoordinator,
    BootstrapError,
    RetryPolicy,
    session_pool_factory,
)
from docstore_adapter.application.client import DocStoreClient, OperationError, classify
from docstore_adapter.application.key_index import KeyIndex
from docstore_adapter.application.pool_slot import SharedPoolSlot
from docstore_adapter.application.settings_resolver import (
    ConnectionSettings,
    default_url,
    resolve_connection_settings,
)

__all__ = [
    "SCHEMA_CLASS",
    "BootstrapCoordinator",
    "BootstrapError",
    "RetryPolicy",
    "session_pool_factory",
    "DocStoreClient",
    "OperationError",
    "classify",
    "KeyIndex",
    "SharedPoolSlot",
    "ConnectionSettings",
    "default_url",
    "resolve_connection_settings",
]
