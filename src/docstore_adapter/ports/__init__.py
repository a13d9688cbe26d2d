"""Ports layer - interface definitions following Hexagonal Architecture.

Ports are abstract interfaces that define contracts:
- Inbound ports: the binding API offered to the benchmark harness (DB)
- Outbound ports: the storage engine the binding depends on

Adapters implement these ports with concrete functionality.
"""

from docstore_adapter.ports.inbound import DB, DBError
from docstore_adapter.ports.outbound import (
    DatabasePool,
    DatabaseSession,
    Dictionary,
    Schema,
    StorageError,
)

__all__ = [
    # Inbound ports
    "DB",
    "DBError",
    # Outbound ports
    "DatabasePool",
    "DatabaseSession",
    "Dictionary",
    "Schema",
    "StorageError",
]
