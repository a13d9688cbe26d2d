"""Adapters layer - concrete implementations of ports.

Outbound adapters implement the storage engine the binding drives:
    - EmbeddedDatabase: session over in-process storages
    - SessionPool: bounded pool of open sessions
"""

from docstore_adapter.adapters.outbound import EmbeddedDatabase, SessionPool

__all__ = [
    "EmbeddedDatabase",
    "SessionPool",
]
