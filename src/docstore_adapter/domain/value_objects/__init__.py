"""Value objects for the docstore adapter domain.

Value objects are immutable types that represent domain concepts.
They have no identity - two value objects with the same attributes are equal.

Exports:
    Identifiers:
        - ClusterId: Type-safe cluster identifier
        - NodeId: Type-safe B+Tree node identifier
        - RecordId: Composite identifier (cluster_id, position) for documents
        - INVALID_CLUSTER_ID, INVALID_NODE_ID: Sentinel values

    Outcomes:
        - Status: OK / ERROR returned to the benchmark harness
        - ErrorKind: Classified failure cause, logged before collapsing
"""

from docstore_adapter.domain.value_objects.identifiers import (
    INVALID_CLUSTER_ID,
    INVALID_NODE_ID,
    ClusterId,
    NodeId,
    RecordId,
)
from docstore_adapter.domain.value_objects.status import ErrorKind, Status

__all__ = [
    # Identifiers
    "ClusterId",
    "NodeId",
    "RecordId",
    "INVALID_CLUSTER_ID",
    "INVALID_NODE_ID",
    # Outcomes
    "Status",
    "ErrorKind",
]
