"""Core identifiers and type-safe primitives for the embedded document store.

These value objects provide type-safe identifiers that are used throughout
the system to ensure correctness and prevent accidental misuse of raw integers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import NewType


ClusterId = NewType("ClusterId", int)
"""Identifier of the cluster (physical container) a document class stores into."""

NodeId = NewType("NodeId", int)
"""Identifier of a node inside the in-memory B+Tree dictionary."""

# Special sentinel values
INVALID_CLUSTER_ID = ClusterId(-1)
INVALID_NODE_ID = NodeId(-1)

_RID_PATTERN = re.compile(r"^#(-?\d+):(\d+)$")


@dataclass(frozen=True, slots=True)
class RecordId:
    """Record Identifier (RID) - the opaque handle of a stored document.

    A RID is a combination of cluster_id and position, allowing direct access
    to any document without needing to scan. The key dictionary maps external
    keys to RIDs.

    Attributes:
        cluster_id: The cluster holding this document
        position: The position within the cluster

    Example:
        >>> rid = RecordId(ClusterId(9), 3)
        >>> str(rid)
        '#9:3'
        >>> RecordId.parse("#9:3") == rid
        True
    """

    cluster_id: ClusterId
    position: int

    def __post_init__(self) -> None:
        """Validate the record identifier."""
        if self.position < 0:
            raise ValueError(f"position must be non-negative, got {self.position}")

    def __repr__(self) -> str:
        return f"RID({self.cluster_id}:{self.position})"

    def __str__(self) -> str:
        return f"#{self.cluster_id}:{self.position}"

    @classmethod
    def parse(cls, text: str) -> RecordId:
        """Parse the ``#cluster:position`` form produced by ``str()``.

        Raises:
            ValueError: If text is not a valid RID literal
        """
        match = _RID_PATTERN.match(text)
        if match is None:
            raise ValueError(f"Invalid record id: {text!r}")
        return cls(cluster_id=ClusterId(int(match.group(1))), position=int(match.group(2)))
