"""B+Tree node structures for the key dictionary.

The dictionary is a B+Tree mapping external string keys to document
RecordIds.

Key properties:
    - All data (RecordIds) stored in leaf nodes
    - Internal nodes only contain separator keys and child pointers
    - Leaf nodes are linked for efficient range scans
    - Keys within a node are kept sorted and searched with bisection

References:
    - Bayer & McCreight, "Organization and Maintenance of Large Ordered
      Indexes" (1972)
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from enum import IntEnum

from docstore_adapter.domain.value_objects import INVALID_NODE_ID, NodeId, RecordId


class NodeType(IntEnum):
    """Type of B+Tree node."""

    INTERNAL = 0
    LEAF = 1


@dataclass
class BTreeNodeHeader:
    """Header for a B+Tree node.

    Attributes:
        node_type: Whether this is an internal or leaf node.
        parent_id: Node ID of parent node (INVALID_NODE_ID for root).
        next_id: For leaf nodes, the next sibling (INVALID_NODE_ID if last).
        prev_id: For leaf nodes, the previous sibling (INVALID_NODE_ID if first).
    """

    node_type: NodeType
    parent_id: NodeId = INVALID_NODE_ID
    next_id: NodeId = INVALID_NODE_ID
    prev_id: NodeId = INVALID_NODE_ID


@dataclass
class BTreeLeafNode:
    """A leaf node in a B+Tree.

    Leaf nodes store the key to RecordId pairs. Leaf nodes are linked
    together for efficient range scans.

    Attributes:
        node_id: The ID of this node.
        header: Node header with metadata.
        keys: Sorted keys stored in this node.
        values: RecordIds corresponding to keys.
    """

    node_id: NodeId
    header: BTreeNodeHeader
    keys: list[str] = field(default_factory=list)
    values: list[RecordId] = field(default_factory=list)

    @classmethod
    def new(cls, node_id: NodeId) -> BTreeLeafNode:
        """Create a new empty leaf node."""
        return cls(node_id=node_id, header=BTreeNodeHeader(node_type=NodeType.LEAF))

    @property
    def is_leaf(self) -> bool:
        return True

    @property
    def num_keys(self) -> int:
        return len(self.keys)

    def _position(self, key: str) -> int | None:
        pos = bisect_left(self.keys, key)
        if pos < len(self.keys) and self.keys[pos] == key:
            return pos
        return None

    def search(self, key: str) -> RecordId | None:
        """Search for a key in this leaf node.

        Returns:
            The RecordId if found, None otherwise.
        """
        pos = self._position(key)
        return self.values[pos] if pos is not None else None

    def upsert(self, key: str, rid: RecordId) -> bool:
        """Insert a key, or replace the RecordId of an existing key.

        Maintains sorted order of keys.

        Returns:
            True if a new key was added, False if an existing key was replaced.
        """
        pos = bisect_left(self.keys, key)
        if pos < len(self.keys) and self.keys[pos] == key:
            self.values[pos] = rid
            return False

        self.keys.insert(pos, key)
        self.values.insert(pos, rid)
        return True

    def delete(self, key: str) -> RecordId | None:
        """Delete a key from this leaf node.

        Returns:
            The RecordId the key pointed at, None if key not found.
        """
        pos = self._position(key)
        if pos is None:
            return None
        self.keys.pop(pos)
        return self.values.pop(pos)

    def first_at_or_after(self, key: str, inclusive: bool = True) -> int:
        """Index of the first key >= key (> key when not inclusive)."""
        if inclusive:
            return bisect_left(self.keys, key)
        return bisect_right(self.keys, key)


@dataclass
class BTreeInternalNode:
    """An internal node in a B+Tree.

    Internal nodes store keys and child pointers. A node with N keys
    has N+1 children. Keys act as separators: all keys in child[i] are
    less than keys[i], and all keys in child[i+1] are >= keys[i].

    Attributes:
        node_id: The ID of this node.
        header: Node header with metadata.
        keys: List of separator keys (N keys).
        children: List of child node IDs (N+1 children).
    """

    node_id: NodeId
    header: BTreeNodeHeader
    keys: list[str] = field(default_factory=list)
    children: list[NodeId] = field(default_factory=list)

    @classmethod
    def new(cls, node_id: NodeId) -> BTreeInternalNode:
        """Create a new empty internal node."""
        return cls(node_id=node_id, header=BTreeNodeHeader(node_type=NodeType.INTERNAL))

    @property
    def is_leaf(self) -> bool:
        return False

    @property
    def num_keys(self) -> int:
        return len(self.keys)

    def find_child(self, key: str) -> NodeId:
        """Find the child node ID whose subtree should contain the key."""
        return self.children[bisect_right(self.keys, key)]

    def insert_child(self, key: str, left_child: NodeId, right_child: NodeId) -> None:
        """Insert a new separator key with its children.

        Called when a child splits. The left_child already exists; we're
        adding the new key and right_child.

        Args:
            key: The separator key (minimum key in right_child).
            left_child: The existing child node.
            right_child: The new child node (from split).
        """
        if not self.children:
            # First insertion
            self.children = [left_child, right_child]
            self.keys = [key]
            return

        pos = bisect_right(self.keys, key)
        self.keys.insert(pos, key)
        self.children.insert(pos + 1, right_child)


# Union type for B+Tree nodes
BTreeNode = BTreeLeafNode | BTreeInternalNode
