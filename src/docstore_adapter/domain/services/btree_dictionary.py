"""B+Tree dictionary implementation.

This module implements the ordered key dictionary of the embedded document
store: a B+Tree that maps external string keys to document RecordIds and
supports point lookups and ascending range scans.

Key features:
    - O(log n) search, put, remove
    - Efficient range scans via linked leaf nodes
    - Unique keys; put on an existing key replaces its RecordId

References:
    - Bayer & McCreight, "Organization and Maintenance of Large Ordered
      Indexes" (1972)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from docstore_adapter.domain.entities.btree_node import (
    BTreeInternalNode,
    BTreeLeafNode,
    BTreeNode,
)
from docstore_adapter.domain.value_objects import INVALID_NODE_ID, NodeId, RecordId


DEFAULT_MAX_KEYS = 128


@dataclass
class DictionaryStats:
    """Statistics for dictionary monitoring."""

    name: str
    height: int
    num_entries: int
    search_count: int
    put_count: int
    remove_count: int


class BTreeDictionary:
    """A B+Tree keyed by strings with RecordId values.

    Nodes live in an in-memory node table; the tree is rebuilt from a
    snapshot when a persistent storage is reopened.

    Thread Safety:
        All methods are thread-safe. ``range_scan`` holds the tree latch
        while its iterator is open, so callers must exhaust or close it.
    """

    def __init__(self, name: str = "dictionary", max_keys: int = DEFAULT_MAX_KEYS) -> None:
        """Initialize the B+Tree with an empty root leaf node.

        Args:
            name: Dictionary name, used in diagnostics.
            max_keys: Maximum keys per node before it splits (fanout - 1).

        Raises:
            ValueError: If max_keys < 3.
        """
        if max_keys < 3:
            raise ValueError(f"max_keys must be >= 3, got {max_keys}")

        self.name = name
        self.max_keys = max_keys
        self._lock = threading.RLock()
        self._reset()

        # Statistics
        self._search_count = 0
        self._put_count = 0
        self._remove_count = 0

    def _reset(self) -> None:
        self._next_node_id = 1  # Root gets node 0
        self._nodes: dict[NodeId, BTreeNode] = {NodeId(0): BTreeLeafNode.new(NodeId(0))}
        self._root_id = NodeId(0)
        self._height = 1
        self._num_entries = 0

    @property
    def size(self) -> int:
        """Number of keys currently stored."""
        return self._num_entries

    @property
    def height(self) -> int:
        return self._height

    def __len__(self) -> int:
        return self._num_entries

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.search(key) is not None

    def _get_node(self, node_id: NodeId) -> BTreeNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise RuntimeError(f"Node {node_id} not found")
        return node

    def _allocate_node_id(self) -> NodeId:
        node_id = NodeId(self._next_node_id)
        self._next_node_id += 1
        return node_id

    def _find_leaf(self, key: str) -> BTreeLeafNode:
        """Find the leaf node that should contain the given key.

        Traverses from root to leaf, following the appropriate child
        pointers based on key comparisons.
        """
        node = self._get_node(self._root_id)
        while not node.is_leaf:
            assert isinstance(node, BTreeInternalNode)
            node = self._get_node(node.find_child(key))

        assert isinstance(node, BTreeLeafNode)
        return node

    def _leftmost_leaf(self) -> BTreeLeafNode:
        node = self._get_node(self._root_id)
        while not node.is_leaf:
            assert isinstance(node, BTreeInternalNode)
            node = self._get_node(node.children[0])

        assert isinstance(node, BTreeLeafNode)
        return node

    def search(self, key: str) -> RecordId | None:
        """Search for a key and return its RecordId.

        Returns:
            The RecordId if found, None otherwise.
        """
        with self._lock:
            self._search_count += 1
            return self._find_leaf(key).search(key)

    def put(self, key: str, rid: RecordId) -> bool:
        """Map key to rid, replacing any previous mapping.

        Returns:
            True if the key was new, False if an existing mapping was replaced.
        """
        with self._lock:
            self._put_count += 1

            leaf = self._find_leaf(key)
            if not leaf.upsert(key, rid):
                return False

            self._num_entries += 1
            if leaf.num_keys > self.max_keys:
                self._split_leaf(leaf)
            return True

    def _split_leaf(self, leaf: BTreeLeafNode) -> None:
        """Split a leaf node that has exceeded max_keys.

        Creates a new leaf node, moves half the keys to it and hands the
        new leaf's first key to the parent as separator.
        """
        new_leaf = BTreeLeafNode.new(self._allocate_node_id())

        mid = len(leaf.keys) // 2
        new_leaf.keys = leaf.keys[mid:]
        new_leaf.values = leaf.values[mid:]
        leaf.keys = leaf.keys[:mid]
        leaf.values = leaf.values[:mid]

        # Update sibling pointers
        new_leaf.header.next_id = leaf.header.next_id
        new_leaf.header.prev_id = leaf.node_id
        leaf.header.next_id = new_leaf.node_id

        if new_leaf.header.next_id != INVALID_NODE_ID:
            next_node = self._get_node(new_leaf.header.next_id)
            next_node.header.prev_id = new_leaf.node_id

        self._nodes[new_leaf.node_id] = new_leaf
        self._insert_into_parent(leaf, new_leaf.keys[0], new_leaf)

    def _insert_into_parent(
        self,
        left_child: BTreeNode,
        key: str,
        right_child: BTreeNode,
    ) -> None:
        """Insert a separator key into the parent of two children.

        Called after a node split. Grows a new root when the split node
        was the root.
        """
        parent_id = left_child.header.parent_id

        if parent_id == INVALID_NODE_ID:
            new_root = BTreeInternalNode.new(self._allocate_node_id())
            new_root.insert_child(key, left_child.node_id, right_child.node_id)

            left_child.header.parent_id = new_root.node_id
            right_child.header.parent_id = new_root.node_id

            self._nodes[new_root.node_id] = new_root
            self._root_id = new_root.node_id
            self._height += 1
            return

        parent = self._get_node(parent_id)
        if not isinstance(parent, BTreeInternalNode):
            raise RuntimeError("Invalid parent node")

        parent.insert_child(key, left_child.node_id, right_child.node_id)
        right_child.header.parent_id = parent_id

        if parent.num_keys > self.max_keys:
            self._split_internal(parent)

    def _split_internal(self, node: BTreeInternalNode) -> None:
        """Split an internal node that has exceeded max_keys.

        The middle key moves up to the parent.
        """
        new_node = BTreeInternalNode.new(self._allocate_node_id())

        mid = len(node.keys) // 2
        separator = node.keys[mid]

        new_node.keys = node.keys[mid + 1 :]
        new_node.children = node.children[mid + 1 :]
        node.keys = node.keys[:mid]
        node.children = node.children[: mid + 1]

        for child_id in new_node.children:
            self._get_node(child_id).header.parent_id = new_node.node_id

        self._nodes[new_node.node_id] = new_node
        self._insert_into_parent(node, separator, new_node)

    def remove(self, key: str) -> RecordId | None:
        """Delete a key from the dictionary.

        Leaves are not merged on underflow; empty leaves stay linked and
        are skipped by scans.

        Returns:
            The RecordId the key mapped to, None if key not found.
        """
        with self._lock:
            self._remove_count += 1

            rid = self._find_leaf(key).delete(key)
            if rid is not None:
                self._num_entries -= 1
            return rid

    def range_scan(
        self,
        low: str | None = None,
        high: str | None = None,
        include_low: bool = True,
        include_high: bool = True,
    ) -> Iterator[tuple[str, RecordId]]:
        """Scan a range of keys in ascending order.

        Uses the linked leaf nodes for sequential access.

        Args:
            low: Lower bound (None for unbounded).
            high: Upper bound (None for unbounded).
            include_low: Include the low bound in results.
            include_high: Include the high bound in results.

        Yields:
            (key, rid) tuples in sorted order.
        """
        with self._lock:
            if low is not None:
                leaf = self._find_leaf(low)
                start = leaf.first_at_or_after(low, inclusive=include_low)
            else:
                leaf = self._leftmost_leaf()
                start = 0

            while True:
                for i in range(start, len(leaf.keys)):
                    key = leaf.keys[i]
                    if high is not None:
                        if include_high and key > high:
                            return
                        if not include_high and key >= high:
                            return
                    yield key, leaf.values[i]

                if leaf.header.next_id == INVALID_NODE_ID:
                    return
                next_node = self._get_node(leaf.header.next_id)
                assert isinstance(next_node, BTreeLeafNode)
                leaf = next_node
                start = 0

    def scan_all(self) -> Iterator[tuple[str, RecordId]]:
        """Scan all entries in ascending key order."""
        yield from self.range_scan()

    @contextmanager
    def frozen(self) -> Iterator[None]:
        """Hold the tree latch for the block; no writer can change the tree meanwhile."""
        with self._lock:
            yield

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._reset()

    def get_stats(self) -> DictionaryStats:
        """Return dictionary statistics for monitoring."""
        with self._lock:
            return DictionaryStats(
                name=self.name,
                height=self._height,
                num_entries=self._num_entries,
                search_count=self._search_count,
                put_count=self._put_count,
                remove_count=self._remove_count,
            )
