"""Domain entities.

Entities have identity and lifecycle:
    - Document: A dynamically shaped record tagged with a schema class
    - BTreeLeafNode / BTreeInternalNode: Nodes of the key dictionary
"""

from docstore_adapter.domain.entities.btree_node import (
    BTreeInternalNode,
    BTreeLeafNode,
    BTreeNode,
    BTreeNodeHeader,
    NodeType,
)
from docstore_adapter.domain.entities.document import Document

__all__ = [
    "Document",
    "BTreeInternalNode",
    "BTreeLeafNode",
    "BTreeNode",
    "BTreeNodeHeader",
    "NodeType",
]
