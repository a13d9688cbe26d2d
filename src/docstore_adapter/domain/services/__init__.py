"""Domain services.

Services implement domain logic that doesn't naturally fit within a
single entity.
"""

from docstore_adapter.domain.services.btree_dictionary import (
    BTreeDictionary,
    DictionaryStats,
)

__all__ = [
    "BTreeDictionary",
    "DictionaryStats",
]
