"""Key index facade over the engine's global dictionary.

Translates external string keys into documents and back. The dictionary
is database-wide, not per table: the benchmark's single logical table
owns the whole key space.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Iterator

from docstore_adapter.domain.entities import Document
from docstore_adapter.domain.value_objects import RecordId
from docstore_adapter.ports.outbound.storage_engine import DatabaseSession, StorageError


class KeyIndex:
    """Key to document lookups through one open session."""

    def __init__(self, database: DatabaseSession) -> None:
        self._db = database

    def put(self, key: str, document: Document) -> None:
        """Map key to a saved document, replacing any previous mapping.

        Raises:
            StorageError: If the document has not been saved.
        """
        if document.rid is None:
            raise StorageError(f"Cannot index unsaved document under key {key!r}")
        self._db.dictionary.put(key, document.rid)

    def get(self, key: str) -> Document | None:
        """Resolve key to its document; None when the key is unmapped.

        A key whose document vanished underneath the mapping resolves to
        None as well.
        """
        rid = self._db.dictionary.get(key)
        if rid is None:
            return None
        return self._db.load(rid)

    def remove(self, key: str) -> RecordId | None:
        """Remove the mapping; return the RecordId it pointed at, if any."""
        return self._db.dictionary.remove(key)

    @contextmanager
    def range_from(
        self, start_key: str, inclusive: bool = True
    ) -> Generator[Iterator[tuple[str, Document]], None, None]:
        """Ordered (key, document) cursor starting at start_key.

        The cursor is only valid inside the ``with`` block, which releases
        the dictionary latch however the block exits. Entries whose
        document is gone are skipped.

        Example:
            with index.range_from("user5") as cursor:
                first_five = list(itertools.islice(cursor, 5))
        """
        entries = self._db.dictionary.iterate_from(start_key, inclusive=inclusive)
        try:
            yield self._resolve(entries)
        finally:
            close = getattr(entries, "close", None)
            if close is not None:
                close()

    def _resolve(
        self, entries: Iterator[tuple[str, RecordId]]
    ) -> Iterator[tuple[str, Document]]:
        for key, rid in entries:
            document = self._db.load(rid)
            if document is not None:
                yield key, document
