"""Embedded document storage.

This adapter holds the actual data behind the storage engine port: per-URL
storages living in this process, each with a schema, a key dictionary and
clustered documents.

URL schemes:
    - ``memory:<name>``: process-local, gone when the process exits
    - ``plocal:<path>``: snapshotted as JSON under ``<path>`` on flush and
      at interpreter exit, reloaded on first open. Creation is exclusive
      across processes; each process then works on its own copy and the
      last snapshot written wins
    - ``remote:<host>...``: rejected; no wire protocol is spoken here

Thread Safety:
    The registry and every storage are guarded by their own locks. Schema
    changes additionally take a non-blocking commit latch so concurrent
    creators fail fast with SchemaNotCreatedError instead of queueing.
"""

from __future__ import annotations

import atexit
import json
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator

from docstore_adapter.domain.entities import Document
from docstore_adapter.domain.services import BTreeDictionary
from docstore_adapter.domain.value_objects import ClusterId, RecordId
from docstore_adapter.infrastructure.config import get_config
from docstore_adapter.ports.outbound.storage_engine import (
    AuthenticationError,
    ClassExistsError,
    RecordNotFoundError,
    SchemaNotCreatedError,
    StorageError,
    StorageExistsError,
    StorageNotFoundError,
    UnsupportedUrlError,
)

logger = logging.getLogger(__name__)

SNAPSHOT_FILE = "storage.json"
TEMP_SUFFIX = ".tmp"
SNAPSHOT_VERSION = 1

MEMORY_SCHEME = "memory"
PLOCAL_SCHEME = "plocal"
REMOTE_SCHEME = "remote"


@dataclass(frozen=True)
class StorageUrl:
    """A parsed database URL.

    Attributes:
        scheme: ``memory`` or ``plocal``.
        location: Storage name (memory) or directory path (plocal).
    """

    scheme: str
    location: str

    @classmethod
    def parse(cls, url: str) -> StorageUrl:
        """Parse ``scheme:location``.

        Raises:
            UnsupportedUrlError: For remote or unknown schemes, or an empty location.
        """
        scheme, sep, location = url.partition(":")
        scheme = scheme.strip().lower()
        if not sep or not location:
            raise UnsupportedUrlError(f"Invalid database URL: {url!r}")
        if scheme == REMOTE_SCHEME:
            raise UnsupportedUrlError(
                f"Remote databases are not supported by the embedded engine: {url!r}"
            )
        if scheme not in (MEMORY_SCHEME, PLOCAL_SCHEME):
            raise UnsupportedUrlError(f"Unknown database URL scheme {scheme!r} in {url!r}")
        if scheme == PLOCAL_SCHEME:
            location = os.path.normpath(location)
        return cls(scheme=scheme, location=location)

    @property
    def is_persistent(self) -> bool:
        return self.scheme == PLOCAL_SCHEME

    @property
    def directory(self) -> Path:
        return Path(self.location)

    @property
    def snapshot_path(self) -> Path:
        return self.directory / SNAPSHOT_FILE

    def __str__(self) -> str:
        return f"{self.scheme}:{self.location}"


class EmbeddedSchema:
    """Schema of an embedded storage: class name to cluster id."""

    def __init__(self, storage: EmbeddedStorage) -> None:
        self._storage = storage
        self._classes: dict[str, ClusterId] = {}
        self._commit_latch = threading.Lock()

    def exists_class(self, name: str) -> bool:
        with self._storage.lock:
            return name in self._classes

    def create_class(self, name: str) -> None:
        """Create a class with its own cluster.

        Raises:
            SchemaNotCreatedError: If another schema change is committing.
            ClassExistsError: If the class already exists.
        """
        if not self._commit_latch.acquire(blocking=False):
            raise SchemaNotCreatedError(
                f"Schema change for class '{name}' not committed: concurrent schema update"
            )
        try:
            with self._storage.lock:
                if name in self._classes:
                    raise ClassExistsError(f"Class '{name}' already exists")
                cluster_id = self._storage.allocate_cluster()
                self._classes[name] = cluster_id
                self._storage.mark_dirty()
            logger.debug("Created class %s in cluster %d", name, cluster_id)
        finally:
            self._commit_latch.release()

    def classes(self) -> list[str]:
        with self._storage.lock:
            return sorted(self._classes)

    def cluster_of(self, name: str) -> ClusterId:
        """Return the cluster id of a class.

        Raises:
            StorageError: If the class does not exist.
        """
        with self._storage.lock:
            try:
                return self._classes[name]
            except KeyError:
                raise StorageError(f"Class '{name}' not found in schema") from None

    def to_snapshot(self) -> dict[str, int]:
        return dict(self._classes)

    def load_snapshot(self, data: dict[str, int]) -> None:
        self._classes = {name: ClusterId(cluster) for name, cluster in data.items()}


class EmbeddedDictionary:
    """Key dictionary of an embedded storage, backed by a B+Tree."""

    def __init__(self, tree: BTreeDictionary, on_change: Callable[[], None] | None = None) -> None:
        self._tree = tree
        self._on_change = on_change

    @property
    def size(self) -> int:
        return self._tree.size

    @property
    def tree(self) -> BTreeDictionary:
        return self._tree

    def put(self, key: str, rid: RecordId) -> None:
        self._tree.put(key, rid)
        if self._on_change is not None:
            self._on_change()

    def get(self, key: str) -> RecordId | None:
        return self._tree.search(key)

    def remove(self, key: str) -> RecordId | None:
        rid = self._tree.remove(key)
        if rid is not None and self._on_change is not None:
            self._on_change()
        return rid

    def iterate_from(self, key: str, inclusive: bool = True) -> Iterator[tuple[str, RecordId]]:
        return self._tree.range_scan(low=key, include_low=inclusive)


class EmbeddedStorage:
    """One database: users, schema, dictionary and documents.

    Documents are stored as detached copies; callers never share a
    mutable document with storage.
    """

    def __init__(self, url: StorageUrl, dictionary_fanout: int | None = None) -> None:
        self.url = url
        self.lock = threading.RLock()
        self.flush_lock = threading.Lock()
        self.dropped = False

        fanout = dictionary_fanout or get_config().storage.dictionary_fanout
        self.schema = EmbeddedSchema(self)
        self.dictionary = EmbeddedDictionary(
            BTreeDictionary(name="dictionary", max_keys=fanout), on_change=self.mark_dirty
        )

        self._users: dict[str, str] = {}
        self._documents: dict[RecordId, Document] = {}
        self._next_cluster = 0
        self._next_position: dict[ClusterId, int] = {}
        self._dirty = False

    def mark_dirty(self) -> None:
        self._dirty = True

    def allocate_cluster(self) -> ClusterId:
        with self.lock:
            cluster_id = ClusterId(self._next_cluster)
            self._next_cluster += 1
            self._next_position[cluster_id] = 0
            return cluster_id

    def add_user(self, user: str, password: str) -> None:
        with self.lock:
            self._users[user] = password
            self._dirty = True

    def authenticate(self, user: str, password: str) -> None:
        """Check credentials.

        Raises:
            AuthenticationError: If the user is unknown or the password wrong.
        """
        with self.lock:
            if self._users.get(user) != password:
                raise AuthenticationError(f"Invalid credentials for user '{user}' on {self.url}")

    @property
    def document_count(self) -> int:
        with self.lock:
            return len(self._documents)

    def save(self, document: Document) -> RecordId:
        """Persist a document, assigning a RecordId on first save.

        Raises:
            StorageError: If the document's class does not exist.
            RecordNotFoundError: If a persistent document was deleted meanwhile.
        """
        with self.lock:
            if document.rid is None:
                cluster_id = self.schema.cluster_of(document.class_name)
                position = self._next_position[cluster_id]
                self._next_position[cluster_id] = position + 1
                document.rid = RecordId(cluster_id, position)
            elif document.rid not in self._documents:
                raise RecordNotFoundError(f"Record {document.rid} no longer exists")

            document.version += 1
            self._documents[document.rid] = document.copy()
            self._dirty = True
            return document.rid

    def load(self, rid: RecordId) -> Document | None:
        with self.lock:
            stored = self._documents.get(rid)
            return stored.copy() if stored is not None else None

    def delete(self, rid: RecordId) -> bool:
        with self.lock:
            if self._documents.pop(rid, None) is None:
                return False
            self._dirty = True
            return True

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize the whole storage as one view of dictionary and documents.

        The tree latch is taken before the storage lock, the order scans take
        them in. A client insert saves its document before putting its key
        and a delete removes the key before the document, so a snapshot taken
        between those steps may hold a document no key points at. Every key
        in a snapshot resolves to a document.
        """
        with self.dictionary.tree.frozen(), self.lock:
            entries = [[key, str(rid)] for key, rid in self.dictionary.tree.scan_all()]
            return {
                "version": SNAPSHOT_VERSION,
                "users": dict(self._users),
                "classes": self.schema.to_snapshot(),
                "next_cluster": self._next_cluster,
                "next_position": {str(c): p for c, p in self._next_position.items()},
                "documents": [doc.to_dict() for doc in self._documents.values()],
                "dictionary": entries,
            }

    @classmethod
    def from_snapshot(cls, url: StorageUrl, data: dict[str, Any]) -> EmbeddedStorage:
        """Rebuild a storage from ``to_snapshot`` output.

        Raises:
            StorageError: If the snapshot version is not understood.
        """
        if data.get("version") != SNAPSHOT_VERSION:
            raise StorageError(f"Unsupported snapshot version {data.get('version')!r} at {url}")

        storage = cls(url)
        storage._users = dict(data["users"])
        storage.schema.load_snapshot(data["classes"])
        storage._next_cluster = int(data["next_cluster"])
        storage._next_position = {
            ClusterId(int(c)): int(p) for c, p in data["next_position"].items()
        }
        for entry in data["documents"]:
            document = Document.from_dict(entry)
            storage._documents[document.rid] = document
        for key, rid in data["dictionary"]:
            storage.dictionary.put(key, RecordId.parse(rid))
        storage._dirty = False
        return storage

    def flush(self) -> bool:
        """Write the snapshot of a persistent storage if anything changed.

        Returns:
            True if a snapshot was written.
        """
        if not self.url.is_persistent:
            return False
        with self.flush_lock:
            with self.lock:
                if not self._dirty or self.dropped:
                    return False
                self._dirty = False

            try:
                snapshot = self.to_snapshot()
                tmp_path = self._write_temp_snapshot(snapshot)
                try:
                    os.replace(tmp_path, self.url.snapshot_path)
                except BaseException:
                    tmp_path.unlink(missing_ok=True)
                    raise
            except BaseException:
                self._dirty = True
                raise

        logger.debug("Flushed storage %s (%d documents)", self.url, len(snapshot["documents"]))
        return True

    def publish(self) -> None:
        """Write the first snapshot of a new persistent storage.

        The snapshot is hard-linked into place, which fails when a snapshot
        already exists, so only one process can create a given directory's
        storage.

        Raises:
            StorageExistsError: If a snapshot already exists at the URL.
        """
        with self.flush_lock:
            tmp_path = self._write_temp_snapshot(self.to_snapshot())
            try:
                os.link(tmp_path, self.url.snapshot_path)
            except FileExistsError:
                raise StorageExistsError(f"Storage {self.url} already exists") from None
            finally:
                tmp_path.unlink(missing_ok=True)
            with self.lock:
                self._dirty = False

    def _write_temp_snapshot(self, snapshot: dict[str, Any]) -> Path:
        """Write snapshot to a uniquely named file beside the snapshot file."""
        directory = self.url.directory
        directory.mkdir(parents=True, exist_ok=True)
        f = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=directory,
            prefix=SNAPSHOT_FILE + ".",
            suffix=TEMP_SUFFIX,
            delete=False,
        )
        tmp_path = Path(f.name)
        try:
            with f:
                json.dump(snapshot, f)
                f.flush()
                os.fsync(f.fileno())
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        return tmp_path


class StorageRegistry:
    """Process-wide registry of open storages, keyed by normalized URL."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._storages: dict[StorageUrl, EmbeddedStorage] = {}

    def exists(self, url: str) -> bool:
        parsed = StorageUrl.parse(url)
        with self._lock:
            if parsed in self._storages:
                return True
            return parsed.is_persistent and parsed.snapshot_path.exists()

    def create(self, url: str, user: str, password: str) -> EmbeddedStorage:
        """Create a new storage with one user.

        Raises:
            StorageExistsError: If a storage already exists at url.
        """
        parsed = StorageUrl.parse(url)
        with self._lock:
            if parsed in self._storages or (
                parsed.is_persistent and parsed.snapshot_path.exists()
            ):
                raise StorageExistsError(f"Storage {parsed} already exists")

            storage = EmbeddedStorage(parsed)
            storage.add_user(user, password)
            if parsed.is_persistent:
                storage.publish()
            self._storages[parsed] = storage

        logger.info("Created storage %s", parsed)
        return storage

    def get(self, url: str) -> EmbeddedStorage:
        """Return the storage at url, loading a persisted snapshot if needed.

        Raises:
            StorageNotFoundError: If no storage exists at url.
        """
        parsed = StorageUrl.parse(url)
        with self._lock:
            storage = self._storages.get(parsed)
            if storage is not None:
                return storage

            if not parsed.is_persistent:
                raise StorageNotFoundError(f"Storage {parsed} does not exist")
            try:
                with open(parsed.snapshot_path, encoding="utf-8") as f:
                    data = json.load(f)
            except FileNotFoundError:
                raise StorageNotFoundError(f"Storage {parsed} does not exist") from None
            storage = EmbeddedStorage.from_snapshot(parsed, data)
            self._storages[parsed] = storage

        logger.info("Loaded storage %s (%d documents)", parsed, storage.document_count)
        return storage

    def drop(self, url: str) -> None:
        """Drop the storage at url, deleting its files.

        Raises:
            StorageNotFoundError: If no storage exists at url.
        """
        parsed = StorageUrl.parse(url)
        with self._lock:
            storage = self._storages.pop(parsed, None)
            on_disk = parsed.is_persistent and parsed.snapshot_path.exists()
            if storage is None and not on_disk:
                raise StorageNotFoundError(f"Storage {parsed} does not exist")

            if storage is not None:
                with storage.flush_lock, storage.lock:
                    storage.dropped = True
            if parsed.is_persistent:
                try:
                    shutil.rmtree(parsed.directory)
                except FileNotFoundError:
                    logger.debug("Storage directory %s already removed", parsed.directory)

        logger.info("Dropped storage %s", parsed)

    def flush_all(self) -> None:
        """Flush every persistent storage."""
        with self._lock:
            storages = list(self._storages.values())
        for storage in storages:
            try:
                storage.flush()
            except OSError as e:
                logger.error("Failed to flush storage %s: %s", storage.url, e)

    def clear(self) -> None:
        """Forget every storage without flushing (useful for testing)."""
        with self._lock:
            for storage in self._storages.values():
                storage.dropped = True
            self._storages.clear()


# Global registry instance
_registry = StorageRegistry()
atexit.register(_registry.flush_all)


def get_registry() -> StorageRegistry:
    """Get the process-wide storage registry."""
    return _registry
