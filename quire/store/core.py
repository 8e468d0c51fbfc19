"""Core Store class: references, snapshots and atomic write batches."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from .backends.base import DELETE, SET, UPDATE, StorageBackend, StoredDocument, Write, WriteResult
from .backends.memory import MemoryBackend
from .exceptions import ConfigurationError, TransactionError
from .values import Timestamp

logger = logging.getLogger(__name__)


def _normalize(path: str) -> str:
    return path.strip("/")


class DocumentSnapshot:
    """The state of one document at read time.

    ``exists`` is False when nothing is stored at the path; ``to_dict()``
    then returns None.
    """

    def __init__(
        self,
        reference: "DocumentReference",
        data: Optional[Dict[str, Any]] = None,
        create_time: Optional[Timestamp] = None,
        update_time: Optional[Timestamp] = None,
    ):
        self.reference = reference
        self._data = data
        self.create_time = create_time
        self.update_time = update_time

    @classmethod
    def from_stored(cls, reference: "DocumentReference", stored: Optional[StoredDocument]) -> "DocumentSnapshot":
        if stored is None:
            return cls(reference)
        return cls(reference, stored.data, stored.created_at, stored.updated_at)

    @property
    def exists(self) -> bool:
        return self._data is not None

    @property
    def id(self) -> str:
        return self.reference.id

    def to_dict(self) -> Optional[Dict[str, Any]]:
        """Return a copy of the document body, or None if it does not exist."""
        return dict(self._data) if self._data is not None else None

    def __repr__(self) -> str:
        return f"DocumentSnapshot({self.reference.path!r}, exists={self.exists})"


class DocumentReference:
    """Points at a document path in a Store; does not hold data."""

    def __init__(self, store: "Store", path: str):
        self._store = store
        self.path = _normalize(path)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> "CollectionReference":
        return CollectionReference(self._store, self.path.rsplit("/", 1)[0])

    def collection(self, key: str) -> "CollectionReference":
        return CollectionReference(self._store, f"{self.path}/{key}")

    async def get(self) -> DocumentSnapshot:
        return await self._store.get(self.path)

    async def set(self, data: Dict[str, Any], merge: bool = False) -> WriteResult:
        results = await self._store.batch().set(self, data, merge=merge).commit()
        return results[0]

    async def update(self, data: Dict[str, Any]) -> WriteResult:
        results = await self._store.batch().update(self, data).commit()
        return results[0]

    async def delete(self) -> WriteResult:
        results = await self._store.batch().delete(self).commit()
        return results[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DocumentReference):
            return NotImplemented
        return self._store is other._store and self.path == other.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"DocumentReference({self.path!r})"


class CollectionReference:
    """Points at a collection path in a Store."""

    def __init__(self, store: "Store", path: str):
        self._store = store
        self.path = _normalize(path)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> Optional[DocumentReference]:
        """The owning document, or None for a root collection."""
        if "/" not in self.path:
            return None
        return DocumentReference(self._store, self.path.rsplit("/", 1)[0])

    def document(self, id: Optional[str] = None) -> DocumentReference:
        """Reference a document in this collection; a new id when omitted."""
        if id is None:
            id = self._store.new_id(self.path)
        return DocumentReference(self._store, f"{self.path}/{id}")

    async def get(self) -> List[DocumentSnapshot]:
        return await self._store.list(self.path)

    def __repr__(self) -> str:
        return f"CollectionReference({self.path!r})"


class WriteBatch:
    """Collects set/update/delete operations and commits them atomically.

    Example:
        batch = store.batch()
        batch.set(store.document("users/alice"), {"age": 30}, merge=True)
        batch.update(store.document("users/bob"), {"age": 41})
        batch.delete(store.document("users/carol"))
        await batch.commit()
    """

    def __init__(self, store: "Store"):
        self._store = store
        self._writes: List[Write] = []
        self._committed = False

    def _check(self) -> None:
        if self._committed:
            raise TransactionError("Write batch has already been committed")

    def set(self, reference: DocumentReference, data: Dict[str, Any], merge: bool = False) -> "WriteBatch":
        self._check()
        self._writes.append(Write(SET, reference.path, dict(data), merge))
        return self

    def update(self, reference: DocumentReference, data: Dict[str, Any]) -> "WriteBatch":
        self._check()
        self._writes.append(Write(UPDATE, reference.path, dict(data)))
        return self

    def delete(self, reference: DocumentReference) -> "WriteBatch":
        self._check()
        self._writes.append(Write(DELETE, reference.path))
        return self

    @property
    def writes(self) -> List[Write]:
        """Queued writes, in order."""
        return list(self._writes)

    def __len__(self) -> int:
        return len(self._writes)

    async def commit(self) -> List[WriteResult]:
        """Apply every queued write atomically.

        The batch can be committed again after a failure, but not after
        a success.
        """
        self._check()
        results = await self._store.commit(self._writes)
        self._committed = True
        return results


class Transaction(WriteBatch):
    """A write batch that can also read documents.

    Used as an async context manager: writes are committed when the block
    exits normally and discarded when it raises.

    Example:
        async with store.transaction() as tx:
            snapshot = await tx.get(store.document("counters/visits"))
            tx.update(snapshot.reference, {"n": snapshot.to_dict()["n"] + 1})
    """

    async def get(self, reference: DocumentReference) -> DocumentSnapshot:
        self._check()
        return await self._store.get(reference.path)

    async def __aenter__(self) -> "Transaction":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None and self._writes and not self._committed:
            await self.commit()


class Store:
    """Document store client used by the model layer.

    Provides references, batches and reads on top of a StorageBackend.

    Example:
        from quire.store import connect

        store = connect("sqlite:///app.db")
        ref = store.collection("users").document()
        await ref.set({"name": "alice"})
        snapshot = await ref.get()
    """

    def __init__(self, backend: StorageBackend):
        """Create a Store with the given backend.

        Use connect() for convenient URL-based connection.

        Args:
            backend: Connected storage backend instance
        """
        self._backend = backend

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # References

    def document(self, path: str) -> DocumentReference:
        return DocumentReference(self, path)

    def collection(self, path: str) -> CollectionReference:
        return CollectionReference(self, path)

    def new_id(self, collection_path: Optional[str] = None) -> str:
        return self._backend.new_id(collection_path)

    # Writes

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def transaction(self) -> Transaction:
        return Transaction(self)

    async def commit(self, writes: List[Write]) -> List[WriteResult]:
        """Apply writes atomically through the backend."""
        logger.debug("Committing %d write(s)", len(writes))
        return await self._backend.commit(list(writes))

    # Reads

    async def get(self, path: str) -> DocumentSnapshot:
        reference = self.document(path)
        return DocumentSnapshot.from_stored(reference, await self._backend.get(reference.path))

    async def list(self, collection_path: str) -> List[DocumentSnapshot]:
        return [
            DocumentSnapshot.from_stored(self.document(stored.path), stored)
            for stored in await self._backend.list(_normalize(collection_path))
        ]

    # Lifecycle

    def close(self) -> None:
        """Close the store and release resources."""
        self._backend.close()

    def __enter__(self) -> "Store":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def connect(url: str) -> Store:
    """Connect to a store using a URL.

    Supported URL schemes:
        - memory://                      In-memory storage (testing)
        - sqlite:///path.db              SQLite file storage
        - sqlite:///:memory:             SQLite in-memory
        - firestore://project?database=  Google Cloud Firestore

    Args:
        url: Connection URL

    Returns:
        Connected Store instance

    Raises:
        ConfigurationError: If the scheme is not supported

    Example:
        store = connect("sqlite:///app.db")
        store = connect("memory://")
    """
    parsed = urlparse(url)
    scheme = parsed.scheme

    if scheme == "memory":
        backend = MemoryBackend()
        backend.connect()
        return Store(backend)

    elif scheme == "sqlite":
        from .backends.sqlite import SQLiteBackend

        # Handle sqlite:///path and sqlite:///:memory:
        path = parsed.path
        if path.startswith("/"):
            path = path[1:]  # Remove leading slash from file path

        backend = SQLiteBackend()
        backend.connect(path=path if path else ":memory:")
        return Store(backend)

    elif scheme == "firestore":
        from .backends.firestore import FirestoreBackend

        database = parse_qs(parsed.query).get("database", [None])[0]
        backend = FirestoreBackend()
        backend.connect(project=parsed.netloc or None, database=database)
        return Store(backend)

    else:
        raise ConfigurationError(f"Unknown storage scheme: {scheme}")
