"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import NotFoundError
from ..values import Timestamp, auto_id, resolve_server_timestamps


SET = "set"
UPDATE = "update"
DELETE = "delete"


@dataclass
class StoredDocument:
    """Document representation stored in the backend."""

    path: str
    data: dict  # Field values; may contain Timestamp values
    created_at: Timestamp = field(default_factory=Timestamp.now)
    updated_at: Timestamp = field(default_factory=Timestamp.now)


@dataclass
class Write:
    """One queued operation of a write batch."""

    kind: str  # SET, UPDATE or DELETE
    path: str
    data: Optional[dict] = None
    merge: bool = False


@dataclass
class WriteResult:
    """Outcome of one applied write."""

    path: str
    update_time: Timestamp


def merge_data(current: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``incoming`` into a copy of ``current``, recursing into maps."""
    merged = dict(current)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_data(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_write(
    existing: Optional[StoredDocument], write: Write, now: Timestamp
) -> Optional[StoredDocument]:
    """Compute the document that results from applying ``write``.

    Returns None when the write deletes the document.

    Raises:
        NotFoundError: If an update targets a missing document
    """
    if write.kind == DELETE:
        return None

    data = resolve_server_timestamps(write.data or {}, now)

    if write.kind == UPDATE:
        if existing is None:
            raise NotFoundError(write.path)
        return StoredDocument(
            path=write.path,
            data={**existing.data, **data},
            created_at=existing.created_at,
            updated_at=now,
        )

    if existing is not None and write.merge:
        data = merge_data(existing.data, data)
    return StoredDocument(
        path=write.path,
        data=data,
        created_at=existing.created_at if existing else now,
        updated_at=now,
    )


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Backends implement the actual storage mechanism (memory, SQLite,
    Firestore) while the Store class provides references, write batches
    and the public API.

    Reads and commits are coroutines; connecting and closing are not.
    """

    @abstractmethod
    def connect(self, **kwargs) -> None:
        """Establish connection to storage.

        Args:
            **kwargs: Backend-specific connection parameters
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        pass

    @abstractmethod
    async def get(self, path: str) -> Optional[StoredDocument]:
        """Retrieve document by path.

        Args:
            path: The document path (e.g., "version/1/user/abc")

        Returns:
            StoredDocument if found, None otherwise
        """
        pass

    @abstractmethod
    async def list(self, collection_path: str) -> List[StoredDocument]:
        """List the documents directly inside a collection.

        Args:
            collection_path: Collection path (e.g., "version/1/user/abc/items")

        Returns:
            Documents whose parent collection is ``collection_path``,
            ordered by path
        """
        pass

    @abstractmethod
    async def commit(self, writes: List[Write]) -> List[WriteResult]:
        """Apply all writes atomically.

        Either every write is applied or none is.

        Args:
            writes: Queued writes in batch order

        Returns:
            One WriteResult per write

        Raises:
            NotFoundError: If an update targets a missing document
        """
        pass

    def new_id(self, collection_path: Optional[str] = None) -> str:
        """Generate an id for a new document in ``collection_path``."""
        return auto_id()

    # Transaction support (optional - default implementations do nothing)

    def begin_transaction(self) -> Any:
        """Begin a transaction.

        Returns:
            Transaction handle (backend-specific), or None if not supported
        """
        return None

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction.

        Args:
            handle: Transaction handle from begin_transaction()
        """
        pass

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction.

        Args:
            handle: Transaction handle from begin_transaction()
        """
        pass
