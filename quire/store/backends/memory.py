"""In-memory storage backend for testing."""

import copy
import logging
from typing import Any, Dict, List, Optional

from .base import StorageBackend, StoredDocument, Write, WriteResult, apply_write
from ..values import Timestamp

logger = logging.getLogger(__name__)


class MemoryBackend(StorageBackend):
    """In-memory storage backend.

    Useful for testing and temporary storage. Data is lost when the
    backend is closed or the process ends.

    Example:
        backend = MemoryBackend()
        backend.connect()

        backend.put(StoredDocument(path="users/alice", data={"age": 30}))
        doc = await backend.get("users/alice")
    """

    def __init__(self):
        self._data: Dict[str, StoredDocument] = {}
        self._connected = False

    def connect(self, **kwargs) -> None:
        """Initialize the in-memory store."""
        self._data = {}
        self._connected = True
        logger.info("Connected in-memory backend")

    def close(self) -> None:
        """Clear the in-memory store."""
        self._data.clear()
        self._connected = False

    # Synchronous helpers, used for seeding and inspection

    def put(self, doc: StoredDocument) -> None:
        """Store or replace a document."""
        self._data[doc.path] = copy.deepcopy(doc)

    def delete(self, path: str) -> bool:
        """Delete document at path."""
        if path in self._data:
            del self._data[path]
            return True
        return False

    def exists(self, path: str) -> bool:
        """Check if path exists."""
        return path in self._data

    def paths(self) -> List[str]:
        """All stored document paths, sorted."""
        return sorted(self._data)

    # StorageBackend

    async def get(self, path: str) -> Optional[StoredDocument]:
        """Retrieve document by path."""
        doc = self._data.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def list(self, collection_path: str) -> List[StoredDocument]:
        """List the documents directly inside a collection."""
        prefix = collection_path.rstrip("/") + "/"
        docs = []
        for path in sorted(self._data):
            if not path.startswith(prefix):
                continue
            # Only direct children (no more slashes in suffix)
            if "/" not in path[len(prefix) :]:
                docs.append(copy.deepcopy(self._data[path]))
        return docs

    async def commit(self, writes: List[Write]) -> List[WriteResult]:
        """Apply all writes, restoring the previous state if any fails."""
        now = Timestamp.now()
        handle = self.begin_transaction()
        try:
            results = []
            for write in writes:
                updated = apply_write(self._data.get(write.path), write, now)
                if updated is None:
                    self._data.pop(write.path, None)
                else:
                    self._data[write.path] = copy.deepcopy(updated)
                results.append(WriteResult(write.path, now))
            self.commit_transaction(handle)
            return results
        except Exception:
            self.rollback_transaction(handle)
            raise

    # Transaction support - memory backend uses simple copy-on-write

    def begin_transaction(self) -> Any:
        """Begin a transaction by snapshotting current state."""
        return dict(self._data)  # Shallow copy; documents are replaced, never mutated

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction (nothing to do - changes already in place)."""
        pass

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction by restoring snapshot."""
        if handle is not None:
            self._data = handle
