"""SQLite storage backend."""

import logging
import sqlite3
from typing import Any, List, Optional

from .base import StorageBackend, StoredDocument, Write, WriteResult, apply_write
from .. import serialization
from ..values import Timestamp

logger = logging.getLogger(__name__)


class SQLiteBackend(StorageBackend):
    """SQLite storage backend.

    Stores documents in a SQLite database file. Zero configuration required.
    Good for development and single-user production scenarios.

    Each row keeps the document path, the path of its parent collection
    and the JSON-encoded body, so listing a collection is an indexed lookup.

    Example:
        backend = SQLiteBackend()
        backend.connect(path="app.db")

        # Or in-memory
        backend.connect(path=":memory:")
    """

    def __init__(self):
        self._conn: Optional[sqlite3.Connection] = None
        self._path: Optional[str] = None

    def connect(self, path: str = ":memory:", **kwargs) -> None:
        """Connect to SQLite database.

        Args:
            path: Database file path, or ":memory:" for in-memory database
        """
        self._path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("Connected SQLite backend at %s", path)

    def _create_tables(self) -> None:
        """Create the documents table if it doesn't exist."""
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                path TEXT PRIMARY KEY,
                collection TEXT NOT NULL,
                data TEXT NOT NULL,
                created_seconds INTEGER NOT NULL,
                created_nanos INTEGER NOT NULL,
                updated_seconds INTEGER NOT NULL,
                updated_nanos INTEGER NOT NULL
            )
            """
        )
        # Index for collection listing
        self._conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)
            """
        )
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @staticmethod
    def _collection_of(path: str) -> str:
        return path.rsplit("/", 1)[0] if "/" in path else ""

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> StoredDocument:
        return StoredDocument(
            path=row["path"],
            data=serialization.loads(row["data"]),
            created_at=Timestamp(row["created_seconds"], row["created_nanos"]),
            updated_at=Timestamp(row["updated_seconds"], row["updated_nanos"]),
        )

    def _fetch(self, path: str) -> Optional[StoredDocument]:
        cursor = self._conn.execute("SELECT * FROM documents WHERE path = ?", (path,))
        row = cursor.fetchone()
        return self._row_to_document(row) if row is not None else None

    def put(self, doc: StoredDocument) -> None:
        """Store or replace a document."""
        self._put(doc)
        self._conn.commit()

    def delete(self, path: str) -> bool:
        """Delete document at path."""
        deleted = self._delete(path)
        self._conn.commit()
        return deleted

    def _put(self, doc: StoredDocument) -> None:
        self._conn.execute(
            """
            INSERT OR REPLACE INTO documents
                (path, collection, data, created_seconds, created_nanos,
                 updated_seconds, updated_nanos)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                doc.path,
                self._collection_of(doc.path),
                serialization.dumps(doc.data),
                doc.created_at.seconds,
                doc.created_at.nanoseconds,
                doc.updated_at.seconds,
                doc.updated_at.nanoseconds,
            ),
        )

    def _delete(self, path: str) -> bool:
        cursor = self._conn.execute("DELETE FROM documents WHERE path = ?", (path,))
        return cursor.rowcount > 0

    def exists(self, path: str) -> bool:
        """Check if path exists."""
        cursor = self._conn.execute("SELECT 1 FROM documents WHERE path = ?", (path,))
        return cursor.fetchone() is not None

    # StorageBackend

    async def get(self, path: str) -> Optional[StoredDocument]:
        """Retrieve document by path."""
        return self._fetch(path)

    async def list(self, collection_path: str) -> List[StoredDocument]:
        """List the documents directly inside a collection."""
        cursor = self._conn.execute(
            "SELECT * FROM documents WHERE collection = ? ORDER BY path",
            (collection_path.rstrip("/"),),
        )
        return [self._row_to_document(row) for row in cursor]

    async def commit(self, writes: List[Write]) -> List[WriteResult]:
        """Apply all writes inside one SQL transaction."""
        now = Timestamp.now()
        handle = self.begin_transaction()
        try:
            results = []
            for write in writes:
                updated = apply_write(self._fetch(write.path), write, now)
                if updated is None:
                    self._delete(write.path)
                else:
                    self._put(updated)
                results.append(WriteResult(write.path, now))
            self.commit_transaction(handle)
            return results
        except Exception:
            self.rollback_transaction(handle)
            raise

    # Transaction support

    def begin_transaction(self) -> Any:
        """Begin a transaction."""
        self._conn.execute("BEGIN TRANSACTION")
        return True

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction."""
        self._conn.commit()

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction."""
        self._conn.rollback()
