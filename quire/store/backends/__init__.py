"""Storage backends for quire.store."""

from .base import StorageBackend, StoredDocument, Write, WriteResult
from .memory import MemoryBackend
from .sqlite import SQLiteBackend

__all__ = [
    "StorageBackend",
    "StoredDocument",
    "Write",
    "WriteResult",
    "MemoryBackend",
    "SQLiteBackend",
]
