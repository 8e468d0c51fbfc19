"""Document store client used by quire models.

This module provides a small, backend-independent client for a
hierarchical document store: documents live in collections, and documents
can own sub-collections ("users/alice/posts/p1").

Quick Start:
    from quire.store import connect

    store = connect("sqlite:///app.db")

    batch = store.batch()
    batch.set(store.document("users/alice"), {"age": 30}, merge=True)
    batch.set(store.document("users/alice/posts/p1"), {"title": "hi"})
    await batch.commit()  # both writes or neither

    snapshot = await store.get("users/alice")
    print(snapshot.to_dict())  # {'age': 30}

Supported backends:
    - memory://                 In-memory storage (testing)
    - sqlite:///path.db         SQLite file storage
    - sqlite:///:memory:        SQLite in-memory
    - firestore://project       Google Cloud Firestore

Key Classes:
    - Store: references, batches and reads
    - WriteBatch / Transaction: atomic multi-document writes
    - connect(): Create a Store from a URL
"""

from .core import (
    Store,
    connect,
    CollectionReference,
    DocumentReference,
    DocumentSnapshot,
    Transaction,
    WriteBatch,
)
from .backends import StorageBackend, StoredDocument, Write, WriteResult, MemoryBackend, SQLiteBackend
from .values import SERVER_TIMESTAMP, Timestamp, auto_id
from .exceptions import (
    StoreError,
    ConnectionError,
    ConfigurationError,
    NotFoundError,
    SerializationError,
    TransactionError,
)

__all__ = [
    # Main API
    "Store",
    "connect",
    "CollectionReference",
    "DocumentReference",
    "DocumentSnapshot",
    "Transaction",
    "WriteBatch",
    # Backends
    "StorageBackend",
    "StoredDocument",
    "Write",
    "WriteResult",
    "MemoryBackend",
    "SQLiteBackend",
    # Values
    "SERVER_TIMESTAMP",
    "Timestamp",
    "auto_id",
    # Exceptions
    "StoreError",
    "ConnectionError",
    "ConfigurationError",
    "NotFoundError",
    "SerializationError",
    "TransactionError",
]
