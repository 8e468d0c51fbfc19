"""Google Cloud Firestore storage backend."""

import logging
from datetime import datetime
from typing import Any, List, Optional

from google.api_core import exceptions as api_exceptions
from google.cloud import firestore

from .base import DELETE, SET, UPDATE, StorageBackend, StoredDocument, Write, WriteResult
from ..exceptions import ConnectionError, NotFoundError
from ..values import SERVER_TIMESTAMP, Timestamp

logger = logging.getLogger(__name__)


def _to_firestore(value: Any) -> Any:
    """Convert a stored value to the client library representation."""
    if value is SERVER_TIMESTAMP:
        return firestore.SERVER_TIMESTAMP
    if isinstance(value, Timestamp):
        return value.to_datetime()
    if isinstance(value, dict):
        return {k: _to_firestore(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_firestore(v) for v in value]
    return value


def _timestamp(value: datetime) -> Timestamp:
    ts = Timestamp.from_datetime(value)
    # DatetimeWithNanoseconds keeps sub-microsecond precision
    nanosecond = getattr(value, "nanosecond", None)
    if nanosecond:
        ts = Timestamp(ts.seconds, nanosecond)
    return ts


def _from_firestore(value: Any) -> Any:
    """Convert a client library value to the stored representation."""
    if isinstance(value, datetime):
        return _timestamp(value)
    if isinstance(value, dict):
        return {k: _from_firestore(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_firestore(v) for v in value]
    return value


class FirestoreBackend(StorageBackend):
    """Cloud Firestore storage backend.

    Wraps ``google.cloud.firestore.AsyncClient``. Batches map onto a native
    Firestore write batch, so atomicity is provided by the service.

    Example:
        backend = FirestoreBackend()
        backend.connect(project="my-project")

        # Or with an existing client (emulator, tests)
        backend.connect(client=firestore.AsyncClient(project="demo"))
    """

    def __init__(self):
        self._client: Optional[firestore.AsyncClient] = None

    def connect(
        self,
        project: Optional[str] = None,
        database: Optional[str] = None,
        client: Optional[Any] = None,
        **kwargs,
    ) -> None:
        """Create (or adopt) the async Firestore client.

        Args:
            project: GCP project id; the environment default when omitted
            database: Firestore database id; the default database when omitted
            client: Pre-built AsyncClient to use instead of creating one
        """
        if client is not None:
            self._client = client
        else:
            options = {"project": project}
            if database:
                options["database"] = database
            self._client = firestore.AsyncClient(**options)
        logger.info("Connected Firestore backend (project=%s)", project)

    def close(self) -> None:
        """Release the client."""
        self._client = None

    @property
    def client(self) -> Any:
        """The underlying AsyncClient.

        Raises:
            ConnectionError: If connect() has not been called
        """
        if self._client is None:
            raise ConnectionError("Firestore backend is not connected")
        return self._client

    @staticmethod
    def _to_document(snapshot: Any) -> StoredDocument:
        return StoredDocument(
            path=snapshot.reference.path,
            data=_from_firestore(snapshot.to_dict() or {}),
            created_at=_timestamp(snapshot.create_time),
            updated_at=_timestamp(snapshot.update_time),
        )

    async def get(self, path: str) -> Optional[StoredDocument]:
        """Retrieve document by path."""
        snapshot = await self.client.document(path).get()
        if not snapshot.exists:
            return None
        return self._to_document(snapshot)

    async def list(self, collection_path: str) -> List[StoredDocument]:
        """List the documents directly inside a collection."""
        docs = []
        async for snapshot in self.client.collection(collection_path).stream():
            docs.append(self._to_document(snapshot))
        return sorted(docs, key=lambda doc: doc.path)

    async def commit(self, writes: List[Write]) -> List[WriteResult]:
        """Commit all writes as one Firestore write batch.

        Raises:
            NotFoundError: If an update targets a missing document; the
                client library's NotFound is kept as ``__cause__``
        """
        batch = self.client.batch()
        for write in writes:
            reference = self.client.document(write.path)
            if write.kind == SET:
                batch.set(reference, _to_firestore(write.data), merge=write.merge)
            elif write.kind == UPDATE:
                batch.update(reference, _to_firestore(write.data))
            elif write.kind == DELETE:
                batch.delete(reference)
        try:
            results = await batch.commit()
        except api_exceptions.NotFound as e:
            # Only a lone update can be named as the missing document
            updates = [write.path for write in writes if write.kind == UPDATE]
            raise NotFoundError(updates[0] if len(updates) == 1 else None) from e
        return [
            WriteResult(write.path, _timestamp(result.update_time))
            for write, result in zip(writes, results)
        ]
