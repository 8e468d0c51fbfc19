"""Document base class: a model instance mapped to one stored document."""

import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from . import codec, config
from .batch import Batchable, BatchType, new_token
from .fields import registry
from .store import SERVER_TIMESTAMP, CollectionReference, DocumentReference, Store, WriteBatch, WriteResult

logger = logging.getLogger(__name__)

D = TypeVar("D", bound="Document")


class Document(Batchable):
    """Base class for persisted models.

    Subclasses declare their persisted fields with ``Field()``. Assigning a
    field records the change in a dirty buffer; ``update()`` writes only the
    dirty fields while ``save()`` writes the full body. Relations assigned
    to fields are written in the same batch as their owner.

    Root documents live at ``version/{version}/{model_name}/{id}``;
    documents inside an owned relation live at ``{relation.path}/{id}``.

    Example:
        class User(Document):
            name = Field()
            age = Field()

        user = User()
        user.name = "alice"
        user.age = 30
        await user.save()

        user.age = 31
        await user.update()  # writes {"age": 31, "updatedAt": ...}

        loaded = await User.get(user.id)
    """

    _collection_root_ = "version"
    _version_ = 1
    _model_name_: Optional[str] = None

    # Class-level helpers

    @classmethod
    def get_version(cls) -> int:
        return cls._version_

    @classmethod
    def get_model_name(cls) -> str:
        return cls._model_name_ or cls.__name__.lower()

    @classmethod
    def get_path(cls) -> str:
        """Path of the root collection holding documents of this type."""
        return f"{cls._collection_root_}/{cls.get_version()}/{cls.get_model_name()}"

    @classmethod
    def get_trigger_path(cls) -> str:
        """Path template matching root documents of this type, for change triggers."""
        return f"/{cls._collection_root_}/{{version}}/{cls.get_model_name()}/{{id}}"

    @classmethod
    def collection_reference(cls, store: Optional[Store] = None) -> CollectionReference:
        return (store or config.get_store()).collection(cls.get_path())

    @classmethod
    async def get(cls: Type[D], id: str, store: Optional[Store] = None) -> Optional[D]:
        """Load the root document with ``id``, or None if it does not exist."""
        store = store or config.get_store()
        snapshot = await store.get(f"{cls.get_path()}/{id}")
        if not snapshot.exists:
            return None
        doc = cls(snapshot.id, store=store)
        doc.hydrate(snapshot.to_dict())
        return doc

    # Construction

    def __init__(self, id: Optional[str] = None, data: Optional[Dict[str, Any]] = None, store: Optional[Store] = None):
        self._store = store or config.get_store()
        self._values: Dict[str, Any] = {}
        self._update_values: Dict[str, Any] = {}

        self.version = self.get_version()
        self.model_name = self.get_model_name()
        self.id = id or self._store.new_id(self.get_path())
        self.path = f"{self.get_path()}/{self.id}"

        self.created_at = None
        self.updated_at = None
        self.saved = False
        self.batch_id: Optional[str] = None

        if data is not None:
            for name in self.fields():
                if name in data:
                    self._assign(name, data[name])
            self.saved = True

    @property
    def store(self) -> Store:
        return self._store

    @property
    def reference(self) -> DocumentReference:
        return self._store.document(self.path)

    def fields(self) -> List[str]:
        """Names of the persisted fields of this document's type."""
        return registry.fields_of(type(self))

    def reattach(self, parent_path: str) -> None:
        """Place this document inside the collection at ``parent_path``."""
        self.path = f"{parent_path}/{self.id}"

    # Field access

    def _assign(self, name: str, value: Any) -> None:
        """Set a current value without touching the dirty buffer."""
        current = self._values.get(name)
        if codec.is_file(current) and isinstance(value, dict) and hasattr(current, "set_value"):
            current.set_value(value, name)
            return
        self._values[name] = value
        if codec.is_relation(value):
            value.attach(self, name)

    def set_field(self, name: str, value: Any) -> None:
        """Set a field and record the change for the next update()."""
        self._values[name] = value
        if codec.is_relation(value):
            value.attach(self, name)
        elif codec.is_file(value):
            self._update_values[name] = value.value()
        else:
            self._update_values[name] = value

    def current_value(self, name: str) -> Any:
        """Current value of a field; None when unset."""
        return codec.decode(self._values.get(name))

    @property
    def dirty_fields(self) -> Dict[str, Any]:
        """Pending changes not yet written, by field name."""
        return dict(self._update_values)

    @property
    def is_dirty(self) -> bool:
        return bool(self._update_values)

    # Bodies

    def snapshot_body(self) -> Dict[str, Any]:
        """Stored form of every set field, relations excluded."""
        values = {}
        for name in self.fields():
            value = self.current_value(name)
            if codec.is_absent(value):
                continue
            encoded = codec.encode(value)
            if encoded is codec.OMIT:
                continue
            values[name] = encoded
        return values

    def persistable_body(self) -> Dict[str, Any]:
        """Body written by save(): the snapshot plus timestamps."""
        values = self.snapshot_body()
        if self.saved:
            values["updatedAt"] = SERVER_TIMESTAMP
        else:
            values["createdAt"] = self.created_at or SERVER_TIMESTAMP
            values["updatedAt"] = self.updated_at or SERVER_TIMESTAMP
        return values

    def hydrate(self, data: Dict[str, Any]) -> None:
        """Replace local state with stored ``data`` and mark the document saved."""
        if data.get("createdAt"):
            self.created_at = codec.decode(data["createdAt"])
        if data.get("updatedAt"):
            self.updated_at = codec.decode(data["updatedAt"])
        for name in self.fields():
            value = data.get(name)
            if not codec.is_absent(value):
                self._assign(name, value)
        self._update_values = {}
        self.saved = True

    # Batch composition

    def _relations(self):
        for name in self.fields():
            value = self._values.get(name)
            if codec.is_relation(value):
                yield name, value

    def pack(
        self,
        kind: BatchType,
        token: Optional[str] = None,
        write_batch: Optional[WriteBatch] = None,
    ) -> WriteBatch:
        batch = write_batch if write_batch is not None else self._store.batch()
        token = token or new_token()

        # Already packed by this operation
        if token == self.batch_id:
            return batch
        self.batch_id = token

        if kind is BatchType.SAVE:
            batch.set(self.reference, self.persistable_body(), merge=True)
        elif kind is BatchType.UPDATE:
            values = dict(self._update_values)
            values["updatedAt"] = SERVER_TIMESTAMP
            batch.update(self.reference, values)
        elif kind is BatchType.DELETE:
            batch.delete(self.reference)
            return batch

        for name, relation in self._relations():
            relation.attach(self, name, reattach_items=False)
            relation.pack(kind, token, batch)
        return batch

    def finalize(self, kind: BatchType, token: Optional[str] = None) -> None:
        token = token or new_token()
        if token == self.batch_id:
            return
        self.batch_id = token
        self._update_values = {}

        if kind is BatchType.DELETE:
            self.saved = False
            return

        self.saved = True
        for name, relation in self._relations():
            relation.attach(self, name, reattach_items=False)
            relation.finalize(kind, token)

    # Store operations

    async def _commit(self, kind: BatchType) -> List[WriteResult]:
        batch = self.pack(kind, new_token())
        result = await batch.commit()
        self.finalize(kind, new_token())
        logger.debug("%s %s: %d write(s)", kind.value, self.path, len(batch))
        return result

    async def save(self) -> List[WriteResult]:
        """Write this document and its relations in one batch."""
        return await self._commit(BatchType.SAVE)

    async def update(self) -> List[WriteResult]:
        """Write the pending field changes of this document and its relations."""
        return await self._commit(BatchType.UPDATE)

    async def delete(self) -> List[WriteResult]:
        """Delete this document. Owned relations are not deleted."""
        return await self._commit(BatchType.DELETE)

    async def fetch(self, transaction=None) -> None:
        """Reload this document from the store.

        Args:
            transaction: Optional Transaction to read through

        Leaves the local state untouched when nothing is stored at the path.
        """
        if transaction is not None:
            snapshot = await transaction.get(self.reference)
        else:
            snapshot = await self.reference.get()
        if snapshot.exists:
            self.hydrate(snapshot.to_dict())

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path}>"
