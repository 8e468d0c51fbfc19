"""Collections of documents attached to a Document field.

Three kinds of relation are available:

- SubCollection: owned documents of any type stored under the owner
  ("{owner.path}/{key}/{id}").
- NestedCollection: owned documents of one declared type stored under the
  owner; can load its children without being told their type.
- ReferenceCollection: pointers to documents that live elsewhere. Only
  the pointer documents ("{owner.path}/{key}/{id}") are written; the
  referenced documents are never modified.

Example:
    class Team(Document):
        name = Field()
        members = Field()

    team = Team()
    team.members = NestedCollection(Member)
    team.members.insert(Member())
    await team.save()  # team and member in one batch
"""

import weakref
from abc import abstractmethod
from typing import TYPE_CHECKING, Iterable, Iterator, List, Optional, Set, Type

from . import config
from .batch import Batchable, BatchType, new_token
from .store import SERVER_TIMESTAMP, CollectionReference, DocumentReference, Store, WriteBatch

if TYPE_CHECKING:
    from .document import Document


class Relation(Batchable):
    """Base class for collections attached to a Document.

    A relation is attached to exactly one owner, by assigning it to one of
    the owner's fields. It keeps a weak reference to the owner, used only
    to compute its own path.
    """

    def __init__(self, objects: Optional[Iterable["Document"]] = None, store: Optional[Store] = None):
        self._objects: List["Document"] = []
        self._removed: List["Document"] = []
        self._parent_ref: Optional[weakref.ReferenceType] = None
        self._store = store
        self.key: Optional[str] = None
        self.path: Optional[str] = None
        self.batch_id: Optional[str] = None
        for doc in objects or ():
            self.insert(doc)

    @property
    def parent(self) -> Optional["Document"]:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def store(self) -> Store:
        if self._store is not None:
            return self._store
        parent = self.parent
        if parent is not None:
            return parent.store
        return config.get_store()

    @property
    def reference(self) -> CollectionReference:
        return self.store.collection(self.path)

    @property
    def objects(self) -> List["Document"]:
        return list(self._objects)

    def attach(self, parent: "Document", key: str, reattach_items: bool = True) -> None:
        """Attach to ``parent`` under field ``key`` and recompute paths.

        With ``reattach_items`` False only the relation's own path is
        recomputed; items are placed when they are packed.
        """
        self._parent_ref = weakref.ref(parent)
        self.key = key
        self.path = f"{parent.path}/{key}"
        if reattach_items:
            for doc in self._objects:
                self._place(doc)

    def insert(self, doc: "Document") -> None:
        """Add a document; it is written with the owner's next save or update."""
        if doc in self._removed:
            self._removed.remove(doc)
        if doc not in self._objects:
            self._objects.append(doc)
        if self.path is not None:
            self._place(doc)

    def remove(self, doc: "Document") -> None:
        """Drop a document; its stored counterpart is deleted with the next batch."""
        self._objects.remove(doc)
        if self._is_stored(doc) and doc not in self._removed:
            self._removed.append(doc)

    def __iter__(self) -> Iterator["Document"]:
        return iter(list(self._objects))

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, doc: object) -> bool:
        return doc in self._objects

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r}, {len(self._objects)} item(s))"

    # Batch composition

    def pack(
        self,
        kind: BatchType,
        token: Optional[str] = None,
        write_batch: Optional[WriteBatch] = None,
    ) -> WriteBatch:
        batch = write_batch if write_batch is not None else self.store.batch()
        token = token or new_token()

        # Already visited by this operation
        if token == self.batch_id:
            return batch
        self.batch_id = token

        # Delete is shallow: relations of a deleted document are left alone
        if kind is BatchType.DELETE:
            return batch

        for doc in self._removed:
            batch.delete(self._item_reference(doc))
        self._pack_items(kind, token, batch)
        return batch

    def finalize(self, kind: BatchType, token: Optional[str] = None) -> None:
        token = token or new_token()
        if token == self.batch_id:
            return
        self.batch_id = token
        if kind is BatchType.DELETE:
            return
        for doc in self._removed:
            self._forget(doc)
        self._removed = []
        self._finalize_items(kind, token)

    # Hooks for concrete relations

    def _place(self, doc: "Document") -> None:
        pass

    @abstractmethod
    def _forget(self, doc: "Document") -> None:
        """Record that the stored counterpart of a removed item was deleted."""
        pass

    @abstractmethod
    def _is_stored(self, doc: "Document") -> bool:
        pass

    @abstractmethod
    def _item_reference(self, doc: "Document") -> DocumentReference:
        pass

    @abstractmethod
    def _pack_items(self, kind: BatchType, token: str, batch: WriteBatch) -> None:
        pass

    @abstractmethod
    def _finalize_items(self, kind: BatchType, token: str) -> None:
        pass


class SubCollection(Relation):
    """Owned documents stored under the owner's path.

    Items may be of any Document type; loading them back requires the type.
    Inserting an item places it under the relation's path, so a document
    already stored elsewhere (a root document included) moves with it.

    Example:
        user.notes = SubCollection([Note(), Note()])
        await user.save()

        notes = await user.notes.get(Note)
    """

    _type: Optional[Type["Document"]] = None

    def _place(self, doc: "Document") -> None:
        doc.reattach(self.path)

    def _forget(self, doc: "Document") -> None:
        doc.saved = False

    def _is_stored(self, doc: "Document") -> bool:
        return doc.saved

    def _item_reference(self, doc: "Document") -> DocumentReference:
        return doc.reference

    def _pack_items(self, kind: BatchType, token: str, batch: WriteBatch) -> None:
        for doc in self._objects:
            if doc.batch_id == token:
                continue
            doc.reattach(self.path)
            # Children that were never stored are created, not partially updated
            child_kind = BatchType.SAVE if kind is BatchType.UPDATE and not doc.saved else kind
            doc.pack(child_kind, token, batch)

    def _finalize_items(self, kind: BatchType, token: str) -> None:
        for doc in self._objects:
            doc.finalize(kind, token)

    def _resolve_type(self, type: Optional[Type["Document"]]) -> Type["Document"]:
        type = type or self._type
        if type is None:
            raise TypeError(f"{self.__class__.__name__} needs a document type to build items")
        return type

    def doc(self, id: str, type: Optional[Type["Document"]] = None) -> "Document":
        """Build an item with ``id`` at this collection's path (not fetched)."""
        doc = self._resolve_type(type)(id, store=self.store)
        doc.reattach(self.path)
        return doc

    async def get(self, type: Optional[Type["Document"]] = None) -> List["Document"]:
        """Load all stored items, replacing the local ones."""
        cls = self._resolve_type(type)
        docs = []
        for snapshot in await self.store.list(self.path):
            doc = cls(snapshot.id, store=self.store)
            doc.reattach(self.path)
            doc.hydrate(snapshot.to_dict())
            docs.append(doc)
        self._objects = docs
        self._removed = []
        return list(docs)


class NestedCollection(SubCollection):
    """Owned documents of a single declared type stored under the owner.

    Example:
        order.lines = NestedCollection(OrderLine)
        order.lines.insert(OrderLine())
        await order.save()

        lines = await order.lines.get()
    """

    def __init__(
        self,
        type: Type["Document"],
        objects: Optional[Iterable["Document"]] = None,
        store: Optional[Store] = None,
    ):
        self._type = type
        super().__init__(objects, store)


class ReferenceCollection(Relation):
    """Pointers to documents owned elsewhere.

    Each item is represented by a pointer document at
    ``{owner.path}/{key}/{item.id}`` holding the item's path. Saving the
    owner writes pointers only; the referenced documents keep their own
    paths and are never written by the owner's batch.

    Example:
        group.users = ReferenceCollection(User)
        group.users.insert(alice)  # alice must be saved on her own
        await group.save()
    """

    def __init__(
        self,
        type: Type["Document"],
        objects: Optional[Iterable["Document"]] = None,
        store: Optional[Store] = None,
    ):
        self._type = type
        self._linked: Set[str] = set()
        super().__init__(objects, store)

    def _forget(self, doc: "Document") -> None:
        self._linked.discard(doc.id)

    def _is_stored(self, doc: "Document") -> bool:
        return doc.id in self._linked

    def _item_reference(self, doc: "Document") -> DocumentReference:
        return self.store.document(f"{self.path}/{doc.id}")

    def _pack_items(self, kind: BatchType, token: str, batch: WriteBatch) -> None:
        for doc in self._objects:
            body = {"reference": doc.path, "updatedAt": SERVER_TIMESTAMP}
            if doc.id not in self._linked:
                body["createdAt"] = SERVER_TIMESTAMP
            batch.set(self._item_reference(doc), body, merge=True)

    def _finalize_items(self, kind: BatchType, token: str) -> None:
        self._linked = {doc.id for doc in self._objects}

    def doc(self, id: str) -> "Document":
        """Build a referenced document with ``id`` at its own path (not fetched)."""
        return self._type(id, store=self.store)

    async def get(self) -> List["Document"]:
        """Load the referenced documents, replacing the local items.

        Pointers whose target no longer exists are skipped.
        """
        docs = []
        for pointer in await self.store.list(self.path):
            doc = self._type(pointer.id, store=self.store)
            target = (pointer.to_dict() or {}).get("reference")
            if target:
                doc.path = target
            snapshot = await self.store.get(doc.path)
            if snapshot.exists:
                doc.hydrate(snapshot.to_dict())
                docs.append(doc)
        self._objects = docs
        self._removed = []
        self._linked = {doc.id for doc in docs}
        return list(docs)
