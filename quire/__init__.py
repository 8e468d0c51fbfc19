"""
Quire - object-document mapping for hierarchical document stores.

Declare models as Document subclasses with Field attributes; attach
SubCollection, NestedCollection or ReferenceCollection relations to
fields; save() writes a document and everything it owns in one atomic
batch, update() writes only what changed.

Submodules:
    quire.store - Document store client (memory, SQLite, Firestore backends)
    quire.batch - Batch composition and operation tokens
    quire.config - Default store configuration
"""

from .batch import BatchType, compose, finalize
from .codec import ValueProtocol
from .config import configure, get_store, using
from .document import Document
from .fields import Field, FieldRegistry, register, registry
from .file import File
from .relations import NestedCollection, ReferenceCollection, Relation, SubCollection
from . import store

__all__ = [
    # Models
    "Document",
    "Field",
    "FieldRegistry",
    "register",
    "registry",
    "File",
    "ValueProtocol",
    # Relations
    "Relation",
    "SubCollection",
    "NestedCollection",
    "ReferenceCollection",
    # Batches
    "BatchType",
    "compose",
    "finalize",
    # Configuration
    "configure",
    "get_store",
    "using",
    # Submodules
    "store",
]

__version__ = "0.1.0"
