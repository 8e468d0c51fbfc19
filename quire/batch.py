"""Composition of one atomic write batch from a graph of documents.

A save, update or delete on a root document is expanded into a single
WriteBatch covering the root and, for save and update, every document
reachable through its owned relations. Each traversal carries an operation
token; a node that already carries the token is skipped, which both breaks
cycles and keeps a document reachable through two relations from being
written twice.

Example:
    batch = compose(user, BatchType.SAVE)
    await batch.commit()
    finalize(user, BatchType.SAVE)
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional
from uuid import uuid4

from .store import WriteBatch

logger = logging.getLogger(__name__)


class BatchType(Enum):
    """Kind of logical operation a batch performs."""

    SAVE = "save"
    UPDATE = "update"
    DELETE = "delete"


def new_token() -> str:
    """A fresh operation token."""
    return str(uuid4())


class Batchable(ABC):
    """A node of the document graph that can contribute to a batch.

    ``batch_id`` holds the token of the last traversal that visited the
    node.
    """

    batch_id: Optional[str] = None

    @abstractmethod
    def pack(
        self,
        kind: BatchType,
        token: Optional[str] = None,
        write_batch: Optional[WriteBatch] = None,
    ) -> WriteBatch:
        """Add this node's writes to ``write_batch`` and return it.

        Args:
            kind: Operation to perform
            token: Operation token; a fresh one when omitted
            write_batch: Batch to extend; a new one from the node's store
                when omitted

        Returns:
            The batch that was extended (the same object that was passed in)
        """
        pass

    @abstractmethod
    def finalize(self, kind: BatchType, token: Optional[str] = None) -> None:
        """Update local state after the batch has been committed."""
        pass


def compose(
    root: Batchable,
    kind: BatchType,
    token: Optional[str] = None,
    write_batch: Optional[WriteBatch] = None,
) -> WriteBatch:
    """Build the write batch for ``kind`` starting at ``root``."""
    token = token or new_token()
    batch = root.pack(kind, token, write_batch)
    logger.debug("Composed %s batch %s with %d write(s)", kind.value, token, len(batch))
    return batch


def finalize(root: Batchable, kind: BatchType, token: Optional[str] = None) -> None:
    """Run the post-commit traversal for ``kind`` starting at ``root``."""
    root.finalize(kind, token or new_token())
