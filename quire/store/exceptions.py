"""Exceptions for the quire.store module."""

from typing import Optional


class StoreError(Exception):
    """Base exception for all store errors."""

    pass


class ConnectionError(StoreError):
    """Failed to connect to storage backend."""

    pass


class ConfigurationError(StoreError, ValueError):
    """The store could not be configured from the given settings."""

    pass


class NotFoundError(StoreError, KeyError):
    """No document at the specified path.

    ``path`` is None when the store did not say which document was missing.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        if path is None:
            super().__init__("Write targets a missing document")
        else:
            super().__init__(f"No document at path: {path}")


class SerializationError(StoreError):
    """Failed to encode or decode a stored value."""

    pass


class TransactionError(StoreError):
    """A write batch or transaction was misused (e.g. committed twice)."""

    pass
