"""Default store configuration.

Documents and relations take an explicit ``store=`` argument. When it is
omitted they use the store configured here, which lets application code
set the store once at startup and lets tests swap in a fresh one.

Example:
    import quire
    from quire.store import connect

    quire.configure(connect("sqlite:///app.db"))

    with quire.using(connect("memory://")):
        ...  # documents created here use the in-memory store
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from .store import Store, connect

logger = logging.getLogger(__name__)

STORE_URL_ENV = "QUIRE_STORE_URL"
DEFAULT_STORE_URL = "memory://"

_store: Optional[Store] = None


def configure(store: Store) -> None:
    """Install ``store`` as the process-wide default."""
    global _store
    _store = store


def get_store() -> Store:
    """Return the default store, connecting on first use.

    The URL comes from the QUIRE_STORE_URL environment variable and falls
    back to an in-memory store.
    """
    global _store
    if _store is None:
        url = os.environ.get(STORE_URL_ENV, DEFAULT_STORE_URL)
        logger.info("No store configured, connecting to %s", url)
        _store = connect(url)
    return _store


def reset() -> None:
    """Forget the default store (it is not closed)."""
    global _store
    _store = None


@contextmanager
def using(store: Store) -> Iterator[Store]:
    """Temporarily make ``store`` the default store."""
    global _store
    previous = _store
    _store = store
    try:
        yield store
    finally:
        _store = previous
