"""Special values understood by every storage backend."""

import random
import string
import time
from dataclasses import dataclass
from datetime import datetime, timezone


_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
_AUTO_ID_LENGTH = 20


def auto_id() -> str:
    """Generate a 20 character alphanumeric document id."""
    return "".join(random.choice(_AUTO_ID_ALPHABET) for _ in range(_AUTO_ID_LENGTH))


@dataclass(frozen=True, order=True)
class Timestamp:
    """A point in time as stored by the document store.

    Stored documents carry timestamps as seconds + nanoseconds since the
    Unix epoch (UTC). The model layer converts them to ``datetime`` on read.

    Example:
        ts = Timestamp.now()
        ts.to_datetime()  # datetime(..., tzinfo=timezone.utc)
    """

    seconds: int
    nanoseconds: int = 0

    @classmethod
    def now(cls) -> "Timestamp":
        ns = time.time_ns()
        return cls(ns // 1_000_000_000, ns % 1_000_000_000)

    @classmethod
    def from_datetime(cls, value: datetime) -> "Timestamp":
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        whole = int(value.timestamp())
        if whole > value.timestamp():
            whole -= 1
        return cls(whole, value.microsecond * 1000)

    def to_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.seconds, tz=timezone.utc).replace(
            microsecond=self.nanoseconds // 1000
        )


class _ServerTimestamp:
    """Sentinel replaced by the commit time when a write is applied."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __reduce__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def resolve_server_timestamps(data: dict, now: Timestamp) -> dict:
    """Return a copy of ``data`` with every SERVER_TIMESTAMP replaced by ``now``."""
    resolved = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = now
        elif isinstance(value, dict):
            resolved[key] = resolve_server_timestamps(value, now)
        else:
            resolved[key] = value
    return resolved
