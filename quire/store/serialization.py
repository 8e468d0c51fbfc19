"""JSON encoding of stored document bodies.

Backends that persist documents as text (SQLite) use this module to keep
Timestamp and datetime values intact across a round trip.
"""

import json
from datetime import datetime
from typing import Any, Dict

from .exceptions import SerializationError
from .values import Timestamp


def to_json_compatible(value: Any) -> Any:
    """Convert a value to JSON-compatible format."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Timestamp):
        return {"__timestamp__": [value.seconds, value.nanoseconds]}
    if isinstance(value, datetime):
        return {"__datetime__": value.isoformat()}
    if isinstance(value, (list, tuple)):
        return [to_json_compatible(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_json_compatible(v) for k, v in value.items()}
    raise SerializationError(f"Cannot serialize type: {type(value)}")


def from_json_compatible(value: Any) -> Any:
    """Convert a value from JSON-compatible format."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, list):
        return [from_json_compatible(v) for v in value]
    if isinstance(value, dict):
        # Check for special markers
        if "__timestamp__" in value:
            seconds, nanoseconds = value["__timestamp__"]
            return Timestamp(seconds, nanoseconds)
        if "__datetime__" in value:
            return datetime.fromisoformat(value["__datetime__"])
        return {k: from_json_compatible(v) for k, v in value.items()}
    return value


def dumps(data: Dict[str, Any]) -> str:
    """Serialize a document body to a JSON string.

    Raises:
        SerializationError: If a value has no stored representation
    """
    return json.dumps(to_json_compatible(data))


def loads(text: str) -> Dict[str, Any]:
    """Deserialize a JSON string produced by dumps()."""
    try:
        return from_json_compatible(json.loads(text))
    except (ValueError, TypeError) as e:
        raise SerializationError(f"Failed to decode stored document: {e}")
