"""Conversion between stored values and in-memory field values."""

import math
from typing import Any, Protocol, runtime_checkable

from .relations import Relation
from .store.values import Timestamp


@runtime_checkable
class ValueProtocol(Protocol):
    """Objects stored through a descriptor rather than as themselves."""

    def value(self) -> Any:
        ...


class _Omit:
    def __repr__(self) -> str:
        return "OMIT"


# Returned by encode() for values that are not part of the document body
OMIT = _Omit()


def is_relation(value: Any) -> bool:
    return isinstance(value, Relation)


def is_file(value: Any) -> bool:
    # Enum members expose a non-callable ``value``
    return (
        not isinstance(value, Relation)
        and isinstance(value, ValueProtocol)
        and callable(value.value)
    )


def is_timestamp(value: Any) -> bool:
    return isinstance(value, Timestamp)


def is_absent(value: Any) -> bool:
    """None and NaN both mean "no value"."""
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


def decode(raw: Any) -> Any:
    """Stored timestamps become datetimes; other values pass through."""
    if is_timestamp(raw):
        return raw.to_datetime()
    return raw


def encode(value: Any) -> Any:
    """Return the stored form of ``value``, or OMIT for relations."""
    if is_relation(value):
        return OMIT
    if is_file(value):
        return value.value()
    return value
