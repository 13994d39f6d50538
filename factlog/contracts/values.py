"""
Attribute Values
================

Closed tagged variant for dynamically typed attribute values.

WHY A TAGGED VARIANT:
Fact values arrive as strings, instants, uuids and numbers. Carrying the
kind next to the raw value keeps equality, hashing and serialization
explicit instead of leaning on whatever Python object happened to arrive.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Tuple
import uuid


class ValueKind(Enum):
    """The complete set of supported value kinds."""
    STRING = "string"
    KEYWORD = "keyword"
    LONG = "long"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    INSTANT = "instant"
    UUID = "uuid"


_RAW_TYPES = {
    ValueKind.STRING: (str,),
    ValueKind.KEYWORD: (str,),
    ValueKind.LONG: (int,),
    ValueKind.DOUBLE: (float, int),
    ValueKind.BOOLEAN: (bool,),
    ValueKind.INSTANT: (datetime,),
    ValueKind.UUID: (uuid.UUID,),
}


@dataclass(frozen=True)
class Value:
    """
    Immutable tagged value.

    Two values are equal iff both kind and raw value are equal, so the
    string "1" and the long 1 never collide.
    """
    kind: ValueKind
    raw: Any

    def __post_init__(self):
        if not isinstance(self.kind, ValueKind):
            raise TypeError("kind must be a ValueKind")
        if self.kind is not ValueKind.BOOLEAN and isinstance(self.raw, bool):
            raise TypeError(f"{self.kind.value} value must not be bool")
        if not isinstance(self.raw, _RAW_TYPES[self.kind]):
            raise TypeError(
                f"{self.kind.value} value must be "
                f"{' or '.join(t.__name__ for t in _RAW_TYPES[self.kind])}, "
                f"got {type(self.raw).__name__}"
            )
        if self.kind is ValueKind.DOUBLE:
            object.__setattr__(self, 'raw', float(self.raw))
        elif self.kind is ValueKind.INSTANT and self.raw.tzinfo is None:
            object.__setattr__(self, 'raw', self.raw.replace(tzinfo=timezone.utc))

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @staticmethod
    def of(obj: Any) -> Value:
        """
        Infer the kind from a plain Python object.

        Values pass through unchanged. str maps to STRING; use
        Value.keyword() for keyword identifiers.
        """
        if isinstance(obj, Value):
            return obj
        if isinstance(obj, bool):
            return Value(ValueKind.BOOLEAN, obj)
        if isinstance(obj, int):
            return Value(ValueKind.LONG, obj)
        if isinstance(obj, float):
            return Value(ValueKind.DOUBLE, obj)
        if isinstance(obj, str):
            return Value(ValueKind.STRING, obj)
        if isinstance(obj, datetime):
            return Value(ValueKind.INSTANT, obj)
        if isinstance(obj, uuid.UUID):
            return Value(ValueKind.UUID, obj)
        raise TypeError(f"unsupported value type: {type(obj).__name__}")

    @staticmethod
    def keyword(name: str) -> Value:
        return Value(ValueKind.KEYWORD, name)

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def to_python(self) -> Any:
        return self.raw

    def to_json(self) -> Dict[str, Any]:
        """JSON-safe encoding: {"kind": ..., "value": ...}."""
        if self.kind is ValueKind.INSTANT:
            encoded: Any = self.raw.isoformat()
        elif self.kind is ValueKind.UUID:
            encoded = str(self.raw)
        else:
            encoded = self.raw
        return {"kind": self.kind.value, "value": encoded}

    @staticmethod
    def from_json(data: Dict[str, Any]) -> Value:
        try:
            kind = ValueKind(data["kind"])
            encoded = data["value"]
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"invalid encoded value: {data!r}") from e

        if kind is ValueKind.INSTANT:
            if not isinstance(encoded, str):
                raise ValueError("instant value must be an ISO-8601 string")
            return Value(kind, datetime.fromisoformat(encoded.replace('Z', '+00:00')))
        if kind is ValueKind.UUID:
            if not isinstance(encoded, str):
                raise ValueError("uuid value must be a string")
            return Value(kind, uuid.UUID(encoded))
        return Value(kind, encoded)

    def sort_key(self) -> Tuple[str, str]:
        """Total order across kinds, used only for deterministic output."""
        return (self.kind.value, str(self.to_json()["value"]))

    def __repr__(self) -> str:
        return f"Value({self.kind.value}, {self.raw!r})"
