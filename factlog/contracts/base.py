"""
Base Contracts and Shared Types

Foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- Identity and time types are frozen dataclasses
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Optional, Tuple


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for reconstruction failures.
    No silent fallbacks - every error state is enumerated.
    """
    # Store errors
    STORE_UNAVAILABLE = auto()

    # Data integrity errors
    MALFORMED_FACT_GROUP = auto()
    TERMINAL_STATE_MISMATCH = auto()

    # Lookup outcomes
    ENTITY_NOT_FOUND = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and returned.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


class FactLogError(Exception):
    """
    Base exception for reconstruction failures.

    Every raised failure carries an ErrorCode so callers can branch on
    the code instead of the message.
    """
    code: ErrorCode = ErrorCode.STORE_UNAVAILABLE

    def __init__(self, message: str, context: Tuple[Tuple[str, str], ...] = ()):
        super().__init__(message)
        self.message = message
        self.context = tuple(context)

    def to_error(self) -> Error:
        """Convert to the immutable Error record."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=datetime.now(timezone.utc),
            context=self.context
        )


class StoreUnavailable(FactLogError):
    """The fact fetch failed. No partial reconstruction is attempted."""
    code = ErrorCode.STORE_UNAVAILABLE


class MalformedFactGroup(FactLogError):
    """
    A transaction group violates the single-assertion-per-attribute rule.

    Indicates store corruption or a resolver bug, never a transient state.
    """
    code = ErrorCode.MALFORMED_FACT_GROUP


class EntityNotFound(FactLogError):
    """
    The entity has no facts.

    The temporal core never raises this; it returns an empty sequence.
    Only outer surfaces that must signal absence (engine, API) use it.
    """
    code = ErrorCode.ENTITY_NOT_FOUND


# =============================================================================
# IDENTITY TYPES
# =============================================================================

@dataclass(frozen=True, order=True)
class TransactionId:
    """
    Store-assigned transaction identifier.

    Opaque except for its total order: ids are issued monotonically, so
    ascending id is also chronological order.
    """
    value: int

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError("TransactionId value must be an int")

    def next(self) -> TransactionId:
        return TransactionId(self.value + 1)

    def __str__(self) -> str:
        return str(self.value)


# =============================================================================
# TEMPORAL TYPES
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    @staticmethod
    def coerce(value: Optional[object]) -> Optional[Timestamp]:
        """Accept a Timestamp, datetime, ISO string or None."""
        if value is None or isinstance(value, Timestamp):
            return value
        if isinstance(value, datetime):
            return Timestamp(value=value)
        if isinstance(value, str):
            return Timestamp.from_iso(value)
        raise TypeError(f"cannot interpret {type(value).__name__} as Timestamp")

    def to_iso(self) -> str:
        return self.value.isoformat()
