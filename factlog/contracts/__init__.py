"""
Contracts Layer

Immutable types shared by every layer. Layers exchange these types only;
no layer reaches into another layer's implementation.
"""

from .base import (
    ErrorCode,
    Error,
    FactLogError,
    StoreUnavailable,
    MalformedFactGroup,
    EntityNotFound,
    TransactionId,
    Timestamp,
)
from .values import Value, ValueKind
from .facts import FactRecord, TransactionGroup, Delta, Snapshot

__all__ = [
    'ErrorCode',
    'Error',
    'FactLogError',
    'StoreUnavailable',
    'MalformedFactGroup',
    'EntityNotFound',
    'TransactionId',
    'Timestamp',
    'Value',
    'ValueKind',
    'FactRecord',
    'TransactionGroup',
    'Delta',
    'Snapshot',
]
