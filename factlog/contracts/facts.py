"""
Fact Contracts
==============

Records flowing from the fact store through the reconstruction pipeline.

    FactRecord       - one assert/retract row of the change log
    TransactionGroup - all facts sharing a transaction id
    Delta            - effective attribute assertions of one transaction
    Snapshot         - full entity state after one transaction

INVARIANTS:
- FactRecords are immutable and owned by the store
- Deltas and Snapshots are derived on every call, never stored
- Delta and Snapshot are read-only mappings of attribute -> Value
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterator, Optional, Tuple

from .base import Timestamp, TransactionId
from .values import Value


@dataclass(frozen=True)
class FactRecord:
    """
    One row of the change log for a single entity.

    `added` is True for an assertion (value became current as of the
    transaction) and False for a retraction (value stopped being current).
    Plain ints, Python values and datetimes are accepted and normalized
    to TransactionId, Value and Timestamp.
    """
    transaction_id: TransactionId
    attribute: str
    value: Value
    added: bool
    tx_timestamp: Optional[Timestamp] = None
    entity_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.transaction_id, TransactionId):
            object.__setattr__(self, 'transaction_id', TransactionId(self.transaction_id))
        if not self.attribute or not isinstance(self.attribute, str):
            raise ValueError("attribute must be a non-empty string")
        object.__setattr__(self, 'value', Value.of(self.value))
        if not isinstance(self.added, bool):
            raise ValueError("added must be a bool")
        object.__setattr__(self, 'tx_timestamp', Timestamp.coerce(self.tx_timestamp))

    def sort_key(self) -> Tuple[int, str, bool, Tuple[str, str]]:
        return (self.transaction_id.value, self.attribute, self.added, self.value.sort_key())

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx": self.transaction_id.value,
            "e": self.entity_id,
            "a": self.attribute,
            "v": self.value.to_json(),
            "added": self.added,
            "tx_instant": self.tx_timestamp.to_iso() if self.tx_timestamp else None,
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> FactRecord:
        try:
            return FactRecord(
                transaction_id=TransactionId(data["tx"]),
                attribute=data["a"],
                value=Value.from_json(data["v"]),
                added=data["added"],
                tx_timestamp=Timestamp.coerce(data.get("tx_instant")),
                entity_id=data.get("e"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"invalid fact record: {data!r}") from e


@dataclass(frozen=True)
class TransactionGroup:
    """All facts of one entity committed by one transaction."""
    transaction_id: TransactionId
    facts: Tuple[FactRecord, ...]

    @property
    def tx_timestamp(self) -> Optional[Timestamp]:
        for fact in self.facts:
            if fact.tx_timestamp is not None:
                return fact.tx_timestamp
        return None

    def __len__(self) -> int:
        return len(self.facts)


# =============================================================================
# DERIVED MAPPINGS
# =============================================================================

class _AttributeMap(Mapping):
    """Read-only attribute -> Value mapping tagged with its transaction."""

    __slots__ = ('_values', 'transaction_id', 'tx_timestamp')

    def __init__(
        self,
        values: Mapping,
        transaction_id: TransactionId,
        tx_timestamp: Optional[Timestamp] = None
    ):
        self._values = MappingProxyType(dict(values))
        self.transaction_id = transaction_id
        self.tx_timestamp = tx_timestamp

    def __getitem__(self, attribute: str) -> Value:
        return self._values[attribute]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def to_dict(self) -> Dict[str, Any]:
        """Unwrap to plain Python values."""
        return {attribute: value.to_python() for attribute, value in self._values.items()}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(tx={self.transaction_id}, "
            f"{dict(self._values)!r})"
        )


class Delta(_AttributeMap):
    """
    Effective change of one transaction.

    Holds only attributes asserted by the transaction. Attributes that
    were retracted with no replacing assertion are listed in `retracted`
    and never appear as keys.
    """

    __slots__ = ('retracted',)

    def __init__(
        self,
        values: Mapping,
        transaction_id: TransactionId,
        tx_timestamp: Optional[Timestamp] = None,
        retracted: FrozenSet[str] = frozenset()
    ):
        super().__init__(values, transaction_id, tx_timestamp)
        self.retracted = frozenset(retracted)


class Snapshot(_AttributeMap):
    """Complete known state of an entity immediately after a transaction."""

    __slots__ = ()
