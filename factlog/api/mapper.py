"""
API Mapper
==========

Transforms Snapshots, Deltas and receipts into JSON DTOs.
Values keep their kind tag so clients can round-trip them.
"""
from typing import Any, Dict, List, Mapping, Optional

from ..contracts.base import Error, Timestamp
from ..contracts.facts import Delta, FactRecord, Snapshot
from ..contracts.values import Value
from ..storage import TransactionReceipt


def _map_attributes(values: Mapping[str, Value]) -> Dict[str, Dict[str, Any]]:
    return {attribute: values[attribute].to_json() for attribute in sorted(values)}


def _map_timestamp(timestamp: Optional[Timestamp]) -> Optional[str]:
    return timestamp.to_iso() if timestamp else None


def map_snapshot(snapshot: Snapshot) -> Dict[str, Any]:
    return {
        "transaction_id": snapshot.transaction_id.value,
        "tx_timestamp": _map_timestamp(snapshot.tx_timestamp),
        "attributes": _map_attributes(snapshot),
    }


def map_history(entity_id: str, snapshots: List[Snapshot]) -> Dict[str, Any]:
    return {
        "entity_id": entity_id,
        "count": len(snapshots),
        "snapshots": [map_snapshot(s) for s in snapshots],
    }


def map_delta(delta: Delta) -> Dict[str, Any]:
    return {
        "transaction_id": delta.transaction_id.value,
        "tx_timestamp": _map_timestamp(delta.tx_timestamp),
        "asserted": _map_attributes(delta),
        "retracted": sorted(delta.retracted),
    }


def map_fact(fact: FactRecord) -> Dict[str, Any]:
    return {
        "attribute": fact.attribute,
        "value": fact.value.to_json(),
        "added": fact.added,
    }


def map_receipt(receipt: TransactionReceipt) -> Dict[str, Any]:
    return {
        "entity_id": receipt.entity_id,
        "transaction_id": receipt.transaction_id.value if receipt.transaction_id else None,
        "tx_timestamp": receipt.tx_timestamp.to_iso(),
        "facts": [map_fact(f) for f in receipt.facts],
    }


def map_error(error: Error) -> Dict[str, Any]:
    return {
        "error": error.code.name,
        "message": error.message,
        "context": dict(error.context),
    }
