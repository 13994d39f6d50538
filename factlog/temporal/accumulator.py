"""
Snapshot Accumulator
====================

Folds ordered per-transaction Deltas into cumulative Snapshots.

    snapshot[0] = copy(delta[0])
    snapshot[i] = merge_into(snapshot[i-1], delta[i])

INVARIANT: every key of snapshot[i] that is absent from delta[i] holds
the same value it had in snapshot[i-1]. Partial updates never lose
state.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, Iterable, List, Mapping, TypeVar

from ..contracts.facts import Delta, Snapshot


K = TypeVar('K')
V = TypeVar('V')


class RetractionPolicy(Enum):
    """
    What a retraction with no replacing assertion does to later snapshots.

    FREEZE: Deltas only ever set keys; the last value stays visible.
    DELETE: the attribute is dropped until it is asserted again.
    """
    FREEZE = "freeze"
    DELETE = "delete"


def merge_into(base: Mapping[K, V], overlay: Mapping[K, V]) -> Dict[K, V]:
    """
    Overlay one mapping onto another.

    Returns a new dict. Keys present in `overlay` take its value; every
    other key of `base` is carried forward unchanged. Neither input is
    modified.
    """
    merged = dict(base)
    merged.update(overlay)
    return merged


def accumulate(
    deltas: Iterable[Delta],
    policy: RetractionPolicy = RetractionPolicy.FREEZE
) -> List[Snapshot]:
    """Produce one Snapshot per Delta, in the same order."""
    snapshots: List[Snapshot] = []
    state: Dict = {}

    for delta in deltas:
        if snapshots:
            state = merge_into(state, delta)
        else:
            state = dict(delta)

        if policy is RetractionPolicy.DELETE:
            for attribute in delta.retracted:
                state.pop(attribute, None)

        snapshots.append(Snapshot(
            values=state,
            transaction_id=delta.transaction_id,
            tx_timestamp=delta.tx_timestamp
        ))

    return snapshots
