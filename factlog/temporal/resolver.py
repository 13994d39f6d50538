"""
Delta Resolver
==============

Collapses the add/retract pairs of one transaction into its Delta.

A transaction that moves attribute A from old to new carries two facts,
(A, old, retracted) and (A, new, asserted). Only the assertion survives
into the Delta. Retractions are trusted as recorded by the store; they
are consumed here to find attributes that were removed outright.
"""

from __future__ import annotations
from typing import Dict, Iterable, List, Set

from ..contracts.base import MalformedFactGroup
from ..contracts.facts import Delta, TransactionGroup
from ..contracts.values import Value


def resolve_delta(group: TransactionGroup) -> Delta:
    """
    Resolve one transaction group into a Delta.

    Raises MalformedFactGroup when the group asserts the same attribute
    twice or mixes transaction ids.
    """
    asserted: Dict[str, Value] = {}
    retracted: Set[str] = set()

    for fact in group.facts:
        if fact.transaction_id != group.transaction_id:
            raise MalformedFactGroup(
                f"Fact for {fact.attribute} belongs to transaction "
                f"{fact.transaction_id}, not {group.transaction_id}",
                context=(
                    ("transaction_id", str(group.transaction_id)),
                    ("attribute", fact.attribute),
                )
            )

        if not fact.added:
            retracted.add(fact.attribute)
            continue

        if fact.attribute in asserted:
            raise MalformedFactGroup(
                f"Transaction {group.transaction_id} asserts {fact.attribute} more than once",
                context=(
                    ("transaction_id", str(group.transaction_id)),
                    ("attribute", fact.attribute),
                    ("values", f"{asserted[fact.attribute]!r}, {fact.value!r}"),
                )
            )
        asserted[fact.attribute] = fact.value

    return Delta(
        values=asserted,
        transaction_id=group.transaction_id,
        tx_timestamp=group.tx_timestamp,
        retracted=frozenset(retracted.difference(asserted))
    )


def resolve_deltas(groups: Iterable[TransactionGroup]) -> List[Delta]:
    """Resolve every group, preserving group order."""
    return [resolve_delta(group) for group in groups]
