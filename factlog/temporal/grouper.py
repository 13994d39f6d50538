"""
Transaction Grouper
===================

Groups an unordered fact stream by transaction id.

INVARIANT: grouping is invariant to input order.
The store returns facts in no guaranteed order, so facts are always
sorted by transaction id before grouping. Store iteration order is
never trusted.
"""

from __future__ import annotations
from itertools import groupby
from typing import Iterable, List

from ..contracts.facts import FactRecord, TransactionGroup


def group_by_transaction(facts: Iterable[FactRecord]) -> List[TransactionGroup]:
    """
    Group facts into one TransactionGroup per distinct transaction id.

    Groups come back in ascending transaction order. Facts inside a group
    are sorted by (attribute, added, value) so the output is identical for
    any permutation of the input.

    An empty stream yields an empty list: the entity was not found.
    """
    ordered = sorted(facts, key=FactRecord.sort_key)

    return [
        TransactionGroup(transaction_id=transaction_id, facts=tuple(members))
        for transaction_id, members in groupby(ordered, key=lambda fact: fact.transaction_id)
    ]
