"""
Test Fixtures

Fixed order-tracking history used across the suite.
All fixtures are explicit - no random generation.

The order goes through three transactions:
    TX1  place order         (id, operator, time, action)
    TX2  assign to warehouse (operator, action change; time unchanged)
    TX3  ship                (operator, action, time change; location added)
"""

from datetime import datetime, timezone
from typing import List
import uuid

from factlog.contracts.facts import FactRecord
from factlog.storage import InMemoryFactStore, TransactionReceipt


# =============================================================================
# FIXED VALUES (deterministic)
# =============================================================================

ORDER_ENTITY = "order-287fc397"
ORDER_ID = uuid.UUID("287fc397-a432-49d7-9068-d7499cd2e28c")

T1 = datetime(2018, 7, 1, 12, 0, 0, tzinfo=timezone.utc)
T3 = datetime(2018, 7, 1, 12, 20, 0, tzinfo=timezone.utc)

COMMIT_1 = datetime(2018, 7, 1, 12, 0, 5, tzinfo=timezone.utc)
COMMIT_2 = datetime(2018, 7, 1, 12, 10, 5, tzinfo=timezone.utc)
COMMIT_3 = datetime(2018, 7, 1, 12, 20, 5, tzinfo=timezone.utc)

TX1 = 13194139534313
TX2 = 13194139534315
TX3 = 13194139534316

ORDER_EVENTS = [
    {
        "order/id": ORDER_ID,
        "order/operator": "A",
        "order/time": T1,
        "order/action": "create",
    },
    {
        "order/operator": "B",
        "order/action": "assign",
    },
    {
        "order/operator": "C",
        "order/time": T3,
        "order/location": "warehouse A",
        "order/action": "ship",
    },
]

ORDER_COMMITS = [COMMIT_1, COMMIT_2, COMMIT_3]


def order_history_facts() -> List[FactRecord]:
    """
    Raw history of the order, scrambled the way an unordered
    set-valued query returns it.
    """
    def fact(tx, attribute, value, added, commit):
        return FactRecord(tx, attribute, value, added, commit, ORDER_ENTITY)

    return [
        fact(TX3, "order/operator", "B", False, COMMIT_3),
        fact(TX1, "order/action", "create", True, COMMIT_1),
        fact(TX3, "order/location", "warehouse A", True, COMMIT_3),
        fact(TX2, "order/operator", "B", True, COMMIT_2),
        fact(TX1, "order/id", ORDER_ID, True, COMMIT_1),
        fact(TX3, "order/action", "ship", True, COMMIT_3),
        fact(TX2, "order/action", "create", False, COMMIT_2),
        fact(TX3, "order/time", T1, False, COMMIT_3),
        fact(TX1, "order/operator", "A", True, COMMIT_1),
        fact(TX2, "order/operator", "A", False, COMMIT_2),
        fact(TX3, "order/operator", "C", True, COMMIT_3),
        fact(TX1, "order/time", T1, True, COMMIT_1),
        fact(TX3, "order/action", "assign", False, COMMIT_3),
        fact(TX2, "order/action", "assign", True, COMMIT_2),
        fact(TX3, "order/time", T3, True, COMMIT_3),
    ]


def seed_order(store: InMemoryFactStore, entity_id: str = ORDER_ENTITY) -> List[TransactionReceipt]:
    """Write the three order events through a store."""
    return [
        store.transact(entity_id, changes, timestamp=commit)
        for changes, commit in zip(ORDER_EVENTS, ORDER_COMMITS)
    ]


class FailingStore(InMemoryFactStore):
    """Store whose history query always fails."""

    def __init__(self, error: Exception):
        super().__init__()
        self._error = error

    def query_history(self, entity_id):
        raise self._error
