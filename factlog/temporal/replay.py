"""
Reconstruction Pipeline
=======================

Fact store -> fact stream -> grouper -> resolver -> accumulator -> snapshots.

INVARIANT: Reconstruction is deterministic.
Same fact set = same snapshot sequence, whatever order the store
returned it in.

FAILURE HANDLING:
1. The history fetch is a single bulk read
2. Any fetch failure surfaces as StoreUnavailable, with no partial result
3. Grouping, resolving and accumulating are pure; they never retry
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

from ..contracts.base import FactLogError, StoreUnavailable, Timestamp, TransactionId
from ..contracts.facts import Delta, FactRecord, Snapshot
from .accumulator import RetractionPolicy, accumulate
from .grouper import group_by_transaction
from .resolver import resolve_deltas

if TYPE_CHECKING:
    from ..storage import FactStore


logger = logging.getLogger(__name__)


@dataclass
class ReconstructionConfig:
    """Configuration for snapshot reconstruction."""
    retraction_policy: RetractionPolicy = RetractionPolicy.FREEZE


class ReconstructionPipeline:
    """
    Rebuilds entity snapshots from a fact store's history view.

    Holds no state between calls; every method fetches and recomputes.
    Safe to share across threads.
    """

    def __init__(self, store: FactStore, config: Optional[ReconstructionConfig] = None):
        self._store = store
        self._config = config or ReconstructionConfig()

    @property
    def config(self) -> ReconstructionConfig:
        return self._config

    def reconstruct(self, entity_id: str) -> List[Snapshot]:
        """
        Full snapshot history for an entity, oldest first.

        The last element is the current state. An empty list means the
        entity has no facts.
        """
        return self.reconstruct_facts(self._fetch(entity_id))

    def reconstruct_facts(self, facts: Iterable[FactRecord]) -> List[Snapshot]:
        """Pure reconstruction over an already fetched fact stream."""
        return accumulate(self._deltas_from(facts), self._config.retraction_policy)

    def deltas(self, entity_id: str) -> List[Delta]:
        """What each transaction changed, oldest first."""
        return self._deltas_from(self._fetch(entity_id))

    def current(self, entity_id: str) -> Optional[Snapshot]:
        snapshots = self.reconstruct(entity_id)
        return snapshots[-1] if snapshots else None

    def as_of_transaction(
        self,
        entity_id: str,
        transaction_id: Union[TransactionId, int]
    ) -> Optional[Snapshot]:
        """
        State after the latest transaction at or before `transaction_id`.

        Returns None when the entity did not exist yet.
        """
        if not isinstance(transaction_id, TransactionId):
            transaction_id = TransactionId(transaction_id)

        result = None
        for snapshot in self.reconstruct(entity_id):
            if snapshot.transaction_id > transaction_id:
                break
            result = snapshot
        return result

    def as_of_time(
        self,
        entity_id: str,
        at: Union[Timestamp, datetime]
    ) -> Optional[Snapshot]:
        """
        State after the latest transaction committed at or before `at`.

        Snapshots without a commit timestamp cannot be placed in time and
        are skipped. Every snapshot is checked, so commit times that are out
        of transaction order still resolve to the latest qualifying
        transaction.
        """
        if at is None:
            raise TypeError("as_of_time requires a datetime or Timestamp, got None")
        at = Timestamp.coerce(at)

        result = None
        for snapshot in self.reconstruct(entity_id):
            if snapshot.tx_timestamp is None:
                continue
            if snapshot.tx_timestamp.value <= at.value:
                result = snapshot
        return result

    def _deltas_from(self, facts: Iterable[FactRecord]) -> List[Delta]:
        groups = group_by_transaction(facts)
        logger.debug("Grouped facts into %d transactions", len(groups))
        return resolve_deltas(groups)

    def _fetch(self, entity_id: str) -> List[FactRecord]:
        try:
            facts = list(self._store.query_history(entity_id))
        except FactLogError:
            raise
        except Exception as e:
            logger.warning("History query for %s failed: %s", entity_id, e)
            raise StoreUnavailable(
                f"History query for {entity_id} failed: {e}",
                context=(("entity_id", str(entity_id)),)
            ) from e

        logger.debug("Fetched %d facts for %s", len(facts), entity_id)
        return facts


def reconstruct(
    store: FactStore,
    entity_id: str,
    config: Optional[ReconstructionConfig] = None
) -> List[Snapshot]:
    """Single public entry point: ordered snapshot history of one entity."""
    return ReconstructionPipeline(store, config).reconstruct(entity_id)
