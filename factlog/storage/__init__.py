"""
Fact Storage Layer

RESPONSIBILITY: Append-only fact persistence, history and point queries
ALLOWED INPUTS: Attribute changes for one entity per transaction
OUTPUTS: FactRecord history, current attribute maps, TransactionReceipts

WHAT THIS LAYER MUST NOT DO:
============================
- Derive snapshots (that is the temporal layer's job)
- Delete or rewrite recorded facts
- Validate attribute types against a schema

BOUNDARY ENFORCEMENT:
=====================
- Every write that changes something is one atomic transaction with a
  fresh, increasing id and a commit time no earlier than the previous one
- A changed attribute produces a retraction of the old value and an
  assertion of the new one in the same transaction
- Re-asserting an unchanged value records nothing
- History queries never omit retractions
"""

from __future__ import annotations
from dataclasses import dataclass
import json
import logging
import os
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ..contracts.base import StoreUnavailable, Timestamp, TransactionId
from ..contracts.facts import FactRecord
from ..contracts.values import Value


logger = logging.getLogger(__name__)


# Store-internal attributes returned by point queries but never part of
# the change log.
DB_ID_ATTRIBUTE = "db/id"
BOOKKEEPING_ATTRIBUTES = frozenset({DB_ID_ATTRIBUTE})

FIRST_TRANSACTION_ID = TransactionId(13194139534313)
FIRST_ENTITY_DB_ID = 17592186045418


def strip_bookkeeping(state: Optional[Mapping[str, Value]]) -> Dict[str, Value]:
    """Drop store-internal attributes from a point-query result."""
    if not state:
        return {}
    return {
        attribute: value
        for attribute, value in state.items()
        if attribute not in BOOKKEEPING_ATTRIBUTES
    }


@dataclass(frozen=True)
class TransactionReceipt:
    """
    Outcome of one write.

    transaction_id is None when the write changed nothing, in which case
    no transaction was recorded and facts is empty.
    """
    transaction_id: Optional[TransactionId]
    tx_timestamp: Timestamp
    entity_id: str
    facts: Tuple[FactRecord, ...]


# =============================================================================
# STORE INTERFACE (Dependency Inversion)
# =============================================================================

class FactStore:
    """
    Abstract fact store interface.

    The reconstruction pipeline depends only on query_history.
    query_current exists for callers that validate reconstructed state.
    """

    def query_current(self, entity_id: str) -> Optional[Dict[str, Value]]:
        """Current attribute map of an entity, or None if it has no state."""
        raise NotImplementedError

    def query_history(self, entity_id: str) -> List[FactRecord]:
        """Every assertion and retraction ever recorded for an entity."""
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

class InMemoryFactStore(FactStore):
    """
    In-memory fact store.

    Keeps an append-only fact log plus a current-state index that is
    maintained on write, independently of snapshot reconstruction.
    Writes are serialized by a lock, so transaction ids form a total order.
    """

    def __init__(self):
        self._lock = threading.Lock()

        # Append-only fact log, per entity
        self._history: Dict[str, List[FactRecord]] = {}

        # Current value index: entity -> attribute -> value
        self._current: Dict[str, Dict[str, Value]] = {}

        # Store-internal entity numbers
        self._db_ids: Dict[str, int] = {}

        self._next_transaction_id = FIRST_TRANSACTION_ID
        self._last_tx_timestamp: Optional[Timestamp] = None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def transact(
        self,
        entity_id: str,
        changes: Mapping[str, Any],
        timestamp: Optional[Any] = None
    ) -> TransactionReceipt:
        """
        Atomically set attributes of one entity.

        Values may be Value instances or plain Python values.
        """
        self._validate_entity_id(entity_id)
        if not changes:
            raise ValueError("changes must not be empty")

        new_values = {}
        for attribute, raw in changes.items():
            self._validate_attribute(attribute)
            new_values[attribute] = Value.of(raw)

        with self._lock:
            current = self._current.get(entity_id, {})

            changes_to_record: List[Tuple[str, Value, bool]] = []
            for attribute in sorted(new_values):
                value = new_values[attribute]
                old = current.get(attribute)
                if old == value:
                    continue
                if old is not None:
                    changes_to_record.append((attribute, old, False))
                changes_to_record.append((attribute, value, True))

            receipt = self._commit(entity_id, changes_to_record, timestamp)

        logger.debug("Transaction %s on %s recorded %d facts", receipt.transaction_id, entity_id, len(receipt.facts))
        return receipt

    def retract(
        self,
        entity_id: str,
        attributes: Iterable[str],
        timestamp: Optional[Any] = None
    ) -> TransactionReceipt:
        """
        Retract attributes with no replacement.

        Attributes the entity does not currently hold are ignored.
        """
        self._validate_entity_id(entity_id)
        attributes = sorted(set(attributes))
        for attribute in attributes:
            self._validate_attribute(attribute)

        with self._lock:
            current = self._current.get(entity_id, {})

            changes_to_record = [
                (attribute, current[attribute], False)
                for attribute in attributes
                if attribute in current
            ]

            receipt = self._commit(entity_id, changes_to_record, timestamp)

        logger.debug("Transaction %s retracted %d attributes of %s",
                     receipt.transaction_id, len(receipt.facts), entity_id)
        return receipt

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def query_current(self, entity_id: str) -> Optional[Dict[str, Value]]:
        with self._lock:
            current = self._current.get(entity_id)
            if not current:
                return None
            state = {DB_ID_ATTRIBUTE: Value.of(self._db_ids[entity_id])}
            state.update(current)
            return state

    def query_history(self, entity_id: str) -> List[FactRecord]:
        with self._lock:
            return list(self._history.get(entity_id, ()))

    def entity_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._history)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _commit_time(self, timestamp: Optional[Any]) -> Timestamp:
        """
        Commit time of the next transaction. Caller holds the lock.

        Commit times never go backwards: an explicit timestamp earlier than
        the previous commit is rejected, and the wall clock is clamped to it.
        """
        last = self._last_tx_timestamp
        tx_timestamp = Timestamp.coerce(timestamp)
        if tx_timestamp is None:
            tx_timestamp = Timestamp.now()
            if last is not None and tx_timestamp.value < last.value:
                tx_timestamp = last
        elif last is not None and tx_timestamp.value < last.value:
            raise ValueError(
                f"commit time {tx_timestamp.to_iso()} is earlier than the "
                f"previous commit at {last.to_iso()}"
            )
        return tx_timestamp

    def _commit(
        self,
        entity_id: str,
        changes: List[Tuple[str, Value, bool]],
        timestamp: Optional[Any]
    ) -> TransactionReceipt:
        """
        Persist then index one transaction. Caller holds the lock.

        A transaction with no changes records nothing and reserves no id;
        its receipt has transaction_id None and no facts.
        """
        tx_timestamp = self._commit_time(timestamp)
        if not changes:
            return TransactionReceipt(None, tx_timestamp, entity_id, ())

        transaction_id = self._next_transaction_id
        facts = [
            FactRecord(transaction_id, attribute, value, added, tx_timestamp, entity_id)
            for attribute, value, added in changes
        ]
        self._persist(facts)
        self._apply(entity_id, facts)

        self._next_transaction_id = transaction_id.next()
        self._last_tx_timestamp = tx_timestamp
        return TransactionReceipt(transaction_id, tx_timestamp, entity_id, tuple(facts))

    def _persist(self, facts: List[FactRecord]) -> None:
        pass

    def _apply(self, entity_id: str, facts: Iterable[FactRecord]) -> None:
        history = self._history.setdefault(entity_id, [])
        current = self._current.setdefault(entity_id, {})
        if entity_id not in self._db_ids:
            self._db_ids[entity_id] = FIRST_ENTITY_DB_ID + len(self._db_ids)

        for fact in facts:
            history.append(fact)
            if fact.added:
                current[fact.attribute] = fact.value
            elif current.get(fact.attribute) == fact.value:
                del current[fact.attribute]

    @staticmethod
    def _validate_entity_id(entity_id: str) -> None:
        if not entity_id or not isinstance(entity_id, str):
            raise ValueError("entity_id must be a non-empty string")

    @staticmethod
    def _validate_attribute(attribute: str) -> None:
        if not attribute or not isinstance(attribute, str):
            raise ValueError("attribute must be a non-empty string")
        if attribute in BOOKKEEPING_ATTRIBUTES:
            raise ValueError(f"{attribute} is managed by the store")


# =============================================================================
# FILE STORE
# =============================================================================

class FileFactStore(InMemoryFactStore):
    """
    File-backed fact store.

    Appends every fact to facts.jsonl and rebuilds its indices from that
    file on open. The file is never rewritten.
    """

    FACTS_FILE = "facts.jsonl"

    def __init__(self, storage_dir: str):
        super().__init__()
        self._storage_dir = storage_dir
        self._facts_file = os.path.join(storage_dir, self.FACTS_FILE)

        try:
            os.makedirs(storage_dir, exist_ok=True)
        except OSError as e:
            raise StoreUnavailable(
                f"Cannot open storage directory {storage_dir}: {e}",
                context=(("storage_dir", storage_dir),)
            ) from e

        self._load()

    @property
    def facts_file(self) -> str:
        return self._facts_file

    def _load(self) -> None:
        """Rebuild in-memory indices from the fact log."""
        if not os.path.exists(self._facts_file):
            logger.info("Opened empty fact store at %s", self._storage_dir)
            return

        count = 0
        last_transaction: Optional[TransactionId] = None
        try:
            with open(self._facts_file, 'r', encoding='utf-8') as f:
                for line_number, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    fact = self._decode(line, line_number)
                    if not fact.entity_id:
                        raise StoreUnavailable(
                            f"Fact log line {line_number} has no entity id",
                            context=(("file", self._facts_file),)
                        )
                    self._apply(fact.entity_id, (fact,))
                    if last_transaction is None or fact.transaction_id > last_transaction:
                        last_transaction = fact.transaction_id
                    if fact.tx_timestamp is not None and (
                        self._last_tx_timestamp is None
                        or fact.tx_timestamp.value > self._last_tx_timestamp.value
                    ):
                        self._last_tx_timestamp = fact.tx_timestamp
                    count += 1
        except OSError as e:
            raise StoreUnavailable(
                f"Cannot read fact log {self._facts_file}: {e}",
                context=(("file", self._facts_file),)
            ) from e

        if last_transaction is not None:
            self._next_transaction_id = last_transaction.next()
        logger.info("Loaded %d facts from %s", count, self._facts_file)

    def _decode(self, line: str, line_number: int) -> FactRecord:
        try:
            return FactRecord.from_json(json.loads(line))
        except (ValueError, TypeError) as e:
            logger.error("Corrupt fact log %s at line %d", self._facts_file, line_number)
            raise StoreUnavailable(
                f"Corrupt fact log at line {line_number}: {e}",
                context=(("file", self._facts_file), ("line", str(line_number)))
            ) from e

    def _persist(self, facts: List[FactRecord]) -> None:
        try:
            with open(self._facts_file, 'a', encoding='utf-8') as f:
                for fact in facts:
                    f.write(json.dumps(fact.to_json(), sort_keys=True) + '\n')
        except OSError as e:
            raise StoreUnavailable(
                f"Failed to append to fact log {self._facts_file}: {e}",
                context=(("file", self._facts_file),)
            ) from e


# =============================================================================
# STORE CONFIGURATION
# =============================================================================

@dataclass
class FactStoreConfig:
    """Configuration for fact storage."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None


def create_fact_store(config: Optional[FactStoreConfig] = None) -> InMemoryFactStore:
    """Create a fact store based on configuration."""
    config = config or FactStoreConfig()
    if config.backend_type == "file":
        if not config.storage_dir:
            raise ValueError("file backend requires storage_dir")
        return FileFactStore(config.storage_dir)
    if config.backend_type != "memory":
        raise ValueError(f"unknown backend_type: {config.backend_type}")
    return InMemoryFactStore()


__all__ = [
    'DB_ID_ATTRIBUTE',
    'BOOKKEEPING_ATTRIBUTES',
    'strip_bookkeeping',
    'TransactionReceipt',
    'FactStore',
    'InMemoryFactStore',
    'FileFactStore',
    'FactStoreConfig',
    'create_fact_store',
]
