"""
Engine Orchestration Module

Unified interface over the fact store and the reconstruction pipeline.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. The engine wires layers together; it adds no reconstruction logic
3. Writes go to the store, reads are always re-derived from history
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import os
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

from .contracts.base import EntityNotFound, Error, ErrorCode, Timestamp, TransactionId
from .contracts.facts import Delta, Snapshot
from .storage import (
    FactStoreConfig,
    InMemoryFactStore,
    TransactionReceipt,
    create_fact_store,
    strip_bookkeeping,
)
from .temporal.accumulator import RetractionPolicy
from .temporal.replay import ReconstructionConfig, ReconstructionPipeline


logger = logging.getLogger(__name__)

ENV_STORAGE_DIR = "FACTLOG_STORAGE_DIR"
ENV_RETRACTION_POLICY = "FACTLOG_RETRACTION_POLICY"


@dataclass
class FactLogConfig:
    """Unified configuration for the whole engine."""
    storage: FactStoreConfig = None
    reconstruction: ReconstructionConfig = None

    def __post_init__(self):
        self.storage = self.storage or FactStoreConfig()
        self.reconstruction = self.reconstruction or ReconstructionConfig()

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> FactLogConfig:
        """
        Build configuration from environment variables.

        FACTLOG_STORAGE_DIR selects the file backend at that directory.
        FACTLOG_RETRACTION_POLICY is "freeze" (default) or "delete".
        """
        environ = os.environ if environ is None else environ

        storage_dir = environ.get(ENV_STORAGE_DIR)
        if storage_dir:
            storage = FactStoreConfig(backend_type="file", storage_dir=storage_dir)
        else:
            storage = FactStoreConfig()

        policy_name = environ.get(ENV_RETRACTION_POLICY, RetractionPolicy.FREEZE.value)
        try:
            policy = RetractionPolicy(policy_name.strip().lower())
        except ValueError as e:
            raise ValueError(
                f"{ENV_RETRACTION_POLICY} must be one of "
                f"{[p.value for p in RetractionPolicy]}, got {policy_name!r}"
            ) from e

        return FactLogConfig(
            storage=storage,
            reconstruction=ReconstructionConfig(retraction_policy=policy)
        )


class FactLogEngine:
    """
    Fact log engine.

    LAYER FLOW:
    ===========
    1. Storage: changes -> append-only facts
    2. Temporal: fact history -> Deltas -> Snapshots
    """

    def __init__(
        self,
        config: Optional[FactLogConfig] = None,
        store: Optional[InMemoryFactStore] = None
    ):
        self._config = config or FactLogConfig()
        self._store = store if store is not None else create_fact_store(self._config.storage)
        self._pipeline = ReconstructionPipeline(self._store, self._config.reconstruction)
        logger.info(
            "Engine ready (backend=%s, retraction_policy=%s)",
            self._config.storage.backend_type,
            self._config.reconstruction.retraction_policy.value
        )

    @property
    def config(self) -> FactLogConfig:
        return self._config

    @property
    def store(self) -> InMemoryFactStore:
        return self._store

    # =========================================================================
    # WRITE INTERFACE
    # =========================================================================

    def transact(
        self,
        entity_id: str,
        changes: Mapping[str, Any],
        timestamp: Optional[Any] = None
    ) -> TransactionReceipt:
        return self._store.transact(entity_id, changes, timestamp)

    def retract(
        self,
        entity_id: str,
        attributes: Iterable[str],
        timestamp: Optional[Any] = None
    ) -> TransactionReceipt:
        return self._store.retract(entity_id, attributes, timestamp)

    # =========================================================================
    # READ INTERFACE
    # =========================================================================

    def history(self, entity_id: str, require: bool = False) -> List[Snapshot]:
        """
        Snapshot history, oldest first.

        An unknown entity gives an empty list, or EntityNotFound when
        `require` is set.
        """
        snapshots = self._pipeline.reconstruct(entity_id)
        if require and not snapshots:
            raise EntityNotFound(
                f"Entity {entity_id} has no facts",
                context=(("entity_id", entity_id),)
            )
        return snapshots

    def current(self, entity_id: str) -> Optional[Snapshot]:
        return self._pipeline.current(entity_id)

    def deltas(self, entity_id: str) -> List[Delta]:
        return self._pipeline.deltas(entity_id)

    def as_of_transaction(
        self,
        entity_id: str,
        transaction_id: Union[TransactionId, int]
    ) -> Optional[Snapshot]:
        return self._pipeline.as_of_transaction(entity_id, transaction_id)

    def as_of_time(
        self,
        entity_id: str,
        at: Union[Timestamp, datetime]
    ) -> Optional[Snapshot]:
        return self._pipeline.as_of_time(entity_id, at)

    def entity_ids(self) -> List[str]:
        return self._store.entity_ids()

    def verify(self, entity_id: str) -> Tuple[bool, Optional[Error]]:
        """
        Check that the reconstructed state matches the store's point query.

        Returns (is_consistent, error).
        """
        snapshots = self._pipeline.reconstruct(entity_id)
        reconstructed = dict(snapshots[-1]) if snapshots else {}
        stored = strip_bookkeeping(self._store.query_current(entity_id))

        if reconstructed == stored:
            return (True, None)

        differing = sorted(
            attribute
            for attribute in set(reconstructed) | set(stored)
            if reconstructed.get(attribute) != stored.get(attribute)
        )
        logger.warning("Reconstructed state of %s differs on %s", entity_id, differing)
        return (False, Error(
            code=ErrorCode.TERMINAL_STATE_MISMATCH,
            message=f"Reconstructed state of {entity_id} differs from stored state",
            timestamp=datetime.now(timezone.utc),
            context=(
                ("entity_id", entity_id),
                ("attributes", ",".join(differing)),
            )
        ))
