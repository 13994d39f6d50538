"""
factlog: Event-Sourced Entity Reconstruction

An entity's state is never stored directly. Every field-level change is
appended to an immutable fact log keyed by transaction, and any snapshot
(current or historical) is derived by replaying that log.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - FactRecord, Value, TransactionGroup, Delta, Snapshot, error types
   - Immutable, shared by every layer

2. TEMPORAL CORE (temporal/)
   - Responsibility: fact stream -> ordered snapshot sequence
   - grouper -> resolver -> accumulator, composed by the replay pipeline
   - MUST NOT: store state, retry, resolve concurrent-writer conflicts

3. STORAGE (storage/)
   - Responsibility: append-only facts, history and point queries
   - MUST NOT: derive snapshots

4. ENGINE (engine.py)
   - Wires store and pipeline together behind one configuration

5. API (api/)
   - HTTP surface over the engine

CONSTRAINTS ENFORCED:
=====================
- Append-only: recorded facts are never rewritten
- Deterministic: identical fact sets always produce identical snapshots
- Explicit errors: store failures and corrupt groups raise typed errors
"""

from .contracts import (
    ErrorCode,
    Error,
    FactLogError,
    StoreUnavailable,
    MalformedFactGroup,
    EntityNotFound,
    TransactionId,
    Timestamp,
    Value,
    ValueKind,
    FactRecord,
    TransactionGroup,
    Delta,
    Snapshot,
)
from .temporal import (
    group_by_transaction,
    resolve_delta,
    resolve_deltas,
    RetractionPolicy,
    merge_into,
    accumulate,
    ReconstructionConfig,
    ReconstructionPipeline,
    reconstruct,
)
from .storage import (
    FactStore,
    InMemoryFactStore,
    FileFactStore,
    FactStoreConfig,
    TransactionReceipt,
    create_fact_store,
    strip_bookkeeping,
)
from .engine import FactLogConfig, FactLogEngine

__version__ = "0.1.0"

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
    'group_by_transaction',
    'resolve_delta',
    'resolve_deltas',
    'RetractionPolicy',
    'merge_into',
    'accumulate',
    'ReconstructionConfig',
    'ReconstructionPipeline',
    'reconstruct',
    'FactStore',
    'InMemoryFactStore',
    'FileFactStore',
    'FactStoreConfig',
    'TransactionReceipt',
    'create_fact_store',
    'strip_bookkeeping',
    'FactLogConfig',
    'FactLogEngine',
]
