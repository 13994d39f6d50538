"""
Temporal Reconstruction Layer
=============================

Derives entity state from an append-only fact log.

INVARIANTS:
- All state is derived from the fact log, never stored
- Same facts -> same snapshots (deterministic)
- One snapshot per distinct transaction

Modules:
- grouper: facts -> transaction groups
- resolver: transaction group -> Delta
- accumulator: Deltas -> Snapshots
- replay: end-to-end pipeline over a fact store
"""

from .grouper import group_by_transaction
from .resolver import resolve_delta, resolve_deltas
from .accumulator import RetractionPolicy, merge_into, accumulate
from .replay import ReconstructionConfig, ReconstructionPipeline, reconstruct

__all__ = [
    'group_by_transaction',
    'resolve_delta',
    'resolve_deltas',
    'RetractionPolicy',
    'merge_into',
    'accumulate',
    'ReconstructionConfig',
    'ReconstructionPipeline',
    'reconstruct',
]
