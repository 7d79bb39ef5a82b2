"""
Infrastructure package for the atomic index repository.

Centralizes store connectivity (client factory, pooling, error translation)
and the transactional batch executor. Keep this layer focused on I/O and
resource management, decoupled from indexing logic.
"""

from atomic_index.infrastructure.batch import Batch, BatchExecutor, KeyOp
from atomic_index.infrastructure.redis_factory import (
    PoolManager,
    get_client,
    translate_store_errors,
    wait_for_store,
)

__all__ = [
    "Batch",
    "BatchExecutor",
    "KeyOp",
    "PoolManager",
    "get_client",
    "translate_store_errors",
    "wait_for_store",
]
