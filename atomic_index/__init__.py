"""
Atomic index - Redis-backed records with atomically maintained secondary indexes.

Every record lives under a primary key and is indexed by owner and status,
by owner and sequence number, and in an owner registry with a per-owner
creation counter. Writes commit the record and every affected index entry as
one MULTI/EXEC batch, so readers never see an index pointing at a half-written
record or a record listed under two statuses after a single write.

The package provides:

- A pure key scheme and an index diff engine
- A transactional batch executor with an optional optimistic (WATCH) mode
- A repository façade with self-healing indexed reads
- Benchmark and race-test drivers plus a typer CLI
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from atomic_index.config import Settings, get_settings
from atomic_index.domain.models import Record, RecordStatus
from atomic_index.errors import (
    AlreadyExistsError,
    InvalidStatusTransitionError,
    NotFoundError,
    RepositoryError,
    SerializationError,
    StoreConnectionError,
    VersionConflictError,
)
from atomic_index.infrastructure.batch import Batch, BatchExecutor
from atomic_index.infrastructure.redis_factory import get_client, wait_for_store
from atomic_index.repository import Repository
from atomic_index.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "Record",
    "RecordStatus",
    # Errors
    "RepositoryError",
    "StoreConnectionError",
    "NotFoundError",
    "AlreadyExistsError",
    "SerializationError",
    "InvalidStatusTransitionError",
    "VersionConflictError",
    # Storage
    "Batch",
    "BatchExecutor",
    "get_client",
    "wait_for_store",
    "Repository",
    # Logging
    "configure_logging",
    "get_logger",
]
