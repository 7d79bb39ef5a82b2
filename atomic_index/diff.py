"""
Index diff engine.

Given the record about to be written and the version it replaces (if any),
append exactly the index mutations that bring the owner registry, status sets,
sequence map, and owner counter in line with the new record. Both functions
only append to the caller's Batch; committing is the executor's job, and every
mutation for one logical write lands in that single batch.
"""

from __future__ import annotations

from typing import Optional

from atomic_index import keys
from atomic_index.domain.models import Record
from atomic_index.infrastructure.batch import Batch
from atomic_index.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_STATUS_TTL_SECONDS = 86_400


def apply_index_diff(
    batch: Batch,
    new: Record,
    old: Optional[Record] = None,
    status_ttl_seconds: int = DEFAULT_STATUS_TTL_SECONDS,
) -> Batch:
    """
    Append the index changes for writing `new` over `old`.

    Parameters
    ----------
    batch : Batch
        Batch to extend in place.
    new : Record
        Record being written.
    old : Record, optional
        Currently stored version; None on creation.
    status_ttl_seconds : int
        Expiry applied to the new status set on every write.

    Returns
    -------
    Batch
        The same batch, for chaining.
    """
    new_status_key = keys.status_set(new.owner_id, new.status)

    batch.sadd(keys.owner_registry(), new.owner_id)
    batch.sadd(new_status_key, new.id)
    batch.set(keys.sequence_map(new.owner_id, new.sequence), new.id)

    if old is None:
        batch.incr(keys.owner_counter(new.owner_id))
    else:
        if old.status != new.status or old.owner_id != new.owner_id:
            batch.srem(keys.status_set(old.owner_id, old.status), new.id)
            log.debug(
                f"Removing {new.id} from old status: {old.status.value}",
                extra={"record_id": new.id, "status": str(old.status)},
            )
        # Unconditional: a racing writer may already own this mapping.
        if old.sequence != new.sequence or old.owner_id != new.owner_id:
            batch.delete(keys.sequence_map(old.owner_id, old.sequence))
            log.debug(
                f"Removing old sequence mapping: {old.sequence}",
                extra={"record_id": new.id, "sequence": old.sequence},
            )

    batch.expire(new_status_key, status_ttl_seconds)
    return batch


def apply_index_removal(batch: Batch, record: Record) -> Batch:
    """Append the index changes for deleting `record`."""
    batch.srem(keys.status_set(record.owner_id, record.status), record.id)
    batch.delete(keys.sequence_map(record.owner_id, record.sequence))
    batch.decr(keys.owner_counter(record.owner_id))
    return batch


__all__ = ["apply_index_diff", "apply_index_removal", "DEFAULT_STATUS_TTL_SECONDS"]
