"""
Repository façade: records plus derived secondary indexes, written atomically.

Every mutating call builds one Batch holding the primary record change and its
full index diff, then hands it to the BatchExecutor. Reads go to the record
store; indexed reads resolve ids through the index first.

Concurrency
-----------
The default mode reads the prior record and commits the batch separately, so
two writers racing on the same id resolve last-writer-wins and may leave a
stale status-set entry behind. `list_by_status` repairs such entries when it
meets them. With `optimistic=True` the read and the commit happen under
WATCH on the primary key and a concurrent change raises VersionConflictError
instead; nothing is applied in that case.

Usage:
    from atomic_index.repository import Repository

    repo = Repository.from_url("redis://127.0.0.1:6379/0")
    record = repo.create(Record.new("owner-1", 1, "0xdead", 10))
    repo.update_status(record.id, "confirmed")
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import redis
from pydantic import ValidationError

from atomic_index import keys
from atomic_index.config import get_settings
from atomic_index.diff import apply_index_diff, apply_index_removal
from atomic_index.domain.models import Record, RecordStatus, utcnow
from atomic_index.errors import (
    AlreadyExistsError,
    NotFoundError,
    SerializationError,
    VersionConflictError,
)
from atomic_index.infrastructure.batch import Batch, BatchExecutor
from atomic_index.infrastructure.redis_factory import get_client, translate_store_errors
from atomic_index.record_store import RecordStore, decode
from atomic_index.utils.logging import get_logger

log = get_logger(__name__)


def _validated(record: Record, **pinned: Any) -> Record:
    try:
        return Record.model_validate({**record.model_dump(), **pinned})
    except ValidationError as exc:
        raise SerializationError(f"Invalid record {record.id}: {exc}") from exc


class Repository:
    """
    Sole writer of records and their indexes.

    Parameters
    ----------
    client : redis.Redis
        Store handle. The repository keeps no other mutable state.
    status_ttl_seconds : int, optional
        Expiry refreshed on the target status set on every write.
        Defaults to settings.status_index_ttl_seconds.
    optimistic : bool, optional
        Commit writes under WATCH and raise VersionConflictError on races.
        Defaults to settings.optimistic_writes.
    """

    def __init__(
        self,
        client: redis.Redis,
        status_ttl_seconds: Optional[int] = None,
        optimistic: Optional[bool] = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._records = RecordStore(client)
        self._executor = BatchExecutor(client)
        self.status_ttl_seconds = (
            status_ttl_seconds
            if status_ttl_seconds is not None
            else settings.status_index_ttl_seconds
        )
        self.optimistic = optimistic if optimistic is not None else settings.optimistic_writes

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs) -> "Repository":
        return cls(get_client(url), **kwargs)

    def ping(self) -> bool:
        with translate_store_errors():
            return bool(self._client.ping())

    # ------------------------------------------------------------------ writes

    def create(self, record: Record) -> Record:
        """
        Store a new record with its reverse lookup and all indexes.

        Raises
        ------
        AlreadyExistsError
            If a record with the same id is already stored.
        """
        record = _validated(record)

        def plan(current: Optional[str], batch: Batch) -> Record:
            if current is not None:
                raise AlreadyExistsError(record.id)
            RecordStore.stage_put(batch, record, with_lookup=True)
            apply_index_diff(batch, record, None, self.status_ttl_seconds)
            return record

        if self.optimistic:
            self._executor.execute_guarded(
                keys.primary(record.id), plan, conflict=lambda: AlreadyExistsError(record.id)
            )
        else:
            # Not atomic with the write below; random ids make collisions negligible.
            if self._records.exists(record.id):
                raise AlreadyExistsError(record.id)
            batch = Batch()
            plan(None, batch)
            self._executor.execute(batch)

        log.info(
            f"[CREATE] {record.id}",
            extra={"record_id": record.id, "owner_id": record.owner_id, "sequence": record.sequence},
        )
        return record

    def update(self, record: Record) -> Record:
        """
        Replace the stored record and move its index entries.

        `owner_id` and `created_at` are kept from the stored version; `version`
        is bumped and `updated_at` refreshed. Returns the record as stored.

        Raises
        ------
        NotFoundError
            If no record with this id exists.
        VersionConflictError
            Optimistic mode only: the stored version differs from
            `record.version`, or the record changed before commit.
        SerializationError
            If the record to store breaks the model; nothing is written.
        """

        previous: List[Record] = []

        def plan(current: Optional[str], batch: Batch) -> Record:
            if current is None:
                raise NotFoundError(record.id)
            old = decode(record.id, current)
            if self.optimistic and old.version != record.version:
                raise VersionConflictError(record.id, record.version, old.version)
            stored = _validated(
                record,
                owner_id=old.owner_id,
                created_at=old.created_at,
                updated_at=utcnow(),
                version=old.version + 1,
            )
            RecordStore.stage_put(batch, stored)
            apply_index_diff(batch, stored, old, self.status_ttl_seconds)
            previous[:] = [old]
            return stored

        stored = self._commit(record.id, plan)
        log.info(
            f"[UPDATE] {record.id} status: {previous[0].status.value} -> {stored.status.value}",
            extra={
                "record_id": record.id,
                "from": str(previous[0].status),
                "to": str(stored.status),
                "version": stored.version,
            },
        )
        return stored

    def update_status(
        self, record_id: str, status: RecordStatus | str, external_ref: Optional[str] = None
    ) -> Record:
        """Read a record, set its status (and external ref, if given), and update it."""
        current = self.get(record_id)
        changes = {"status": RecordStatus.parse(status)}
        if external_ref is not None:
            changes["external_ref"] = external_ref
        return self.update(current.with_changes(**changes))

    def delete(self, record_id: str) -> None:
        """
        Remove a record, its reverse lookup, and its index entries in one batch.

        Raises
        ------
        NotFoundError
            If no record with this id exists.
        """

        def plan(current: Optional[str], batch: Batch) -> Record:
            if current is None:
                raise NotFoundError(record_id)
            record = decode(record_id, current)
            RecordStore.stage_delete(batch, record_id)
            apply_index_removal(batch, record)
            return record

        self._commit(record_id, plan)
        log.info(f"[DELETE] {record_id}", extra={"record_id": record_id})

    def _commit(self, record_id: str, plan: Callable[[Optional[str], Batch], Record]) -> Record:
        if self.optimistic:
            return self._executor.execute_guarded(
                keys.primary(record_id), plan, conflict=lambda: VersionConflictError(record_id)
            )
        batch = Batch()
        result = plan(self._records.get_raw(record_id), batch)
        self._executor.execute(batch)
        return result

    # ------------------------------------------------------------------- reads

    def get(self, record_id: str) -> Record:
        return self._records.get(record_id)

    def owner_of(self, record_id: str) -> str:
        return self._records.owner_of(record_id)

    def owner_count(self, owner_id: str) -> int:
        """Creation counter for `owner_id`; approximate, not a live cardinality."""
        with translate_store_errors():
            value = self._client.get(keys.owner_counter(owner_id))
        return int(value) if value is not None else 0

    def list_by_status(self, owner_id: str, status: RecordStatus | str) -> List[Record]:
        """
        Records of `owner_id` currently indexed under `status`.

        May mutate index state: members whose record is missing, or whose
        record no longer has this owner/status, are removed from the set and
        left out of the result.
        """
        status = RecordStatus.parse(status)
        status_key = keys.status_set(owner_id, status)
        with translate_store_errors():
            member_ids = self._client.smembers(status_key)

        records: List[Record] = []
        for record_id in sorted(member_ids):
            try:
                record = self._records.get(record_id)
            except NotFoundError:
                log.warning(
                    f"Record {record_id} found in index but not in storage",
                    extra={"record_id": record_id, "index": status_key},
                )
                self._prune(status_key, record_id, owner_id, status)
                continue
            if record.owner_id != owner_id or record.status != status:
                log.warning(
                    f"Record {record_id} indexed under stale status {status.value}",
                    extra={"record_id": record_id, "index": status_key, "actual": str(record.status)},
                )
                self._prune(status_key, record_id, owner_id, status)
                continue
            records.append(record)

        records.sort(key=lambda r: (r.created_at, r.id))
        return records

    def _prune(self, status_key: str, record_id: str, owner_id: str, status: RecordStatus) -> None:
        # Re-checked under WATCH so a concurrent write moving the record into
        # this status is never undone.
        def plan(current: Optional[str], batch: Batch) -> None:
            if current is not None:
                record = decode(record_id, current)
                if record.owner_id == owner_id and record.status == status:
                    return
            batch.srem(status_key, record_id)

        try:
            self._executor.execute_guarded(
                keys.primary(record_id), plan, conflict=lambda: VersionConflictError(record_id)
            )
        except VersionConflictError:
            log.debug("Skipped index repair; record changed meanwhile", extra={"record_id": record_id})

    def status_memberships(self, owner_id: str, record_id: str) -> List[RecordStatus]:
        """Statuses whose set for `owner_id` currently holds `record_id`, read raw."""
        with translate_store_errors():
            return [
                status
                for status in RecordStatus
                if self._client.sismember(keys.status_set(owner_id, status), record_id)
            ]

    def list_by_sequence(self, owner_id: str, sequence: int) -> Optional[Record]:
        """
        Record mapped to `(owner_id, sequence)`, or None.

        None is also returned when the mapping points at a record that has
        since moved to another owner or sequence.

        Raises
        ------
        NotFoundError
            If the mapping points at a record that is no longer stored.
        """
        with translate_store_errors():
            record_id = self._client.get(keys.sequence_map(owner_id, sequence))
        if record_id is None:
            return None
        record = self._records.get(record_id)
        if record.owner_id != owner_id or record.sequence != sequence:
            return None
        return record

    # -------------------------------------------------------------------- bulk

    def drop_all(self) -> int:
        """
        Delete every record and index key reachable from the owner registry.

        Enumeration happens first and is not atomic with the delete; the
        delete itself is one batch. Returns the number of keys submitted.
        """
        keys_to_delete: List[str] = []
        with translate_store_errors():
            owner_ids = self._client.smembers(keys.owner_registry())

        for owner_id in sorted(owner_ids):
            for status in RecordStatus:
                status_key = keys.status_set(owner_id, status)
                with translate_store_errors():
                    member_ids = self._client.smembers(status_key)
                for record_id in sorted(member_ids):
                    keys_to_delete.append(keys.primary(record_id))
                    keys_to_delete.append(keys.reverse_owner(record_id))
                    try:
                        record = self._records.get(record_id)
                    except (NotFoundError, SerializationError):
                        continue
                    keys_to_delete.append(keys.sequence_map(owner_id, record.sequence))
                keys_to_delete.append(status_key)
            keys_to_delete.append(keys.owner_counter(owner_id))
        keys_to_delete.append(keys.owner_registry())

        unique_keys = list(dict.fromkeys(keys_to_delete))
        batch = Batch().delete(*unique_keys)
        self._executor.execute(batch)
        log.info(f"[DROP ALL] Atomically deleted {len(unique_keys)} keys", extra={"keys": len(unique_keys)})
        return len(unique_keys)

    def stats(self) -> Dict[str, int]:
        """
        Live aggregate: owner count and per-status totals across all owners.

        Keys are "owners" and "status_<name>" for every status.
        """
        with translate_store_errors():
            owner_ids = self._client.smembers(keys.owner_registry())
            stats: Dict[str, int] = {"owners": len(owner_ids)}
            for status in RecordStatus:
                stats[f"status_{status.value}"] = sum(
                    int(self._client.scard(keys.status_set(owner_id, status)))
                    for owner_id in owner_ids
                )
        return stats


__all__ = ["Repository"]
