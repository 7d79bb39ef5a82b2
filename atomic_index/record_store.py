"""
Primary record storage: one JSON blob per record under `record:{id}`.

Direct reads and writes go straight to the store; the `stage_*` helpers append
the equivalent commands to a Batch so the façade can commit them together with
index changes.
"""

from __future__ import annotations

from typing import Optional

import redis
from pydantic import ValidationError

from atomic_index import keys
from atomic_index.domain.models import Record
from atomic_index.errors import NotFoundError, SerializationError
from atomic_index.infrastructure.batch import Batch
from atomic_index.infrastructure.redis_factory import translate_store_errors


def encode(record: Record) -> str:
    return record.model_dump_json()


def decode(record_id: str, raw: str) -> Record:
    """Parse a stored blob, raising SerializationError on malformed data."""
    try:
        return Record.model_validate_json(raw)
    except ValidationError as exc:
        raise SerializationError(f"Malformed record {record_id}: {exc}") from exc


class RecordStore:
    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def get_raw(self, record_id: str) -> Optional[str]:
        with translate_store_errors():
            return self._client.get(keys.primary(record_id))

    def get(self, record_id: str) -> Record:
        raw = self.get_raw(record_id)
        if raw is None:
            raise NotFoundError(record_id)
        return decode(record_id, raw)

    def put(self, record: Record) -> None:
        """Write the primary blob only; existence checks belong to the repository."""
        with translate_store_errors():
            self._client.set(keys.primary(record.id), encode(record))

    def delete(self, record_id: str) -> None:
        with translate_store_errors():
            self._client.delete(keys.primary(record_id))

    def exists(self, record_id: str) -> bool:
        with translate_store_errors():
            return bool(self._client.exists(keys.primary(record_id)))

    def owner_of(self, record_id: str) -> str:
        with translate_store_errors():
            owner_id = self._client.get(keys.reverse_owner(record_id))
        if owner_id is None:
            raise NotFoundError(record_id)
        return owner_id

    @staticmethod
    def stage_put(batch: Batch, record: Record, with_lookup: bool = False) -> Batch:
        batch.set(keys.primary(record.id), encode(record))
        if with_lookup:
            batch.set(keys.reverse_owner(record.id), record.owner_id)
        return batch

    @staticmethod
    def stage_delete(batch: Batch, record_id: str) -> Batch:
        return batch.delete(keys.primary(record_id), keys.reverse_owner(record_id))


__all__ = ["RecordStore", "encode", "decode"]
