from __future__ import annotations

import pytest

from atomic_index import keys
from atomic_index.domain.models import Record
from atomic_index.errors import NotFoundError, SerializationError
from atomic_index.record_store import RecordStore


def _record() -> Record:
    return Record.new("owner-a", 3, "0xfeed", "42")


def test_put_writes_only_the_primary_key(fake_store) -> None:
    store = RecordStore(fake_store)
    record = _record()

    store.put(record)

    assert store.exists(record.id)
    assert store.get(record.id) == record
    assert fake_store.keys() == [keys.primary(record.id)]


def test_put_overwrites_without_existence_check(fake_store) -> None:
    store = RecordStore(fake_store)
    record = _record()
    store.put(record)

    store.put(record.with_changes(external_ref="0xabc"))

    assert store.get(record.id).external_ref == "0xabc"


def test_delete_is_unconditional(fake_store) -> None:
    store = RecordStore(fake_store)
    record = _record()
    store.put(record)

    store.delete(record.id)
    store.delete(record.id)

    assert not store.exists(record.id)
    with pytest.raises(NotFoundError):
        store.get(record.id)


def test_get_surfaces_malformed_blob(fake_store) -> None:
    fake_store.set(keys.primary("broken"), "not json")
    with pytest.raises(SerializationError):
        RecordStore(fake_store).get("broken")


def test_owner_of_requires_lookup_key(fake_store) -> None:
    store = RecordStore(fake_store)
    with pytest.raises(NotFoundError):
        store.owner_of("missing")
    fake_store.set(keys.reverse_owner("r1"), "owner-a")
    assert store.owner_of("r1") == "owner-a"
