from time import sleep

import pytest
from redis.exceptions import ResponseError

from atomic_index import config
from atomic_index.domain.models import RecordStatus
from atomic_index.errors import StoreConnectionError
from atomic_index.infrastructure import redis_factory
from atomic_index.repository import Repository
from atomic_index.utils import profiler
from scripts import seed_records


def test_get_settings_defaults():
    settings = config.Settings(_env_file=None)
    assert settings.redis_url.startswith("redis://")
    assert settings.status_index_ttl_seconds == 86_400
    assert settings.redis_socket_timeout > 0
    assert settings.optimistic_writes is False
    assert settings.benchmark_count > 0
    assert settings.benchmark_concurrency > 0


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("STATUS_INDEX_TTL_SECONDS", "60")
    monkeypatch.setenv("OPTIMISTIC_WRITES", "1")
    settings = config.Settings(_env_file=None)
    assert settings.status_index_ttl_seconds == 60
    assert settings.optimistic_writes is True


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_seed_generation_is_deterministic():
    first = seed_records._generate_records(20, owners=3, seed=123, advance_fraction=0.5)
    second = seed_records._generate_records(20, owners=3, seed=123, advance_fraction=0.5)

    assert [item.record.id for item in first] == [item.record.id for item in second]
    assert all(item.record.status is RecordStatus.PENDING for item in first)
    assert len({item.record.owner_id for item in first}) <= 3
    pairs = {(item.record.owner_id, item.record.sequence) for item in first}
    assert len(pairs) == 20


def test_seed_load_indexes_every_record(fake_store):
    items = seed_records._generate_records(15, owners=2, seed=1, advance_fraction=0.4)
    repo = Repository(fake_store)

    advanced = seed_records._load(repo, items)

    stats = repo.stats()
    assert sum(v for k, v in stats.items() if k.startswith("status_")) == 15
    assert stats["status_pending"] == 15 - advanced


def test_wait_for_store_answers(fake_store):
    assert redis_factory.wait_for_store(fake_store) is True


def test_wait_for_store_translates_non_transient_errors(fake_store):
    fake_store.fail_reads = ResponseError("NOAUTH Authentication required")
    with pytest.raises(StoreConnectionError):
        redis_factory.wait_for_store(fake_store)
