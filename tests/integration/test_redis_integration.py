"""
Integration tests for the atomic index repository.

These tests run against a real Redis instance and verify that:
1. Writes land the record and every index entry in one transaction
2. Status moves leave the record in exactly one status set
3. Optimistic mode rejects stale writers
4. drop_all clears everything reachable from the owner registry

Run with: RUN_INTEGRATION_TESTS=1 pytest tests/integration/
"""

from __future__ import annotations

import os

import pytest

from atomic_index import keys
from atomic_index.benchmark import run_benchmark, run_race_test
from atomic_index.domain.models import Record, RecordStatus
from atomic_index.errors import AlreadyExistsError, NotFoundError, VersionConflictError
from atomic_index.repository import Repository

# Test configuration constants
OWNER = "integration-owner"
STATUS_TTL_SECONDS = 120
BENCHMARK_COUNT = 20
BENCHMARK_OWNERS = 3
BENCHMARK_CONCURRENCY = 4
RACE_UPDATES = 8

pytestmark = pytest.mark.skipif(
    os.getenv("RUN_INTEGRATION_TESTS", "0") != "1",
    reason="Integration tests require RUN_INTEGRATION_TESTS=1 and reachable Redis",
)


@pytest.fixture
def live_repo(redis_client) -> Repository:
    return Repository(redis_client, status_ttl_seconds=STATUS_TTL_SECONDS, optimistic=False)


class TestWrites:
    """Writes against a live store."""

    def test_create_writes_record_and_indexes(self, live_repo: Repository, redis_client):
        record = live_repo.create(Record.new(OWNER, 1, "0xabc", 5))

        assert live_repo.get(record.id) == record
        assert live_repo.owner_of(record.id) == OWNER
        assert redis_client.sismember(keys.status_set(OWNER, RecordStatus.PENDING), record.id)
        assert redis_client.get(keys.sequence_map(OWNER, 1)) == record.id
        assert live_repo.owner_count(OWNER) == 1
        assert 0 < redis_client.ttl(keys.status_set(OWNER, RecordStatus.PENDING)) <= STATUS_TTL_SECONDS

    def test_duplicate_create_is_rejected(self, live_repo: Repository):
        record = live_repo.create(Record.new(OWNER, 1, "0xabc", 5))
        with pytest.raises(AlreadyExistsError):
            live_repo.create(record)

    def test_status_move_updates_both_sets(self, live_repo: Repository, redis_client):
        record = live_repo.create(Record.new(OWNER, 2, "0xabc", 5))

        updated = live_repo.update_status(record.id, "confirmed", external_ref="0xfeed")

        assert updated.status is RecordStatus.CONFIRMED
        assert updated.external_ref == "0xfeed"
        assert not redis_client.sismember(keys.status_set(OWNER, RecordStatus.PENDING), record.id)
        assert [r.id for r in live_repo.list_by_status(OWNER, RecordStatus.CONFIRMED)] == [record.id]
        assert live_repo.list_by_status(OWNER, RecordStatus.PENDING) == []

    def test_delete_removes_everything(self, live_repo: Repository, redis_client):
        record = live_repo.create(Record.new(OWNER, 3, "0xabc", 5))

        live_repo.delete(record.id)

        with pytest.raises(NotFoundError):
            live_repo.get(record.id)
        assert redis_client.get(keys.sequence_map(OWNER, 3)) is None
        assert live_repo.list_by_sequence(OWNER, 3) is None
        assert live_repo.owner_count(OWNER) == 0

    def test_optimistic_update_rejects_stale_version(self, redis_client):
        repo = Repository(redis_client, optimistic=True)
        record = repo.create(Record.new(OWNER, 4, "0xabc", 5))

        repo.update(record.with_changes(status=RecordStatus.CONFIRMED))
        with pytest.raises(VersionConflictError):
            repo.update(record.with_changes(status=RecordStatus.FAILED))

        assert repo.get(record.id).status is RecordStatus.CONFIRMED


class TestBulk:
    """Aggregate and bulk operations."""

    def test_stats_and_drop_all(self, live_repo: Repository, redis_client):
        for sequence in range(3):
            live_repo.create(Record.new(OWNER, sequence, "0xabc", 1))

        stats = live_repo.stats()
        assert stats["owners"] == 1
        assert stats["status_pending"] == 3

        assert live_repo.drop_all() > 0
        assert redis_client.keys("*") == []

    def test_benchmark_creates_all_records(self, redis_client):
        result = run_benchmark(
            lambda: Repository(redis_client),
            count=BENCHMARK_COUNT,
            owners=BENCHMARK_OWNERS,
            concurrency=BENCHMARK_CONCURRENCY,
        )
        assert result["successes"] == BENCHMARK_COUNT
        assert result["errors"] == 0

    def test_race_test_preserves_index_consistency(self, redis_client):
        result = run_race_test(lambda: Repository(redis_client), concurrent_updates=RACE_UPDATES)
        assert result["consistent"] is True
        assert result["total_in_indexes"] == 1
