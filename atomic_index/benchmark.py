"""
Benchmark and race-test drivers for the repository.

Usage (example from CLI):
    from atomic_index.benchmark import run_benchmark, run_race_test

    factory = lambda: Repository.from_url(url)
    result = run_benchmark(factory, count=1_000, owners=10, concurrency=8)
    race = run_race_test(factory, concurrent_updates=20)

Both drivers fan work out over a thread pool; every worker builds its own
repository so each holds its own connection, like independent clients would.
"""

from __future__ import annotations

import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from atomic_index.config import get_settings
from atomic_index.domain.models import Record, RecordStatus
from atomic_index.errors import RepositoryError, VersionConflictError
from atomic_index.repository import Repository
from atomic_index.utils.logging import get_logger
from atomic_index.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

RepositoryFactory = Callable[[], Repository]

RACE_OWNER_ID = "race-test-owner"
RACE_SEQUENCE = 999
_STATUS_CYCLE = [
    RecordStatus.PENDING,
    RecordStatus.CONFIRMED,
    RecordStatus.FAILED,
    RecordStatus.CANCELLED,
]


def _round_float(value: float, decimals: int = 2) -> float:
    """Round a float to specified decimal places for human-readable output."""
    return round(value, decimals)


def _merge_profile(result: Dict[str, Any], stats: ProfileStats) -> Dict[str, Any]:
    result["duration_seconds"] = _round_float(stats.duration_seconds, 4)
    result["peak_rss_bytes"] = stats.peak_rss_bytes
    result["cpu_percent"] = _round_float(stats.cpu_percent, 1) if stats.cpu_percent else None
    return result


def run_benchmark(
    repo_factory: RepositoryFactory,
    count: Optional[int] = None,
    owners: Optional[int] = None,
    concurrency: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Create `count` records across `owners` owner ids concurrently.

    Parameters
    ----------
    repo_factory : callable
        Builds a repository for each worker.
    count : int | None
        Records to create. Defaults to settings.benchmark_count.
    owners : int | None
        Distinct owner ids to spread records over. Defaults to settings.benchmark_owners.
    concurrency : int | None
        Worker threads. Defaults to settings.benchmark_concurrency.

    Returns
    -------
    dict
        operations, successes, errors, duration_seconds, ops_per_sec,
        peak_rss_bytes, cpu_percent.
    """
    settings = get_settings()
    count = count if count is not None else settings.benchmark_count
    owners = max(owners if owners is not None else settings.benchmark_owners, 1)
    concurrency = max(concurrency if concurrency is not None else settings.benchmark_concurrency, 1)

    def _create(i: int) -> bool:
        repo = repo_factory()
        record = Record.new(
            owner_id=f"bench-owner-{i % owners}",
            sequence=i,
            destination="0xbenchmark",
            amount="1000000000000000000",
        )
        try:
            repo.create(record)
            return True
        except RepositoryError as exc:
            log.warning("[BENCHMARK] create failed", extra={"index": i, "error": str(exc)})
            return False

    log.info(
        f"[BENCHMARK START] creating {count} records",
        extra={"count": count, "owners": owners, "concurrency": concurrency},
    )
    with profile_block("benchmark") as stats:
        with ThreadPoolExecutor(max_workers=concurrency) as pool:
            outcomes = list(pool.map(_create, range(count)))

    successes = sum(1 for ok in outcomes if ok)
    result: Dict[str, Any] = {
        "operations": count,
        "successes": successes,
        "errors": count - successes,
        "owners": owners,
        "concurrency": concurrency,
    }
    _merge_profile(result, stats)
    result["ops_per_sec"] = (
        _round_float(count / stats.duration_seconds) if stats.duration_seconds > 0 else 0.0
    )
    log.info("[BENCHMARK COMPLETE]", extra=result)
    return result


def run_race_test(
    repo_factory: RepositoryFactory,
    concurrent_updates: Optional[int] = None,
    max_delay_ms: int = 50,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Hammer one record with concurrent status updates and check index exclusivity.

    Each worker reads the record, picks status `i % 4` and an external ref,
    sleeps a random delay, then updates. Afterwards every status index of the
    race owner is listed (which repairs stale entries), then the status sets
    are checked directly for the id; `consistent` is True when exactly one
    holds it. The test record is deleted at the end, even on failure.
    """
    settings = get_settings()
    concurrent_updates = (
        concurrent_updates if concurrent_updates is not None else settings.race_concurrent_updates
    )
    rng = random.Random(seed)
    delays = [rng.uniform(0, max_delay_ms) / 1000.0 for _ in range(concurrent_updates)]

    repo = repo_factory()
    created = repo.create(
        Record.new(
            owner_id=RACE_OWNER_ID,
            sequence=RACE_SEQUENCE,
            destination="0xracetest",
            amount="1000000000000000000",
        )
    )
    log.info(f"[RACE START] {created.id}", extra={"record_id": created.id, "updates": concurrent_updates})

    def _update(i: int) -> str:
        worker_repo = repo_factory()
        try:
            current = worker_repo.get(created.id)
            changed = current.with_changes(
                status=_STATUS_CYCLE[i % len(_STATUS_CYCLE)],
                external_ref=f"0xrace{i:04x}",
            )
            time.sleep(delays[i])
            worker_repo.update(changed)
            return "success"
        except VersionConflictError:
            return "conflict"
        except RepositoryError as exc:
            log.warning("[RACE] update failed", extra={"index": i, "error": str(exc)})
            return "error"

    try:
        with profile_block("race-test") as stats:
            with ThreadPoolExecutor(max_workers=max(concurrent_updates, 1)) as pool:
                outcomes: List[str] = list(pool.map(_update, range(concurrent_updates)))

        final = repo.get(created.id)
        # Listing heals stale entries; the count below reads the sets themselves.
        for status in RecordStatus:
            repo.list_by_status(RACE_OWNER_ID, status)
        memberships = repo.status_memberships(RACE_OWNER_ID, created.id)
        per_status = {status.value: int(status in memberships) for status in RecordStatus}
        total_in_indexes = len(memberships)

        result: Dict[str, Any] = {
            "record_id": created.id,
            "concurrent_updates": concurrent_updates,
            "successes": outcomes.count("success"),
            "conflicts": outcomes.count("conflict"),
            "errors": outcomes.count("error"),
            "final_status": final.status.value,
            "final_external_ref": final.external_ref,
            "final_version": final.version,
            "per_status": per_status,
            "total_in_indexes": total_in_indexes,
            "consistent": total_in_indexes == 1,
            "optimistic": repo.optimistic,
        }
        _merge_profile(result, stats)
    finally:
        repo.delete(created.id)

    log.info("[RACE COMPLETE]", extra={"consistent": result["consistent"], "record_id": created.id})
    return result


__all__ = ["run_benchmark", "run_race_test", "RACE_OWNER_ID", "RACE_SEQUENCE"]
