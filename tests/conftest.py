"""
Pytest configuration for the atomic index repository.

Provides fixtures for:
- An in-process fake store client with MULTI/EXEC and WATCH semantics
- Repositories bound to the fake store (last-writer-wins and optimistic)
- A real Redis connection for integration tests
"""

from __future__ import annotations

import os
import threading
from typing import Any, Dict, Generator, List, Optional, Set, Tuple

import pytest
import redis
from redis.exceptions import ResponseError, WatchError

from atomic_index.config import Settings
from atomic_index.repository import Repository


class FakeRedis:
    """
    Minimal thread-safe stand-in for `redis.Redis(decode_responses=True)`.

    Strings and counters are stored as str, sets as set[str]. Each write bumps
    a per-key revision that WATCH compares at EXEC time.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = {}
        self._ttl: Dict[str, int] = {}
        self._revisions: Dict[str, int] = {}
        self.fail_next_execute: Optional[Exception] = None
        self.fail_reads: Optional[Exception] = None
        self.executed: List[List[Tuple[str, Tuple[Any, ...]]]] = []

    # -- helpers
    def _touch(self, key: str) -> None:
        self._revisions[key] = self._revisions.get(key, 0) + 1

    def revision(self, key: str) -> int:
        with self._lock:
            return self._revisions.get(key, 0)

    def _check_reads(self) -> None:
        if self.fail_reads is not None:
            raise self.fail_reads

    def _set_of(self, key: str) -> Set[str]:
        value = self._data.get(key)
        if value is None:
            return set()
        if not isinstance(value, set):
            raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")
        return value

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._data)

    # -- reads
    def ping(self) -> bool:
        self._check_reads()
        return True

    def get(self, key: str) -> Optional[str]:
        self._check_reads()
        with self._lock:
            value = self._data.get(key)
            if isinstance(value, set):
                raise ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")
            return value

    def exists(self, *keys: str) -> int:
        self._check_reads()
        with self._lock:
            return sum(1 for key in keys if key in self._data)

    def smembers(self, key: str) -> Set[str]:
        self._check_reads()
        with self._lock:
            return set(self._set_of(key))

    def sismember(self, key: str, member: str) -> bool:
        self._check_reads()
        with self._lock:
            return member in self._set_of(key)

    def scard(self, key: str) -> int:
        self._check_reads()
        with self._lock:
            return len(self._set_of(key))

    def ttl(self, key: str) -> int:
        with self._lock:
            if key not in self._data:
                return -2
            return self._ttl.get(key, -1)

    # -- writes
    def set(self, key: str, value: Any) -> bool:
        with self._lock:
            self._data[key] = str(value)
            self._ttl.pop(key, None)
            self._touch(key)
            return True

    def sadd(self, key: str, *members: str) -> int:
        with self._lock:
            current = self._set_of(key)
            added = len(set(members) - current)
            self._data[key] = current | set(members)
            self._touch(key)
            return added

    def srem(self, key: str, *members: str) -> int:
        with self._lock:
            current = self._set_of(key)
            removed = len(current & set(members))
            remaining = current - set(members)
            if remaining:
                self._data[key] = remaining
            elif key in self._data:
                del self._data[key]
                self._ttl.pop(key, None)
            self._touch(key)
            return removed

    def delete(self, *keys: str) -> int:
        with self._lock:
            count = 0
            for key in keys:
                if key in self._data:
                    del self._data[key]
                    self._ttl.pop(key, None)
                    count += 1
                self._touch(key)
            return count

    def incrby(self, key: str, amount: int = 1) -> int:
        with self._lock:
            value = int(self._data.get(key, "0")) + amount
            self._data[key] = str(value)
            self._touch(key)
            return value

    def decrby(self, key: str, amount: int = 1) -> int:
        return self.incrby(key, -amount)

    def expire(self, key: str, seconds: int) -> bool:
        with self._lock:
            if key not in self._data:
                return False
            self._ttl[key] = int(seconds)
            return True

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    _QUEUEABLE = ("set", "sadd", "srem", "delete", "incrby", "decrby", "expire", "get")

    def __init__(self, store: FakeRedis) -> None:
        self._store = store
        self._queue: List[Tuple[str, Tuple[Any, ...]]] = []
        self._watched: Dict[str, int] = {}
        self._immediate = False

    def __enter__(self) -> "FakePipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.reset()
        return False

    def reset(self) -> None:
        self._queue.clear()
        self._watched.clear()
        self._immediate = False

    def watch(self, *keys: str) -> None:
        self._immediate = True
        for key in keys:
            self._watched[key] = self._store.revision(key)

    def multi(self) -> None:
        self._immediate = False

    def __getattr__(self, name: str):
        if name not in self._QUEUEABLE:
            raise AttributeError(name)

        def _command(*args: Any) -> Any:
            if self._immediate:
                return getattr(self._store, name)(*args)
            self._queue.append((name, args))
            return self

        return _command

    def execute(self) -> List[Any]:
        store = self._store
        with store._lock:
            if store.fail_next_execute is not None:
                error, store.fail_next_execute = store.fail_next_execute, None
                self.reset()
                raise error
            for key, revision in self._watched.items():
                if store.revision(key) != revision:
                    self.reset()
                    raise WatchError("Watched variable changed.")
            results = [getattr(store, name)(*args) for name, args in self._queue]
            store.executed.append(list(self._queue))
        self.reset()
        return results


@pytest.fixture
def fake_store() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def repo(fake_store: FakeRedis) -> Repository:
    return Repository(fake_store, status_ttl_seconds=86_400, optimistic=False)


@pytest.fixture
def optimistic_repo(fake_store: FakeRedis) -> Repository:
    return Repository(fake_store, status_ttl_seconds=86_400, optimistic=True)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        redis_url=os.getenv("REDIS_URL", "redis://127.0.0.1:6379/15"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def redis_available(test_settings: Settings) -> bool:
    """
    Check if Redis is reachable.

    Used to conditionally skip integration tests when Redis is not available.
    """
    client = redis.Redis.from_url(test_settings.redis_url, socket_connect_timeout=2)
    try:
        return bool(client.ping())
    except redis.exceptions.RedisError:
        return False
    finally:
        client.close()


@pytest.fixture
def redis_client(
    test_settings: Settings, redis_available: bool
) -> Generator[redis.Redis, None, None]:
    """
    Provide a client on a dedicated, flushed database for integration tests.

    Skips tests if Redis is not available.
    """
    if not redis_available:
        pytest.skip("Redis not available for integration tests")

    client = redis.Redis.from_url(test_settings.redis_url, decode_responses=True)
    client.flushdb()
    try:
        yield client
    finally:
        client.flushdb()
        client.close()
