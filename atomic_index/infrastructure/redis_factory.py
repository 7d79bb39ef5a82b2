"""
Redis client factory utilities for the atomic index repository.

Provides centralized management of Redis connection pools with proper
lifecycle management. The PoolManager singleton keeps one pool per URL and
ensures resources are released on application exit.

Includes retry logic for the start-up liveness probe using tenacity. Regular
repository operations are never retried; their failures surface as
StoreConnectionError through `translate_store_errors`.
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Dict, Generator, Optional

import redis
from redis.exceptions import RedisError, WatchError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from atomic_index.config import get_settings
from atomic_index.errors import StoreConnectionError
from atomic_index.utils.logging import get_logger

log = get_logger(__name__)


class PoolManager:
    """
    Thread-safe singleton for managing Redis connection pools.

    Handles lifecycle management with automatic cleanup via atexit hook.
    """

    _instance: Optional["PoolManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "PoolManager":
        """Create or return the singleton instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._pools: Dict[str, redis.ConnectionPool] = {}
                atexit.register(cls._instance.close_all)
            return cls._instance

    def get_pool(self, url: Optional[str] = None) -> redis.ConnectionPool:
        """
        Get or create the connection pool for `url`.

        Parameters
        ----------
        url : str, optional
            Redis URL. Defaults to settings.redis_url.

        Returns
        -------
        redis.ConnectionPool
            The managed pool instance.
        """
        settings = get_settings()
        effective_url = url or settings.redis_url
        with self._lock:
            pool = self._pools.get(effective_url)
            if pool is None:
                pool = redis.ConnectionPool.from_url(
                    effective_url,
                    decode_responses=True,
                    socket_timeout=settings.redis_socket_timeout,
                    socket_connect_timeout=settings.redis_socket_timeout,
                    max_connections=settings.redis_max_connections,
                )
                self._pools[effective_url] = pool
            return pool

    def close_all(self) -> None:
        """
        Disconnect all managed pools.

        This is called automatically on exit via atexit hook.
        """
        with self._lock:
            for url, pool in list(self._pools.items()):
                try:
                    pool.disconnect()
                except RedisError as exc:
                    log.warning("Failed to disconnect pool", extra={"url": url, "error": str(exc)})
            self._pools.clear()


def get_client(url: Optional[str] = None) -> redis.Redis:
    """
    Build a Redis client backed by the managed pool for `url`.

    Clients are cheap; each caller (thread, task, process) may hold its own.
    """
    return redis.Redis(connection_pool=PoolManager().get_pool(url))


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)),
    reraise=True,
)
def _ping(client: redis.Redis) -> bool:
    return bool(client.ping())


def wait_for_store(client: redis.Redis) -> bool:
    """
    Probe the store with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection
    errors. Use this at start-up only.

    Raises
    ------
    StoreConnectionError
        If the store does not answer after all retry attempts.
    """
    with translate_store_errors():
        return _ping(client)


@contextmanager
def translate_store_errors() -> Generator[None, None, None]:
    """
    Re-raise driver errors as StoreConnectionError.

    WatchError passes through untouched; optimistic callers translate it into
    their own conflict error.
    """
    try:
        yield
    except WatchError:
        raise
    except RedisError as exc:
        raise StoreConnectionError(str(exc) or exc.__class__.__name__) from exc


__all__ = [
    "PoolManager",
    "get_client",
    "wait_for_store",
    "translate_store_errors",
]
