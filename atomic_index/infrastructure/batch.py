"""
Transactional batch executor for the atomic index repository.

A Batch is an ordered list of pre-computed key operations. The executor
queues the whole list on a MULTI/EXEC pipeline so the store applies all of it
or none of it. Values are computed before submission; nothing inside a batch
reads state.

Usage:
    batch = Batch()
    batch.set("record:1", blob)
    batch.sadd("owner:a:status:pending", "1")
    BatchExecutor(client).execute(batch)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Tuple, TypeVar

import redis
from redis.exceptions import RedisError, WatchError

from atomic_index.errors import RepositoryError, StoreConnectionError
from atomic_index.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class KeyOp:
    """One queued store command: `command(key, *args)`."""

    command: str
    key: str
    args: Tuple[Any, ...] = ()


class Batch:
    """Ordered, append-only list of key operations for one logical write."""

    def __init__(self) -> None:
        self._ops: List[KeyOp] = []

    def _append(self, command: str, key: str, *args: Any) -> "Batch":
        self._ops.append(KeyOp(command=command, key=key, args=tuple(args)))
        return self

    def set(self, key: str, value: str) -> "Batch":
        return self._append("set", key, value)

    def sadd(self, key: str, member: str) -> "Batch":
        return self._append("sadd", key, member)

    def srem(self, key: str, member: str) -> "Batch":
        return self._append("srem", key, member)

    def delete(self, key: str, *more_keys: str) -> "Batch":
        return self._append("delete", key, *more_keys)

    def incr(self, key: str, amount: int = 1) -> "Batch":
        return self._append("incrby", key, amount)

    def decr(self, key: str, amount: int = 1) -> "Batch":
        return self._append("decrby", key, amount)

    def expire(self, key: str, seconds: int) -> "Batch":
        return self._append("expire", key, seconds)

    @property
    def ops(self) -> List[KeyOp]:
        return list(self._ops)

    def __iter__(self) -> Iterator[KeyOp]:
        return iter(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    def __repr__(self) -> str:
        return f"Batch({len(self._ops)} ops)"


def _queue(pipe: "redis.client.Pipeline", batch: Batch) -> None:
    for op in batch:
        getattr(pipe, op.command)(op.key, *op.args)


class BatchExecutor:
    """
    Submit batches to the store as single MULTI/EXEC transactions.

    Holds no state beyond the client handle, so one executor may be shared by
    threads that share the client's pool.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    def execute(self, batch: Batch) -> None:
        """
        Apply `batch` atomically.

        Raises
        ------
        StoreConnectionError
            If the store fails before EXEC; nothing from the batch is applied.
        """
        if not batch:
            return
        try:
            with self._client.pipeline(transaction=True) as pipe:
                _queue(pipe, batch)
                pipe.execute()
        except RedisError as exc:
            log.error(
                "Batch failed to commit",
                extra={"ops": len(batch), "error": str(exc)},
            )
            raise StoreConnectionError(str(exc) or exc.__class__.__name__) from exc
        log.debug("Batch committed", extra={"ops": len(batch)})

    def execute_guarded(
        self,
        watch_key: str,
        plan: Callable[[Optional[str], Batch], T],
        conflict: Callable[[], RepositoryError],
    ) -> T:
        """
        Read `watch_key`, plan a batch from its value, and commit under WATCH.

        Parameters
        ----------
        watch_key : str
            Key whose modification between the read and EXEC aborts the commit.
        plan : callable
            Receives the current value of `watch_key` (or None) and an empty
            Batch to fill. Its return value is returned on success. Raising
            from `plan` aborts without applying anything.
        conflict : callable
            Builds the error raised when the watched key changed.

        Returns
        -------
        T
            Whatever `plan` returned.
        """
        batch = Batch()
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.watch(watch_key)
                current = pipe.get(watch_key)
                result = plan(current, batch)
                if not batch:
                    return result
                pipe.multi()
                _queue(pipe, batch)
                pipe.execute()
        except WatchError as exc:
            log.debug("Watched key changed before commit", extra={"key": watch_key})
            raise conflict() from exc
        except RedisError as exc:
            log.error(
                "Guarded batch failed to commit",
                extra={"key": watch_key, "ops": len(batch), "error": str(exc)},
            )
            raise StoreConnectionError(str(exc) or exc.__class__.__name__) from exc
        log.debug("Guarded batch committed", extra={"key": watch_key, "ops": len(batch)})
        return result


__all__ = ["KeyOp", "Batch", "BatchExecutor"]
