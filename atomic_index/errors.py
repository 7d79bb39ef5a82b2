"""Structured error types for the atomic index repository."""

from __future__ import annotations

from typing import Optional


class RepositoryError(Exception):
    """Base error for all repository errors."""


class StoreConnectionError(RepositoryError):
    """Raised when the store is unreachable, times out, or rejects a command."""


class NotFoundError(RepositoryError):
    """Raised when an operation targets an unknown record id."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record not found: {record_id}")


class AlreadyExistsError(RepositoryError):
    """Raised when creating a record whose id is already stored."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record already exists: {record_id}")


class SerializationError(RepositoryError):
    """Raised when a stored value cannot be decoded into a record."""


class InvalidStatusTransitionError(RepositoryError):
    """
    Reserved for status-transition enforcement.

    Status changes are currently accepted unconditionally, so no operation
    raises this.
    """

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid status transition from {from_status} to {to_status}")


class VersionConflictError(RepositoryError):
    """Raised in optimistic mode when a record changed between read and commit."""

    def __init__(
        self, record_id: str, expected: Optional[int] = None, actual: Optional[int] = None
    ) -> None:
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        if expected is not None and actual is not None:
            detail = f"expected version {expected}, found {actual}"
        else:
            detail = "modified concurrently"
        super().__init__(f"Version conflict on record {record_id}: {detail}")


__all__ = [
    "RepositoryError",
    "StoreConnectionError",
    "NotFoundError",
    "AlreadyExistsError",
    "SerializationError",
    "InvalidStatusTransitionError",
    "VersionConflictError",
]
