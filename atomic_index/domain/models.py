"""
Domain models for the atomic index repository.

Defines the indexed record and its closed status enumeration. The indexing
logic only looks at `id`, `owner_id`, `sequence`, and `status`; the payload
fields travel inside the serialized blob untouched.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_FEE_PRICE = 20_000_000_000
DEFAULT_FEE_LIMIT = 21_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str | "RecordStatus") -> "RecordStatus":
        """
        Resolve a status from its name, case-insensitively.

        Raises
        ------
        ValueError
            If `value` does not name a known status.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"Invalid status '{value}'. Use: {valid}")


class Record(BaseModel):
    """
    A single indexed record as persisted under `record:{id}`.
    """

    id: str = Field(..., description="Globally unique identifier, immutable.")
    owner_id: str = Field(..., description="Grouping key (account/namespace).")
    sequence: int = Field(..., ge=0, description="Logical sequence number per owner.")
    status: RecordStatus = Field(RecordStatus.PENDING, description="Lifecycle status.")
    external_ref: Optional[str] = Field(None, description="Reference set after creation.")
    amount: Decimal = Field(..., description="Opaque payload amount.")
    fee_price: int = Field(DEFAULT_FEE_PRICE, ge=0, description="Opaque fee parameter.")
    fee_limit: int = Field(DEFAULT_FEE_LIMIT, ge=0, description="Opaque fee parameter.")
    destination: str = Field(..., description="Opaque payload destination.")
    data: Optional[str] = Field(None, description="Opaque payload data.")
    created_at: datetime = Field(..., description="Creation timestamp, immutable.")
    updated_at: datetime = Field(..., description="Set on every mutation.")
    version: int = Field(0, ge=0, description="Incremented on every committed write.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "arbitrary_types_allowed": False,
    }

    @classmethod
    def new(
        cls,
        owner_id: str,
        sequence: int,
        destination: str,
        amount: Decimal | int | str,
        fee_price: int = DEFAULT_FEE_PRICE,
        fee_limit: int = DEFAULT_FEE_LIMIT,
    ) -> "Record":
        """Build a fresh pending record with a random id."""
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            sequence=sequence,
            status=RecordStatus.PENDING,
            external_ref=None,
            amount=Decimal(str(amount)),
            fee_price=fee_price,
            fee_limit=fee_limit,
            destination=destination,
            data=None,
            created_at=now,
            updated_at=now,
            version=0,
        )

    def with_changes(self, **changes: Any) -> "Record":
        """
        Return a validated copy with `changes` applied and `updated_at` refreshed.

        Raises
        ------
        pydantic.ValidationError
            If the changed fields break the model (e.g. a negative sequence).
        """
        if "status" in changes:
            changes["status"] = RecordStatus.parse(changes["status"])
        changes.setdefault("updated_at", utcnow())
        return self.model_validate({**self.model_dump(), **changes})


__all__ = ["Record", "RecordStatus", "utcnow", "DEFAULT_FEE_PRICE", "DEFAULT_FEE_LIMIT"]
