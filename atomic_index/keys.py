"""
Key scheme for the atomic index repository.

Pure mapping from logical identity to physical Redis keys:

    record:{id}                         serialized record
    lookup:{id}                         owner id of the record
    owners                              set of owner ids
    owner:{owner_id}:status:{status}    set of record ids (expiring)
    owner:{owner_id}:seq:{sequence}     single record id
    owner:{owner_id}:count              creation counter
"""

from __future__ import annotations

from atomic_index.domain.models import RecordStatus

OWNER_REGISTRY_KEY = "owners"


def primary(record_id: str) -> str:
    return f"record:{record_id}"


def reverse_owner(record_id: str) -> str:
    return f"lookup:{record_id}"


def owner_registry() -> str:
    return OWNER_REGISTRY_KEY


def status_set(owner_id: str, status: RecordStatus | str) -> str:
    return f"owner:{owner_id}:status:{RecordStatus.parse(status).value}"


def sequence_map(owner_id: str, sequence: int) -> str:
    return f"owner:{owner_id}:seq:{sequence}"


def owner_counter(owner_id: str) -> str:
    return f"owner:{owner_id}:count"


__all__ = [
    "OWNER_REGISTRY_KEY",
    "primary",
    "reverse_owner",
    "owner_registry",
    "status_set",
    "sequence_map",
    "owner_counter",
]
