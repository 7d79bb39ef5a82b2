"""
Seeding script for the atomic index repository.

Implements deterministic pseudo-random record generation and loads the records
through the repository, so every seeded record gets its full set of indexes.
A fraction of the records is then moved to a non-pending status.
"""

from __future__ import annotations

import random
import sys
import time
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

import typer

from atomic_index.domain.models import Record, RecordStatus
from atomic_index.infrastructure.redis_factory import get_client, wait_for_store
from atomic_index.repository import Repository

app = typer.Typer(help="Seed synthetic records (with indexes) into Redis.")

_TERMINAL_STATUSES = [RecordStatus.CONFIRMED, RecordStatus.FAILED, RecordStatus.CANCELLED]


@dataclass(frozen=True)
class SeedItem:
    record: Record
    target_status: Optional[RecordStatus]


def _generate_records(rows: int, owners: int, seed: int, advance_fraction: float) -> list[SeedItem]:
    rng = random.Random(seed)
    now = datetime.now(UTC)
    items: list[SeedItem] = []
    next_sequence: dict[str, int] = {}

    for _ in range(rows):
        owner_id = f"owner-{rng.randrange(max(owners, 1)):04d}"
        sequence = next_sequence.get(owner_id, 0)
        next_sequence[owner_id] = sequence + 1
        record = Record(
            id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
            owner_id=owner_id,
            sequence=sequence,
            status=RecordStatus.PENDING,
            amount=Decimal(rng.randint(1, 10_000)) * Decimal(10) ** 15,
            fee_price=rng.choice([10, 20, 30]) * 1_000_000_000,
            fee_limit=21_000,
            destination=f"0x{rng.getrandbits(160):040x}",
            created_at=now,
            updated_at=now,
        )
        target = rng.choice(_TERMINAL_STATUSES) if rng.random() < advance_fraction else None
        items.append(SeedItem(record=record, target_status=target))
    return items


def _load(repo: Repository, items: list[SeedItem]) -> int:
    advanced = 0
    for item in items:
        repo.create(item.record)
        if item.target_status is not None:
            repo.update(item.record.with_changes(status=item.target_status))
            advanced += 1
    return advanced


@app.command()
def main(
    rows: int = typer.Option(1_000, "--rows", "-r", help="Number of records to create."),
    owners: int = typer.Option(10, "--owners", help="Number of distinct owners."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    advance_fraction: float = typer.Option(
        0.3,
        "--advance-fraction",
        min=0.0,
        max=1.0,
        help="Fraction of records moved to a non-pending status after creation.",
    ),
    redis_url: str | None = typer.Option(None, "--redis-url", help="Optional Redis URL override."),
    clear: bool = typer.Option(False, "--clear", help="Drop all existing data first."),
) -> None:
    """
    Generate synthetic records and load them with their indexes.
    """
    client = get_client(redis_url)
    wait_for_store(client)
    repo = Repository(client)
    if clear:
        deleted = repo.drop_all()
        typer.echo(f"Cleared {deleted} keys.")

    start = time.perf_counter()
    items = _generate_records(rows, owners=owners, seed=seed, advance_fraction=advance_fraction)
    typer.echo(f"Seeding {rows:,} records across {owners} owners (seed={seed})")
    advanced = _load(repo, items)
    duration = time.perf_counter() - start
    typer.echo(
        f"Seeded {rows:,} records ({advanced:,} advanced) in {duration:.2f}s "
        f"({rows / duration if duration else 0:,.0f} records/s)."
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
