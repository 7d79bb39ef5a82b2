from __future__ import annotations

import sys
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Generator, Optional

import typer

from atomic_index.benchmark import run_benchmark, run_race_test
from atomic_index.config import get_settings
from atomic_index.domain.models import DEFAULT_FEE_LIMIT, DEFAULT_FEE_PRICE, Record, RecordStatus
from atomic_index.errors import (
    AlreadyExistsError,
    InvalidStatusTransitionError,
    NotFoundError,
    RepositoryError,
    SerializationError,
    StoreConnectionError,
    VersionConflictError,
)
from atomic_index.infrastructure.redis_factory import get_client, wait_for_store
from atomic_index.reporter import print_benchmark, print_race, print_record, print_records, print_stats
from atomic_index.repository import Repository
from atomic_index.utils.logging import configure_logging

app = typer.Typer(help="Atomic index repository CLI.")

EXIT_CODES = (
    (StoreConnectionError, 3),
    (NotFoundError, 4),
    (AlreadyExistsError, 5),
    (SerializationError, 6),
    (VersionConflictError, 7),
    (InvalidStatusTransitionError, 8),
)


def exit_code_for(exc: RepositoryError) -> int:
    for error_type, code in EXIT_CODES:
        if isinstance(exc, error_type):
            return code
    return 1


@contextmanager
def _handle_errors() -> Generator[None, None, None]:
    try:
        yield
    except RepositoryError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=exit_code_for(exc)) from exc


def _parse_status(value: str) -> RecordStatus:
    try:
        return RecordStatus.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _repository(ctx: typer.Context, optimistic: Optional[bool] = None) -> Repository:
    return Repository(get_client(ctx.obj["redis_url"]), optimistic=optimistic)


@app.callback()
def root(
    ctx: typer.Context,
    redis_url: Optional[str] = typer.Option(
        None, "--redis-url", "-u", help="Redis URL (default from REDIS_URL setting)."
    ),
) -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    ctx.obj = {"redis_url": redis_url or settings.redis_url}


@app.command()
def info(ctx: typer.Context) -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"REDIS={ctx.obj['redis_url']} | timeout={settings.redis_socket_timeout}s "
        f"status_ttl={settings.status_index_ttl_seconds}s optimistic={settings.optimistic_writes}"
    )


@app.command()
def create(
    ctx: typer.Context,
    owner_id: str = typer.Argument(..., help="Owner (grouping key) of the record."),
    sequence: int = typer.Argument(..., min=0, help="Sequence number within the owner."),
    destination: str = typer.Argument(...),
    amount: str = typer.Argument(...),
    fee_price: int = typer.Option(DEFAULT_FEE_PRICE, "--fee-price", min=0),
    fee_limit: int = typer.Option(DEFAULT_FEE_LIMIT, "--fee-limit", min=0),
) -> None:
    """
    Create a new pending record.
    """
    try:
        parsed_amount = Decimal(amount)
    except InvalidOperation as exc:
        raise typer.BadParameter(f"Invalid amount '{amount}'") from exc

    record = Record.new(owner_id, sequence, destination, parsed_amount, fee_price, fee_limit)
    with _handle_errors():
        created = _repository(ctx).create(record)
    typer.echo(f"Created record {created.id}")
    print_record(created, title="Created")


@app.command()
def get(ctx: typer.Context, record_id: str) -> None:
    """
    Show a record by id.
    """
    with _handle_errors():
        record = _repository(ctx).get(record_id)
    print_record(record)


@app.command()
def update(
    ctx: typer.Context,
    record_id: str,
    status: str = typer.Argument(..., help="pending, confirmed, failed or cancelled."),
    external_ref: Optional[str] = typer.Option(None, "--external-ref", "--hash"),
) -> None:
    """
    Set a record's status (and optionally its external reference).
    """
    new_status = _parse_status(status)
    with _handle_errors():
        updated = _repository(ctx).update_status(record_id, new_status, external_ref)
    typer.echo(f"Updated record {updated.id} to status: {updated.status.value}")


@app.command()
def list_by_status(ctx: typer.Context, owner_id: str, status: str) -> None:
    """
    List an owner's records with the given status.
    """
    parsed = _parse_status(status)
    with _handle_errors():
        records = _repository(ctx).list_by_status(owner_id, parsed)
    print_records(records, title=f"{parsed.value} records for {owner_id}")


@app.command()
def get_by_sequence(ctx: typer.Context, owner_id: str, sequence: int) -> None:
    """
    Show the record mapped to an owner's sequence number.
    """
    with _handle_errors():
        record = _repository(ctx).list_by_sequence(owner_id, sequence)
    if record is None:
        typer.echo(f"No record found for owner {owner_id} with sequence {sequence}")
        return
    print_record(record, title=f"Sequence {sequence}")


@app.command()
def delete(ctx: typer.Context, record_id: str) -> None:
    """
    Delete a record and its index entries.
    """
    with _handle_errors():
        _repository(ctx).delete(record_id)
    typer.echo(f"Deleted record {record_id}")


@app.command()
def stats(ctx: typer.Context) -> None:
    """
    Show owner count and per-status totals.
    """
    with _handle_errors():
        result = _repository(ctx).stats()
    print_stats(result)


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """
    Delete ALL records and indexes.
    """
    if not yes and not typer.confirm("Are you sure you want to clear ALL data?", default=False):
        typer.echo("Operation cancelled")
        return
    with _handle_errors():
        deleted = _repository(ctx).drop_all()
    typer.echo(f"All data cleared atomically ({deleted} keys)")


@app.command()
def benchmark(
    ctx: typer.Context,
    count: Optional[int] = typer.Option(None, "--count", "-n", min=0),
    owners: Optional[int] = typer.Option(None, "--owners", min=1),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1),
) -> None:
    """
    Create records concurrently and report throughput.
    """
    with _handle_errors():
        wait_for_store(get_client(ctx.obj["redis_url"]))
        result = run_benchmark(
            lambda: _repository(ctx), count=count, owners=owners, concurrency=concurrency
        )
    print_benchmark(result)


@app.command()
def race_test(
    ctx: typer.Context,
    concurrent_updates: Optional[int] = typer.Option(None, "--concurrent-updates", min=1),
    optimistic: bool = typer.Option(False, "--optimistic", help="Reject stale writes."),
) -> None:
    """
    Race concurrent status updates on one record and check index consistency.
    """
    with _handle_errors():
        wait_for_store(get_client(ctx.obj["redis_url"]))
        result = run_race_test(
            lambda: _repository(ctx, optimistic=optimistic or None),
            concurrent_updates=concurrent_updates,
        )
    print_race(result)
    if not result["consistent"]:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
