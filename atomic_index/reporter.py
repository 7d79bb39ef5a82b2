from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from atomic_index.domain.models import Record, RecordStatus


def _console(console: Optional[Console]) -> Console:
    return console or Console()


def print_record(record: Record, title: str = "Record", console: Optional[Console] = None) -> None:
    """Render every field of a record as a two-column table."""
    table = Table(title=title, box=box.ROUNDED, show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("ID", record.id)
    table.add_row("Owner", record.owner_id)
    table.add_row("Sequence", str(record.sequence))
    table.add_row("Status", record.status.value)
    table.add_row("Destination", record.destination)
    table.add_row("Amount", str(record.amount))
    table.add_row("Fee Price", str(record.fee_price))
    table.add_row("Fee Limit", str(record.fee_limit))
    if record.external_ref:
        table.add_row("External Ref", record.external_ref)
    if record.data:
        table.add_row("Data", record.data)
    table.add_row("Version", str(record.version))
    table.add_row("Created", record.created_at.isoformat())
    table.add_row("Updated", record.updated_at.isoformat())

    _console(console).print(table)


def print_records(
    records: Iterable[Record], title: str, console: Optional[Console] = None
) -> None:
    records = list(records)
    console = _console(console)
    if not records:
        console.print(f"[yellow]No records found ({title}).[/yellow]")
        return

    table = Table(title=f"{title} ({len(records)})", box=box.ROUNDED)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Sequence", justify="right", style="magenta")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Created", style="dim")
    for record in records:
        table.add_row(
            record.id,
            str(record.sequence),
            str(record.amount),
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


def print_stats(stats: Dict[str, int], console: Optional[Console] = None) -> None:
    """
    Render repository statistics, with a total row summing every status.
    """
    table = Table(title="Repository Statistics", box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="bold green")

    table.add_row("Owners", f"{stats.get('owners', 0):,}")
    total = 0
    for status in RecordStatus:
        count = stats.get(f"status_{status.value}", 0)
        total += count
        table.add_row(f"{status.value.capitalize()} records", f"{count:,}")
    table.add_row("Total records", f"{total:,}", style="bold")

    _console(console).print(table)


def print_benchmark(result: Dict[str, Any], console: Optional[Console] = None) -> None:
    table = Table(title="Benchmark Results", box=box.ROUNDED)
    table.add_column("Operations", justify="right", style="magenta")
    table.add_column("Successful", justify="right", style="green")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Ops/sec", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")

    mem_bytes = result.get("peak_rss_bytes") or 0
    table.add_row(
        f"{result.get('operations', 0):,}",
        f"{result.get('successes', 0):,}",
        f"{result.get('errors', 0):,}",
        f"{result.get('duration_seconds', 0.0):.3f}",
        f"{result.get('ops_per_sec', 0.0):,.2f}",
        f"{mem_bytes / (1024 * 1024):.2f}",
    )
    _console(console).print(table)


def print_race(result: Dict[str, Any], console: Optional[Console] = None) -> None:
    console = _console(console)

    table = Table(title="Race Test: Index Consistency", box=box.ROUNDED)
    table.add_column("Status", style="cyan")
    table.add_column("Records", justify="right", style="magenta")
    for status, count in result.get("per_status", {}).items():
        table.add_row(status, str(count))
    table.add_row("Total in indexes", str(result.get("total_in_indexes", 0)), style="bold")
    console.print(table)

    mode = "optimistic" if result.get("optimistic") else "last-writer-wins"
    console.print(
        f"Updates: {result.get('concurrent_updates', 0)} ({mode}) | "
        f"successful={result.get('successes', 0)} conflicts={result.get('conflicts', 0)} "
        f"errors={result.get('errors', 0)}"
    )
    console.print(
        f"Final status: {result.get('final_status')} "
        f"ref={result.get('final_external_ref') or 'None'} version={result.get('final_version')}"
    )
    if result.get("consistent"):
        console.print("[bold green]Index consistency preserved: record appears in exactly 1 status index[/bold green]")
    else:
        console.print(
            f"[bold red]Index consistency violated: record appears in "
            f"{result.get('total_in_indexes', 0)} status indexes[/bold red]"
        )


__all__ = ["print_record", "print_records", "print_stats", "print_benchmark", "print_race"]
