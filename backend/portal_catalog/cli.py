"""
Command line interface.

    portal-catalog discover [--full]   report new identifiers without admitting them
    portal-catalog add [--full]        discover and admit new identifiers
    portal-catalog sync [EXTERNAL_ID]  sync metadata of one or every dataset
    portal-catalog full                full discovery, admission and metadata sync
    portal-catalog stats               catalog counts and the last discovery run
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from portal_catalog.core.config import get_settings
from portal_catalog.core.logging import configure_logging
from portal_catalog.schemas.enums import SyncStatus
from portal_catalog.schemas.jobs import DiscoveryResult, DiscoveryRunResult, SyncAllResult
from portal_catalog.services.cache import close_cache
from portal_catalog.services.discovery_service import DiscoveryService
from portal_catalog.services.exceptions import NotFoundError
from portal_catalog.services.jobs import JobContext, run_discovery_job, run_sync_all_job, run_sync_one_job

app = typer.Typer(add_completion=False, no_args_is_help=True, help="Open-data portal catalog")
console = Console()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, help="Override LOG_LEVEL")) -> None:
    configure_logging(log_level or get_settings().log_level)


def _run(coro):
    async def wrapper():
        try:
            return await coro
        finally:
            await close_cache()

    return asyncio.run(wrapper())


def _print_discovery(result: DiscoveryResult) -> None:
    table = Table(title="Discovery", box=box.MINIMAL, show_header=True, header_style="bold")
    table.add_column("Strategy")
    table.add_column("Identifiers", justify="right")
    for name, count in result.strategies.items():
        table.add_row(name, str(count))
    for name in result.failed_strategies:
        table.add_row(f"[red]{name}[/red]", "failed")
    console.print(table)
    console.print(
        f"[bold]{result.total}[/bold] found, {result.known} known, "
        f"[bold green]{len(result.new_ids)}[/bold green] new in {result.duration_seconds}s"
    )


def _print_sync(summary: SyncAllResult) -> None:
    console.print(
        f"Metadata sync: [green]{summary.success} succeeded[/green], "
        f"[red]{summary.failed} failed[/red], {summary.skipped} skipped "
        f"of {summary.total} in {summary.duration_seconds}s"
    )


@app.command("discover")
def discover(full: bool = typer.Option(False, "--full", help="Run the full scan strategies too")) -> None:
    """Report identifiers not yet in the catalog."""
    context = JobContext()

    async def job() -> DiscoveryResult:
        async with context.client_factory() as client, context.session_factory() as db:
            return await DiscoveryService(db, client).find_new_datasets(full_scan=full)

    result = _run(job())
    _print_discovery(result)
    for external_id in result.new_ids:
        console.print(f"  {external_id}")


@app.command("add")
def add(full: bool = typer.Option(False, "--full", help="Run the full scan strategies too")) -> None:
    """Discover and admit new identifiers as PENDING datasets."""
    result: DiscoveryRunResult = _run(run_discovery_job(JobContext(), full_scan=full))
    _print_discovery(result.discovery)
    console.print(f"[bold green]OK[/bold green] {result.added} datasets added")


@app.command("sync")
def sync(external_id: Optional[str] = typer.Argument(None, help="Sync only this dataset")) -> None:
    """Refresh metadata and estimated record counts."""
    context = JobContext()
    if external_id is None:
        _print_sync(_run(run_sync_all_job(context)))
        return

    try:
        result = _run(run_sync_one_job(context, external_id))
    except NotFoundError as e:
        console.print(f"[bold red]ERROR[/bold red] {e.message}")
        raise typer.Exit(1)
    if result.status == SyncStatus.SUCCESS:
        console.print(
            f"[bold green]OK[/bold green] {result.external_id}: {result.name} "
            f"({result.category}), ~{result.estimated_record_count or 0} records"
        )
        return
    console.print(f"[bold red]FAILED[/bold red] {result.external_id}: {result.error}")
    raise typer.Exit(1)


@app.command("full")
def full() -> None:
    """Full discovery, admission and metadata sync in one go."""
    context = JobContext()

    async def job() -> tuple[DiscoveryRunResult, SyncAllResult]:
        discovery = await run_discovery_job(context, full_scan=True)
        summary = await run_sync_all_job(context)
        return discovery, summary

    discovery, summary = _run(job())
    _print_discovery(discovery.discovery)
    console.print(f"[bold green]OK[/bold green] {discovery.added} datasets added")
    _print_sync(summary)


@app.command("stats")
def stats() -> None:
    """Catalog counts by sync status and the last discovery run."""
    context = JobContext()

    async def job():
        async with context.session_factory() as db:
            return await DiscoveryService(db).get_stats()

    result = _run(job())
    table = Table(title="Catalog", box=box.MINIMAL, show_header=True, header_style="bold")
    table.add_column("Status")
    table.add_column("Datasets", justify="right")
    table.add_row("total", str(result.total))
    table.add_row("synced", str(result.synced))
    table.add_row("pending", str(result.pending))
    table.add_row("syncing", str(result.syncing))
    table.add_row("failed", str(result.failed))
    console.print(table)
    if result.last_discovery is not None:
        last = result.last_discovery
        console.print(
            f"Last discovery: {last.created_at:%Y-%m-%d %H:%M} {last.status}, "
            f"{last.records_count} found, {last.new_records} new"
        )


if __name__ == "__main__":
    app()
