"""
Ingestion and Enrichment CLI Commands
=====================================

CLI commands for loading wine lists and running the enrichment chain.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from wine_pipeline.core.errors import NotFoundError, WinePipelineError
from wine_pipeline.db.engine import get_session, init_db
from wine_pipeline.enrichment.daemon import EnrichmentDaemon
from wine_pipeline.enrichment.engine import get_enrichment_engine
from wine_pipeline.ingestion.pipeline import IngestionResult
from wine_pipeline.ingestion.settings import get_default_settings
from wine_pipeline.services.wine_list_service import WineListService

console = Console()
ingest_app = typer.Typer(help="Wine list ingestion commands")
enrich_app = typer.Typer(help="Enrichment commands")


async def _ingest(
    text: str | None,
    path: Path | None,
    uploaded_by: str,
    restaurant_id: str | None,
    auto_enrich: bool,
) -> tuple[IngestionResult, dict | None]:
    """Ingest, then enrich the kickoff slice in the same event loop."""
    engine = get_enrichment_engine()
    with get_session() as session:
        service = WineListService(session, ai_client=engine.ai_client, engine=engine)
        if path is not None:
            result = await service.ingest_file(
                path.name,
                path.read_bytes(),
                uploaded_by,
                restaurant_id=restaurant_id,
                auto_enrich=False,
            )
        else:
            result = await service.ingest(
                text or "",
                uploaded_by,
                restaurant_id=restaurant_id,
                auto_enrich=False,
            )

    kickoff = result.new_wine_ids[: service.settings.ingestion.auto_enrich_count]
    if not auto_enrich or not kickoff:
        return result, None

    batch = await engine.enrich_batch(wine_ids=kickoff)
    return result, batch.to_dict()


def _run_ingestion(
    text: str | None,
    path: Path | None,
    uploaded_by: str,
    restaurant_id: str | None,
    auto_enrich: bool,
) -> None:
    init_db()
    try:
        with console.status("[bold blue]Ingesting...[/bold blue]"):
            result, batch = asyncio.run(
                _ingest(text, path, uploaded_by, restaurant_id, auto_enrich)
            )
    except WinePipelineError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _display_ingestion_result(result.to_dict())
    if batch is not None:
        _display_batch_result(batch)


@ingest_app.command("file")
def ingest_file(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="A .txt or .csv wine list"),
    uploaded_by: str = typer.Option(..., "--by", "-b", help="Id of the uploading user"),
    restaurant: Optional[str] = typer.Option(None, "--restaurant", "-r", help="Restaurant ID"),
    enrich: bool = typer.Option(True, "--enrich/--no-enrich", help="Enrich the first new wines"),
) -> None:
    """
    Ingest a wine list file.

    Examples:
        wine-pipeline ingest file list.txt --by alice --restaurant bistro-1
        wine-pipeline ingest file list.csv -b alice --no-enrich
    """
    _run_ingestion(None, path, uploaded_by, restaurant, enrich)


@ingest_app.command("text")
def ingest_text(
    text: str = typer.Argument(..., help="Wine list text; separate wines with newlines"),
    uploaded_by: str = typer.Option(..., "--by", "-b", help="Id of the uploading user"),
    restaurant: Optional[str] = typer.Option(None, "--restaurant", "-r", help="Restaurant ID"),
    enrich: bool = typer.Option(True, "--enrich/--no-enrich", help="Enrich the first new wines"),
) -> None:
    """
    Ingest wine list text given on the command line.

    Examples:
        wine-pipeline ingest text "Barolo, Giacomo Conterno, 2015, Piemonte" -b alice
    """
    _run_ingestion(text, None, uploaded_by, restaurant, enrich)


@ingest_app.command("uploads")
def list_uploads(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of uploads to show"),
    restaurant: Optional[str] = typer.Option(None, "--restaurant", "-r", help="Restaurant ID"),
) -> None:
    """
    Show recent uploads.

    Examples:
        wine-pipeline ingest uploads --limit 5
    """
    init_db()
    with get_session() as session:
        uploads = WineListService(session).list_uploads(limit=limit, restaurant_id=restaurant)

    if not uploads:
        rprint("[yellow]No uploads yet[/yellow]")
        return

    table = Table(title="Recent Uploads")
    table.add_column("Started", style="dim")
    table.add_column("File")
    table.add_column("Restaurant")
    table.add_column("Status")
    table.add_column("Lines", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Duplicates", justify="right")
    table.add_column("Errors", justify="right")

    for upload in uploads:
        color = {"completed": "green", "failed": "red"}.get(upload.status.value, "blue")
        table.add_row(
            upload.created_at.strftime("%Y-%m-%d %H:%M"),
            upload.original_filename or "-",
            upload.restaurant_id or "-",
            f"[{color}]{upload.status.value}[/{color}]",
            str(upload.total_lines),
            str(upload.new_wines),
            str(upload.duplicates_found),
            str(upload.error_count),
        )

    console.print(table)


# Enrichment commands


@enrich_app.command("one")
def enrich_one(
    wine_id: str = typer.Argument(..., help="Wine ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-enrich a completed wine"),
) -> None:
    """
    Enrich one wine now.

    Examples:
        wine-pipeline enrich one 3f2b... --force
    """
    init_db()
    engine = get_enrichment_engine()
    try:
        with console.status("[bold blue]Enriching...[/bold blue]"):
            wine = asyncio.run(engine.enrich_wine(wine_id, force=force))
    except NotFoundError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    status = wine.enrichment_status.value
    color = "green" if status == "completed" else "red"
    rprint(f"\n[bold]{wine.display_name}[/bold]")
    rprint(f"  Status: [{color}]{status}[/{color}]")
    rprint(f"  Source: {wine.verified_source or 'N/A'}")
    rprint(f"  Verified: {'yes' if wine.verified else 'no'}")
    if wine.last_error:
        rprint(f"  Last error: {wine.last_error}")
    if wine.tasting_notes:
        rprint(f"\n{wine.tasting_notes}")

    if status != "completed":
        raise typer.Exit(1)


@enrich_app.command("batch")
def enrich_batch(
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum wines to enrich"),
    queue: bool = typer.Option(False, "--queue", help="Enqueue on the Redis worker instead"),
) -> None:
    """
    Enrich a batch of pending wines.

    Examples:
        wine-pipeline enrich batch --limit 5
        wine-pipeline enrich batch --queue
    """
    if queue:
        from wine_pipeline.enrichment.jobs import enqueue_enrichment

        rprint("[dim]Enqueueing enrichment job...[/dim]")
        try:
            job_id = asyncio.run(enqueue_enrichment(limit=limit))
        except OSError as e:
            rprint(f"\n[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running")
            raise typer.Exit(1)
        rprint("\n[green]Job enqueued successfully![/green]")
        rprint(f"Job ID: [bold]{job_id}[/bold]")
        return

    init_db()
    with console.status("[bold blue]Enriching...[/bold blue]"):
        result = asyncio.run(get_enrichment_engine().enrich_batch(limit=limit))
    _display_batch_result(result.to_dict())


@enrich_app.command("daemon")
def run_daemon(
    once: bool = typer.Option(False, "--once", help="Run a single poll and exit"),
) -> None:
    """
    Run the enrichment daemon in the foreground.

    Examples:
        wine-pipeline enrich daemon
        wine-pipeline enrich daemon --once
    """
    init_db()
    daemon = EnrichmentDaemon(config=get_default_settings().daemon)

    if once:
        processed = asyncio.run(daemon.run_once())
        rprint(f"Processed {processed} wine(s): "
               f"{daemon.processed_count} completed, {daemon.failed_count} failed")
        return

    async def _serve() -> None:
        daemon.start()
        try:
            while daemon.running:
                await asyncio.sleep(1)
        finally:
            await daemon.stop()

    rprint("[bold]Starting enrichment daemon...[/bold]")
    rprint("Press Ctrl+C to stop\n")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        rprint("\n[yellow]Daemon stopped[/yellow]")
    rprint(f"Completed: {daemon.processed_count}, failed: {daemon.failed_count}")


@enrich_app.command("worker")
def start_worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """
    Start the Redis job worker.

    The worker processes queued ingestion and enrichment jobs.

    Examples:
        wine-pipeline enrich worker
        wine-pipeline enrich worker --burst
    """
    from arq import run_worker

    from wine_pipeline.enrichment.jobs import WorkerSettings

    rprint("[bold]Starting worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")
    init_db()
    run_worker(WorkerSettings, burst=burst)


def _display_ingestion_result(result: dict) -> None:
    """Display an ingestion result."""
    rprint(f"\n[bold]{result['message']}[/bold]")
    rprint(f"  Upload: {result['upload_id']}")
    rprint(f"  Skipped lines: {result['skipped_count']}")
    rprint(f"  API calls saved: {result['api_calls_saved']}")
    rprint(f"  Wines in catalog: {result['total_in_database']}")
    rprint(f"  Time: {result['processing_time_ms']} ms")

    samples = result.get("sample_records", [])
    if samples:
        table = Table(title="Sample Records")
        table.add_column("Producer")
        table.add_column("Wine", style="bold")
        table.add_column("Vintage")
        table.add_column("Region")
        table.add_column("Type")
        for sample in samples:
            table.add_row(
                sample.get("producer") or "",
                sample.get("wine_name") or "",
                sample.get("vintage") or "",
                sample.get("region") or "",
                sample.get("wine_type") or "",
            )
        console.print(table)

    errors = result.get("errors", [])
    if errors:
        rprint(f"\n[bold red]Errors ({len(errors)}):[/bold red]")
        for error in errors[:10]:  # Show first 10
            rprint(f"  • {error}")
        if len(errors) > 10:
            rprint(f"  ... and {len(errors) - 10} more")


def _display_batch_result(result: dict) -> None:
    """Display an enrichment batch result."""
    rprint("\n[bold]Enrichment:[/bold]")
    rprint(f"  Completed: [green]{result['succeeded']}[/green]")
    rprint(f"  Failed: [red]{result['failed']}[/red]")
    rprint(f"  Skipped: {result['skipped']}")

    for outcome in result.get("outcomes", []):
        if outcome["success"]:
            rprint(f"  • {outcome['wine_id']}: {outcome['source']}")
        else:
            rprint(f"  • {outcome['wine_id']}: [red]{outcome['error']}[/red]")
