"""Wine Pipeline CLI using Typer."""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from wine_pipeline import __version__
from wine_pipeline.cli.ingest import enrich_app, ingest_app

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

console = Console()
app = typer.Typer(
    name="wine-pipeline",
    help="Wine Pipeline - wine list ingestion, deduplication and enrichment",
    add_completion=False,
)
app.add_typer(ingest_app, name="ingest")
app.add_typer(enrich_app, name="enrich")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _check_ai_config() -> None:
    """Check and display AI configuration status."""
    anthropic_key = os.environ.get("ANTHROPIC_API_KEY", "")
    openai_key = os.environ.get("OPENAI_API_KEY", "")
    provider = os.environ.get("AI_PROVIDER", "anthropic").lower()

    if provider == "anthropic" and anthropic_key and anthropic_key != "your-anthropic-api-key-here":
        typer.echo("  AI Provider: Anthropic (configured)")
    elif provider == "openai" and openai_key and openai_key != "your-openai-api-key-here":
        typer.echo("  AI Provider: OpenAI (configured)")
    else:
        typer.echo("  AI Provider: Not configured (pattern extraction and knowledge base only)")
        typer.echo("  Tip: Set ANTHROPIC_API_KEY in .env file to enable LLM extraction and research")


@app.command()
def run(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(
        False, "--reload", "-r", help="Enable auto-reload for development"
    ),
) -> None:
    """Start the Wine Pipeline API server."""
    import uvicorn

    typer.echo(f"Starting Wine Pipeline on http://{host}:{port}")
    _check_ai_config()
    typer.echo("Press Ctrl+C to stop the server")
    typer.echo("")

    uvicorn.run(
        "wine_pipeline.web.app:app",
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def init_db(
    migrate: bool = typer.Option(False, "--migrate", help="Run Alembic migrations instead"),
) -> None:
    """Initialize the database (create tables)."""
    from wine_pipeline.db.engine import init_db as db_init
    from wine_pipeline.db.engine import run_migrations

    typer.echo("Initializing database...")
    if migrate:
        run_migrations()
    else:
        db_init()
    typer.echo("Database initialized successfully!")


@app.command()
def version() -> None:
    """Show the Wine Pipeline version."""
    typer.echo(f"Wine Pipeline v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from wine_pipeline.db.engine import get_database_url
    from wine_pipeline.ingestion.settings import get_default_settings

    typer.echo("Wine Pipeline Configuration")
    typer.echo("=" * 40)

    # Check .env file
    env_found = False
    for _env_path in _env_paths:
        if _env_path.exists():
            typer.echo(f"  .env file: {_env_path}")
            env_found = True
            break
    if not env_found:
        typer.echo("  .env file: Not found")

    _check_ai_config()

    verification_url = os.environ.get("VERIFICATION_API_URL")
    typer.echo(f"  Verification service: {verification_url or 'Not configured'}")
    typer.echo(f"  Database: {get_database_url()}")

    settings = get_default_settings()
    typer.echo(f"  Duplicate threshold: {settings.matching.duplicate_threshold}")
    typer.echo(f"  Auto-enrich count: {settings.ingestion.auto_enrich_count}")
    typer.echo(f"  Batch ceiling: {settings.enrichment.batch_ceiling}")
    typer.echo(f"  Daemon interval: {settings.daemon.poll_interval_seconds}s")


@app.command()
def stats(
    restaurant: Optional[str] = typer.Option(None, "--restaurant", "-r", help="Restaurant ID"),
) -> None:
    """Show catalog enrichment statistics."""
    from wine_pipeline.db.engine import get_session, init_db as db_init
    from wine_pipeline.db.repositories import WineRepository

    db_init()
    with get_session() as session:
        result = WineRepository(session).get_stats(restaurant)

    table = Table(title="Wine Catalog" if restaurant is None else f"Wine List: {restaurant}")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Total", str(result.total))
    table.add_row("Enriched", f"[green]{result.enriched}[/green]")
    table.add_row("Premium", str(result.premium))
    table.add_row("Pending", f"[yellow]{result.pending}[/yellow]")
    table.add_row("Processing", f"[blue]{result.processing}[/blue]")
    table.add_row("Failed", f"[red]{result.failed}[/red]")
    table.add_row("Complete", f"{result.completion_percentage}%")
    console.print(table)


@app.command()
def wines(
    restaurant: Optional[str] = typer.Option(None, "--restaurant", "-r", help="Restaurant ID"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Words to search for"),
    status: Optional[str] = typer.Option(None, "--status", help="pending, processing, completed or failed"),
    sort: str = typer.Option("newest", "--sort", help="newest, oldest, name, producer or vintage"),
    page: int = typer.Option(1, "--page", min=1),
    page_size: int = typer.Option(25, "--page-size", min=1, max=200),
) -> None:
    """List catalog wines."""
    from wine_pipeline.core.enums import EnrichmentStatus, WineSort
    from wine_pipeline.core.schema import WineListQuery
    from wine_pipeline.db.engine import get_session, init_db as db_init
    from wine_pipeline.db.repositories import WineRepository

    try:
        query = WineListQuery(
            page=page,
            page_size=page_size,
            search=search,
            status_filter=EnrichmentStatus(status) if status else None,
            sort=WineSort(sort),
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    db_init()
    with get_session() as session:
        result = WineRepository(session).list_wines(restaurant, query)

    table = Table(title=f"Wines (page {result.page} of {result.total_pages}, {result.total} total)")
    table.add_column("ID", style="dim")
    table.add_column("Producer")
    table.add_column("Wine", style="bold")
    table.add_column("Vintage")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Source")

    for wine in result.items:
        table.add_row(
            str(wine.id)[:8],
            wine.producer,
            wine.wine_name,
            wine.vintage,
            wine.wine_type.value if wine.wine_type else "",
            wine.enrichment_status.value,
            wine.verified_source or "",
        )
    console.print(table)


@app.command()
def duplicates() -> None:
    """Report catalog records that look like the same wine."""
    from wine_pipeline.db.engine import get_session, init_db as db_init
    from wine_pipeline.db.repositories import WineRepository
    from wine_pipeline.ingestion.matcher import SimilarityMatcher
    from wine_pipeline.ingestion.settings import get_default_settings

    db_init()
    with get_session() as session:
        matcher = SimilarityMatcher.from_config(session, get_default_settings().matching)
        groups = matcher.find_duplicate_groups()
        repo = WineRepository(session)
        labelled = [
            [repo.get_by_id(wine_id) for wine_id in group]
            for group in groups
        ]

    if not labelled:
        console.print("[green]No duplicate groups found[/green]")
        return

    for index, group in enumerate(labelled, start=1):
        console.print(f"\n[bold]Group {index}[/bold]")
        for wine in group:
            if wine is not None:
                console.print(f"  • {wine.display_name} [dim]({wine.id})[/dim]")


if __name__ == "__main__":
    app()
