"""Wine Catalog CLI using Typer."""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer
from dotenv import load_dotenv
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from wine_catalog import __version__

# Load .env file from current directory or project root
_env_paths = [
    Path.cwd() / ".env",
    Path(__file__).parent.parent.parent / ".env",
]
for _env_path in _env_paths:
    if _env_path.exists():
        load_dotenv(_env_path)
        break

T = TypeVar("T")

console = Console()
app = typer.Typer(
    name="wine-catalog",
    help="Wine Catalog - turn restaurant wine lists into a deduplicated wine catalog",
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _check_ai_config() -> None:
    """Check and display AI configuration status."""
    from wine_catalog.config import get_default_config

    ai = get_default_config().ai
    if ai.configured:
        model = ai.model or "default model"
        rprint(f"  AI Provider: {ai.provider.value} ({model}) [green]configured[/green]")
    else:
        rprint("  AI Provider: [yellow]Not configured[/yellow] (uploads use basic extraction)")
        rprint(f"  Tip: Set {ai.provider.value.upper()}_API_KEY in .env to enable AI extraction")


def _run_cancellable(make_run: Callable[[asyncio.Event], Awaitable[T]]) -> T:
    """
    Run a pipeline coroutine, turning the first Ctrl+C into a
    cooperative cancel request.
    """

    async def runner() -> T:
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def request_cancel() -> None:
            if not cancel_event.is_set():
                rprint("\n[yellow]Cancelling after the current item...[/yellow]")
                cancel_event.set()

        try:
            loop.add_signal_handler(signal.SIGINT, request_cancel)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass
        try:
            return await make_run(cancel_event)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except NotImplementedError:
                pass

    return asyncio.run(runner())


@app.command()
def run(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(
        False, "--reload", "-r", help="Enable auto-reload for development"
    ),
) -> None:
    """Start the Wine Catalog API server."""
    import uvicorn

    rprint(f"Starting Wine Catalog on http://{host}:{port}")
    _check_ai_config()
    rprint("Press Ctrl+C to stop the server\n")

    uvicorn.run(
        "wine_catalog.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@app.command()
def init_db(
    migrate: bool = typer.Option(False, "--migrate", help="Use Alembic migrations"),
) -> None:
    """Initialize the database (create tables)."""
    from wine_catalog.db.engine import init_db as db_init
    from wine_catalog.db.engine import run_migrations

    rprint("Initializing database...")
    if migrate:
        run_migrations()
    else:
        db_init()
    rprint("[green]Database initialized successfully![/green]")


@app.command()
def version() -> None:
    """Show the Wine Catalog version."""
    rprint(f"Wine Catalog v{__version__}")


@app.command()
def check_config() -> None:
    """Check the current configuration status."""
    from wine_catalog.config import get_default_config
    from wine_catalog.core.errors import ConfigurationError
    from wine_catalog.db.engine import get_database_url

    rprint("[bold]Wine Catalog Configuration[/bold]")
    rprint("=" * 40)

    env_found = next((p for p in _env_paths if p.exists()), None)
    rprint(f"  .env file: {env_found or 'Not found'}")

    try:
        config = get_default_config()
    except (ConfigurationError, ValueError) as e:
        rprint(f"  Config: [red]invalid[/red] ({e})")
        raise typer.Exit(1)

    rprint(f"  Config file: {config.config_path or 'built-in defaults'}")
    _check_ai_config()
    rprint(f"  Database: {get_database_url()}")

    table = Table(title="Ingestion batch tiers")
    table.add_column("Lines above", justify="right")
    table.add_column("Batch size", justify="right")
    table.add_column("Item delay", justify="right")
    table.add_column("Batch pause", justify="right")
    for tier in config.ingestion.batch_tiers:
        table.add_row(
            str(tier.above),
            str(tier.batch_size),
            f"{tier.item_delay:.2f}s",
            f"{tier.batch_pause:.1f}s",
        )
    console.print(table)


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Wine-list text file"),
    restaurant_id: Optional[str] = typer.Option(
        None, "--restaurant-id", "-r", help="Associate wines with this restaurant"
    ),
    catalog_only: bool = typer.Option(
        False, "--catalog-only", help="Add to the catalog without restaurant association"
    ),
    enqueue: bool = typer.Option(False, "--enqueue", help="Queue as a background job"),
) -> None:
    """
    Ingest a wine list from a text file.

    Examples:
        wine-catalog ingest list.txt --restaurant-id=bistro-42
        wine-catalog ingest list.txt --catalog-only --enqueue
    """
    from wine_catalog.core.errors import RunAborted
    from wine_catalog.db.engine import init_db as db_init
    from wine_catalog.ingestion.jobs import build_pipeline, enqueue_ingestion

    text = file.read_text(encoding="utf-8")

    if enqueue:
        try:
            job_id = asyncio.run(enqueue_ingestion(text, restaurant_id, catalog_only))
        except Exception as e:
            rprint(f"[red]Error:[/red] Failed to enqueue job: {e}")
            rprint("\nMake sure Redis is running.")
            raise typer.Exit(1)
        rprint(f"[green]Job enqueued:[/green] [bold]{job_id}[/bold]")
        return

    db_init()
    pipeline = build_pipeline()
    rprint(f"[bold]Ingesting[/bold] {file}")
    if pipeline.extractor is None:
        rprint("[yellow]AI provider not configured; using basic extraction[/yellow]")

    try:
        report = _run_cancellable(
            lambda cancel: pipeline.run(
                text,
                restaurant_id=restaurant_id,
                catalog_only=catalog_only,
                cancel_event=cancel,
            )
        )
    except RunAborted as e:
        rprint(f"[red]Aborted:[/red] {e}")
        raise typer.Exit(1)

    if not report.success:
        rprint(f"[red]Error:[/red] {report.message}")
        raise typer.Exit(1)

    summary = report.to_dict()["stats"]
    rprint(f"\n[green]{report.message}[/green]")
    rprint(f"  Stored: {summary['processed']}")
    rprint(f"  Rejected (not wines): {summary['rejected']}")
    rprint(f"  Basic extraction used: {summary['fallbacks']}")
    rprint(f"  Errors: {summary['errors']}")
    rprint(f"  Catalog total: {summary['databaseTotal']}")
    rprint(f"  Elapsed: {summary['elapsedSeconds']:.1f}s")
    if report.sample:
        _print_wines(report.sample, title="Sample")


@app.command()
def enrich(
    limit: Optional[int] = typer.Option(
        None, "--limit", "-n", help="Maximum wines to attempt (default: all unverified)"
    ),
) -> None:
    """Generate tasting profiles for unverified catalog wines."""
    from wine_catalog.core.errors import ConfigurationError, RunAborted
    from wine_catalog.db.engine import init_db as db_init
    from wine_catalog.ingestion.jobs import build_enrichment

    db_init()
    try:
        scheduler = build_enrichment()
    except ConfigurationError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        stats = _run_cancellable(lambda cancel: scheduler.run(limit=limit, cancel_event=cancel))
    except RunAborted as e:
        rprint(f"[red]Aborted:[/red] {e}")
        raise typer.Exit(1)

    rprint(
        f"\n[green]Enrichment finished[/green]: {stats.accepted} accepted, "
        f"{stats.rejected} rejected, {stats.failed} failed "
        f"({stats.processed} attempted in {stats.elapsed_seconds:.1f}s)"
    )
    if stats.error:
        rprint(f"[yellow]Stopped early:[/yellow] {stats.error}")


@app.command()
def search(
    query: str = typer.Argument("", help="Free-text search"),
    page: int = typer.Option(1, "--page", "-p"),
    page_size: int = typer.Option(20, "--page-size", "-s"),
) -> None:
    """Search the catalog."""
    from wine_catalog.db.engine import init_db as db_init
    from wine_catalog.services.catalog_service import get_catalog_service

    db_init()
    result = get_catalog_service().list_wines(page=page, page_size=page_size, search=query)
    if not result.wines:
        rprint("[yellow]No wines found[/yellow]")
        return
    _print_wines(
        result.wines,
        title=f"Page {result.current_page}/{result.total_pages} ({result.total} wines)",
    )


@app.command()
def stats() -> None:
    """Show catalog verification statistics."""
    from wine_catalog.db.engine import init_db as db_init
    from wine_catalog.services.catalog_service import get_catalog_service

    db_init()
    summary = get_catalog_service().verification_stats()
    rprint(f"  Total wines: {summary.total_wines}")
    rprint(f"  Verified: {summary.verified_wines}")
    rprint(f"  Unverified: {summary.unverified_wines}")
    rprint(f"  Verification rate: {summary.verification_rate}%")


@app.command()
def worker(
    burst: bool = typer.Option(False, "--burst", help="Run in burst mode (exit when queue empty)"),
) -> None:
    """Start the background job worker."""
    from arq import run_worker

    from wine_catalog.ingestion.jobs import WorkerSettings

    rprint("[bold]Starting worker...[/bold]")
    rprint("Press Ctrl+C to stop\n")
    try:
        run_worker(WorkerSettings, burst=burst)
    except Exception as e:
        rprint(f"[red]Error:[/red] Worker failed: {e}")
        rprint("\nMake sure Redis is running.")
        raise typer.Exit(1)


def _print_wines(wines, title: str) -> None:
    table = Table(title=title)
    table.add_column("Name", style="bold")
    table.add_column("Vintage")
    table.add_column("Producer")
    table.add_column("Region")
    table.add_column("Verified")
    for wine in wines:
        table.add_row(
            wine.name,
            wine.vintage or "",
            wine.producer or "",
            wine.region or "",
            "[green]yes[/green]" if wine.verified else "no",
        )
    console.print(table)


if __name__ == "__main__":
    app()
