"""Command-line interface for TravelCMS.

This module provides a Typer-based CLI for operating the content store.

Commands:
- init: Create the database schema (optionally seeding starter content)
- status: Show configuration and row counts
- publish-scheduled: Publish scheduled posts that are due (cron entry point)
- metrics: List the exported Prometheus metrics

Example:
    $ travelcms init --seed
    $ travelcms status
    $ travelcms publish-scheduled
"""

from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from travelcms import __version__
from travelcms.blog import BlogStore
from travelcms.config import settings
from travelcms.database import Database
from travelcms.errors import TravelCMSError
from travelcms.logging import setup_logging
from travelcms.metrics import generate_metrics_output, registry
from travelcms.seed import seed_defaults
from travelcms.utils import format_iso, parse_datetime

# Initialize CLI app
app = typer.Typer(
    name="travelcms",
    help="Travel blog and business directory content store",
    add_completion=False,
)
console = Console()

DATABASE_URL_OPTION = typer.Option(
    None,
    "--database-url",
    "-d",
    help="SQLAlchemy database URL (defaults to DATABASE_URL or the data dir)",
)
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


# =============================================================================
# Helper Functions
# =============================================================================


def configure_logging(verbose: bool = False) -> None:
    """Reconfigure sinks for an interactive run."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_logs=settings.log_json,
        log_file=settings.log_file,
        colorize=not settings.log_json,
    )


def open_database(database_url: Optional[str]) -> Database:
    db = Database(database_url)
    db.initialize()
    return db


# =============================================================================
# CLI Commands
# =============================================================================


@app.command()
def init(
    seed: bool = typer.Option(
        True,
        "--seed/--no-seed",
        help="Insert the starter blog categories and tags",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Drop and recreate every table (destroys existing content)",
    ),
    database_url: Optional[str] = DATABASE_URL_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Create the database schema.

    Examples:
        # Create tables and starter content
        $ travelcms init

        # Start over from an empty schema
        $ travelcms init --force --no-seed
    """
    configure_logging(verbose)
    console.print("🏗️  [bold cyan]TravelCMS Initialization[/bold cyan]\n")

    try:
        db = open_database(database_url)
        try:
            if force:
                db.drop_all()
                db.create_all()
                console.print("♻️  Recreated all tables")
            console.print(f"✅ Schema ready at [yellow]{settings.redact_url(db.url)}[/yellow]")

            if seed:
                created = seed_defaults(db)
                console.print(
                    f"🌱 Seeded {created['blog_categories']} categories "
                    f"and {created['blog_tags']} tags"
                )
        finally:
            db.close()

        console.print("\n✅ [bold green]Initialization complete![/bold green]")

    except TravelCMSError as e:
        console.print(f"\n❌ [bold red]Initialization failed: {e.message}[/bold red]")
        raise typer.Exit(code=1)


@app.command()
def status(
    database_url: Optional[str] = DATABASE_URL_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Show configuration and row counts.

    Examples:
        $ travelcms status
    """
    configure_logging(verbose)
    console.print("📊 [bold cyan]TravelCMS Status[/bold cyan]\n")

    try:
        db = open_database(database_url)
        try:
            counts = db.table_counts()
        finally:
            db.close()
    except TravelCMSError as e:
        console.print(f"\n❌ [bold red]Status failed: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    config_table = Table(title="Configuration", show_header=False)
    config_table.add_column("Key", style="cyan")
    config_table.add_column("Value", style="yellow")
    config_table.add_row("Version", __version__)
    config_table.add_row("Environment", settings.environment.value)
    config_table.add_row("Database", settings.redact_url(db.url))
    config_table.add_row("Media Root", str(settings.media_root))
    config_table.add_row(
        "Page Sizes",
        f"posts {settings.posts_page_size}, "
        f"listings {settings.listings_page_size}, "
        f"media {settings.media_page_size}",
    )
    console.print(config_table)
    console.print()

    stats_table = Table(title="Content")
    stats_table.add_column("Table", style="cyan")
    stats_table.add_column("Rows", justify="right", style="green")
    for name, count in counts.items():
        stats_table.add_row(name, f"{count:,}")
    console.print(stats_table)


@app.command("publish-scheduled")
def publish_scheduled(
    now: Optional[str] = typer.Option(
        None,
        "--now",
        help="Reference time as ISO-8601 (defaults to the current time)",
    ),
    database_url: Optional[str] = DATABASE_URL_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Publish scheduled posts whose publication time has passed.

    Meant to be run from cron; nothing publishes scheduled posts in-process.

    Examples:
        $ travelcms publish-scheduled
        $ travelcms publish-scheduled --now 2025-01-01T00:00:00Z
    """
    configure_logging(verbose)

    try:
        reference: Optional[datetime] = parse_datetime(now)
    except ValueError:
        console.print(f"❌ [bold red]Invalid --now value: {now}[/bold red]")
        raise typer.Exit(code=2)

    try:
        db = open_database(database_url)
        try:
            published = BlogStore(db).publish_due_posts(reference)
        finally:
            db.close()
    except TravelCMSError as e:
        console.print(f"❌ [bold red]Publishing failed: {e.message}[/bold red]")
        raise typer.Exit(code=1)

    when = format_iso(reference) if reference else "now"
    if published:
        console.print(f"✅ Published {len(published)} post(s) due by {when}: {published}")
    else:
        console.print(f"Nothing due by {when}")


@app.command()
def metrics(
    raw: bool = typer.Option(False, "--raw", help="Print exposition text instead of a table"),
) -> None:
    """List the Prometheus metrics the stores export.

    Samples live in the process that runs the stores, so this command only
    documents metric names, types and help text; values are always zero.
    """
    if raw:
        typer.echo(generate_metrics_output().decode("utf-8"), nl=False)
        return

    catalog = Table(title="Exported Metrics")
    catalog.add_column("Metric", style="cyan")
    catalog.add_column("Type", style="magenta")
    catalog.add_column("Description")
    for family in sorted(registry.collect(), key=lambda f: f.name):
        catalog.add_row(family.name, family.type, family.documentation)
    console.print(catalog)


def main() -> None:
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
