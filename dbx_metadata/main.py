"""dbx-metadata CLI - Main entry point."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .database.models import Database
from .database.registry import get_registry
from .errors import MetadataExtractionError
from .explorer import connect, create_explorer
from .export import export_metadata, to_json
from .log import setup_logging

app = typer.Typer(
    name="dbx-metadata",
    help="Explore relational database metadata and export it as JSON",
    add_completion=False,
)

# stdout carries the JSON document; everything else goes to stderr
console = Console(stderr=True)


def _resolve_url(url: Optional[str]) -> str:
    url = url or settings.url
    if not url:
        console.print("[red]No database URL given. Pass one or set DBX_METADATA_URL.[/red]")
        raise typer.Exit(1)
    return url


def _fail(error: Exception) -> None:
    console.print(f"[red]Error: {error}[/red]")
    raise typer.Exit(1)


def _print_summary(metadata: Database) -> None:
    console.print(
        f"[bold]{metadata.product_name or 'Unknown'}[/bold] {metadata.product_version or ''}"
    )
    table = Table(title="Extracted Schemas")
    table.add_column("Schema", style="cyan")
    table.add_column("Tables", justify="right", style="green")
    table.add_column("Views", justify="right", style="green")
    table.add_column("Procedures", justify="right", style="yellow")
    for schema in metadata.schemas:
        table.add_row(schema.name, str(len(schema.tables)), str(len(schema.views)), str(len(schema.procedures)))
    console.print(table)

    if metadata.warnings:
        console.print(f"[yellow]{len(metadata.warnings)} warning(s):[/yellow]")
        for warning in metadata.warnings:
            console.print(f"  [yellow]- {warning}[/yellow]")


@app.command()
def explore(
    url: Optional[str] = typer.Argument(None, help="SQLAlchemy database URL (default: DBX_METADATA_URL)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write JSON to this file instead of stdout"),
    compact: bool = typer.Option(False, "--compact", help="Write JSON without indentation"),
    procedures: bool = typer.Option(settings.include_procedures, "--procedures/--no-procedures", help="Export stored procedures"),
    triggers: bool = typer.Option(settings.include_triggers, "--triggers/--no-triggers", help="Export triggers"),
    indexes: bool = typer.Option(settings.include_index_details, "--indexes/--no-indexes", help="Export index details"),
    comments: bool = typer.Option(settings.include_comments, "--comments/--no-comments", help="Export comments"),
    view_definitions: bool = typer.Option(settings.include_view_definitions, "--view-definitions/--no-view-definitions", help="Export view source text"),
):
    """Explore a database and export its metadata as JSON."""
    url = _resolve_url(url)
    options = settings.export_options(output).model_copy(update={
        "pretty_print": settings.pretty_print and not compact,
        "include_procedures": procedures,
        "include_triggers": triggers,
        "include_index_details": indexes,
        "include_comments": comments,
        "include_view_definitions": view_definitions,
    })

    try:
        with connect(url) as connection:
            explorer = create_explorer(connection, cache_enabled=settings.cache_enabled)
            metadata = explorer.explore()
    except (MetadataExtractionError, SQLAlchemyError) as e:
        _fail(e)

    result = export_metadata(metadata, options)
    if not result.success:
        _fail(RuntimeError(result.error_message))

    _print_summary(metadata)
    if result.output_path is not None:
        console.print(f"[green]Wrote {result.bytes_written} bytes to {result.output_path}[/green]")
    else:
        typer.echo(result.content)


@app.command()
def schemas(
    url: Optional[str] = typer.Argument(None, help="SQLAlchemy database URL (default: DBX_METADATA_URL)"),
):
    """List user schemas."""
    url = _resolve_url(url)
    try:
        with connect(url) as connection:
            names = create_explorer(connection).list_schemas()
    except (MetadataExtractionError, SQLAlchemyError) as e:
        _fail(e)

    for name in names:
        typer.echo(name)


@app.command()
def schema(
    url: Optional[str] = typer.Argument(None, help="SQLAlchemy database URL (default: DBX_METADATA_URL)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Schema name (default: DBX_METADATA_DEFAULT_SCHEMA)"),
    compact: bool = typer.Option(False, "--compact", help="Write JSON without indentation"),
):
    """Export the metadata of a single schema as JSON."""
    name = name or settings.default_schema
    if not name:
        console.print("[red]No schema name given.[/red]")
        raise typer.Exit(1)
    url = _resolve_url(url)

    try:
        with connect(url) as connection:
            result = create_explorer(connection).get_schema(name)
    except (MetadataExtractionError, SQLAlchemyError) as e:
        _fail(e)

    if result is None:
        console.print(f"[red]Permission denied for schema: {name}[/red]")
        raise typer.Exit(1)

    typer.echo(to_json(result, pretty=settings.pretty_print and not compact))


@app.command()
def strategies():
    """List registered metadata strategies in resolution order."""
    table = Table(title="Metadata Strategies")
    table.add_column("#", justify="right")
    table.add_column("Vendor", style="cyan")
    table.add_column("Fallback")
    for position, strategy in enumerate(get_registry().strategies, 1):
        table.add_row(str(position), strategy.vendor_name, "yes" if strategy.is_fallback else "")
    Console().print(table)


@app.command()
def config():
    """Show current configuration."""
    out = Console()
    out.print("[bold]Current Configuration[/bold]")
    out.print(f"  Database URL: {'Configured' if settings.url else 'Not set'}")
    out.print(f"  Default Schema: {settings.default_schema or 'Not set'}")
    out.print(f"  Cache Enabled: {settings.cache_enabled}")
    out.print(f"  Include Procedures: {settings.include_procedures}")
    out.print(f"  Include Triggers: {settings.include_triggers}")
    out.print(f"  Include Index Details: {settings.include_index_details}")
    out.print(f"  Include Comments: {settings.include_comments}")
    out.print(f"  Include View Definitions: {settings.include_view_definitions}")
    out.print(f"  Pretty Print: {settings.pretty_print}")
    out.print(f"  Log Level: {settings.log_level}")


@app.callback()
def main(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)"),
):
    """
    dbx-metadata - Explore relational database metadata.

    Examples:

        dbx-metadata explore postgresql://user@localhost/app -o app.json

        dbx-metadata schemas mysql+pymysql://user@localhost/

        dbx-metadata schema sqlite:///app.db --name main
    """
    setup_logging(log_level, console=console)


if __name__ == "__main__":
    app()
