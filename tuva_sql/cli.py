"""
Command Line Interface for Tuva SQL.
"""

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.syntax import Syntax

from .config import settings
from .exceptions import Text2SQLError
from .offline import SchemaParser, SchemaRepository, encode_table, load_catalog, save_catalog
from .online import SQLValidator
from .text2sql import Text2SQL


logger = logging.getLogger(__name__)

# Rich console
console = Console()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose):
    """Tuva SQL: ask questions about Tuva healthcare data in plain English."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def _sync_catalog(pull: bool, catalog_path: str):
    parser = SchemaParser(repository=SchemaRepository())
    catalog = parser.parse(pull=pull)
    save_catalog(catalog, catalog_path)
    return catalog


@cli.command()
@click.option('--no-pull', is_flag=True, help='Parse the existing checkout without cloning or pulling')
@click.option('--catalog', 'catalog_path', default=None, help='Output catalog JSON file')
def sync(no_pull, catalog_path):
    """Fetch the Tuva repository and write the normalized schema catalog."""
    catalog_path = catalog_path or settings.catalog_path
    console.print("[bold green]Parsing Tuva schema...[/bold green]")

    try:
        catalog = _sync_catalog(not no_pull, catalog_path)
    except Text2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error parsing schema: {e}")
        raise click.ClickException(str(e))

    console.print(f"[bold green]✓[/bold green] Parsed {len(catalog)} tables into {catalog_path}")


@cli.command()
@click.option('--catalog', 'catalog_path', default=None, help='Catalog JSON file to index')
def build(catalog_path):
    """Embed the catalog and upload it to the vector index."""
    catalog_path = catalog_path or settings.catalog_path
    console.print("[bold green]Building knowledge base...[/bold green]")

    text2sql = Text2SQL.from_settings(settings)
    try:
        catalog = load_catalog(catalog_path)
        written = asyncio.run(text2sql.build_knowledge_base(catalog))
        console.print(f"[bold green]✓[/bold green] Indexed {written} tables")
    except (Text2SQLError, OSError, ValueError) as e:
        console.print(f"[bold red]✗[/bold red] Error building knowledge base: {e}")
        raise click.ClickException(str(e))
    finally:
        text2sql.close()


@cli.command()
@click.option('--no-pull', is_flag=True, help='Parse the existing checkout without cloning or pulling')
def setup(no_pull):
    """Parse the Tuva schema and index it in one step."""
    console.print("[bold green]Starting Tuva setup...[/bold green]")

    text2sql = Text2SQL.from_settings(settings)
    try:
        console.print("Step 1: Parsing Tuva schema...")
        catalog = _sync_catalog(not no_pull, settings.catalog_path)

        console.print("Step 2: Uploading schemas...")
        written = asyncio.run(text2sql.build_knowledge_base(catalog))
    except Text2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Setup failed: {e}")
        raise click.ClickException(str(e))
    finally:
        text2sql.close()

    stats = text2sql.get_stats()
    table = Table(show_header=True, header_style="bold magenta", title="Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Schemas parsed", str(len(catalog)))
    table.add_row("Vectors uploaded", str(written))
    table.add_row("Index name", stats['index_name'])
    table.add_row("Index dimension", str(stats['embedding_dimension']))
    console.print(table)


@cli.command()
@click.argument('question')
def query(question):
    """Answer a natural language question."""
    console.print(f"[bold blue]Question:[/bold blue] {question}")

    text2sql = Text2SQL.from_settings(settings)
    try:
        response = asyncio.run(text2sql.answer(question))
    except Text2SQLError as e:
        console.print(f"[bold red]✗[/bold red] {e.stage} failed: {e}")
        raise click.ClickException(str(e))
    finally:
        text2sql.close()

    console.print("\n[bold green]✓[/bold green] Generated SQL:")
    console.print(Syntax(response.sql, "sql", theme="monokai", line_numbers=True))

    scores = ", ".join(
        f"{name} ({score:.3f})" for name, score in zip(response.tables_used, response.similarity_scores)
    )
    console.print(f"\n[cyan]Tables used:[/cyan] {scores}")

    console.print(f"\n[bold green]✓[/bold green] {response.row_count} row(s)")
    if response.result:
        table = Table(show_header=True, header_style="bold magenta")
        for col in response.result[0].keys():
            table.add_column(str(col))
        for row in response.result:
            table.add_row(*[str(val) for val in row.values()])
        console.print(table)


@cli.command()
@click.argument('sql')
def validate(sql):
    """Check whether a SQL statement would be allowed to run."""
    result = SQLValidator(dialect=settings.sql_dialect).validate(sql)

    if result.accepted:
        console.print("[bold green]✓[/bold green] Accepted: single read-only statement")
    else:
        console.print(f"[bold red]✗[/bold red] Rejected ({result.rule}): {result.reason}")
        raise SystemExit(1)


@cli.command()
@click.option('--table-name', help='Specific table name')
@click.option('--catalog', 'catalog_path', default=None, help='Catalog JSON file')
def schema(table_name, catalog_path):
    """Show tables from the normalized catalog."""
    try:
        catalog = load_catalog(catalog_path or settings.catalog_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))

    if table_name:
        match = next((t for t in catalog if t.table_name == table_name), None)
        if match:
            console.print(Panel(encode_table(match), title=f"Table: {table_name}"))
        else:
            console.print(f"[yellow]Table '{table_name}' not found in catalog[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Table Name", no_wrap=True)
    table.add_column("Columns", justify="right")
    table.add_column("Description")

    for t in catalog:
        table.add_row(t.table_name, str(len(t.columns)), t.description[:80])

    console.print(table)


@cli.command()
def stats():
    """Show system statistics."""
    text2sql = Text2SQL.from_settings(settings)
    try:
        stats = text2sql.get_stats()
    except Text2SQLError as e:
        console.print(f"[bold red]✗[/bold red] Error getting stats: {e}")
        raise click.ClickException(str(e))
    finally:
        text2sql.close()

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Knowledge Base Size", str(stats['knowledge_base_size']))
    table.add_row("Index Name", stats['index_name'])
    table.add_row("Top K", str(stats['top_k']))
    table.add_row("Embedding Model", str(stats['embedding_model']))
    table.add_row("Embedding Dimension", str(stats['embedding_dimension']))

    console.print(table)


@cli.command()
@click.option('--host', default=None, help='Bind address')
@click.option('--port', type=int, default=None, help='Port')
def serve(host, port):
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "tuva_sql.api.main:app",
        host=host or settings.app_host,
        port=port or settings.app_port,
        reload=settings.debug
    )


def main():
    """Entry point for the CLI."""
    cli()
