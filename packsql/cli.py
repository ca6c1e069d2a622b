"""
PackSQL CLI

Command-line interface for slicing schemas, checking SQL and asking questions.

Usage:
    packsql slice schema.json                          # Graph slice, print packs
    packsql slice schema.json --strategy policy \\
        --policies departments.yaml --output slice.json # Policy slice to a file
    packsql validate "SELECT * FROM Orders" --allow Orders
    packsql ask "How many orders shipped late?" --schema schema.json
    packsql ask "Late shipments?" --slice slice.json     # Reuse a saved slice
    packsql serve --port 8000                          # Run the HTTP API
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from packsql import __version__
from packsql.config import Settings, get_settings
from packsql.connectors.executor import ConnectorSqlExecutor
from packsql.connectors.postgres import PostgresConnector
from packsql.healing.runner import SelfHealingSqlRunner
from packsql.llm.factory import LLMProviderFactory
from packsql.llm.sql_client import LLMSqlClient
from packsql.models.errors import PackSQLError, SynthesisExhausted
from packsql.models.pack import SliceResult
from packsql.pipeline.service import QueryAnswer, QueryService
from packsql.slicing.cache import InMemoryPackCache
from packsql.slicing.graph import GraphSlicer
from packsql.slicing.io import dump_slice, load_policies, load_schema, load_slice
from packsql.slicing.policy import PolicySlicer, SliceOptions
from packsql.sql.prompts import PromptBuilder
from packsql.sql.validator import SqlValidator

console = Console()


def configure_cli_logging(verbose: bool = False) -> None:
    if verbose:
        get_settings().logging.configure()
        return
    logging.basicConfig(level=logging.WARNING)
    for logger_name in ("packsql", "httpx", "openai", "anthropic", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def build_slicer(
    strategy: str,
    settings: Settings,
    policies_path: str | Path | None = None,
) -> GraphSlicer | PolicySlicer:
    """Create the slicer for a strategy, reading policies for the policy strategy."""
    if strategy == "policy":
        path = policies_path or settings.slicing.policies_path
        if not path:
            raise click.ClickException(
                "Policy slicing needs --policies or SLICING_POLICIES_PATH."
            )
        policies = load_policies(path)
        return PolicySlicer(SliceOptions.from_settings(policies, settings.slicing))
    return GraphSlicer.from_settings(settings.slicing)


def print_slice(result: SliceResult) -> None:
    """Summarize a slice as a table of packs."""
    table = Table(
        title=f"{result.schema_name} ({result.strategy})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Category")
    table.add_column("Name")
    table.add_column("Core", justify="right")
    table.add_column("Satellite", justify="right")
    table.add_column("FK edges", justify="right")
    table.add_column("Bridges")
    for pack in result.packs:
        table.add_row(
            pack.category_id,
            pack.name,
            str(len(pack.tables_core)),
            str(len(pack.tables_satellite)),
            str(len(pack.fk_edges)),
            ", ".join(b.to_category for b in pack.bridge_refs) or "-",
        )
    console.print(table)


def print_answer(answer: QueryAnswer) -> None:
    """Show the executed SQL and its rows."""
    console.print(f"[dim]Pack: {answer.category_id}[/dim]")
    console.print(Panel(answer.sql, title="SQL", border_style="cyan", highlight=True))

    table = Table(show_header=True, header_style="bold cyan")
    for column in answer.columns:
        table.add_column(column)
    for row in answer.rows:
        table.add_row(*[str(row.get(column, "")) for column in answer.columns])
    console.print(table)
    console.print(f"[dim]{answer.row_count} row(s)[/dim]")


def _exhausted_panel(exc: SynthesisExhausted) -> Panel:
    body = (
        f"[bold]Stage:[/bold] {exc.stage}\n"
        f"[bold]Last error:[/bold] {exc.last_error}\n\n"
        f"{exc.last_sql or '(no SQL produced)'}"
    )
    return Panel(body, title="[red]Self-heal exhausted[/red]", border_style="red")


async def create_service_from_config(
    schema_path: str | None,
    strategy: str,
    policies_path: str | None,
    slice_path: str | None = None,
) -> tuple[QueryService, PostgresConnector]:
    """Connect to the target database and wire a query service over a fresh or saved slice."""
    settings = get_settings()
    if not settings.database.url:
        raise click.ClickException("DATABASE_URL is not set.")
    if not settings.llm.api_key_for():
        raise click.ClickException(
            f"No API key configured for LLM provider '{settings.llm.default_provider}'."
        )

    active_slice = None
    if slice_path:
        try:
            active_slice = load_slice(slice_path)
        except (OSError, ValueError) as e:
            raise click.ClickException(f"Could not load slice: {e}") from e

    connector = PostgresConnector.from_url(
        str(settings.database.url),
        pool_size=settings.database.pool_size,
        timeout=settings.database.pool_timeout,
    )
    await connector.connect()

    if schema_path:
        schema = load_schema(schema_path)
    else:
        schema = await connector.get_schema(settings.database.schema_name)

    if active_slice is None:
        active_slice = build_slicer(strategy, settings, policies_path).slice(schema)
    cache = InMemoryPackCache(active_slice, schema)

    provider = LLMProviderFactory.create_default_provider(settings.llm)
    prompt_builder = PromptBuilder(dialect=settings.healing.dialect)
    runner = SelfHealingSqlRunner(
        llm=LLMSqlClient(provider, prompt_builder),
        executor=ConnectorSqlExecutor(connector, timeout=settings.database.pool_timeout),
        validator=SqlValidator(),
        max_error_chars=settings.healing.max_error_chars,
    )
    service = QueryService(
        cache=cache,
        schema=schema,
        runner=runner,
        prompt_builder=prompt_builder,
        settings=settings.healing,
    )
    return service, connector


# ============================================================================
# CLI Commands
# ============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="PackSQL")
@click.option("--verbose", "-v", is_flag=True, help="Show log output.")
def cli(verbose: bool):
    """PackSQL - schema slicing and self-healing text-to-SQL."""
    configure_cli_logging(verbose)


@cli.command(name="slice")
@click.argument("schema_json", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--strategy",
    type=click.Choice(["graph", "policy"]),
    default="graph",
    show_default=True,
    help="Partitioning strategy.",
)
@click.option(
    "--policies",
    "policies_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Department policies YAML (policy strategy).",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    help="Write the slice document to this file.",
)
def slice_command(
    schema_json: str,
    strategy: str,
    policies_path: str | None,
    output_path: str | None,
):
    """Partition a schema snapshot into packs."""
    settings = get_settings()
    try:
        schema = load_schema(schema_json)
        result = build_slicer(strategy, settings, policies_path).slice(schema)
    except click.ClickException:
        raise
    except (ValueError, OSError, PackSQLError) as e:
        console.print(f"[red]Slicing failed: {e}[/red]")
        sys.exit(1)

    print_slice(result)
    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_slice(result), encoding="utf-8")
        console.print(f"[green]✓ Wrote {len(result.packs)} packs to {path}[/green]")


@cli.command()
@click.argument("sql")
@click.option(
    "--allow",
    "allowed",
    multiple=True,
    help="Table the statement may reference (repeatable).",
)
def validate(sql: str, allowed: tuple[str, ...]):
    """Check a SQL statement against the safety rules."""
    result = SqlValidator().validate(sql, list(allowed))
    if result.valid:
        console.print("[green]✓ SQL is valid[/green]")
        return
    console.print(f"[red]✗ {result.describe()}[/red]")
    sys.exit(1)


@cli.command()
@click.argument("question")
@click.option(
    "--schema",
    "schema_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Schema snapshot JSON (default: read from DATABASE_URL).",
)
@click.option(
    "--strategy",
    type=click.Choice(["graph", "policy"]),
    default="graph",
    show_default=True,
)
@click.option(
    "--policies",
    "policies_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Department policies YAML (policy strategy).",
)
@click.option(
    "--slice",
    "slice_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Saved slice document to answer from instead of slicing.",
)
@click.option("--category", "category_id", help="Answer from this pack instead of routing.")
def ask(
    question: str,
    schema_path: str | None,
    strategy: str,
    policies_path: str | None,
    slice_path: str | None,
    category_id: str | None,
):
    """Answer a question with self-healing SQL."""

    async def run_query() -> Any:
        connector = None
        try:
            service, connector = await create_service_from_config(
                schema_path, strategy, policies_path, slice_path
            )
            with console.status("[cyan]Generating SQL...[/cyan]", spinner="dots"):
                answer = await service.ask(question, category_id=category_id)
            print_answer(answer)
        except click.ClickException:
            raise
        except SynthesisExhausted as e:
            console.print(_exhausted_panel(e))
            sys.exit(1)
        except PackSQLError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            sys.exit(1)
        finally:
            if connector is not None:
                await connector.close()

    asyncio.run(run_query())


@cli.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST).")
@click.option("--port", default=None, type=int, help="Port (default: API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "packsql.api.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
    )


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
