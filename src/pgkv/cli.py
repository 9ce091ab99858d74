"""
CLI: ``pgkv`` — inspect and edit a key-value table from the shell.

Every command builds a store from ``PGKV_*`` settings (overridable with
``--database-url`` and ``--table``), initializes it, runs one operation and
closes it again.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import psycopg
import typer
from rich.console import Console
from rich.table import Table

from pgkv.errors import KVError, categorize_error
from pgkv.logging import configure_logging
from pgkv.settings import get_settings
from pgkv.storage import PostgresKeyValueStorage

T = TypeVar("T")

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="pgkv",
    help="pgkv — key-value storage on a PostgreSQL table.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@dataclass
class _Options:
    database_url: str | None = None
    table: str | None = None


def _version_callback(value: bool) -> None:
    if value:
        from pgkv import __version__

        typer.echo(f"pgkv {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    database_url: str | None = typer.Option(
        None, "--database-url", "-d", help="Connection string (default: PGKV_DATABASE_URL)."
    ),
    table: str | None = typer.Option(None, "--table", "-t", help="Table name (default: PGKV_TABLE_NAME)."),
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """pgkv CLI — read and write entries of a key-value table."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")
    ctx.obj = _Options(database_url=database_url, table=table)


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_store(ctx: typer.Context) -> PostgresKeyValueStorage[Any]:
    settings = get_settings()
    options: _Options = ctx.obj or _Options()
    return PostgresKeyValueStorage(
        options.database_url or settings.database_url,
        options.table or settings.table_name,
        batch_size=settings.batch_size,
        maintenance_db=settings.maintenance_db,
    )


def _run(ctx: typer.Context, operation: Callable[[PostgresKeyValueStorage[Any]], Awaitable[T]]) -> T:
    """Run ``operation`` against an initialized store, exiting 1 on store or driver errors."""

    async def runner() -> T:
        async with _make_store(ctx) as store:
            return await operation(store)

    try:
        return asyncio.run(runner())
    except (KVError, psycopg.Error) as e:
        message = e.message if isinstance(e, KVError) else str(e)
        err_console.print(f"[bold red]Error[/bold red] ({categorize_error(e).value}): {message}")
        raise typer.Exit(code=1) from e


async def _collect(store: PostgresKeyValueStorage[Any]) -> list[tuple[str, Any]]:
    return [entry async for entry in store.entries()]


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the database and table if they do not exist."""

    async def operation(store: PostgresKeyValueStorage[Any]) -> str:
        return store.table_name

    table = _run(ctx, operation)
    console.print(f"[green]Initialized[/green] table [bold]{table}[/bold]")


@app.command()
def get(ctx: typer.Context, key: str = typer.Argument(..., help="Key to read.")) -> None:
    """Print the JSON value stored under KEY."""
    missing = object()
    value = _run(ctx, lambda store: store.get(key, missing))
    if value is missing:
        err_console.print(f"[yellow]Key not found:[/yellow] {key}")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(value))


@app.command()
def has(ctx: typer.Context, key: str = typer.Argument(..., help="Key to look up.")) -> None:
    """Print whether KEY is stored."""
    found = _run(ctx, lambda store: store.has(key))
    typer.echo("true" if found else "false")


@app.command("set")
def set_(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Key to write."),
    value: str = typer.Argument(..., help="JSON document to store."),
) -> None:
    """Store the JSON document VALUE under KEY, replacing any previous value."""
    try:
        document = json.loads(value)
    except json.JSONDecodeError as e:
        raise typer.BadParameter(f"not valid JSON: {e}", param_hint="VALUE") from e

    _run(ctx, lambda store: store.set(key, document))
    console.print(f"[green]Stored[/green] {key}")


@app.command()
def delete(ctx: typer.Context, key: str = typer.Argument(..., help="Key to remove.")) -> None:
    """Remove KEY."""
    removed = _run(ctx, lambda store: store.delete(key))
    if removed:
        console.print(f"[green]Deleted[/green] {key}")
    else:
        console.print(f"[dim]Key not found: {key}[/dim]")


@app.command()
def entries(
    ctx: typer.Context,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List every stored entry."""
    rows = _run(ctx, _collect)

    if json_out:
        console.print_json(json.dumps({key: value for key, value in rows}))
        return

    if not rows:
        console.print("[dim]No items.[/dim]")
        return

    table = Table(show_lines=False, pad_edge=False)
    table.add_column("key", overflow="fold")
    table.add_column("value", overflow="fold")
    for key, value in sorted(rows, key=lambda row: row[0]):
        table.add_row(key, json.dumps(value))
    console.print(table)


__all__ = ["app"]
