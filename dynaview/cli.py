from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .cache import COLLECTIONS_KEY, ResultCache, table_key
from .client import create_client, list_collections
from .errors import CacheIOError, FetchError
from .logging import setup_logging
from .scan import ParallelScanner
from .settings import load_settings, resolve_segment_count

app = typer.Typer(
    add_completion=False,
    help="dynaview: browse DynamoDB tables from the terminal",
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


# ═══════════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def _fail(error: FetchError) -> None:
    err_console.print(f"[red]✗ {error.message}[/red]")
    if error.cause is not None:
        err_console.print(f"[dim]Cause:[/dim] {escape(str(error.cause))}")
    raise typer.Exit(code=1)


def _finish_refresh(cache: ResultCache, timeout: float) -> None:
    # A fresh cache hit starts a daemon refresh; give it a bounded chance to
    # land before the process exits and kills it.
    if not cache.wait_for_refresh(timeout):
        err_console.print(f"[yellow]Cache refresh did not finish within {timeout:g}s; cached copy left as is.[/yellow]")


def _format_age(
updated: datetime | None) -> str:
    if updated is None:
        return "unreadable"
    seconds = int((datetime.now(timezone.utc) - updated).total_seconds())
    if seconds < 0:
        return "just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


# ═══════════════════════════════════════════════════════════════════════════════
# MAIN CALLBACK
# ═══════════════════════════════════════════════════════════════════════════════

@app.callback(invoke_without_command=True)
def _root(ctx: typer.Context):
    """
    [bold]dynaview[/bold]: an interactive terminal browser for DynamoDB.

    [dim]Run without arguments to launch the interactive browser.[/dim]

    [bold]Examples:[/bold]
      dynaview                       # Browse tables
      dynaview tables                # List table names
      dynaview scan Orders > o.jsonl # Dump every row as JSON lines
    """
    if ctx.invoked_subcommand is None:
        _interactive()
        raise typer.Exit(code=0)


# ═══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ═══════════════════════════════════════════════════════════════════════════════

@app.command("tables", help="[bold cyan]L[/bold cyan]ist tables in the configured region")
@app.command("ls", hidden=True)  # Alias
def tables(
    no_cache: bool = typer.Option(False, "--no-cache", help="Always ask the service; still refreshes the cache"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to the console"),
):
    s = load_settings()
    setup_logging(s, console=verbose)
    cache = ResultCache.from_settings(s)
    client = create_client(s)

    def fetch() -> list[str]:
        return list_collections(client)

    try:
        if no_cache:
            names = fetch()
            try:
                cache.save(COLLECTIONS_KEY, names)
            except CacheIOError as e:
                err_console.print(f"[yellow]Cache not updated:[/yellow] {e}")
        else:
            names = cache.read_through(COLLECTIONS_KEY, fetch)
    except FetchError as e:
        _fail(e)

    for name in names:
        console.print(name, highlight=False)
    _finish_refresh(cache, s.DV_SCAN_TIMEOUT_SEC)


@app.command("scan", help="[bold cyan]S[/bold cyan]can a table and print rows as JSON lines")
def scan(
    table: str = typer.Argument(..., help="Table name"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Always scan; still refreshes the cache"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write rows to this file instead of stdout"),
    segments: Optional[int] = typer.Option(None, "--segments", min=1, help="Override the segment count"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Also log to the console"),
):
    s = load_settings()
    if segments is not None:
        s.DV_SCAN_SEGMENTS = segments
    setup_logging(s, console=verbose)
    cache = ResultCache.from_settings(s)
    scanner = ParallelScanner.from_settings(create_client(s), s)

    def fetch() -> list[str]:
        return scanner.scan_table(table).rows

    try:
        if no_cache:
            rows = fetch()
            try:
                cache.save(table_key(table), rows)
            except CacheIOError as e:
                err_console.print(f"[yellow]Cache not updated:[/yellow] {e}")
        else:
            rows = cache.read_through(table_key(table), fetch)
    except FetchError as e:
        _fail(e)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text("".join(f"{row}\n" for row in rows), encoding="utf-8")
        err_console.print(f"[green]✓[/green] Wrote {len(rows):,} rows to [cyan]{output}[/cyan]")
    else:
        for row in rows:
            typer.echo(row)
    _finish_refresh(cache, s.DV_SCAN_TIMEOUT_SEC)


@app.command("cache", help="Show cached results and their freshness")
def cache_info():
    s = load_settings()
    cache = ResultCache.from_settings(s)
    entries = cache.info()

    console.print(Panel.fit(
        "\n".join([
            f"[bold]Cache dir:[/bold]  {cache.cache_dir}",
            f"[bold]TTL:[/bold]        {s.DV_CACHE_TTL_HOURS:g}h",
            f"[bold]Segments:[/bold]   {resolve_segment_count(s)}",
        ]),
        title="[bold]Configuration[/bold]",
    ))

    if not entries:
        console.print("[dim]No cached results.[/dim]")
        return

    t = Table(title="[bold]Cache Entries[/bold]")
    t.add_column("Resource", style="bold")
    t.add_column("Rows", style="cyan", justify="right")
    t.add_column("Size", justify="right")
    t.add_column("Updated")
    t.add_column("Fresh", justify="center")
    for e in entries:
        label = e.key[len("table:"):] if e.key.startswith("table:") else f"({e.key})"
        t.add_row(
            label,
            f"{e.rows:,}",
            f"{e.size_bytes:,} B",
            _format_age(e.updated),
            "[green]✓[/green]" if e.fresh else "[yellow]stale[/yellow]",
        )
    console.print(t)


@app.command("cache-clear", help="Remove cached results")
def cache_clear(
    table: Optional[str] = typer.Argument(None, help="Table whose cached rows to remove"),
    all_: bool = typer.Option(False, "--all", help="Remove every cache file"),
    collections: bool = typer.Option(False, "--collections", help="Remove the cached table list"),
):
    s = load_settings()
    cache = ResultCache.from_settings(s)

    if not (table or all_ or collections):
        err_console.print("[yellow]Nothing to clear.[/yellow] Pass a TABLE, --collections or --all.")
        raise typer.Exit(code=2)

    try:
        if all_:
            removed = cache.clear()
        else:
            removed = 0
            if table:
                removed += cache.clear(table_key(table))
            if collections:
                removed += cache.clear(COLLECTIONS_KEY)
    except CacheIOError as e:
        err_console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Removed {removed} cache file(s)")


# ═══════════════════════════════════════════════════════════════════════════════
# INTERACTIVE BROWSER
# ═══════════════════════════════════════════════════════════════════════════════

def _interactive() -> None:
    """Launch the screen-based browser."""
    from .tui.orchestrator import FetchOrchestrator
    from .tui.router import Router
    from .tui.state import UIState
    # Import screens to register them
    from .tui import screens  # noqa: F401

    settings = load_settings()
    setup_logging(settings)
    router = Router(
        console=console,
        settings=settings,
        state=UIState(),
        orchestrator=FetchOrchestrator.from_settings(settings),
    )

    try:
        router.run()
    except KeyboardInterrupt:
        console.print("\n[dim]👋 Interrupted. Goodbye![/]")


def main():
    app()
