"""
CLI utility helpers for provider construction and result rendering.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from tablepull.core.connection import UrlProvider, create_provider
from tablepull.core.errors import TablepullError
from tablepull.core.models import TableResult
from tablepull.core.protocols import ConnectionProvider
from tablepull.core.settings import get_settings

console = Console()
err_console = Console(stderr=True)


# ── Provider helper ──────────────────────────────────────────────────────


def build_provider(url: str | None = None) -> ConnectionProvider:
    """``--url`` wins over the configured source."""
    if url:
        return UrlProvider(url, timeout=get_settings().timeout)
    return create_provider(get_settings())


def fail(error: TablepullError | str, *, code: int = 2) -> None:
    """Print an error to stderr and exit."""
    message = error.message if isinstance(error, TablepullError) else error
    err_console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(code=code)


def coerce_key(raw: str) -> Any:
    """Command-line keys arrive as text; years and other numbers become numbers."""
    for convert in (int, float):
        try:
            return convert(raw)
        except ValueError:
            continue
    return raw


# ── Output helpers ───────────────────────────────────────────────────────


def output_results(results: Mapping[str, TableResult], *, as_json: bool = False) -> None:
    """Render one summary row per table."""
    summaries = [r.summary() | {"failed_key_values": [str(k) for k in r.failed_keys]} for r in results.values()]

    if as_json:
        console.print_json(json.dumps(summaries, default=str))
        return

    if not summaries:
        console.print("[dim]No jobs.[/dim]")
        return

    table = Table(title="Extraction", show_lines=False, pad_edge=False)
    for col in ("table", "rows", "failed keys", "shards", "seconds", "artifact / error"):
        table.add_column(col, overflow="fold")
    for result in results.values():
        shards = f"{result.shards_total - result.shards_failed}/{result.shards_total}" if result.shards_total else "-"
        failed = ", ".join(str(k) for k in result.failed_keys) or "-"
        if result.error:
            last = f"[red]{result.error}[/red]"
        else:
            last = result.artifact or "[dim]not written[/dim]"
        table.add_row(result.table, str(result.row_count), failed, shards, f"{result.elapsed_seconds:.2f}", last)
    console.print(table)


def exit_code(results: Mapping[str, TableResult]) -> int:
    """1 when any job failed outright, else 0."""
    return 1 if any(r.error is not None for r in results.values()) else 0
