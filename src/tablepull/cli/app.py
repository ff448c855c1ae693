"""
Root Typer application for the tablepull CLI.

Logging goes to stderr; stdout carries the run summary (rich table or
``--json``), so the output can be piped.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError
from typer import Typer

from tablepull import __version__
from tablepull.cli.utils import fail
from tablepull.core.logging import configure_logging
from tablepull.core.settings import get_settings

app = Typer(
    name="tablepull",
    help="tablepull: partitioned bulk extraction of relational tables.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tablepull {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l", help="Override TABLEPULL_LOG_LEVEL."),
    json_logs: bool | None = typer.Option(None, "--json-logs/--console-logs", help="Log format on stderr."),
) -> None:
    """tablepull CLI. Pull tables shard by shard into CSV files."""
    try:
        settings = get_settings()
    except ValidationError as e:
        fail(f"invalid TABLEPULL_* settings: {e}")
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs if json_logs is not None else settings.json_logs,
    )


# ── Commands ─────────────────────────────────────────────────────────────

from tablepull.cli.extract import pull, run, workers  # noqa: E402

app.command("pull")(pull)
app.command("run")(run)
app.command("workers")(workers)
