"""
CLI: ``tablepull pull`` / ``tablepull run`` / ``tablepull workers``.
"""

from __future__ import annotations

import os
from pathlib import Path

import typer

from tablepull.cli.utils import build_provider, coerce_key, console, exit_code, fail, output_results
from tablepull.core.errors import ConfigurationError
from tablepull.core.models import ExtractionJob
from tablepull.core.settings import get_settings
from tablepull.extraction.jobs import load_job_file
from tablepull.extraction.orchestrator import run_jobs
from tablepull.extraction.planner import select_worker_count


def pull(
    table: str = typer.Argument(..., help="Source table name"),
    partition_column: str | None = typer.Option(None, "--partition-column", "-p", help="Column to shard on"),
    keys: list[str] | None = typer.Option(None, "--key", "-k", help="Partition key (repeatable)"),
    schema: str | None = typer.Option(None, "--schema", "-s", help="Schema (default: TABLEPULL_SCHEMA_NAME)"),
    sequential: bool = typer.Option(False, "--sequential", help="Single connection, no worker pool"),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Exact worker count"),
    max_workers: int | None = typer.Option(None, "--max-workers", help="Ceiling for the core-based worker count"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Write TABLE.csv here"),
    timestamp: bool = typer.Option(False, "--timestamp", help="Timestamp the CSV file name"),
    url: str | None = typer.Option(None, "--url", help="SQLAlchemy URL overriding the configured source"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Pull one table, partitioned by default."""
    settings = get_settings()
    try:
        job = ExtractionJob(
            table=table,
            schema=schema or settings.schema_name,
            partition_column=partition_column,
            keys=tuple(coerce_key(k) for k in keys) if keys else None,
        )
        results = run_jobs(
            [job],
            output_dir or settings.output_dir,
            provider=build_provider(url),
            sequential=sequential,
            timestamp=timestamp or settings.timestamp_files,
            workers=workers,
            max_workers=settings.max_workers if max_workers is None else max_workers,
        )
    except ConfigurationError as e:
        fail(e)
    output_results(results, as_json=json_out)
    raise typer.Exit(code=exit_code(results))


def run(
    job_file: Path = typer.Argument(..., help="YAML job file"),
    sequential: bool | None = typer.Option(None, "--sequential/--partitioned", help="Override the file's mode"),
    workers: int | None = typer.Option(None, "--workers", "-w", help="Exact worker count"),
    max_workers: int | None = typer.Option(None, "--max-workers", help="Ceiling for the core-based worker count"),
    output_dir: Path | None = typer.Option(None, "--output-dir", "-o", help="Override the file's output_dir"),
    timestamp: bool | None = typer.Option(None, "--timestamp/--no-timestamp", help="Override the file's timestamp"),
    url: str | None = typer.Option(None, "--url", help="SQLAlchemy URL overriding the configured source"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Run every job in a YAML job file, in order."""
    settings = get_settings()
    try:
        job_spec = load_job_file(job_file)
        results = run_jobs(
            job_spec.to_jobs(),
            output_dir or job_spec.output_dir or settings.output_dir,
            provider=build_provider(url),
            sequential=job_spec.sequential if sequential is None else sequential,
            timestamp=job_spec.timestamp if timestamp is None else timestamp,
            workers=workers,
            max_workers=settings.max_workers if max_workers is None else max_workers,
        )
    except ConfigurationError as e:
        fail(e)
    output_results(results, as_json=json_out)
    raise typer.Exit(code=exit_code(results))


def workers(
    max_workers: int | None = typer.Option(None, "--max-workers", help="Ceiling (default: TABLEPULL_MAX_WORKERS)"),
    cores: int | None = typer.Option(None, "--cores", help="Assume this many cores"),
) -> None:
    """Show how many workers a partitioned pull would use."""
    ceiling = get_settings().max_workers if max_workers is None else max_workers
    available = cores if cores is not None else os.cpu_count()
    try:
        count = select_worker_count(available, ceiling)
    except ConfigurationError as e:
        fail(e)
    console.print(f"{count} workers (cores={available}, ceiling={ceiling})")
