"""Partitioned extraction on a scoped thread pool.

ARCHITECTURE
────────────
::

    run_partitioned(job)
      ├── domain        ─ job.keys, or SELECT DISTINCT on a short-lived connection
      ├── plan()        ─ contiguous near-equal shards, empty bins dropped
      ├── ThreadPool    ─ one worker per shard, torn down before returning
      │     └── run_shard() × N   (own connection each)
      └── merge()       ─ completion-order concatenation, shard counters

The pool lives for exactly one job.  Work is network-bound, so threads
are enough; no worker or connection is shared between jobs.
"""

from __future__ import annotations

import time
from collections.abc import Hashable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from tablepull.core.connection import create_provider
from tablepull.core.errors import ConfigurationError, SourceConnectionError
from tablepull.core.logging import LogContext, get_logger
from tablepull.core.models import ExtractionJob, Shard, TableResult
from tablepull.core.protocols import ConnectionProvider
from tablepull.core.sql import literal
from tablepull.extraction.aggregate import merge
from tablepull.extraction.planner import available_keys, optimal_workers, plan, select_worker_count
from tablepull.extraction.sequential import run_sequential
from tablepull.extraction.shard import run_shard
from tablepull.observability.metrics import ExtractionMetrics, extraction_metrics

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8


def resolve_worker_count(
    workers: int | None = None,
    *,
    max_workers: int = DEFAULT_MAX_WORKERS,
    hardware_concurrency: int | None = None,
) -> int:
    """An explicit ``workers`` wins; otherwise derive it from the cores.

    Raises:
        ConfigurationError: Non-positive ``workers`` or a ceiling below two.
    """
    if workers is not None:
        if workers < 1:
            raise ConfigurationError(f"workers must be positive, got {workers}", key="workers", value=workers)
        return workers
    if hardware_concurrency is None:
        return optimal_workers(max_workers)
    return select_worker_count(hardware_concurrency, max_workers)


def _discover(
    job: ExtractionJob,
    provider: ConnectionProvider,
    parameters: Mapping[str, Any] | None,
) -> list[Hashable]:
    connection = provider.open(parameters)
    try:
        domain = available_keys(connection, job)
    finally:
        provider.close(connection)
    for key in domain:
        literal(key)
    return domain


def _fan_out(
    job: ExtractionJob,
    shards: Sequence[Shard],
    provider: ConnectionProvider,
    parameters: Mapping[str, Any] | None,
    metrics: ExtractionMetrics,
) -> TableResult:
    parts: list[TableResult] = []
    failed = 0

    with ThreadPoolExecutor(max_workers=len(shards), thread_name_prefix=f"tablepull-{job.table}") as pool:
        futures = {
            pool.submit(run_shard, job, shard, provider, parameters=parameters, metrics=metrics): shard
            for shard in shards
        }
        for future in as_completed(futures):
            try:
                parts.append(future.result())
            except SourceConnectionError:
                failed += 1

    result = merge(parts, table=job.table)
    result.shards_total = len(shards)
    result.shards_failed = failed
    return result


def run_partitioned(
    job: ExtractionJob,
    *,
    provider: ConnectionProvider | None = None,
    workers: int | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    hardware_concurrency: int | None = None,
    parameters: Mapping[str, Any] | None = None,
    metrics: ExtractionMetrics | None = None,
) -> TableResult:
    """Extract ``job`` shard by shard across a bounded worker pool.

    Jobs without a partition column cannot be split and go through
    ``run_sequential`` instead.

    Args:
        job: Table to pull.  ``job.keys`` fixes the domain; otherwise it is
            discovered from the source.
        provider: Connection provider; defaults to the configured one.
        workers: Exact worker count, bypassing the core-count selector.
        max_workers: Ceiling for the core-count selector.
        hardware_concurrency: Cores to assume; defaults to this machine's.
        parameters: Overrides forwarded to every ``provider.open`` call.
        metrics: Event sink; defaults to the module-level instance.

    Returns:
        The merged rows.  ``shards_failed`` counts shards lost to
        connection failures and ``failures`` lists failed keys.

    Raises:
        ConfigurationError: Invalid worker bounds, before any dispatch.
        SourceConnectionError: The discovery connection could not be opened.
        SchemaMismatchError: Shards returned different column layouts.
    """
    metrics = metrics or extraction_metrics
    provider = provider or create_provider()

    if job.partition_column is None:
        logger.info("partitioned.fallback_sequential", table=job.table)
        return run_sequential(job, provider=provider, parameters=parameters, metrics=metrics)

    worker_count = resolve_worker_count(workers, max_workers=max_workers, hardware_concurrency=hardware_concurrency)
    started = time.perf_counter()

    with LogContext(table=job.table, mode="partitioned"):
        domain = list(job.keys) if job.keys is not None else _discover(job, provider, parameters)
        shards = plan(domain, worker_count)
        logger.info("partitioned.start", keys=len(domain), shards=len(shards), workers=worker_count)

        if shards:
            result = _fan_out(job, shards, provider, parameters, metrics)
        else:
            result = TableResult(table=job.table)

        result.elapsed_seconds = time.perf_counter() - started
        metrics.record_job(job.table, "partitioned", result.elapsed_seconds)

        if result.shards_failed:
            logger.warning(
                "partitioned.incomplete",
                shards_failed=result.shards_failed,
                shards_total=result.shards_total,
            )
        logger.info(
            "partitioned.complete",
            rows=result.row_count,
            failed_keys=len(result.failures),
            shards_total=result.shards_total,
            shards_failed=result.shards_failed,
            elapsed_seconds=round(result.elapsed_seconds, 3),
            rows_per_second=round(result.rows_per_second, 1),
        )
        return result


__all__ = ["DEFAULT_MAX_WORKERS", "resolve_worker_count", "run_partitioned"]
