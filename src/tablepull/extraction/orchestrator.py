"""Run a list of table jobs one after another.

Concurrency lives only inside a job's shard fan-out; jobs themselves run
strictly in order.  A failing job is logged and recorded on its
``TableResult.error``; the run always continues and returns an entry for
every table.

Example:
    >>> from tablepull import ExtractionJob, run_jobs
    >>> from tablepull.core.connection import UrlProvider
    >>> results = run_jobs(  # doctest: +SKIP
    ...     [ExtractionJob("LLDS_HDR", partition_column="LANDYR")],
    ...     "output/",
    ...     provider=UrlProvider("sqlite:///logbook.db"),
    ... )
    >>> results["LLDS_HDR"].row_count  # doctest: +SKIP
    12840
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from tablepull.core.connection import create_provider
from tablepull.core.errors import ConfigurationError, TablepullError
from tablepull.core.logging import get_logger
from tablepull.core.models import ExtractionJob, TableResult
from tablepull.core.protocols import ConnectionProvider, SourceConnection
from tablepull.extraction.parallel import DEFAULT_MAX_WORKERS, resolve_worker_count, run_partitioned
from tablepull.extraction.persist import artifact_path, ensure_directory, write_delimited
from tablepull.extraction.sequential import run_sequential
from tablepull.observability.metrics import ExtractionMetrics, extraction_metrics

logger = get_logger(__name__)


def run_jobs(
    jobs: Iterable[ExtractionJob],
    persist_dir: str | Path | None = None,
    *,
    provider: ConnectionProvider | None = None,
    sequential: bool = False,
    connection: SourceConnection | None = None,
    timestamp: bool = False,
    workers: int | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
    hardware_concurrency: int | None = None,
    parameters: Mapping[str, Any] | None = None,
    metrics: ExtractionMetrics | None = None,
) -> dict[str, TableResult]:
    """Extract every job and optionally write each non-empty result to disk.

    Args:
        jobs: Jobs in the order they should run.
        persist_dir: Directory for ``TABLE.csv`` artifacts; created on demand.
        provider: Connection provider; defaults to the configured one.
        sequential: Use the single-connection extractor for every job.
        connection: Caller-owned connection shared by all jobs.  Only valid
            with ``sequential=True`` and never closed here.
        timestamp: Suffix artifact names with ``_YYYYmmddHHMMSS``.
        workers, max_workers, hardware_concurrency: Worker sizing for the
            partitioned path.
        parameters: Overrides forwarded to ``provider.open``.
        metrics: Event sink; defaults to the module-level instance.

    Returns:
        Table name to result.  A later job with the same table name
        replaces the earlier entry.

    Raises:
        ConfigurationError: Before any job runs, if ``connection`` is given
            without ``sequential``, the worker bounds are invalid or the
            provider cannot be built.
    """
    jobs = list(jobs)
    metrics = metrics or extraction_metrics

    if connection is not None and not sequential:
        raise ConfigurationError(
            "a shared connection can only be used with sequential extraction",
            key="connection",
        )
    if connection is None:
        provider = provider or create_provider()
    if not sequential:
        resolve_worker_count(workers, max_workers=max_workers, hardware_concurrency=hardware_concurrency)

    run_started = datetime.now()
    mode = "sequential" if sequential else "partitioned"
    logger.info("orchestrator.start", jobs=len(jobs), mode=mode, persist_dir=str(persist_dir) if persist_dir else None)

    results: dict[str, TableResult] = {}
    for position, job in enumerate(jobs, start=1):
        logger.info("orchestrator.job_start", table=job.table, position=position, total=len(jobs))
        try:
            if persist_dir is not None:
                ensure_directory(persist_dir)
            if sequential:
                result = run_sequential(
                    job,
                    connection,
                    provider=provider,
                    parameters=parameters,
                    metrics=metrics,
                )
            else:
                result = run_partitioned(
                    job,
                    provider=provider,
                    workers=workers,
                    max_workers=max_workers,
                    hardware_concurrency=hardware_concurrency,
                    parameters=parameters,
                    metrics=metrics,
                )
        except TablepullError as e:
            logger.error("orchestrator.job_failed", table=job.table, **e.to_dict())
            result = TableResult(table=job.table, error=e.message)
        except Exception as e:  # keep going: one broken job never halts the run
            logger.exception("orchestrator.job_failed", table=job.table, error=str(e))
            result = TableResult(table=job.table, error=f"{type(e).__name__}: {e}")

        if persist_dir is not None and not result.is_empty:
            _persist(result, persist_dir, timestamp=timestamp)

        if job.table in results:
            logger.debug("orchestrator.result_replaced", table=job.table)
        results[job.table] = result
        logger.info("orchestrator.job_complete", **result.summary())

    logger.info(
        "orchestrator.complete",
        jobs=len(jobs),
        tables=len(results),
        failed=sum(1 for r in results.values() if r.error is not None),
        elapsed_seconds=round((datetime.now() - run_started).total_seconds(), 3),
    )
    return results


def _persist(result: TableResult, directory: str | Path, *, timestamp: bool) -> None:
    path = artifact_path(directory, result.table, timestamp=timestamp)
    try:
        result.artifact = str(write_delimited(result, path))
    except TablepullError as e:
        logger.error("orchestrator.persist_failed", table=result.table, **e.to_dict())
        result.error = e.message


__all__ = ["run_jobs"]
