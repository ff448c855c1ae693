"""Single-connection extraction without partitioning.

Modes, chosen by the job:

==========================  ===================================
Job                          Queries issued
==========================  ===================================
no column, no keys           one ``SELECT *``
column, no keys              one ``SELECT *`` (whole table)
explicit keys                one filtered query per key, in order
==========================  ===================================

A connection passed in by the caller is used as-is and left open.
Otherwise one is opened from the provider and released on every exit
path.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

from tablepull.core.connection import create_provider
from tablepull.core.errors import QueryError
from tablepull.core.logging import LogContext, get_logger
from tablepull.core.models import ExtractionJob, TableResult
from tablepull.core.protocols import ConnectionProvider, SourceConnection
from tablepull.core.sql import select_all
from tablepull.extraction.aggregate import append_rows
from tablepull.extraction.shard import extract_keys
from tablepull.observability.metrics import ExtractionMetrics, extraction_metrics

logger = get_logger(__name__)


def extract(
    job: ExtractionJob,
    connection: SourceConnection,
    *,
    metrics: ExtractionMetrics | None = None,
) -> TableResult:
    """Run ``job`` over an open connection without touching its lifecycle.

    Raises:
        QueryError: If an unfiltered query fails.  Keyed queries record
            their failures on the result instead.
    """
    metrics = metrics or extraction_metrics

    if job.keys is not None:
        return extract_keys(connection, job, job.keys, metrics=metrics)

    if job.partition_column is not None:
        # Whole table in one query even though a column was named
        logger.info("sequential.unfiltered", partition_column=job.partition_column)

    try:
        rowset = connection.query(select_all(job.schema, job.table))
    except QueryError as e:
        raise e.with_context(table=job.table, schema=job.schema)

    result = TableResult(table=job.table)
    append_rows(result, rowset.columns, rowset.rows)
    metrics.record_rows(job.table, result.row_count)
    return result


def run_sequential(
    job: ExtractionJob,
    connection: SourceConnection | None = None,
    *,
    provider: ConnectionProvider | None = None,
    parameters: Mapping[str, Any] | None = None,
    metrics: ExtractionMetrics | None = None,
) -> TableResult:
    """Extract ``job`` on one connection.

    Args:
        job: Table to pull.
        connection: Caller-owned open connection.  Never closed here.
        provider: Used to open a connection when none is given; defaults
            to the provider configured in settings.
        parameters: Overrides forwarded to ``provider.open``.
        metrics: Event sink; defaults to the module-level instance.

    Raises:
        SourceConnectionError: If no connection was given and one cannot
            be opened.
    """
    metrics = metrics or extraction_metrics
    started = time.perf_counter()

    with LogContext(table=job.table, mode="sequential"):
        logger.info("sequential.start", schema=job.schema, keys=None if job.keys is None else len(job.keys))

        if connection is not None:
            result = extract(job, connection, metrics=metrics)
        else:
            provider = provider or create_provider()
            owned = provider.open(parameters)
            try:
                result = extract(job, owned, metrics=metrics)
            finally:
                provider.close(owned)

        result.elapsed_seconds = time.perf_counter() - started
        metrics.record_job(job.table, "sequential", result.elapsed_seconds)
        logger.info(
            "sequential.complete",
            rows=result.row_count,
            failed_keys=len(result.failures),
            elapsed_seconds=round(result.elapsed_seconds, 3),
            rows_per_second=round(result.rows_per_second, 1),
        )
        return result


__all__ = ["extract", "run_sequential"]
