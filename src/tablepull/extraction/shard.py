"""Shard executor: one worker, one connection, many keys.

A worker opens exactly one connection, runs one filtered query per key
in the order given, and always hands the connection back to the provider
before returning.  A failing key is logged, counted and recorded as a
``KeyFailure``; the remaining keys still run.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from typing import Any

from tablepull.core.errors import QueryError, SourceConnectionError
from tablepull.core.logging import LogContext, get_logger
from tablepull.core.models import ExtractionJob, KeyFailure, KeyResult, Shard, TableResult
from tablepull.core.protocols import ConnectionProvider, SourceConnection
from tablepull.core.sql import select_for_key
from tablepull.extraction.aggregate import append_rows
from tablepull.observability.metrics import ExtractionMetrics, extraction_metrics

logger = get_logger(__name__)


def query_key(connection: SourceConnection, job: ExtractionJob, key: Hashable) -> KeyResult:
    """Run the filtered query for one key; a ``QueryError`` becomes ``KeyResult.error``."""
    sql = select_for_key(job.schema, job.table, job.partition_column, key)
    try:
        rowset = connection.query(sql)
    except QueryError as e:
        return KeyResult(key=key, error=e.message)
    return KeyResult(key=key, columns=rowset.columns, rows=rowset.rows)


def extract_keys(
    connection: SourceConnection,
    job: ExtractionJob,
    keys: Iterable[Hashable],
    *,
    shard_index: int | None = None,
    metrics: ExtractionMetrics | None = None,
) -> TableResult:
    """Pull every key in ``keys`` over ``connection`` with per-key fault isolation."""
    metrics = metrics or extraction_metrics
    result = TableResult(table=job.table)

    for key in keys:
        outcome = query_key(connection, job, key)
        if not outcome.ok:
            logger.warning(
                "shard.key_failed",
                table=job.table,
                key=key,
                shard=shard_index,
                error=outcome.error,
            )
            result.failures.append(KeyFailure(key=key, message=outcome.error, shard=shard_index))
            metrics.record_key(job.table, failed=True)
            continue

        append_rows(result, outcome.columns, outcome.rows)
        metrics.record_key(job.table, rows=outcome.row_count)
        logger.debug("shard.key_extracted", table=job.table, key=key, shard=shard_index, rows=outcome.row_count)

    return result


def run_shard(
    job: ExtractionJob,
    shard: Shard | Iterable[Hashable],
    provider: ConnectionProvider,
    *,
    parameters: Mapping[str, Any] | None = None,
    metrics: ExtractionMetrics | None = None,
) -> TableResult:
    """Execute one shard on its own connection.

    Args:
        job: Job the keys belong to; must have a partition column.
        shard: A planned ``Shard`` or a bare sequence of keys.
        provider: Opens the worker's exclusive connection.
        parameters: Per-run overrides forwarded to ``provider.open``.
        metrics: Event sink; defaults to the module-level instance.

    Returns:
        The shard's rows with ``shards_total=1`` and any key failures.

    Raises:
        SourceConnectionError: If the connection cannot be opened.  No key
            is attempted and nothing needs releasing.
        SchemaMismatchError: If two keys return different column layouts.
    """
    metrics = metrics or extraction_metrics
    if not isinstance(shard, Shard):
        shard = Shard(index=0, keys=tuple(shard))

    with LogContext(table=job.table, shard=shard.index):
        try:
            connection = provider.open(parameters)
        except SourceConnectionError as e:
            metrics.record_shard(job.table, failed=True)
            logger.error("shard.connect_failed", keys=len(shard), error=e.message)
            raise e.with_context(table=job.table, schema=job.schema, shard=shard.index)

        metrics.worker_started(job.table)
        try:
            result = extract_keys(connection, job, shard.keys, shard_index=shard.index, metrics=metrics)
        finally:
            provider.close(connection)
            metrics.worker_finished(job.table)

        result.shards_total = 1
        metrics.record_shard(job.table)
        logger.info(
            "shard.complete",
            keys=len(shard),
            rows=result.row_count,
            failed_keys=len(result.failures),
        )
        return result


__all__ = ["query_key", "extract_keys", "run_shard"]
