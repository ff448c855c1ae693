"""Worker-count selection, shard planning and domain discovery.

Planning is pure: the same ``(domain, worker_count)`` always yields the
same shards, so tests can assert exact assignments.

Example:
    >>> [s.keys for s in plan([2020, 2021, 2022, 2023], 2)]
    [(2020, 2021), (2022, 2023)]
    >>> [s.keys for s in plan([2020, 2021, 2022], 2)]
    [(2020, 2021), (2022,)]
    >>> plan([], 4)
    []
"""

from __future__ import annotations

import os
from collections.abc import Hashable, Sequence

from tablepull.core.errors import ConfigurationError, QueryError
from tablepull.core.logging import get_logger
from tablepull.core.models import ExtractionJob, Shard
from tablepull.core.protocols import SourceConnection
from tablepull.core.sql import select_distinct

logger = get_logger(__name__)

MIN_WORKERS = 2
HARDWARE_FRACTION = 0.75


def select_worker_count(hardware_concurrency: int | None, ceiling: int) -> int:
    """Three quarters of the available cores, clamped to ``[2, ceiling]``.

    ``hardware_concurrency`` of ``None`` (unknown) counts as zero, which
    yields the floor of two workers.

    Raises:
        ConfigurationError: If ``ceiling`` is below two.
    """
    if ceiling < MIN_WORKERS:
        raise ConfigurationError(
            f"worker ceiling must be at least {MIN_WORKERS}, got {ceiling}",
            key="max_workers",
            value=ceiling,
        )
    wanted = int((hardware_concurrency or 0) * HARDWARE_FRACTION)
    return max(MIN_WORKERS, min(wanted, ceiling))


def optimal_workers(ceiling: int) -> int:
    """``select_worker_count`` for the cores of this machine."""
    return select_worker_count(os.cpu_count(), ceiling)


def plan(domain: Sequence[Hashable], worker_count: int) -> list[Shard]:
    """Split ``domain`` into at most ``worker_count`` contiguous shards.

    The first ``len(domain) % worker_count`` shards carry one extra key,
    so sizes differ by at most one.  Bins that would be empty are not
    returned; an empty domain yields no shards at all.

    Raises:
        ConfigurationError: If ``worker_count`` is below one.
    """
    if worker_count < 1:
        raise ConfigurationError(
            f"worker count must be positive, got {worker_count}",
            key="worker_count",
            value=worker_count,
        )
    keys = tuple(domain)
    base, extra = divmod(len(keys), worker_count)

    shards: list[Shard] = []
    start = 0
    for index in range(worker_count):
        size = base + (1 if index < extra else 0)
        if size == 0:
            break
        shards.append(Shard(index=index, keys=keys[start : start + size]))
        start += size
    return shards


def available_keys(connection: SourceConnection, job: ExtractionJob) -> list[Hashable]:
    """Distinct non-null values of ``job.partition_column``, ascending.

    Raises:
        ConfigurationError: If the job has no partition column.
        QueryError: If the discovery query fails.
    """
    if job.partition_column is None:
        raise ConfigurationError(f"{job.table} has no partition column to discover", key="partition_column")

    sql = select_distinct(job.schema, job.table, job.partition_column)
    try:
        result = connection.query(sql)
    except QueryError as e:
        raise e.with_context(table=job.table, schema=job.schema)

    values = {row[0] for row in result.rows if row and row[0] is not None}
    domain = sorted(values)
    logger.debug("planner.domain_discovered", table=job.table, column=job.partition_column, keys=len(domain))
    return domain


__all__ = [
    "MIN_WORKERS",
    "select_worker_count",
    "optimal_workers",
    "plan",
    "available_keys",
]
