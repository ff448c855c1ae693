"""Fan-in of per-key and per-shard row sets.

Rows are concatenated in whatever order results arrive.  Every non-empty
row set of one job must carry the same ordered columns; a different
layout raises ``SchemaMismatchError`` instead of being coerced.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from tablepull.core.errors import SchemaMismatchError
from tablepull.core.models import TableResult


def append_rows(
    target: TableResult,
    columns: Sequence[str],
    rows: Sequence[tuple[Any, ...]],
) -> None:
    """Add ``rows`` to ``target`` after checking their column layout.

    Zero-row inputs never take part in the check; they only supply the
    column names while ``target`` has none.
    """
    columns = tuple(columns)
    if not rows:
        if not target.columns:
            target.columns = columns
        return

    if target.rows and target.columns != columns:
        raise SchemaMismatchError(
            f"{target.table}: column layout differs between row sets",
            expected=target.columns,
            actual=columns,
        ).with_context(table=target.table)

    if not target.rows:
        target.columns = columns
    target.rows.extend(rows)


def merge(results: Iterable[TableResult], table: str | None = None) -> TableResult:
    """Concatenate shard results into one table result.

    Failures and shard counters are summed so that a partial union stays
    visible to the caller.

    Raises:
        SchemaMismatchError: If two non-empty results disagree on columns.
    """
    results = list(results)
    name = table if table is not None else (results[0].table if results else "")
    merged = TableResult(table=name)

    for part in results:
        append_rows(merged, part.columns, part.rows)
        merged.failures.extend(part.failures)
        merged.shards_total += part.shards_total
        merged.shards_failed += part.shards_failed
        if merged.error is None and part.error is not None:
            merged.error = part.error
    return merged


__all__ = ["append_rows", "merge"]
