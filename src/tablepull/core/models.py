"""Data model for partitioned extraction.

Lifecycle of one table::

    ExtractionJob ──plan──▶ Shard × N ──run_shard──▶ KeyResult × keys
                                                        │
                     TableResult ◀──merge── TableResult × N (one per shard)

Nothing here outlives a single orchestrator call; there is no cache.
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any

from tablepull.core.errors import ConfigurationError
from tablepull.core.sql import literal, validate_identifier


@dataclass(frozen=True)
class ExtractionJob:
    """One logical table to pull.

    The optional fields select the extraction mode:

    - ``partition_column`` + no ``keys`` → parallel path discovers the
      domain; sequential path pulls the whole table in one query.
    - ``keys`` → the domain is exactly these keys, in the given order.
    - neither → a single unfiltered query.
    """

    table: str
    schema: str = "llds"
    partition_column: str | None = None
    keys: tuple[Hashable, ...] | None = None

    def __post_init__(self) -> None:
        if not self.table or not self.table.strip():
            raise ConfigurationError("table name must not be empty", key="table", value=self.table)
        validate_identifier(self.table, what="table")
        validate_identifier(self.schema, what="schema")
        if self.partition_column is not None:
            validate_identifier(self.partition_column, what="partition column")
        if self.keys is not None:
            if self.partition_column is None:
                raise ConfigurationError(
                    f"keys given for {self.table} without a partition column",
                    key="keys",
                    value=self.keys,
                )
            # Accept any sequence from callers; store an immutable copy
            object.__setattr__(self, "keys", tuple(self.keys))
            for key in self.keys:
                literal(key)
            duplicates = sorted({str(k) for k in self.keys if self.keys.count(k) > 1})
            if duplicates:
                raise ConfigurationError(
                    f"duplicate keys for {self.table}: {', '.join(duplicates)}",
                    key="keys",
                    value=self.keys,
                )

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"


@dataclass(frozen=True)
class Shard:
    """A contiguous slice of the partition-key domain for one worker."""

    index: int
    keys: tuple[Hashable, ...]

    @property
    def is_empty(self) -> bool:
        return not self.keys

    def __len__(self) -> int:
        return len(self.keys)


@dataclass(frozen=True)
class RowSet:
    """Tabular rows returned by one query, with their column names."""

    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = ()

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class KeyFailure:
    """A key whose query failed; recorded, never raised past the shard."""

    key: Hashable
    message: str
    shard: int | None = None


@dataclass(frozen=True)
class KeyResult:
    """Outcome of the query for a single partition key."""

    key: Hashable
    columns: tuple[str, ...] = ()
    rows: tuple[tuple[Any, ...], ...] = ()
    error: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TableResult:
    """Row set for one job (or one shard of a job).

    ``failures`` and ``shards_failed`` make partial results observable:
    an empty result with no failures means the source really had no rows.
    """

    table: str
    columns: tuple[str, ...] = ()
    rows: list[tuple[Any, ...]] = field(default_factory=list)
    failures: list[KeyFailure] = field(default_factory=list)
    shards_total: int = 0
    shards_failed: int = 0
    error: str | None = None
    elapsed_seconds: float = 0.0
    artifact: str | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def failed_keys(self) -> list[Hashable]:
        return [f.key for f in self.failures]

    @property
    def is_complete(self) -> bool:
        """True when no key, shard or job-level failure was recorded."""
        return not self.failures and not self.shards_failed and self.error is None

    @property
    def rows_per_second(self) -> float:
        return self.row_count / max(self.elapsed_seconds, 0.001)

    def records(self) -> list[dict[str, Any]]:
        """Rows as column-keyed dictionaries."""
        return [dict(zip(self.columns, row)) for row in self.rows]

    def summary(self) -> dict[str, Any]:
        """Counters for logging and CLI output."""
        return {
            "table": self.table,
            "rows": self.row_count,
            "columns": len(self.columns),
            "failed_keys": len(self.failures),
            "shards_total": self.shards_total,
            "shards_failed": self.shards_failed,
            "error": self.error,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "artifact": self.artifact,
        }


__all__ = [
    "ExtractionJob",
    "Shard",
    "RowSet",
    "KeyFailure",
    "KeyResult",
    "TableResult",
]
