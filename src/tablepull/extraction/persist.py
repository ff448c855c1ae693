"""Delimited-text artifacts for extracted tables.

One file per table: a header row with the column names, then one line
per source row, comma-separated, UTF-8.  ``None`` is written as an empty
field.
"""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path

from tablepull.core.errors import PersistenceError
from tablepull.core.logging import get_logger
from tablepull.core.models import TableResult

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def ensure_directory(directory: str | Path) -> Path:
    """Create ``directory`` and its parents if missing; idempotent."""
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PersistenceError(f"cannot create output directory {path}: {e}", cause=e).with_context(
            path=str(path)
        ) from e
    return path


def artifact_path(
    directory: str | Path,
    table: str,
    *,
    timestamp: bool = False,
    now: datetime | None = None,
) -> Path:
    """``<directory>/<table>.csv``, or ``<table>_YYYYmmddHHMMSS.csv`` when timestamped."""
    if not timestamp:
        return Path(directory) / f"{table}.csv"
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return Path(directory) / f"{table}_{stamp}.csv"


def write_delimited(result: TableResult, path: str | Path, *, delimiter: str = ",") -> Path:
    """Write ``result`` to ``path``, creating the parent directory.

    Raises:
        PersistenceError: If the file cannot be written.
    """
    path = Path(path)
    ensure_directory(path.parent)
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, delimiter=delimiter)
            writer.writerow(result.columns)
            writer.writerows(result.rows)
    except OSError as e:
        raise PersistenceError(f"cannot write {path}: {e}", cause=e).with_context(
            table=result.table, path=str(path)
        ) from e

    logger.info("persist.written", table=result.table, path=str(path), rows=result.row_count)
    return path


__all__ = ["TIMESTAMP_FORMAT", "ensure_directory", "artifact_path", "write_delimited"]
