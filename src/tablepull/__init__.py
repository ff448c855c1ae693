"""
tablepull - Partitioned bulk extraction of relational tables.

Splits a table by a partition column (typically a year), pulls the
shards concurrently on exclusive connections, and merges the rows into
one result that can be written out as CSV.

Entry points:
- run_partitioned: one job across a bounded worker pool
- run_sequential: one job on a single connection
- run_jobs: a list of jobs, one after another, optionally persisted
"""

__version__ = "0.1.0"

from tablepull.core.errors import (
    ConfigurationError,
    DisconnectError,
    QueryError,
    SchemaMismatchError,
    SourceConnectionError,
    TablepullError,
)
from tablepull.core.models import ExtractionJob, KeyFailure, Shard, TableResult
from tablepull.extraction.orchestrator import run_jobs
from tablepull.extraction.parallel import run_partitioned
from tablepull.extraction.sequential import run_sequential

__all__ = [
    "__version__",
    "ExtractionJob",
    "Shard",
    "KeyFailure",
    "TableResult",
    "run_partitioned",
    "run_sequential",
    "run_jobs",
    "TablepullError",
    "SourceConnectionError",
    "DisconnectError",
    "QueryError",
    "SchemaMismatchError",
    "ConfigurationError",
]
