"""Partitioned and sequential extraction.

planner       worker count, shard plan, domain discovery
shard         per-worker key loop with fault isolation
aggregate     fan-in with column checks
sequential    single-connection extractor
parallel      run_partitioned on a scoped thread pool
persist       CSV artifacts
orchestrator  run_jobs
jobs          YAML job files
"""

from tablepull.extraction.aggregate import merge
from tablepull.extraction.orchestrator import run_jobs
from tablepull.extraction.parallel import run_partitioned
from tablepull.extraction.planner import available_keys, plan, select_worker_count
from tablepull.extraction.sequential import extract, run_sequential
from tablepull.extraction.shard import run_shard

__all__ = [
    "select_worker_count",
    "plan",
    "available_keys",
    "run_shard",
    "merge",
    "extract",
    "run_sequential",
    "run_partitioned",
    "run_jobs",
]
