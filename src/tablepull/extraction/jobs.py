"""Pydantic models for YAML job files.

A job file names the tables of one run, so a batch such as "all
observer tables" can be kept in version control instead of a script.

Example YAML::

    schema: newobs
    sequential: false
    output_dir: output/observer
    timestamp: true
    jobs:
      - table: LDS_TRIPS_V
      - table: LDS_SETS_V
        partition_column: TRIP_YEAR
      - table: LLDS_HDR
        schema: llds
        partition_column: LANDYR
        keys: [2021, 2022, 2023]

Usage::

    from tablepull.extraction.jobs import load_job_file

    job_spec = load_job_file("jobs/observer.yaml")
    results = run_jobs(job_spec.to_jobs(), job_spec.output_dir, sequential=job_spec.sequential)
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tablepull.core.errors import ConfigurationError
from tablepull.core.models import ExtractionJob

KeyValue = int | float | str | datetime | date


class JobSpec(BaseModel):
    """One table entry of a job file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    table: str = Field(..., min_length=1, description="Source table name")
    schema_name: str | None = Field(default=None, alias="schema", description="Overrides the file-level schema")
    partition_column: str | None = Field(default=None, description="Column to shard on")
    keys: list[KeyValue] | None = Field(default=None, description="Explicit partition keys, in order")

    def to_job(self, default_schema: str) -> ExtractionJob:
        return ExtractionJob(
            table=self.table,
            schema=self.schema_name or default_schema,
            partition_column=self.partition_column,
            keys=tuple(self.keys) if self.keys is not None else None,
        )


class JobFileSpec(BaseModel):
    """A whole job file: shared defaults plus the job list."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    schema_name: str = Field(default="llds", alias="schema", description="Default schema for every job")
    sequential: bool = Field(default=False, description="Use the single-connection extractor")
    output_dir: str | None = Field(default=None, description="Directory for CSV artifacts")
    timestamp: bool = Field(default=False, description="Timestamp artifact file names")
    jobs: list[JobSpec] = Field(..., min_length=1)

    def to_jobs(self) -> list[ExtractionJob]:
        """Build validated ``ExtractionJob`` objects in file order.

        Raises:
            ConfigurationError: If an entry names an invalid identifier.
        """
        return [job_spec.to_job(self.schema_name) for job_spec in self.jobs]


def parse_job_file(content: str, *, source: str = "<string>") -> JobFileSpec:
    """Parse and validate job-file YAML.

    Raises:
        ConfigurationError: Invalid YAML or content not matching the schema.
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{source}: invalid YAML: {e}", key="job_file", cause=e) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: expected a mapping with a 'jobs' list", key="job_file")

    try:
        return JobFileSpec.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: {e}", key="job_file", cause=e) from e


def load_job_file(path: str | Path) -> JobFileSpec:
    """Read and validate a job file from disk."""
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"cannot read job file {path}: {e}", key="job_file", value=str(path), cause=e) from e
    return parse_job_file(content, source=str(path))


def load_jobs(path: str | Path) -> list[ExtractionJob]:
    """Shortcut for ``load_job_file(path).to_jobs()``."""
    return load_job_file(path).to_jobs()


__all__ = ["JobSpec", "JobFileSpec", "parse_job_file", "load_job_file", "load_jobs"]
