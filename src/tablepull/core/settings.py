"""Environment-driven settings for tablepull.

All knobs that extraction code would otherwise hard-code as function
defaults (host, service name, schema, worker ceiling, timeouts) live here
and can be overridden with ``TABLEPULL_*`` environment variables or a
``.env`` file.

Examples:
    >>> from tablepull.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.schema_name
    'llds'

    Switching to a pre-configured DSN source::

        export TABLEPULL_SOURCE_KIND=dsn
        export TABLEPULL_DSN="PIRO LOTUS"
        export TABLEPULL_SCHEMA_NAME=newobs
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TablepullSettings(BaseSettings):
    """Settings shared by the CLI, the orchestrator and the providers.

    Fields
    ──────
    source_kind      : Which Connection Provider variant to build
    host/port/...    : Credentialed source (Oracle service by default)
    dsn/dsn_dialect  : Pre-configured ODBC data source
    url              : Any SQLAlchemy URL (SQLite for local work)
    timeout          : Connect timeout in seconds
    schema_name      : Default schema for jobs that do not name one
    max_workers      : Ceiling for the worker pool
    output_dir       : Where delimited-text artifacts are written
    """

    model_config = SettingsConfigDict(
        env_prefix="TABLEPULL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Source selection ─────────────────────────────────────────
    source_kind: Literal["credentials", "dsn", "url"] = "credentials"

    # ── Credentialed source ──────────────────────────────────────
    host: str = "picdb.nmfs.local"
    port: int = 1521
    service_name: str = "pic.pifscproddbsn.pifscprodvcn.oraclevcn.com"
    dialect: str = "oracle+oracledb"
    uid_secret: str = "PIFSC_Logbook_user"
    pwd_secret: str = "PIFSC_Logbook_pwd"
    secrets_dir: Path | None = Field(
        default=None,
        description="Directory of file-based secrets (Docker/Kubernetes style)",
    )

    # ── Pre-configured source ────────────────────────────────────
    dsn: str = "PIRO LOTUS"
    dsn_dialect: str = "mssql+pyodbc"

    # ── Generic source ───────────────────────────────────────────
    url: str | None = None

    timeout: int = Field(default=10, ge=1, description="Connect timeout in seconds")

    # ── Extraction ───────────────────────────────────────────────
    schema_name: str = "llds"
    max_workers: int = Field(default=8, ge=2, description="Upper bound on parallel workers")
    output_dir: Path | None = None
    timestamp_files: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> TablepullSettings:
    """Get cached settings instance."""
    return TablepullSettings()


__all__ = ["TablepullSettings", "get_settings"]
