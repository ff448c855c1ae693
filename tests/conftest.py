"""
Shared pytest fixtures for tablepull tests.

This module provides:
- A populated SQLite logbook database (schema ``main``) and a provider for it
- Scripted providers for failure injection (failing keys, failing opens,
  broken teardown, mismatched columns)
- An isolated metrics bundle per test

Usage:
    def test_pull(sqlite_provider, metrics):
        job = ExtractionJob("LLDS_HDR", schema="main", partition_column="LANDYR")
        result = run_partitioned(job, provider=sqlite_provider, workers=2, metrics=metrics)
"""

import re
import sys
import threading
from pathlib import Path

import pytest
import structlog
from sqlalchemy import create_engine

# Ensure tablepull package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tablepull.core.connection import UrlProvider
from tablepull.core.errors import QueryError, SourceConnectionError
from tablepull.core.models import RowSet
from tablepull.observability.metrics import ExtractionMetrics, MetricsRegistry


# =============================================================================
# SQLite logbook
# =============================================================================

# rows per landing year: 2020 -> 3, 2021 -> 2, 2022 -> 5, 2023 -> 1
HDR_ROWS = [
    (1, 2020, "KAIMANA", 1200.5),
    (2, 2020, "MAKANI", 800.0),
    (3, 2020, "NALU", None),
    (4, 2021, "KAIMANA", 950.25),
    (5, 2021, "LOKELANI", 410.0),
    (6, 2022, "MAKANI", 1500.0),
    (7, 2022, "NALU", 60.0),
    (8, 2022, "KAIMANA", 720.0),
    (9, 2022, "O'HANA", 330.0),
    (10, 2022, "LOKELANI", 90.0),
    (11, 2023, "MAKANI", 1010.0),
]

# one trip has no year; discovery must skip it
TRIP_ROWS = [
    (100, 2019, "O"),
    (101, 2019, "O"),
    (102, None, "O"),
    (103, 2021, "X"),
]


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    """File-backed SQLite database shared by every worker thread of a test."""
    url = f"sqlite:///{tmp_path / 'logbook.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        conn.exec_driver_sql(
            "CREATE TABLE LLDS_HDR (HDR_ID INTEGER PRIMARY KEY, LANDYR INTEGER, VESSEL TEXT, LBS REAL)"
        )
        conn.exec_driver_sql("INSERT INTO LLDS_HDR VALUES (?, ?, ?, ?)", HDR_ROWS)
        conn.exec_driver_sql("CREATE TABLE LDS_TRIPS_V (TRIP_ID INTEGER PRIMARY KEY, TRIP_YEAR INTEGER, TRIP_TYPE TEXT)")
        conn.exec_driver_sql("INSERT INTO LDS_TRIPS_V VALUES (?, ?, ?)", TRIP_ROWS)
        conn.exec_driver_sql("CREATE TABLE EMPTY_T (ID INTEGER, LANDYR INTEGER)")
    engine.dispose()
    return url


@pytest.fixture
def sqlite_provider(sqlite_url: str) -> UrlProvider:
    return UrlProvider(sqlite_url, timeout=5)


# =============================================================================
# Scripted source
# =============================================================================


class ScriptedConnection:
    """Answers the engine's SQL from an in-memory ``{key: rows}`` map."""

    def __init__(self, rows_by_key, *, columns, fail_keys, columns_by_key, close_error):
        self.rows_by_key = rows_by_key
        self.columns = columns
        self.fail_keys = set(fail_keys)
        self.columns_by_key = columns_by_key or {}
        self.close_error = close_error
        self.queries: list[str] = []
        self.closed = False

    def query(self, sql: str) -> RowSet:
        self.queries.append(sql)
        if sql.startswith("SELECT DISTINCT"):
            return RowSet(columns=(self.columns[0],), rows=tuple((k,) for k in self.rows_by_key))

        match = re.search(r"WHERE \w+ = (.+)$", sql)
        if match is None:
            rows = tuple(row for rows in self.rows_by_key.values() for row in rows)
            return RowSet(columns=self.columns, rows=rows)

        raw = match.group(1)
        key = raw.strip("'") if raw.startswith("'") else int(raw)
        if key in self.fail_keys:
            raise QueryError(f"simulated failure for {key}")
        columns = self.columns_by_key.get(key, self.columns)
        return RowSet(columns=columns, rows=tuple(self.rows_by_key.get(key, ())))

    def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True


class ScriptedProvider:
    """Connection provider with failure injection.

    ``fail_opens`` makes that many ``open()`` calls raise
    ``SourceConnectionError`` before opens start succeeding.
    """

    name = "scripted"

    def __init__(
        self,
        rows_by_key=None,
        *,
        columns=("LANDYR", "VALUE"),
        fail_keys=(),
        fail_opens=0,
        columns_by_key=None,
        close_error=None,
    ):
        self.rows_by_key = dict(rows_by_key or {})
        self.columns = tuple(columns)
        self.fail_keys = tuple(fail_keys)
        self.fail_opens = fail_opens
        self.columns_by_key = columns_by_key
        self.close_error = close_error
        self.opened: list[ScriptedConnection] = []
        self.closed: list[ScriptedConnection] = []
        self.parameters: list = []
        self.failed_opens = 0
        self._lock = threading.Lock()

    def open(self, parameters=None) -> ScriptedConnection:
        with self._lock:
            self.parameters.append(parameters)
            if self.fail_opens > 0:
                self.fail_opens -= 1
                self.failed_opens += 1
                raise SourceConnectionError("simulated: listener refused connection")
            conn = ScriptedConnection(
                self.rows_by_key,
                columns=self.columns,
                fail_keys=self.fail_keys,
                columns_by_key=self.columns_by_key,
                close_error=self.close_error,
            )
            self.opened.append(conn)
            return conn

    def close(self, connection: ScriptedConnection) -> bool:
        try:
            connection.close()
        except Exception:
            return False
        finally:
            with self._lock:
                self.closed.append(connection)
        return True

    @property
    def all_queries(self) -> list[str]:
        return [q for conn in self.opened for q in conn.queries]


def year_rows(years: dict[int, int]) -> dict[int, list[tuple]]:
    """``{2021: 2}`` -> ``{2021: [(2021, 0), (2021, 1)]}``."""
    return {year: [(year, i) for i in range(count)] for year, count in years.items()}


@pytest.fixture
def scripted():
    """The ``ScriptedProvider`` class, for tests to configure."""
    return ScriptedProvider


@pytest.fixture
def make_rows():
    return year_rows


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture
def metrics() -> ExtractionMetrics:
    """Fresh metrics per test so counters start at zero."""
    return ExtractionMetrics(MetricsRegistry())


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Tests that configure logging must not leak the config into others."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch):
    """Settings are cached process-wide; start every test from the environment."""
    from tablepull.core.settings import get_settings

    for var in ("TABLEPULL_SOURCE_KIND", "TABLEPULL_URL", "TABLEPULL_MAX_WORKERS", "TABLEPULL_OUTPUT_DIR"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
