"""Connection providers that open exclusive source connections from configuration.

This is the **single entry point** for reaching the source.  Workers, the
sequential extractor and domain discovery all go through a
``ConnectionProvider``; none of them knows whether it is talking to an
Oracle service with stored credentials, an ODBC DSN or a local SQLite file.

Provider variants
-----------------
=======================  ==========================================  =============
Provider                 Built from                                  Typical use
=======================  ==========================================  =============
``CredentialedProvider``  host, port, service name, secret names      Oracle logbooks
``DsnProvider``           pre-configured ODBC data source name        SQL Server DSN
``UrlProvider``           any SQLAlchemy URL                          SQLite, tests
=======================  ==========================================  =============

``create_provider(settings)`` picks the variant from ``settings.source_kind``
so call sites never branch on connection style.

Design
------
Each ``open()`` builds its own SQLAlchemy engine with ``NullPool``: one
engine, one DBAPI connection, owned by exactly one worker and released by
``close()``.  No pool is shared between threads.

Usage
-----
::

    from tablepull.core.connection import UrlProvider

    provider = UrlProvider("sqlite:///logbook.db")
    conn = provider.open()
    try:
        rows = conn.query("SELECT * FROM main.LLDS_HDR WHERE LANDYR = 2021")
    finally:
        provider.close(conn)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from tablepull.core.errors import (
    ConfigurationError,
    DisconnectError,
    QueryError,
    SourceConnectionError,
)
from tablepull.core.logging import get_logger
from tablepull.core.models import RowSet
from tablepull.core.protocols import SourceConnection
from tablepull.core.secrets import MissingSecretError, SecretsResolver, default_resolver
from tablepull.core.settings import TablepullSettings, get_settings

logger = get_logger(__name__)


# ── Connection ───────────────────────────────────────────────────────────


class SqlAlchemyConnection:
    """A single SQLAlchemy connection plus the engine that owns it."""

    def __init__(self, engine: Engine, connection: Connection, label: str = "") -> None:
        self._engine = engine
        self._connection = connection
        self.label = label

    def query(self, sql: str) -> RowSet:
        """Run ``sql`` verbatim on the driver and return every row.

        Raises:
            QueryError: If the driver rejects the statement.  The
                transaction is rolled back so the next key can run.
        """
        try:
            result = self._connection.exec_driver_sql(sql)
            columns = tuple(result.keys())
            rows = tuple(tuple(row) for row in result)
        except SQLAlchemyError as e:
            self._rollback()
            message = str(getattr(e, "orig", None) or e).strip()
            raise QueryError(message or type(e).__name__, cause=e) from e
        return RowSet(columns=columns, rows=rows)

    def _rollback(self) -> None:
        try:
            self._connection.rollback()
        except SQLAlchemyError as e:
            logger.debug("connection.rollback_failed", source=self.label, error=str(e))

    def close(self) -> None:
        try:
            self._connection.close()
        finally:
            self._engine.dispose()

    @property
    def closed(self) -> bool:
        return self._connection.closed

    def __repr__(self) -> str:
        return f"SqlAlchemyConnection({self.label!r}, closed={self.closed})"


# ── Timeout handling ─────────────────────────────────────────────────────

# Connect-timeout keyword per DBAPI driver.  Only connect is bounded;
# queries run until the source answers.
_TIMEOUT_ARG = {
    "sqlite": "timeout",
    "postgresql": "connect_timeout",
    "mysql": "connect_timeout",
    "mssql": "timeout",
    "oracle": "tcp_connect_timeout",
}


def _timeout_args(url: URL, timeout: int | None) -> dict[str, Any]:
    if timeout is None:
        return {}
    arg = _TIMEOUT_ARG.get(url.get_backend_name())
    return {arg: timeout} if arg else {}


# ── Providers ────────────────────────────────────────────────────────────


class SqlAlchemyProvider:
    """Base provider: subclasses turn merged parameters into a URL."""

    kind = "sqlalchemy"

    def __init__(
        self,
        *,
        timeout: int | None = 10,
        connect_args: Mapping[str, Any] | None = None,
        engine_options: Mapping[str, Any] | None = None,
    ) -> None:
        self.timeout = timeout
        self.connect_args = dict(connect_args or {})
        self.engine_options = dict(engine_options or {})

    @property
    def name(self) -> str:
        return self.kind

    def defaults(self) -> dict[str, Any]:
        """Parameters used when ``open()`` is called without overrides."""
        return {"timeout": self.timeout}

    def build_url(self, params: Mapping[str, Any]) -> URL:
        raise NotImplementedError

    def open(self, parameters: Mapping[str, Any] | None = None) -> SourceConnection:
        """Open one exclusive connection.

        Raises:
            SourceConnectionError: Missing credentials, missing driver,
                unreachable host or rejected login.
        """
        params = {**self.defaults(), **(parameters or {})}
        try:
            url = self.build_url(params)
            connect_args = {**_timeout_args(url, params.get("timeout")), **self.connect_args}
            engine = create_engine(url, poolclass=NullPool, connect_args=connect_args, **self.engine_options)
        except (MissingSecretError, OSError) as e:
            raise SourceConnectionError(f"cannot authenticate: {e}", cause=e).with_context(source=self.name) from e
        except (SQLAlchemyError, ImportError) as e:
            raise SourceConnectionError(f"cannot create engine: {e}", cause=e).with_context(source=self.name) from e

        try:
            connection = engine.connect()
        except SQLAlchemyError as e:
            engine.dispose()
            message = str(getattr(e, "orig", None) or e).strip()
            raise SourceConnectionError(f"cannot connect: {message}", cause=e).with_context(source=self.name) from e

        logger.debug("connection.opened", source=self.name)
        return SqlAlchemyConnection(engine, connection, label=self.name)

    def close(self, connection: SourceConnection) -> bool:
        """Close ``connection``; never raises.

        Safe on an already-broken connection: the failure is logged as a
        ``DisconnectError`` and ``False`` is returned.
        """
        try:
            connection.close()
        except Exception as e:  # driver errors vary; teardown must not raise
            error = DisconnectError(f"failed to disconnect: {e}", cause=e).with_context(source=self.name)
            logger.warning("connection.close_failed", **error.to_dict())
            return False
        logger.debug("connection.closed", source=self.name)
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class UrlProvider(SqlAlchemyProvider):
    """Connect with any SQLAlchemy URL (``sqlite:///logbook.db``, ``postgresql://…``)."""

    kind = "url"

    def __init__(self, url: str | URL, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        try:
            self.url = make_url(url)
        except SQLAlchemyError as e:
            raise ConfigurationError(f"invalid database url: {e}", key="url", value=str(url), cause=e) from e

    @property
    def name(self) -> str:
        return f"url:{self.url.render_as_string(hide_password=True)}"

    def defaults(self) -> dict[str, Any]:
        return {**super().defaults(), "url": self.url}

    def build_url(self, params: Mapping[str, Any]) -> URL:
        return make_url(params["url"])


class CredentialedProvider(SqlAlchemyProvider):
    """Host/port/service source whose login is looked up by secret name.

    Credentials are resolved on every ``open()``, inside the worker, so
    they are never stored on the provider.
    """

    kind = "credentials"

    def __init__(
        self,
        host: str,
        port: int,
        service_name: str,
        *,
        uid_secret: str,
        pwd_secret: str,
        dialect: str = "oracle+oracledb",
        resolver: SecretsResolver | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.host = host
        self.port = port
        self.service_name = service_name
        self.uid_secret = uid_secret
        self.pwd_secret = pwd_secret
        self.dialect = dialect
        self.resolver = resolver or default_resolver()

    @property
    def name(self) -> str:
        return f"credentials:{self.host}:{self.port}/{self.service_name}"

    def defaults(self) -> dict[str, Any]:
        return {
            **super().defaults(),
            "host": self.host,
            "port": self.port,
            "service_name": self.service_name,
            "uid_secret": self.uid_secret,
            "pwd_secret": self.pwd_secret,
            "dialect": self.dialect,
        }

    def build_url(self, params: Mapping[str, Any]) -> URL:
        login = self.resolver.login(params["uid_secret"], params["pwd_secret"])
        username, password = login.username, login.password.get_secret()
        dialect = params["dialect"]
        if dialect.startswith("oracle"):
            return URL.create(
                dialect,
                username=username,
                password=password,
                host=params["host"],
                port=int(params["port"]),
                query={"service_name": params["service_name"]},
            )
        return URL.create(
            dialect,
            username=username,
            password=password,
            host=params["host"],
            port=int(params["port"]),
            database=params["service_name"],
        )


class DsnProvider(SqlAlchemyProvider):
    """Pre-configured ODBC data source (Windows auth or DSN-held credentials)."""

    kind = "dsn"

    def __init__(self, dsn: str, *, dialect: str = "mssql+pyodbc", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not dsn:
            raise ConfigurationError("dsn must not be empty", key="dsn", value=dsn)
        self.dsn = dsn
        self.dialect = dialect

    @property
    def name(self) -> str:
        return f"dsn:{self.dsn}"

    def defaults(self) -> dict[str, Any]:
        return {**super().defaults(), "dsn": self.dsn, "dialect": self.dialect}

    def build_url(self, params: Mapping[str, Any]) -> URL:
        return URL.create(params["dialect"], query={"odbc_connect": f"DSN={params['dsn']}"})


# ── Factory ──────────────────────────────────────────────────────────────


def create_provider(
    settings: TablepullSettings | None = None,
    *,
    resolver: SecretsResolver | None = None,
) -> SqlAlchemyProvider:
    """Build the provider selected by ``settings.source_kind``.

    Raises:
        ConfigurationError: ``source_kind="url"`` without a url.
    """
    settings = settings or get_settings()

    if settings.source_kind == "url":
        if not settings.url:
            raise ConfigurationError("source_kind 'url' requires TABLEPULL_URL", key="url")
        return UrlProvider(settings.url, timeout=settings.timeout)

    if settings.source_kind == "dsn":
        return DsnProvider(settings.dsn, dialect=settings.dsn_dialect, timeout=settings.timeout)

    return CredentialedProvider(
        settings.host,
        settings.port,
        settings.service_name,
        uid_secret=settings.uid_secret,
        pwd_secret=settings.pwd_secret,
        dialect=settings.dialect,
        resolver=resolver or default_resolver(settings.secrets_dir),
        timeout=settings.timeout,
    )


__all__ = [
    "SqlAlchemyConnection",
    "SqlAlchemyProvider",
    "UrlProvider",
    "CredentialedProvider",
    "DsnProvider",
    "create_provider",
]
