"""
Canonical protocol definitions for tablepull.

The engine never imports a database driver.  It depends on two shapes:

Architecture:
    ::

        protocols.py
        ├── SourceConnection     - query(sql) -> RowSet, close()
        └── ConnectionProvider   - open(parameters) -> SourceConnection
                                   close(connection) -> bool

    Implementations (tablepull.core.connection):
        UrlProvider           any SQLAlchemy URL
        CredentialedProvider  host/port/service + stored credentials
        DsnProvider           pre-configured ODBC data source

    Tests supply scripted providers that satisfy the same shapes.

Contract:
    - ``open`` raises ``SourceConnectionError`` when the source cannot be
      reached or authenticated.  It honours a ``timeout`` parameter during
      connect and nothing else times out.
    - ``query`` raises ``QueryError``; the connection stays usable for the
      next key.
    - ``ConnectionProvider.close`` never raises.  It returns ``False`` (and
      logs a ``DisconnectError``) when teardown fails, including on an
      already-broken connection.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from tablepull.core.models import RowSet


@runtime_checkable
class SourceConnection(Protocol):
    """One exclusively-owned connection to the source."""

    def query(self, sql: str) -> RowSet:
        """Run ``sql`` and return all rows. Raises ``QueryError``."""
        ...

    def close(self) -> None:
        """Release the underlying driver connection. May raise."""
        ...


@runtime_checkable
class ConnectionProvider(Protocol):
    """Opens and tolerantly closes source connections.

    Every worker calls ``open`` exactly once and hands the connection back
    to ``close`` exactly once.
    """

    @property
    def name(self) -> str:
        """Short label for logs (e.g. ``"dsn:PIRO LOTUS"``)."""
        ...

    def open(self, parameters: Mapping[str, Any] | None = None) -> SourceConnection:
        """Open a connection; ``parameters`` override the provider defaults."""
        ...

    def close(self, connection: SourceConnection) -> bool:
        """Close ``connection``; ``False`` if teardown failed."""
        ...


__all__ = ["SourceConnection", "ConnectionProvider"]
