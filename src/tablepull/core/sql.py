"""SQL text for extraction queries.

The engine talks to the source with plain equality filters built by
string concatenation, so every identifier is validated and every key is
rendered as a literal here rather than at the call sites.

Examples:
    >>> select_all("llds", "LLDS_HDR")
    'SELECT * FROM llds.LLDS_HDR'
    >>> select_for_key("llds", "LLDS_HDR", "LANDYR", 2021)
    'SELECT * FROM llds.LLDS_HDR WHERE LANDYR = 2021'
    >>> select_for_key("newobs", "LDS_CATCH_V", "TRIP_TYPE", "O'Neil")
    "SELECT * FROM newobs.LDS_CATCH_V WHERE TRIP_TYPE = 'O''Neil'"
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from tablepull.core.errors import ConfigurationError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$#]*$")


def validate_identifier(name: str, *, what: str = "identifier") -> str:
    """Return ``name`` unchanged if it is a bare SQL identifier.

    Raises:
        ConfigurationError: If ``name`` is empty or contains anything
            beyond letters, digits, ``_``, ``$`` and ``#``.
    """
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ConfigurationError(f"invalid {what} name: {name!r}", key=what, value=name)
    return name


def literal(value: Any) -> str:
    """Render a partition key as a SQL literal."""
    # bool is an int subclass; a True/False key is almost certainly a bug
    if isinstance(value, bool):
        raise ConfigurationError(f"unsupported partition key: {value!r}", key="key", value=value)
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ConfigurationError(f"unsupported partition key: {value!r}", key="key", value=value)
        return repr(value)
    if isinstance(value, datetime):
        return f"TIMESTAMP '{value.isoformat(sep=' ')}'"
    if isinstance(value, date):
        return f"DATE '{value.isoformat()}'"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    raise ConfigurationError(f"unsupported partition key type: {type(value).__name__}", key="key", value=value)


def qualified(schema: str, table: str) -> str:
    return f"{validate_identifier(schema, what='schema')}.{validate_identifier(table, what='table')}"


def select_all(schema: str, table: str) -> str:
    """Unfiltered extraction of a whole table."""
    return f"SELECT * FROM {qualified(schema, table)}"


def select_for_key(schema: str, table: str, column: str, key: Any) -> str:
    """Extraction restricted to ``column = key``."""
    column = validate_identifier(column, what="partition column")
    return f"SELECT * FROM {qualified(schema, table)} WHERE {column} = {literal(key)}"


def select_distinct(schema: str, table: str, column: str) -> str:
    """Domain discovery for ``column``."""
    column = validate_identifier(column, what="partition column")
    return f"SELECT DISTINCT {column} FROM {qualified(schema, table)} ORDER BY {column}"


__all__ = [
    "validate_identifier",
    "literal",
    "qualified",
    "select_all",
    "select_for_key",
    "select_distinct",
]
