"""
Structured logging for tablepull.

Components log dotted event names with key/value fields rather than
progress text.  Output always goes to stderr: stdout belongs to the CLI
summary.

Processor chain built by ``configure_logging``::

    TimeStamper(iso)            optional
    filter_by_level             drops records below the configured level
    merge_contextvars           table / shard / mode bound by LogContext
    add_log_level, add_logger_name
    _add_service                service.name
    _ecs_field_names            JSON only: @timestamp, log.level
    JSONRenderer | ConsoleRenderer

Examples:
    >>> from tablepull.core.logging import configure_logging, get_logger
    >>> configure_logging(level="INFO", json_format=True)
    >>> get_logger(__name__).info("shard.key_extracted", table="LLDS_HDR", key=2021, rows=5120)

Events emitted by the engine:
    ``partitioned.start`` ``partitioned.incomplete`` ``partitioned.complete``
    ``shard.key_extracted`` ``shard.key_failed`` ``shard.connect_failed`` ``shard.complete``
    ``sequential.start`` ``sequential.unfiltered`` ``sequential.complete``
    ``orchestrator.job_start`` ``orchestrator.job_failed`` ``orchestrator.job_complete``
    ``persist.written``
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_service_name = "tablepull"


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename ``timestamp`` and ``level`` to their ECS field names."""
    if "timestamp" in event_dict:
        event_dict["@timestamp"] = event_dict.pop("timestamp")
    if "level" in event_dict:
        event_dict["log.level"] = event_dict.pop("level")
    return event_dict


def _processors(json_format: bool, add_timestamp: bool) -> list[Processor]:
    chain: list[Processor] = [structlog.processors.TimeStamper(fmt="iso")] if add_timestamp else []
    chain += [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        _add_service,
    ]
    if json_format:
        chain += [structlog.processors.format_exc_info, _ecs_field_names, structlog.processors.JSONRenderer()]
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "tablepull",
    add_timestamp: bool = True,
) -> None:
    """Route structlog through the stdlib root logger on stderr.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        json_format: JSON lines when True, console when False; ``None``
            picks JSON unless stderr is a terminal.
        service: Value of the ``service.name`` field.
        add_timestamp: Include an ISO timestamp.
    """
    global _service_name
    _service_name = service

    if json_format is None:
        json_format = not sys.stderr.isatty()
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=_processors(json_format, add_timestamp),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind fields for the duration of a ``with`` block.

    Context variables are per thread here: pool workers start empty, so
    ``run_shard`` binds its own ``table`` and ``shard``.

    Example:
        with LogContext(table="LLDS_HDR", mode="partitioned"):
            logger.info("partitioned.start")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context)


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
