"""
Structured logging for crudspine.

Every engine module logs through ``get_logger(__name__)`` with
event-style calls::

    logger.debug("fetched", table="orders", rows=3)
    logger.error("store_error", table="orders", operation="insert", sql=..., params=...)

The CRUD layer binds ``crud_operation`` and ``table`` for the duration of
a call with :class:`LogContext`, so executor events carry them without
passing them down.

Manifesto:
    When a write fails the log line must name the table, the operation and
    the SQL, not just "IntegrityError".

    - **Events, not sentences:** the message is a snake_case event name,
      the details are keys
    - **Bounded:** long parameter lists are shortened before rendering
    - **Two outputs:** ECS-style JSON for aggregation, console for humans

Architecture:
    ::

        configure_logging(level, json_format, service)
        configure_from_settings(settings)        ← CrudSettings.log_level / json_logs
            │
            ▼
        [TimeStamper] → merge_contextvars → add_log_level → add_logger_name
          → _service_name → _shorten_params
          → JSON:    _ecs_fields → format_exc_info → JSONRenderer
          → console: ConsoleRenderer

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> with LogContext(crud_operation="save", table="orders"):
    ...     get_logger(__name__).debug("saved", key={"id": 1})

Tags:
    logging, structlog, observability, crudspine
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from crudspine.settings import CrudSettings

MAX_LOGGED_PARAMS = 20

# Event keys renamed for JSON output.
ECS_FIELDS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "sql": "db.statement",
    "table": "db.table",
}

_service = "crudspine"


def _service_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service)
    return event_dict


def _shorten_params(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Cut bound SQL parameters to ``MAX_LOGGED_PARAMS`` entries."""
    params = event_dict.get("params")
    if isinstance(params, (list, tuple)) and len(params) > MAX_LOGGED_PARAMS:
        event_dict["params"] = [*params[:MAX_LOGGED_PARAMS], f"... {len(params) - MAX_LOGGED_PARAMS} more"]
    return event_dict


def _ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    for key, renamed in ECS_FIELDS.items():
        if key in event_dict:
            event_dict[renamed] = event_dict.pop(key)
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "crudspine",
    add_timestamp: bool = True,
) -> None:
    """Install the crudspine processor chain as the global structlog config.

    Args:
        level: Minimum level name, case-insensitive.
        json_format: JSON when True, console when False; when None, JSON
            unless stdout is a terminal.
        service: Value of the ``service.name`` key.
        add_timestamp: Prepend an ISO timestamp.

    Raises:
        ValueError: ``level`` is not a logging level name.
    """
    global _service
    threshold = _level_number(level)
    _service = service
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _service_name,
        _shorten_params,
    ]
    if add_timestamp:
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso"))
    if json_format:
        processors += [_ecs_fields, structlog.processors.format_exc_info]
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=threshold)


def configure_from_settings(settings: CrudSettings | None = None) -> None:
    """:func:`configure_logging` with ``log_level`` / ``json_logs`` from settings."""
    if settings is None:
        from crudspine.settings import get_settings

        settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Bind keys for the duration of a ``with`` block.

    Keys bound by an enclosing context are restored on exit, so nested
    CRUD calls (``save`` inside ``sync_children``) do not strip the outer
    call's ``crud_operation``.
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: Any = None

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


__all__ = [
    "MAX_LOGGED_PARAMS",
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
