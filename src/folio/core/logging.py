"""
Structured logging for folio.

Every module logs dotted snake-case event names with key/value fields::

    logger = get_logger(__name__)
    logger.info("storage.delete_chunk", chunk=2, chunks=3, size=1000)

``configure_logging`` picks the renderer: JSON lines when stdout is not a
TTY, colored console lines otherwise.  ``LogContext`` binds per-call
fields (``operation``, ``item_id``) through structlog contextvars, so the
gateway and the coordinator inherit them from the content service
without passing them around.

Examples:
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> with LogContext(operation="rename", item_id="abc"):
    ...     logger.info("content.rename_started", new_issue=13)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog._config import BoundLoggerLazyProxy
from structlog.types import EventDict, Processor, WrappedLogger


class _AppTag:
    """Processor stamping every event with the application name."""

    def __init__(self, app: str):
        self.app = app

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", self.app)
        return event_dict


def _renderer(json_format: bool) -> list[Processor]:
    if json_format:
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    app: str = "folio",
) -> None:
    """Configure structlog (and the stdlib root logger) for the process.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR)
        json_format: Force JSON (True) or console (False); None decides by TTY
        app: Value of the ``app`` field on every event
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _AppTag(app),
        *_renderer(json_format),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Resolve sys.stdout per bind; the CLI runs under swapped streams.
        cache_logger_on_first_use=False,
    )

    # SQLAlchemy echo and other stdlib loggers share the level.
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Lazy logger; ``name`` is emitted as the ``logger`` field."""
    if name is None:
        return structlog.get_logger()
    return BoundLoggerLazyProxy(None, initial_values={"logger": name}, logger_factory_args=())


class LogContext:
    """Bind fields to every event logged inside the block.

    Nested contexts restore the outer values on exit.

    Example:
        with LogContext(operation="delete", item_id=item.id):
            await gateway.delete_many(paths)
    """

    def __init__(self, **fields: Any):
        self._fields = fields
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._fields)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)


__all__ = [
    "configure_logging",
    "get_logger",
    "LogContext",
]
