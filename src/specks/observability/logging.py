"""
Structured logging setup.

Library modules log through structlog loggers wrapped around stdlib
``logging.Logger`` instances (``get_logger``). Until ``configure_logging`` runs,
events follow stdlib defaults, so debug events from ``parse``/``validate`` are
dropped and nothing reaches stdout. ``configure_logging`` installs one handler
on the ``specks`` logger that renders JSON lines or console text to stderr.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import Any, Final, TextIO

import structlog

_DEFAULT_LEVEL: Final[str] = "WARNING"
_PACKAGE_LOGGER: Final[str] = "specks"

_ACTIVE_HANDLER_LOCK = threading.Lock()
_ACTIVE_HANDLER: logging.Handler | None = None


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to the stdlib logger ``name``."""
    return structlog.wrap_logger(logging.getLogger(name))


def configure_logging(
    level: int | str = _DEFAULT_LEVEL,
    *,
    json_output: bool = False,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structlog and the ``specks`` stdlib logger for CLI use.

    Events below ``level`` are dropped. Output goes to ``stream`` (stderr by
    default) so that command output on stdout stays machine readable. Calling
    again replaces the previous handler.
    """

    global _ACTIVE_HANDLER

    numeric_level = _parse_log_level(level)
    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer(sort_keys=True)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    with _ACTIVE_HANDLER_LOCK:
        package_logger = logging.getLogger(_PACKAGE_LOGGER)
        if _ACTIVE_HANDLER is not None:
            package_logger.removeHandler(_ACTIVE_HANDLER)
        package_logger.addHandler(handler)
        package_logger.setLevel(numeric_level)
        package_logger.propagate = False
        _ACTIVE_HANDLER = handler


def reset_logging() -> None:
    """Undo ``configure_logging``: structlog defaults, ``specks`` logger untouched by us."""

    global _ACTIVE_HANDLER

    structlog.reset_defaults()
    with _ACTIVE_HANDLER_LOCK:
        package_logger = logging.getLogger(_PACKAGE_LOGGER)
        if _ACTIVE_HANDLER is not None:
            package_logger.removeHandler(_ACTIVE_HANDLER)
            _ACTIVE_HANDLER = None
        package_logger.setLevel(logging.NOTSET)
        package_logger.propagate = True


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


__all__ = ["configure_logging", "get_logger", "reset_logging"]
