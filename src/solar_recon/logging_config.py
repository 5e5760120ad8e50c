"""structlog + stdlib logging setup for the CLI and the API.

Both ``structlog.get_logger()`` and plain ``logging.getLogger(__name__)``
records (SQLAlchemy, alembic, the ASGI server) go through one processor
chain and are written to **stderr**.  Stdout is reserved for command
output such as the ``reconcile`` JSON summary, so it can be piped to
``jq`` or another program unmodified.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

# Libraries that are chatty at INFO; raised to WARNING unless debugging
_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")


def _pre_chain() -> list[structlog.types.Processor]:
    """Processors applied to both structlog and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(
    json_output: bool = True,
    log_level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Install the shared handler on the root logger.

    Args:
        json_output: JSON lines if ``True``, structlog's console renderer otherwise.
        log_level: Root level name (``"DEBUG"``, ``"INFO"``, ...).
        stream: Destination; defaults to the current ``sys.stderr``.
    """
    level = getattr(logging, log_level.upper())
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    quiet = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
