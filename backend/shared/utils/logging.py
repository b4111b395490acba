"""
Structured logging for the crawler entrypoints.

structlog renders every record, including those of stdlib loggers in
libraries. Console output goes to stderr; long unattended crawls can also
append JSON lines to ``SC_LOG_FILE``.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from shared.config import get_settings

NOISY_LOGGERS = ("asyncio", "asyncpg", "sqlalchemy.engine")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _formatter(renderer: structlog.types.Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_pre_chain(),
    )


def setup_logging(
    service_name: str,
    extra_context: dict[str, Any] | None = None,
    level: str | None = None,
) -> None:
    """
    Configure structured logging for one crawler process.

    Args:
        service_name: Entrypoint identifier (crawler, merge_team_stats, migrations).
        extra_context: Static fields bound to every log entry.
        level: Overrides ``SC_LOG_LEVEL`` (``--debug`` passes "DEBUG").
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if settings.log_format == "json":
        console_renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        console_renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(console_renderer))
    handlers: list[logging.Handler] = [console]

    if settings.log_file:
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, **(extra_context or {}))


@contextmanager
def log_scope(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every entry logged inside the block (e.g. league=...)."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
