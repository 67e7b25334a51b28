"""
Structured logging setup.

Everything goes through the stdlib root logger with a structlog
ProcessorFormatter, so uvicorn/sqlalchemy records and our own
key/value events end up in the same stream.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import ProcessorFormatter, add_log_level

from pim.config import settings


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog and the root logger.

    Args:
        log_level: Override for settings.LOG_LEVEL (DEBUG, INFO, WARNING, ERROR)
        log_format: Override for settings.LOG_FORMAT ("console" or "json")
    """
    level = (log_level or settings.LOG_LEVEL).upper()
    fmt = log_format or settings.LOG_FORMAT
    numeric_level = getattr(logging, level, logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if fmt == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = []
        lg.propagate = True
        lg.setLevel(numeric_level)

    structlog.get_logger(__name__).info("logging.configured", level=level, format=fmt)


def get_logger(name: str):
    """Get a structlog logger bound to the given name."""
    return structlog.get_logger(name)
