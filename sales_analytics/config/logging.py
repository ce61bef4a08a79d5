"""
Logging Configuration for Sales Performance Analytics

Structured logging for batch report runs. Events go to a single stream as
JSON lines (for log shippers) or as aligned key=value text (for terminals
and CI logs). Context bound with ``structlog.contextvars``, such as the
runner's ``run_id`` and current ``report``, is merged into every event,
including records from plain stdlib loggers.
"""

import logging
import sys
from typing import Optional, TextIO

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter

from sales_analytics.config.settings import LOG_FORMATS, get_settings


def _renderer(log_format: str, stream: TextIO):
    if log_format == "json":
        return JSONRenderer()
    # Colour only on a terminal
    return structlog.dev.ConsoleRenderer(colors=stream.isatty(), sort_keys=True)


def configure_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structured logging for batch report runs.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Override output format (json or text)
        stream: Output stream, stdout by default

    Raises:
        ValueError: If ``log_format`` is not a known format
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level
    fmt = (log_format or settings.monitoring.log_format).lower()
    if fmt not in LOG_FORMATS:
        raise ValueError(f"log_format must be one of {LOG_FORMATS}, got {fmt!r}")
    stream = stream or sys.stdout

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = ProcessorFormatter(
        processors=[
            ProcessorFormatter.remove_processors_meta,
            _renderer(fmt, stream),
        ],
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setLevel(numeric_level)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level,
        format=fmt,
        environment=settings.app_env,
    )
