"""Central structured logging configuration using structlog.

Other modules can do:

    from app.core.logging_config import get_logger
    logger = get_logger(__name__, account="Acme")

All logs are single JSON lines with an ISO timestamp, level, message and the
keyword metadata passed at the call site.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

SERVICE_NAME = "servicedesk-proxy"

_configured_level: str | None = None


def configure_logging(level: str | None = None) -> str:
    """Configure stdlib logging and structlog for JSON output on stderr.

    Safe to call more than once; the last level wins.
    """
    global _configured_level

    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    level_value = logging.getLevelName(level_name)
    if not isinstance(level_value, int):
        level_name, level_value = "INFO", logging.INFO

    logging.basicConfig(
        level=level_value,
        format="%(message)s",  # structlog already renders JSON with timestamp, level
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(level_value)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    for logger_name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(logger_name).setLevel(level_value)
    # Request completion is logged by our own middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.EventRenamer("message"),
            structlog.processors.JSONRenderer(sort_keys=True),
        ],
        cache_logger_on_first_use=False,
    )
    _configured_level = level_name
    return level_name


def get_logger(name: str, **bound_values: Any) -> structlog.BoundLogger:
    """Return a JSON logger tagged with the service name and *bound_values*."""
    if _configured_level is None:
        configure_logging()
    # Lazy proxy: picks up the current configuration on every call.
    return structlog.get_logger(name, service=SERVICE_NAME, **bound_values)
