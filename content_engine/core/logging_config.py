"""
structlog setup shared by the API process and its background tasks.

LOG_FORMAT=json (default) renders one JSON object per line; any other value
gives the colored console renderer used in development and tests.
"""

import logging
import os
import sys
from typing import Optional

import structlog

SERVICE_NAME = "content-engine"

# Libraries whose INFO output drowns out engine events
QUIET_LOGGERS = ("uvicorn.access", "httpx", "pymongo", "motor")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(json_output: Optional[bool] = None, log_level: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_output: Force JSON (True) or console (False) rendering; read from LOG_FORMAT when None.
        log_level: DEBUG, INFO, WARNING or ERROR; read from LOG_LEVEL when None.
    """
    if json_output is None:
        json_output = os.getenv("LOG_FORMAT", "json").lower() == "json"
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    return structlog.get_logger(name)
