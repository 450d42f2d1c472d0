"""Core module for configuration, logging, and log context."""

from .config import EngineSettings
from .logging_config import configure_logging, get_logger
from .context import CorrelationIdMiddleware, get_correlation_id, sweep_context

__all__ = [
    "EngineSettings",
    "configure_logging",
    "get_logger",
    "CorrelationIdMiddleware",
    "get_correlation_id",
    "sweep_context",
]
