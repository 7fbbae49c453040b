"""Utilities package for the rota engine."""
from .logging_setup import (
    TRACE,
    EngineLogger,
    get_logger,
    log_constraint,
    log_function_call,
    parse_level,
    setup_logging,
)
from .structured_logging import (
    bind_context,
    clear_context,
    configure_structlog,
    get_structured_logger,
)

__all__ = [
    "setup_logging",
    "parse_level",
    "get_logger",
    "log_function_call",
    "log_constraint",
    "EngineLogger",
    "TRACE",
    "configure_structlog",
    "get_structured_logger",
    "bind_context",
    "clear_context",
]
