"""Observability modules for driftplan."""

from .logger import BoundLogger, logger
from .logging import (
    LOG_LEVELS,
    LogConfig,
    LogLevel,
    setup_logging,
    teardown_logging,
)

__all__ = [
    "BoundLogger",
    "logger",
    "LOG_LEVELS",
    "LogConfig",
    "LogLevel",
    "setup_logging",
    "teardown_logging",
]
