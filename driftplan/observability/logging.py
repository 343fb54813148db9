"""Logging configuration for driftplan.

The package logs through ``driftplan.observability.logger`` and stays silent
until sinks are attached. Embedding applications call ``setup_logging`` once
and ``teardown_logging`` with the returned ids when done.

Example:
    from driftplan.observability import LogConfig, setup_logging

    ids = setup_logging(LogConfig(level="DEBUG", console=True, file=None))
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, TypeAlias, get_args

from driftplan.observability.logger import logger

LogLevel: TypeAlias = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

LOG_LEVELS: tuple[str, ...] = get_args(LogLevel)


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
        file: Path to log file. None disables the file sink.
        console: Whether to log to stderr. Defaults to False.
        rotation: File rotation size (e.g., "50 MB"). Defaults to "50 MB".
        retention: Number of old log files to keep. Defaults to 10.
    """

    level: LogLevel = "INFO"
    file: str | None = ".driftplan/driftplan.log"
    console: bool = False
    rotation: str = "50 MB"
    retention: int = 10

    def __post_init__(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level!r}. Use one of {', '.join(LOG_LEVELS)}.")


def setup_logging(config: LogConfig) -> list[int]:
    """Attach the sinks described by ``config``.

    Args:
        config: Logging configuration.

    Returns:
        List of handler IDs that were added (for later removal).
    """
    logger.enable("driftplan")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(sys.stderr, level=config.level))

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file,
                level=config.level,
                rotation=config.rotation,
                retention=config.retention,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging.

    Args:
        handler_ids: List of handler IDs to remove.
    """
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("driftplan")
