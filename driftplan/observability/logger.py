"""Loguru-style logger backed by stdlib logging + rich.

Usage::

    from driftplan.observability.logger import logger

    log = logger.bind(component="planner", job="web")
    log.debug("Matched {n} existing instances", n=3)

Records go to the ``driftplan`` stdlib logger hierarchy; nothing is printed
until a sink is added with ``logger.add`` (see ``setup_logging``).
"""

from __future__ import annotations

import gzip
import inspect
import logging
import logging.handlers
import os
import shutil
from typing import TextIO

from rich.console import Console
from rich.logging import RichHandler

_ROOT_NAME = "driftplan"
_DEFAULT_ROTATION = 50 * 1024 * 1024
_UNITS = {"KB": 1024, "MB": 1024 * 1024}

_root = logging.getLogger(_ROOT_NAME)
_sinks: dict[int, logging.Handler] = {}
_next_sink_id = 0


def _render(message: str, args: tuple[object, ...], kwargs: dict[str, object]) -> str:
    if kwargs:
        return message.format(**kwargs)
    if args:
        return message.format(*args)
    return message


def _context_suffix(extras: dict[str, object]) -> str:
    if not extras:
        return ""
    pairs = " ".join(f"{k}={v}" for k, v in extras.items())
    return f" [{pairs}]"


class BoundLogger:
    """Logger carrying key/value context that is attached to every record."""

    __slots__ = ("_extras",)

    def __init__(self, extras: dict[str, object] | None = None) -> None:
        self._extras = extras or {}

    @property
    def extras(self) -> dict[str, object]:
        return dict(self._extras)

    def bind(self, **kwargs: object) -> BoundLogger:
        return BoundLogger({**self._extras, **kwargs})

    def _emit(self, level: int, message: str, args: tuple[object, ...], kwargs: dict[str, object]) -> None:
        # [0] is _emit, [1] the level method, [2] the call site
        caller = inspect.stack(0)[2]
        module = caller.frame.f_globals.get("__name__", _ROOT_NAME)
        target = logging.getLogger(module if module.startswith(_ROOT_NAME) else _ROOT_NAME)
        if not target.isEnabledFor(level):
            return

        record = target.makeRecord(
            target.name,
            level,
            caller.filename,
            caller.lineno,
            _render(message, args, kwargs),
            (),
            None,
            func=caller.function,
        )
        record.extras = self._extras  # type: ignore[attr-defined]
        record.ctx = _context_suffix(self._extras)  # type: ignore[attr-defined]
        target.handle(record)

    def debug(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.DEBUG, message, args, kwargs)

    def info(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.INFO, message, args, kwargs)

    def warning(self, message: str, /, *args: object, **kwargs: object) -> None:
        self._emit(logging.WARNING, message, args, kwargs)


class _ContextDefaults(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ctx"):
            record.ctx = ""  # type: ignore[attr-defined]
        return True


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as f_in, gzip.open(dest, "wb") as f_out:
        shutil.copyfileobj(f_in, f_out)
    os.remove(source)


def _rotation_bytes(rotation: str | None) -> int:
    match (rotation or "").split():
        case [num, unit] if unit.upper() in _UNITS:
            return int(num) * _UNITS[unit.upper()]
        case _:
            return _DEFAULT_ROTATION


def _file_sink(path: str, level: int, rotation: str | None, retention: int) -> logging.Handler:
    """Size-rotated file sink; rotated files are gzipped."""
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=_rotation_bytes(rotation), backupCount=retention)
    handler.namer = lambda name: name + ".gz"
    handler.rotator = _gzip_rotator
    handler.setLevel(level)
    handler.addFilter(_ContextDefaults())
    handler.setFormatter(logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(levelname)-8s | "
        "%(name)s:%(funcName)s:%(lineno)d%(ctx)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    return handler


def _console_sink(stream: TextIO, level: int) -> logging.Handler:
    handler = RichHandler(level=level, console=Console(file=stream), show_path=True, markup=False)
    handler.setLevel(level)
    return handler


class LoguruCompat(BoundLogger):
    """Root logger with loguru's sink management (``add``/``remove``/``enable``/``disable``)."""

    __slots__ = ()

    def add(self, sink: str | TextIO, *, level: str = "DEBUG", rotation: str | None = None, retention: int = 10) -> int:
        """Attach a sink: a path becomes a rotating file, anything else a rich console.

        Returns:
            Sink id to pass to ``remove``.
        """
        global _next_sink_id
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            raise ValueError(f"Unknown log level: {level!r}")

        match sink:
            case str() as path:
                handler = _file_sink(path, numeric_level, rotation, retention)
            case stream:
                handler = _console_sink(stream, numeric_level)

        _root.addHandler(handler)
        _next_sink_id += 1
        _sinks[_next_sink_id] = handler
        return _next_sink_id

    def remove(self, sink_id: int | None = None) -> None:
        ids = list(_sinks) if sink_id is None else [sink_id]
        for handler in filter(None, (_sinks.pop(i, None) for i in ids)):
            _root.removeHandler(handler)
            handler.close()

    def enable(self, name: str = _ROOT_NAME) -> None:
        target = logging.getLogger(name)
        target.disabled = False
        target.setLevel(logging.DEBUG)

    def disable(self, name: str = _ROOT_NAME) -> None:
        logging.getLogger(name).disabled = True


logger = LoguruCompat()

_root.setLevel(logging.DEBUG)
_root.propagate = False
