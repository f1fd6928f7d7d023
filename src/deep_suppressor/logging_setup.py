# deep_suppressor/logging_setup.py
"""
LogSink - explicitly constructed log output for the supervisor.

Attaches a size-rotated file handler (and optionally a console handler)
to the ``deep_suppressor`` logger on start() and detaches them on close().
Nothing is configured at import time.

Usage::

    with LogSink("/data/.../process_manager.log", level="INFO") as sink:
        scheduler = Scheduler(..., logger=sink.logger)
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

LOGGER_NAME = "deep_suppressor"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 2 * 1024 * 1024
MAX_LOG_FILES = 3

# Debug/Info/Warn/Error/Fatal
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "FATAL": logging.CRITICAL,
    "CRITICAL": logging.CRITICAL,
}


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.strip().upper()]
    except KeyError:
        raise ValueError(f"unknown log level {level!r}") from None


class LogSink:
    """Rotating log file (plus optional console) for the ``deep_suppressor`` logger."""

    def __init__(
        self,
        path: str | os.PathLike[str] | None,
        level: str | int = "INFO",
        console: bool = False,
        max_bytes: int = MAX_LOG_BYTES,
        max_files: int = MAX_LOG_FILES,
    ) -> None:
        if max_files < 1:
            raise ValueError("max_files must be at least 1")
        self.path = Path(path) if path is not None else None
        self.level = parse_level(level)
        self.console = console
        self.max_bytes = max_bytes
        self.max_files = max_files
        self.logger = logging.getLogger(LOGGER_NAME)
        self._handlers: list[logging.Handler] = []
        self._previous_level: int | None = None

    @property
    def started(self) -> bool:
        return bool(self._handlers)

    def start(self) -> LogSink:
        if self.started:
            return self

        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # backupCount counts rotated files only; max_files includes the live one
            file_handler = logging.handlers.RotatingFileHandler(
                filename=str(self.path),
                maxBytes=self.max_bytes,
                backupCount=self.max_files - 1,
                encoding="utf-8",
            )
            self._handlers.append(file_handler)

        if self.console or self.path is None:
            self._handlers.append(logging.StreamHandler())

        for handler in self._handlers:
            handler.setFormatter(formatter)
            handler.setLevel(self.level)
            self.logger.addHandler(handler)

        self._previous_level = self.logger.level
        self.logger.setLevel(self.level)
        self.logger.info(f"Logging started at {logging.getLevelName(self.level)}")
        return self

    def close(self) -> None:
        if not self.started:
            return
        self.logger.info("Logging stopped")
        for handler in self._handlers:
            self.logger.removeHandler(handler)
            handler.flush()
            handler.close()
        self._handlers.clear()
        if self._previous_level is not None:
            self.logger.setLevel(self._previous_level)
            self._previous_level = None

    def __enter__(self) -> LogSink:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.close()
