"""
Logging configuration — one setup call for the CLI process.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
what is configured here.

Level precedence:
    --debug / --verbose / --quiet  >  IGOR_LOG_LEVEL  >  WARNING

File output is opt-in via IGOR_LOG_FILE, with IGOR_LOG_FILE_LEVEL
defaulting to the console level.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

# Console format per threshold, checked lowest first. Detection branches
# run on worker threads, so DEBUG lines carry the thread name.
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = ("%(message)s", None)

_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(threadName)s %(name)s:%(lineno)d  %(message)s", "%Y-%m-%d %H:%M:%S")

# Library loggers held at WARNING unless running at DEBUG
_NOISY_LOGGERS = ("asyncio", "concurrent.futures")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Replace the root logger's handlers with igor's console (and file) handlers.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file path.
        log_file_level: Optional level for the file; defaults to ``level``.
        quiet_third_party: Hold noisy library loggers at WARNING unless
            running at DEBUG.
        stream: Console stream. Defaults to stderr so ``--json`` output on
            stdout stays parseable.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level, stream or sys.stderr)]
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def _console_handler(level: int, stream: TextIO) -> logging.Handler:
    fmt, datefmt = _CONSOLE_DEFAULT
    for threshold, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            fmt, datefmt = candidate, candidate_datefmt
            break

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown or empty names mean WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
