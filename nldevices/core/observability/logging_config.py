"""
Logging configuration for the nldevices CLI.

main.py calls this once per invocation; modules only ever do
``logger = logging.getLogger(__name__)``.

Console level precedence:
    --debug / --verbose / --quiet  >  NLD_LOG_LEVEL  >  WARNING

A log file can be added with NLD_LOG_FILE (level NLD_LOG_FILE_LEVEL).
The console handler writes to stderr; stdout belongs to ``--json``.
"""

from __future__ import annotations

import logging
import os
import sys

ENV_LEVEL = "NLD_LOG_LEVEL"
ENV_FILE = "NLD_LOG_FILE"
ENV_FILE_LEVEL = "NLD_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"

# (format, datefmt) by the most verbose level they apply to
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)
_FILE_FORMAT = (_DETAILED, "%Y-%m-%d %H:%M:%S")


def resolve_level(verbose: bool = False, quiet: bool = False, debug: bool = False) -> str:
    """Console level from CLI flags, falling back to NLD_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(ENV_LEVEL, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root logger's handlers with a stderr console handler
    and, when ``log_file`` is given, a file handler.

    Unknown level names fall back to WARNING. The root logger is set to
    the more verbose of the two handler levels.
    """
    console_level = _level_number(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    if log_file:
        file_level = _level_number(log_file_level) if log_file_level else console_level
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(min(h.level for h in handlers))

    logging.raiseExceptions = False


def setup_from_env(level: str) -> None:
    """setup_logging with the file destination taken from the environment."""
    setup_logging(
        level=level,
        log_file=os.environ.get(ENV_FILE),
        log_file_level=os.environ.get(ENV_FILE_LEVEL),
    )


def _console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
            break
    return handler


def _level_number(name: str | None) -> int:
    numeric = logging.getLevelName(name.upper()) if name else None
    return numeric if isinstance(numeric, int) else logging.WARNING
