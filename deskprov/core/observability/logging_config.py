"""
Logging configuration for the ``deskprov`` CLI.

Level resolution (first match wins):

    --debug / --verbose / --quiet  >  DESKPROV_LOG_LEVEL  >  WARNING

A provisioning run is long and mostly quiet on the console.  Set
DESKPROV_LOG_FILE (and optionally DESKPROV_LOG_FILE_LEVEL=DEBUG) to keep
a full transcript, including every command the runner executes.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# (format, datefmt) per console level; the file always gets the last one
_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.WARNING: ("%(message)s", None),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%H:%M:%S"),
}
_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d %(message)s", "%Y-%m-%d %H:%M:%S")

# Libraries that log on their own at INFO
_NOISY_LOGGERS = ("urllib3", "charset_normalizer")


def _console_format(level: int) -> tuple[str, str | None]:
    if level <= logging.DEBUG:
        return _FORMATS[logging.DEBUG]
    if level <= logging.INFO:
        return _FORMATS[logging.INFO]
    return _FORMATS[logging.WARNING]


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install console (stderr) and optional file handlers on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR).
        log_file: Path of a transcript file; parent directories are created.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold noisy library loggers at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    fmt, datefmt = _console_format(console_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
        root.addHandler(handler)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
