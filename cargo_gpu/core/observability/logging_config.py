"""
Logging configuration — set up once by the CLI entrypoint.

Modules log through ``logging.getLogger(__name__)``; this decides what
reaches the terminal.  Level precedence:

    --debug / --verbose / --quiet  >  CARGO_GPU_LOG_LEVEL  >  WARNING

``CARGO_GPU_LOG_FILE`` adds a file handler, at ``CARGO_GPU_LOG_FILE_LEVEL``
if set.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "CARGO_GPU_LOG_LEVEL"
LOG_FILE_ENV = "CARGO_GPU_LOG_FILE"
LOG_FILE_LEVEL_ENV = "CARGO_GPU_LOG_FILE_LEVEL"

# ── Formats per console level ───────────────────────────────────

_CONSOLE_FORMATS = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}
_FMT_DEFAULT = "%(levelname)s: %(message)s"

_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name.
        log_file: Optional log file path.
        log_file_level: Level for the file (default: ``level``).
    """
    console_level = _parse_level(level)

    if console_level <= logging.DEBUG:
        fmt, datefmt = _CONSOLE_FORMATS[logging.DEBUG]
    elif console_level <= logging.INFO:
        fmt, datefmt = _CONSOLE_FORMATS[logging.INFO]
    else:
        fmt, datefmt = _FMT_DEFAULT, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root_level = console_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(file_level)
        handler.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(handler)

    root.setLevel(root_level)


def _parse_level(level: str | None) -> int:
    numeric = getattr(logging, (level or "").upper(), None)
    return numeric if isinstance(numeric, int) else logging.WARNING
