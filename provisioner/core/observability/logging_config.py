"""
Logging configuration — called once by the CLI entry point.

Every module does ``logger = logging.getLogger(__name__)`` and inherits
this setup. The CLI takes no flags, so levels come from the environment:

    PROVISION_LOG_LEVEL       console level (default WARNING)
    PROVISION_LOG_FILE        optional log file path
    PROVISION_LOG_FILE_LEVEL  level for the file (default: console level)

Operator-facing progress is printed by the CLI itself; log records are
diagnostics on stderr.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

ENV_LEVEL = "PROVISION_LOG_LEVEL"
ENV_FILE = "PROVISION_LOG_FILE"
ENV_FILE_LEVEL = "PROVISION_LOG_FILE_LEVEL"

# WARNING level — minimal, no noise
_FMT_MINIMAL = "%(levelname)s: %(message)s"

# INFO level — timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output — always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process."""
    numeric_level = _parse_level(level)

    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # root level = the lower of console and file levels
    effective_level = numeric_level

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)
    logging.raiseExceptions = False


def setup_logging_from_env(environ: Mapping[str, str] | None = None) -> None:
    """``setup_logging`` driven by the PROVISION_LOG_* variables."""
    environ = os.environ if environ is None else environ
    setup_logging(
        level=environ.get(ENV_LEVEL, "WARNING"),
        log_file=environ.get(ENV_FILE) or None,
        log_file_level=environ.get(ENV_FILE_LEVEL) or None,
    )


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
