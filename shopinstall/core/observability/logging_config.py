"""
Logging configuration — central setup for the installer CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Console levels are resolved in precedence order:
    CLI flag  >  SHOPINSTALL_LOG_LEVEL env var  >  WARNING (default)

Every invocation also gets a run log: a plain-text, append-only file
named after the start timestamp.  It is the only state the installer
persists and the file to read for post-hoc diagnosis.
"""

from __future__ import annotations

import logging
import sys
import tempfile
from datetime import UTC, datetime
from pathlib import Path

# Between INFO (20) and WARNING (30)
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

# ── Format strings ──────────────────────────────────────────────

# WARNING level — minimal, no noise
_FMT_MINIMAL = "%(message)s"

# INFO level — timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# Run log — one timestamped line per event
_FMT_RUN_LOG = "%(asctime)s %(levelname)s %(message)s"
_DATEFMT_RUN_LOG = "%Y-%m-%dT%H:%M:%S"

RUN_LOG_PREFIX = "shopinstall"

# Third-party loggers that are noisy at INFO/DEBUG
_NOISY_LOGGERS = ("urllib3", "asyncio")


class RunLogFormatter(logging.Formatter):
    """Render levels as INFO / WARN / ERROR / SUCCESS."""

    _RENAMES = {"WARNING": "WARN", "CRITICAL": "ERROR", "DEBUG": "INFO"}

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = self._RENAMES.get(original, original)
        try:
            return super().format(record)
        finally:
            record.levelname = original


def run_log_path(log_dir: str | Path | None = None, now: datetime | None = None) -> Path:
    """Timestamp-named run log path for one invocation.

    Args:
        log_dir: Directory for the log (default: the system temp dir).
        now: Start time (default: current UTC time).
    """
    stamp = (now or datetime.now(UTC)).strftime("%Y%m%dT%H%M%SZ")
    base = Path(log_dir) if log_dir else Path(tempfile.gettempdir())
    return base / f"{RUN_LOG_PREFIX}-{stamp}.log"


def setup_logging(
    level: str = "WARNING",
    log_file: str | Path | None = None,
    log_file_level: str | None = "INFO",
    quiet_third_party: bool = True,
) -> Path | None:
    """Configure Python logging for the entire process.

    Args:
        level: Console log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to the run log.  Opened in append mode.
        log_file_level: Level for the run log.  Defaults to INFO so the
            log holds every progress line even when the console is quiet.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.

    Returns:
        The run log path, or None when no file was requested.
    """
    numeric_level = _parse_level(level)

    # ── Console handler (stderr) ────────────────────────────────
    if numeric_level <= logging.DEBUG:
        fmt, datefmt = _FMT_DEBUG, _DATEFMT_DEBUG
    elif numeric_level <= logging.INFO:
        fmt, datefmt = _FMT_VERBOSE, _DATEFMT_VERBOSE
    else:
        fmt, datefmt = _FMT_MINIMAL, None

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── Run log (optional) ──────────────────────────────────────
    path: Path | None = None
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(path, mode="a", encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(RunLogFormatter(_FMT_RUN_LOG, datefmt=_DATEFMT_RUN_LOG))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False
    return path


def log_success(logger: logging.Logger, msg: str, *args: object) -> None:
    """Log at the SUCCESS level."""
    logger.log(SUCCESS, msg, *args)


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    if level.upper() == "SUCCESS":
        return SUCCESS
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
