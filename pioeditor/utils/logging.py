"""
PIO Editor Logging Utilities - Session Logging for Import/Export Runs

Overview:
---------
Centralised logging configuration for the PIO editor core.  Provides
session-based file logging with unique identifiers, configurable verbosity,
and structured output for following an import (skipped resources, recorded
read errors, exclusions) or an export (derived resources, validation gate).

Log Location:
-------------
- Default: ~/.pioeditor/logs/
- Each CLI run creates a timestamped log file with session ID
- A symlink 'pioeditor.log' always points to the latest session
- Can be overridden via PIOEDITOR_LOG_DIR environment variable

Log File Format:
----------------
- pioeditor_YYYYMMDD_HHMMSS_<session_id>.log  (per-session files)
- pioeditor.log (symlink to latest)

Log Levels:
-----------
- DEBUG: Every recorded read error and exclusion, every derived resource
- INFO: Import/export summaries
- WARNING: Skipped resources with unknown profiles
- ERROR: Fatal import/export failures

Usage:
------
    from pioeditor.utils.logging import get_logger, setup_logging

    # Call once at startup (CLI entry point)
    log_file = setup_logging(level="DEBUG")

    # Library modules log through logging.getLogger(__name__); the
    # "pioeditor" parent logger carries the handlers configured here.
    logger = get_logger("cli")
    logger.info("Opening PIO ...")
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

# ============================================================================
# Constants
# ============================================================================

ROOT_LOGGER_NAME = "pioeditor"
DEFAULT_LOG_LEVEL = "INFO"
SYMLINK_NAME = "pioeditor.log"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# File logging includes line numbers
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(session_id)s | %(name)s:%(lineno)d | %(message)s"

_log_file_path: Optional[Path] = None
_session_id: Optional[str] = None


# ============================================================================
# Session ID Filter - Adds session_id to all log records
# ============================================================================

class SessionIdFilter(logging.Filter):
    """Add session_id to all log records."""

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = self.session_id  # type: ignore[attr-defined]
        return True


class SessionFormatter(logging.Formatter):
    """Formatter that adds session_id, defaulting to 'N/A' if not present."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id or "N/A"  # type: ignore[attr-defined]
        return super().format(record)


# ============================================================================
# Setup Functions
# ============================================================================

def generate_session_id() -> str:
    """Generate a short unique session ID (6 characters)."""
    return uuid.uuid4().hex[:6]


def get_log_directory() -> Path:
    """Get the log directory, respecting PIOEDITOR_LOG_DIR environment variable."""
    env_log_dir = os.getenv("PIOEDITOR_LOG_DIR")
    if env_log_dir:
        return Path(env_log_dir)
    from ..config import get_config

    return get_config().log_dir


def generate_log_filename(session_id: str) -> str:
    """Generate a timestamped log filename with session ID."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"pioeditor_{timestamp}_{session_id}.log"


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    console_output: bool = False,
    quiet: bool = False,
) -> Path:
    """
    Initialise logging with a session-based file and optional console output.

    Each call creates a new timestamped log file with a unique session ID.
    A symlink 'pioeditor.log' is updated to point to the latest log file.

    Parameters
    ----------
    level : str, optional
        Log level: DEBUG, INFO, WARNING, ERROR. Defaults to INFO.
        Can also be set via PIOEDITOR_LOG_LEVEL environment variable.
    log_dir : Path, optional
        Directory for log files. Defaults to ~/.pioeditor/logs/
    console_output : bool
        If True, also log to console (stderr). Default False.
    quiet : bool
        If True, suppress console output entirely. Default False.

    Returns
    -------
    Path
        Path to the log file being written to.
    """
    global _log_file_path, _session_id

    _session_id = generate_session_id()

    if level is None:
        level = os.getenv("PIOEDITOR_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_dir is None:
        log_dir = get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / generate_log_filename(_session_id)
    _log_file_path = log_file

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)

    # Re-initialisation replaces handlers and filters of the previous session
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for f in root_logger.filters[:]:
        root_logger.removeFilter(f)

    root_logger.setLevel(log_level)

    session_filter = SessionIdFilter(_session_id)
    root_logger.addFilter(session_filter)

    # File handler (no rotation - each session gets its own file)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.addFilter(session_filter)
    file_handler.setFormatter(SessionFormatter(FILE_LOG_FORMAT, LOG_DATE_FORMAT))
    root_logger.addHandler(file_handler)

    if console_output and not quiet:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.addFilter(session_filter)
        console_handler.setFormatter(SessionFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root_logger.addHandler(console_handler)

    # Prevent propagation to root logger (avoid duplicate logs)
    root_logger.propagate = False

    symlink_path = log_dir / SYMLINK_NAME
    try:
        if symlink_path.is_symlink() or symlink_path.exists():
            symlink_path.unlink()
        symlink_path.symlink_to(log_file.name)
    except OSError:
        # Symlink creation may fail on some systems (e.g., Windows without admin)
        pass

    root_logger.info("=" * 80)
    root_logger.info("PIO Editor Logging Session Started")
    root_logger.info(f"  Session ID: {_session_id}")
    root_logger.info(f"  Log file: {log_file}")
    root_logger.info(f"  Log level: {level.upper()}")
    root_logger.info("=" * 80)

    return log_file


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger below the ``pioeditor`` namespace.

    Parameters
    ----------
    name : str
        Module name (typically __name__) or a short component name.

    Returns
    -------
    logging.Logger
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def get_current_log_file() -> Optional[Path]:
    """Return the path to the current log file, if logging is initialised."""
    return _log_file_path


def get_session_id() -> Optional[str]:
    """Return the current session ID, if logging is initialised."""
    return _session_id


# ============================================================================
# Logging Helper Functions - Structured Logging
# ============================================================================

def log_import_summary(
    logger: logging.Logger,
    source: str,
    resources: int,
    read_errors: int,
    exclusions: int,
) -> None:
    """Log the outcome of reading one PIO."""
    logger.info("-" * 60)
    logger.info("PIO IMPORT FINISHED")
    logger.info(f"  Source: {source}")
    logger.info(f"  Resources: {resources}")
    logger.info(f"  Read errors: {read_errors}")
    logger.info(f"  PIO Small exclusions: {exclusions}")
    logger.info("-" * 60)


def log_export_summary(
    logger: logging.Logger,
    resources: int,
    derived: int,
    characters: int,
) -> None:
    """Log the outcome of writing one PIO."""
    logger.info("-" * 60)
    logger.info("PIO EXPORT FINISHED")
    logger.info(f"  Resources: {resources}")
    logger.info(f"  Derived resources: {derived}")
    logger.info(f"  XML length: {characters} chars")
    logger.info("-" * 60)


def log_truncated(
    logger: logging.Logger,
    label: str,
    content: str,
    truncate_at: int = 1000,
) -> None:
    """Log a long payload (raw XML, dumped data) at DEBUG level."""
    if len(content) > truncate_at:
        display = content[:truncate_at] + f"... [TRUNCATED, {len(content)} chars total]"
    else:
        display = content
    logger.debug(f"{label}:\n{display}")
