"""
PIO Editor Utilities Package - Cross-Cutting Helpers

Logging setup and structured log helpers shared by the CLI and the
document/transform modules.
"""

from .logging import (
    setup_logging,
    get_logger,
    get_current_log_file,
    get_session_id,
    log_import_summary,
    log_export_summary,
    log_truncated,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "get_current_log_file",
    "get_session_id",
    "log_import_summary",
    "log_export_summary",
    "log_truncated",
]
