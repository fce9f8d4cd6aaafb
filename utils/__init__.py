"""Utility-Module für dictaflow.

Logging mit Session-IDs, Zeitmessung, ENV-Parsing, History und Timer.

Usage:
    from utils import setup_logging, log, error, timed_operation

    setup_logging(debug=True)
    with timed_operation("Transkription (groq)", logger=logger):
        result = engine.transcribe(samples)
"""

# NOTE:
# Dieses Re-Export-Modul klein halten. Module, die `config` importieren,
# gehören nicht hierher, sonst entstehen beim Start zirkuläre Imports.

from .logging import error, get_logger, get_session_id, log, new_session_id, setup_logging
from .timing import format_duration, log_preview, timed_operation

__all__ = [
    "setup_logging",
    "log",
    "error",
    "get_logger",
    "get_session_id",
    "new_session_id",
    "timed_operation",
    "log_preview",
    "format_duration",
]
