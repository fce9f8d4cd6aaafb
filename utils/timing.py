"""Zeitmessung für dictaflow.

Misst Engine-Aufrufe, Streaming-Pässe und Übersetzungen und schreibt die
Dauer mit Session-Präfix ins Log.
"""

import time
from contextlib import contextmanager

from .logging import get_logger, get_session_id


def format_duration(milliseconds: float) -> str:
    """Unter einer Sekunde in ms, darüber in s mit zwei Nachkommastellen."""
    if milliseconds < 1000:
        return f"{milliseconds:.0f}ms"
    return f"{milliseconds / 1000:.2f}s"


def log_preview(text: str, max_length: int = 100) -> str:
    """Transkript-Ausschnitt fürs Log (lange Texte mit "..." gekürzt)."""
    if len(text) > max_length:
        return text[:max_length] + "..."
    return text


@contextmanager
def timed_operation(
    name: str,
    *,
    logger=None,
    level: str = "info",
    include_session: bool = True,
    session_id: str | None = None,
):
    """Loggt die Laufzeit des Blocks als `[session] name: dauer`.

    Worker-Threads übergeben `session_id` explizit, da sie die ID beim
    Start übernommen haben und die globale Session inzwischen gewechselt
    haben kann. Streaming-Pässe loggen mit `level="debug"`.

    Usage:
        with timed_operation("Transkription (local)", logger=logger):
            result = engine.transcribe(samples)
    """
    op_logger = logger or get_logger()
    if session_id is None and include_session:
        session_id = get_session_id()
    prefix = f"[{session_id}] " if session_id else ""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = format_duration((time.perf_counter() - start) * 1000)
        getattr(op_logger, level)(f"{prefix}{name}: {elapsed}")
