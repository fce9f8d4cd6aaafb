"""Logging-Setup für dictaflow.

Konfiguriert Datei-Logging mit Rotation und optionalem stderr-Output.
Jedes Diktat bekommt eine eigene Session-ID, damit zusammengehörige
Log-Zeilen (Aufnahme, Streaming-Pässe, finaler Pass) korrelierbar sind.
"""

import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Logger-Singleton
logger = logging.getLogger("dictaflow")

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"

# Session-ID für Korrelation (wird pro Diktat erneuert)
_session_id: str = ""


def generate_session_id() -> str:
    """Erzeugt eine kurze, lesbare ID (8 Zeichen), ohne die globale Session zu ändern."""
    return uuid.uuid4().hex[:8]


def get_session_id() -> str:
    """Gibt die aktuelle Session-ID zurück."""
    global _session_id
    if not _session_id:
        _session_id = generate_session_id()
    return _session_id


def new_session_id() -> str:
    """Beginnt eine neue Session (ein Diktat) und gibt deren ID zurück."""
    global _session_id
    _session_id = generate_session_id()
    return _session_id


def get_logger() -> logging.Logger:
    """Gibt den dictaflow Logger zurück."""
    return logger


def _file_handler(path: Path) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, "%H:%M:%S"))
    return handler


def setup_logging(debug: bool = False) -> None:
    """Konfiguriert Logging: Datei mit Rotation + optional stderr.

    Args:
        debug: Wenn True, wird auch auf stderr geloggt
    """
    # Lazy import: config legt beim Import Verzeichnisse an
    from config import LOG_FILE

    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Verhindere doppelte Handler bei mehrfachem Aufruf
    if logger.handlers:
        return

    handler_added = False
    try:
        LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
        logger.addHandler(_file_handler(LOG_FILE))
        handler_added = True
    except PermissionError:
        # Fallback: /tmp, wenn Home-Verzeichnis nicht beschreibbar (z.B. Sandbox)
        try:
            logger.addHandler(_file_handler(Path("/tmp/dictaflow.log")))
            handler_added = True
        except OSError:
            pass
    except OSError:
        # Logging darf den App-Start nicht blockieren
        pass

    if not handler_added or debug:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        stderr_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(stderr_handler)


def log(message: str) -> None:
    """Status-Meldung auf stderr.

    Hält stdout sauber für Pipes (z.B. `dictaflow transcribe a.wav | pbcopy`).
    """
    print(message, file=sys.stderr)


def error(message: str) -> None:
    """Fehlermeldung auf stderr."""
    print(f"Fehler: {message}", file=sys.stderr)
