"""Diktat-Historie für dictaflow.

Speichert Diktate in ~/.dictaflow/history.jsonl.
Jede Zeile ist ein JSON-Objekt mit Timestamp, Rohtext, finalem Text und
Metadaten (App, URL, Engine, Sprache, Dauer).
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from pathlib import Path

from config import HISTORY_FILE

MAX_HISTORY_SIZE_MB = 10  # Max file size before rotation

logger = logging.getLogger("dictaflow.history")


class HistoryStore:
    """JSONL-Historie (HistorySink des Orchestrators).

    Schreibfehler werden geloggt und nie weitergereicht: die Historie darf
    ein Diktat nicht scheitern lassen.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or HISTORY_FILE
        self._lock = threading.Lock()

    def add_record(
        self,
        *,
        raw_text: str,
        final_text: str,
        app_name: str | None = None,
        app_id: str | None = None,
        url: str | None = None,
        duration: float = 0.0,
        language: str | None = None,
        engine_id: str | None = None,
    ) -> bool:
        """Hängt ein Diktat an die Historie an.

        Returns:
            True bei Erfolg, False bei Fehler oder leerem Text
        """
        if not final_text or not final_text.strip():
            return False

        entry: dict = {
            "timestamp": datetime.now().isoformat(),
            "text": final_text.strip(),
            "duration": round(duration, 2),
        }
        # Rohtext nur speichern, wenn die Nachbearbeitung etwas geändert hat
        if raw_text and raw_text.strip() != entry["text"]:
            entry["raw_text"] = raw_text.strip()
        if app_name:
            entry["app"] = app_name
        if app_id:
            entry["app_id"] = app_id
        if url:
            entry["url"] = url
        if language:
            entry["language"] = language
        if engine_id:
            entry["engine"] = engine_id

        try:
            with self._lock:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed()
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.warning(f"Historie nicht schreibbar: {e}")
            return False

        logger.debug(f"Diktat gespeichert: {entry['text'][:50]}...")
        return True

    def _rotate_if_needed(self) -> None:
        """Rotiert die Historie wenn sie zu groß wird (behält die neuere Hälfte)."""
        if not self.path.exists():
            return

        size_mb = self.path.stat().st_size / (1024 * 1024)
        if size_mb < MAX_HISTORY_SIZE_MB:
            return

        lines = self.path.read_text(encoding="utf-8").splitlines()
        keep_count = len(lines) // 2
        if keep_count > 0:
            self.path.write_text("\n".join(lines[-keep_count:]) + "\n", encoding="utf-8")
            logger.info(f"Historie rotiert: {keep_count} von {len(lines)} Einträgen behalten")

    def recent(self, count: int = 10) -> list[dict]:
        """Gibt die letzten N Einträge zurück (neueste zuerst)."""
        if not self.path.exists():
            return []

        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.warning(f"Historie nicht lesbar: {e}")
            return []

        entries = []
        for line in reversed(lines[-count:]):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
        return entries

    def clear(self) -> bool:
        """Löscht die gesamte Historie."""
        try:
            with self._lock:
                if self.path.exists():
                    self.path.unlink()
        except OSError as e:
            logger.warning(f"Historie konnte nicht gelöscht werden: {e}")
            return False
        logger.info("Historie gelöscht")
        return True


__all__ = ["HistoryStore", "MAX_HISTORY_SIZE_MB"]
