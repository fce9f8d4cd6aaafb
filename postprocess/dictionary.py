"""Wörterbuch: Fachbegriffe für den Engine-Prompt und Korrekturen.

Dateiformat (`~/.dictaflow/dictionary.json`):

    {
      "terms": ["Kubernetes", "dictaflow"],
      "corrections": [
        {"original": "cube control", "replacement": "kubectl"},
        {"original": "API", "replacement": "API", "case_sensitive": true}
      ]
    }

Engines und CLI nutzen dieselbe Datei. Um nicht bei jedem Diktat von der
Platte zu lesen, wird der Inhalt gecacht und nur bei geänderter mtime neu
geladen.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from config import DICTIONARY_FILE as _DEFAULT_DICTIONARY_FILE
from config import DICTIONARY_PROMPT_MAX_CHARS

logger = logging.getLogger("dictaflow.postprocess")

# Cache per path: {Path: (mtime, data)}
_cache: dict[Path, tuple[float, dict]] = {}


def _empty() -> dict:
    return {"terms": [], "corrections": []}


def _clear_cache() -> None:
    """Leert den Cache. Nur für Tests relevant."""
    _cache.clear()


def load_dictionary(path: Path | None = None) -> dict:
    """Loads the dictionary JSON.

    Returns:
        Dict with guaranteed "terms" and "corrections" lists.
    """
    dictionary_file = path or _DEFAULT_DICTIONARY_FILE

    try:
        mtime = dictionary_file.stat().st_mtime
    except FileNotFoundError:
        _cache.pop(dictionary_file, None)
        return _empty()
    except OSError as e:
        logger.warning(f"Wörterbuch nicht lesbar: {e}")
        _cache.pop(dictionary_file, None)
        return _empty()

    cached = _cache.get(dictionary_file)
    if cached and cached[0] == mtime:
        return cached[1]

    try:
        data = json.loads(dictionary_file.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("Wurzel muss ein Objekt sein")
    except (json.JSONDecodeError, OSError, ValueError) as e:
        logger.warning(f"Wörterbuch fehlerhaft: {e}")
        data = _empty()

    if not isinstance(data.get("terms"), list):
        data["terms"] = []
    if not isinstance(data.get("corrections"), list):
        data["corrections"] = []

    _cache[dictionary_file] = (mtime, data)
    return data


def save_dictionary(data: dict, path: Path | None = None) -> None:
    """Speichert das Wörterbuch und aktualisiert den Cache."""
    dictionary_file = path or _DEFAULT_DICTIONARY_FILE
    dictionary_file.parent.mkdir(parents=True, exist_ok=True)
    try:
        dictionary_file.write_text(
            json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
        )
    except OSError as e:
        logger.warning(f"Wörterbuch nicht schreibbar: {e}")
        raise

    # Cache direkt aktualisieren, damit Änderungen sofort wirken.
    try:
        _cache[dictionary_file] = (dictionary_file.stat().st_mtime, data)
    except OSError:
        _cache.pop(dictionary_file, None)


@dataclass(frozen=True)
class Correction:
    original: str
    replacement: str
    case_sensitive: bool = False

    def apply(self, text: str) -> str:
        if self.case_sensitive:
            return text.replace(self.original, self.replacement)
        pattern = re.compile(re.escape(self.original), re.IGNORECASE)
        # Lambda verhindert, dass Backslashes im Ersatz als Gruppen gelesen werden
        return pattern.sub(lambda _m: self.replacement, text)


class Dictionary:
    """Sicht auf die Wörterbuch-Datei für Prompt und Korrekturen."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or _DEFAULT_DICTIONARY_FILE

    def terms(self) -> list[str]:
        terms = load_dictionary(self.path)["terms"]
        return [t.strip() for t in terms if isinstance(t, str) and t.strip()]

    def corrections(self) -> list[Correction]:
        result = []
        for entry in load_dictionary(self.path)["corrections"]:
            if not isinstance(entry, dict):
                continue
            original = entry.get("original")
            replacement = entry.get("replacement")
            if not isinstance(original, str) or not original:
                continue
            if not isinstance(replacement, str):
                continue
            result.append(
                Correction(original, replacement, bool(entry.get("case_sensitive", False)))
            )
        return result

    def prompt(self, max_chars: int = DICTIONARY_PROMPT_MAX_CHARS) -> str | None:
        """Begriffe als Komma-Liste für den Whisper-Prompt, auf `max_chars` gekürzt.

        Gekürzt wird an Begriffsgrenzen, nie mitten im Wort.
        """
        prompt = ""
        for term in self.terms():
            candidate = f"{prompt}, {term}" if prompt else term
            if len(candidate) > max_chars:
                break
            prompt = candidate
        return prompt or None

    def apply_corrections(self, text: str) -> str:
        for correction in self.corrections():
            text = correction.apply(text)
        return text

    def add_term(self, term: str) -> None:
        data = dict(load_dictionary(self.path))
        terms = list(data["terms"])
        if term not in terms:
            terms.append(term)
        data["terms"] = terms
        save_dictionary(data, self.path)

    def add_correction(
        self, original: str, replacement: str, case_sensitive: bool = False
    ) -> None:
        data = dict(load_dictionary(self.path))
        corrections = [
            c for c in data["corrections"]
            if not (isinstance(c, dict) and c.get("original") == original)
        ]
        corrections.append(
            {"original": original, "replacement": replacement, "case_sensitive": case_sensitive}
        )
        data["corrections"] = corrections
        save_dictionary(data, self.path)


__all__ = ["Correction", "Dictionary", "load_dictionary", "save_dictionary"]
