"""Text-Snippets: Kürzel im Diktat werden durch Textbausteine ersetzt.

Dateiformat (`~/.dictaflow/snippets.json`):

    [
      {"trigger": "meine adresse", "replacement": "Musterstraße 1, 12345 Berlin"},
      {"trigger": "heute", "replacement": "{date}", "case_sensitive": false},
      {"trigger": "sig", "replacement": "Viele Grüße", "enabled": false}
    ]

Platzhalter in Ersetzungen: {date}, {time}, {clipboard}.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from config import SNIPPETS_FILE

logger = logging.getLogger("dictaflow.postprocess")

# Cache per path: {Path: (mtime, snippets)}
_cache: dict[Path, tuple[float, tuple["Snippet", ...]]] = {}


def _clear_cache() -> None:
    """Leert den Cache. Nur für Tests relevant."""
    _cache.clear()


def _read_clipboard() -> str:
    import pyperclip

    try:
        return pyperclip.paste() or ""
    except pyperclip.PyperclipException as e:
        logger.debug(f"Clipboard nicht lesbar: {e}")
        return ""


@dataclass(frozen=True)
class Snippet:
    trigger: str
    replacement: str
    case_sensitive: bool = False
    enabled: bool = True

    def render(self, clipboard: Callable[[], str] = _read_clipboard) -> str:
        """Ersetzt Platzhalter in der Ersetzung."""
        text = self.replacement
        now = datetime.now()
        if "{date}" in text:
            text = text.replace("{date}", now.strftime("%d.%m.%Y"))
        if "{time}" in text:
            text = text.replace("{time}", now.strftime("%H:%M"))
        if "{clipboard}" in text:
            text = text.replace("{clipboard}", clipboard())
        return text

    def apply(self, text: str, clipboard: Callable[[], str] = _read_clipboard) -> str:
        if self.case_sensitive:
            if self.trigger not in text:
                return text
            return text.replace(self.trigger, self.render(clipboard))
        pattern = re.compile(re.escape(self.trigger), re.IGNORECASE)
        if not pattern.search(text):
            return text
        replacement = self.render(clipboard)
        return pattern.sub(lambda _m: replacement, text)


def load_snippets(path: Path | None = None) -> tuple[Snippet, ...]:
    """Lädt Snippets (mtime-gecacht). Fehlerhafte Einträge werden übersprungen."""
    snippets_file = path or SNIPPETS_FILE
    try:
        mtime = snippets_file.stat().st_mtime
    except FileNotFoundError:
        _cache.pop(snippets_file, None)
        return ()
    except OSError as e:
        logger.warning(f"Snippet-Datei nicht lesbar: {e}")
        return ()

    cached = _cache.get(snippets_file)
    if cached and cached[0] == mtime:
        return cached[1]

    try:
        entries = json.loads(snippets_file.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Snippet-Datei fehlerhaft: {e}")
        entries = []
    if not isinstance(entries, list):
        entries = []

    snippets = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        trigger = entry.get("trigger")
        replacement = entry.get("replacement")
        if not isinstance(trigger, str) or not trigger.strip():
            continue
        if not isinstance(replacement, str):
            continue
        snippets.append(
            Snippet(
                trigger=trigger,
                replacement=replacement,
                case_sensitive=bool(entry.get("case_sensitive", False)),
                enabled=bool(entry.get("enabled", True)),
            )
        )

    result = tuple(snippets)
    _cache[snippets_file] = (mtime, result)
    return result


class SnippetExpander:
    """Wendet alle aktiven Snippets nacheinander an."""

    def __init__(
        self,
        path: Path | None = None,
        snippets=None,
        clipboard: Callable[[], str] = _read_clipboard,
    ) -> None:
        self.path = path or SNIPPETS_FILE
        self._static = tuple(snippets) if snippets is not None else None
        self._clipboard = clipboard

    def snippets(self) -> tuple[Snippet, ...]:
        if self._static is not None:
            return self._static
        return load_snippets(self.path)

    def expand(self, text: str) -> str:
        for snippet in self.snippets():
            if snippet.enabled:
                text = snippet.apply(text, self._clipboard)
        return text


__all__ = ["Snippet", "SnippetExpander", "load_snippets"]
