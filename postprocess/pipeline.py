"""Nachbearbeitung des finalen Transkripts.

Reihenfolge: Übersetzung → Snippets → Wörterbuch-Korrekturen. Die Pipeline
läuft genau einmal pro Diktat, nie auf Streaming-Zwischenständen.
"""

from __future__ import annotations

import logging
from typing import Protocol

from utils.logging import get_session_id
from utils.timing import log_preview

from .dictionary import Dictionary
from .snippets import SnippetExpander

logger = logging.getLogger("dictaflow.postprocess")


class Translator(Protocol):
    def translate(self, text: str, target: str) -> str: ...


class PostProcessingPipeline:
    """Verkettete Text-Transformationen.

    Alle Stufen sind optional; ohne Konfiguration gibt die Pipeline den
    Text unverändert zurück.
    """

    def __init__(
        self,
        translator: Translator | None = None,
        snippets: SnippetExpander | None = None,
        dictionary: Dictionary | None = None,
    ) -> None:
        self.translator = translator
        self.snippets = snippets
        self.dictionary = dictionary

    def prompt(self) -> str | None:
        """Engine-Prompt aus den Wörterbuch-Begriffen."""
        if self.dictionary is None:
            return None
        return self.dictionary.prompt()

    def process(self, text: str, *, translation_target: str | None = None) -> str:
        result = text
        if translation_target and self.translator is not None:
            result = self.translator.translate(result, translation_target)
        if self.snippets is not None:
            result = self.snippets.expand(result)
        if self.dictionary is not None:
            result = self.dictionary.apply_corrections(result)
        if result != text:
            logger.debug(f"[{get_session_id()}] Nachbearbeitet: {log_preview(result)}")
        return result


__all__ = ["PostProcessingPipeline", "Translator"]
