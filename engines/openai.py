"""OpenAI Whisper API Engine.

Nutzt die OpenAI Transcription API mit gpt-4o-transcribe oder whisper-1.
Übersetzungen (Task translate) laufen über den Translations-Endpoint, den
OpenAI nur für whisper-1 anbietet.
"""

import logging
import threading

from config import DEFAULT_API_MODEL

from .base import TranscriptionTask
from .cloud import CloudEngine, parse_whisper_response

logger = logging.getLogger("dictaflow.engines.openai")

TRANSLATION_MODEL = "whisper-1"

# Singleton Client
_client = None
_client_lock = threading.Lock()


def _get_client():
    """Gibt OpenAI-Client Singleton zurück (Lazy Init, Thread-Safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                from openai import OpenAI

                _client = OpenAI()  # Nutzt OPENAI_API_KEY automatisch
                logger.debug("OpenAI-Client initialisiert")
    return _client


class OpenAIEngine(CloudEngine):
    """OpenAI Whisper API.

    Unterstützt:
        - gpt-4o-transcribe (beste Qualität)
        - gpt-4o-mini-transcribe (schneller, günstiger)
        - whisper-1 (original Whisper, liefert Segmente + erkannte Sprache)
    """

    provider = "openai"
    display_name = "OpenAI"
    api_key_env = "OPENAI_API_KEY"
    default_model = DEFAULT_API_MODEL
    supports_translation = True

    def _request(self, wav, language, task, prompt):
        client = _get_client()
        file = ("audio.wav", wav)

        if task == TranscriptionTask.TRANSLATE:
            params = {
                "model": TRANSLATION_MODEL,
                "file": file,
                "response_format": "json",
            }
            if prompt:
                params["prompt"] = prompt
            response = client.audio.translations.create(**params)
            text, _language, segments = parse_whisper_response(response)
            return text, "en", segments

        # Nur whisper-1 kennt verbose_json (Segmente, erkannte Sprache)
        verbose = self.model == "whisper-1"
        params = {
            "model": self.model,
            "file": file,
            "response_format": "verbose_json" if verbose else "json",
        }
        if language:
            params["language"] = language
        if prompt:
            params["prompt"] = prompt
        response = client.audio.transcriptions.create(**params)
        return parse_whisper_response(response)


__all__ = ["OpenAIEngine"]
