"""Groq Whisper Engine.

Nutzt Groq's LPU-Chips für extrem schnelle Whisper-Inferenz (~300x Echtzeit).
"""

import logging
import os
import threading

from config import DEFAULT_GROQ_MODEL

from .base import TranscriptionTask
from .cloud import CloudEngine, parse_whisper_response

logger = logging.getLogger("dictaflow.engines.groq")

# Singleton Client
_client = None
_client_lock = threading.Lock()


def _get_client():
    """Gibt Groq-Client Singleton zurück (Lazy Init, Thread-Safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                from groq import Groq

                api_key = os.getenv("GROQ_API_KEY")
                if not api_key:
                    raise ValueError("GROQ_API_KEY nicht gesetzt")
                _client = Groq(api_key=api_key)
                logger.debug("Groq-Client initialisiert")
    return _client


class GroqEngine(CloudEngine):
    """Groq Whisper.

    Unterstützt:
        - whisper-large-v3 (beste Qualität, kann übersetzen)
        - whisper-large-v3-turbo (schneller, nur Transkription)
    """

    provider = "groq"
    display_name = "Groq"
    api_key_env = "GROQ_API_KEY"
    default_model = DEFAULT_GROQ_MODEL

    @property
    def supports_translation(self) -> bool:
        # Turbo-Modelle wurden ohne Übersetzungsdaten trainiert
        return "turbo" not in self.model

    def _request(self, wav, language, task, prompt):
        client = _get_client()
        params = {
            "file": ("audio.wav", wav),
            "model": self.model,
            "response_format": "verbose_json",
            "temperature": 0.0,  # Konsistente Ergebnisse ohne Kreativität
        }
        if prompt:
            params["prompt"] = prompt

        if task == TranscriptionTask.TRANSLATE:
            response = client.audio.translations.create(**params)
            text, _language, segments = parse_whisper_response(response)
            return text, "en", segments

        if language:
            params["language"] = language
        response = client.audio.transcriptions.create(**params)
        return parse_whisper_response(response)


__all__ = ["GroqEngine"]
