"""Deepgram Nova-3 Engine (REST API).

Deepgram übersetzt nicht; ein translate-Task scheitert daher sofort mit
UnsupportedTaskError statt still zu transkribieren.
"""

import logging
import os
import threading

from config import DEFAULT_DEEPGRAM_MODEL

from .base import TranscriptionSegment
from .cloud import CloudEngine

logger = logging.getLogger("dictaflow.engines.deepgram")

MAX_KEYTERMS = 100

# Singleton Client
_client = None
_client_lock = threading.Lock()


def _get_client():
    """Gibt Deepgram-Client Singleton zurück (Lazy Init, Thread-Safe)."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                from deepgram import DeepgramClient

                api_key = os.getenv("DEEPGRAM_API_KEY")
                if not api_key:
                    raise ValueError("DEEPGRAM_API_KEY nicht gesetzt")
                _client = DeepgramClient(api_key=api_key)
                logger.debug("Deepgram-Client initialisiert")
    return _client


class DeepgramEngine(CloudEngine):
    """Deepgram REST API.

    Unterstützt:
        - nova-3 (neuestes Modell, beste Qualität)
        - nova-2 (bewährt, günstiger)

    Der Wörterbuch-Prompt wird als keyterm/keywords-Liste übergeben.
    """

    provider = "deepgram"
    display_name = "Deepgram"
    api_key_env = "DEEPGRAM_API_KEY"
    default_model = DEFAULT_DEEPGRAM_MODEL
    supports_translation = False

    def _request(self, wav, language, task, prompt):
        client = _get_client()

        keyterms = [t.strip() for t in (prompt or "").split(",") if t.strip()]
        keyterms = keyterms[:MAX_KEYTERMS]
        vocab_params = {}
        if keyterms:
            # Nova-3 nutzt 'keyterm', ältere Modelle nutzen 'keywords'
            key = "keyterm" if self.model.startswith("nova-3") else "keywords"
            vocab_params[key] = keyterms

        if language:
            vocab_params["language"] = language
        else:
            vocab_params["detect_language"] = True

        response = client.listen.v1.media.transcribe_file(
            request=wav,
            model=self.model,
            smart_format=True,
            punctuate=True,
            **vocab_params,
        )

        # Sichere Extraktion: Prüfe auf leere channels/alternatives
        channels = getattr(response.results, "channels", None) or []
        if not channels or not getattr(channels[0], "alternatives", None):
            logger.warning("Deepgram-Antwort enthält keine Transkription")
            return "", language, []

        channel = channels[0]
        alternative = channel.alternatives[0]
        detected = getattr(channel, "detected_language", None)

        segments = []
        for paragraph in _paragraphs(alternative):
            for sentence in getattr(paragraph, "sentences", None) or []:
                segments.append(
                    TranscriptionSegment(
                        text=sentence.text, start=float(sentence.start), end=float(sentence.end)
                    )
                )
        return alternative.transcript or "", detected, segments


def _paragraphs(alternative) -> list:
    paragraphs = getattr(alternative, "paragraphs", None)
    if paragraphs is None:
        return []
    return getattr(paragraphs, "paragraphs", None) or []


__all__ = ["DeepgramEngine"]
