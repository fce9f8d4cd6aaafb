"""Übersetzung finaler Transkripte per LLM (OpenAI oder Groq).

Übersetzung ist best-effort: fehlende API-Keys, Timeouts oder API-Fehler
liefern den Originaltext zurück, das Diktat scheitert daran nie.
"""

import logging
import os
import threading

from config import (
    DEFAULT_GROQ_TRANSLATION_MODEL,
    DEFAULT_TRANSLATION_MODEL,
    TRANSLATION_TIMEOUT,
)
from utils.logging import get_session_id
from utils.timing import log_preview, timed_operation

logger = logging.getLogger("dictaflow.postprocess")

TRANSLATION_PROMPT = (
    "Translate the following dictated text into the language with the code "
    "'{target}'. Keep names, numbers and formatting. Reply with the translation "
    "only, without quotes or explanations.\n\nText:\n{text}"
)

# Client Singletons (Lazy Init, Connection-Reuse)
_client_lock = threading.Lock()
_groq_client = None
_openai_client = None


def _get_groq_client():
    """Gibt Groq-Client Singleton zurück (Lazy Init, Thread-Safe)."""
    global _groq_client
    if _groq_client is None:
        with _client_lock:
            if _groq_client is None:  # Double-check nach Lock
                from groq import Groq

                api_key = os.getenv("GROQ_API_KEY")
                if not api_key:
                    raise ValueError("GROQ_API_KEY nicht gesetzt")
                _groq_client = Groq(api_key=api_key)
                logger.debug(f"[{get_session_id()}] Groq-Client initialisiert")
    return _groq_client


def _get_openai_client():
    """Gibt OpenAI-Client Singleton zurück (Lazy Init, Thread-Safe)."""
    global _openai_client
    if _openai_client is None:
        with _client_lock:
            if _openai_client is None:  # Double-check nach Lock
                from openai import OpenAI

                if not os.getenv("OPENAI_API_KEY"):
                    raise ValueError("OPENAI_API_KEY nicht gesetzt")
                _openai_client = OpenAI()
                logger.debug(f"[{get_session_id()}] OpenAI-Client initialisiert")
    return _openai_client


def _extract_message_content(content) -> str:
    """Extrahiert Text aus Message-Content (String, Liste oder None)."""
    if content is None:
        return ""
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part)
            for part in content
        ).strip()
    return content.strip()


class LLMTranslator:
    """Übersetzt per Chat-Completion.

    Provider: CLI/Konstruktor > DICTAFLOW_TRANSLATION_PROVIDER > "openai".
    """

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        timeout: float = TRANSLATION_TIMEOUT,
    ) -> None:
        self.provider = (
            provider or os.getenv("DICTAFLOW_TRANSLATION_PROVIDER") or "openai"
        ).lower()
        default_model = (
            DEFAULT_GROQ_TRANSLATION_MODEL if self.provider == "groq" else DEFAULT_TRANSLATION_MODEL
        )
        self.model = model or os.getenv("DICTAFLOW_TRANSLATION_MODEL") or default_model
        self.timeout = timeout

    def _client(self):
        if self.provider == "groq":
            return _get_groq_client()
        return _get_openai_client()

    def _request(self, text: str, target: str) -> str:
        client = self._client()
        response = client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "user", "content": TRANSLATION_PROMPT.format(target=target, text=text)}
            ],
            timeout=self.timeout,
        )
        return _extract_message_content(response.choices[0].message.content)

    def translate(self, text: str, target: str) -> str:
        """Übersetzt `text` nach `target`; gibt bei jedem Fehler das Original zurück."""
        if not text.strip() or not target:
            return text

        session_id = get_session_id()
        logger.info(
            f"[{session_id}] Übersetzung nach '{target}': "
            f"provider={self.provider}, model={self.model}"
        )
        try:
            with timed_operation("Übersetzung", logger=logger):
                result = self._request(text, target)
        except ValueError as e:
            # Fehlende API-Keys
            logger.warning(f"[{session_id}] Übersetzung übersprungen: {e}")
            return text
        except Exception as e:
            # Timeouts und API-Fehler der SDKs
            logger.warning(f"[{session_id}] Übersetzung fehlgeschlagen: {e}")
            return text

        if not result:
            logger.warning(f"[{session_id}] Übersetzung leer, verwende Original")
            return text
        logger.debug(f"[{session_id}] Übersetzt: {log_preview(result)}")
        return result


__all__ = ["LLMTranslator", "TRANSLATION_PROMPT"]
