"""Gemeinsame Basis für Cloud-Engines (OpenAI, Groq, Deepgram).

Cloud-Engines sind nur "bereit", wenn ihr API-Key gesetzt ist. Ohne Key
liefert die Registry sie nie aus, statt mitten im Aufruf zu scheitern.
"""

from __future__ import annotations

import logging
import os
import time

from dictation.errors import (
    DictationError,
    EngineNotLoadedError,
    TranscriptionFailedError,
)
from utils.timing import log_preview, timed_operation

from .base import (
    TranscriptionEngine,
    TranscriptionResult,
    TranscriptionSegment,
    TranscriptionTask,
    samples_duration,
    samples_to_wav,
)

logger = logging.getLogger("dictaflow.engines.cloud")


class CloudEngine(TranscriptionEngine):
    """Batch-Engine über eine HTTP-API.

    Unterklassen setzen `provider`, `api_key_env`, `default_model` und
    implementieren `_request()`.
    """

    origin = "cloud"
    provider = "cloud"
    api_key_env = ""
    default_model = ""

    def __init__(self, model: str | None = None) -> None:
        self._model = model or self.default_model
        # Mit Modell-Override registriert sich die Engine als "provider:model"
        self.engine_id = self.provider if model is None else f"{self.provider}:{model}"

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_ready(self) -> bool:
        return bool(os.getenv(self.api_key_env))

    def with_model(self, model: str) -> "CloudEngine":
        return type(self)(model=model)

    def transcribe(
        self,
        samples,
        *,
        language: str | None = None,
        task: TranscriptionTask = TranscriptionTask.TRANSCRIBE,
        prompt: str | None = None,
    ) -> TranscriptionResult:
        if not self.is_ready:
            raise EngineNotLoadedError(f"{self.api_key_env} nicht gesetzt")
        self.check_task(task)

        duration = samples_duration(samples)
        wav = samples_to_wav(samples)
        logger.info(
            f"{self.display_name}: {self._model}, {len(wav) // 1024}KB, "
            f"lang={language or 'auto'}, task={task.value}"
        )

        start = time.perf_counter()
        try:
            with timed_operation(f"{self.display_name}-Transkription", logger=logger):
                text, detected, segments = self._request(wav, language, task, prompt)
        except DictationError:
            raise
        except Exception as e:
            raise TranscriptionFailedError(f"{self.display_name}: {e}") from e

        text = (text or "").strip()
        logger.debug(f"Ergebnis: {log_preview(text)}")
        return TranscriptionResult(
            text=text,
            engine_id=self.engine_id,
            detected_language=detected or language,
            duration=duration,
            processing_time=time.perf_counter() - start,
            segments=tuple(segments),
        )

    def _request(
        self,
        wav: bytes,
        language: str | None,
        task: TranscriptionTask,
        prompt: str | None,
    ) -> tuple[str, str | None, list[TranscriptionSegment]]:
        raise NotImplementedError


def parse_whisper_response(response) -> tuple[str, str | None, list[TranscriptionSegment]]:
    """Extrahiert Text, Sprache und Segmente aus einer OpenAI-kompatiblen Antwort.

    Die SDKs liefern je nach response_format String, Objekt oder dict.
    """
    if isinstance(response, str):
        return response, None, []
    if isinstance(response, dict):
        text = response.get("text", "")
        language = response.get("language")
        raw_segments = response.get("segments") or []
    else:
        text = getattr(response, "text", "")
        language = getattr(response, "language", None)
        raw_segments = getattr(response, "segments", None) or []

    segments = []
    for seg in raw_segments:
        if isinstance(seg, dict):
            segments.append(
                TranscriptionSegment(
                    text=str(seg.get("text", "")).strip(),
                    start=float(seg.get("start", 0.0)),
                    end=float(seg.get("end", 0.0)),
                )
            )
        else:
            segments.append(
                TranscriptionSegment(
                    text=str(seg.text).strip(), start=float(seg.start), end=float(seg.end)
                )
            )
    return text or "", language, segments


__all__ = ["CloudEngine", "parse_whisper_response"]
