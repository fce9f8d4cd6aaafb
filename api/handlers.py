"""Handler der HTTP-Kontrollschnittstelle (transportunabhängig).

    GET  /v1/status      → status()
    POST /v1/transcribe  → transcribe(audio_bytes, language, task, target_language)
    GET  /v1/models      → models()

Jeder Handler liefert `(http_status, json_dict)`; der Transport serialisiert
nur noch. Transkription läuft über den Orchestrator wie beim Hotkey, aber
ohne Profil (kein Vordergrund-App-Kontext).
"""

from __future__ import annotations

import io
import logging

from audio.recording import load_audio_file
from dictation.errors import (
    DictationError,
    EngineNotLoadedError,
    UnsupportedTaskError,
)
from dictation.orchestrator import DictationOrchestrator
from engines.base import TranscriptionTask
from engines.registry import EngineRegistry

logger = logging.getLogger("dictaflow.api")

Response = tuple[int, dict]


def _error(status: int, message: str) -> Response:
    return status, {"error": message}


class ControlHandlers:
    def __init__(self, orchestrator: DictationOrchestrator, registry: EngineRegistry) -> None:
        self._orchestrator = orchestrator
        self._registry = registry

    def status(self) -> Response:
        engine_id = self._registry.default_engine_id
        engine = self._registry.get(engine_id) if engine_id else None
        if engine is None:
            return 200, {
                "status": "no_model",
                "engine": None,
                "model": None,
                "supports_streaming": False,
                "supports_translation": False,
            }
        return 200, {
            "status": "ready" if engine.is_ready else "no_model",
            "engine": engine.engine_id,
            "model": engine.model,
            "supports_streaming": engine.supports_streaming,
            "supports_translation": engine.supports_translation,
        }

    def transcribe(
        self,
        audio_bytes: bytes | None,
        *,
        language: str | None = None,
        task: str | None = None,
        target_language: str | None = None,
    ) -> Response:
        if self._registry.resolve() is None:
            return _error(503, "Kein Modell geladen")
        if audio_bytes is None:
            return _error(400, "Keine Audiodaten übergeben")
        if not audio_bytes:
            return _error(400, "Leere Audiodaten")

        try:
            parsed_task = TranscriptionTask(task.lower()) if task else None
        except ValueError:
            return _error(400, f"Unbekannter Task: {task}")

        try:
            samples = load_audio_file(io.BytesIO(audio_bytes))
        except Exception as e:
            # soundfile meldet nicht lesbare Formate als RuntimeError/LibsndfileError
            logger.warning(f"Audio nicht lesbar: {e}")
            return _error(400, f"Audio nicht lesbar: {e}")

        try:
            result = self._orchestrator.transcribe_samples(
                samples,
                language=language or None,
                task=parsed_task,
                target_language=target_language or None,
            )
        except EngineNotLoadedError as e:
            return _error(503, str(e))
        except UnsupportedTaskError as e:
            return _error(400, str(e))
        except DictationError as e:
            return _error(500, f"Transkription fehlgeschlagen: {e}")

        engine = self._registry.get(result.engine_id)
        return 200, {
            "text": result.text,
            "language": result.detected_language,
            "duration": round(result.duration, 3),
            "processing_time": round(result.processing_time, 3),
            "engine": result.engine_id,
            "model": engine.model if engine is not None else None,
        }

    def models(self) -> Response:
        default = self._registry.default_engine_id
        models = []
        for descriptor in self._registry.descriptors():
            entry = descriptor.to_dict()
            entry["status"] = "ready" if descriptor.is_ready else "not_ready"
            entry["selected"] = descriptor.id == default
            models.append(entry)
        return 200, {"models": models}


__all__ = ["ControlHandlers", "Response"]
