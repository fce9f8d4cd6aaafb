"""Lokale Whisper Engine.

Standardmäßig nutzt sie faster-whisper (CTranslate2), falls installiert,
sonst openai-whisper (PyTorch). Über `DICTAFLOW_LOCAL_BACKEND=faster|whisper`
lässt sich das Backend erzwingen.

Streaming: faster-whisper liefert Segmente als Generator. Jeder neue
Segment-Stand geht an den Progress-Callback; gibt dieser False zurück,
bricht die Engine den Pass ab. openai-whisper liefert keine Zwischenstände
(gepollter Batch).
"""

import logging
import threading
import time

from config import DEFAULT_LOCAL_MODEL
from dictation.errors import (
    DictationError,
    EngineNotLoadedError,
    TranscriptionFailedError,
)
from utils.env import get_env_bool, get_env_int, get_env_str
from utils.timing import log_preview, timed_operation

from .base import (
    TranscriptionEngine,
    TranscriptionResult,
    TranscriptionSegment,
    TranscriptionTask,
    WHISPER_LANGUAGES,
    samples_duration,
)

logger = logging.getLogger("dictaflow.engines.local")

# Modelle ohne Übersetzungs-Fähigkeit (Englisch-only bzw. ohne Translate-Training)
_NO_TRANSLATION_MARKERS = (".en", "distil", "turbo")


def _select_device() -> str:
    """Wählt ein sinnvolles Device für lokales Whisper.

    Priorität:
      1) DICTAFLOW_DEVICE Env-Override (z.B. "cpu", "cuda")
      2) CUDA (falls via torch verfügbar)
      3) CPU
    """
    env_device = (get_env_str("DICTAFLOW_DEVICE") or "").lower()
    if env_device and env_device != "auto":
        return env_device
    try:
        import torch

        if torch.cuda.is_available():
            return "cuda"
    except Exception as e:
        logger.debug(f"Device-Detection fehlgeschlagen, fallback CPU: {e}")
    return "cpu"


def _select_backend(preference: str | None) -> str:
    backend = (preference or get_env_str("DICTAFLOW_LOCAL_BACKEND") or "auto").lower()
    if backend in {"faster", "faster-whisper"}:
        return "faster"
    if backend in {"whisper", "openai-whisper"}:
        return "whisper"
    if backend != "auto":
        logger.warning(f"Unbekanntes DICTAFLOW_LOCAL_BACKEND='{backend}', nutze auto")
    try:
        import faster_whisper  # noqa: F401

        return "faster"
    except ImportError:
        return "whisper"


class LocalEngine(TranscriptionEngine):
    """Lokales Whisper-Modell.

    Unterstützte Modelle:
        - tiny, base, small, medium: schnell bis mittel
        - large: beste Qualität, langsam
        - turbo: schnell & gut (empfohlen, übersetzt aber nicht)
        - *.en: nur Englisch
    """

    engine_id = "local"
    display_name = "Whisper (lokal)"
    origin = "local"
    supports_streaming = True

    def __init__(self, model: str | None = None, backend: str | None = None) -> None:
        self._model_name = (
            model or get_env_str("DICTAFLOW_LOCAL_MODEL") or DEFAULT_LOCAL_MODEL
        )
        self._backend_preference = backend
        self._backend: str | None = None
        self._device: str | None = None
        self._loaded = None
        self._load_lock = threading.Lock()
        self._transcribe_lock = threading.Lock()

    @property
    def model(self) -> str:
        return self._model_name

    @property
    def backend(self) -> str | None:
        return self._backend

    @property
    def is_ready(self) -> bool:
        return self._loaded is not None

    @property
    def supports_translation(self) -> bool:
        return not any(marker in self._model_name for marker in _NO_TRANSLATION_MARKERS)

    @property
    def supported_languages(self) -> frozenset:
        if self._model_name.endswith(".en"):
            return frozenset({"en"})
        return WHISPER_LANGUAGES

    # -------------------------------------------------------------------------
    # Modell-Lebenszyklus (gehört dem Model-Manager, nicht dem Orchestrator)
    # -------------------------------------------------------------------------

    def load(self, model: str | None = None) -> None:
        """Lädt das Modell (blockierend). Bereits geladene Modelle bleiben im Cache."""
        with self._load_lock:
            if model and model != self._model_name:
                self._model_name = model
                self._loaded = None
            if self._loaded is not None:
                return
            self._backend = _select_backend(self._backend_preference)
            self._device = _select_device()
            with timed_operation(
                f"Modell '{self._model_name}' geladen ({self._backend}, {self._device})",
                logger=logger,
                include_session=False,
            ):
                if self._backend == "faster":
                    self._loaded = self._load_faster()
                else:
                    self._loaded = self._load_whisper()

    def unload(self) -> None:
        with self._load_lock:
            self._loaded = None
        logger.info(f"Modell '{self._model_name}' entladen")

    def _load_faster(self):
        from faster_whisper import WhisperModel

        mapping = {"turbo": "large-v3-turbo", "large": "large-v3"}
        name = mapping.get(self._model_name, self._model_name)
        device = "cuda" if self._device == "cuda" else "cpu"
        compute_type = get_env_str("DICTAFLOW_LOCAL_COMPUTE_TYPE") or (
            "float16" if device == "cuda" else "int8"
        )
        cpu_threads = get_env_int("DICTAFLOW_LOCAL_CPU_THREADS") or 0
        return WhisperModel(
            name, device=device, compute_type=compute_type, cpu_threads=cpu_threads
        )

    def _load_whisper(self):
        import whisper

        return whisper.load_model(self._model_name, device=self._device)

    # -------------------------------------------------------------------------
    # Transkription
    # -------------------------------------------------------------------------

    def _build_options(
        self, language: str | None, task: TranscriptionTask, prompt: str | None
    ) -> dict:
        """Decode-Optionen (schnelles Greedy-Decoding als Default)."""
        options: dict = {
            "task": task.value,
            "temperature": 0.0,
            "beam_size": get_env_int("DICTAFLOW_LOCAL_BEAM_SIZE") or 1,
            "condition_on_previous_text": False,
        }
        if language:
            options["language"] = language
        if prompt:
            options["initial_prompt"] = prompt
        if self._backend == "faster":
            if get_env_bool("DICTAFLOW_LOCAL_VAD_FILTER"):
                options["vad_filter"] = True
        else:
            options["fp16"] = self._device == "cuda"
        return options

    def transcribe(
        self,
        samples,
        *,
        language=None,
        task=TranscriptionTask.TRANSCRIBE,
        prompt=None,
    ) -> TranscriptionResult:
        return self._run(samples, language, task, prompt, None)

    def transcribe_stream(
        self,
        samples,
        *,
        language=None,
        task=TranscriptionTask.TRANSCRIBE,
        prompt=None,
        on_progress=None,
    ) -> TranscriptionResult:
        return self._run(samples, language, task, prompt, on_progress)

    def _run(self, samples, language, task, prompt, on_progress) -> TranscriptionResult:
        model = self._loaded
        if model is None:
            raise EngineNotLoadedError(f"Lokales Modell '{self._model_name}' nicht geladen")
        self.check_task(task)

        options = self._build_options(language, task, prompt)
        duration = samples_duration(samples)
        start = time.perf_counter()
        # Ein Modell-Aufruf zur Zeit: der finale Pass wartet auf einen laufenden Streaming-Pass
        with self._transcribe_lock:
            try:
                if self._backend == "faster":
                    text, detected, segments = self._transcribe_faster(
                        model, samples, options, on_progress
                    )
                else:
                    text, detected, segments = self._transcribe_whisper(
                        model, samples, options
                    )
            except DictationError:
                raise
            except Exception as e:
                raise TranscriptionFailedError(
                    f"Lokale Transkription fehlgeschlagen: {e}"
                ) from e

        elapsed = time.perf_counter() - start
        logger.debug(
            f"Lokal: {duration:.1f}s Audio in {elapsed:.2f}s, "
            f"Ergebnis: {log_preview(text)}"
        )
        return TranscriptionResult(
            text=text,
            engine_id=self.engine_id,
            detected_language=detected or language,
            duration=duration,
            processing_time=elapsed,
            segments=tuple(segments),
        )

    @staticmethod
    def _transcribe_faster(model, samples, options, on_progress):
        segments_iter, info = model.transcribe(samples, **options)
        parts: list[str] = []
        segments: list[TranscriptionSegment] = []
        for seg in segments_iter:
            parts.append(seg.text)
            segments.append(
                TranscriptionSegment(text=seg.text.strip(), start=seg.start, end=seg.end)
            )
            if on_progress is not None and not on_progress("".join(parts).strip()):
                logger.debug("Streaming-Pass vom Aufrufer abgebrochen")
                break
        return "".join(parts).strip(), getattr(info, "language", None), segments

    @staticmethod
    def _transcribe_whisper(model, samples, options):
        result = model.transcribe(samples, **options)
        segments = [
            TranscriptionSegment(
                text=str(seg.get("text", "")).strip(),
                start=float(seg.get("start", 0.0)),
                end=float(seg.get("end", 0.0)),
            )
            for seg in result.get("segments") or []
        ]
        return str(result.get("text", "")).strip(), result.get("language"), segments


def preload_in_background(engine: LocalEngine) -> threading.Thread:
    """Lädt das lokale Modell in einem Hintergrund-Thread vor."""

    def _preload() -> None:
        try:
            engine.load()
        except Exception as e:
            logger.error(f"Lokales Modell konnte nicht geladen werden: {e}")

    thread = threading.Thread(target=_preload, name="LocalModelPreload", daemon=True)
    thread.start()
    return thread


__all__ = ["LocalEngine", "preload_in_background"]
