"""Gemeinsamer Vertrag aller Transkriptions-Engines.

Lokale und Cloud-Engines implementieren dieselbe Schnittstelle, damit der
Orchestrator nie nach Herkunft verzweigen muss:

    engine.descriptor               # Fähigkeiten + Bereitschaft
    engine.transcribe(samples, ...) # Batch
    engine.transcribe_stream(samples, ..., on_progress=cb)

Samples sind float32-Arrays mit 16kHz Mono.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from config import WHISPER_SAMPLE_RATE
from dictation.errors import UnsupportedTaskError

# Rückgabe False bricht die Transkription kooperativ ab
ProgressCallback = Callable[[str], bool]

# Whisper-Sprachcodes (multilingual)
WHISPER_LANGUAGES = frozenset(
    """
    af am ar as az ba be bg bn bo br bs ca cs cy da de el en es et eu fa fi fo
    fr gl gu ha haw he hi hr ht hu hy id is it ja jw ka kk km kn ko la lb ln lo
    lt lv mg mi mk ml mn mr ms mt my ne nl nn no oc pa pl ps pt ro ru sa sd si
    sk sl sn so sq sr su sv sw ta te tg th tk tl tr tt uk ur uz vi yi yo yue zh
    """.split()
)


class TranscriptionTask(str, Enum):
    """Whisper-Task: transkribieren oder nach Englisch übersetzen."""

    TRANSCRIBE = "transcribe"
    TRANSLATE = "translate"


@dataclass(frozen=True)
class TranscriptionSegment:
    text: str
    start: float
    end: float


@dataclass(frozen=True)
class TranscriptionResult:
    """Unveränderliches Ergebnis eines Engine-Aufrufs."""

    text: str
    engine_id: str
    detected_language: str | None = None
    duration: float = 0.0
    processing_time: float = 0.0
    segments: tuple[TranscriptionSegment, ...] = ()

    @property
    def real_time_factor(self) -> float:
        """Verarbeitungszeit relativ zur Audiodauer (< 1 = schneller als Echtzeit)."""
        if self.duration <= 0:
            return 0.0
        return self.processing_time / self.duration


@dataclass(frozen=True)
class EngineDescriptor:
    """Fähigkeiten und Bereitschaft einer Engine zum Abfragezeitpunkt."""

    id: str
    display_name: str
    origin: str
    model: str | None
    supports_streaming: bool
    supports_translation: bool
    supported_languages: frozenset[str] = field(default_factory=frozenset)
    is_ready: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.display_name,
            "origin": self.origin,
            "model": self.model,
            "ready": self.is_ready,
            "supports_streaming": self.supports_streaming,
            "supports_translation": self.supports_translation,
            "languages": sorted(self.supported_languages),
        }


class TranscriptionEngine:
    """Basisklasse für Engines.

    Unterklassen setzen `engine_id`, `display_name`, `origin` und die
    Fähigkeits-Flags und implementieren `is_ready` und `transcribe`.
    """

    engine_id = "engine"
    display_name = "Engine"
    origin = "local"
    supports_streaming = False
    supports_translation = False
    supported_languages: frozenset[str] = WHISPER_LANGUAGES

    @property
    def is_ready(self) -> bool:
        raise NotImplementedError

    @property
    def model(self) -> str | None:
        return None

    @property
    def descriptor(self) -> EngineDescriptor:
        return EngineDescriptor(
            id=self.engine_id,
            display_name=self.display_name,
            origin=self.origin,
            model=self.model,
            supports_streaming=self.supports_streaming,
            supports_translation=self.supports_translation,
            supported_languages=self.supported_languages,
            is_ready=self.is_ready,
        )

    def transcribe(
        self,
        samples,
        *,
        language: str | None = None,
        task: TranscriptionTask = TranscriptionTask.TRANSCRIBE,
        prompt: str | None = None,
    ) -> TranscriptionResult:
        raise NotImplementedError

    def transcribe_stream(
        self,
        samples,
        *,
        language: str | None = None,
        task: TranscriptionTask = TranscriptionTask.TRANSCRIBE,
        prompt: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TranscriptionResult:
        """Streaming-Variante. Default: gepollter Batch-Aufruf ohne Zwischenstände."""
        return self.transcribe(samples, language=language, task=task, prompt=prompt)

    def check_task(self, task: TranscriptionTask) -> None:
        """Wirft UnsupportedTaskError statt still auf transcribe zurückzufallen."""
        if task == TranscriptionTask.TRANSLATE and not self.supports_translation:
            raise UnsupportedTaskError(self.engine_id, task.value)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.engine_id} model={self.model}>"


def samples_duration(samples, sample_rate: int = WHISPER_SAMPLE_RATE) -> float:
    """Dauer eines Sample-Arrays in Sekunden."""
    return len(samples) / sample_rate if samples is not None else 0.0


def samples_to_wav(samples, sample_rate: int = WHISPER_SAMPLE_RATE) -> bytes:
    """Kodiert float32-Samples als WAV (PCM16) für Cloud-APIs."""
    import soundfile as sf

    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


__all__ = [
    "EngineDescriptor",
    "ProgressCallback",
    "TranscriptionEngine",
    "TranscriptionResult",
    "TranscriptionSegment",
    "TranscriptionTask",
    "WHISPER_LANGUAGES",
    "samples_duration",
    "samples_to_wav",
]
