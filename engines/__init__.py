"""Transkriptions-Engines für dictaflow.

Dieses Modul stellt ein einheitliches Interface für alle Engines bereit.

Usage:
    from engines import build_registry

    registry = build_registry(default="groq")
    engine = registry.resolve("openai:whisper-1")
    result = engine.transcribe(samples, language="de")

Unterstützte Engines:
    - local: Lokales Whisper-Modell (faster-whisper / openai-whisper), Streaming
    - openai: OpenAI Whisper API (gpt-4o-transcribe)
    - groq: Groq Whisper auf LPU
    - deepgram: Deepgram Nova-3 (REST API)
"""

from typing import TYPE_CHECKING

# Defaults zentral in config.py halten (vermeidet Drift)
from config import (
    DEFAULT_API_MODEL,
    DEFAULT_DEEPGRAM_MODEL,
    DEFAULT_ENGINE,
    DEFAULT_GROQ_MODEL,
    DEFAULT_LOCAL_MODEL,
)

from .base import (
    EngineDescriptor,
    TranscriptionEngine,
    TranscriptionResult,
    TranscriptionSegment,
    TranscriptionTask,
)
from .registry import EngineRegistry, split_engine_id

if TYPE_CHECKING:
    from .local import LocalEngine

# Default-Modelle pro Engine
DEFAULT_MODELS = {
    "local": DEFAULT_LOCAL_MODEL,
    "openai": DEFAULT_API_MODEL,
    "groq": DEFAULT_GROQ_MODEL,
    "deepgram": DEFAULT_DEEPGRAM_MODEL,
}

ENGINE_IDS = tuple(DEFAULT_MODELS)


def get_engine(engine_id: str) -> TranscriptionEngine:
    """Factory für Engines.

    Args:
        engine_id: Engine-ID ('local', 'openai', 'groq', 'deepgram'),
            optional mit Modell ('groq:whisper-large-v3-turbo')

    Returns:
        TranscriptionEngine-Implementierung

    Raises:
        ValueError: Bei unbekannter Engine
    """
    provider, model = split_engine_id(engine_id)
    if provider == "local":
        from .local import LocalEngine

        return LocalEngine(model=model)
    elif provider == "openai":
        from .openai import OpenAIEngine

        return OpenAIEngine(model=model)
    elif provider == "groq":
        from .groq import GroqEngine

        return GroqEngine(model=model)
    elif provider == "deepgram":
        from .deepgram import DeepgramEngine

        return DeepgramEngine(model=model)
    else:
        raise ValueError(f"Unbekannte Engine: {engine_id}")


def build_registry(default: str | None = None) -> EngineRegistry:
    """Registriert alle Engines; `default` (oder DEFAULT_ENGINE) wird global ausgewählt.

    `local:<modell>` wählt das lokale Modell, Cloud-IDs mit Modell
    (`groq:whisper-large-v3`) werden über die Provider-Engine aufgelöst.
    """
    default = default or DEFAULT_ENGINE
    provider, model = split_engine_id(default)
    engines = []
    for engine_id in ENGINE_IDS:
        if engine_id == "local" and provider == "local" and model:
            engines.append(get_engine(default))
        else:
            engines.append(get_engine(engine_id))
    registry = EngineRegistry(engines)
    registry.select_default("local" if provider == "local" else default)
    return registry


def get_local_engine(registry: EngineRegistry) -> "LocalEngine | None":
    """Gibt die registrierte lokale Engine zurück (für Preload/Model-Manager)."""
    return registry.get("local")  # type: ignore[return-value]


__all__ = [
    "DEFAULT_MODELS",
    "ENGINE_IDS",
    "EngineDescriptor",
    "EngineRegistry",
    "TranscriptionEngine",
    "TranscriptionResult",
    "TranscriptionSegment",
    "TranscriptionTask",
    "build_registry",
    "get_engine",
    "get_local_engine",
]
