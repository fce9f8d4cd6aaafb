"""Engine-Registry: ordnet Engine-IDs ihren Backends zu.

Das Laden/Entladen von Modellen gehört dem Model-Manager (Daemon bzw.
`LocalEngine.load`); die Registry beantwortet nur "welche bereite Engine
soll dieses Diktat bedienen?".
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable

from dictation.errors import EngineNotLoadedError

from .base import EngineDescriptor, TranscriptionEngine, TranscriptionTask

logger = logging.getLogger("dictaflow.engines")


def split_engine_id(engine_id: str) -> tuple[str, str | None]:
    """Zerlegt 'provider:model' in (provider, model). Ohne ':' ist model None."""
    provider, sep, model = engine_id.partition(":")
    return provider.strip(), (model.strip() or None) if sep else None


class EngineRegistry:
    """Thread-sichere Zuordnung Engine-ID → Engine.

    Cloud-IDs dürfen ein Modell tragen (`openai:whisper-1`). Ist genau diese
    ID nicht registriert, wird die Provider-Engine mit Modell-Override
    genutzt, sofern sie `with_model` anbietet.
    """

    def __init__(
        self,
        engines: Iterable[TranscriptionEngine] = (),
        default: str | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._engines: dict[str, TranscriptionEngine] = {}
        self._default: str | None = None
        for engine in engines:
            self.register(engine)
        if default is not None:
            self.select_default(default)

    def register(self, engine: TranscriptionEngine) -> None:
        with self._lock:
            self._engines[engine.engine_id] = engine
            if self._default is None:
                self._default = engine.engine_id
        logger.debug(f"Engine registriert: {engine.engine_id}")

    def unregister(self, engine_id: str) -> None:
        with self._lock:
            self._engines.pop(engine_id, None)
            if self._default == engine_id:
                self._default = next(iter(self._engines), None)

    def select_default(self, engine_id: str) -> None:
        """Setzt die global ausgewählte Engine.

        Raises:
            ValueError: Bei unbekannter Engine-ID
        """
        with self._lock:
            if self._lookup(engine_id) is None:
                raise ValueError(f"Unbekannte Engine: {engine_id}")
            self._default = engine_id

    @property
    def default_engine_id(self) -> str | None:
        return self._default

    def get(self, engine_id: str) -> TranscriptionEngine | None:
        """Engine zur ID, unabhängig von ihrer Bereitschaft."""
        with self._lock:
            return self._lookup(engine_id)

    def _lookup(self, engine_id: str) -> TranscriptionEngine | None:
        engine = self._engines.get(engine_id)
        if engine is not None:
            return engine
        provider, model = split_engine_id(engine_id)
        base = self._engines.get(provider)
        if base is None or model is None:
            return None
        with_model = getattr(base, "with_model", None)
        if with_model is None:
            return None
        # Instanz cachen, damit Client und Validierung wiederverwendet werden
        engine = with_model(model)
        self._engines[engine_id] = engine
        return engine

    def engines(self) -> list[TranscriptionEngine]:
        with self._lock:
            return list(self._engines.values())

    def descriptors(self) -> list[EngineDescriptor]:
        return [engine.descriptor for engine in self.engines()]

    def resolve(self, override: str | None = None) -> TranscriptionEngine | None:
        """Override-Engine falls bereit, sonst Default-Engine falls bereit, sonst None."""
        with self._lock:
            if override:
                engine = self._lookup(override)
                if engine is not None and engine.is_ready:
                    return engine
                logger.info(
                    f"Engine-Override '{override}' nicht bereit, nutze Default "
                    f"'{self._default}'"
                )
            if self._default is None:
                return None
            engine = self._lookup(self._default)
            if engine is not None and engine.is_ready:
                return engine
            return None

    def require(self, override: str | None = None) -> TranscriptionEngine:
        """Wie resolve(), wirft aber EngineNotLoadedError statt None."""
        engine = self.resolve(override)
        if engine is None:
            wanted = override or self._default or "keine"
            raise EngineNotLoadedError(f"Engine '{wanted}' ist nicht bereit")
        return engine

    @staticmethod
    def ensure_task_supported(
        engine: TranscriptionEngine, task: TranscriptionTask
    ) -> None:
        engine.check_task(task)


__all__ = ["EngineRegistry", "split_engine_id"]
