"""Thread-sicherer Sample-Puffer für die laufende Aufnahme.

Der Audio-Callback hängt Chunks an, der Streaming-Loop liest parallel
Kopien (`peek`), und nur `drain()` beim Stop leert den Puffer.
"""

import threading

import numpy as np

from config import SILENCE_THRESHOLD, WHISPER_SAMPLE_RATE


class AudioBuffer:
    """Wachsender float32-Puffer (Mono) mit Stille-Messung.

    Usage:
        buffer = AudioBuffer()
        buffer.append(chunk)          # aus dem Audio-Callback
        window = buffer.peek()        # nicht-destruktiv
        samples = buffer.drain()      # einmalig beim Stop
    """

    def __init__(
        self,
        sample_rate: int = WHISPER_SAMPLE_RATE,
        silence_threshold: float = SILENCE_THRESHOLD,
    ) -> None:
        self.sample_rate = sample_rate
        self.silence_threshold = silence_threshold
        self._lock = threading.Lock()
        self._chunks: list[np.ndarray] = []
        self._count = 0
        self._silent_samples = 0

    def append(self, chunk) -> None:
        """Hängt einen Chunk an und aktualisiert die Stille-Dauer."""
        data = np.asarray(chunk, dtype=np.float32).reshape(-1)
        if data.size == 0:
            return
        rms = float(np.sqrt(np.mean(np.square(data))))
        with self._lock:
            self._chunks.append(data.copy())
            self._count += data.size
            if rms < self.silence_threshold:
                self._silent_samples += data.size
            else:
                self._silent_samples = 0

    @property
    def sample_count(self) -> int:
        with self._lock:
            return self._count

    @property
    def duration(self) -> float:
        return self.sample_count / self.sample_rate

    @property
    def silence_duration(self) -> float:
        """Sekunden ununterbrochener Stille am Pufferende."""
        with self._lock:
            return self._silent_samples / self.sample_rate

    def _concat(self) -> np.ndarray:
        if not self._chunks:
            return np.zeros(0, dtype=np.float32)
        if len(self._chunks) > 1:
            # Zusammenfassen spart wiederholtes Konkatenieren bei jedem Peek
            self._chunks = [np.concatenate(self._chunks)]
        return self._chunks[0]

    def peek(self, start: int = 0) -> np.ndarray:
        """Kopie der Samples ab Index `start`. Entfernt nichts."""
        with self._lock:
            return self._concat()[max(0, start):].copy()

    def drain(self) -> np.ndarray:
        """Gibt alle Samples zurück und leert den Puffer."""
        with self._lock:
            data = self._concat()
            self._chunks = []
            self._count = 0
            self._silent_samples = 0
            return data

    def clear(self) -> None:
        self.drain()


__all__ = ["AudioBuffer"]
