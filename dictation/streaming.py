"""Streaming-Loop: Live-Vorschau während der Aufnahme.

Läuft in einem eigenen Thread, solange das Diktat aufnimmt und die Engine
Streaming unterstützt. Alle 1.5s wird das Audiofenster neu dekodiert und
über `stabilize` mit dem bestätigten Text verschmolzen. Fehler einzelner
Pässe werden geloggt und verschluckt: der finale Text hängt nie vom
Streaming ab.

Ergebnisse gehen ausschließlich über den `publish`-Callback an den
Orchestrator, der sie nur annimmt, solange das Token nicht abgebrochen ist.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from config import (
    STREAMING_INITIAL_DELAY,
    STREAMING_INTERVAL,
    STREAMING_MIN_WINDOW,
    WHISPER_SAMPLE_RATE,
)
from engines.base import TranscriptionEngine, TranscriptionTask
from utils.timing import log_preview, timed_operation

from .interfaces import AudioBufferSource
from .session import CancellationToken
from .stabilizer import stabilize

logger = logging.getLogger("dictaflow.streaming")

# publish(text, confirmed): confirmed=True nach abgeschlossenem Pass
PublishCallback = Callable[[str, bool], None]


def _join(prefix: str, text: str) -> str:
    if not prefix:
        return text
    if not text:
        return prefix
    return f"{prefix} {text}"


@dataclass
class StabilizationState:
    """Zustand der Stabilisierung, frisch pro Diktat.

    `committed` enthält Text, der bei einem Fenster-Reset eingefroren wurde;
    `confirmed` gilt nur für das aktuelle Fenster ab `window_start`.
    """

    confirmed: str = ""
    committed: str = ""
    window_start: int = 0
    last_window_end: int = 0
    window_reset: bool = False

    def compose(self, text: str) -> str:
        return _join(self.committed, text)


class StreamingLoop:
    """Periodische Streaming-Pässe über den wachsenden Audio-Puffer."""

    def __init__(
        self,
        engine: TranscriptionEngine,
        buffer: AudioBufferSource,
        token: CancellationToken,
        publish: PublishCallback,
        *,
        language: str | None = None,
        task: TranscriptionTask = TranscriptionTask.TRANSCRIBE,
        prompt: str | None = None,
        initial_delay: float = STREAMING_INITIAL_DELAY,
        interval: float = STREAMING_INTERVAL,
        min_window: float = STREAMING_MIN_WINDOW,
        max_window: float | None = None,
        sample_rate: int = WHISPER_SAMPLE_RATE,
        session_id: str = "",
    ) -> None:
        self._engine = engine
        self._buffer = buffer
        self._token = token
        self._publish = publish
        self._language = language
        self._task = task
        self._prompt = prompt
        self._initial_delay = initial_delay
        self._interval = interval
        self._min_samples = int(min_window * sample_rate)
        self._max_samples = int(max_window * sample_rate) if max_window else None
        self._sample_rate = sample_rate
        self._session_id = session_id
        self._thread: threading.Thread | None = None
        self.state = StabilizationState()
        self.passes = 0

    @property
    def token(self) -> CancellationToken:
        return self._token

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(
            target=self.run, name="StreamingWorker", daemon=True
        )
        self._thread.start()
        return self._thread

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Loop bis zum Abbruch. Blockiert; `start()` startet ihn im Thread."""
        logger.debug(f"[{self._session_id}] Streaming gestartet ({self._engine.engine_id})")
        if self._token.wait(self._initial_delay):
            return
        while not self._token.cancelled:
            self.run_once()
            if self._token.wait(self._interval):
                break
        logger.debug(f"[{self._session_id}] Streaming beendet nach {self.passes} Pässen")

    def run_once(self) -> bool:
        """Ein einzelner Pass über das aktuelle Fenster. False, wenn übersprungen."""
        if self._token.cancelled:
            return False
        samples = self._pull_window()
        if len(samples) < self._min_samples:
            return False
        self._run_pass(samples)
        return True

    def _pull_window(self):
        state = self.state
        total = self._buffer.sample_count
        if (
            self._max_samples is not None
            and total - state.window_start > self._max_samples
            and state.last_window_end > state.window_start
        ):
            # Fenster-Reset: bestätigten Text einfrieren, neues Fenster hinter
            # dem bereits abgedeckten Audio beginnen
            state.committed = _join(state.committed, state.confirmed)
            state.confirmed = ""
            state.window_start = state.last_window_end
            state.window_reset = True
            logger.debug(
                f"[{self._session_id}] Streaming-Fenster zurückgesetzt bei "
                f"{state.window_start / max(1, total) * 100:.0f}% des Puffers"
            )
        return self._buffer.peek(state.window_start)

    def _run_pass(self, samples) -> None:
        state = self.state
        confirmed_at_start = state.confirmed
        token = self._token

        def on_progress(partial: str) -> bool:
            if token.cancelled:
                return False
            self._publish(state.compose(stabilize(confirmed_at_start, partial)), False)
            return not token.cancelled

        try:
            with timed_operation(
                f"Streaming-Pass ({len(samples) / self._sample_rate:.1f}s)",
                logger=logger,
                level="debug",
                session_id=self._session_id,
            ):
                result = self._engine.transcribe_stream(
                    samples,
                    language=self._language,
                    task=self._task,
                    prompt=self._prompt,
                    on_progress=on_progress,
                )
        except Exception as e:
            logger.warning(f"[{self._session_id}] Streaming-Pass fehlgeschlagen: {e}")
            return

        state.last_window_end = state.window_start + len(samples)
        if token.cancelled:
            return

        state.confirmed = stabilize(confirmed_at_start, result.text)
        self.passes += 1
        logger.debug(f"[{self._session_id}] Vorschau: {log_preview(state.confirmed)}")
        self._publish(state.compose(state.confirmed), True)


__all__ = ["StabilizationState", "StreamingLoop"]
