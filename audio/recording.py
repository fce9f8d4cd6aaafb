"""Mikrofon-Aufnahme für dictaflow.

MicrophoneRecorder schreibt über einen sounddevice-Callback in einen
AudioBuffer und ist die AudioSource des Orchestrators.
"""

import logging
import threading
import time
from typing import Callable

import numpy as np

from config import WHISPER_BLOCKSIZE, WHISPER_CHANNELS, WHISPER_SAMPLE_RATE
from desktop.permissions import has_microphone_permission, request_microphone_permission
from dictation.errors import PermissionDeniedError
from utils.logging import get_session_id

from .buffer import AudioBuffer

logger = logging.getLogger("dictaflow.audio")


class MicrophoneRecorder:
    """Wiederverwendbare Mikrofon-Aufnahme.

    Usage:
        recorder = MicrophoneRecorder()
        recorder.start(gain=4.0)
        window = recorder.buffer.peek()
        samples = recorder.stop()
    """

    def __init__(
        self,
        sample_rate: int = WHISPER_SAMPLE_RATE,
        channels: int = WHISPER_CHANNELS,
        blocksize: int = WHISPER_BLOCKSIZE,
        device=None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self.blocksize = blocksize
        self.device = device
        self.buffer = AudioBuffer(sample_rate=sample_rate)

        self._stream = None
        self._gain = 1.0
        self._recording_start = 0.0
        self._silence_lock = threading.Lock()
        self._silence_seconds: float | None = None
        self._silence_callback: Callable[[], None] | None = None

    def has_permission(self) -> bool:
        return has_microphone_permission()

    def request_permission(self) -> None:
        request_microphone_permission()

    def _audio_callback(self, indata, _frames, _time_info, status):
        """Callback: Sammelt Audio-Chunks (erster Kanal) mit Gain."""
        if status:
            logger.debug(f"Audio-Status: {status}")
        chunk = indata[:, 0] if indata.ndim > 1 else indata
        if self._gain != 1.0:
            chunk = np.clip(chunk * self._gain, -1.0, 1.0)
        self.buffer.append(chunk)
        self._check_silence()

    def _check_silence(self) -> None:
        with self._silence_lock:
            seconds = self._silence_seconds
            callback = self._silence_callback
            if seconds is None or callback is None:
                return
            if self.buffer.silence_duration < seconds:
                return
            # Einmalig auslösen
            self._silence_seconds = None
            self._silence_callback = None
        logger.info(f"[{get_session_id()}] {seconds:.1f}s Stille, Auto-Stop")
        callback()

    def watch_silence(self, seconds: float, callback: Callable[[], None]) -> None:
        with self._silence_lock:
            self._silence_seconds = seconds
            self._silence_callback = callback

    def clear_silence_watch(self) -> None:
        with self._silence_lock:
            self._silence_seconds = None
            self._silence_callback = None

    def start(self, gain: float = 1.0) -> None:
        """Startet die Aufnahme.

        Raises:
            PermissionDeniedError: Wenn das Mikrofon nicht geöffnet werden kann
        """
        import sounddevice as sd

        self.buffer.clear()
        self._gain = gain
        self._recording_start = time.perf_counter()

        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                blocksize=self.blocksize,
                device=self.device,
                dtype="float32",
                callback=self._audio_callback,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise PermissionDeniedError("microphone", f"Mikrofon nicht verfügbar: {e}") from e

        logger.info(f"[{get_session_id()}] Aufnahme gestartet (gain={gain:.1f})")

    def stop(self) -> np.ndarray:
        """Stoppt die Aufnahme und gibt alle Samples zurück (leert den Puffer)."""
        self.clear_silence_watch()
        stream = self._stream
        self._stream = None
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as e:
                logger.warning(f"Audio-Stream konnte nicht sauber beendet werden: {e}")

        samples = self.buffer.drain()
        recording_duration = time.perf_counter() - self._recording_start
        logger.info(
            f"[{get_session_id()}] Aufnahme: {recording_duration:.1f}s, "
            f"{len(samples) / self.sample_rate:.1f}s Audio"
        )
        return samples


def load_audio_file(path, sample_rate: int = WHISPER_SAMPLE_RATE) -> np.ndarray:
    """Liest eine Audio-Datei als float32 Mono mit Zielsamplerate."""
    import soundfile as sf

    data, file_rate = sf.read(path, dtype="float32", always_2d=True)
    return to_mono_16k(data, file_rate, sample_rate)


def to_mono_16k(data: np.ndarray, file_rate: int, sample_rate: int = WHISPER_SAMPLE_RATE):
    """Mischt auf Mono und resampelt linear auf `sample_rate`."""
    mono = data.mean(axis=1) if data.ndim > 1 else data
    mono = mono.astype(np.float32)
    if file_rate == sample_rate or mono.size == 0:
        return mono
    target_len = int(round(mono.size * sample_rate / file_rate))
    positions = np.linspace(0, mono.size - 1, num=target_len)
    return np.interp(positions, np.arange(mono.size), mono).astype(np.float32)


__all__ = ["MicrophoneRecorder", "load_audio_file", "to_mono_16k"]
