"""Audio-Modul für dictaflow.

Bietet den Aufnahme-Puffer und die Mikrofon-Aufnahme.

Usage:
    from audio import MicrophoneRecorder

    recorder = MicrophoneRecorder()
    recorder.start()
    # ... später ...
    samples = recorder.stop()
"""

from .buffer import AudioBuffer
from .recording import MicrophoneRecorder, load_audio_file, to_mono_16k

__all__ = [
    "AudioBuffer",
    "MicrophoneRecorder",
    "load_audio_file",
    "to_mono_16k",
]
