"""Schnittstellen der externen Kollaborateure des Orchestrators.

Konkrete Implementierungen: `audio.recording.MicrophoneRecorder`,
`desktop.insertion.ClipboardTextSink`, `utils.history.HistoryStore`,
`desktop.app_detection.get_app_detector()`, `desktop.permissions.AccessibilityPermission`,
`desktop.sound.get_sound_player()`. Tests nutzen Fakes.
"""

from __future__ import annotations

from typing import Callable, Protocol

from .session import ActiveApp
from .state import InsertionResult


class AudioBufferSource(Protocol):
    """Wachsender Sample-Puffer: nicht-destruktives Lesen während der Aufnahme."""

    @property
    def sample_count(self) -> int: ...

    @property
    def duration(self) -> float: ...

    def peek(self, start: int = 0): ...


class AudioSource(Protocol):
    @property
    def buffer(self) -> AudioBufferSource: ...

    def has_permission(self) -> bool: ...

    def request_permission(self) -> None: ...

    def start(self, gain: float = 1.0) -> None: ...

    def stop(self):
        """Beendet die Aufnahme und leert den Puffer (einziger destruktiver Zugriff)."""
        ...

    def watch_silence(self, seconds: float, callback: Callable[[], None]) -> None: ...

    def clear_silence_watch(self) -> None: ...


class TextSink(Protocol):
    def insert_text(self, text: str, force_paste: bool = False) -> InsertionResult: ...


class HistorySink(Protocol):
    def add_record(
        self,
        *,
        raw_text: str,
        final_text: str,
        app_name: str | None = None,
        app_id: str | None = None,
        url: str | None = None,
        duration: float = 0.0,
        language: str | None = None,
        engine_id: str | None = None,
    ) -> bool: ...


class AppDetector(Protocol):
    def capture(self) -> ActiveApp: ...

    def resolve_url(self, app: ActiveApp) -> str | None: ...


class PermissionSource(Protocol):
    """Systemberechtigung, die geprüft und per Dialog angefragt werden kann."""

    def has_permission(self) -> bool: ...

    def request_permission(self) -> None: ...


class SoundPlayer(Protocol):
    def play(self, event: str) -> None:
        """Spielt "start", "success" oder "error" ab (nicht-blockierend)."""
        ...


__all__ = [
    "AppDetector",
    "AudioBufferSource",
    "AudioSource",
    "HistorySink",
    "PermissionSource",
    "SoundPlayer",
    "TextSink",
]
