"""Shared CLI type definitions for dictaflow.

Enums used by the CLI, the settings layer and the daemon.
"""

from enum import Enum


class EngineChoice(str, Enum):
    """Transkriptions-Engines."""

    local = "local"
    openai = "openai"
    groq = "groq"
    deepgram = "deepgram"


class TaskChoice(str, Enum):
    """Whisper-Tasks."""

    transcribe = "transcribe"
    translate = "translate"


class HotkeyMode(str, Enum):
    """Hotkey-Modi fuer Daemon."""

    toggle = "toggle"
    hold = "hold"
