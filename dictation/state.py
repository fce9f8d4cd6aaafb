"""Zustände des Diktat-Orchestrators."""

from enum import Enum


class DictationState(str, Enum):
    """Sichtbarer Zustand eines Diktats.

    IDLE → RECORDING → PROCESSING → {INSERTING | COPIED_TO_CLIPBOARD} → IDLE.
    ERROR ist aus jedem Zustand erreichbar und fällt automatisch auf IDLE zurück.
    """

    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    INSERTING = "inserting"
    COPIED_TO_CLIPBOARD = "copied_to_clipboard"
    ERROR = "error"

    @property
    def is_display(self) -> bool:
        """True für reine Anzeige-Zustände, die ein neues Diktat unterbrechen darf."""
        return self in (
            DictationState.INSERTING,
            DictationState.COPIED_TO_CLIPBOARD,
            DictationState.ERROR,
        )


class InsertionResult(str, Enum):
    """Wie der Text-Sink den finalen Text ausgeliefert hat."""

    PASTED = "pasted"
    COPIED_TO_CLIPBOARD = "copied_to_clipboard"


__all__ = ["DictationState", "InsertionResult"]
