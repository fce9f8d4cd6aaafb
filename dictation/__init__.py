"""Diktat-Kern: Zustände, Fehler und Text-Stabilisierung.

Orchestrator und Streaming-Loop werden direkt aus ihren Modulen importiert
(`dictation.orchestrator`), weil sie von `engines` abhängen und `engines`
wiederum die Fehler aus diesem Paket nutzt.
"""

from .errors import (
    DictationError,
    EngineNotLoadedError,
    InsertionFailedError,
    PermissionDeniedError,
    TranscriptionFailedError,
    UnsupportedTaskError,
)
from .stabilizer import stabilize
from .state import DictationState, InsertionResult

__all__ = [
    "DictationError",
    "DictationState",
    "EngineNotLoadedError",
    "InsertionFailedError",
    "InsertionResult",
    "PermissionDeniedError",
    "TranscriptionFailedError",
    "UnsupportedTaskError",
    "stabilize",
]
