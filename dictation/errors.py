"""Fehler-Taxonomie für Diktat und Engines.

Engines, Text-Sink und Audio-Quelle werfen diese Fehler; der Orchestrator
zeigt sie als Error-Zustand an. Streaming-Pässe schlucken sie.
"""


class DictationError(Exception):
    """Basisklasse aller Diktat-Fehler. `str(err)` ist die Anzeige-Meldung."""


class EngineNotLoadedError(DictationError):
    """Keine (oder nicht die angeforderte) Engine ist bereit."""

    def __init__(self, message: str = "Keine Transkriptions-Engine geladen") -> None:
        super().__init__(message)


class UnsupportedTaskError(DictationError):
    """Die Engine unterstützt den angeforderten Task (z.B. translate) nicht."""

    def __init__(self, engine_id: str, task: str) -> None:
        super().__init__(f"Engine '{engine_id}' unterstützt '{task}' nicht")
        self.engine_id = engine_id
        self.task = task


class TranscriptionFailedError(DictationError):
    """Engine-interner Fehler während der Transkription."""


class InsertionFailedError(DictationError):
    """Text konnte weder eingefügt noch in die Zwischenablage kopiert werden."""


class PermissionDeniedError(DictationError):
    """Fehlende Systemberechtigung (Mikrofon oder Bedienungshilfen)."""

    GUIDANCE = {
        "microphone": (
            "Mikrofon-Zugriff fehlt. Systemeinstellungen → Datenschutz → Mikrofon"
        ),
        "accessibility": (
            "Bedienungshilfen-Zugriff fehlt. "
            "Systemeinstellungen → Datenschutz → Bedienungshilfen"
        ),
    }

    def __init__(self, permission: str, message: str | None = None) -> None:
        super().__init__(message or self.GUIDANCE.get(permission, f"{permission} verweigert"))
        self.permission = permission


__all__ = [
    "DictationError",
    "EngineNotLoadedError",
    "UnsupportedTaskError",
    "TranscriptionFailedError",
    "InsertionFailedError",
    "PermissionDeniedError",
]
