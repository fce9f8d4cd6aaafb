"""Globale Diktat-Einstellungen und deren Verschmelzung mit Profilen.

Priorität: CLI > ENV > Default für globale Werte; pro Diktat dann
`Profil-Override ?? globale Einstellung`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from cli.types import HotkeyMode
from config import DEFAULT_ENGINE, SILENCE_AUTO_STOP, WHISPER_MODE_GAIN
from engines.base import TranscriptionTask
from profiles.models import AUTO_LANGUAGE, Profile
from utils.env import get_env_bool, get_env_float, get_env_str

logger = logging.getLogger("dictaflow")


def _normalize_language(value: str | None) -> str | None:
    if not value:
        return None
    value = value.strip().lower()
    return None if value in ("", AUTO_LANGUAGE) else value


@dataclass(frozen=True)
class DictationSettings:
    """Globale Einstellungen (ohne Profil)."""

    language: str | None = None
    task: TranscriptionTask = TranscriptionTask.TRANSCRIBE
    engine: str = DEFAULT_ENGINE
    translation_target: str | None = None
    whisper_mode: bool = False
    always_paste: bool = False
    hotkey_mode: HotkeyMode = HotkeyMode.toggle
    streaming: bool = True
    streaming_max_window: float | None = None
    silence_timeout: float = SILENCE_AUTO_STOP
    sound_feedback: bool = True

    @classmethod
    def from_env(cls) -> "DictationSettings":
        """Liest DICTAFLOW_* Variablen; ungültige Werte fallen auf Defaults zurück."""
        defaults = cls()

        task = defaults.task
        raw_task = get_env_str("DICTAFLOW_TASK")
        if raw_task:
            try:
                task = TranscriptionTask(raw_task.lower())
            except ValueError:
                logger.warning(f"Ungültiger DICTAFLOW_TASK={raw_task!r}, ignoriere")

        hotkey_mode = defaults.hotkey_mode
        raw_mode = get_env_str("DICTAFLOW_HOTKEY_MODE")
        if raw_mode:
            try:
                hotkey_mode = HotkeyMode(raw_mode.lower())
            except ValueError:
                logger.warning(f"Ungültiger DICTAFLOW_HOTKEY_MODE={raw_mode!r}, ignoriere")

        max_window = get_env_float("DICTAFLOW_STREAMING_MAX_WINDOW")
        if max_window is not None and max_window <= 0:
            max_window = None

        silence = get_env_float("DICTAFLOW_SILENCE_TIMEOUT")

        whisper_mode = get_env_bool("DICTAFLOW_WHISPER_MODE")
        always_paste = get_env_bool("DICTAFLOW_ALWAYS_PASTE")
        streaming = get_env_bool("DICTAFLOW_STREAMING")
        sound_feedback = get_env_bool("DICTAFLOW_SOUND_FEEDBACK")
        return cls(
            language=_normalize_language(get_env_str("DICTAFLOW_LANGUAGE")),
            task=task,
            engine=get_env_str("DICTAFLOW_ENGINE") or defaults.engine,
            translation_target=get_env_str("DICTAFLOW_TRANSLATE_TO"),
            whisper_mode=defaults.whisper_mode if whisper_mode is None else whisper_mode,
            always_paste=defaults.always_paste if always_paste is None else always_paste,
            hotkey_mode=hotkey_mode,
            streaming=defaults.streaming if streaming is None else streaming,
            streaming_max_window=max_window,
            silence_timeout=silence if silence and silence > 0 else defaults.silence_timeout,
            sound_feedback=(
                defaults.sound_feedback if sound_feedback is None else sound_feedback
            ),
        )

    def with_overrides(self, **overrides) -> "DictationSettings":
        """CLI-Argumente (nicht-None) überschreiben ENV/Defaults."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "language" in values:
            values["language"] = _normalize_language(values["language"])
        return replace(self, **values)


@dataclass(frozen=True)
class EffectiveSettings:
    """Für ein Diktat gültige Werte nach Profil-Verschmelzung."""

    language: str | None
    task: TranscriptionTask
    engine_override: str | None
    translation_target: str | None
    whisper_mode: bool
    always_paste: bool
    profile_name: str | None = None

    @property
    def gain(self) -> float:
        return WHISPER_MODE_GAIN if self.whisper_mode else 1.0


def resolve_effective(
    settings: DictationSettings, profile: Profile | None
) -> EffectiveSettings:
    """`profile override ?? global setting`. Profil-Sprache "auto" heißt Auto-Detection."""
    if profile is None:
        return EffectiveSettings(
            language=settings.language,
            task=settings.task,
            engine_override=None,
            translation_target=settings.translation_target,
            whisper_mode=settings.whisper_mode,
            always_paste=settings.always_paste,
        )

    if profile.language is not None:
        language = _normalize_language(profile.language)
    else:
        language = settings.language

    def pick(override, default):
        return default if override is None else override

    return EffectiveSettings(
        language=language,
        task=pick(profile.task, settings.task),
        engine_override=profile.engine,
        translation_target=pick(profile.translation_target, settings.translation_target),
        whisper_mode=pick(profile.whisper_mode, settings.whisper_mode),
        always_paste=pick(profile.always_paste, settings.always_paste),
        profile_name=profile.name,
    )


__all__ = ["DictationSettings", "EffectiveSettings", "resolve_effective"]
