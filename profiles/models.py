"""Profil-Datenmodell.

Ein Profil überschreibt globale Einstellungen für bestimmte Apps und/oder
Domains. `None` bedeutet jeweils "globale Einstellung verwenden".
"""

from __future__ import annotations

from dataclasses import dataclass

from engines.base import TranscriptionTask

# Sprach-Override, der explizit Auto-Detection erzwingt
AUTO_LANGUAGE = "auto"


def _string_list(data: dict, key: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' muss eine Liste von Strings sein")
    return tuple(v.strip() for v in value if v.strip())


def _optional(data: dict, key: str, kind: type):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, kind):
        raise ValueError(f"'{key}' muss vom Typ {kind.__name__} sein")
    if isinstance(value, str):
        return value.strip() or None
    return value


@dataclass(frozen=True)
class Profile:
    name: str
    app_ids: tuple[str, ...] = ()
    url_patterns: tuple[str, ...] = ()
    priority: int = 0
    enabled: bool = True
    language: str | None = None
    task: TranscriptionTask | None = None
    engine: str | None = None
    translation_target: str | None = None
    whisper_mode: bool | None = None
    always_paste: bool | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Profile":
        """Baut ein Profil aus einem TOML-Eintrag.

        Raises:
            ValueError: Bei fehlendem Namen oder falschen Typen
        """
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Profil ohne 'name'")

        priority = data.get("priority", 0)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise ValueError("'priority' muss eine Ganzzahl sein")

        task = _optional(data, "task", str)
        if task is not None:
            try:
                task = TranscriptionTask(task.lower())
            except ValueError:
                raise ValueError(f"Unbekannter Task: {task!r}") from None

        language = _optional(data, "language", str)
        return cls(
            name=name.strip(),
            app_ids=_string_list(data, "apps"),
            url_patterns=_string_list(data, "urls"),
            priority=priority,
            enabled=bool(data.get("enabled", True)),
            language=language.lower() if language else None,
            task=task,
            engine=_optional(data, "engine", str),
            translation_target=_optional(data, "translate_to", str),
            whisper_mode=_optional(data, "whisper_mode", bool),
            always_paste=_optional(data, "always_paste", bool),
        )

    def to_dict(self) -> dict:
        data: dict = {"name": self.name, "priority": self.priority, "enabled": self.enabled}
        if self.app_ids:
            data["apps"] = list(self.app_ids)
        if self.url_patterns:
            data["urls"] = list(self.url_patterns)
        optional = {
            "language": self.language,
            "task": self.task.value if self.task else None,
            "engine": self.engine,
            "translate_to": self.translation_target,
            "whisper_mode": self.whisper_mode,
            "always_paste": self.always_paste,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


__all__ = ["AUTO_LANGUAGE", "Profile"]
