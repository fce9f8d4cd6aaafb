"""Profil-Store: liest ~/.dictaflow/profiles.toml.

Dateiformat:
    [[profiles]]
    name = "Slack Deutsch"
    apps = ["com.tinyspeck.slackmacgap"]
    language = "de"

    [[profiles]]
    name = "GitHub"
    urls = ["github.com"]
    priority = 10
    engine = "groq"

Die Reihenfolge in der Datei ist die Registrierungsreihenfolge (entscheidet
bei gleicher Priorität). Änderungen an der Datei werden über einen
mtime-Cache ohne Neustart übernommen. Fehlerhafte Einträge werden mit
Warnung übersprungen.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path

from config import PROFILES_FILE

from .models import Profile

logger = logging.getLogger("dictaflow.profiles")

# Cache per path: {Path: (mtime, profiles)}
_cache: dict[Path, tuple[float, tuple[Profile, ...]]] = {}


def _clear_cache() -> None:
    """Leert den Cache. Nur für Tests relevant."""
    _cache.clear()


def load_profiles(path: Path | None = None) -> tuple[Profile, ...]:
    """Lädt alle Profile (auch deaktivierte) in Dateireihenfolge."""
    profiles_file = path or PROFILES_FILE

    try:
        mtime = profiles_file.stat().st_mtime
    except FileNotFoundError:
        _cache.pop(profiles_file, None)
        return ()
    except OSError as e:
        logger.warning(f"Profil-Datei nicht lesbar: {e}")
        _cache.pop(profiles_file, None)
        return ()

    cached = _cache.get(profiles_file)
    if cached and cached[0] == mtime:
        return cached[1]

    try:
        data = tomllib.loads(profiles_file.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, OSError) as e:
        logger.warning(f"Profil-Datei fehlerhaft: {e}")
        data = {}

    entries = data.get("profiles", [])
    if not isinstance(entries, list):
        logger.warning("'profiles' muss eine Tabelle-Liste ([[profiles]]) sein")
        entries = []

    profiles = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning(f"Profil #{index + 1} ignoriert: kein Objekt")
            continue
        try:
            profiles.append(Profile.from_dict(entry))
        except ValueError as e:
            logger.warning(f"Profil #{index + 1} ignoriert: {e}")

    result = tuple(profiles)
    _cache[profiles_file] = (mtime, result)
    logger.debug(f"{len(result)} Profile geladen aus {profiles_file}")
    return result


class ProfileStore:
    """Nur-Lese-Sicht auf die Profil-Datei für den Resolver."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or PROFILES_FILE

    def profiles(self) -> tuple[Profile, ...]:
        return load_profiles(self.path)


class StaticProfileStore:
    """Profile aus dem Speicher (Tests, eingebettete Nutzung)."""

    def __init__(self, profiles=()) -> None:
        self._profiles = tuple(profiles)

    def profiles(self) -> tuple[Profile, ...]:
        return self._profiles


__all__ = ["ProfileStore", "StaticProfileStore", "load_profiles"]
