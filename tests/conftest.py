"""
Gemeinsame Test-Fixtures für dictaflow.

Diese Fixtures isolieren Tests von externen Abhängigkeiten:
- Dateisystem (Profile, Wörterbuch, Snippets, History)
- Umgebungsvariablen (API-Keys, DICTAFLOW_*)
- Module-Level Caches und Client-Singletons

Fake-Kollaborateure für den Orchestrator liegen in `fakes.py`.
"""

import sys
from pathlib import Path

import pytest

# Projekt-Root zum Python-Path hinzufügen
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Environment & Isolation Fixtures
# =============================================================================


@pytest.fixture
def mock_env(monkeypatch):
    """Setzt Test-API-Keys für isolierte Tests."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-openai")
    monkeypatch.setenv("DEEPGRAM_API_KEY", "test-key-deepgram")
    monkeypatch.setenv("GROQ_API_KEY", "test-key-groq")


@pytest.fixture
def no_api_keys(monkeypatch):
    """Entfernt alle API-Keys (Cloud-Engines sind dann nicht bereit)."""
    for key in ("OPENAI_API_KEY", "DEEPGRAM_API_KEY", "GROQ_API_KEY"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def clean_env(monkeypatch):
    """Entfernt alle DICTAFLOW_* Umgebungsvariablen für saubere Tests.

    Mockt auch load_environment() um zu verhindern, dass .env-Dateien
    während der Tests geladen werden (was sonst ENV-Pollution verursacht).
    """
    import os

    for key in list(os.environ.keys()):
        if key.startswith("DICTAFLOW_"):
            monkeypatch.delenv(key, raising=False)

    import dictaflow_cli

    monkeypatch.setattr(dictaflow_cli, "load_environment", lambda: None)


@pytest.fixture
def user_files(tmp_path, monkeypatch):
    """Leitet alle Nutzerdateien in ein temporäres Verzeichnis um."""
    import dictaflow_cli
    import postprocess.dictionary
    import postprocess.snippets

    monkeypatch.setattr(dictaflow_cli, "PROFILES_FILE", tmp_path / "profiles.toml")
    monkeypatch.setattr(dictaflow_cli, "HISTORY_FILE", tmp_path / "history.jsonl")
    monkeypatch.setattr(
        postprocess.dictionary, "_DEFAULT_DICTIONARY_FILE", tmp_path / "dictionary.json"
    )
    monkeypatch.setattr(postprocess.snippets, "SNIPPETS_FILE", tmp_path / "snippets.json")
    return tmp_path


@pytest.fixture(autouse=True)
def reset_caches(monkeypatch):
    """Setzt Module-Level Caches und Client-Singletons vor jedem Test zurück."""
    import postprocess.dictionary
    import postprocess.snippets
    import postprocess.translation
    import profiles.store

    profiles.store._clear_cache()
    postprocess.dictionary._clear_cache()
    postprocess.snippets._clear_cache()
    monkeypatch.setattr(postprocess.translation, "_openai_client", None)
    monkeypatch.setattr(postprocess.translation, "_groq_client", None)
