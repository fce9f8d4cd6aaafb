"""Zentrale Konfiguration für dictaflow.

Gemeinsame Konstanten für Audio, Streaming, Timings und Pfade.
Vermeidet Duplikation zwischen Modulen.
"""

from pathlib import Path

# =============================================================================
# Audio-Konfiguration
# =============================================================================

# Whisper erwartet Audio mit 16kHz – andere Sampleraten führen zu schlechteren Ergebnissen
WHISPER_SAMPLE_RATE = 16000
WHISPER_CHANNELS = 1
WHISPER_BLOCKSIZE = 1024

# Verstärkung im Flüstermodus (leise Sprache)
WHISPER_MODE_GAIN = 4.0

# =============================================================================
# Stille-Erkennung
# =============================================================================

SILENCE_THRESHOLD = 0.01  # RMS unterhalb gilt als Stille
SILENCE_AUTO_STOP = 2.0  # Sekunden Stille bis Auto-Stop (nur Toggle-Modus)

# =============================================================================
# Diktat-Timings
# =============================================================================

MIN_RECORDING_DURATION = 0.3  # Kürzere Aufnahmen werden verworfen (kein Fehler)
DONE_DISPLAY_DURATION = 1.5  # Anzeige von "eingefügt" bevor es zurück nach Idle geht
ERROR_DISPLAY_DURATION = 3.0  # Fehler verschwinden automatisch nach dieser Zeit
URL_RESOLVE_TIMEOUT = 1.0  # Max. Wartezeit auf Browser-URL vor dem finalen Pass

PERMISSION_POLL_INTERVAL = 1.0
PERMISSION_POLL_ATTEMPTS = 30

# =============================================================================
# Streaming-Konfiguration
# =============================================================================

STREAMING_INITIAL_DELAY = 1.5  # Erster Pass erst nach kurzer Einschwingzeit
STREAMING_INTERVAL = 1.5  # Abstand zwischen zwei Streaming-Pässen
STREAMING_MIN_WINDOW = 0.5  # Kürzere Fenster werden übersprungen

# =============================================================================
# Nachbearbeitung
# =============================================================================

DICTIONARY_PROMPT_MAX_CHARS = 600  # Whisper-Prompt ist auf ~224 Tokens begrenzt
TRANSLATION_TIMEOUT = 10.0
DEFAULT_TRANSLATION_MODEL = "gpt-4.1-mini"
DEFAULT_GROQ_TRANSLATION_MODEL = "openai/gpt-oss-120b"

# =============================================================================
# Default-Modelle
# =============================================================================

DEFAULT_API_MODEL = "gpt-4o-transcribe"
DEFAULT_LOCAL_MODEL = "turbo"
DEFAULT_DEEPGRAM_MODEL = "nova-3"
DEFAULT_GROQ_MODEL = "whisper-large-v3"
DEFAULT_ENGINE = "local"

# =============================================================================
# Lokale Pfade
# =============================================================================

# User-Verzeichnis für Konfiguration und Logs
USER_CONFIG_DIR = Path.home() / ".dictaflow"
USER_CONFIG_DIR.mkdir(parents=True, exist_ok=True)

# Logs im User-Verzeichnis speichern
LOG_DIR = USER_CONFIG_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = LOG_DIR / "dictaflow.log"

PROFILES_FILE = USER_CONFIG_DIR / "profiles.toml"
DICTIONARY_FILE = USER_CONFIG_DIR / "dictionary.json"
SNIPPETS_FILE = USER_CONFIG_DIR / "snippets.json"
HISTORY_FILE = USER_CONFIG_DIR / "history.jsonl"


__all__ = [
    # Audio
    "WHISPER_SAMPLE_RATE",
    "WHISPER_CHANNELS",
    "WHISPER_BLOCKSIZE",
    "WHISPER_MODE_GAIN",
    # Silence
    "SILENCE_THRESHOLD",
    "SILENCE_AUTO_STOP",
    # Dictation
    "MIN_RECORDING_DURATION",
    "DONE_DISPLAY_DURATION",
    "ERROR_DISPLAY_DURATION",
    "URL_RESOLVE_TIMEOUT",
    "PERMISSION_POLL_INTERVAL",
    "PERMISSION_POLL_ATTEMPTS",
    # Streaming
    "STREAMING_INITIAL_DELAY",
    "STREAMING_INTERVAL",
    "STREAMING_MIN_WINDOW",
    # Post-Processing
    "DICTIONARY_PROMPT_MAX_CHARS",
    "TRANSLATION_TIMEOUT",
    "DEFAULT_TRANSLATION_MODEL",
    "DEFAULT_GROQ_TRANSLATION_MODEL",
    # Models
    "DEFAULT_API_MODEL",
    "DEFAULT_LOCAL_MODEL",
    "DEFAULT_DEEPGRAM_MODEL",
    "DEFAULT_GROQ_MODEL",
    "DEFAULT_ENGINE",
    # Paths
    "USER_CONFIG_DIR",
    "LOG_DIR",
    "LOG_FILE",
    "PROFILES_FILE",
    "DICTIONARY_FILE",
    "SNIPPETS_FILE",
    "HISTORY_FILE",
]
