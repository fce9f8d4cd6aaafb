#!/usr/bin/env python3
"""CLI-Einstiegspunkt für dictaflow.

Usage:
    dictaflow run --hotkey ctrl+alt+space
    dictaflow run --engine groq --hotkey-mode hold
    dictaflow transcribe audio.wav --engine openai --translate-to en
    dictaflow status
    dictaflow models
    dictaflow profiles --app com.apple.Safari --url https://github.com/x

Transkripte gehen auf stdout, Status auf stderr.
"""

import json
import logging
import signal
import threading
from pathlib import Path
from typing import Annotated

import typer

from cli.types import EngineChoice, HotkeyMode, TaskChoice
from config import HISTORY_FILE, PROFILES_FILE
from utils.env import load_environment
from utils.logging import error, get_session_id, log, setup_logging

app = typer.Typer(
    help="Diktieren mit Live-Vorschau, Profilen und austauschbaren Engines",
    add_completion=False,
)

logger = logging.getLogger("dictaflow")


# =============================================================================
# Verdrahtung
# =============================================================================


def build_settings(
    *,
    engine: str | None = None,
    language: str | None = None,
    task: TaskChoice | None = None,
    translate_to: str | None = None,
    whisper_mode: bool | None = None,
    always_paste: bool | None = None,
    hotkey_mode: HotkeyMode | None = None,
    streaming: bool | None = None,
):
    """Globale Einstellungen: CLI > ENV > Default."""
    from dictation.settings import DictationSettings
    from engines.base import TranscriptionTask

    return DictationSettings.from_env().with_overrides(
        engine=engine,
        language=language,
        task=TranscriptionTask(task.value) if task else None,
        translation_target=translate_to,
        whisper_mode=whisper_mode,
        always_paste=always_paste,
        hotkey_mode=hotkey_mode,
        streaming=streaming,
    )


def build_pipeline():
    from postprocess import Dictionary, LLMTranslator, PostProcessingPipeline, SnippetExpander

    return PostProcessingPipeline(
        translator=LLMTranslator(),
        snippets=SnippetExpander(),
        dictionary=Dictionary(),
    )


def build_orchestrator(
    settings,
    registry,
    *,
    audio=None,
    text_sink=None,
    app_detector=None,
    accessibility=None,
    sounds=None,
):
    """Baut den Orchestrator mit allen Kollaborateuren (einmal pro Prozess)."""
    from dictation.orchestrator import DictationOrchestrator
    from profiles import ProfileResolver, ProfileStore
    from utils.history import HistoryStore

    return DictationOrchestrator(
        audio=audio,
        registry=registry,
        text_sink=text_sink,
        resolver=ProfileResolver(ProfileStore(PROFILES_FILE)),
        pipeline=build_pipeline(),
        history=HistoryStore(HISTORY_FILE),
        app_detector=app_detector,
        accessibility=accessibility,
        sounds=sounds,
        settings=settings,
    )


def _select_registry(engine_id: str):
    from engines import build_registry

    try:
        return build_registry(engine_id)
    except ValueError as e:
        error(str(e))
        raise typer.Exit(1)


def _engine_callback(value: str | None) -> str | None:
    """Prüft den Provider-Teil einer Engine-ID (`groq` in `groq:whisper-large-v3`)."""
    if value is None:
        return None
    from engines.registry import split_engine_id

    provider, _ = split_engine_id(value)
    try:
        EngineChoice(provider)
    except ValueError:
        allowed = ", ".join(choice.value for choice in EngineChoice)
        raise typer.BadParameter(f"Unbekannte Engine: {provider} (erlaubt: {allowed})")
    return value


def _echo_json(data: dict) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


# =============================================================================
# Kommandos
# =============================================================================


@app.command()
def run(
    engine: Annotated[
        str | None,
        typer.Option(
            "--engine",
            "-e",
            help="Engine-ID, optional mit Modell (groq:whisper-large-v3)",
            callback=_engine_callback,
        ),
    ] = None,
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Sprachcode oder 'auto'")
    ] = None,
    task: Annotated[TaskChoice | None, typer.Option(help="Whisper-Task")] = None,
    translate_to: Annotated[
        str | None, typer.Option(help="Finalen Text in diese Sprache übersetzen")
    ] = None,
    hotkey: Annotated[str | None, typer.Option(help="Hotkey, z.B. ctrl+alt+space")] = None,
    hotkey_mode: Annotated[
        HotkeyMode | None, typer.Option(help="toggle oder hold (Push-to-Talk)")
    ] = None,
    whisper_mode: Annotated[
        bool | None, typer.Option("--whisper-mode/--no-whisper-mode", help="Flüster-Modus (Gain 4x)")
    ] = None,
    streaming: Annotated[
        bool | None, typer.Option("--streaming/--no-streaming", help="Live-Vorschau")
    ] = None,
    debug: Annotated[bool, typer.Option(help="Debug-Logging aktivieren")] = False,
) -> None:
    """Startet den Hotkey-Daemon."""
    load_environment()
    setup_logging(debug=debug)

    from audio import MicrophoneRecorder
    from desktop.app_detection import get_app_detector
    from desktop.hotkey import DEFAULT_HOTKEY, HotkeyListener
    from desktop.insertion import ClipboardTextSink
    from desktop.permissions import AccessibilityPermission
    from desktop.sound import get_sound_player
    from dictation.state import DictationState
    from engines import get_local_engine
    from engines.local import preload_in_background
    from utils.env import get_env_str

    settings = build_settings(
        engine=engine,
        language=language,
        task=task,
        translate_to=translate_to,
        whisper_mode=whisper_mode,
        hotkey_mode=hotkey_mode,
        streaming=streaming,
    )
    registry = _select_registry(settings.engine)

    local = get_local_engine(registry)
    if local is not None and registry.default_engine_id == "local":
        preload_in_background(local)

    orchestrator = build_orchestrator(
        settings,
        registry,
        audio=MicrophoneRecorder(),
        text_sink=ClipboardTextSink(),
        app_detector=get_app_detector(),
        accessibility=AccessibilityPermission(),
        sounds=get_sound_player(),
    )

    def show_state(state, message) -> None:
        log(f"● {state.value}" + (f": {message}" if message else ""))
        if state == DictationState.COPIED_TO_CLIPBOARD and orchestrator.permission_notice:
            log(f"⚠ {orchestrator.permission_notice}")

    orchestrator.add_state_listener(show_state)

    hotkey_str = hotkey or get_env_str("DICTAFLOW_HOTKEY") or DEFAULT_HOTKEY
    try:
        listener = HotkeyListener(
            hotkey_str,
            settings.hotkey_mode,
            on_toggle=orchestrator.toggle,
            on_press=orchestrator.start,
            on_release=orchestrator.stop,
        )
    except ValueError as e:
        error(f"Ungültiger Hotkey '{hotkey_str}': {e}")
        raise typer.Exit(1)

    stop_event = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop_event.set())
    signal.signal(signal.SIGTERM, lambda *_: stop_event.set())

    listener.start()
    log(f"dictaflow bereit: {hotkey_str} ({settings.hotkey_mode.value}), Engine {settings.engine}")
    stop_event.wait()

    listener.stop()
    orchestrator.cancel()
    logger.info("Daemon beendet")


@app.command()
def transcribe(
    audio: Annotated[Path, typer.Argument(help="Pfad zur Audiodatei")],
    engine: Annotated[
        str | None,
        typer.Option(
            "--engine", "-e", help="Engine-ID, optional mit Modell", callback=_engine_callback
        ),
    ] = None,
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
    task: Annotated[TaskChoice | None, typer.Option(help="Whisper-Task")] = None,
    translate_to: Annotated[str | None, typer.Option(help="Zielsprache der Übersetzung")] = None,
    copy: Annotated[bool, typer.Option("--copy", "-c", help="Ergebnis in Zwischenablage")] = False,
    debug: Annotated[bool, typer.Option(help="Debug-Logging aktivieren")] = False,
) -> None:
    """Transkribiert eine Audiodatei mit Nachbearbeitung (ohne Profil)."""
    load_environment()
    setup_logging(debug=debug)

    from audio.recording import load_audio_file
    from dictation.errors import DictationError
    from engines import get_local_engine

    if not audio.exists():
        error(f"Datei nicht gefunden: {audio}")
        raise typer.Exit(1)

    settings = build_settings(engine=engine, language=language, task=task, translate_to=translate_to)
    registry = _select_registry(settings.engine)

    local = get_local_engine(registry)
    if local is not None and registry.default_engine_id == "local":
        try:
            local.load()
        except Exception as e:
            error(f"Lokales Modell konnte nicht geladen werden: {e}")
            raise typer.Exit(1)

    try:
        samples = load_audio_file(audio)
    except Exception as e:
        error(f"Audio nicht lesbar: {e}")
        raise typer.Exit(1)

    orchestrator = build_orchestrator(settings, registry)
    try:
        result = orchestrator.transcribe_samples(samples)
    except DictationError as e:
        error(str(e))
        raise typer.Exit(1)

    typer.echo(result.text)
    logger.info(
        f"[{get_session_id()}] Datei transkribiert: {result.duration:.1f}s Audio, "
        f"{len(result.text)} Zeichen, RTF {result.real_time_factor:.2f}"
    )

    if copy:
        from desktop.clipboard import get_clipboard

        if get_clipboard().copy(result.text):
            log("In Zwischenablage kopiert")
        else:
            log("Zwischenablage nicht verfügbar")


@app.command()
def status(
    engine: Annotated[str | None, typer.Option("--engine", "-e", callback=_engine_callback)] = None,
) -> None:
    """Zeigt Status der ausgewählten Engine (wie GET /v1/status)."""
    load_environment()
    from api import ControlHandlers

    settings = build_settings(engine=engine)
    registry = _select_registry(settings.engine)
    handlers = ControlHandlers(build_orchestrator(settings, registry), registry)
    _, body = handlers.status()
    _echo_json(body)


@app.command()
def models(
    engine: Annotated[str | None, typer.Option("--engine", "-e", callback=_engine_callback)] = None,
) -> None:
    """Listet alle Engines mit Fähigkeiten (wie GET /v1/models)."""
    load_environment()
    from api import ControlHandlers

    settings = build_settings(engine=engine)
    registry = _select_registry(settings.engine)
    handlers = ControlHandlers(build_orchestrator(settings, registry), registry)
    _, body = handlers.models()
    _echo_json(body)


@app.command()
def profiles(
    app_id: Annotated[str | None, typer.Option("--app", help="Bundle-ID/App-ID für die Vorschau")] = None,
    url: Annotated[str | None, typer.Option(help="URL/Domain für die Vorschau")] = None,
    path: Annotated[Path | None, typer.Option(help="Profil-Datei (TOML)")] = None,
) -> None:
    """Listet Profile; mit --app/--url zeigt es, welches Profil greifen würde."""
    from profiles import ProfileResolver, ProfileStore

    store = ProfileStore(path or PROFILES_FILE)
    if app_id is None and url is None:
        entries = store.profiles()
        if not entries:
            log("Keine Profile definiert")
            return
        for profile in entries:
            flag = "" if profile.enabled else " (deaktiviert)"
            typer.echo(
                f"{profile.name}{flag}: priority={profile.priority}, "
                f"apps={list(profile.app_ids)}, urls={list(profile.url_patterns)}"
            )
        return

    match = ProfileResolver(store).match(app_id, url)
    if match is None:
        typer.echo("Kein Profil (globale Einstellungen)")
        return
    _echo_json(match.to_dict())


@app.command()
def history(
    count: Annotated[int, typer.Option("--count", "-n", help="Anzahl Einträge")] = 10,
    clear: Annotated[bool, typer.Option(help="History löschen")] = False,
) -> None:
    """Zeigt die letzten Diktate oder löscht die History."""
    from utils.history import HistoryStore

    store = HistoryStore(HISTORY_FILE)
    if clear:
        if store.clear():
            log("History gelöscht")
        return
    for entry in store.recent(count):
        typer.echo(f"{entry.get('timestamp', '?')}  {entry.get('text', '')}")


@app.command()
def dictionary(
    add_term: Annotated[str | None, typer.Option(help="Fachbegriff hinzufügen")] = None,
    correct: Annotated[
        str | None, typer.Option(help="Korrektur 'falsch=richtig' hinzufügen")
    ] = None,
) -> None:
    """Zeigt das Wörterbuch oder ergänzt Begriffe und Korrekturen."""
    from postprocess import Dictionary

    store = Dictionary()
    if add_term:
        store.add_term(add_term.strip())
        log(f"Begriff hinzugefügt: {add_term.strip()}")
    if correct:
        original, sep, replacement = correct.partition("=")
        if not sep or not original.strip():
            raise typer.BadParameter("Format: falsch=richtig", param_hint="--correct")
        store.add_correction(original.strip(), replacement.strip())
        log(f"Korrektur hinzugefügt: {original.strip()} → {replacement.strip()}")
    if add_term or correct:
        return

    for term in store.terms():
        typer.echo(term)
    for correction in store.corrections():
        typer.echo(f"{correction.original} → {correction.replacement}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
