"""Diktat-Orchestrator: Zustandsmaschine von Hotkey-Start bis Textauslieferung.

    IDLE → RECORDING → PROCESSING → {INSERTING | COPIED_TO_CLIPBOARD} → IDLE
    ERROR (aus jedem Zustand) → IDLE nach 3s

Alle Mutationen laufen unter einem RLock. Streaming-Pässe laufen in einem
eigenen Thread und liefern Ergebnisse nur über `_on_streaming_update` zurück,
das Token, Zustand und Session-Identität prüft. Der finale Pass läuft im
`TranscriptionWorker`-Thread.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from typing import Callable

from cli.types import HotkeyMode
from config import (
    DONE_DISPLAY_DURATION,
    ERROR_DISPLAY_DURATION,
    MIN_RECORDING_DURATION,
    PERMISSION_POLL_ATTEMPTS,
    PERMISSION_POLL_INTERVAL,
    STREAMING_INITIAL_DELAY,
    STREAMING_INTERVAL,
    URL_RESOLVE_TIMEOUT,
)
from engines.base import (
    TranscriptionResult,
    TranscriptionTask,
    samples_duration,
)
from engines.registry import EngineRegistry
from profiles.resolver import ProfileResolver
from utils.logging import generate_session_id, get_session_id, new_session_id
from utils.scheduling import TimerScheduler
from utils.timing import log_preview, timed_operation

from .errors import DictationError, PermissionDeniedError
from .interfaces import (
    AppDetector,
    AudioSource,
    HistorySink,
    PermissionSource,
    SoundPlayer,
    TextSink,
)
from .session import ActiveApp, Session
from .settings import DictationSettings, resolve_effective
from .state import DictationState, InsertionResult
from .streaming import StreamingLoop

logger = logging.getLogger("dictaflow.dictation")

StateListener = Callable[[DictationState, "str | None"], None]
PartialListener = Callable[[str], None]

_DELIVERY_STATES = {
    InsertionResult.PASTED: DictationState.INSERTING,
    InsertionResult.COPIED_TO_CLIPBOARD: DictationState.COPIED_TO_CLIPBOARD,
}


class DictationOrchestrator:
    """Koordiniert Aufnahme, Streaming-Vorschau, finalen Pass und Auslieferung.

    Alle Kollaborateure werden injiziert; der Orchestrator hält keine
    globalen Instanzen. Mit `background=False` laufen finaler Pass und
    Streaming nicht in Threads (Tests treiben `streaming_loop.run_once()`
    dann selbst).
    """

    def __init__(
        self,
        *,
        audio: AudioSource,
        registry: EngineRegistry,
        text_sink: TextSink,
        resolver: ProfileResolver | None = None,
        pipeline=None,
        history: HistorySink | None = None,
        app_detector: AppDetector | None = None,
        accessibility: PermissionSource | None = None,
        sounds: SoundPlayer | None = None,
        settings: DictationSettings | None = None,
        scheduler=None,
        background: bool = True,
        streaming_delay: float = STREAMING_INITIAL_DELAY,
        streaming_interval: float = STREAMING_INTERVAL,
    ) -> None:
        self._audio = audio
        self._registry = registry
        self._text_sink = text_sink
        self._resolver = resolver
        self._pipeline = pipeline
        self._history = history
        self._app_detector = app_detector
        self._accessibility = accessibility
        self._sounds = sounds
        self.settings = settings or DictationSettings()
        self._scheduler = scheduler or TimerScheduler()
        self._background = background
        self._streaming_delay = streaming_delay
        self._streaming_interval = streaming_interval

        self._lock = threading.RLock()
        self._state = DictationState.IDLE
        self._message: str | None = None
        self._session: Session | None = None
        self._streaming: StreamingLoop | None = None
        self._partial_text = ""
        self._display_call = None
        self._display_generation = 0
        self._permission_polls: dict[str, object] = {}
        self._permission_notice: str | None = None
        self._worker: threading.Thread | None = None
        self._url_thread: threading.Thread | None = None
        self._state_listeners: list[StateListener] = []
        self._partial_listeners: list[PartialListener] = []

        # Angenommene Streaming-Ergebnisse (für Diagnose und Tests)
        self.streaming_writes = 0

    # =================================================================
    # Beobachtung
    # =================================================================

    @property
    def state(self) -> DictationState:
        return self._state

    @property
    def message(self) -> str | None:
        """Fehlertext im ERROR-Zustand, finaler Text in den Anzeige-Zuständen."""
        return self._message

    @property
    def permission_notice(self) -> str | None:
        """Hinweis zu einer fehlenden Berechtigung, bis das Polling sie bestätigt."""
        return self._permission_notice

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def active_profile_name(self) -> str | None:
        session = self._session
        return session.profile_name if session is not None else None

    @property
    def is_streaming(self) -> bool:
        return self._streaming is not None

    @property
    def streaming_loop(self) -> StreamingLoop | None:
        return self._streaming

    @property
    def partial_text(self) -> str:
        return self._partial_text

    def add_state_listener(self, listener: StateListener) -> None:
        """Registriert einen Callback für Zustandswechsel (kein initialer Aufruf)."""
        self._state_listeners.append(listener)

    def add_partial_listener(self, listener: PartialListener) -> None:
        self._partial_listeners.append(listener)

    @staticmethod
    def _safe_call(fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("Listener fehlgeschlagen")

    def _transition(self, state: DictationState, message: str | None = None) -> None:
        prev_state = self._state
        self._state = state
        self._message = message
        logger.debug(
            f"[{get_session_id()}] State: {prev_state.value} → {state.value}"
            + (f" ({log_preview(message, 40)})" if message else "")
        )
        for listener in list(self._state_listeners):
            self._safe_call(listener, state, message)

    def _publish_partial(self, text: str) -> None:
        self._partial_text = text
        for listener in list(self._partial_listeners):
            self._safe_call(listener, text)

    # =================================================================
    # Anzeige-Timer
    # =================================================================

    def _cancel_display_timer(self) -> None:
        self._display_generation += 1
        if self._display_call is not None:
            self._display_call.cancel()
            self._display_call = None

    def _schedule_revert(self, delay: float) -> None:
        self._cancel_display_timer()
        generation = self._display_generation

        def revert() -> None:
            with self._lock:
                if generation != self._display_generation or not self._state.is_display:
                    return
                self._display_call = None
                self._transition(DictationState.IDLE)

        self._display_call = self._scheduler.schedule(delay, revert)

    def _show_error(self, message: str) -> None:
        """ERROR anzeigen; fällt nach ERROR_DISPLAY_DURATION auf IDLE zurück."""
        logger.error(f"[{get_session_id()}] {message}")
        self._transition(DictationState.ERROR, message)
        self._play_sound("error")
        self._schedule_revert(ERROR_DISPLAY_DURATION)

    def _play_sound(self, event: str) -> None:
        if self._sounds is None or not self.settings.sound_feedback:
            return
        try:
            self._sounds.play(event)
        except Exception as e:
            logger.debug(f"Sound '{event}' fehlgeschlagen: {e}")

    # =================================================================
    # Berechtigungen
    # =================================================================

    def _permission_source(self, permission: str) -> PermissionSource:
        if permission == "accessibility":
            return self._accessibility
        return self._audio

    def _start_permission_poll(self, permission: str = "microphone") -> None:
        """Fragt die Berechtigung an und prüft sie danach sekündlich (max. 30x)."""
        if permission in self._permission_polls:
            return
        source = self._permission_source(permission)
        try:
            source.request_permission()
        except Exception as e:
            logger.warning(f"Anfrage für '{permission}' fehlgeschlagen: {e}")
        self._poll_permission(permission, source, PERMISSION_POLL_ATTEMPTS)

    def _poll_permission(
        self, permission: str, source: PermissionSource, remaining: int
    ) -> None:
        if remaining <= 0:
            logger.warning(f"Berechtigung '{permission}' weiterhin verweigert, Polling beendet")
            self._permission_polls.pop(permission, None)
            return

        def check() -> None:
            with self._lock:
                if source.has_permission():
                    logger.info(f"Berechtigung '{permission}' erteilt")
                    self._permission_polls.pop(permission, None)
                    if permission == "accessibility":
                        self._permission_notice = None
                    return
                self._poll_permission(permission, source, remaining - 1)

        self._permission_polls[permission] = self._scheduler.schedule(
            PERMISSION_POLL_INTERVAL, check
        )

    def _check_accessibility(self, session: Session) -> None:
        """Nur Clipboard statt Einfügen: Hinweis setzen und Bedienungshilfen pollen."""
        if self._accessibility is None:
            return
        try:
            granted = self._accessibility.has_permission()
        except Exception as e:
            logger.debug(f"[{session.session_id}] Bedienungshilfen-Status unbekannt: {e}")
            return
        if granted:
            return
        with self._lock:
            self._permission_notice = str(PermissionDeniedError("accessibility"))
            logger.warning(f"[{session.session_id}] {self._permission_notice}")
            self._start_permission_poll("accessibility")

    # =================================================================
    # Start
    # =================================================================

    def _capture_app(self) -> ActiveApp:
        if self._app_detector is None:
            return ActiveApp()
        try:
            return self._app_detector.capture()
        except Exception as e:
            logger.warning(f"[{get_session_id()}] App-Erkennung fehlgeschlagen: {e}")
            return ActiveApp()

    def _match_profile(self, app: ActiveApp):
        if self._resolver is None:
            return None
        return self._resolver.match(app.bundle_id, app.url)

    def start(self) -> bool:
        """Hotkey-Start. True, wenn eine Aufnahme begonnen hat."""
        with self._lock:
            if self._state != DictationState.IDLE and not self._state.is_display:
                logger.debug(f"Start ignoriert im Zustand {self._state.value}")
                return False
            self._cancel_display_timer()

            session_id = new_session_id()
            if not self._audio.has_permission():
                self._show_error(str(PermissionDeniedError("microphone")))
                self._start_permission_poll("microphone")
                return False

            app = self._capture_app()
            profile = self._match_profile(app)
            effective = resolve_effective(self.settings, profile)

            try:
                engine = self._registry.require(effective.engine_override)
                self._registry.ensure_task_supported(engine, effective.task)
            except DictationError as e:
                self._show_error(str(e))
                return False

            session = Session(
                session_id=session_id,
                active_app=app,
                effective=effective,
                engine_id=engine.engine_id,
                profile=profile,
            )

            try:
                self._audio.start(gain=effective.gain)
            except PermissionDeniedError as e:
                self._show_error(str(e))
                self._start_permission_poll("microphone")
                return False
            except Exception as e:
                logger.exception(f"[{session_id}] Aufnahme-Start fehlgeschlagen")
                self._show_error(f"Aufnahme fehlgeschlagen: {e}")
                return False

            self._session = session
            self._partial_text = ""
            logger.info(
                f"[{session_id}] Diktat gestartet: engine={engine.engine_id}, "
                f"profile={session.profile_name}, language={effective.language or 'auto'}, "
                f"task={effective.task.value}, app={app.bundle_id or app.name}"
            )
            self._transition(DictationState.RECORDING)
            self._play_sound("start")

            if self.settings.streaming and engine.supports_streaming:
                self._start_streaming(session, engine)
            if self.settings.hotkey_mode == HotkeyMode.toggle:
                self._audio.watch_silence(self.settings.silence_timeout, self._on_silence)
            self._start_url_lookup(session)
            return True

    def _start_streaming(self, session: Session, engine) -> None:
        effective = session.effective
        self._streaming = StreamingLoop(
            engine,
            self._audio.buffer,
            session.cancel_token,
            lambda text, confirmed: self._on_streaming_update(session, text, confirmed),
            language=effective.language,
            task=effective.task,
            prompt=self._pipeline.prompt() if self._pipeline is not None else None,
            initial_delay=self._streaming_delay,
            interval=self._streaming_interval,
            max_window=self.settings.streaming_max_window,
            session_id=session.session_id,
        )
        if self._background:
            self._streaming.start()

    def _on_silence(self) -> None:
        # Kommt aus dem Audio-Callback: dort nicht blockieren
        threading.Thread(target=self.stop, name="SilenceAutoStop", daemon=True).start()

    def _start_url_lookup(self, session: Session) -> None:
        app = session.active_app
        if self._app_detector is None or not app.is_known or app.url:
            return

        def lookup() -> None:
            try:
                url = self._app_detector.resolve_url(app)
            except Exception as e:
                logger.debug(f"[{session.session_id}] URL-Lookup fehlgeschlagen: {e}")
                return
            if url:
                self._apply_url(session, url)

        if not self._background:
            lookup()
            return
        self._url_thread = threading.Thread(target=lookup, name="UrlResolver", daemon=True)
        self._url_thread.start()

    def _apply_url(self, session: Session, url: str) -> None:
        """Verfeinert das Profil anhand der Browser-URL, solange die Session läuft."""
        with self._lock:
            if self._session is not session or self._state not in (
                DictationState.RECORDING,
                DictationState.PROCESSING,
            ):
                return
            session.active_app = replace(session.active_app, url=url)
            profile = self._match_profile(session.active_app)
            if profile is session.profile:
                return
            session.profile = profile
            session.effective = resolve_effective(self.settings, profile)
            logger.info(
                f"[{session.session_id}] Profil per URL verfeinert: {session.profile_name}"
            )

    def _on_streaming_update(self, session: Session, text: str, confirmed: bool) -> None:
        with self._lock:
            if (
                session.cancel_token.cancelled
                or self._session is not session
                or self._state != DictationState.RECORDING
            ):
                return
            if confirmed:
                session.confirmed_text = text
            self.streaming_writes += 1
            self._publish_partial(text)

    # =================================================================
    # Stop / Abbruch
    # =================================================================

    def _halt_capture(self, session: Session):
        session.cancel_token.cancel()
        self._streaming = None
        self._audio.clear_silence_watch()
        samples = self._audio.stop()
        self._publish_partial("")
        return samples

    def stop(self) -> bool:
        """Hotkey-Stop oder Stille. True, wenn ein finaler Pass gestartet wurde."""
        with self._lock:
            if self._state != DictationState.RECORDING or self._session is None:
                logger.debug(f"Stop ignoriert im Zustand {self._state.value}")
                return False
            session = self._session
            samples = self._halt_capture(session)

            duration = samples_duration(samples)
            if len(samples) == 0 or duration < MIN_RECORDING_DURATION:
                logger.info(f"[{session.session_id}] Aufnahme zu kurz ({duration:.2f}s), verworfen")
                self._session = None
                self._transition(DictationState.IDLE)
                return False

            self._transition(DictationState.PROCESSING)
            if self._background:
                self._worker = threading.Thread(
                    target=self._process,
                    args=(session, samples),
                    name="TranscriptionWorker",
                    daemon=True,
                )
                self._worker.start()
                return True

        self._process(session, samples)
        return True

    def cancel(self) -> bool:
        """Verwirft eine laufende Aufnahme ohne Transkription."""
        with self._lock:
            if self._state != DictationState.RECORDING or self._session is None:
                return False
            session = self._session
            self._halt_capture(session)
            self._session = None
            logger.info(f"[{session.session_id}] Diktat abgebrochen")
            self._transition(DictationState.IDLE)
            return True

    def toggle(self) -> None:
        """Toggle-Modus: startet oder stoppt je nach Zustand."""
        if self._state == DictationState.RECORDING:
            self.stop()
        else:
            self.start()

    def join(self, timeout: float | None = None) -> None:
        """Wartet auf laufende Hintergrund-Threads (URL-Lookup, finaler Pass)."""
        for thread in (self._url_thread, self._worker):
            if thread is not None:
                thread.join(timeout)

    # =================================================================
    # Finaler Pass
    # =================================================================

    def _wait_for_url(self) -> None:
        thread = self._url_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(URL_RESOLVE_TIMEOUT)

    def _transcribe_final(
        self, samples, effective, prompt, session_id: str | None = None
    ) -> TranscriptionResult:
        engine = self._registry.require(effective.engine_override)
        self._registry.ensure_task_supported(engine, effective.task)
        with timed_operation(
            f"Transkription ({engine.engine_id})", logger=logger, session_id=session_id
        ):
            return engine.transcribe(
                samples,
                language=effective.language,
                task=effective.task,
                prompt=prompt,
            )

    def _process(self, session: Session, samples) -> None:
        self._wait_for_url()
        with self._lock:
            effective = session.effective
        prompt = self._pipeline.prompt() if self._pipeline is not None else None

        try:
            result = self._transcribe_final(
                samples, effective, prompt, session_id=session.session_id
            )
            raw_text = result.text.strip()
            if not raw_text:
                logger.warning(f"[{session.session_id}] Leeres Transkript")
                self._finish(session, DictationState.IDLE)
                return

            final_text = raw_text
            if self._pipeline is not None:
                final_text = self._pipeline.process(
                    raw_text, translation_target=effective.translation_target
                ).strip()
            if not final_text:
                self._finish(session, DictationState.IDLE)
                return

            delivery = self._text_sink.insert_text(
                final_text, force_paste=effective.always_paste
            )
        except DictationError as e:
            self._fail(session, str(e))
            return
        except Exception as e:
            logger.exception(f"[{session.session_id}] Finaler Pass fehlgeschlagen")
            self._fail(session, str(e) or type(e).__name__)
            return

        logger.info(
            f"[{session.session_id}] Ausgeliefert ({delivery.value}): {log_preview(final_text)}"
        )
        self._record_history(
            raw_text=raw_text,
            final_text=final_text,
            app=session.active_app,
            duration=samples_duration(samples),
            language=result.detected_language or effective.language,
            engine_id=result.engine_id,
        )
        if delivery == InsertionResult.COPIED_TO_CLIPBOARD:
            self._check_accessibility(session)
        self._finish(session, _DELIVERY_STATES[delivery], final_text)

    def _record_history(self, *, raw_text, final_text, app: ActiveApp, duration, language, engine_id) -> None:
        if self._history is None:
            return
        try:
            self._history.add_record(
                raw_text=raw_text,
                final_text=final_text,
                app_name=app.name,
                app_id=app.bundle_id,
                url=app.url,
                duration=duration,
                language=language,
                engine_id=engine_id,
            )
        except Exception as e:
            logger.warning(f"[{get_session_id()}] History-Eintrag fehlgeschlagen: {e}")

    def _finish(
        self, session: Session, state: DictationState, message: str | None = None
    ) -> None:
        with self._lock:
            if self._session is not session:
                return
            self._session = None
            self._transition(state, message)
            if state.is_display:
                self._play_sound("success")
                self._schedule_revert(DONE_DISPLAY_DURATION)

    def _fail(self, session: Session, message: str) -> None:
        with self._lock:
            if self._session is not session:
                return
            self._session = None
            self._show_error(message)

    # =================================================================
    # HTTP-Pfad
    # =================================================================

    def transcribe_samples(
        self,
        samples,
        *,
        language: str | None = None,
        task: TranscriptionTask | None = None,
        target_language: str | None = None,
    ) -> TranscriptionResult:
        """Wie der Hotkey-Pfad, aber ohne Profil und ohne Zustandswechsel.

        Raises:
            DictationError: NotLoaded, UnsupportedTask, TranscriptionFailed
        """
        effective = resolve_effective(self.settings, None)
        effective = replace(
            effective,
            language=language or effective.language,
            task=task or effective.task,
            translation_target=target_language or effective.translation_target,
        )
        request_id = generate_session_id()
        prompt = self._pipeline.prompt() if self._pipeline is not None else None
        result = self._transcribe_final(
            samples, effective, prompt, session_id=request_id
        )
        raw_text = result.text.strip()
        final_text = raw_text
        if raw_text and self._pipeline is not None:
            final_text = self._pipeline.process(
                raw_text, translation_target=effective.translation_target
            ).strip()
        if final_text:
            self._record_history(
                raw_text=raw_text,
                final_text=final_text,
                app=ActiveApp(),
                duration=result.duration or samples_duration(samples),
                language=result.detected_language or effective.language,
                engine_id=result.engine_id,
            )
        return replace(result, text=final_text)


__all__ = ["DictationOrchestrator", "PartialListener", "StateListener"]
