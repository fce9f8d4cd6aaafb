"""Tests für den Diktat-Orchestrator (Zustandsmaschine, Streaming, Auslieferung).

Alle Tests laufen mit `background=False`: der finale Pass läuft inline in
`stop()`, Streaming-Pässe werden über `streaming_loop.run_once()` getrieben.
"""

import threading
from unittest.mock import Mock

import pytest

from cli.types import HotkeyMode
from config import (
    DONE_DISPLAY_DURATION,
    ERROR_DISPLAY_DURATION,
    PERMISSION_POLL_INTERVAL,
    WHISPER_MODE_GAIN,
)
from desktop.insertion import ClipboardTextSink
from dictation.errors import (
    EngineNotLoadedError,
    InsertionFailedError,
    TranscriptionFailedError,
)
from dictation.orchestrator import DictationOrchestrator
from dictation.session import ActiveApp
from dictation.settings import DictationSettings
from dictation.state import DictationState, InsertionResult
from engines import EngineRegistry, TranscriptionTask
from fakes import (
    FakeAppDetector,
    FakeAudioSource,
    FakeEngine,
    FakeHistory,
    FakePermission,
    FakeScheduler,
    FakeSink,
    FakeSoundPlayer,
)
from profiles import Profile, ProfileResolver, StaticProfileStore
from utils.logging import get_session_id

SAFARI = "com.apple.Safari"


class Harness:
    """Baut einen Orchestrator mit Fakes und hält alle Kollaborateure griffbereit."""

    def __init__(
        self,
        *engines,
        settings=None,
        profiles=(),
        pipeline=None,
        sink=None,
        history=None,
        detector=None,
        audio=None,
        accessibility=None,
        sounds=None,
        background=False,
    ):
        self.engines = engines or (FakeEngine(),)
        self.registry = EngineRegistry(self.engines)
        self.audio = audio or FakeAudioSource()
        self.sink = sink or FakeSink()
        self.history = history if history is not None else FakeHistory()
        self.scheduler = FakeScheduler()
        self.detector = detector
        self.states = []
        self.partials = []
        self.orch = DictationOrchestrator(
            audio=self.audio,
            registry=self.registry,
            text_sink=self.sink,
            resolver=ProfileResolver(StaticProfileStore(profiles)) if profiles else None,
            pipeline=pipeline,
            history=self.history,
            app_detector=detector,
            accessibility=accessibility,
            sounds=sounds,
            settings=settings or DictationSettings(hotkey_mode=HotkeyMode.hold),
            scheduler=self.scheduler,
            background=background,
        )
        self.orch.add_state_listener(lambda state, message: self.states.append(state))
        self.orch.add_partial_listener(self.partials.append)

    @property
    def engine(self) -> FakeEngine:
        return self.engines[0]

    def dictate(self, seconds: float = 1.0) -> bool:
        assert self.orch.start()
        self.audio.record(seconds)
        return self.orch.stop()


# =============================================================================
# Grundablauf
# =============================================================================


class TestHappyPath:
    def test_dictation_is_pasted(self):
        h = Harness()

        assert h.dictate() is True

        assert h.orch.state == DictationState.INSERTING
        assert h.orch.message == "Hallo Welt"
        assert h.sink.inserted == [("Hallo Welt", False)]
        assert h.states == [
            DictationState.RECORDING,
            DictationState.PROCESSING,
            DictationState.INSERTING,
        ]

    def test_display_state_reverts_to_idle(self):
        h = Harness()
        h.dictate()

        assert [c.delay for c in h.scheduler.pending] == [DONE_DISPLAY_DURATION]
        h.scheduler.run_pending()

        assert h.orch.state == DictationState.IDLE
        assert h.orch.session is None

    def test_copied_to_clipboard_state(self):
        h = Harness(sink=FakeSink(result=InsertionResult.COPIED_TO_CLIPBOARD))
        h.dictate()

        assert h.orch.state == DictationState.COPIED_TO_CLIPBOARD

    def test_history_record(self):
        h = Harness()
        h.dictate(2.0)

        assert len(h.history.records) == 1
        record = h.history.records[0]
        assert record["raw_text"] == "Hallo Welt"
        assert record["final_text"] == "Hallo Welt"
        assert record["engine_id"] == "fake"
        assert record["duration"] == pytest.approx(2.0)

    def test_history_failure_does_not_break_delivery(self):
        h = Harness(history=FakeHistory(error=OSError("Disk voll")))
        h.dictate()

        assert h.orch.state == DictationState.INSERTING

    def test_toggle_starts_and_stops(self):
        h = Harness()

        h.orch.toggle()
        assert h.orch.state == DictationState.RECORDING
        h.audio.record(1.0)
        h.orch.toggle()

        assert h.orch.state == DictationState.INSERTING

    def test_whisper_mode_gain(self):
        h = Harness(settings=DictationSettings(whisper_mode=True))
        h.orch.start()

        assert h.audio.gains == [WHISPER_MODE_GAIN]

    def test_always_paste_forwarded(self):
        h = Harness(settings=DictationSettings(always_paste=True))
        h.dictate()

        assert h.sink.inserted == [("Hallo Welt", True)]


class TestShortAndEmpty:
    def test_short_recording_is_noop(self):
        h = Harness()

        assert h.dictate(0.1) is False

        assert h.orch.state == DictationState.IDLE
        assert h.engine.calls == []
        assert h.sink.inserted == []
        assert h.history.records == []
        assert h.scheduler.pending == []

    def test_empty_recording_is_noop(self):
        h = Harness()
        h.orch.start()

        assert h.orch.stop() is False
        assert h.orch.state == DictationState.IDLE

    def test_empty_transcript_goes_idle(self):
        h = Harness(FakeEngine(text="   "))
        h.dictate()

        assert h.orch.state == DictationState.IDLE
        assert h.sink.inserted == []
        assert h.history.records == []

    def test_cancel_discards_recording(self):
        h = Harness()
        h.orch.start()
        h.audio.record(2.0)

        assert h.orch.cancel() is True

        assert h.orch.state == DictationState.IDLE
        assert h.audio.recording is False
        assert h.engine.calls == []

    def test_stop_and_cancel_ignored_when_idle(self):
        h = Harness()

        assert h.orch.stop() is False
        assert h.orch.cancel() is False
        assert h.states == []

    def test_start_ignored_while_recording(self):
        h = Harness()
        h.orch.start()

        assert h.orch.start() is False
        assert h.audio.gains == [1.0]


# =============================================================================
# Fehler
# =============================================================================


class TestErrors:
    def test_engine_error_shows_error_then_idle(self):
        h = Harness(FakeEngine(error=TranscriptionFailedError("Modell abgestürzt")))
        h.dictate()

        assert h.orch.state == DictationState.ERROR
        assert h.orch.message == "Modell abgestürzt"
        assert [c.delay for c in h.scheduler.pending] == [ERROR_DISPLAY_DURATION]
        assert h.history.records == []

        h.scheduler.run_pending()
        assert h.orch.state == DictationState.IDLE

    def test_unexpected_error_shows_error(self):
        h = Harness(FakeEngine(error=RuntimeError("boom")))
        h.dictate()

        assert h.orch.state == DictationState.ERROR
        assert h.orch.message == "boom"

    def test_insertion_failure(self):
        h = Harness(sink=FakeSink(error=InsertionFailedError("Zwischenablage weg")))
        h.dictate()

        assert h.orch.state == DictationState.ERROR
        assert h.orch.message == "Zwischenablage weg"

    def test_no_ready_engine_fails_at_start(self):
        h = Harness(FakeEngine(ready=False))

        assert h.orch.start() is False
        assert h.orch.state == DictationState.ERROR
        assert "nicht bereit" in h.orch.message
        assert h.audio.gains == []

    def test_translate_fails_fast_on_unsupported_engine(self):
        """Nicht übersetzende Engine: Fehler vor Aufnahmebeginn, nie still transkribieren."""
        h = Harness(
            FakeEngine(translation=False),
            settings=DictationSettings(task=TranscriptionTask.TRANSLATE),
        )

        assert h.orch.start() is False
        assert h.orch.state == DictationState.ERROR
        assert "translate" in h.orch.message
        assert h.audio.gains == []
        assert h.engine.calls == []

    def test_audio_start_failure(self):
        h = Harness(audio=FakeAudioSource(start_error=OSError("Kein Gerät")))

        assert h.orch.start() is False
        assert h.orch.state == DictationState.ERROR
        assert "Kein Gerät" in h.orch.message

    def test_new_dictation_interrupts_error_display(self):
        h = Harness(FakeEngine(ready=False))
        h.orch.start()
        stale_revert = h.scheduler.calls[0]

        h.engine.ready = True
        assert h.orch.start() is True
        assert stale_revert.cancelled

        # Verspäteter Timer darf die neue Aufnahme nicht zurücksetzen
        stale_revert.callback()
        assert h.orch.state == DictationState.RECORDING

    def test_failing_listener_is_isolated(self):
        h = Harness()
        h.orch.add_state_listener(Mock(side_effect=RuntimeError("UI kaputt")))

        h.dictate()

        assert h.orch.state == DictationState.INSERTING


class TestPermissions:
    def test_missing_permission_shows_guidance_and_polls(self):
        h = Harness(audio=FakeAudioSource(permission=False))

        assert h.orch.start() is False

        assert h.orch.state == DictationState.ERROR
        assert "Mikrofon" in h.orch.message
        assert h.audio.permission_requests == 1
        delays = sorted(c.delay for c in h.scheduler.pending)
        assert delays == sorted([ERROR_DISPLAY_DURATION, PERMISSION_POLL_INTERVAL])

    def test_poll_continues_while_denied(self):
        h = Harness(audio=FakeAudioSource(permission=False))
        h.orch.start()

        h.scheduler.run_pending()

        # Fehleranzeige vorbei, nächster Poll geplant
        assert h.orch.state == DictationState.IDLE
        assert [c.delay for c in h.scheduler.pending] == [PERMISSION_POLL_INTERVAL]

    def test_poll_stops_when_granted(self):
        h = Harness(audio=FakeAudioSource(permission=False))
        h.orch.start()

        h.audio.permission = True
        h.scheduler.run_pending()

        assert h.scheduler.pending == []
        assert h.orch.start() is True
        # Kein zweiter Permission-Dialog
        assert h.audio.permission_requests == 1


class TestAccessibility:
    def _clipboard_only_sink(self):
        clipboard = Mock()
        clipboard.copy.return_value = True
        return ClipboardTextSink(
            clipboard=clipboard,
            paste=Mock(return_value=True),
            has_accessibility=lambda: False,
            paste_delay=0,
        )

    def test_clipboard_fallback_shows_guidance_and_polls(self):
        accessibility = FakePermission(permission=False)
        h = Harness(sink=self._clipboard_only_sink(), accessibility=accessibility)

        h.dictate()

        assert h.orch.state == DictationState.COPIED_TO_CLIPBOARD
        assert h.orch.message == "Hallo Welt"
        assert "Bedienungshilfen" in h.orch.permission_notice
        assert accessibility.requests == 1
        delays = sorted(c.delay for c in h.scheduler.pending)
        assert delays == sorted([DONE_DISPLAY_DURATION, PERMISSION_POLL_INTERVAL])

    def test_notice_cleared_when_granted(self):
        accessibility = FakePermission(permission=False)
        h = Harness(sink=self._clipboard_only_sink(), accessibility=accessibility)
        h.dictate()

        accessibility.permission = True
        h.scheduler.run_pending()

        assert h.orch.permission_notice is None
        assert h.orch.state == DictationState.IDLE
        assert h.scheduler.pending == []

    def test_second_fallback_does_not_request_again(self):
        accessibility = FakePermission(permission=False)
        h = Harness(
            sink=FakeSink(result=InsertionResult.COPIED_TO_CLIPBOARD),
            accessibility=accessibility,
        )
        h.dictate()
        h.dictate()

        assert accessibility.requests == 1
        polls = [c for c in h.scheduler.pending if c.delay == PERMISSION_POLL_INTERVAL]
        assert len(polls) == 1

    def test_granted_accessibility_has_no_notice(self):
        accessibility = FakePermission(permission=True)
        h = Harness(
            sink=FakeSink(result=InsertionResult.COPIED_TO_CLIPBOARD),
            accessibility=accessibility,
        )
        h.dictate()

        assert h.orch.permission_notice is None
        assert accessibility.requests == 0

    def test_paste_does_not_check_accessibility(self):
        accessibility = FakePermission(permission=False)
        h = Harness(accessibility=accessibility)
        h.dictate()

        assert h.orch.state == DictationState.INSERTING
        assert h.orch.permission_notice is None
        assert accessibility.requests == 0

    def test_status_error_keeps_delivery(self):
        accessibility = FakePermission(error=OSError("kein AX"))
        h = Harness(
            sink=FakeSink(result=InsertionResult.COPIED_TO_CLIPBOARD),
            accessibility=accessibility,
        )
        h.dictate()

        assert h.orch.state == DictationState.COPIED_TO_CLIPBOARD
        assert h.orch.permission_notice is None


# =============================================================================
# Sound-Feedback
# =============================================================================


class TestSounds:
    def test_start_and_success(self):
        sounds = FakeSoundPlayer()
        h = Harness(sounds=sounds)

        h.dictate()

        assert sounds.events == ["start", "success"]

    def test_error_sound(self):
        sounds = FakeSoundPlayer()
        h = Harness(FakeEngine(error=TranscriptionFailedError("kaputt")), sounds=sounds)

        h.dictate()

        assert h.orch.state == DictationState.ERROR
        assert sounds.events == ["start", "error"]

    def test_empty_transcript_is_silent_after_start(self):
        sounds = FakeSoundPlayer()
        h = Harness(FakeEngine(text="  "), sounds=sounds)

        h.dictate()

        assert sounds.events == ["start"]

    def test_disabled_in_settings(self):
        sounds = FakeSoundPlayer()
        settings = DictationSettings(hotkey_mode=HotkeyMode.hold, sound_feedback=False)
        h = Harness(settings=settings, sounds=sounds)

        h.dictate()

        assert sounds.events == []

    def test_failing_player_does_not_break_dictation(self):
        sounds = FakeSoundPlayer(error=RuntimeError("kein Audio-Ausgang"))
        h = Harness(sounds=sounds)

        assert h.dictate() is True

        assert h.orch.state == DictationState.INSERTING
        assert sounds.events == ["start", "success"]


# =============================================================================
# Streaming
# =============================================================================


class TestStreaming:
    def test_non_streaming_engine_never_streams(self):
        h = Harness(FakeEngine(streaming=False))
        h.orch.start()

        assert h.orch.is_streaming is False
        assert h.orch.streaming_loop is None
        h.audio.record(1.0)
        h.orch.stop()
        assert h.engine.stream_calls == []

    def test_streaming_disabled_in_settings(self):
        h = Harness(settings=DictationSettings(streaming=False))
        h.orch.start()

        assert h.orch.is_streaming is False

    def test_final_text_supersedes_preview(self):
        h = Harness(
            FakeEngine(text="Hello, world.", stream_results=["hello wor", "hello world"])
        )
        h.orch.start()
        loop = h.orch.streaming_loop

        h.audio.record(1.0)
        loop.run_once()
        assert h.orch.partial_text == "hello wor"

        h.audio.record(1.0)
        loop.run_once()
        assert h.orch.partial_text == "hello world"
        assert h.orch.session.confirmed_text == "hello world"

        h.orch.stop()

        assert h.partials == ["hello wor", "hello world", ""]
        assert h.sink.inserted == [("Hello, world.", False)]
        assert h.orch.message == "Hello, world."
        assert h.orch.streaming_writes == 2

    def test_no_streaming_write_after_stop(self):
        h = Harness(FakeEngine(stream_results=["zu spät"]))
        h.orch.start()
        loop = h.orch.streaming_loop
        h.audio.record(1.0)

        h.orch.stop()

        assert h.orch.is_streaming is False
        assert loop.run_once() is False
        assert h.orch.streaming_writes == 0

    def test_cancellation_race_in_flight_pass(self):
        """Stop während ein Streaming-Pass läuft: null Schreibzugriffe danach."""
        engine = FakeEngine(
            text="Finaler Text",
            stream_chunks=[["Vorschau"]],
            stream_results=["Vorschau Text"],
        )
        engine.release = threading.Event()
        h = Harness(engine)
        h.orch.start()
        h.audio.record(1.0)

        worker = threading.Thread(target=h.orch.streaming_loop.run_once)
        worker.start()
        assert engine.entered.wait(2)

        h.orch.stop()
        engine.release.set()
        worker.join(2)

        assert h.orch.streaming_writes == 0
        assert h.partials == [""]
        assert h.orch.partial_text == ""
        assert h.sink.inserted == [("Finaler Text", False)]

    def test_streaming_uses_session_language(self):
        h = Harness(
            FakeEngine(stream_results=["hi"]),
            settings=DictationSettings(language="en"),
        )
        h.orch.start()
        h.audio.record(1.0)
        h.orch.streaming_loop.run_once()

        assert h.engine.stream_calls[0]["language"] == "en"


# =============================================================================
# Profile & App-Kontext
# =============================================================================


class TestProfiles:
    def test_profile_overrides_language_and_engine(self):
        profiles = (
            Profile(name="Slack", app_ids=("com.slack",), language="en", engine="cloud"),
        )
        h = Harness(
            FakeEngine("local"),
            FakeEngine("cloud", text="From cloud"),
            profiles=profiles,
            detector=FakeAppDetector(ActiveApp(name="Slack", bundle_id="com.slack")),
        )
        h.dictate()

        assert h.engines[1].calls[0]["language"] == "en"
        assert h.engines[0].calls == []
        assert h.sink.inserted == [("From cloud", False)]

    def test_profile_auto_language_overrides_global(self):
        profiles = (Profile(name="Auto", app_ids=("com.slack",), language="auto"),)
        h = Harness(
            settings=DictationSettings(language="de"),
            profiles=profiles,
            detector=FakeAppDetector(ActiveApp(name="Slack", bundle_id="com.slack")),
        )
        h.dictate()

        assert h.engine.calls[0]["language"] is None

    def test_url_refines_profile(self):
        profiles = (
            Profile(name="Safari", app_ids=(SAFARI,), language="de"),
            Profile(name="GitHub", url_patterns=("github.com",), language="en"),
        )
        detector = FakeAppDetector(
            ActiveApp(name="Safari", bundle_id=SAFARI), url="https://github.com/x/y"
        )
        h = Harness(profiles=profiles, detector=detector)

        h.orch.start()
        assert h.orch.active_profile_name == "GitHub"
        h.audio.record(1.0)
        h.orch.stop()

        assert detector.url_lookups == 1
        assert h.engine.calls[0]["language"] == "en"
        assert h.history.records[0]["url"] == "https://github.com/x/y"

    def test_no_url_lookup_for_unknown_app(self):
        detector = FakeAppDetector(ActiveApp(), url="https://github.com")
        h = Harness(detector=detector)
        h.dictate()

        assert detector.url_lookups == 0

    def test_app_detection_failure_uses_globals(self):
        detector = Mock()
        detector.capture.side_effect = RuntimeError("NSWorkspace")
        h = Harness(detector=detector)

        assert h.orch.start() is True
        assert h.orch.session.active_app == ActiveApp()


class TestPipeline:
    def test_prompt_and_translation_target(self):
        pipeline = Mock()
        pipeline.prompt.return_value = "Groq, dictaflow"
        pipeline.process.side_effect = lambda text, translation_target=None: text.upper()
        h = Harness(
            FakeEngine(streaming=False),
            settings=DictationSettings(translation_target="en"),
            pipeline=pipeline,
        )
        h.dictate()

        assert h.engine.calls[0]["prompt"] == "Groq, dictaflow"
        pipeline.process.assert_called_once_with("Hallo Welt", translation_target="en")
        assert h.sink.inserted == [("HALLO WELT", False)]
        assert h.history.records[0]["raw_text"] == "Hallo Welt"
        assert h.history.records[0]["final_text"] == "HALLO WELT"


class TestSilenceWatch:
    def test_toggle_mode_watches_silence(self):
        h = Harness(settings=DictationSettings(hotkey_mode=HotkeyMode.toggle, silence_timeout=3.0))
        h.orch.start()

        assert h.audio.silence_seconds == 3.0
        assert h.audio.silence_callback is not None

        h.audio.record(1.0)
        h.orch.stop()
        assert h.audio.silence_callback is None

    def test_hold_mode_has_no_silence_watch(self):
        h = Harness()
        h.orch.start()

        assert h.audio.silence_callback is None


# =============================================================================
# HTTP-Pfad & Hintergrund-Threads
# =============================================================================


class TestTranscribeSamples:
    def test_returns_processed_text_without_state_change(self):
        h = Harness()
        h.audio.record(1.0)

        result = h.orch.transcribe_samples(h.audio.buffer.drain(), language="fr")

        assert result.text == "Hallo Welt"
        assert result.detected_language == "fr"
        assert h.orch.state == DictationState.IDLE
        assert h.states == []
        assert len(h.history.records) == 1

    def test_errors_propagate(self):
        h = Harness(FakeEngine(ready=False))

        with pytest.raises(EngineNotLoadedError):
            h.orch.transcribe_samples(h.audio.buffer.drain())

        assert h.orch.state == DictationState.IDLE

    def test_keeps_session_id_of_running_dictation(self):
        h = Harness()
        assert h.orch.start()
        session_id = get_session_id()

        h.audio.record(1.0)
        h.orch.transcribe_samples(h.audio.buffer.peek())

        assert get_session_id() == session_id
        assert h.orch.session.session_id == session_id


class TestBackground:
    def test_worker_thread_delivers(self):
        h = Harness(background=True)
        h.orch.start()
        h.audio.record(1.0)
        h.orch.stop()

        h.orch.join(5)

        assert h.orch.state == DictationState.INSERTING
        assert h.sink.inserted == [("Hallo Welt", False)]
