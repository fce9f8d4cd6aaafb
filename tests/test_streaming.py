"""Tests für den Streaming-Loop (Live-Vorschau)."""

import pytest

from dictation.session import CancellationToken
from dictation.streaming import StabilizationState, StreamingLoop
from fakes import FakeBuffer, FakeEngine


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture
def published():
    return []


def _loop(engine, buffer, token, published, **kwargs) -> StreamingLoop:
    def publish(text, confirmed):
        published.append((text, confirmed))

    kwargs.setdefault("initial_delay", 0)
    kwargs.setdefault("interval", 0)
    return StreamingLoop(engine, buffer, token, publish, **kwargs)


class TestRunOnce:
    def test_skips_short_window(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(0.2)
        engine = FakeEngine(stream_results=["zu kurz"])

        assert _loop(engine, buffer, token, published).run_once() is False
        assert engine.stream_calls == []
        assert published == []

    def test_skips_when_cancelled(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(2.0)
        engine = FakeEngine(stream_results=["egal"])
        token.cancel()

        assert _loop(engine, buffer, token, published).run_once() is False
        assert engine.stream_calls == []

    def test_growing_preview(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(stream_results=["hello wor", "hello world"])
        loop = _loop(engine, buffer, token, published, language="en")

        loop.run_once()
        buffer.append_seconds(1.0)
        loop.run_once()

        assert published == [("hello wor", True), ("hello world", True)]
        assert loop.passes == 2
        assert engine.stream_calls[0]["language"] == "en"
        # Ohne Fensterbegrenzung wird immer der ganze Puffer dekodiert
        assert buffer.peeks == [0, 0]

    def test_progress_chunks_published_unconfirmed(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(
            stream_chunks=[["Hallo", "Hallo Wel"]], stream_results=["Hallo Welt"]
        )

        _loop(engine, buffer, token, published).run_once()

        assert published == [
            ("Hallo", False),
            ("Hallo Wel", False),
            ("Hallo Welt", True),
        ]

    def test_engine_error_is_swallowed(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(stream_error=RuntimeError("GPU weg"))
        loop = _loop(engine, buffer, token, published)

        assert loop.run_once() is True
        assert published == []
        assert loop.passes == 0
        assert loop.state.confirmed == ""

    def test_no_publish_after_cancel_mid_pass(self, token):
        """Abbruch während eines Passes: Endergebnis wird nicht veröffentlicht."""
        published = []

        def publish(text, confirmed):
            published.append((text, confirmed))
            token.cancel()

        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(
            stream_chunks=[["Hallo", "Hallo Welt"]], stream_results=["Hallo Welt!"]
        )
        loop = StreamingLoop(engine, buffer, token, publish, initial_delay=0, interval=0)

        loop.run_once()

        # Der zweite Chunk wird gar nicht mehr gemeldet
        assert published == [("Hallo", False)]
        assert loop.passes == 0


class TestWindowReset:
    def test_reset_freezes_confirmed_text(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(0.8)
        engine = FakeEngine(stream_results=["eins zwei", "drei"])
        loop = _loop(engine, buffer, token, published, max_window=1.0)

        loop.run_once()
        buffer.append_seconds(1.2)
        loop.run_once()

        assert published[-1] == ("eins zwei drei", True)
        assert loop.state.committed == "eins zwei"
        assert loop.state.confirmed == "drei"
        assert loop.state.window_reset is True
        # Neues Fenster beginnt hinter dem bereits dekodierten Audio
        assert buffer.peeks == [0, 12800]

    def test_no_reset_before_first_pass(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(3.0)
        engine = FakeEngine(stream_results=["alles"])
        loop = _loop(engine, buffer, token, published, max_window=1.0)

        loop.run_once()

        assert buffer.peeks == [0]
        assert loop.state.window_reset is False


class TestRunLoop:
    def test_run_returns_immediately_when_cancelled(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(stream_results=["nie"])
        token.cancel()

        _loop(engine, buffer, token, published).run()

        assert engine.stream_calls == []

    def test_run_stops_after_cancel(self, token):
        published = []

        def publish(text, confirmed):
            published.append((text, confirmed))
            if confirmed:
                token.cancel()

        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(stream_results=["eins", "zwei"])
        loop = StreamingLoop(engine, buffer, token, publish, initial_delay=0, interval=0)

        loop.run()

        assert published == [("eins", True)]
        assert len(engine.stream_calls) == 1

    def test_background_thread(self, token, published):
        buffer = FakeBuffer()
        buffer.append_seconds(1.0)
        engine = FakeEngine(stream_results=["eins"], stream_error=None)
        loop = _loop(engine, buffer, token, published, interval=10)

        thread = loop.start()
        assert engine.entered.wait(2)
        token.cancel()
        loop.join(2)

        assert not thread.is_alive()
        assert thread.name == "StreamingWorker"


class TestStabilizationState:
    def test_compose(self):
        state = StabilizationState(committed="eins zwei")
        assert state.compose("drei") == "eins zwei drei"
        assert state.compose("") == "eins zwei"
        assert StabilizationState().compose("drei") == "drei"
