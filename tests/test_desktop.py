"""Tests für Desktop-Integration: Einfügen, Clipboard, Hotkey, App-Detection.

pynput und AppKit werden nie echt geladen; ein Fake-Keyboard-Modul ersetzt
pynput.keyboard (headless CI hat kein X-Display).
"""

import subprocess
import sys
import types
from unittest.mock import Mock, patch

import pyperclip
import pytest

from cli.types import HotkeyMode
from desktop import app_detection, permissions, sound
from desktop.app_detection import (
    MacOSAppDetector,
    NullAppDetector,
    browser_url_script,
    get_app_detector,
    is_valid_url,
)
from desktop.clipboard import MacOSClipboard, PyperclipClipboard
from desktop.hotkey import HotkeyListener, make_key_normalizer, parse_hotkey
from desktop.insertion import ClipboardTextSink
from desktop.permissions import AccessibilityPermission
from desktop.sound import MACOS_SOUNDS, MacOSSoundPlayer, NullSoundPlayer, get_sound_player
from dictation.errors import InsertionFailedError
from dictation.session import ActiveApp
from dictation.state import InsertionResult

# =============================================================================
# Fake pynput.keyboard
# =============================================================================


class FakeKeyCode:
    def __init__(self, char):
        self.char = char

    @classmethod
    def from_char(cls, char):
        return cls(char)

    def __eq__(self, other):
        return isinstance(other, FakeKeyCode) and other.char == self.char

    def __hash__(self):
        return hash(("keycode", self.char))

    def __repr__(self):
        return f"KeyCode({self.char!r})"


_KEY_NAMES = [
    "ctrl", "ctrl_l", "ctrl_r", "alt", "alt_l", "alt_r", "alt_gr",
    "shift", "shift_l", "shift_r", "cmd", "cmd_l", "cmd_r",
    "space", "tab", "enter", "esc", "caps_lock",
] + [f"f{i}" for i in range(1, 21)]


def _fake_keyboard():
    return types.SimpleNamespace(
        Key=types.SimpleNamespace(**{name: f"Key.{name}" for name in _KEY_NAMES}),
        KeyCode=FakeKeyCode,
        Listener=Mock(),
    )


@pytest.fixture
def keyboard():
    return _fake_keyboard()


@pytest.fixture
def fake_pynput(monkeypatch, keyboard):
    package = types.ModuleType("pynput")
    package.keyboard = keyboard
    monkeypatch.setitem(sys.modules, "pynput", package)
    monkeypatch.setitem(sys.modules, "pynput.keyboard", keyboard)
    return keyboard


# =============================================================================
# Hotkey
# =============================================================================


class TestParseHotkey:
    def test_default_combo(self, keyboard):
        keys = parse_hotkey("ctrl+alt+space", keyboard)
        assert keys == {"Key.ctrl", "Key.alt", "Key.space"}

    def test_aliases_and_chars(self, keyboard):
        keys = parse_hotkey("Command + Option + D", keyboard)
        assert keys == {"Key.cmd", "Key.alt", FakeKeyCode("d")}

    def test_function_key(self, keyboard):
        assert parse_hotkey("f19", keyboard) == {"Key.f19"}

    @pytest.mark.parametrize("hotkey", ["", "+", "ctrl+hyper", "f99"])
    def test_invalid(self, keyboard, hotkey):
        with pytest.raises(ValueError):
            parse_hotkey(hotkey, keyboard)


class TestKeyNormalizer:
    def test_left_right_modifiers(self, keyboard):
        normalize = make_key_normalizer(keyboard)

        assert normalize("Key.ctrl_l") == "Key.ctrl"
        assert normalize("Key.alt_gr") == "Key.alt"
        assert normalize("Key.space") == "Key.space"

    def test_chars_are_lowercased(self, keyboard):
        normalize = make_key_normalizer(keyboard)
        assert normalize(FakeKeyCode("D")) == FakeKeyCode("d")


class TestHotkeyListener:
    def test_toggle_mode_fires_once_per_activation(self, fake_pynput):
        on_toggle = Mock()
        listener = HotkeyListener("ctrl+space", HotkeyMode.toggle, on_toggle=on_toggle)

        listener.handle_press("Key.ctrl_l")
        listener.handle_press("Key.space")
        # Auto-Repeat der gehaltenen Taste
        listener.handle_press("Key.space")
        listener.handle_release("Key.space")
        listener.handle_release("Key.ctrl_l")

        on_toggle.assert_called_once()

    def test_hold_mode_press_and_release(self, fake_pynput):
        on_press, on_release = Mock(), Mock()
        listener = HotkeyListener(
            "ctrl+space", HotkeyMode.hold, on_press=on_press, on_release=on_release
        )

        listener.handle_press("Key.ctrl")
        listener.handle_press("Key.space")
        on_press.assert_called_once()
        on_release.assert_not_called()

        listener.handle_release("Key.ctrl")
        on_release.assert_called_once()

    def test_callback_errors_are_isolated(self, fake_pynput):
        listener = HotkeyListener(
            "f19", HotkeyMode.toggle, on_toggle=Mock(side_effect=RuntimeError("x"))
        )

        listener.handle_press("Key.f19")
        listener.handle_release("Key.f19")

    def test_start_and_stop_listener(self, fake_pynput):
        listener = HotkeyListener("f19", HotkeyMode.toggle, on_toggle=Mock())

        listener.start()
        pynput_listener = fake_pynput.Listener.return_value
        pynput_listener.start.assert_called_once()
        assert fake_pynput.Listener.call_args.kwargs["on_press"] == listener.handle_press

        listener.stop()
        pynput_listener.stop.assert_called_once()


# =============================================================================
# Einfügen & Clipboard
# =============================================================================


class TestClipboardTextSink:
    def _sink(self, *, copy_ok=True, paste_ok=True, accessibility=True):
        clipboard = Mock()
        clipboard.copy.return_value = copy_ok
        paste = Mock(return_value=paste_ok)
        sink = ClipboardTextSink(
            clipboard=clipboard,
            paste=paste,
            has_accessibility=lambda: accessibility,
            paste_delay=0,
        )
        return sink, clipboard, paste

    def test_pastes_with_accessibility(self):
        sink, clipboard, paste = self._sink()

        assert sink.insert_text("Hallo") == InsertionResult.PASTED
        clipboard.copy.assert_called_once_with("Hallo")
        paste.assert_called_once()

    def test_copy_only_without_accessibility(self):
        sink, _clipboard, paste = self._sink(accessibility=False)

        assert sink.insert_text("Hallo") == InsertionResult.COPIED_TO_CLIPBOARD
        paste.assert_not_called()

    def test_force_paste_ignores_accessibility(self):
        sink, _clipboard, paste = self._sink(accessibility=False)

        assert sink.insert_text("Hallo", force_paste=True) == InsertionResult.PASTED
        paste.assert_called_once()

    def test_failed_paste_keeps_clipboard(self):
        sink, _clipboard, _paste = self._sink(paste_ok=False)

        assert sink.insert_text("Hallo") == InsertionResult.COPIED_TO_CLIPBOARD

    def test_failed_copy_raises(self):
        sink, _clipboard, paste = self._sink(copy_ok=False)

        with pytest.raises(InsertionFailedError):
            sink.insert_text("Hallo")
        paste.assert_not_called()


class TestClipboards:
    def test_pyperclip_copy(self):
        with patch("pyperclip.copy") as copy:
            assert PyperclipClipboard().copy("Grüße") is True
        copy.assert_called_once_with("Grüße")

    def test_pyperclip_error(self):
        with patch("pyperclip.copy", side_effect=pyperclip.PyperclipException("kein xclip")):
            assert PyperclipClipboard().copy("x") is False

    def test_pbcopy_uses_utf8(self):
        completed = subprocess.CompletedProcess(["pbcopy"], 0, b"", b"")
        with patch("desktop.clipboard.subprocess.run", return_value=completed) as run:
            assert MacOSClipboard().copy("Grüße") is True

        kwargs = run.call_args.kwargs
        assert kwargs["input"] == "Grüße".encode("utf-8")
        assert kwargs["env"]["LC_ALL"] == "en_US.UTF-8"

    def test_pbcopy_failure(self):
        completed = subprocess.CompletedProcess(["pbcopy"], 1, b"", b"kaputt")
        with patch("desktop.clipboard.subprocess.run", return_value=completed):
            assert MacOSClipboard().copy("x") is False

    def test_pbcopy_timeout(self):
        with patch(
            "desktop.clipboard.subprocess.run",
            side_effect=subprocess.TimeoutExpired("pbcopy", 2),
        ):
            assert MacOSClipboard().copy("x") is False


# =============================================================================
# App-Detection
# =============================================================================


class TestUrlHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://github.com", True),
            ("file:///tmp/x.html", True),
            ("missing value", False),
            ("", False),
            (None, False),
            ("https://" + "a" * 3000, False),
        ],
    )
    def test_is_valid_url(self, value, expected):
        assert is_valid_url(value) is expected

    def test_safari_script_uses_current_tab(self):
        script = browser_url_script(ActiveApp(name="Safari", bundle_id="com.apple.Safari"))
        assert 'tell application "Safari"' in script
        assert "current tab" in script

    def test_chromium_script_uses_active_tab(self):
        script = browser_url_script(ActiveApp(name="Arc", bundle_id="company.thebrowser.Browser"))
        assert "active tab" in script

    def test_non_browser_has_no_script(self):
        assert browser_url_script(ActiveApp(name="Slack", bundle_id="com.tinyspeck.slackmacgap")) is None
        assert browser_url_script(ActiveApp()) is None


class TestMacOSUrlLookup:
    @pytest.fixture
    def detector(self):
        # Ohne AppKit: Konstruktor überspringen, nur resolve_url testen
        return MacOSAppDetector.__new__(MacOSAppDetector)

    SAFARI = ActiveApp(name="Safari", bundle_id="com.apple.Safari")

    def test_returns_url(self, detector):
        completed = subprocess.CompletedProcess([], 0, "https://github.com/x\n", "")
        with patch("desktop.app_detection.subprocess.run", return_value=completed):
            assert detector.resolve_url(self.SAFARI) == "https://github.com/x"

    def test_invalid_output_is_none(self, detector):
        completed = subprocess.CompletedProcess([], 0, "missing value\n", "")
        with patch("desktop.app_detection.subprocess.run", return_value=completed):
            assert detector.resolve_url(self.SAFARI) is None

    def test_timeout_is_none(self, detector):
        with patch(
            "desktop.app_detection.subprocess.run",
            side_effect=subprocess.TimeoutExpired("osascript", 2.5),
        ):
            assert detector.resolve_url(self.SAFARI) is None

    def test_non_browser_skips_osascript(self, detector):
        with patch("desktop.app_detection.subprocess.run") as run:
            assert detector.resolve_url(ActiveApp(name="Mail", bundle_id="com.apple.mail")) is None
        run.assert_not_called()


class TestGetAppDetector:
    def test_linux_has_null_detector(self, monkeypatch):
        monkeypatch.setattr(app_detection.sys, "platform", "linux")

        detector = get_app_detector()

        assert isinstance(detector, NullAppDetector)
        assert detector.capture() == ActiveApp()
        assert detector.resolve_url(ActiveApp(name="x")) is None

    def test_missing_pyobjc_falls_back(self, monkeypatch):
        monkeypatch.setattr(app_detection.sys, "platform", "darwin")
        monkeypatch.setitem(sys.modules, "AppKit", None)

        assert isinstance(get_app_detector(), NullAppDetector)


# =============================================================================
# Berechtigungen & Sounds
# =============================================================================


class TestAccessibilityPermission:
    def test_linux_needs_no_permission(self, monkeypatch):
        monkeypatch.setattr(permissions.sys, "platform", "linux")
        accessibility = AccessibilityPermission()

        assert accessibility.has_permission() is True
        accessibility.request_permission()

    def test_missing_quartz_only_warns(self, monkeypatch):
        monkeypatch.setattr(permissions.sys, "platform", "darwin")
        monkeypatch.setitem(sys.modules, "Quartz", None)

        AccessibilityPermission().request_permission()

    def test_prompt_via_quartz(self, monkeypatch):
        monkeypatch.setattr(permissions.sys, "platform", "darwin")
        quartz = types.ModuleType("Quartz")
        quartz.kAXTrustedCheckOptionPrompt = "AXTrustedCheckOptionPrompt"
        quartz.AXIsProcessTrustedWithOptions = Mock(return_value=False)
        monkeypatch.setitem(sys.modules, "Quartz", quartz)

        AccessibilityPermission().request_permission()

        quartz.AXIsProcessTrustedWithOptions.assert_called_once_with(
            {"AXTrustedCheckOptionPrompt": True}
        )


class TestSoundPlayer:
    def _afplay_player(self):
        player = MacOSSoundPlayer.__new__(MacOSSoundPlayer)
        player._sound_ids = {}
        player._ctypes = None
        player._toolbox = None
        player._cf = None
        return player

    def test_linux_is_silent(self, monkeypatch):
        monkeypatch.setattr(sound.sys, "platform", "linux")

        player = get_sound_player()

        assert isinstance(player, NullSoundPlayer)
        player.play("start")

    def test_afplay_without_audio_toolbox(self):
        player = self._afplay_player()

        with patch("desktop.sound.subprocess.Popen") as popen:
            player.play("start")

        assert popen.call_args.args[0] == ["afplay", MACOS_SOUNDS["start"]]
        assert player._sound_ids == {}

    def test_unknown_event_is_ignored(self):
        player = self._afplay_player()

        with patch("desktop.sound.subprocess.Popen") as popen:
            player.play("fanfare")

        popen.assert_not_called()

    def test_missing_afplay_is_ignored(self):
        player = self._afplay_player()

        with patch("desktop.sound.subprocess.Popen", side_effect=FileNotFoundError("afplay")):
            player.play("error")
