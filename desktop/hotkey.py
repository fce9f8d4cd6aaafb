"""Globaler Hotkey via pynput (Toggle- und Hold-Modus).

Toggle: Drücken startet, erneutes Drücken stoppt.
Hold:   Aufnahme läuft, solange die Kombination gehalten wird.
"""

import logging
from typing import Callable

from cli.types import HotkeyMode

logger = logging.getLogger("dictaflow.desktop.hotkey")

DEFAULT_HOTKEY = "ctrl+alt+space"


def parse_hotkey(hotkey_str: str, keyboard) -> set:
    """Parst 'ctrl+alt+space' in ein pynput-Key-Set.

    Raises:
        ValueError: Bei unbekannten Tasten oder leerem Hotkey
    """
    parts = [p.strip().lower() for p in hotkey_str.split("+") if p.strip()]
    if not parts:
        raise ValueError("Leerer Hotkey")

    special_map = {
        "space": keyboard.Key.space,
        "tab": keyboard.Key.tab,
        "enter": keyboard.Key.enter,
        "return": keyboard.Key.enter,
        "esc": keyboard.Key.esc,
        "escape": keyboard.Key.esc,
    }

    keys: set = set()
    for part in parts:
        if part in ("ctrl", "control"):
            keys.add(keyboard.Key.ctrl)
        elif part in ("alt", "option"):
            keys.add(keyboard.Key.alt)
        elif part == "shift":
            keys.add(keyboard.Key.shift)
        elif part in ("cmd", "command", "win"):
            keys.add(keyboard.Key.cmd)
        elif part in special_map:
            keys.add(special_map[part])
        elif part.startswith("f") and part[1:].isdigit():
            f_key = getattr(keyboard.Key, part, None)
            if f_key is None:
                raise ValueError(f"Unbekannte Funktionstaste: {part}")
            keys.add(f_key)
        elif part in ("capslock", "caps_lock", "caps"):
            keys.add(keyboard.Key.caps_lock)
        elif len(part) == 1:
            keys.add(keyboard.KeyCode.from_char(part))
        else:
            raise ValueError(f"Unbekannte Taste: {part}")
    return keys


def make_key_normalizer(keyboard) -> Callable:
    """Bildet links/rechts-Varianten der Modifier auf die generische Taste ab."""
    variants = {}
    for generic, names in (
        (keyboard.Key.ctrl, ("ctrl_l", "ctrl_r")),
        (keyboard.Key.alt, ("alt_l", "alt_r", "alt_gr")),
        (keyboard.Key.shift, ("shift_l", "shift_r")),
        (keyboard.Key.cmd, ("cmd_l", "cmd_r")),
    ):
        for name in names:
            key = getattr(keyboard.Key, name, None)
            if key is not None and key != generic:
                variants[key] = generic

    def normalize_key(key):
        if key in variants:
            return variants[key]
        char = getattr(key, "char", None)
        if isinstance(key, keyboard.KeyCode) and char:
            return keyboard.KeyCode.from_char(char.lower())
        return key

    return normalize_key


class HotkeyListener:
    """Verbindet einen pynput-Listener mit Start/Stop-Callbacks.

    Im Toggle-Modus ruft jede Aktivierung `on_toggle`; im Hold-Modus
    ruft Aktivierung `on_press`, Loslassen `on_release`.
    """

    def __init__(
        self,
        hotkey: str,
        mode: HotkeyMode,
        *,
        on_toggle: Callable[[], None] | None = None,
        on_press: Callable[[], None] | None = None,
        on_release: Callable[[], None] | None = None,
    ) -> None:
        from pynput import keyboard

        self.hotkey = hotkey
        self.mode = mode
        self._keyboard = keyboard
        self._keys = parse_hotkey(hotkey, keyboard)
        self._normalize = make_key_normalizer(keyboard)
        self._on_toggle = on_toggle
        self._on_press = on_press
        self._on_release = on_release
        self._current: set = set()
        self._active = False
        self._listener = None

    @staticmethod
    def _safe_call(fn) -> None:
        if fn is None:
            return
        try:
            fn()
        except Exception:
            logger.exception("Hotkey-Callback fehlgeschlagen")

    def _activate(self) -> None:
        if self.mode == HotkeyMode.hold:
            self._safe_call(self._on_press)
        else:
            self._safe_call(self._on_toggle)

    def _deactivate(self) -> None:
        if self.mode == HotkeyMode.hold:
            self._safe_call(self._on_release)

    def handle_press(self, key) -> None:
        self._current.add(self._normalize(key))
        if not self._active and self._keys.issubset(self._current):
            self._active = True
            logger.debug(f"Hotkey '{self.hotkey}' aktiviert")
            self._activate()

    def handle_release(self, key) -> None:
        self._current.discard(self._normalize(key))
        if self._active and not self._keys.issubset(self._current):
            self._active = False
            self._deactivate()

    def start(self) -> None:
        self._listener = self._keyboard.Listener(
            on_press=self.handle_press, on_release=self.handle_release
        )
        self._listener.daemon = True
        self._listener.start()
        logger.info(f"Hotkey '{self.hotkey}' registriert ({self.mode.value})")

    def join(self) -> None:
        if self._listener is not None:
            self._listener.join()

    def stop(self) -> None:
        if self._listener is not None:
            self._listener.stop()
            self._listener = None


__all__ = ["DEFAULT_HOTKEY", "HotkeyListener", "make_key_normalizer", "parse_hotkey"]
