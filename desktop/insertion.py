"""Text-Auslieferung: Clipboard + simuliertes Einfügen.

Der Text landet immer in der Zwischenablage und bleibt dort als Fallback.
Mit Bedienungshilfen-Zugriff wird zusätzlich Cmd+V (bzw. Ctrl+V) gesendet.
"""

import logging
import sys
import time
from typing import Callable

from dictation.errors import InsertionFailedError
from dictation.state import InsertionResult
from utils.timing import log_preview

from .clipboard import get_clipboard
from .permissions import has_accessibility_permission

logger = logging.getLogger("dictaflow.desktop.insertion")

# Pause zwischen Clipboard-Update und Tastendruck (Clipboard-Sync)
PASTE_DELAY = 0.05


def _paste_via_pynput() -> bool:
    """Paste via pynput (Cross-Platform, braucht Accessibility)."""
    from pynput.keyboard import Controller, Key

    modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
    try:
        keyboard = Controller()
        keyboard.press(modifier)
        keyboard.press("v")
        keyboard.release("v")
        keyboard.release(modifier)
    except Exception as e:
        logger.warning(f"pynput fehlgeschlagen: {e}")
        return False

    logger.info("Auto-Paste: Tastenkürzel gesendet via pynput")
    return True


class ClipboardTextSink:
    """TextSink über die Zwischenablage.

    `force_paste` sendet den Tastendruck auch ohne bestätigten
    Bedienungshilfen-Zugriff (z.B. auf Plattformen, die ihn nicht melden).
    """

    def __init__(
        self,
        clipboard=None,
        paste: Callable[[], bool] = _paste_via_pynput,
        has_accessibility: Callable[[], bool] = has_accessibility_permission,
        paste_delay: float = PASTE_DELAY,
    ) -> None:
        self._clipboard = clipboard or get_clipboard()
        self._paste = paste
        self._has_accessibility = has_accessibility
        self._paste_delay = paste_delay

    def insert_text(self, text: str, force_paste: bool = False) -> InsertionResult:
        """Kopiert `text` und fügt ihn wenn möglich ein.

        Raises:
            InsertionFailedError: Wenn nicht einmal das Kopieren gelingt
        """
        logger.info(f"Auto-Paste: '{log_preview(text, 50)}'")
        if not self._clipboard.copy(text):
            raise InsertionFailedError("Text konnte nicht in die Zwischenablage kopiert werden")

        if not (force_paste or self._has_accessibility()):
            logger.info("Kein Bedienungshilfen-Zugriff, Text liegt in der Zwischenablage")
            return InsertionResult.COPIED_TO_CLIPBOARD

        if self._paste_delay:
            time.sleep(self._paste_delay)
        if self._paste():
            return InsertionResult.PASTED
        return InsertionResult.COPIED_TO_CLIPBOARD


__all__ = ["ClipboardTextSink"]
