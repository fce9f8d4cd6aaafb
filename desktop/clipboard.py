"""Clipboard-Implementierungen.

Plattformspezifische Clipboard-Operationen mit einheitlichem Interface.
macOS: pbcopy/pbpaste via subprocess
Sonst: pyperclip
"""

import logging
import os
import subprocess
import sys

import pyperclip

logger = logging.getLogger("dictaflow.desktop.clipboard")


def _get_utf8_env() -> dict:
    """Environment mit UTF-8 Locale für pbcopy/pbpaste.

    Ohne explizite Locale werden Umlaute (ü → √º) falsch kodiert, wenn der
    Prozess keine Shell-Locale erbt.
    """
    env = os.environ.copy()
    env["LANG"] = "en_US.UTF-8"
    env["LC_ALL"] = "en_US.UTF-8"
    return env


class MacOSClipboard:
    """macOS Clipboard via pbcopy/pbpaste."""

    def copy(self, text: str) -> bool:
        try:
            process = subprocess.run(
                ["pbcopy"],
                input=text.encode("utf-8"),
                timeout=2,
                capture_output=True,
                env=_get_utf8_env(),
            )
        except subprocess.TimeoutExpired:
            logger.error("pbcopy Timeout")
            return False
        except OSError as e:
            logger.error(f"Clipboard-Fehler: {e}")
            return False
        if process.returncode != 0:
            logger.error(f"pbcopy fehlgeschlagen: {process.stderr.decode()}")
            return False
        logger.debug(f"pbcopy: {len(text)} Zeichen kopiert")
        return True

    def paste(self) -> str | None:
        try:
            process = subprocess.run(
                ["pbpaste"],
                capture_output=True,
                timeout=2,
                env=_get_utf8_env(),
            )
        except (subprocess.TimeoutExpired, OSError):
            return None
        if process.returncode != 0:
            return None
        return process.stdout.decode("utf-8")


class PyperclipClipboard:
    """Clipboard via pyperclip (Windows, Linux mit xclip/wl-clipboard)."""

    def copy(self, text: str) -> bool:
        try:
            pyperclip.copy(text)
        except pyperclip.PyperclipException as e:
            logger.error(f"Clipboard-Fehler: {e}")
            return False
        return True

    def paste(self) -> str | None:
        try:
            return pyperclip.paste()
        except pyperclip.PyperclipException:
            return None


def get_clipboard():
    """Gibt den passenden Clipboard-Handler für die aktuelle Plattform zurück."""
    if sys.platform == "darwin":
        return MacOSClipboard()
    return PyperclipClipboard()


__all__ = ["MacOSClipboard", "PyperclipClipboard", "get_clipboard"]
