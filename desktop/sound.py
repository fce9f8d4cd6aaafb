"""Akustisches Feedback bei Aufnahme-Start, Erfolg und Fehler.

macOS: System-Sounds über AudioToolbox (ctypes), afplay als Fallback.
Windows: winsound mit System-Sound-Aliasen.
Andere Plattformen: stumm.
"""

import logging
import subprocess
import sys

logger = logging.getLogger("dictaflow.desktop.sound")

# Ereignis → System-Sound
MACOS_SOUNDS = {
    "start": "/System/Library/Sounds/Tink.aiff",
    "success": "/System/Library/Sounds/Pop.aiff",
    "error": "/System/Library/Sounds/Basso.aiff",
}

WINDOWS_SOUNDS = {
    "start": "SystemAsterisk",
    "success": "SystemExclamation",
    "error": "SystemHand",
}

_UTF8 = 0x08000100  # kCFStringEncodingUTF8


class MacOSSoundPlayer:
    """Spielt System-Sounds über AudioServices ab.

    Sound-IDs werden pro Ereignis gecacht; der erste Aufruf lädt die Datei,
    danach kostet ein Abspielen kaum Zeit. Ohne AudioToolbox läuft alles
    über `afplay`.
    """

    def __init__(self) -> None:
        self._sound_ids: dict[str, int] = {}
        self._ctypes = None
        self._toolbox = None
        self._cf = None

        try:
            import ctypes

            toolbox = ctypes.CDLL(
                "/System/Library/Frameworks/AudioToolbox.framework/AudioToolbox"
            )
            cf = ctypes.CDLL(
                "/System/Library/Frameworks/CoreFoundation.framework/CoreFoundation"
            )
            cf.CFStringCreateWithCString.restype = ctypes.c_void_p
            cf.CFStringCreateWithCString.argtypes = [
                ctypes.c_void_p,
                ctypes.c_char_p,
                ctypes.c_uint32,
            ]
            cf.CFURLCreateWithFileSystemPath.restype = ctypes.c_void_p
            cf.CFURLCreateWithFileSystemPath.argtypes = [
                ctypes.c_void_p,
                ctypes.c_void_p,
                ctypes.c_int,
                ctypes.c_bool,
            ]
            cf.CFRelease.restype = None
            cf.CFRelease.argtypes = [ctypes.c_void_p]
            toolbox.AudioServicesCreateSystemSoundID.restype = ctypes.c_int32
            toolbox.AudioServicesCreateSystemSoundID.argtypes = [
                ctypes.c_void_p,
                ctypes.POINTER(ctypes.c_uint32),
            ]
        except (OSError, AttributeError) as e:
            logger.debug(f"AudioToolbox nicht verfügbar, nutze afplay: {e}")
            return

        self._ctypes = ctypes
        self._toolbox = toolbox
        self._cf = cf

    def _create_sound_id(self, path: str) -> int | None:
        if self._toolbox is None:
            return None

        cf_string = cf_url = None
        try:
            cf_string = self._cf.CFStringCreateWithCString(None, path.encode(), _UTF8)
            if not cf_string:
                return None
            # kCFURLPOSIXPathStyle = 0
            cf_url = self._cf.CFURLCreateWithFileSystemPath(None, cf_string, 0, False)
            if not cf_url:
                return None
            sound_id = self._ctypes.c_uint32(0)
            status = self._toolbox.AudioServicesCreateSystemSoundID(
                cf_url, self._ctypes.byref(sound_id)
            )
            return sound_id.value if status == 0 else None
        except (OSError, ValueError) as e:
            logger.debug(f"Sound-ID für {path} nicht erzeugt: {e}")
            return None
        finally:
            if cf_url:
                self._cf.CFRelease(cf_url)
            if cf_string:
                self._cf.CFRelease(cf_string)

    def play(self, event: str) -> None:
        path = MACOS_SOUNDS.get(event)
        if path is None:
            logger.warning(f"Unbekanntes Sound-Ereignis: {event}")
            return

        if event not in self._sound_ids:
            sound_id = self._create_sound_id(path)
            if sound_id is None:
                self._play_afplay(path)
                return
            self._sound_ids[event] = sound_id

        try:
            # Nicht-blockierend
            self._toolbox.AudioServicesPlaySystemSound(self._sound_ids[event])
        except OSError:
            self._play_afplay(path)

    @staticmethod
    def _play_afplay(path: str) -> None:
        try:
            subprocess.Popen(
                ["afplay", path], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
            )
        except OSError as e:
            logger.debug(f"afplay fehlgeschlagen: {e}")


class WindowsSoundPlayer:
    """System-Sounds über winsound (asynchron)."""

    def __init__(self) -> None:
        import winsound

        self._winsound = winsound

    def play(self, event: str) -> None:
        alias = WINDOWS_SOUNDS.get(event)
        if alias is None:
            logger.warning(f"Unbekanntes Sound-Ereignis: {event}")
            return
        try:
            self._winsound.PlaySound(
                alias, self._winsound.SND_ALIAS | self._winsound.SND_ASYNC
            )
        except RuntimeError as e:
            logger.debug(f"Sound-Playback fehlgeschlagen: {e}")


class NullSoundPlayer:
    def play(self, event: str) -> None:
        pass


def get_sound_player():
    """Sound-Player der aktuellen Plattform (stumm, wo es keinen gibt)."""
    if sys.platform == "darwin":
        return MacOSSoundPlayer()
    if sys.platform == "win32":
        return WindowsSoundPlayer()
    return NullSoundPlayer()


__all__ = [
    "MacOSSoundPlayer",
    "NullSoundPlayer",
    "WindowsSoundPlayer",
    "get_sound_player",
]
