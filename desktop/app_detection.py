"""App-Detection Implementierungen.

Ermittelt die aktuell aktive Anwendung als `ActiveApp` (Name + Bundle-ID)
und, für Browser, die URL des aktiven Tabs.
macOS: NSWorkspace via PyObjC, URL via osascript
Windows: win32gui + psutil (Prozessname als App-ID)
Linux: keine Erkennung
"""

import logging
import subprocess
import sys

from dictation.session import ActiveApp

logger = logging.getLogger("dictaflow.desktop.app_detection")

SAFARI_BUNDLE_IDS = frozenset({"com.apple.Safari", "com.apple.SafariTechnologyPreview"})
CHROMIUM_BUNDLE_IDS = frozenset(
    {
        "com.google.Chrome",
        "com.google.Chrome.canary",
        "com.brave.Browser",
        "com.microsoft.edgemac",
        "com.operasoftware.Opera",
        "com.vivaldi.Vivaldi",
        "company.thebrowser.Browser",
    }
)

URL_SCRIPT_TIMEOUT = 2.5
_MAX_URL_LENGTH = 2048


def is_valid_url(value: str | None) -> bool:
    if not value:
        return False
    value = value.strip()
    if not 3 < len(value) < _MAX_URL_LENGTH:
        return False
    return value.startswith(("http://", "https://", "file://"))


def browser_url_script(app: ActiveApp) -> str | None:
    """AppleScript für die URL des aktiven Tabs, None für Nicht-Browser.

    Firefox bietet kein AppleScript-API für Tabs und fehlt deshalb.
    """
    if not app.bundle_id or not app.name:
        return None
    if app.bundle_id in SAFARI_BUNDLE_IDS:
        tab = "current tab"
    elif app.bundle_id in CHROMIUM_BUNDLE_IDS:
        tab = "active tab"
    else:
        return None
    return (
        f'tell application "{app.name}"\n'
        f"    if (count of windows) > 0 then\n"
        f"        return URL of {tab} of front window\n"
        f"    end if\n"
        f"end tell\n"
        f'return ""'
    )


class MacOSAppDetector:
    """macOS App-Detection via NSWorkspace.

    NSWorkspace statt AppleScript: ~0.2ms vs ~207ms. Nur die Browser-URL
    braucht osascript und läuft deshalb asynchron nach dem Capture.
    """

    def __init__(self) -> None:
        from AppKit import NSWorkspace  # type: ignore[import-not-found]

        self._ns_workspace = NSWorkspace

    def capture(self) -> ActiveApp:
        try:
            app = self._ns_workspace.sharedWorkspace().frontmostApplication()
        except Exception as e:
            logger.debug(f"App-Detection fehlgeschlagen: {e}")
            return ActiveApp()
        if app is None:
            return ActiveApp()
        return ActiveApp(name=app.localizedName(), bundle_id=app.bundleIdentifier())

    def resolve_url(self, app: ActiveApp) -> str | None:
        script = browser_url_script(app)
        if script is None:
            return None
        try:
            result = subprocess.run(
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=URL_SCRIPT_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"osascript Timeout nach {URL_SCRIPT_TIMEOUT}s ({app.name})")
            return None
        except OSError as e:
            logger.debug(f"osascript nicht ausführbar: {e}")
            return None
        if result.returncode != 0:
            logger.debug(f"osascript fehlgeschlagen: {result.stderr.strip()}")
            return None
        url = result.stdout.strip()
        return url if is_valid_url(url) else None


class WindowsAppDetector:
    """Windows App-Detection via win32gui + psutil.

    GetForegroundWindow() liefert das aktive Fenster, der Prozessname
    (ohne .exe) dient als App-ID für Profile.
    """

    def __init__(self) -> None:
        import psutil
        import win32gui  # type: ignore[import-not-found]
        import win32process  # type: ignore[import-not-found]

        self._win32gui = win32gui
        self._win32process = win32process
        self._psutil = psutil

    def capture(self) -> ActiveApp:
        try:
            hwnd = self._win32gui.GetForegroundWindow()
            if not hwnd:
                return ActiveApp()
            _, pid = self._win32process.GetWindowThreadProcessId(hwnd)
            name = self._psutil.Process(pid).name()
        except Exception as e:
            logger.debug(f"App-Detection fehlgeschlagen: {e}")
            return ActiveApp()

        if name.lower().endswith(".exe"):
            name = name[:-4]
        return ActiveApp(name=name, bundle_id=name.lower())

    def resolve_url(self, app: ActiveApp) -> str | None:
        return None


class NullAppDetector:
    """Plattformen ohne App-Detection: Diktate laufen dort mit globalen Einstellungen."""

    def capture(self) -> ActiveApp:
        return ActiveApp()

    def resolve_url(self, app: ActiveApp) -> str | None:
        return None


def get_app_detector():
    """Gibt den passenden App-Detector für die aktuelle Plattform zurück."""
    try:
        if sys.platform == "darwin":
            return MacOSAppDetector()
        if sys.platform == "win32":
            return WindowsAppDetector()
    except ImportError as e:
        logger.warning(f"App-Detection nicht verfügbar: {e}")
    return NullAppDetector()


__all__ = [
    "MacOSAppDetector",
    "NullAppDetector",
    "WindowsAppDetector",
    "browser_url_script",
    "get_app_detector",
    "is_valid_url",
]
