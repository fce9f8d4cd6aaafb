"""Berechtigungs-Checks (Mikrofon, Bedienungshilfen).

Auf macOS via AVFoundation/ApplicationServices (PyObjC). Auf anderen
Plattformen gibt es keine vorgelagerte Freigabe; dort gilt alles als erlaubt
und Fehler zeigen sich erst beim Öffnen des Geräts.
"""

import ctypes
import ctypes.util
import logging
import sys

logger = logging.getLogger("dictaflow.desktop.permissions")


def get_microphone_permission_state() -> str:
    """Gibt den aktuellen Mikrofon-Permission-State zurück.

    Returns:
        One of: "authorized", "not_determined", "denied", "restricted", "unknown"
    """
    if sys.platform != "darwin":
        return "authorized"
    try:
        from AVFoundation import (  # type: ignore[import-not-found]
            AVAuthorizationStatusAuthorized,
            AVAuthorizationStatusDenied,
            AVAuthorizationStatusNotDetermined,
            AVAuthorizationStatusRestricted,
            AVCaptureDevice,
            AVMediaTypeAudio,
        )

        status = AVCaptureDevice.authorizationStatusForMediaType_(AVMediaTypeAudio)
    except Exception as e:
        logger.debug(f"Mikrofon-Status nicht ermittelbar: {e}")
        return "unknown"

    return {
        AVAuthorizationStatusAuthorized: "authorized",
        AVAuthorizationStatusNotDetermined: "not_determined",
        AVAuthorizationStatusDenied: "denied",
        AVAuthorizationStatusRestricted: "restricted",
    }.get(status, "unknown")


def has_microphone_permission() -> bool:
    # "unknown" blockiert nicht: das Öffnen des Streams meldet echte Fehler
    return get_microphone_permission_state() in ("authorized", "unknown")


def request_microphone_permission() -> None:
    """Löst den System-Dialog aus (nur wenn noch nicht entschieden)."""
    if sys.platform != "darwin":
        return
    if get_microphone_permission_state() != "not_determined":
        return
    try:
        from AVFoundation import AVCaptureDevice, AVMediaTypeAudio  # type: ignore[import-not-found]

        AVCaptureDevice.requestAccessForMediaType_completionHandler_(
            AVMediaTypeAudio, lambda granted: logger.info(f"Mikrofon-Zugriff: {granted}")
        )
    except Exception as e:
        logger.warning(f"Mikrofon-Anfrage fehlgeschlagen: {e}")


def has_accessibility_permission() -> bool:
    """True, wenn simulierte Tastendrücke (Cmd+V) erlaubt sind."""
    if sys.platform != "darwin":
        return True
    try:
        library = ctypes.util.find_library("ApplicationServices")
        if library is None:
            return False
        app_services = ctypes.cdll.LoadLibrary(library)
        app_services.AXIsProcessTrusted.restype = ctypes.c_bool
        return bool(app_services.AXIsProcessTrusted())
    except OSError:
        return False


def request_accessibility_permission() -> None:
    """Öffnet den System-Dialog für Bedienungshilfen (nur macOS)."""
    if sys.platform != "darwin":
        return
    try:
        from Quartz import (  # type: ignore[import-not-found]
            AXIsProcessTrustedWithOptions,
            kAXTrustedCheckOptionPrompt,
        )

        AXIsProcessTrustedWithOptions({kAXTrustedCheckOptionPrompt: True})
    except Exception as e:
        logger.warning(f"Bedienungshilfen-Anfrage fehlgeschlagen: {e}")


class AccessibilityPermission:
    """Bedienungshilfen-Zugriff als Berechtigungsquelle für den Orchestrator."""

    def has_permission(self) -> bool:
        return has_accessibility_permission()

    def request_permission(self) -> None:
        request_accessibility_permission()


__all__ = [
    "AccessibilityPermission",
    "get_microphone_permission_state",
    "has_accessibility_permission",
    "has_microphone_permission",
    "request_accessibility_permission",
    "request_microphone_permission",
]
