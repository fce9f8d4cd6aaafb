"""Verzögerte Callbacks (Anzeige-Timer, Fehler-Reset, Permission-Polling).

Timer laufen als Daemon-Threads, damit ein hängender Callback den
Prozess-Exit nicht blockiert. Der Orchestrator bekommt den Scheduler
injiziert; Tests ersetzen ihn durch eine manuell getriebene Variante.
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger("dictaflow")


class ScheduledCall:
    """Handle eines geplanten Aufrufs."""

    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class TimerScheduler:
    """Scheduler auf Basis von threading.Timer."""

    def schedule(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:
        def _run() -> None:
            try:
                callback()
            except Exception:
                logger.exception("Geplanter Callback fehlgeschlagen")

        timer = threading.Timer(delay, _run)
        timer.daemon = True
        timer.start()
        return ScheduledCall(timer)


__all__ = ["ScheduledCall", "TimerScheduler"]
