"""Sitzungsdaten eines Diktats (Aufnahme bis Auslieferung)."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from profiles.models import Profile

    from .settings import EffectiveSettings


class CancellationToken:
    """Kooperatives Abbruchsignal für Hintergrund-Arbeit (Streaming-Pässe).

    Basiert auf threading.Event, damit Wartezeiten (`wait`) sofort
    aufwachen, sobald abgebrochen wird.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Wartet bis zu `timeout` Sekunden. True, wenn abgebrochen wurde."""
        return self._event.wait(timeout)


@dataclass(frozen=True)
class ActiveApp:
    """Identität der Vordergrund-App beim Diktat-Start."""

    name: str | None = None
    bundle_id: str | None = None
    url: str | None = None

    @property
    def is_known(self) -> bool:
        return bool(self.name or self.bundle_id)


@dataclass
class Session:
    """Flüchtiger Zustand eines Diktats. Gehört exklusiv dem Orchestrator."""

    session_id: str
    active_app: ActiveApp
    effective: "EffectiveSettings"
    engine_id: str
    profile: "Profile | None" = None
    confirmed_text: str = ""
    cancel_token: CancellationToken = field(default_factory=CancellationToken)

    @property
    def profile_name(self) -> str | None:
        return self.profile.name if self.profile else None


__all__ = ["ActiveApp", "CancellationToken", "Session"]
