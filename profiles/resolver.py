"""Profil-Auflösung nach Vordergrund-App und Domain.

Spezifität vor Priorität:
    1. App und URL passen
    2. Nur URL passt (domain-weit, in jedem Browser)
    3. Nur App passt
Innerhalb einer Stufe gewinnt die höhere Priorität, bei Gleichstand das
zuerst registrierte Profil. Deaktivierte Profile zählen nie.
"""

from __future__ import annotations

import logging
from typing import Protocol
from urllib.parse import urlsplit

from .models import Profile

logger = logging.getLogger("dictaflow.profiles")


class ProfileSource(Protocol):
    def profiles(self) -> tuple[Profile, ...]: ...


def extract_domain(url: str | None) -> str | None:
    """Host einer URL (oder eines nackten Hostnamens), klein, ohne 'www.'."""
    if not url or not url.strip():
        return None
    url = url.strip()
    try:
        host = urlsplit(url if "://" in url else f"//{url}").hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host or None


def normalize_pattern(pattern: str) -> str | None:
    """Macht aus 'https://www.Example.com/x', '*.example.com' oder 'example.com'
    das Vergleichsmuster 'example.com'."""
    pattern = pattern.strip().lower()
    if pattern.startswith("*."):
        pattern = pattern[2:]
    return extract_domain(pattern)


def domain_matches(domain: str, pattern: str) -> bool:
    """Suffix-Match mit Subdomains: 'example.com' passt auf 'docs.example.com',
    aber nicht auf 'notexample.com'."""
    normalized = normalize_pattern(pattern)
    if not normalized:
        return False
    return domain == normalized or domain.endswith("." + normalized)


class ProfileResolver:
    """Wählt für (App-ID, URL) genau ein Profil oder None."""

    def __init__(self, source: ProfileSource) -> None:
        self._source = source

    def match(self, app_id: str | None, url: str | None = None) -> Profile | None:
        profiles = [p for p in self._source.profiles() if p.enabled]
        if not profiles:
            return None

        app_id = (app_id or "").strip().lower() or None
        domain = extract_domain(url)

        def app_match(profile: Profile) -> bool:
            return app_id is not None and any(
                app_id == candidate.lower() for candidate in profile.app_ids
            )

        def url_match(profile: Profile) -> bool:
            return domain is not None and any(
                domain_matches(domain, pattern) for pattern in profile.url_patterns
            )

        tiers = (
            ("App+URL", lambda p: app_match(p) and url_match(p)),
            ("URL", url_match),
            ("App", app_match),
        )
        for tier_name, predicate in tiers:
            candidates = [p for p in profiles if predicate(p)]
            if candidates:
                # max() liefert bei Gleichstand das erste Element (Registrierungsreihenfolge)
                best = max(candidates, key=lambda p: p.priority)
                logger.debug(
                    f"Profil '{best.name}' ({tier_name}) für app={app_id}, domain={domain}"
                )
                return best
        return None

    def profiles(self) -> tuple[Profile, ...]:
        return tuple(self._source.profiles())


__all__ = [
    "ProfileResolver",
    "ProfileSource",
    "domain_matches",
    "extract_domain",
    "normalize_pattern",
]
