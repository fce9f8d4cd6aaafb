"""Profile: app- und domain-spezifische Einstellungs-Overrides.

Usage:
    from profiles import ProfileResolver, ProfileStore

    resolver = ProfileResolver(ProfileStore())
    profile = resolver.match("com.google.Chrome", "https://docs.example.com/x")
"""

from .models import AUTO_LANGUAGE, Profile
from .resolver import ProfileResolver, domain_matches, extract_domain
from .store import ProfileStore, StaticProfileStore, load_profiles

__all__ = [
    "AUTO_LANGUAGE",
    "Profile",
    "ProfileResolver",
    "ProfileStore",
    "StaticProfileStore",
    "domain_matches",
    "extract_domain",
    "load_profiles",
]
