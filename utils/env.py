"""Helpers for reading and loading environment variables.

We use `.env` files (python-dotenv) plus runtime `os.environ` overrides.
These helpers standardize parsing so settings, engines and the CLI agree on
what "true" or "2.5" means.

Precedence for load_environment (default `override_existing=False`):
1) Process environment (`os.environ`)
2) User config `.env` (`~/.dictaflow/.env`)
3) Local project `.env` (current working directory)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger("dictaflow")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str | None) -> bool | None:
    """Parses common boolean string values.

    Returns:
        - True/False when recognized
        - None when value is None or unrecognized
    """
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return None


def get_env_str(name: str) -> str | None:
    """Returns a stripped string from env, None when unset or blank."""
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def get_env_bool(name: str) -> bool | None:
    """Returns bool from env or None if unset/invalid (with warning)."""
    raw = os.getenv(name)
    if raw is None:
        return None
    parsed = parse_bool(raw)
    if parsed is None:
        logger.warning(f"Ungültiger {name}={raw!r}, ignoriere")
    return parsed


def get_env_int(name: str) -> int | None:
    """Returns int from env or None if unset/invalid (with warning)."""
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"Ungültiger {name}={raw!r}, ignoriere")
        return None


def get_env_float(name: str) -> float | None:
    """Returns float from env or None if unset/invalid (with warning)."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning(f"Ungültiger {name}={raw!r}, ignoriere")
        return None


def load_environment(*, override_existing: bool = False) -> None:
    """Loads `.env` values into `os.environ`.

    On reload (`override_existing=True`), `.env` values override existing env vars,
    while user config still overrides the local project `.env`.
    """
    from config import USER_CONFIG_DIR

    merged: dict[str, str] = {}
    # Local first, then user (user wins).
    for env_path in (Path(".env"), USER_CONFIG_DIR / ".env"):
        if not env_path.exists():
            continue
        for key, value in dotenv_values(env_path).items():
            if value is None:
                continue
            merged[str(key)] = str(value)

    for key, value in merged.items():
        if override_existing or key not in os.environ:
            os.environ[key] = value


__all__ = [
    "get_env_bool",
    "get_env_float",
    "get_env_int",
    "get_env_str",
    "load_environment",
    "parse_bool",
]
