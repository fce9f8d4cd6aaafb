"""CLI module for dictaflow."""

from .types import EngineChoice, HotkeyMode, TaskChoice

__all__ = [
    "EngineChoice",
    "HotkeyMode",
    "TaskChoice",
]
