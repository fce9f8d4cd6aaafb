"""HTTP-Kontrollschnittstelle (Handler ohne Transport)."""

from .handlers import ControlHandlers

__all__ = ["ControlHandlers"]
