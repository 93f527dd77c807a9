"""Route group exports."""

from . import beats, health, territories

__all__ = ["beats", "health", "territories"]
