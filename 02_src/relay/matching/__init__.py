"""Input resolution (choice matching)."""

from .engine import IInputResolutionEngine, InputResolutionEngine, similarity
from .normalize import normalize

__all__ = [
    "IInputResolutionEngine",
    "InputResolutionEngine",
    "normalize",
    "similarity",
]
