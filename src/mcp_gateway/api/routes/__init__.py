"""
Routes API par domaine.
"""

from . import health
from . import tools
from . import prompt

__all__ = [
    "health",
    "tools",
    "prompt",
]
