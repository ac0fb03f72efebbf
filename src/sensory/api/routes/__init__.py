"""
Sensory Dashboard API Routes
"""

from . import mixer, presets

__all__ = ["mixer", "presets"]
