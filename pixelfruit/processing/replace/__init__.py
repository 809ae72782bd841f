"""
Color Replacement Module for PixelFruit

Finds color ranges in RGB space and remaps them onto a target range,
with reversible history.
"""

from .models import (
    ColorRangeSpec,
    ColorMatch,
    ReplacementResult,
    HistoryEntry,
    hex_to_rgb,
    rgb_to_hex
)
from .matching import find_in_range, apply_replace, dynamic_tolerance
from .history import ReplacementHistory

__all__ = [
    'ColorRangeSpec',
    'ColorMatch',
    'ReplacementResult',
    'HistoryEntry',
    'hex_to_rgb',
    'rgb_to_hex',
    'find_in_range',
    'apply_replace',
    'dynamic_tolerance',
    'ReplacementHistory'
]
