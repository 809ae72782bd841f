"""
Color Module for PixelFruit

Tone and color grading plus adjustment presets.
"""

from .color_grading import AdjustmentSettings, ColorGrader, grade
from .presets import PresetManager, DEFAULT_PRESETS

__all__ = [
    'AdjustmentSettings',
    'ColorGrader',
    'grade',
    'PresetManager',
    'DEFAULT_PRESETS'
]
