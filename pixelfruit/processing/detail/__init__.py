"""
Detail Module for PixelFruit

Sharpening, noise reduction and skin brightening on RGBA buffers.
"""

from .models import (
    DenoiseAlgorithm,
    QualityHint,
    SharpenSettings,
    DenoiseSettings,
    SkinBrightenSettings
)
from .sharpening import Sharpener, sharpen
from .noise_reducer import NoiseReducer, denoise
from .skin_brightening import SkinBrightener, brighten_skin, skin_likelihood

__all__ = [
    'DenoiseAlgorithm',
    'QualityHint',
    'SharpenSettings',
    'DenoiseSettings',
    'SkinBrightenSettings',
    'Sharpener',
    'sharpen',
    'NoiseReducer',
    'denoise',
    'SkinBrightener',
    'brighten_skin',
    'skin_likelihood'
]
