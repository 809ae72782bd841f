"""
Unsharp mask sharpening for PixelFruit.

The mask is the mean of the eight neighbours of each interior pixel; the
centre pixel is pushed away from it by the sharpening strength.
"""

import numpy as np
from scipy import ndimage
from typing import Any, Mapping, Union

from .models import SharpenSettings, QualityHint

# Eight-neighbour ring, centre excluded
NEIGHBOUR_KERNEL = np.array([[1, 1, 1],
                             [1, 0, 1],
                             [1, 1, 1]], dtype=np.float64)


def weighted_neighbourhood(rgb: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Per-channel weighted 3x3 sum, unnormalized."""
    return ndimage.convolve(rgb, kernel[..., np.newaxis], mode='nearest')


def interior_slices(quality_hint: QualityHint):
    """Row/column slices covering the interior, thinned for draft quality."""
    step = 2 if quality_hint == QualityHint.DRAFT else 1
    return slice(1, -1, step), slice(1, -1, step)


class Sharpener:
    """3x3 unsharp mask on the interior of an RGBA buffer."""

    def apply(self, pixels: np.ndarray,
              settings: Union[SharpenSettings, Mapping[str, Any]]) -> np.ndarray:
        if not isinstance(settings, SharpenSettings):
            settings = SharpenSettings.from_params(settings)

        result = pixels.copy()
        height, width = pixels.shape[:2]
        if settings.is_identity() or height < 3 or width < 3:
            return result

        strength = (max(settings.amount, 0) + settings.texture) / 100
        rgb = pixels[..., :3].astype(np.float64)
        average = weighted_neighbourhood(rgb, NEIGHBOUR_KERNEL) / 8

        rows, cols = interior_slices(settings.quality_hint)
        current = rgb[rows, cols]
        sharpened = current + (current - average[rows, cols]) * strength
        result[rows, cols, :3] = np.rint(np.clip(sharpened, 0, 255)).astype(np.uint8)
        return result


def sharpen(pixels: np.ndarray, amount: float,
            quality_hint: Union[QualityHint, str] = QualityHint.FULL,
            texture: float = 0.0) -> np.ndarray:
    """
    Sharpen an RGBA buffer.

    Args:
        pixels: uint8 array of shape (H, W, 4)
        amount: Sharpening strength in percent; zero or negative is a no-op
        quality_hint: DRAFT touches every second interior row and column
        texture: Extra local contrast added to the strength

    Returns:
        New sharpened array with border and alpha untouched
    """
    return Sharpener().apply(pixels, SharpenSettings(amount=amount, texture=texture,
                                                      quality_hint=quality_hint))
