"""
Noise reduction with three interchangeable 3x3 kernels.
"""

import numpy as np
from scipy.ndimage import median_filter
from typing import Any, Mapping, Union
import logging

from .models import DenoiseSettings, DenoiseAlgorithm
from .sharpening import weighted_neighbourhood

logger = logging.getLogger(__name__)

BOX_KERNEL = np.ones((3, 3), dtype=np.float64)

GAUSSIAN_KERNEL = np.array([[1, 2, 1],
                            [2, 4, 2],
                            [1, 2, 1]], dtype=np.float64)

INTERIOR = (slice(1, -1), slice(1, -1))


class NoiseReducer:
    """
    Noise reduction processor.

    Supports:
    - Edge-aware mean filtering with detail preservation
    - Median filtering, blended by strength
    - Gaussian smoothing

    The one-pixel border and the alpha channel are never modified.
    """

    def reduce_noise(self, pixels: np.ndarray,
                     settings: Union[DenoiseSettings, Mapping[str, Any]]) -> np.ndarray:
        """
        Apply noise reduction to an RGBA buffer.

        Args:
            pixels: uint8 array of shape (H, W, 4)
            settings: Denoise settings or their parameter mapping

        Returns:
            New denoised array
        """
        if not isinstance(settings, DenoiseSettings):
            settings = DenoiseSettings.from_params(settings)

        result = pixels.copy()
        height, width = pixels.shape[:2]
        if settings.is_identity() or height < 3 or width < 3:
            return result

        rgb = pixels[..., :3].astype(np.float64)

        if settings.algorithm == DenoiseAlgorithm.MEDIAN:
            denoised = self._median(rgb, settings.strength)
        elif settings.algorithm == DenoiseAlgorithm.GAUSSIAN:
            denoised = self._gaussian(rgb, settings.strength)
        else:
            denoised = self._mean(rgb, settings.strength, settings.detail_preservation)

        result[INTERIOR + (slice(0, 3),)] = np.rint(
            np.clip(denoised[INTERIOR], 0, 255)).astype(np.uint8)
        return result

    def _mean(self, rgb: np.ndarray, strength: float,
              detail_preservation: float) -> np.ndarray:
        average = weighted_neighbourhood(rgb, BOX_KERNEL) / 9

        # Pixels that stand out from their neighbourhood are treated as edges
        edge = (np.abs(rgb - average) / 255).mean(axis=-1, keepdims=True)
        detail = np.minimum(1, edge * (detail_preservation / 50))
        effective = (strength / 100) * (1 - detail)
        return rgb * (1 - effective) + average * effective

    def _median(self, rgb: np.ndarray, strength: float) -> np.ndarray:
        median = median_filter(rgb, size=(3, 3, 1), mode='nearest')
        # Below half strength the median is only half blended in
        mix = strength / 100 if strength >= 50 else 0.5 * (strength / 100)
        return rgb * (1 - mix) + median * mix

    def _gaussian(self, rgb: np.ndarray, strength: float) -> np.ndarray:
        blurred = weighted_neighbourhood(rgb, GAUSSIAN_KERNEL) / 16
        mix = strength / 100
        return rgb * (1 - mix) + blurred * mix


def denoise(pixels: np.ndarray, strength: float,
            algorithm: Union[DenoiseAlgorithm, str] = DenoiseAlgorithm.MEAN,
            detail_preservation: float = 50.0) -> np.ndarray:
    """Denoise an RGBA buffer; strength <= 0 returns an unchanged copy."""
    return NoiseReducer().reduce_noise(
        pixels, DenoiseSettings(strength=strength, algorithm=algorithm,
                                detail_preservation=detail_preservation))
