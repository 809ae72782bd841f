"""
Heuristic skin-tone segmentation and selective brightening.

Skin likelihood combines four classic color-space rules; the resulting
mask is optionally smoothed before brightening, warming down reds and
slightly desaturating the detected regions.
"""

import numpy as np
import cv2
from scipy.ndimage import uniform_filter
from typing import Any, Mapping, Union
import logging

from .models import SkinBrightenSettings

logger = logging.getLogger(__name__)

# Rule weights, summing to 1
RGB_RULE_WEIGHT = 0.3
YCBCR_RULE_WEIGHT = 0.25
NORMALIZED_RULE_WEIGHT = 0.25
DOMINANCE_RULE_WEIGHT = 0.2

CB_RANGE = (77, 127)
CR_RANGE = (133, 173)


def skin_likelihood(pixels: np.ndarray) -> np.ndarray:
    """
    Per-pixel skin likelihood in [0, 1].

    Args:
        pixels: uint8 array of shape (H, W, 4)

    Returns:
        float64 array of shape (H, W)
    """
    rgb8 = np.ascontiguousarray(pixels[..., :3])
    rgb = rgb8.astype(np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]

    spread = rgb.max(axis=-1) - rgb.min(axis=-1)
    rgb_rule = ((r > 95) & (g > 40) & (b > 20) & (spread > 15)
                & (np.abs(r - g) > 15) & (r > g) & (r > b))

    ycrcb = cv2.cvtColor(rgb8, cv2.COLOR_RGB2YCrCb)
    cr, cb = ycrcb[..., 1], ycrcb[..., 2]
    ycbcr_rule = ((cb >= CB_RANGE[0]) & (cb <= CB_RANGE[1])
                  & (cr >= CR_RANGE[0]) & (cr <= CR_RANGE[1]))

    total = r + g + b
    safe_total = np.where(total > 0, total, 1)
    nr, ng = r / safe_total, g / safe_total
    normalized_rule = (total > 0) & (nr > 0.36) & (nr < 0.465) & (ng > 0.28) & (ng < 0.363)

    dominance_rule = (r > g) & (g > b)

    score = (RGB_RULE_WEIGHT * rgb_rule
             + YCBCR_RULE_WEIGHT * ycbcr_rule
             + NORMALIZED_RULE_WEIGHT * normalized_rule
             + DOMINANCE_RULE_WEIGHT * dominance_rule)
    return np.minimum(1.0, score)


class SkinBrightener:
    """Selective brightening of skin-like regions."""

    def create_mask(self, pixels: np.ndarray, smoothness: float) -> np.ndarray:
        mask = skin_likelihood(pixels)
        radius = SkinBrightenSettings(smoothness=smoothness).blur_radius
        if radius > 0:
            mask = uniform_filter(mask, size=2 * radius + 1, mode='nearest')
        return mask

    def apply(self, pixels: np.ndarray,
              settings: Union[SkinBrightenSettings, Mapping[str, Any]]) -> np.ndarray:
        if not isinstance(settings, SkinBrightenSettings):
            settings = SkinBrightenSettings.from_params(settings)

        result = pixels.copy()
        if settings.is_identity():
            return result

        mask = self.create_mask(pixels, settings.smoothness)
        selected = mask > 0
        if not selected.any():
            logger.debug("No skin-like pixels found")
            return result

        effect = (mask * (settings.strength / 100))[..., np.newaxis]
        rgb = pixels[..., :3].astype(np.float64)

        rgb = rgb * (1 + 0.3 * effect)
        rgb[..., 0:1] *= (1 - 0.2 * effect)
        rgb[..., 2:3] *= (1 + 0.15 * effect)
        mean = rgb.mean(axis=-1, keepdims=True)
        rgb = rgb + (mean - rgb) * (0.4 * effect)

        brightened = np.rint(np.clip(rgb, 0, 255)).astype(np.uint8)
        result[..., :3] = np.where(selected[..., np.newaxis], brightened, pixels[..., :3])
        return result


def brighten_skin(pixels: np.ndarray, strength: float, smoothness: float = 50.0) -> np.ndarray:
    """Brighten skin-like regions; strength <= 0 returns an unchanged copy."""
    return SkinBrightener().apply(
        pixels, SkinBrightenSettings(strength=strength, smoothness=smoothness))
