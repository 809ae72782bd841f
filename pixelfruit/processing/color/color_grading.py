"""
Color grading module for PixelFruit

Per-pixel tone and color chain: white balance, brightness, contrast,
saturation, temperature/tint, exposure and the shadow/highlight/white
zone remaps.
"""

import numpy as np
from typing import Any, Dict, Mapping, Optional, Tuple, Union
import logging
from dataclasses import dataclass, asdict, fields

logger = logging.getLogger(__name__)

# Zone thresholds on the 0-255 scale
SHADOW_THRESHOLD = 64
HIGHLIGHT_THRESHOLD = 192
WHITE_THRESHOLD = 220

# Rec. 601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


@dataclass(frozen=True)
class AdjustmentSettings:
    """Color adjustment parameters with identity defaults"""
    brightness: float = 1.0  # multiplier
    exposure: float = 0.0  # stops
    contrast: float = 0.0  # -255 to +255
    saturation: float = 100.0  # percent, 100 = unchanged
    temperature: int = 0
    tint: int = 0
    shadows: float = 0.0  # -100 to +100
    highlights: float = 0.0  # -100 to +100
    whites: float = 100.0  # 0 to 200, 100 = unchanged

    # Channel tints, folded into the white balance vector
    red_tint: float = 0.0  # -100 to +100
    green_tint: float = 0.0
    blue_tint: float = 0.0

    # Explicit [R, G, B, G] multipliers; overrides the channel tints
    white_balance: Optional[Tuple[float, float, float, float]] = None

    def __post_init__(self):
        if not -255 <= self.contrast <= 255:
            raise ValueError(f"Contrast must be within [-255, 255], got {self.contrast}")
        # Temperature and tint are integer offsets
        object.__setattr__(self, 'temperature', int(self.temperature))
        object.__setattr__(self, 'tint', int(self.tint))
        if self.white_balance is not None:
            vector = tuple(float(v) for v in self.white_balance)
            if len(vector) != 4:
                raise ValueError("White balance vector must have 4 elements")
            object.__setattr__(self, 'white_balance', vector)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> 'AdjustmentSettings':
        """Build settings from a flat mapping, rejecting unknown keys."""
        if isinstance(data, cls):
            return data
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown color adjustment parameters: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.white_balance is not None:
            data['white_balance'] = list(self.white_balance)
        return data

    @property
    def multipliers(self) -> Optional[Tuple[float, float, float, float]]:
        """White balance vector, derived from channel tints when not explicit."""
        if self.white_balance is not None:
            return self.white_balance
        if self.red_tint or self.green_tint or self.blue_tint:
            green = 1.0 + self.green_tint / 100
            return (1.0 + self.red_tint / 100, green, 1.0 + self.blue_tint / 100, green)
        return None

    def is_identity(self) -> bool:
        """True when grading would leave every pixel unchanged."""
        multipliers = self.multipliers
        return (
            (multipliers is None or all(m == 1.0 for m in multipliers[:3]))
            and self.brightness == 1.0
            and self.contrast == 0
            and self.saturation == 100
            and self.temperature == 0
            and self.tint == 0
            and self.exposure == 0
            and self.shadows == 0
            and self.highlights == 0
            and self.whites == 100
        )


class ColorGrader:
    """
    Color grading engine

    Stages run in a fixed order and each clamps to [0, 255] before the
    next one sees the values. Alpha is carried through untouched.
    """

    def apply(self, pixels: np.ndarray,
              settings: Union[AdjustmentSettings, Mapping[str, Any], None]) -> np.ndarray:
        """
        Apply color adjustments to an RGBA buffer

        Args:
            pixels: uint8 array of shape (H, W, 4)
            settings: Adjustment settings or a mapping of them

        Returns:
            New graded array; the input is never modified
        """
        settings = AdjustmentSettings.from_dict(settings)
        if settings.is_identity():
            return pixels.copy()

        rgb = pixels[..., :3].astype(np.float64)

        multipliers = settings.multipliers
        if multipliers is not None:
            rgb = self._clamp(rgb * np.asarray(multipliers[:3]))

        if settings.brightness != 1.0:
            rgb = self._clamp(rgb * settings.brightness)

        if settings.contrast != 0:
            rgb = self._apply_contrast(rgb, settings.contrast)

        if settings.saturation != 100:
            rgb = self._apply_saturation(rgb, settings.saturation)

        if settings.temperature != 0:
            self._apply_temperature(rgb, settings.temperature)

        if settings.tint != 0:
            self._apply_tint(rgb, settings.tint)

        if settings.exposure != 0:
            rgb = self._clamp(rgb * 2.0 ** settings.exposure)

        if settings.shadows != 0:
            rgb = self._apply_shadows(rgb, settings.shadows)

        if settings.highlights != 0:
            rgb = self._apply_highlights(rgb, settings.highlights)

        if settings.whites != 100:
            rgb = self._apply_whites(rgb, settings.whites)

        result = pixels.copy()
        result[..., :3] = np.rint(self._clamp(rgb)).astype(np.uint8)
        return result

    @staticmethod
    def _clamp(values: np.ndarray) -> np.ndarray:
        return np.clip(values, 0, 255)

    def _apply_contrast(self, rgb: np.ndarray, contrast: float) -> np.ndarray:
        factor = (259 * (contrast + 255)) / (255 * (259 - contrast))
        return self._clamp(factor * (rgb - 128) + 128)

    def _apply_saturation(self, rgb: np.ndarray, saturation: float) -> np.ndarray:
        gray = (rgb @ LUMA_WEIGHTS)[..., np.newaxis]
        return self._clamp(gray + (saturation / 100) * (rgb - gray))

    def _apply_temperature(self, rgb: np.ndarray, temperature: int):
        # Warm pushes red and pulls blue by half; cool does the opposite
        if temperature > 0:
            rgb[..., 0] += temperature
            rgb[..., 2] -= temperature >> 1
        else:
            rgb[..., 2] -= temperature
            rgb[..., 0] += temperature >> 1
        np.clip(rgb, 0, 255, out=rgb)

    def _apply_tint(self, rgb: np.ndarray, tint: int):
        if tint > 0:
            rgb[..., 1] += tint
            rgb[..., 0] -= tint >> 1
        else:
            rgb[..., 0] -= tint
            rgb[..., 1] += tint >> 1
        np.clip(rgb, 0, 255, out=rgb)

    def _apply_shadows(self, rgb: np.ndarray, shadows: float) -> np.ndarray:
        adjusted = np.clip(rgb + (SHADOW_THRESHOLD - rgb) * (shadows / 100), 0, SHADOW_THRESHOLD)
        return np.where(rgb < SHADOW_THRESHOLD, adjusted, rgb)

    def _apply_highlights(self, rgb: np.ndarray, highlights: float) -> np.ndarray:
        adjusted = np.clip(rgb + (rgb - HIGHLIGHT_THRESHOLD) * (highlights / 100),
                           HIGHLIGHT_THRESHOLD, 255)
        return np.where(rgb > HIGHLIGHT_THRESHOLD, adjusted, rgb)

    def _apply_whites(self, rgb: np.ndarray, whites: float) -> np.ndarray:
        # Only near-white pixels, judged by their channel mean
        near_white = (rgb.mean(axis=-1) > WHITE_THRESHOLD)[..., np.newaxis]
        scaled = np.minimum(255, rgb * (whites / 100))
        return np.where(near_white, scaled, rgb)


_grader = ColorGrader()


def grade(pixels: np.ndarray,
          settings: Union[AdjustmentSettings, Mapping[str, Any], None]) -> np.ndarray:
    """Grade an RGBA buffer with the shared grader."""
    return _grader.apply(pixels, settings)
