"""
Adjustment presets for PixelFruit

A preset is a flat mapping of color adjustment values, optionally carrying
detail settings (sharpness, noise reduction, face brightening). Presets
expand into an ordered operation list the engine can run.
"""

import copy
import logging
from typing import Any, Dict, List, Mapping, Optional

from .color_grading import AdjustmentSettings

logger = logging.getLogger(__name__)

NO_PRESET = "none"

# Detail keys a preset may carry alongside the color adjustments
DETAIL_KEYS = ('sharpness', 'noise_reduction', 'face_brightening', 'face_smoothness')

DEFAULT_PRESETS: Dict[str, Dict[str, float]] = {
    'universal': {
        'brightness': 1.1,
        'exposure': 0.2,
        'saturation': 130,
        'highlights': -10,
        'shadows': 5,
        'green_tint': 5,
        'blue_tint': 5,
    },
    'fuji_color': {
        'brightness': 1.05,
        'exposure': 0.0,
        'saturation': 125,
        'highlights': -10,
        'shadows': 5,
        'contrast': 15,
        'blue_tint': 10,
        'red_tint': -5,
    },
    'vintage_clock_tower': {
        'brightness': 1.08,
        'exposure': 0.1,
        'saturation': 115,
        'highlights': -15,
        'shadows': 10,
        'contrast': 12,
        'blue_tint': 8,
        'green_tint': 3,
        'red_tint': -2,
    },
    'vintage_film': {
        'brightness': 0.9,
        'exposure': 0.0,
        'saturation': 110,
        'highlights': -5,
        'shadows': 10,
        'red_tint': 5,
        'green_tint': -3,
        'blue_tint': -10,
    },
    'monochrome': {
        'brightness': 1.0,
        'exposure': 0.0,
        'saturation': 0,
        'contrast': 15,
    },
    'cinematic_court': {
        'brightness': 0.95,
        'exposure': -0.2,
        'saturation': 85,
        'contrast': 18,
        'highlights': -12,
        'shadows': 6,
        'whites': 95,
        'blue_tint': 10,
        'green_tint': 5,
        'red_tint': -6,
    },
    'portrait': {
        'brightness': 1.15,
        'exposure': 0.3,
        'saturation': 120,
        'contrast': 8,
        'highlights': -8,
        'shadows': 12,
        'whites': 105,
        'red_tint': -3,
        'green_tint': 2,
        'blue_tint': 8,
        'sharpness': 15,
        'noise_reduction': 20,
        'face_brightening': 40,
        'face_smoothness': 70,
    },
}


class PresetManager:
    """
    Registry of built-in and user-saved presets.
    """

    def __init__(self, custom_presets: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self.presets: Dict[str, Dict[str, Any]] = copy.deepcopy(DEFAULT_PRESETS)
        for name, values in (custom_presets or {}).items():
            self.register(name, values)

    def list_presets(self) -> List[str]:
        return list(self.presets)

    def is_builtin(self, name: str) -> bool:
        return name in DEFAULT_PRESETS

    def get(self, name: str) -> Dict[str, Any]:
        """Return a copy of a preset's values."""
        if name == NO_PRESET:
            return {}
        if name not in self.presets:
            raise KeyError(f"Unknown preset: {name}")
        return dict(self.presets[name])

    def register(self, name: str, values: Mapping[str, Any], overwrite: bool = False):
        """
        Save a preset under a new name.

        Args:
            name: Preset name, must not be blank
            values: Color adjustment and detail values
            overwrite: Allow replacing an existing preset
        """
        name = (name or '').strip()
        if not name or name == NO_PRESET:
            raise ValueError("Preset name cannot be empty")
        if name in self.presets and not overwrite:
            raise ValueError(f"Preset already exists: {name}")

        values = dict(values)
        # Validate the color part up front so bad presets never get stored
        AdjustmentSettings.from_dict(self._color_values(values))
        self.presets[name] = values
        logger.info(f"Registered preset '{name}'")

    def remove(self, name: str) -> bool:
        if self.is_builtin(name):
            raise ValueError(f"Cannot remove built-in preset: {name}")
        return self.presets.pop(name, None) is not None

    def to_operations(self, name: str,
                      denoise_algorithm: str = "mean") -> List[Dict[str, Any]]:
        """
        Expand a preset into an ordered operation list.

        Grading comes first, then sharpening, denoising and skin
        brightening. Detail stages at zero are omitted.
        """
        values = self.get(name)
        operations = []

        color = self._color_values(values)
        if color:
            operations.append({'type': 'color_adjustments', 'params': color})

        if values.get('sharpness', 0) > 0:
            operations.append({'type': 'sharpen',
                               'params': {'amount': values['sharpness']}})

        if values.get('noise_reduction', 0) > 0:
            operations.append({'type': 'denoise',
                               'params': {'strength': values['noise_reduction'],
                                          'algorithm': denoise_algorithm}})

        if values.get('face_brightening', 0) > 0:
            operations.append({'type': 'skin_brighten',
                               'params': {'strength': values['face_brightening'],
                                          'smoothness': values.get('face_smoothness', 50)}})

        return operations

    @staticmethod
    def _color_values(values: Mapping[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in values.items() if k not in DETAIL_KEYS}
