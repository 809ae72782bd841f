"""
Adjustment pipeline: runs an ordered operation list over an RGBA buffer.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union

import numpy as np

from ..models import Operation, OperationType, parse_operations
from .color import AdjustmentSettings, ColorGrader
from .detail import (
    DenoiseSettings, NoiseReducer, Sharpener, SharpenSettings, SkinBrightener,
    SkinBrightenSettings
)

logger = logging.getLogger(__name__)


class AdjustmentPipeline:
    """
    Applies operations in request order.

    Each operation type maps to a settings class, used to validate
    parameters up front, and to the processor that runs it.
    """

    def __init__(self):
        self.grader = ColorGrader()
        self.sharpener = Sharpener()
        self.noise_reducer = NoiseReducer()
        self.skin_brightener = SkinBrightener()

        self._settings = {
            OperationType.COLOR_ADJUSTMENTS: AdjustmentSettings.from_dict,
            OperationType.SHARPEN: SharpenSettings.from_params,
            OperationType.DENOISE: DenoiseSettings.from_params,
            OperationType.SKIN_BRIGHTEN: SkinBrightenSettings.from_params,
        }
        self._handlers: Dict[OperationType, Callable[[np.ndarray, Any], np.ndarray]] = {
            OperationType.COLOR_ADJUSTMENTS: self.grader.apply,
            OperationType.SHARPEN: self.sharpener.apply,
            OperationType.DENOISE: self.noise_reducer.reduce_noise,
            OperationType.SKIN_BRIGHTEN: self.skin_brightener.apply,
        }

    def validate(self, operations: Sequence[Union[Operation, Mapping[str, Any]]]) -> List[Operation]:
        """
        Parse operations and their parameters.

        Raises:
            UnknownOperation: an operation type is not supported
            ValueError: parameters are malformed
        """
        parsed = parse_operations(operations)
        for op in parsed:
            self._settings[op.type](op.params)
        return parsed

    def is_identity(self, operations: Sequence[Operation]) -> bool:
        """True when every operation would leave the buffer unchanged."""
        return all(self._settings[op.type](op.params).is_identity() for op in operations)

    def run(self, pixels: np.ndarray, operations: Sequence[Operation]) -> np.ndarray:
        """Apply ``operations`` in order; the input is never modified."""
        result = pixels
        for op in operations:
            settings = self._settings[op.type](op.params)
            if settings.is_identity():
                continue
            result = self._handlers[op.type](result, settings)
            logger.debug(f"Applied {op.type.value}")
        if result is pixels:
            result = pixels.copy()
        return result
