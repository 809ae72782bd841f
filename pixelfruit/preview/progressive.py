"""
Progressive rendering: quick low-resolution passes refined up to full size.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

import cv2
import numpy as np

from ..models import Operation
from .models import ProgressCallback, ProgressiveSettings
from .task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)


def resize_buffer(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Resize an RGBA buffer; area averaging down, bilinear up."""
    src_height, src_width = pixels.shape[:2]
    if (src_width, src_height) == (width, height):
        return pixels.copy()
    shrinking = width * height < src_width * src_height
    interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
    return cv2.resize(np.ascontiguousarray(pixels), (width, height),
                      interpolation=interpolation)


class ProgressiveRenderer:
    """
    Runs a request as a series of passes at increasing scale.

    Every pass is its own scheduler task, so other requests interleave in
    FIFO order between passes. Each pass result is upscaled to full size
    for display; the final upscaled pass is the canonical result.
    """

    def __init__(self, scheduler: TaskScheduler, settings: ProgressiveSettings,
                 task_kind: str):
        self.scheduler = scheduler
        self.settings = settings
        self.task_kind = task_kind

    def step_sizes(self, width: int, height: int) -> List[tuple]:
        """(scale, width, height) of every pass."""
        return [(scale, max(1, int(width * scale)), max(1, int(height * scale)))
                for scale in self.settings.scale_factors()]

    async def render(self, pixels: np.ndarray, operations: Sequence[Operation],
                     on_progress: Optional[ProgressCallback] = None) -> np.ndarray:
        """
        Process ``pixels`` progressively.

        Args:
            pixels: uint8 array of shape (H, W, 4), owned by the renderer
            operations: Validated operation list
            on_progress: Called with (percent, full-size buffer) after each pass

        Returns:
            Full-size result of the final pass
        """
        height, width = pixels.shape[:2]
        steps = self.step_sizes(width, height)
        final = None

        for step, (scale, scaled_width, scaled_height) in enumerate(steps):
            scaled = resize_buffer(pixels, scaled_width, scaled_height)
            processed = await self.scheduler.run(self.task_kind, (scaled, operations))
            display = resize_buffer(processed, width, height)

            logger.debug(f"Progressive pass {step + 1}/{len(steps)} at scale {scale:.2f} "
                         f"({scaled_width}x{scaled_height})")

            if on_progress is not None:
                percent = (step + 1) * 100 // len(steps)
                try:
                    on_progress(percent, display)
                except Exception as e:
                    logger.error(f"Progress callback failed: {e}")

            final = display
            if step < len(steps) - 1:
                # Yield so the host can present the intermediate pass
                await asyncio.sleep(self.settings.step_delay)

        return final
