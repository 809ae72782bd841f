"""
PixelFruit engine.

Facade tying together the adjustment pipeline, the result cache, the
single-worker scheduler, progressive rendering, histograms and color
range replacement for one editing session.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from ..models import BufferLike, Operation, as_pixel_array
from ..processing.color import PresetManager
from ..processing.histogram import Histogram, HistogramAnalyzer
from ..processing.pipeline import AdjustmentPipeline
from ..processing.replace import (
    ColorMatch, ColorRangeSpec, ReplacementHistory, ReplacementResult,
    apply_replace, find_in_range
)
from .cache import MATCHES, PROCESSED, CacheStore, generate_cache_key
from .models import CacheSettings, EngineConfig, ProcessOptions, ProgressiveSettings
from .progressive import ProgressiveRenderer
from .task_scheduler import TaskScheduler

logger = logging.getLogger(__name__)

PROCESS_TASK = "process"


class PixelFruitEngine:
    """
    Main interface for interactive image adjustment.

    Provides:
    - Cached, asynchronous processing of adjustment requests
    - Progressive low-to-full resolution previews
    - Histograms with change detection
    - Color range find and replace, with per-session history
    - Performance statistics
    """

    def __init__(self, config: Optional[EngineConfig] = None, clock=time.monotonic):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if None)
            clock: Monotonic time source for cache expiry
        """
        self.config = config or EngineConfig()

        self.pipeline = AdjustmentPipeline()
        self.cache = CacheStore(self.config.cache, clock=clock)
        self.scheduler = TaskScheduler(thread_name_prefix=self.config.thread_name_prefix)
        self.scheduler.register(PROCESS_TASK, self._run_pipeline)
        self.progressive = ProgressiveRenderer(self.scheduler, self.config.progressive,
                                               task_kind=PROCESS_TASK)
        self.histogram_analyzer = HistogramAnalyzer(self.config.histogram_sample_size)
        self.presets = PresetManager(self.config.presets)

        self.performance_stats = self._empty_stats()

        logger.info("PixelFruit engine initialized")

    def process(self, buffer: BufferLike, width: Optional[int] = None,
                height: Optional[int] = None,
                operations: Sequence[Union[Operation, Mapping[str, Any]]] = (),
                options: Union[ProcessOptions, Mapping[str, Any], None] = None) -> asyncio.Future:
        """
        Process a buffer through an operation list.

        Validation happens immediately; the returned future resolves to a
        new (H, W, 4) uint8 array. Must be called with a running event loop.

        Args:
            buffer: RGBA pixels, flat or shaped
            width: Image width (optional for shaped arrays)
            height: Image height (optional for shaped arrays)
            operations: Ordered operations, as Operation objects or dicts
            options: ProcessOptions or a dict with 'progressive'/'on_progress'

        Raises:
            InvalidBuffer: buffer length does not match the dimensions
            UnknownOperation: an operation type is not supported
            ValueError: operation parameters or options are malformed
        """
        pixels = as_pixel_array(buffer, width, height)
        parsed = self.pipeline.validate(operations)
        options = ProcessOptions.coerce(options)

        # The request owns its own copy from here on
        return asyncio.ensure_future(self._process(pixels.copy(), parsed, options))

    async def _process(self, pixels: np.ndarray, operations: List[Operation],
                       options: ProcessOptions) -> np.ndarray:
        start_time = time.time()
        cache_key = generate_cache_key(pixels, operations)

        cached = self.cache.get(cache_key, PROCESSED)
        if cached is not None:
            self.performance_stats['cached_operations'] += 1
            logger.debug(f"Cache hit for {cache_key}")
            return cached.copy()

        self.performance_stats['operations'] += 1
        try:
            if self.pipeline.is_identity(operations):
                result = pixels
            elif self._use_progressive(options):
                result = await self.progressive.render(pixels, operations, options.on_progress)
            else:
                result = await self.scheduler.run(PROCESS_TASK, (pixels, operations))

            self.cache.put(cache_key, result, PROCESSED)
            return result.copy()
        finally:
            self.performance_stats['processing_time'] += time.time() - start_time

    def _run_pipeline(self, payload):
        # Worker thread: pure function of the payload
        pixels, operations = payload
        return self.pipeline.run(pixels, operations)

    def _use_progressive(self, options: ProcessOptions) -> bool:
        if options.progressive is not None:
            return options.progressive
        return self.config.progressive.enabled

    def preset_operations(self, name: str) -> List[Dict[str, Any]]:
        """Operation list for a named preset."""
        return self.presets.to_operations(name)

    def histogram(self, buffer: BufferLike, width: Optional[int] = None,
                  height: Optional[int] = None) -> Histogram:
        """Histogram of a buffer, reused while its content is unchanged."""
        return self.histogram_analyzer.compute(as_pixel_array(buffer, width, height))

    def find_in_range(self, buffer: BufferLike, width: Optional[int], height: Optional[int],
                      start, end, tolerance: float = 60) -> List[ColorMatch]:
        """Colors of ``buffer`` inside the start-end range, cached per content."""
        pixels = as_pixel_array(buffer, width, height)
        spec = ColorRangeSpec(start=start, end=end, target_start=start, target_end=end,
                              tolerance=tolerance)
        request = [{'type': 'find_in_range',
                    'params': {'start': spec.start, 'end': spec.end,
                               'tolerance': spec.tolerance}}]
        cache_key = generate_cache_key(pixels, request)

        matches = self.cache.get(cache_key, MATCHES)
        if matches is None:
            matches = find_in_range(pixels, spec.start, spec.end, spec.tolerance)
            self.cache.put(cache_key, matches, MATCHES)
        return matches

    def apply_replace(self, buffer: BufferLike, matches: Sequence[ColorMatch],
                      start, end, target_start, target_end, mix_ratio: float,
                      width: Optional[int] = None,
                      height: Optional[int] = None) -> ReplacementResult:
        """Replace matched colors on a copy of ``buffer``."""
        pixels = as_pixel_array(buffer, width, height)
        result = apply_replace(pixels, matches, start, end, target_start, target_end,
                               mix_ratio)
        if result.changed_count:
            self.cache.clear(MATCHES)
        return result

    def open_replacement_session(self, buffer: BufferLike, width: Optional[int] = None,
                                 height: Optional[int] = None) -> ReplacementHistory:
        """Start a replacement history over a copy of ``buffer``."""
        return ReplacementHistory(as_pixel_array(buffer, width, height))

    def configure_cache(self, max_size: Optional[int] = None, ttl: Optional[float] = None,
                        enabled: Optional[bool] = None) -> CacheSettings:
        return self.cache.configure(max_size=max_size, ttl=ttl, enabled=enabled)

    def configure_progressive(self, **settings) -> ProgressiveSettings:
        """Merge new progressive rendering settings."""
        merged = dataclasses.replace(self.config.progressive, **settings)
        self.config.progressive = merged
        self.progressive.settings = merged
        return merged

    def clear_cache(self, kind: Optional[str] = None):
        """Clear the 'processed' or 'matches' cache, or both."""
        self.cache.clear(kind)
        if kind is None:
            self.histogram_analyzer.invalidate()

    def get_performance_stats(self) -> Dict[str, Any]:
        stats = self.performance_stats
        operations = stats['operations']
        cached = stats['cached_operations']
        total = operations + cached
        hit_rate = cached / total * 100 if total else 0.0
        return {
            'operations': operations,
            'cached_operations': cached,
            'cache_hit_rate': round(hit_rate, 2),
            'average_processing_time': stats['processing_time'] / operations if operations else 0.0,
            'total_processing_time': stats['processing_time'],
            'cache': self.cache.get_stats(),
            'queue': self.scheduler.get_queue_stats(),
            'histogram': self.histogram_analyzer.get_stats(),
        }

    def reset_performance_stats(self):
        self.performance_stats = self._empty_stats()

    def shutdown(self, wait: bool = True):
        """Cancel outstanding work and stop the worker."""
        self.scheduler.shutdown(wait=wait)
        logger.info("PixelFruit engine shut down")

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'operations': 0,
            'cached_operations': 0,
            'processing_time': 0.0
        }
