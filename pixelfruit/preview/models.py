"""
Data models for the PixelFruit scheduler and preview engine.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Union
from enum import Enum
import asyncio
import time
import numpy as np


class TaskState(Enum):
    """Lifecycle of a scheduled task."""
    QUEUED = "queued"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED)


@dataclass
class CacheSettings:
    """Result cache configuration."""
    max_size: int = 5                # Maximum entries per cache
    ttl: float = 300.0               # Seconds since last access
    enabled: bool = True

    def __post_init__(self):
        if self.max_size < 1:
            raise ValueError(f"Cache max_size must be at least 1, got {self.max_size}")
        if self.ttl <= 0:
            raise ValueError(f"Cache ttl must be positive, got {self.ttl}")


@dataclass
class ProgressiveSettings:
    """Progressive rendering configuration."""
    enabled: bool = True
    initial_quality: float = 0.3     # Scale of the first pass (0.1 to 1.0)
    target_quality: float = 1.0
    quality_steps: int = 3
    step_delay: float = 0.05         # Seconds yielded between passes

    def __post_init__(self):
        if self.quality_steps < 1:
            raise ValueError(f"quality_steps must be at least 1, got {self.quality_steps}")
        if not 0 < self.initial_quality <= self.target_quality:
            raise ValueError("Progressive qualities must satisfy 0 < initial <= target")

    def scale_factors(self):
        """Eased-in scale for each pass; the last pass is at target quality."""
        if self.quality_steps == 1:
            return [self.target_quality]
        span = self.target_quality - self.initial_quality
        return [self.initial_quality + span * (i / (self.quality_steps - 1)) ** 2
                for i in range(self.quality_steps)]


@dataclass
class EngineConfig:
    """Configuration for a PixelFruit engine instance."""
    cache: CacheSettings = field(default_factory=CacheSettings)
    progressive: ProgressiveSettings = field(default_factory=ProgressiveSettings)
    histogram_sample_size: int = 1000
    thread_name_prefix: str = "PixelFruit-Worker"
    presets: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'EngineConfig':
        """Build engine settings from a loaded configuration dictionary."""
        cache = config.get('cache') or {}
        progressive = config.get('progressive') or {}
        histogram = config.get('histogram') or {}
        worker = config.get('worker') or {}

        defaults = cls()
        return cls(
            cache=CacheSettings(
                max_size=int(cache.get('max_size', defaults.cache.max_size)),
                ttl=float(cache.get('ttl_seconds', defaults.cache.ttl)),
                enabled=bool(cache.get('enabled', defaults.cache.enabled)),
            ),
            progressive=ProgressiveSettings(
                enabled=bool(progressive.get('enabled', defaults.progressive.enabled)),
                initial_quality=float(progressive.get('initial_quality',
                                                      defaults.progressive.initial_quality)),
                target_quality=float(progressive.get('target_quality',
                                                     defaults.progressive.target_quality)),
                quality_steps=int(progressive.get('quality_steps',
                                                  defaults.progressive.quality_steps)),
                step_delay=float(progressive.get('step_delay',
                                                 defaults.progressive.step_delay)),
            ),
            histogram_sample_size=int(histogram.get('sample_size',
                                                    defaults.histogram_sample_size)),
            thread_name_prefix=worker.get('thread_name_prefix', defaults.thread_name_prefix),
            presets=dict(config.get('presets') or {}),
        )


ProgressCallback = Callable[[int, np.ndarray], None]


@dataclass
class ProcessOptions:
    """Per-request options for ``PixelFruitEngine.process``."""
    progressive: Optional[bool] = None          # None follows the engine setting
    on_progress: Optional[ProgressCallback] = None

    @classmethod
    def coerce(cls, options: Union['ProcessOptions', Mapping[str, Any], None]) -> 'ProcessOptions':
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        unknown = set(options) - {'progressive', 'on_progress'}
        if unknown:
            raise ValueError(f"Unknown process options: {', '.join(sorted(unknown))}")
        return cls(progressive=options.get('progressive'),
                   on_progress=options.get('on_progress'))


@dataclass
class ProcessingTask:
    """Represents a unit of work in the scheduler queue."""
    task_id: str
    kind: str
    payload: Any
    future: asyncio.Future
    callback: Optional[Callable[['ProcessingTask'], None]] = None
    state: TaskState = TaskState.QUEUED
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    completed_at: Optional[float] = None
    error: Optional[BaseException] = None
    result: Any = None

    @property
    def is_completed(self) -> bool:
        """Check if task reached a terminal state."""
        return self.state.is_terminal

    @property
    def is_failed(self) -> bool:
        """Check if task failed."""
        return self.state == TaskState.FAILED

    @property
    def duration(self) -> Optional[float]:
        """Get task duration if completed."""
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        return None
