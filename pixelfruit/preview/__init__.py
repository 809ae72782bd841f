"""
PixelFruit Preview System

Asynchronous, cached and progressive processing of adjustment requests
on a single background worker.
"""

from .engine import PixelFruitEngine
from .models import (
    TaskState,
    ProcessingTask,
    CacheSettings,
    ProgressiveSettings,
    EngineConfig,
    ProcessOptions
)
from .cache import ResultCache, CacheStore, generate_cache_key
from .task_scheduler import TaskScheduler
from .progressive import ProgressiveRenderer

__all__ = [
    'PixelFruitEngine',
    'TaskState',
    'ProcessingTask',
    'CacheSettings',
    'ProgressiveSettings',
    'EngineConfig',
    'ProcessOptions',
    'ResultCache',
    'CacheStore',
    'generate_cache_key',
    'TaskScheduler',
    'ProgressiveRenderer'
]
