"""
PixelFruit: interactive raster image adjustment engine

Tone, color, detail and color-range transforms on RGBA buffers, with a
cached single-worker scheduler and progressive previews.
"""

__version__ = "0.1.0"

from .config import load_config
from .errors import PixelFruitError, InvalidBuffer, UnknownOperation, WorkerFailure
from .models import Operation, OperationType, PixelBuffer
from .preview import PixelFruitEngine, EngineConfig, ProcessOptions

__all__ = [
    "load_config",
    "PixelFruitError",
    "InvalidBuffer",
    "UnknownOperation",
    "WorkerFailure",
    "Operation",
    "OperationType",
    "PixelBuffer",
    "PixelFruitEngine",
    "EngineConfig",
    "ProcessOptions",
]
