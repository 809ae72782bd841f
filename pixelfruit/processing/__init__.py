"""
Pixel processing units for PixelFruit.
"""

from .pipeline import AdjustmentPipeline
from .histogram import Histogram, HistogramAnalyzer, compute_histogram

__all__ = [
    'AdjustmentPipeline',
    'Histogram',
    'HistogramAnalyzer',
    'compute_histogram',
]
