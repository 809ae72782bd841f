"""
Shared fixtures for PixelFruit tests.
"""

import pytest
import numpy as np


def solid(width, height, rgb, alpha=255):
    """Uniform RGBA image."""
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = alpha
    return pixels


@pytest.fixture
def random_image():
    """24x16 image with random colors and a varying alpha channel."""
    rng = np.random.default_rng(42)
    pixels = rng.integers(0, 256, size=(16, 24, 4), dtype=np.uint8)
    pixels[..., 3] = rng.integers(1, 256, size=(16, 24), dtype=np.uint8)
    return pixels


@pytest.fixture
def gradient_image():
    """64x32 horizontal gray gradient, fully opaque."""
    ramp = np.linspace(0, 255, 64).astype(np.uint8)
    pixels = np.zeros((32, 64, 4), dtype=np.uint8)
    pixels[..., 0] = ramp
    pixels[..., 1] = ramp
    pixels[..., 2] = ramp
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def spike_image():
    """5x5 gray image with a single bright pixel in the center."""
    pixels = solid(5, 5, (100, 100, 100))
    pixels[2, 2, :3] = 255
    return pixels


@pytest.fixture
def make_solid():
    """Factory for uniform RGBA images."""
    return solid
