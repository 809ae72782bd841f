"""
Color range classification and replacement in RGB space.

A pixel belongs to a range when its projection onto the start-end segment
falls inside the segment and it lies close enough to that segment. Matched
pixels are mapped onto the target segment at the same relative position
and blended with their original color.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from .models import ColorLike, ColorMatch, ReplacementResult, hex_to_rgb, rgb_to_hex

logger = logging.getLogger(__name__)


def dynamic_tolerance(tolerance: float, segment_length: float) -> float:
    """Distance allowed from a non-degenerate segment."""
    return max(tolerance * 0.5, min(tolerance * 1.5, segment_length * 0.2))


def round_half_up(values: np.ndarray) -> np.ndarray:
    return np.floor(values + 0.5)


def _segment(start: ColorLike, end: ColorLike) -> Tuple[np.ndarray, np.ndarray, float]:
    start_rgb = np.asarray(hex_to_rgb(start), dtype=np.float64)
    end_rgb = np.asarray(hex_to_rgb(end), dtype=np.float64)
    direction = end_rgb - start_rgb
    return start_rgb, direction, float(direction @ direction)


def find_in_range(pixels: np.ndarray, start: ColorLike, end: ColorLike,
                  tolerance: float = 60) -> List[ColorMatch]:
    """
    Find every opaque pixel whose color lies in the range.

    Args:
        pixels: uint8 array of shape (H, W, 4)
        start: Segment start color
        end: Segment end color
        tolerance: Match radius; scaled by segment length for real segments

    Returns:
        Matches grouped by exact color, in order of first appearance
    """
    if tolerance < 0:
        raise ValueError(f"Tolerance must be non-negative, got {tolerance}")

    width = pixels.shape[1]
    flat = pixels.reshape(-1, 4)
    rgb = flat[:, :3].astype(np.float64)
    start_rgb, direction, length_squared = _segment(start, end)

    offset = rgb - start_rgb
    if length_squared == 0:
        in_range = np.sqrt((offset ** 2).sum(axis=1)) <= tolerance
    else:
        t = (offset @ direction) / length_squared
        projected = start_rgb + t[:, np.newaxis] * direction
        distance = np.sqrt(((rgb - projected) ** 2).sum(axis=1))
        allowed = dynamic_tolerance(tolerance, np.sqrt(length_squared))
        in_range = (t >= 0) & (t <= 1) & (distance <= allowed)

    indices = np.flatnonzero(in_range & (flat[:, 3] > 0))
    if indices.size == 0:
        return []

    matched = flat[indices, :3].astype(np.int64)
    packed = (matched[:, 0] << 16) | (matched[:, 1] << 8) | matched[:, 2]
    colors, first_seen, inverse = np.unique(packed, return_index=True, return_inverse=True)

    # Group positions per color, keeping row-major order within each group
    grouped = indices[np.argsort(inverse, kind='stable')]
    bounds = np.cumsum(np.bincount(inverse, minlength=colors.size))[:-1]
    positions = np.split(grouped, bounds)

    matches = []
    for group in np.argsort(first_seen):
        value = int(colors[group])
        color_rgb = ((value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF)
        matches.append(ColorMatch(color=rgb_to_hex(*color_rgb), rgb=color_rgb,
                                  positions=positions[group], width=width))

    logger.debug(f"Found {len(matches)} colors ({indices.size} pixels) in range")
    return matches


def replace_in_place(pixels: np.ndarray, matches: Sequence[ColorMatch],
                     start: ColorLike, end: ColorLike,
                     target_start: ColorLike, target_end: ColorLike,
                     mix_ratio: float) -> int:
    """Write replacement colors into ``pixels``; returns the pixel count."""
    if not 0 <= mix_ratio <= 1:
        raise ValueError(f"Mix ratio must be within [0, 1], got {mix_ratio}")
    if not pixels.flags['C_CONTIGUOUS']:
        raise ValueError("Replacement target must be a C-contiguous buffer")
    if not matches:
        return 0

    start_rgb, direction, length_squared = _segment(start, end)
    target_rgb, target_direction, _ = _segment(target_start, target_end)

    flat = pixels.reshape(-1, 4)
    positions = np.concatenate([m.positions for m in matches])
    original = flat[positions, :3].astype(np.float64)

    if length_squared == 0:
        t = np.zeros(len(positions))
    else:
        t = np.clip(((original - start_rgb) @ direction) / length_squared, 0, 1)

    target = round_half_up(target_rgb + t[:, np.newaxis] * target_direction)
    final = round_half_up(original + (target - original) * mix_ratio)
    flat[positions, :3] = np.clip(final, 0, 255).astype(np.uint8)
    return int(positions.size)


def apply_replace(pixels: np.ndarray, matches: Sequence[ColorMatch],
                  start: ColorLike, end: ColorLike,
                  target_start: ColorLike, target_end: ColorLike,
                  mix_ratio: float) -> ReplacementResult:
    """
    Map matched pixels onto the target segment and blend.

    The input buffer is not modified; alpha is preserved.
    """
    result = pixels.copy()
    count = replace_in_place(result, matches, start, end, target_start, target_end, mix_ratio)
    return ReplacementResult(pixels=result, changed_count=count)
