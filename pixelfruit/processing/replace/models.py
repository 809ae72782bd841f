"""
Data models for color range replacement.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import time
import numpy as np

RGB = Tuple[int, int, int]
ColorLike = Union[str, Sequence[int]]

DEFAULT_TOLERANCE = 60


def hex_to_rgb(value: ColorLike) -> RGB:
    """Parse '#RRGGBB' (or an RGB triple) into an integer triple."""
    if not isinstance(value, str):
        components = tuple(int(v) for v in value)
        if len(components) != 3 or any(c < 0 or c > 255 for c in components):
            raise ValueError(f"Invalid RGB color: {value!r}")
        return components
    text = value.strip().lstrip('#')
    if len(text) != 6:
        raise ValueError(f"Invalid hex color: {value!r}")
    try:
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    except ValueError:
        raise ValueError(f"Invalid hex color: {value!r}") from None


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"#{int(r):02X}{int(g):02X}{int(b):02X}"


@dataclass(frozen=True)
class ColorRangeSpec:
    """
    A source color segment and the target segment it maps onto.

    When ``start`` equals ``end`` the range is a sphere of radius
    ``tolerance`` around that color.
    """
    start: RGB
    end: RGB
    target_start: RGB
    target_end: RGB
    tolerance: float = DEFAULT_TOLERANCE

    def __post_init__(self):
        for name in ('start', 'end', 'target_start', 'target_end'):
            object.__setattr__(self, name, hex_to_rgb(getattr(self, name)))
        if self.tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.tolerance}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ColorRangeSpec':
        if isinstance(data, cls):
            return data
        return cls(start=data['start'], end=data['end'],
                   target_start=data['target_start'], target_end=data['target_end'],
                   tolerance=data.get('tolerance', DEFAULT_TOLERANCE))

    @property
    def is_degenerate(self) -> bool:
        return self.start == self.end

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': rgb_to_hex(*self.start),
            'end': rgb_to_hex(*self.end),
            'target_start': rgb_to_hex(*self.target_start),
            'target_end': rgb_to_hex(*self.target_end),
            'tolerance': self.tolerance,
        }


@dataclass
class ColorMatch:
    """All pixels of one exact color that fell inside a range."""
    color: str                 # '#RRGGBB'
    rgb: RGB
    positions: np.ndarray      # Flat pixel indices, row-major
    width: int

    @property
    def count(self) -> int:
        return int(self.positions.size)

    def coordinates(self) -> List[Tuple[int, int]]:
        """(x, y) of every matched pixel."""
        ys, xs = np.divmod(self.positions, self.width)
        return list(zip(xs.tolist(), ys.tolist()))


@dataclass
class ReplacementResult:
    """Outcome of a replacement pass."""
    pixels: np.ndarray
    changed_count: int


@dataclass(frozen=True)
class HistoryEntry:
    """
    One applied replacement.

    ``snapshot`` is the full buffer as it was before the replacement ran.
    """
    entry_id: str
    spec: ColorRangeSpec
    mix_ratio: float
    changed_count: int
    color_summary: Tuple[Tuple[str, int], ...]
    snapshot: np.ndarray = field(repr=False)
    created_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entry_id': self.entry_id,
            **self.spec.to_dict(),
            'mix_ratio': self.mix_ratio,
            'changed_count': self.changed_count,
            'colors': [{'color': c, 'count': n} for c, n in self.color_summary],
            'created_at': self.created_at,
        }
