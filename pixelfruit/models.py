"""
Core data models shared across the PixelFruit engine.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union
import numpy as np

from .errors import InvalidBuffer, UnknownOperation

CHANNELS = 4

BufferLike = Union[np.ndarray, bytes, bytearray, memoryview, Sequence[int]]


class OperationType(Enum):
    """Operations an adjustment request may contain."""
    COLOR_ADJUSTMENTS = "color_adjustments"
    SHARPEN = "sharpen"
    DENOISE = "denoise"
    SKIN_BRIGHTEN = "skin_brighten"

    @classmethod
    def parse(cls, value: Union[str, 'OperationType']) -> 'OperationType':
        """Resolve an operation name, raising UnknownOperation if invalid."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownOperation(str(value)) from None


@dataclass
class Operation:
    """A single named step of an adjustment request."""
    type: OperationType
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.type = OperationType.parse(self.type)
        if self.params is None:
            self.params = {}
        if not isinstance(self.params, dict):
            raise ValueError(f"Parameters for {self.type.value} must be a mapping")

    @classmethod
    def from_dict(cls, data: Union['Operation', Dict[str, Any]]) -> 'Operation':
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict) or 'type' not in data:
            raise ValueError(f"Malformed operation: {data!r}")
        params = data.get('params') or {}
        if not isinstance(params, dict):
            raise ValueError(f"Parameters for {data['type']} must be a mapping")
        return cls(type=data['type'], params=dict(params))

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type.value, 'params': dict(self.params)}


def parse_operations(operations: Sequence[Union[Operation, Dict[str, Any]]]) -> List[Operation]:
    """Normalize a request's operation list."""
    if operations is None:
        return []
    return [Operation.from_dict(op) for op in operations]


@dataclass
class PixelBuffer:
    """
    Decoded RGBA image, 8 bits per channel.

    ``data`` is a uint8 array of shape (height, width, 4). Alpha is never
    premultiplied.
    """
    width: int
    height: int
    data: np.ndarray

    @classmethod
    def from_buffer(cls, buffer: BufferLike, width: int, height: int) -> 'PixelBuffer':
        return cls(width=width, height=height,
                   data=as_pixel_array(buffer, width, height))

    @property
    def size(self) -> int:
        return self.width * self.height

    def copy(self) -> 'PixelBuffer':
        return PixelBuffer(self.width, self.height, self.data.copy())

    def tobytes(self) -> bytes:
        return self.data.tobytes()


def as_pixel_array(buffer: BufferLike, width: Optional[int] = None,
                   height: Optional[int] = None) -> np.ndarray:
    """
    Validate a buffer and view it as a (height, width, 4) uint8 array.

    Accepts a shaped array (dimensions optional), a flat array, bytes or a
    sequence of ints. Raises InvalidBuffer when the length does not equal
    width*height*4 or the data cannot be represented as 8-bit channels.
    """
    if isinstance(buffer, PixelBuffer):
        buffer = buffer.data

    if isinstance(buffer, (bytes, bytearray, memoryview)):
        array = np.frombuffer(bytes(buffer), dtype=np.uint8)
    else:
        array = np.asarray(buffer)

    if array.ndim == 3:
        if array.shape[2] != CHANNELS:
            raise InvalidBuffer(f"Expected {CHANNELS} channels, got {array.shape[2]}")
        h, w = array.shape[:2]
        if width is None:
            width = w
        if height is None:
            height = h
        if (w, h) != (width, height):
            raise InvalidBuffer(
                f"Buffer shape {w}x{h} does not match declared {width}x{height}",
                expected=width * height * CHANNELS, actual=array.size)
    elif width is None or height is None:
        raise InvalidBuffer("Width and height are required for flat buffers")

    if int(width) <= 0 or int(height) <= 0:
        raise InvalidBuffer(f"Invalid dimensions {width}x{height}")

    expected = int(width) * int(height) * CHANNELS
    if array.size != expected:
        raise InvalidBuffer(
            f"Buffer length {array.size} does not equal {width}x{height}x{CHANNELS}",
            expected=expected, actual=array.size)

    if array.dtype != np.uint8:
        if array.size and (not np.issubdtype(array.dtype, np.number)
                           or array.min() < 0 or array.max() > 255):
            raise InvalidBuffer("Buffer values must be 8-bit channel values")
        array = array.astype(np.uint8)

    return array.reshape(int(height), int(width), CHANNELS)
