"""
Data models for the detail stage.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Union
from enum import Enum


class DenoiseAlgorithm(Enum):
    """Interchangeable denoise kernels."""
    MEAN = "mean"            # Edge-aware 3x3 box mean
    MEDIAN = "median"        # 3x3 per-channel median, good on salt-and-pepper
    GAUSSIAN = "gaussian"    # 3x3 binomial blur

    @classmethod
    def parse(cls, value: Union[str, 'DenoiseAlgorithm']) -> 'DenoiseAlgorithm':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown denoise algorithm: {value}") from None


class QualityHint(Enum):
    """How much of the image a detail pass should touch."""
    FULL = "full"    # Every interior pixel
    DRAFT = "draft"  # Every second interior row and column, for live previews

    @classmethod
    def parse(cls, value: Union[str, 'QualityHint', None]) -> 'QualityHint':
        if value is None:
            return cls.FULL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown quality hint: {value}") from None


def _from_params(cls, params: Optional[Mapping[str, Any]]):
    params = dict(params or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} parameters: {', '.join(unknown)}")
    return cls(**params)


@dataclass
class SharpenSettings:
    """
    Unsharp mask parameters.

    ``amount`` and ``texture`` add up to the mask strength in percent.
    """
    amount: float = 0.0                 # 0-100
    texture: float = 0.0                # -50 to +50
    quality_hint: QualityHint = QualityHint.FULL

    def __post_init__(self):
        self.quality_hint = QualityHint.parse(self.quality_hint)

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> 'SharpenSettings':
        return _from_params(cls, params)

    def is_identity(self) -> bool:
        return self.amount <= 0 and self.texture == 0


@dataclass
class DenoiseSettings:
    """Noise reduction parameters."""
    strength: float = 0.0                      # 0-100
    algorithm: DenoiseAlgorithm = DenoiseAlgorithm.MEAN
    detail_preservation: float = 50.0          # 0-100, mean filter only

    def __post_init__(self):
        self.algorithm = DenoiseAlgorithm.parse(self.algorithm)

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> 'DenoiseSettings':
        return _from_params(cls, params)

    def is_identity(self) -> bool:
        return self.strength <= 0


@dataclass
class SkinBrightenSettings:
    """Selective skin brightening parameters."""
    strength: float = 0.0      # 0-100
    smoothness: float = 50.0   # 0-100, mask blur radius is smoothness // 20

    @classmethod
    def from_params(cls, params: Optional[Mapping[str, Any]]) -> 'SkinBrightenSettings':
        return _from_params(cls, params)

    def is_identity(self) -> bool:
        return self.strength <= 0

    @property
    def blur_radius(self) -> int:
        return max(0, int(self.smoothness // 20))
