from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import numpy as np


BANDS = 3
_FIXED = ("width", "height", "data")


@dataclass(slots=True, eq=False)
class IndexMap:
    """
    Index map associated with a tile texture of the same dimensions.

    For a texture pixel at (row=i, col=j):
        index[0, i, j] = application specific id of the other image, typically 0 if none
        index[1, i, j] = row of the corresponding pixel in that image
        index[2, i, j] = column of the corresponding pixel in that image

    Attributes:
        width, height: dimensions in pixels; fixed at construction.
        data: np.ndarray of shape (3, height, width), dtype uint32; also fixed at construction.
    """
    width: int
    height: int
    data: np.ndarray = field(repr=False)
    _num_nonzero: int = field(default=-1, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("width/height must be > 0")
        if not isinstance(self.data, np.ndarray):
            raise TypeError("data must be a numpy ndarray")
        if self.data.shape != (BANDS, self.height, self.width):
            raise ValueError("data shape must be (3, height, width)")
        if self.data.dtype != np.uint32:
            object.__setattr__(self, "data", self.data.astype(np.uint32))

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _FIXED and hasattr(self, name):
            raise AttributeError(f"IndexMap.{name} is fixed at construction")
        object.__setattr__(self, name, value)

    @classmethod
    def empty(cls, width: int, height: int) -> "IndexMap":
        return cls(width=width, height=height, data=np.zeros((BANDS, height, width), dtype=np.uint32))

    @classmethod
    def from_samples(cls, width: int, height: int, samples: Any) -> "IndexMap":
        """Build from pixel-interleaved samples shaped (height, width, 3), i.e. PPM order."""
        arr = np.asarray(samples)
        if arr.shape != (height, width, BANDS):
            raise ValueError(f"samples must have shape ({height}, {width}, {BANDS}), got {arr.shape}")
        data = np.ascontiguousarray(np.moveaxis(arr, -1, 0), dtype=np.uint32)
        return cls(width=width, height=height, data=data)

    def __getitem__(self, key: Tuple[int, int, int]) -> int:
        band, row, col = key
        return int(self.data[band, row, col])

    def __setitem__(self, key: Tuple[int, int, int], value: int) -> None:
        band, row, col = key
        self.data[band, row, col] = value
        self._num_nonzero = -1

    def band(self, b: int) -> np.ndarray:
        """Read-only (height, width) view of one band."""
        view = self.data[b]
        view.flags.writeable = False
        return view

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (BANDS, self.height, self.width)

    @property
    def num_nonzero(self) -> int:
        """Count of non-zero samples in band 0; computed on first access."""
        if self._num_nonzero < 0:
            self._num_nonzero = int(np.count_nonzero(self.data[0]))
        return self._num_nonzero

    def to_meta(self) -> Dict[str, Any]:
        """Metadata without sample data (safe to log/serialize)."""
        return {
            "width": self.width,
            "height": self.height,
            "num_nonzero": self.num_nonzero,
        }
