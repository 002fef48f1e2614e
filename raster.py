"""
raster.py

Dense 2D/3D sample grids with a declared sample format.

Axis order is (height, width) for 2D and (depth, height, width) for 3D,
i.e. x is the fastest-varying axis. The sample format is decided once when
the Raster is built and bounds the largest label a label map can hold:

    GRAY8   -> uint8,   max label 255
    GRAY16  -> uint16,  max label 65535
    GRAY32  -> float32, max label 2**23
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from errors import BoundsError, ConfigurationError


class SampleFormat(Enum):
    GRAY8 = 8
    GRAY16 = 16
    GRAY32 = 32

    @property
    def bit_depth(self) -> int:
        return self.value

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_FORMAT_DTYPES[self])

    @property
    def max_label(self) -> int:
        return _FORMAT_MAX_LABEL[self]

    @classmethod
    def from_bit_depth(cls, bit_depth: Union[int, "SampleFormat"]) -> "SampleFormat":
        if isinstance(bit_depth, SampleFormat):
            return bit_depth
        try:
            if isinstance(bit_depth, str):
                bit_depth = int(bit_depth.strip())
            if isinstance(bit_depth, bool) or not isinstance(bit_depth, numbers.Integral):
                raise TypeError(bit_depth)
            return cls(int(bit_depth))
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"bit depth should be 8, 16 or 32, not {bit_depth!r}"
            ) from None

    @classmethod
    def from_dtype(cls, dtype) -> "SampleFormat":
        dt = np.dtype(dtype)
        if dt == np.bool_ or dt.itemsize == 1:
            return cls.GRAY8
        if dt.kind in "iu" and dt.itemsize == 2:
            return cls.GRAY16
        return cls.GRAY32


_FORMAT_DTYPES = {
    SampleFormat.GRAY8: np.uint8,
    SampleFormat.GRAY16: np.uint16,
    SampleFormat.GRAY32: np.float32,
}

_FORMAT_MAX_LABEL = {
    SampleFormat.GRAY8: 255,
    SampleFormat.GRAY16: 65535,
    SampleFormat.GRAY32: 1 << 23,
}


@dataclass
class Raster:
    """A 2D or 3D grid of samples plus its declared format.

    - data: C-ordered array shaped (height, width) or (depth, height, width)
    - sample_format: declared format; inferred from data.dtype when omitted
    """

    data: np.ndarray
    sample_format: Optional[SampleFormat] = None

    def __post_init__(self):
        data = np.asarray(self.data)
        if data.ndim not in (2, 3):
            raise ConfigurationError(
                f"rasters must be 2D or 3D, got an array with shape {data.shape}"
            )
        self.data = np.ascontiguousarray(data)
        inferred = SampleFormat.from_dtype(self.data.dtype)
        if self.sample_format is None:
            self.sample_format = inferred
            return
        fmt = SampleFormat.from_bit_depth(self.sample_format)
        if fmt.bit_depth < inferred.bit_depth:
            raise ConfigurationError(
                f"{self.data.dtype} samples need at least {inferred.bit_depth} bits, "
                f"not the declared {fmt.bit_depth}"
            )
        self.sample_format = fmt

    @classmethod
    def zeros(cls, shape: Sequence[int], sample_format=SampleFormat.GRAY8) -> "Raster":
        fmt = SampleFormat.from_bit_depth(sample_format)
        return cls(np.zeros(tuple(shape), dtype=fmt.dtype), fmt)

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.data.shape

    @property
    def width(self) -> int:
        return self.data.shape[-1]

    @property
    def height(self) -> int:
        return self.data.shape[-2]

    @property
    def depth(self) -> int:
        return self.data.shape[0] if self.data.ndim == 3 else 1

    @property
    def size(self) -> int:
        return self.data.size

    def copy(self) -> "Raster":
        return Raster(self.data.copy(), self.sample_format)

    def contains(self, position: Sequence[int]) -> bool:
        if len(position) != self.ndim:
            return False
        return all(0 <= int(p) < n for p, n in zip(position, self.shape))

    def crop(self, origin: Sequence[int], size: Sequence[int]) -> "Raster":
        """Return a copy of the box starting at `origin` with extent `size`.

        Both are given in array-axis order. Boxes that do not fit entirely in
        the raster raise BoundsError.
        """
        if len(origin) != self.ndim or len(size) != self.ndim:
            raise BoundsError(
                f"crop box must have {self.ndim} coordinates, got origin={tuple(origin)} size={tuple(size)}"
            )
        slices = []
        for o, s, n in zip(origin, size, self.shape):
            o, s = int(o), int(s)
            if s <= 0 or o < 0 or o + s > n:
                raise BoundsError(
                    f"crop box origin={tuple(origin)} size={tuple(size)} "
                    f"falls outside raster of shape {self.shape}"
                )
            slices.append(slice(o, o + s))
        return Raster(self.data[tuple(slices)].copy(), self.sample_format)


def as_raster(image) -> Raster:
    """Wrap a bare array into a Raster; Rasters pass through unchanged."""
    if isinstance(image, Raster):
        return image
    return Raster(np.asarray(image))
