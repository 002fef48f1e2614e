"""
attribute_opening.py

Grayscale attribute openings / closings and their top-hats, computed on an
implicit component tree built by flooding.

Samples are taken from a bucket queue, highest value first (lowest first for
the dual closing), ties in scan order. A union-find forest over the processed
samples grows the connected components of the upper level sets:

  - a dequeued sample p starts as its own root, then absorbs the root r of
    each processed neighbor when r lies in the same flat zone
    (value[r] == value[p]) or when r's component is still below the
    threshold;
  - a neighbor component that has reached the threshold is left alone and
    marks p as saturated, since every component containing it is large too;
  - a final pass in reverse priority order gives each root its own value and
    each other sample the value of its parent.

Components below the threshold therefore collapse to the level of the
component they merge into, and components that reach the threshold keep the
level at which they reached it. The attribute is the sample count (AREA in
2D, VOLUME in 3D) or the diagonal of the bounding box, both increasing, so
the filters are idempotent and monotone in the threshold.

Primary API
-----------

    from attribute_opening import AttributeFilter, FilterKind, Attribute

    flt = AttributeFilter(FilterKind.OPENING, Attribute.AREA, threshold=50, connectivity=4)
    opened = flt.process(image)

    tophat = attribute_filter(image, "top_hat", "area", 50, connectivity=8)
"""

from __future__ import annotations

import logging
import math
import numbers
from enum import Enum
from typing import Optional

import numpy as np
from numba import njit

from bucket_queue import sample_order
from connectivity import check_connectivity, dimensionality, kernel_offsets
from errors import ConfigurationError
from flood_fill import _neighbor_index, as_volume_shape
from progress import ProgressMonitor, scan_steps
from raster import Raster, as_raster

logger = logging.getLogger(__name__)


class FilterKind(Enum):
    OPENING = "opening"
    CLOSING = "closing"
    TOP_HAT = "top_hat"
    BOTTOM_HAT = "bottom_hat"

    @property
    def uses_min_tree(self) -> bool:
        return self in (FilterKind.CLOSING, FilterKind.BOTTOM_HAT)

    @property
    def is_residue(self) -> bool:
        return self in (FilterKind.TOP_HAT, FilterKind.BOTTOM_HAT)


class Attribute(Enum):
    AREA = "area"
    VOLUME = "volume"
    BOUNDING_BOX_DIAGONAL = "box_diagonal"


def _parse_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    key = str(value).lower()
    for member in enum_cls:
        if key in (member.value, member.name.lower()):
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ConfigurationError(f"unknown {what} {value!r}; expected one of: {choices}")


@njit(inline='always')
def uf_find(parent, x):
    while parent[x] != x:
        parent[x] = parent[parent[x]]
        x = parent[x]
    return x


@njit(inline='always')
def _measure(size, box, r, use_box):
    if not use_box:
        return float(size[r])
    dz = box[r, 3] - box[r, 0]
    dy = box[r, 4] - box[r, 1]
    dx = box[r, 5] - box[r, 2]
    return math.sqrt(float(dz * dz + dy * dy + dx * dx))


@njit
def _flood_tree_step(values, order, start, stop, parent, size, box, saturated,
                     use_box, threshold, neigh, nz, ny, nx):
    plane = ny * nx
    for i in range(start, stop):
        p = order[i]
        parent[p] = p
        size[p] = 1
        if use_box:
            z = p // plane
            rem = p - z * plane
            y = rem // nx
            x = rem - y * nx
            box[p, 0] = z
            box[p, 1] = y
            box[p, 2] = x
            box[p, 3] = z
            box[p, 4] = y
            box[p, 5] = x
        vp = values[p]
        for t in range(neigh.shape[0]):
            q = _neighbor_index(p, t, neigh, nz, ny, nx)
            if q < 0 or parent[q] < 0:
                continue
            r = uf_find(parent, q)
            if r == p:
                continue
            if values[r] == vp or (saturated[r] == 0 and _measure(size, box, r, use_box) < threshold):
                parent[r] = p
                size[p] += size[r]
                if use_box:
                    for a in range(3):
                        if box[r, a] < box[p, a]:
                            box[p, a] = box[r, a]
                        if box[r, a + 3] > box[p, a + 3]:
                            box[p, a + 3] = box[r, a + 3]
                if saturated[r] != 0:
                    saturated[p] = 1
            else:
                saturated[p] = 1


@njit
def _resolve(values, order, parent, out):
    # parents always come later in priority order, so they are resolved first
    for i in range(order.shape[0] - 1, -1, -1):
        p = order[i]
        r = parent[p]
        if r == p:
            out[p] = values[p]
        else:
            out[p] = out[r]


class AttributeFilter:
    """Attribute opening, closing or top-hat with a fixed configuration.

    All parameters are validated here, before any raster is seen:
    - kind: FilterKind or its name ("opening", "closing", "top_hat", "bottom_hat")
    - attribute: AREA (2D connectivity), VOLUME (3D connectivity) or
      BOUNDING_BOX_DIAGONAL (either)
    - threshold: positive finite number; components whose attribute is below
      it are removed
    - connectivity: 4 / 8 (2D) or 6 / 26 (3D)
    """

    def __init__(self, kind=FilterKind.OPENING, attribute=Attribute.AREA,
                 threshold: float = 100, connectivity: int = 4):
        self.kind = _parse_enum(FilterKind, kind, "filter kind")
        self.attribute = _parse_enum(Attribute, attribute, "attribute")
        self.connectivity = int(connectivity)
        ndim = dimensionality(self.connectivity)
        if self.attribute is Attribute.AREA and ndim != 2:
            raise ConfigurationError(
                f"AREA applies to 2D connectivities (4, 8), not {self.connectivity}; use VOLUME"
            )
        if self.attribute is Attribute.VOLUME and ndim != 3:
            raise ConfigurationError(
                f"VOLUME applies to 3D connectivities (6, 26), not {self.connectivity}; use AREA"
            )
        if isinstance(threshold, bool) or not isinstance(threshold, numbers.Real):
            raise ConfigurationError(f"threshold must be a positive number, not {threshold!r}")
        threshold = float(threshold)
        if not math.isfinite(threshold) or threshold <= 0:
            raise ConfigurationError(f"threshold must be a positive number, not {threshold!r}")
        self.threshold = threshold
        self.ndim = ndim

    def __repr__(self):
        return (f"AttributeFilter(kind={self.kind.value}, attribute={self.attribute.value}, "
                f"threshold={self.threshold:g}, connectivity={self.connectivity})")

    def _filter_tree(self, flat: np.ndarray, shape, descending: bool,
                     monitor: Optional[ProgressMonitor]) -> np.ndarray:
        n = flat.size
        order = sample_order(flat, descending=descending)
        parent = np.full(n, -1, dtype=np.int64)
        size = np.zeros(n, dtype=np.int64)
        saturated = np.zeros(n, dtype=np.uint8)
        use_box = self.attribute is Attribute.BOUNDING_BOX_DIAGONAL
        box = np.zeros((n if use_box else 1, 6), dtype=np.int64)
        neigh = kernel_offsets(self.connectivity)
        nz, ny, nx = as_volume_shape(shape)

        source = f"attribute_{self.kind.value}"
        step, n_steps = scan_steps(shape)
        for s in range(n_steps):
            if monitor is not None:
                monitor.checkpoint(source, s, n_steps)
            start = s * step
            stop = min(start + step, n)
            _flood_tree_step(flat, order, start, stop, parent, size, box, saturated,
                             use_box, self.threshold, neigh, nz, ny, nx)

        out = np.empty_like(flat)
        _resolve(flat, order, parent, out)
        if monitor is not None:
            monitor.done(source, n_steps)
        logger.debug("%s: %d roots kept", source, int(np.count_nonzero(parent == np.arange(n))))
        return out

    def process(self, image, monitor: Optional[ProgressMonitor] = None) -> Raster:
        """Filter `image` and return a new Raster of the same shape and format."""
        raster = as_raster(image)
        check_connectivity(self.connectivity, raster.ndim)
        data = raster.data
        if data.dtype == np.bool_:
            data = data.view(np.uint8)
        flat = data.reshape(-1)

        filtered = self._filter_tree(flat, raster.shape, not self.kind.uses_min_tree, monitor)
        if self.kind is FilterKind.TOP_HAT:
            filtered = flat - filtered
        elif self.kind is FilterKind.BOTTOM_HAT:
            filtered = filtered - flat
        return Raster(filtered.reshape(raster.shape), raster.sample_format)


def attribute_filter(image, kind=FilterKind.OPENING, attribute=Attribute.AREA,
                     threshold: float = 100, connectivity: int = 4,
                     monitor: Optional[ProgressMonitor] = None) -> Raster:
    return AttributeFilter(kind, attribute, threshold, connectivity).process(image, monitor)


def area_opening(image, min_area: float, connectivity: int = 4) -> Raster:
    return AttributeFilter(FilterKind.OPENING, Attribute.AREA, min_area, connectivity).process(image)


def volume_opening(image, min_volume: float, connectivity: int = 6) -> Raster:
    return AttributeFilter(FilterKind.OPENING, Attribute.VOLUME, min_volume, connectivity).process(image)
