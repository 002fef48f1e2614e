"""
component_label.py

Flood-fill connected-component labeling of 2D/3D rasters.

Samples are scanned in row-major order (x fastest, then y, then z). The first
unlabeled member sample found starts a new component, which is grown to
completion with an explicit queue before the scan resumes, so the component
met first in scan order always gets the smallest label. Labels are exactly
1..N; background is always 0.

Primary API
-----------

    from component_label import label_components, label_regions

    labels = label_components(mask, connectivity=8, bit_depth=16)
    regions = label_regions(image, connectivity=4, background=0)
"""

from __future__ import annotations

import logging
import numbers
from typing import Optional

import numpy as np
from numba import njit

from connectivity import check_connectivity, kernel_offsets
from errors import ConfigurationError, LabelOverflowError
from flood_fill import _flood_label, as_volume_shape, default_connectivity
from progress import ProgressMonitor, scan_steps
from raster import Raster, SampleFormat, as_raster

logger = logging.getLogger(__name__)


@njit
def _label_scan_step(values, labels, start, stop, next_label, max_label,
                     background, has_background, neigh, nz, ny, nx, queue):
    """Label every new component seeded in [start, stop).

    Returns (next_label, overflow). On overflow the scan stops at the sample
    that would have needed label max_label + 1.
    """
    for p in range(start, stop):
        if labels[p] != 0:
            continue
        if has_background and values[p] == background:
            continue
        if next_label > max_label:
            return next_label, True
        _flood_label(values, labels, p, next_label, neigh, nz, ny, nx, queue)
        next_label += 1
    return next_label, False


def _background_sample(dtype: np.dtype, background):
    """Return `background` as a sample of `dtype`, or None when no sample can equal it.

    Fractional values on integer rasters and values outside the dtype range
    are never truncated or wrapped.
    """
    if background is None:
        return None
    if isinstance(background, (bool, np.bool_)) or not isinstance(background, numbers.Real):
        raise ConfigurationError(f"background must be a number or None, not {background!r}")
    if dtype.kind in "biu":
        if not float(background).is_integer():
            return None
        if dtype.kind == "b":
            lo, hi = 0, 1
        else:
            info = np.iinfo(dtype)
            lo, hi = int(info.min), int(info.max)
        value = int(background)
        if value < lo or value > hi:
            return None
        return dtype.type(value)
    with np.errstate(over="ignore"):
        value = dtype.type(background)
    if np.isfinite(background) and not np.isfinite(value):
        return None
    return value


def _label_flat(values: np.ndarray,
                shape: tuple,
                connectivity: int,
                fmt: SampleFormat,
                background,
                monitor: Optional[ProgressMonitor],
                source: str) -> tuple[np.ndarray, int]:
    check_connectivity(connectivity, len(shape))
    nz, ny, nx = as_volume_shape(shape)
    neigh = kernel_offsets(connectivity)
    flat = np.ascontiguousarray(values).reshape(-1)
    labels = np.zeros(flat.size, dtype=fmt.dtype)
    queue = np.empty(max(flat.size, 1), dtype=np.int64)

    bg = _background_sample(flat.dtype, background)
    has_background = bg is not None
    if not has_background:
        if background is not None:
            logger.debug("%s: background %r matches no %s sample", source, background, flat.dtype)
        bg = flat.dtype.type(0)

    step, n_steps = scan_steps(shape)
    next_label = 1
    for s in range(n_steps):
        if monitor is not None:
            monitor.checkpoint(source, s, n_steps)
        start = s * step
        stop = min(start + step, flat.size)
        next_label, overflow = _label_scan_step(
            flat, labels, start, stop, next_label, fmt.max_label,
            bg, has_background, neigh, nz, ny, nx, queue,
        )
        if overflow:
            logger.debug("%s: label overflow after %d components", source, next_label - 1)
            raise LabelOverflowError(fmt.max_label)
    if monitor is not None:
        monitor.done(source, n_steps)

    n_labels = next_label - 1
    logger.debug("%s: %d components (connectivity=%d, shape=%s)", source, n_labels, connectivity, shape)
    return labels.reshape(shape), n_labels


def label_components(image,
                     connectivity: Optional[int] = None,
                     bit_depth=16,
                     monitor: Optional[ProgressMonitor] = None) -> Raster:
    """Label the connected components of the nonzero samples of `image`.

    - image: binary Raster or array (any nonzero sample is foreground)
    - connectivity: 4 or 8 for 2D, 6 or 26 for 3D (default 4 / 6)
    - bit_depth: 8, 16 or 32; bounds the number of labels (255, 65535, 2**23)

    Returns a LabelMap Raster in the requested format. Raises
    LabelOverflowError when the image has more components than the format
    can hold.
    """
    raster = as_raster(image)
    fmt = SampleFormat.from_bit_depth(bit_depth)
    conn = default_connectivity(raster.ndim) if connectivity is None else int(connectivity)
    mask = (raster.data != 0).view(np.uint8)
    labels, _ = _label_flat(mask, raster.shape, conn, fmt, 0, monitor, "label_components")
    return Raster(labels, fmt)


def label_regions(image,
                  connectivity: Optional[int] = None,
                  bit_depth=16,
                  background=0,
                  monitor: Optional[ProgressMonitor] = None) -> Raster:
    """Label every connected region of equal-valued samples.

    The image is treated as pre-partitioned: each connected set of samples
    sharing one value becomes one label, except samples equal to
    `background`, which map to 0. With background=None every region is
    labeled.
    """
    raster = as_raster(image)
    fmt = SampleFormat.from_bit_depth(bit_depth)
    conn = default_connectivity(raster.ndim) if connectivity is None else int(connectivity)
    labels, _ = _label_flat(raster.data, raster.shape, conn, fmt, background, monitor, "label_regions")
    return Raster(labels, fmt)


def label_region(image,
                 region_value,
                 connectivity: Optional[int] = None,
                 bit_depth=16,
                 monitor: Optional[ProgressMonitor] = None) -> Raster:
    """Label the connected components of the samples equal to `region_value`."""
    raster = as_raster(image)
    return label_components(raster.data == region_value, connectivity, bit_depth, monitor)


def count_components(image, connectivity: Optional[int] = None, bit_depth=32) -> int:
    raster = as_raster(image)
    fmt = SampleFormat.from_bit_depth(bit_depth)
    conn = default_connectivity(raster.ndim) if connectivity is None else int(connectivity)
    mask = (raster.data != 0).view(np.uint8)
    _, n = _label_flat(mask, raster.shape, conn, fmt, 0, None, "count_components")
    return n
