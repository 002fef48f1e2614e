"""
regional_extrema.py

Regional maxima / minima by plateau flooding.

Samples are visited in decreasing value order (increasing for minima). Each
unvisited sample seeds a flood of its whole plateau; while flooding, every
neighbor outside the plateau is compared with the plateau value. The plateau
is kept only when no outside neighbor is higher (lower for minima), and that
verdict is applied to all of its samples at once after the flood completes.

The result depends only on the order relation between samples, so it is
unchanged by any strictly increasing remapping of the values.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

import numpy as np
from numba import njit

from bucket_queue import sample_order
from connectivity import check_connectivity, kernel_offsets
from errors import ConfigurationError
from flood_fill import _neighbor_index, as_volume_shape, default_connectivity
from progress import ProgressMonitor, scan_steps
from raster import Raster, SampleFormat, as_raster

logger = logging.getLogger(__name__)

MASK_ON = 255


class ExtremaType(Enum):
    MAXIMA = "maxima"
    MINIMA = "minima"

    @classmethod
    def parse(cls, value) -> "ExtremaType":
        if isinstance(value, ExtremaType):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"extremum kind must be 'maxima' or 'minima', not {value!r}") from None


@njit
def _extrema_step(values, order, start, stop, visited, out, maxima, neigh, nz, ny, nx, queue):
    for i in range(start, stop):
        seed = order[i]
        if visited[seed] != 0:
            continue
        v0 = values[seed]
        visited[seed] = 1
        queue[0] = seed
        head = 0
        tail = 1
        accept = True
        while head < tail:
            p = queue[head]
            head += 1
            for t in range(neigh.shape[0]):
                q = _neighbor_index(p, t, neigh, nz, ny, nx)
                if q < 0:
                    continue
                vq = values[q]
                if vq == v0:
                    if visited[q] == 0:
                        visited[q] = 1
                        queue[tail] = q
                        tail += 1
                elif maxima:
                    if vq > v0:
                        accept = False
                elif vq < v0:
                    accept = False
        if accept:
            for j in range(tail):
                out[queue[j]] = MASK_ON


def regional_extrema(image,
                     kind=ExtremaType.MAXIMA,
                     connectivity: Optional[int] = None,
                     monitor: Optional[ProgressMonitor] = None) -> Raster:
    """Binary mask (255 / 0) of the regional maxima or minima of `image`."""
    raster = as_raster(image)
    kind = ExtremaType.parse(kind)
    conn = default_connectivity(raster.ndim) if connectivity is None else int(connectivity)
    check_connectivity(conn, raster.ndim)

    source = f"regional_{kind.value}"
    vol_shape = as_volume_shape(raster.shape)
    flat = raster.data.reshape(-1)
    if flat.dtype == np.bool_:
        flat = flat.view(np.uint8)
    maxima = kind is ExtremaType.MAXIMA
    order = sample_order(flat, descending=maxima)

    visited = np.zeros(flat.size, dtype=np.uint8)
    out = np.zeros(flat.size, dtype=np.uint8)
    queue = np.empty(max(flat.size, 1), dtype=np.int64)
    neigh = kernel_offsets(conn)

    step, n_steps = scan_steps(raster.shape)
    for s in range(n_steps):
        if monitor is not None:
            monitor.checkpoint(source, s, n_steps)
        start = s * step
        stop = min(start + step, flat.size)
        _extrema_step(flat, order, start, stop, visited, out, maxima, neigh, *vol_shape, queue)
    if monitor is not None:
        monitor.done(source, n_steps)

    logger.debug("%s: %d extremal samples (connectivity=%d)", source, int(np.count_nonzero(out)), conn)
    return Raster(out.reshape(raster.shape), SampleFormat.GRAY8)


def regional_maxima(image, connectivity: Optional[int] = None,
                    monitor: Optional[ProgressMonitor] = None) -> Raster:
    return regional_extrema(image, ExtremaType.MAXIMA, connectivity, monitor)


def regional_minima(image, connectivity: Optional[int] = None,
                    monitor: Optional[ProgressMonitor] = None) -> Raster:
    return regional_extrema(image, ExtremaType.MINIMA, connectivity, monitor)
