"""
flood_fill.py

Plateau flood fill over 2D/3D rasters.

The kernels work on flattened C-ordered buffers with the raster viewed as
(nz, ny, nx); 2D rasters use nz = 1 and neighbor offsets with dz = 0. Growth
uses an explicit FIFO queue preallocated to the raster size: a sample is
marked when it is enqueued, so it is enqueued at most once and the queue can
never overflow. After a fill, queue[:count] holds every visited sample.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numba import njit

from connectivity import check_connectivity, kernel_offsets
from errors import BoundsError
from raster import Raster, as_raster


@njit(inline='always')
def _neighbor_index(p, t, neigh, nz, ny, nx):
    """Linear index of the t-th neighbor of p, or -1 when out of bounds."""
    plane = ny * nx
    z = p // plane
    r = p - z * plane
    y = r // nx
    x = r - y * nx
    z2 = z + neigh[t, 0]
    y2 = y + neigh[t, 1]
    x2 = x + neigh[t, 2]
    if z2 < 0 or y2 < 0 or x2 < 0 or z2 >= nz or y2 >= ny or x2 >= nx:
        return -1
    return (z2 * ny + y2) * nx + x2


@njit
def _flood_label(values, labels, seed, label, neigh, nz, ny, nx, queue):
    """Assign `label` to the unlabeled samples equal to values[seed] connected to seed.

    Returns the number of samples labeled.
    """
    v0 = values[seed]
    labels[seed] = label
    queue[0] = seed
    head = 0
    tail = 1
    while head < tail:
        p = queue[head]
        head += 1
        for t in range(neigh.shape[0]):
            q = _neighbor_index(p, t, neigh, nz, ny, nx)
            if q < 0:
                continue
            if labels[q] == 0 and values[q] == v0:
                labels[q] = label
                queue[tail] = q
                tail += 1
    return tail


@njit
def _flood_plateau(values, visited, seed, neigh, nz, ny, nx, queue):
    """Mark the plateau of seed in `visited`; members end up in queue[:count]."""
    v0 = values[seed]
    visited[seed] = 1
    queue[0] = seed
    head = 0
    tail = 1
    while head < tail:
        p = queue[head]
        head += 1
        for t in range(neigh.shape[0]):
            q = _neighbor_index(p, t, neigh, nz, ny, nx)
            if q < 0:
                continue
            if visited[q] == 0 and values[q] == v0:
                visited[q] = 1
                queue[tail] = q
                tail += 1
    return tail


@njit
def _write_members(target, queue, count, value):
    for i in range(count):
        target[queue[i]] = value


def as_volume_shape(shape: Sequence[int]) -> tuple[int, int, int]:
    """View a 2D or 3D shape as (nz, ny, nx)."""
    if len(shape) == 2:
        return 1, int(shape[0]), int(shape[1])
    return int(shape[0]), int(shape[1]), int(shape[2])


def default_connectivity(ndim: int) -> int:
    return 4 if ndim == 2 else 6


def _seed_index(raster: Raster, seed: Sequence[int]) -> int:
    if not raster.contains(seed):
        raise BoundsError(f"seed {tuple(seed)} lies outside raster of shape {raster.shape}")
    return int(np.ravel_multi_index(tuple(int(s) for s in seed), raster.shape))


def flood_fill_into(image, seed: Sequence[int], target, value, connectivity: int | None = None) -> int:
    """Write `value` into `target` over the plateau of `image` containing `seed`.

    - image: source raster (or array); the plateau is the connected set of
      samples equal to image[seed]
    - target: array or Raster with the same shape as image, modified in place
    - seed: coordinates in array-axis order

    Returns the number of samples written.
    """
    src = as_raster(image)
    conn = default_connectivity(src.ndim) if connectivity is None else int(connectivity)
    check_connectivity(conn, src.ndim)
    out = target.data if isinstance(target, Raster) else target
    if out.shape != src.shape:
        raise BoundsError(f"target shape {out.shape} differs from image shape {src.shape}")
    if not out.flags.c_contiguous:
        raise ValueError("target must be a C-contiguous array")
    p = _seed_index(src, seed)

    nz, ny, nx = as_volume_shape(src.shape)
    flat = src.data.reshape(-1)
    visited = np.zeros(flat.size, dtype=np.uint8)
    queue = np.empty(flat.size, dtype=np.int64)
    count = _flood_plateau(flat, visited, p, kernel_offsets(conn), nz, ny, nx, queue)
    _write_members(out.reshape(-1), queue, count, out.dtype.type(value))
    return int(count)


def flood_fill(image, seed: Sequence[int], value, connectivity: int | None = None) -> Raster:
    """Return a copy of `image` with the plateau containing `seed` set to `value`."""
    src = as_raster(image)
    result = src.copy()
    flood_fill_into(src, seed, result, value, connectivity)
    return result
