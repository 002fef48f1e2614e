from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional

import numpy as np
from numba import njit

from component_label import label_components
from connectivity import check_connectivity, kernel_offsets
from flood_fill import _neighbor_index, as_volume_shape, default_connectivity
from progress import ProgressMonitor
from raster import Raster, SampleFormat, as_raster

logger = logging.getLogger(__name__)


@dataclass
class BoundaryLabels:
    """Labeled boundary segments of a label map.

    - boundary_map: LabelMap of the boundary samples; 0 off-boundary
    - regions: segment label -> labels of the regions the segment separates
      (0 is included when the segment touches background)
    """

    boundary_map: Raster
    regions: Dict[int, FrozenSet[int]] = field(default_factory=dict)

    @property
    def n_segments(self) -> int:
        return len(self.regions)

    def segments_between(self, a: int, b: int) -> list[int]:
        """Segments whose region set contains both `a` and `b`."""
        return sorted(k for k, v in self.regions.items() if a in v and b in v)


@njit
def _boundary_mask(labels, neigh, nz, ny, nx):
    n = labels.shape[0]
    mask = np.zeros(n, dtype=np.uint8)
    for p in range(n):
        lp = labels[p]
        for t in range(neigh.shape[0]):
            q = _neighbor_index(p, t, neigh, nz, ny, nx)
            if q >= 0 and labels[q] != lp:
                mask[p] = 1
                break
    return mask


def _segment_regions(segments: np.ndarray, labels: np.ndarray, neigh: np.ndarray, vol_shape) -> Dict[int, FrozenSet[int]]:
    """Collect, per segment, the labels found around its samples.

    Vectorized over offsets: each shifted view pairs a segment label with the
    region label of one neighbor; unique (segment, region) pairs are kept.
    """
    seg = segments.reshape(vol_shape)
    lab = labels.reshape(vol_shape)
    on = seg > 0
    pairs = [np.stack([seg[on].astype(np.int64), lab[on].astype(np.int64)], axis=1)]

    nz, ny, nx = vol_shape
    for dz, dy, dx in neigh:
        # destination box [lo, hi) for the sample, source box shifted by the offset
        src = []
        dst = []
        for d, n in ((dz, nz), (dy, ny), (dx, nx)):
            lo = max(0, -d)
            hi = min(n, n - d)
            dst.append(slice(lo, hi))
            src.append(slice(lo + d, hi + d))
        s = seg[tuple(dst)]
        m = s > 0
        if not m.any():
            continue
        nb = lab[tuple(src)]
        pairs.append(np.stack([s[m].astype(np.int64), nb[m].astype(np.int64)], axis=1))

    allp = np.unique(np.concatenate(pairs, axis=0), axis=0)
    out: Dict[int, set] = {}
    for s_lbl, r_lbl in allp:
        out.setdefault(int(s_lbl), set()).add(int(r_lbl))
    return {k: frozenset(v) for k, v in out.items()}


def label_boundaries(label_map,
                     connectivity: Optional[int] = None,
                     bit_depth=32,
                     monitor: Optional[ProgressMonitor] = None) -> BoundaryLabels:
    """Extract and label the boundaries between regions of a label map.

    A sample is on a boundary when its neighborhood (itself plus its in-bounds
    neighbors under `connectivity`) holds more than one distinct label. The
    boundary mask is labeled into disjoint segments with the same
    connectivity, and each segment records the region labels it separates.
    """
    raster = as_raster(label_map)
    conn = default_connectivity(raster.ndim) if connectivity is None else int(connectivity)
    check_connectivity(conn, raster.ndim)
    fmt = SampleFormat.from_bit_depth(bit_depth)

    vol_shape = as_volume_shape(raster.shape)
    neigh = kernel_offsets(conn)
    flat = raster.data.reshape(-1)
    mask = _boundary_mask(flat, neigh, *vol_shape)

    segments = label_components(Raster(mask.reshape(raster.shape)), conn, fmt, monitor)
    regions = {}
    if mask.any():
        regions = _segment_regions(segments.data.reshape(-1), flat, neigh, vol_shape)
    logger.debug("label_boundaries: %d boundary samples, %d segments", int(mask.sum()), len(regions))
    return BoundaryLabels(segments, regions)
