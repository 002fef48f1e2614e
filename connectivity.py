from __future__ import annotations

import numpy as np

from errors import ConfigurationError

CONNECTIVITIES_2D = (4, 8)
CONNECTIVITIES_3D = (6, 26)


def _raster_neighborhood(ndim: int, full: bool) -> list[tuple[int, ...]]:
    # Enumerate the 3x3(x3) block in raster order (last axis fastest), so the
    # face-only set is an ordered subset of the full one.
    out = []
    for idx in np.ndindex(*([3] * ndim)):
        off = tuple(int(c) - 1 for c in idx)
        if not any(off):
            continue
        if full or sum(abs(c) for c in off) == 1:
            out.append(off)
    return out


def offsets(connectivity: int) -> np.ndarray:
    """Return the ordered neighbor offsets for a connectivity.

    Offsets are shaped (M, ndim) in array-axis order: (dy, dx) for 4/8 and
    (dz, dy, dx) for 6/26. The order is the raster-scan order of the
    neighborhood and never changes between runs.
    """
    if connectivity == 4:
        offs = _raster_neighborhood(2, full=False)
    elif connectivity == 8:
        offs = _raster_neighborhood(2, full=True)
    elif connectivity == 6:
        offs = _raster_neighborhood(3, full=False)
    elif connectivity == 26:
        offs = _raster_neighborhood(3, full=True)
    else:
        raise ConfigurationError(
            f"connectivity must be 4 or 8 (2D), 6 or 26 (3D), not {connectivity!r}"
        )
    return np.asarray(offs, dtype=np.int64)


def dimensionality(connectivity: int) -> int:
    if connectivity in CONNECTIVITIES_2D:
        return 2
    if connectivity in CONNECTIVITIES_3D:
        return 3
    raise ConfigurationError(
        f"connectivity must be 4 or 8 (2D), 6 or 26 (3D), not {connectivity!r}"
    )


def check_connectivity(connectivity: int, ndim: int) -> None:
    """Raise ConfigurationError unless `connectivity` applies to `ndim`-D rasters."""
    if dimensionality(connectivity) != ndim:
        allowed = CONNECTIVITIES_2D if ndim == 2 else CONNECTIVITIES_3D
        raise ConfigurationError(
            f"connectivity {connectivity} cannot be used on a {ndim}D raster "
            f"(expected one of {allowed})"
        )


def kernel_offsets(connectivity: int) -> np.ndarray:
    """Offsets shaped (M, 3) as (dz, dy, dx); 2D sets get dz = 0."""
    offs = offsets(connectivity)
    if offs.shape[1] == 3:
        return offs
    out = np.zeros((offs.shape[0], 3), dtype=np.int64)
    out[:, 1:] = offs
    return out
