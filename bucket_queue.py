from __future__ import annotations

import numpy as np
from numba import njit

# Integer value ranges up to this many buckets are ordered with a counting
# pass; wider ranges and floating samples fall back to a stable sort.
MAX_BUCKETS = 1 << 16


@njit
def _bucket_order(values, vmin, nbins, descending):
    n = values.shape[0]
    counts = np.zeros(nbins, dtype=np.int64)
    for i in range(n):
        counts[np.int64(values[i]) - vmin] += 1

    starts = np.empty(nbins, dtype=np.int64)
    acc = 0
    if descending:
        for b in range(nbins - 1, -1, -1):
            starts[b] = acc
            acc += counts[b]
    else:
        for b in range(nbins):
            starts[b] = acc
            acc += counts[b]

    order = np.empty(n, dtype=np.int64)
    for i in range(n):
        b = np.int64(values[i]) - vmin
        order[starts[b]] = i
        starts[b] += 1
    return order


def sample_order(values: np.ndarray, descending: bool = True) -> np.ndarray:
    """Return the flat indices of `values` in priority order.

    Highest value first when `descending`, lowest first otherwise. Equal
    values keep their scan (insertion) order, which is the deterministic
    tie-break for every flooding algorithm here.
    """
    flat = np.ascontiguousarray(values).reshape(-1)
    n = flat.size
    if n == 0:
        return np.empty(0, dtype=np.int64)

    if flat.dtype == np.bool_:
        flat = flat.view(np.uint8)
    if flat.dtype.kind in "iu":
        vmin = int(flat.min())
        nbins = int(flat.max()) - vmin + 1
        if nbins <= max(MAX_BUCKETS, n):
            return _bucket_order(flat, vmin, nbins, bool(descending))

    if descending:
        # stable descending: sort the reversed buffer ascending, then flip
        rev = np.argsort(flat[::-1], kind="stable")
        return (n - 1 - rev)[::-1].astype(np.int64, copy=True)
    return np.argsort(flat, kind="stable").astype(np.int64, copy=False)
