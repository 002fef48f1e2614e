from __future__ import annotations

import operator
from enum import Enum
from typing import Iterable, Tuple

import numpy as np

from errors import ConfigurationError
from raster import Raster, as_raster


class RelationalOperator(Enum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    NE = "!="

    def evaluate(self, a, b):
        """Apply the relation; works element-wise on NumPy arrays."""
        return _RELATIONS[self](a, b)

    @classmethod
    def from_symbol(cls, symbol) -> "RelationalOperator":
        if isinstance(symbol, RelationalOperator):
            return symbol
        key = str(symbol).strip()
        for op in cls:
            if key == op.value or key.upper() == op.name:
                return op
        raise ConfigurationError(f"unknown relational operator {symbol!r}")


_RELATIONS = {
    RelationalOperator.GT: operator.gt,
    RelationalOperator.LT: operator.lt,
    RelationalOperator.GE: operator.ge,
    RelationalOperator.LE: operator.le,
    RelationalOperator.EQ: operator.eq,
    RelationalOperator.NE: operator.ne,
}


def _int_labels(label_map: Raster) -> np.ndarray:
    return label_map.data.astype(np.int64, copy=False)


def label_sizes(label_map) -> Tuple[np.ndarray, np.ndarray]:
    """Return (labels, counts) for every positive label present, ascending."""
    lab = _int_labels(as_raster(label_map)).ravel()
    if lab.size == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64)
    cnt = np.bincount(lab[lab > 0], minlength=int(lab.max()) + 1)
    present = np.nonzero(cnt)[0]
    present = present[present > 0]
    return present.astype(np.int64), cnt[present].astype(np.int64)


def keep_labels(label_map, labels: Iterable[int]) -> Raster:
    """Zero every label not listed; kept labels keep their values."""
    raster = as_raster(label_map)
    keep = np.isin(_int_labels(raster), np.asarray(list(labels), dtype=np.int64))
    out = np.where(keep, raster.data, 0).astype(raster.data.dtype, copy=False)
    return Raster(out, raster.sample_format)


def remove_labels(label_map, labels: Iterable[int]) -> Raster:
    raster = as_raster(label_map)
    drop = np.isin(_int_labels(raster), np.asarray(list(labels), dtype=np.int64))
    out = np.where(drop, 0, raster.data).astype(raster.data.dtype, copy=False)
    return Raster(out, raster.sample_format)


def filter_by_size(label_map, relation, limit: int) -> Raster:
    """Keep the labels whose sample count satisfies `count <relation> limit`."""
    op = RelationalOperator.from_symbol(relation)
    labels, counts = label_sizes(label_map)
    return keep_labels(label_map, labels[op.evaluate(counts, limit)])


def compact_labels(label_map) -> Tuple[Raster, int]:
    """Renumber positive labels to 1..K in ascending order. Return (labels, K)."""
    raster = as_raster(label_map)
    lab = _int_labels(raster)
    if lab.size == 0:
        return raster.copy(), 0
    u = np.unique(lab)
    u = u[u > 0]
    if u.size == 0:
        return Raster(np.zeros_like(raster.data), raster.sample_format), 0
    lut = np.zeros(int(u.max()) + 1, dtype=np.int64)
    lut[u] = np.arange(1, u.size + 1, dtype=np.int64)
    out = np.where(lab > 0, lut[np.clip(lab, 0, None)], 0).astype(raster.data.dtype)
    return Raster(out, raster.sample_format), int(u.size)
