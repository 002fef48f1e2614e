from __future__ import annotations

import os
import sys

import numpy as np
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from component_label import label_components
from errors import ConfigurationError, OperationCancelled
from label_filter import (
    RelationalOperator,
    compact_labels,
    filter_by_size,
    keep_labels,
    label_sizes,
    remove_labels,
)
from progress import ProgressEvent, ProgressMonitor, scan_steps
from raster import SampleFormat


def _label_map():
    lab = np.zeros((6, 6), dtype=np.uint16)
    lab[0:2, 0:2] = 1      # 4 samples
    lab[5, 5] = 2          # 1 sample
    lab[3:6, 0:3] = 5      # 9 samples
    return lab


def test_label_sizes():
    labels, counts = label_sizes(_label_map())
    assert labels.tolist() == [1, 2, 5]
    assert counts.tolist() == [4, 1, 9]
    labels, counts = label_sizes(np.zeros((3, 3), np.uint8))
    assert labels.size == 0 and counts.size == 0


@pytest.mark.parametrize("relation, limit, kept", [
    (">=", 4, [1, 5]),
    (">", 4, [5]),
    ("<", 4, [2]),
    ("<=", 4, [1, 2]),
    ("==", 9, [5]),
    ("!=", 9, [1, 2]),
    (RelationalOperator.GT, 0, [1, 2, 5]),
    ("ge", 100, []),
])
def test_filter_by_size(relation, limit, kept):
    out = filter_by_size(_label_map(), relation, limit)
    assert out.data.dtype == np.uint16
    assert sorted(set(np.unique(out.data).tolist()) - {0}) == kept


def test_relational_operator():
    assert RelationalOperator.from_symbol(" <= ") is RelationalOperator.LE
    assert RelationalOperator.NE.evaluate(3, 4)
    assert RelationalOperator.LT.evaluate(np.array([1, 5]), 3).tolist() == [True, False]
    with pytest.raises(ConfigurationError):
        RelationalOperator.from_symbol("=<")


def test_keep_remove_compact():
    lab = _label_map()
    kept = keep_labels(lab, [5])
    assert set(np.unique(kept.data).tolist()) == {0, 5}
    removed = remove_labels(lab, [5])
    assert set(np.unique(removed.data).tolist()) == {0, 1, 2}

    compact, k = compact_labels(lab)
    assert k == 3
    assert compact.data[4, 1] == 3 and compact.data[5, 5] == 2
    assert compact.sample_format is SampleFormat.GRAY16

    compact, k = compact_labels(np.zeros((2, 2), np.uint8))
    assert k == 0 and not np.any(compact.data)


def test_size_filter_after_labeling():
    mask = np.zeros((8, 8), np.uint8)
    mask[0, 0] = 1
    mask[2:5, 2:5] = 1
    mask[7, 1:4] = 1
    lab = label_components(mask, 4, bit_depth=32)
    big, k = compact_labels(filter_by_size(lab, ">=", 3))
    assert k == 2
    assert big.data.dtype == np.float32
    assert int((big.data > 0).sum()) == 12


def test_scan_steps():
    assert scan_steps((7, 5)) == (5, 7)
    assert scan_steps((4, 3, 5)) == (15, 4)
    assert scan_steps((0, 5)) == (5, 0)


def test_progress_monitor_events():
    events = []
    mon = ProgressMonitor()
    mon.add_listener(events.append)
    label_components(np.ones((7, 5), np.uint8), 4, monitor=mon)
    assert [e.step for e in events] == list(range(8))
    assert all(e.total == 7 and e.source == "label_components" for e in events)
    assert events[-1].fraction == 1.0 and events[-1].message == "done"

    events.clear()
    label_components(np.ones((4, 3, 5), np.uint8), 26, monitor=mon)
    assert [e.step for e in events] == [0, 1, 2, 3, 4]

    mon.remove_listener(events.append)
    events.clear()
    label_components(np.ones((4, 4), np.uint8), monitor=mon)
    assert events == []


def test_progress_event_fraction():
    assert ProgressEvent("x", 1, 4).fraction == 0.25
    assert ProgressEvent("x", 0, 0).fraction == 1.0


def test_cancellation():
    mon = ProgressMonitor()
    assert not mon.cancelled
    mon.cancel()
    assert mon.cancelled
    with pytest.raises(OperationCancelled):
        label_components(np.ones((5, 5), np.uint8), monitor=mon)

    seen = []

    def cancel_at_two(evt):
        seen.append(evt.step)
        if evt.step == 2:
            mon2.cancel()

    mon2 = ProgressMonitor([cancel_at_two])
    with pytest.raises(OperationCancelled):
        label_components(np.ones((10, 3), np.uint8), monitor=mon2)
    assert seen == [0, 1, 2]
