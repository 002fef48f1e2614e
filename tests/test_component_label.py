from __future__ import annotations

import os
import sys

import numpy as np
import pytest
from scipy import ndimage as ndi

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from component_label import count_components, label_components, label_region, label_regions
from errors import ConfigurationError, LabelOverflowError
from raster import Raster, SampleFormat
from synthetic_test import make_dots, make_islands

STRUCTURES = {
    4: ndi.generate_binary_structure(2, 1),
    8: ndi.generate_binary_structure(2, 2),
    6: ndi.generate_binary_structure(3, 1),
    26: ndi.generate_binary_structure(3, 3),
}


def _same_partition(a: np.ndarray, b: np.ndarray) -> bool:
    """True when the two label maps group the samples identically."""
    a = a.astype(np.int64).ravel()
    b = b.astype(np.int64).ravel()
    if not np.array_equal(a == 0, b == 0):
        return False
    pairs = np.unique(np.stack([a, b], axis=1), axis=0)
    return (np.unique(pairs[:, 0]).size == pairs.shape[0]
            and np.unique(pairs[:, 1]).size == pairs.shape[0])


def _scan_ordered(labels: np.ndarray) -> bool:
    flat = labels.astype(np.int64).ravel()
    u, first = np.unique(flat, return_index=True)
    first = first[u > 0]
    u = u[u > 0]
    return np.array_equal(u, np.arange(1, u.size + 1)) and np.all(np.diff(first) > 0)


def test_islands_4_vs_8():
    mask = make_islands()
    lab4 = label_components(mask, 4)
    lab8 = label_components(mask, 8)
    assert int(lab4.data.max()) == 5
    assert int(lab8.data.max()) == 1
    assert lab4.sample_format is SampleFormat.GRAY16
    assert np.array_equal(lab4.data > 0, mask > 0)


@pytest.mark.parametrize("conn", [4, 8])
def test_matches_scipy_2d(conn):
    rng = np.random.default_rng(conn)
    mask = rng.random((40, 33)) < 0.45
    ours = label_components(mask, conn, bit_depth=32)
    ref, k = ndi.label(mask, structure=STRUCTURES[conn])
    assert int(ours.data.max()) == k
    assert _same_partition(ours.data, ref)
    assert _scan_ordered(ours.data)
    assert ours.data.dtype == np.float32


@pytest.mark.parametrize("conn", [6, 26])
def test_matches_scipy_3d(conn):
    rng = np.random.default_rng(100 + conn)
    mask = rng.random((9, 11, 10)) < 0.35
    ours = label_components(mask, conn)
    ref, k = ndi.label(mask, structure=STRUCTURES[conn])
    assert int(ours.data.max()) == k
    assert _same_partition(ours.data, ref)
    assert _scan_ordered(ours.data)


def test_fewer_components_with_more_neighbors():
    rng = np.random.default_rng(3)
    mask = rng.random((30, 30)) < 0.5
    assert count_components(mask, 8) <= count_components(mask, 4)
    vol = rng.random((6, 8, 8)) < 0.4
    assert count_components(vol, 26) <= count_components(vol, 6)


def test_empty_and_full():
    assert int(label_components(np.zeros((4, 5), np.uint8)).data.max()) == 0
    full = label_components(np.ones((3, 4, 5), np.uint8))
    assert np.all(full.data == 1)


def test_label_overflow():
    dots = make_dots()
    with pytest.raises(LabelOverflowError) as exc:
        label_components(dots, 4, bit_depth=8)
    assert exc.value.max_label == 255
    assert "255" in str(exc.value)

    lab = label_components(make_dots(n=255), 4, bit_depth=8)
    assert int(lab.data.max()) == 255
    assert lab.data.dtype == np.uint8

    lab16 = label_components(dots, 4, bit_depth=16)
    assert int(lab16.data.max()) == 256


def test_bad_parameters():
    mask = np.ones((4, 4), np.uint8)
    with pytest.raises(ConfigurationError):
        label_components(mask, 6)
    with pytest.raises(ConfigurationError):
        label_components(mask, 4, bit_depth=12)
    with pytest.raises(ConfigurationError):
        label_components(np.ones((2, 2, 2)), 8)


def test_label_regions():
    img = np.array([
        [1, 1, 2, 2],
        [1, 0, 0, 2],
        [3, 3, 0, 2],
        [3, 1, 1, 1],
    ], dtype=np.uint8)
    lab = label_regions(img, 4).data
    assert lab.tolist() == [
        [1, 1, 2, 2],
        [1, 0, 0, 2],
        [3, 3, 0, 2],
        [3, 4, 4, 4],
    ]
    every = label_regions(img, 4, background=None).data
    assert int(every.max()) == 5
    assert every[1, 1] == every[2, 2] != 0

    # another background value
    lab2 = label_regions(img, 8, background=1).data
    assert lab2[0, 0] == 0 and lab2[3, 3] == 0
    assert lab2[1, 1] == lab2[2, 2]


def test_label_regions_raster_input():
    img = Raster(np.array([[5, 5, 9], [9, 9, 9]], dtype=np.uint16))
    lab = label_regions(img, 4, bit_depth=8, background=None)
    assert lab.sample_format is SampleFormat.GRAY8
    assert lab.data.tolist() == [[1, 1, 2], [2, 2, 2]]


def test_label_region():
    img = np.array([
        [7, 0, 7],
        [0, 7, 0],
        [7, 0, 3],
    ], dtype=np.uint8)
    assert int(label_region(img, 7, 4).data.max()) == 4
    assert int(label_region(img, 7, 8).data.max()) == 1
    assert int(label_region(img, 3, 4).data.max()) == 1
    assert int(label_region(img, 42, 4).data.max()) == 0


def test_label_regions_unreachable_background():
    img = np.array([[0, 0, 3, 3]], dtype=np.uint8)
    # no uint8 sample equals 0.5, so the 0-valued region is labeled too
    assert label_regions(img, 4, background=0.5).data.tolist() == [[1, 1, 2, 2]]
    assert label_regions(img, 4, background=0.0).data.tolist() == [[0, 0, 1, 1]]

    img = np.array([[255, 255, 3, 3]], dtype=np.uint8)
    assert label_regions(img, 4, background=-1).data.tolist() == [[1, 1, 2, 2]]
    assert label_regions(img, 4, background=256).data.tolist() == [[1, 1, 2, 2]]
    assert label_regions(img, 4, background=np.int64(255)).data.tolist() == [[0, 0, 1, 1]]

    fimg = np.array([[0.5, 0.5, 2.0]], dtype=np.float32)
    assert label_regions(fimg, 4, background=0.5).data.tolist() == [[0, 0, 1]]
    assert label_regions(fimg, 4, background=1e300).data.tolist() == [[1, 1, 2]]


def test_label_regions_bad_background():
    img = np.zeros((2, 2), dtype=np.uint8)
    with pytest.raises(ConfigurationError):
        label_regions(img, 4, background="zero")
    with pytest.raises(ConfigurationError):
        label_regions(img, 4, background=True)
