from __future__ import annotations

import argparse
import json
import logging
import os
import time
from typing import Dict, Optional, Tuple

import numpy as np

from attribute_opening import AttributeFilter
from component_label import label_components, label_region, label_regions
from config import RunConfig, load_config
from label_boundaries import label_boundaries
from label_filter import compact_labels, filter_by_size
from log_config import configure_logging
from progress import ProgressEvent, ProgressMonitor
from raster import Raster
from regional_extrema import regional_extrema

logger = logging.getLogger(__name__)


def _log_progress(evt: ProgressEvent) -> None:
    # one line per ~10% of the scan
    every = max(evt.total // 10, 1)
    if evt.step % every == 0 or evt.step == evt.total:
        logger.info("%s: %d/%d (%.0f%%)", evt.source, evt.step, evt.total, 100.0 * evt.fraction)


def run_operation(cfg: RunConfig, raster: Raster,
                  monitor: Optional[ProgressMonitor] = None) -> Tuple[Dict[str, np.ndarray], int]:
    """Apply the configured operation. Return (arrays to save, label count).

    The label count is the number of labels / segments for labeling
    operations, the number of extremal samples for `extrema`, and -1 for the
    attribute filter.
    """
    op = cfg.operation
    conn = cfg.connectivity
    if op == "label":
        out = label_components(raster, conn, cfg.bit_depth, monitor)
        return {"labels": out.data}, int(out.data.max(initial=0))
    if op == "label_regions":
        out = label_regions(raster, conn, cfg.bit_depth, cfg.background, monitor)
        return {"labels": out.data}, int(out.data.max(initial=0))
    if op == "label_region":
        out = label_region(raster, cfg.region_value, conn, cfg.bit_depth, monitor)
        return {"labels": out.data}, int(out.data.max(initial=0))
    if op == "boundaries":
        res = label_boundaries(raster, conn, cfg.bit_depth, monitor)
        # ragged region sets flattened as (segment, region) pairs
        pairs = np.array([(s, r) for s in sorted(res.regions) for r in sorted(res.regions[s])],
                         dtype=np.int64).reshape(-1, 2)
        return {"boundaries": res.boundary_map.data, "segment_regions": pairs}, res.n_segments
    if op == "extrema":
        out = regional_extrema(raster, cfg.extremum, conn, monitor)
        return {"extrema": out.data}, int(np.count_nonzero(out.data))
    if op == "attribute_filter":
        if conn is None:
            conn = 4 if raster.ndim == 2 else 6
        flt = AttributeFilter(cfg.filter_kind, cfg.attribute, cfg.threshold, conn)
        out = flt.process(raster, monitor)
        return {"filtered": out.data}, -1
    if op == "size_filter":
        kept = filter_by_size(raster, cfg.relation, cfg.size_limit)
        compact, k = compact_labels(kept)
        return {"labels": compact.data}, k
    raise AssertionError(f"unhandled operation {op!r}")


def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="Run one raster morphology operation on a .npy file.")
    ap.add_argument("--config", required=True)
    ap.add_argument("--input", default=None, help="override the configured input path")
    ap.add_argument("--output-dir", default=None, help="override the configured output directory")
    ap.add_argument("--log-level", default=None)
    args = ap.parse_args(argv)

    cfg = load_config(args.config, {
        "input": args.input,
        "output_dir": args.output_dir,
        "log_level": args.log_level,
    })
    configure_logging(cfg.log_level, cfg.log_file)
    os.makedirs(cfg.output_dir, exist_ok=True)

    t0 = time.time()
    raster = Raster(np.load(cfg.input_path))
    logger.info("loaded %s: shape=%s format=%s", cfg.input_path, raster.shape, raster.sample_format.name)
    t_load = time.time()

    monitor = ProgressMonitor([_log_progress] if cfg.progress else None)
    arrays, count = run_operation(cfg, raster, monitor)
    t_run = time.time()

    stem = os.path.splitext(os.path.basename(cfg.input_path))[0]
    out_path = os.path.join(cfg.output_dir, f"{stem}.{cfg.operation}.npz")
    np.savez(out_path, **arrays)
    t_done = time.time()

    meta = {
        "input": str(cfg.input_path),
        "shape": list(raster.shape),
        "sample_format": raster.sample_format.name,
        "operation": cfg.operation,
        "count": int(count),
        "times": {
            "load": float(t_load - t0),
            "run": float(t_run - t_load),
            "save": float(t_done - t_run),
        },
        "config": dict(vars(cfg)),
        "output_npz": os.path.basename(out_path),
    }
    with open(os.path.join(cfg.output_dir, f"{stem}.{cfg.operation}.meta.json"), "w") as f:
        json.dump(meta, f, indent=2)

    print(f"{cfg.operation} times: load={t_load-t0:.2f}s run={t_run-t_load:.2f}s save={t_done-t_run:.2f}s count={count}")


if __name__ == "__main__":
    main()
