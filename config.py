"""
config.py

YAML run configuration for the batch driver (morpho_run.py).

Example
-------

    input: ./data/cells.npy
    output_dir: ./morpho_out
    operation: attribute_filter     # label | label_regions | label_region |
                                    # boundaries | extrema | attribute_filter |
                                    # size_filter
    connectivity: 8
    filter: top_hat
    attribute: area
    threshold: 50

Unknown keys and invalid values raise ConfigurationError when the file is
loaded, before any raster is read.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Optional

import yaml

from connectivity import dimensionality
from errors import ConfigurationError
from raster import SampleFormat

OPERATIONS = (
    "label",
    "label_regions",
    "label_region",
    "boundaries",
    "extrema",
    "attribute_filter",
    "size_filter",
)

# YAML spellings that differ from the dataclass field names
_ALIASES = {
    "input": "input_path",
    "filter": "filter_kind",
}


@dataclass
class RunConfig:
    """Parameters of one driver run.

    - input_path: .npy file holding a 2D or 3D array
    - operation: one of OPERATIONS
    - connectivity: 4/8 or 6/26; None picks 4 (2D) or 6 (3D) from the input
    - bit_depth: label map format for labeling operations (8, 16, 32)
    - background: region value mapped to 0 by label_regions (None: none)
    - region_value: value labeled by label_region
    - extremum: "maxima" or "minima"
    - filter_kind, attribute, threshold: attribute filter parameters
    - relation, size_limit: size filter parameters (input is a label map)
    """

    input_path: str
    operation: str
    output_dir: str = "./morpho_out"
    connectivity: Optional[int] = None
    bit_depth: int = 16
    background: Optional[float] = 0
    region_value: Optional[float] = None
    extremum: str = "maxima"
    filter_kind: str = "opening"
    attribute: str = "area"
    threshold: Optional[float] = None
    relation: str = ">="
    size_limit: Optional[int] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None
    progress: bool = False

    def __post_init__(self):
        self.operation = str(self.operation).lower()
        if self.operation not in OPERATIONS:
            raise ConfigurationError(
                f"operation must be one of {', '.join(OPERATIONS)}, not {self.operation!r}"
            )
        if self.connectivity is not None:
            try:
                self.connectivity = int(self.connectivity)
            except (TypeError, ValueError):
                raise ConfigurationError(f"connectivity must be an integer, not {self.connectivity!r}") from None
            dimensionality(self.connectivity)
        self.bit_depth = SampleFormat.from_bit_depth(self.bit_depth).bit_depth

        if self.operation == "label_region" and self.region_value is None:
            raise ConfigurationError("label_region requires region_value")
        if self.operation == "attribute_filter" and self.threshold is None:
            raise ConfigurationError("attribute_filter requires threshold")
        if self.operation == "size_filter" and self.size_limit is None:
            raise ConfigurationError("size_filter requires size_limit")

    @classmethod
    def from_dict(cls, cfg: dict) -> "RunConfig":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in cfg.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"unknown configuration key {key!r}")
            kwargs[name] = value
        for required in ("input_path", "operation"):
            if required not in kwargs:
                raise ConfigurationError(f"missing required configuration key {required!r}")
        return cls(**kwargs)


def parse_config(path: str) -> dict:
    with open(path, "r") as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        cfg = {}
    if not isinstance(cfg, dict):
        raise ConfigurationError(f"{path}: top level must be a mapping, got {type(cfg).__name__}")
    return cfg


def load_config(path: str, overrides: Optional[dict] = None) -> RunConfig:
    cfg = parse_config(path)
    if overrides:
        cfg.update({k: v for k, v in overrides.items() if v is not None})
    return RunConfig.from_dict(cfg)
