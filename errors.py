from __future__ import annotations


class MorphoError(Exception):
    """Base class for errors raised by the labeling and filtering routines."""


class ConfigurationError(MorphoError, ValueError):
    """Invalid connectivity, bit depth, threshold or other parameter.

    Raised before any sample is processed.
    """


class LabelOverflowError(MorphoError, RuntimeError):
    """More components were discovered than the label format can represent."""

    def __init__(self, max_label: int):
        super().__init__(
            f"Max number of labels reached ({max_label}); "
            "use a larger bit depth for the label map"
        )
        self.max_label = int(max_label)


class BoundsError(MorphoError, IndexError):
    """A requested region or seed lies outside the raster extents."""


class OperationCancelled(MorphoError, RuntimeError):
    """A cooperative cancellation request was observed between scan steps."""
