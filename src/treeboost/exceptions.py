"""
Exceptions raised by tree learning and boosting.

All errors derive from TreeBoostError. Conditions caused by a bad argument
also derive from ValueError, so callers that already catch ValueError keep
working.
"""


class TreeBoostError(Exception):
    """Base class for all treeboost errors."""


class EmptySampleError(TreeBoostError, ValueError):
    """A mean or a cost was requested over zero examples."""


class DegenerateSplitError(EmptySampleError):
    """A threshold leaves one side of a split without examples."""

    def __init__(self, threshold: float, low_size: int, high_size: int):
        self.threshold = threshold
        self.low_size = low_size
        self.high_size = high_size
        super().__init__(
            f"Threshold {threshold!r} gives a degenerate split "
            f"(low={low_size}, high={high_size}); both sides must be non-empty."
        )


class DegenerateFeatureError(TreeBoostError):
    """A feature takes a single value over the sample, so it cannot split it."""

    def __init__(self, value: float):
        self.value = value
        super().__init__(f"Feature is constant ({value!r}) over the sample.")


class InvalidConfigError(TreeBoostError, ValueError):
    """Tree configuration values are out of range."""
