"""
Sample utilities, squared-error cost, threshold grids and decision stumps.

Observations are opaque: they are only ever read through features, i.e.
callables mapping an observation to a float. A sample is an iterable of
(observation, target) pairs. Functions that scan a sample more than once
materialise it first, so generators are accepted everywhere.
"""

from dataclasses import dataclass
from operator import itemgetter
from typing import Any, Callable, Hashable, Iterable, List, Sequence, Tuple
import numpy as np
from sklearn.metrics import mean_squared_error, mean_absolute_error

from .exceptions import (
    DegenerateFeatureError, DegenerateSplitError, EmptySampleError, InvalidConfigError
)

Observation = Any
Feature = Callable[[Observation], float]
Predictor = Callable[[Observation], float]
Example = Tuple[Observation, float]
Sample = Sequence[Example]


# ===========================
# Features and Samples
# ===========================

@dataclass(frozen=True)
class NamedFeature:
    """A feature carrying a display name, e.g. ``NamedFeature("alcohol", get_alcohol)``."""

    name: str
    extract: Feature

    def __call__(self, observation: Observation) -> float:
        return self.extract(observation)


def column_features(columns: Iterable[Hashable]) -> List[NamedFeature]:
    """
    One named feature per column key.

    Keys are looked up with ``observation[key]``, so the same helper works for
    numpy rows (integer keys, named ``x0``, ``x1``, ...) and mappings such as
    ``DataFrame.to_dict("records")`` rows (string keys, used as names).
    """
    features = []
    for column in columns:
        name = f"x{column}" if isinstance(column, (int, np.integer)) else str(column)
        features.append(NamedFeature(name, itemgetter(column)))
    return features


def feature_name(feature: Feature) -> str:
    """Best-effort display name for any feature callable."""
    name = getattr(feature, "name", None)
    if name is None:
        name = getattr(feature, "__name__", None)
    return name if name and name != "<lambda>" else repr(feature)


def as_sample(sample: Iterable[Example]) -> Sample:
    """Materialise a sample so it can be scanned repeatedly."""
    if isinstance(sample, (list, tuple)):
        return sample
    return list(sample)


def make_sample(X: Iterable[Observation], y: Iterable[float]) -> List[Example]:
    """Pair observations with float targets."""
    return [(observation, float(target)) for observation, target in zip(X, y)]


def targets(sample: Sample) -> np.ndarray:
    return np.fromiter((target for _, target in sample), dtype=float)


def feature_values(sample: Sample, feature: Feature) -> np.ndarray:
    return np.fromiter((feature(observation) for observation, _ in sample), dtype=float)


def mean_target(sample: Iterable[Example]) -> float:
    """Average target value; the optimal constant under squared error."""
    values = targets(as_sample(sample))
    if values.size == 0:
        raise EmptySampleError("Cannot average the targets of an empty sample.")
    return float(np.mean(values))


def residual_sample(sample: Iterable[Example], predictor: Predictor) -> List[Example]:
    """Same observations, target replaced by ``target - predictor(observation)``."""
    return [
        (observation, target - predictor(observation)) for observation, target in sample
    ]


def train_test_split_sample(
    sample: Iterable[Example],
    test_fraction: float = 0.5
) -> Tuple[List[Example], List[Example]]:
    """
    Split a sample in order: the first part trains, the remainder tests.

    No shuffling is done, so the split is reproducible for a given sample.
    """
    if not 0.0 < test_fraction < 1.0:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")
    examples = list(sample)
    n_train = len(examples) - int(round(len(examples) * test_fraction))
    return examples[:n_train], examples[n_train:]


# ===========================
# Cost
# ===========================

def cost(sample: Iterable[Example], predictor: Predictor) -> float:
    """Mean squared error: mean over the sample of (predictor(x) - y)^2."""
    errors = np.fromiter(
        ((predictor(observation) - target) ** 2 for observation, target in sample),
        dtype=float
    )
    if errors.size == 0:
        raise EmptySampleError("Cost is undefined over an empty sample.")
    return float(np.mean(errors))


# ===========================
# Grid Search
# ===========================

def feature_range(sample: Iterable[Example], feature: Feature) -> Tuple[float, float]:
    """
    (min, max) of a feature over a sample.

    Raises:
        EmptySampleError: if the sample is empty.
        DegenerateFeatureError: if the feature is constant on the sample.
    """
    values = feature_values(as_sample(sample), feature)
    if values.size == 0:
        raise EmptySampleError("Cannot compute a feature range over an empty sample.")
    low, high = float(values.min()), float(values.max())
    if low == high:
        raise DegenerateFeatureError(low)
    return low, high


def levels(sample: Iterable[Example], feature: Feature, n: int) -> List[float]:
    """
    Candidate thresholds for a feature: the n-1 interior points dividing
    [min, max] into n segments of equal width.

    A feature that is constant on the sample has no candidates. With n=1 there
    is no interior point either.
    """
    if n < 1:
        raise InvalidConfigError(f"Grid size must be >= 1, got {n}")
    try:
        low, high = feature_range(sample, feature)
    except DegenerateFeatureError:
        return []
    step = (high - low) / n
    # on very narrow ranges rounding can collapse points together or onto max
    grid: List[float] = []
    for k in range(1, n):
        t = low + k * step
        if t < high and (not grid or t > grid[-1]):
            grid.append(t)
    return grid


# ===========================
# Stumps
# ===========================

def learn_stump(sample: Iterable[Example], feature: Feature, threshold: float) -> Predictor:
    """
    Learn a depth-one predictor splitting on ``feature(x) <= threshold``.

    Each side predicts the mean target of the examples routed to it.

    Raises:
        DegenerateSplitError: if the threshold leaves either side empty.
    """
    sample = as_sample(sample)
    values = feature_values(sample, feature)
    y = targets(sample)
    mask = values <= threshold
    n_low = int(np.count_nonzero(mask))
    if n_low == 0 or n_low == y.size:
        raise DegenerateSplitError(threshold, n_low, y.size - n_low)

    low_value = float(np.mean(y[mask]))
    high_value = float(np.mean(y[~mask]))

    def stump(observation: Observation) -> float:
        return low_value if feature(observation) <= threshold else high_value

    return stump


def split_cost(sample: Iterable[Example], feature: Feature, threshold: float) -> float:
    """Training cost of the stump learned at (feature, threshold)."""
    sample = as_sample(sample)
    return cost(sample, learn_stump(sample, feature, threshold))


def stump_costs(values: np.ndarray, y: np.ndarray, thresholds: Sequence[float]) -> List[float]:
    """
    Vectorised ``split_cost`` for many thresholds of one precomputed feature column.

    Gives the same values as ``split_cost`` on the sample the column came from,
    without re-evaluating the feature for every threshold.
    """
    costs = []
    for threshold in thresholds:
        mask = values <= threshold
        n_low = int(np.count_nonzero(mask))
        if n_low == 0 or n_low == y.size:
            raise DegenerateSplitError(threshold, n_low, y.size - n_low)
        predictions = np.where(mask, np.mean(y[mask]), np.mean(y[~mask]))
        costs.append(float(np.mean((predictions - y) ** 2)))
    return costs


# ===========================
# Metrics
# ===========================

def compute_metrics_regression(
    y_true: np.ndarray,
    y_pred: np.ndarray
) -> dict:
    """Compute regression metrics."""
    mse = mean_squared_error(y_true, y_pred)
    rmse = np.sqrt(mse)
    mae = mean_absolute_error(y_true, y_pred)

    return {
        "mse": mse,
        "rmse": rmse,
        "mae": mae
    }
