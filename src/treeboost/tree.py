"""
Greedy binary regression trees.

A tree is grown top-down: at every node each feature proposes the evenly
spaced thresholds of its grid (see ``utils.levels``), every (feature,
threshold) pair is scored by the training cost of the corresponding stump, and
the cheapest pair splits the node. Growth stops at ``max_depth``, when a node
holds ``min_leaf_size`` examples or fewer, or when no feature can split the
node. Leaves predict the mean target of their examples.

Examples are routed with ``feature(x) <= threshold`` to the low branch, both
while growing the tree and while predicting with it.
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union
import numpy as np

from .exceptions import EmptySampleError, InvalidConfigError
from .utils import (
    Example, Feature, Observation, Sample,
    as_sample, feature_name, feature_values, levels, stump_costs, targets
)

logger = logging.getLogger(__name__)

# Growth recurses once per level; keep well inside the default recursion limit.
MAX_SUPPORTED_DEPTH = 500


@dataclass(frozen=True)
class Config:
    """
    Tree growth settings.

    Attributes:
        grid_size: Number of equal-width segments each feature's range is cut
            into at a node; yields grid_size - 1 candidate thresholds.
        max_depth: Maximum depth of the tree. 0 gives a single leaf.
        min_leaf_size: Nodes with this many examples or fewer are not split.
    """

    grid_size: int = 10
    max_depth: int = 2
    min_leaf_size: int = 20

    def __post_init__(self):
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidConfigError(f"{field.name} must be an integer, got {value!r}")
        if self.grid_size < 1:
            raise InvalidConfigError(f"grid_size must be >= 1, got {self.grid_size}")
        if self.max_depth < 0:
            raise InvalidConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_depth > MAX_SUPPORTED_DEPTH:
            raise InvalidConfigError(
                f"max_depth must be <= {MAX_SUPPORTED_DEPTH}, got {self.max_depth}"
            )
        if self.min_leaf_size < 0:
            raise InvalidConfigError(f"min_leaf_size must be >= 0, got {self.min_leaf_size}")

    @classmethod
    def from_dict(cls, params: Mapping[str, Any]) -> "Config":
        """Build a Config from a mapping, rejecting unknown keys."""
        known = {field.name for field in fields(cls)}
        unknown = sorted(set(params) - known)
        if unknown:
            raise InvalidConfigError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**params)


# ===========================
# Tree values
# ===========================

@dataclass(frozen=True)
class Prediction:
    """Leaf: predicts a constant."""

    value: float


@dataclass(frozen=True)
class Branch:
    """Internal node: ``feature(x) <= threshold`` goes low, otherwise high."""

    feature: Feature
    threshold: float
    low: "Tree"
    high: "Tree"


Tree = Union[Prediction, Branch]


def tree_predict(tree: Tree, observation: Observation) -> float:
    """Descend from the root to a leaf and return its value."""
    node = tree
    while isinstance(node, Branch):
        node = node.low if node.feature(observation) <= node.threshold else node.high
    return node.value


@dataclass(frozen=True)
class TreePredictor:
    """A tree wrapped as a predictor (a callable observation -> float)."""

    tree: Tree

    def __call__(self, observation: Observation) -> float:
        return tree_predict(self.tree, observation)


def tree_depth(tree: Tree) -> int:
    if isinstance(tree, Prediction):
        return 0
    return 1 + max(tree_depth(tree.low), tree_depth(tree.high))


def count_leaves(tree: Tree) -> int:
    if isinstance(tree, Prediction):
        return 1
    return count_leaves(tree.low) + count_leaves(tree.high)


def format_tree(tree: Tree, precision: int = 2, indent: str = "  ") -> str:
    """
    Render a tree as indented text, one line per leaf and per branch side:

        alcohol <= 10.52
          5.21
        alcohol > 10.52
          6.08
    """
    lines: List[str] = []

    def render(node: Tree, depth: int) -> None:
        pad = indent * depth
        if isinstance(node, Prediction):
            lines.append(f"{pad}{node.value:.{precision}f}")
            return
        name = feature_name(node.feature)
        lines.append(f"{pad}{name} <= {node.threshold:.{precision}f}")
        render(node.low, depth + 1)
        lines.append(f"{pad}{name} > {node.threshold:.{precision}f}")
        render(node.high, depth + 1)

    render(tree, 0)
    return "\n".join(lines)


# ===========================
# Learning
# ===========================

def candidate_splits(
    sample: Sample,
    features: Sequence[Feature],
    grid_size: int
) -> List[Tuple[int, float, float]]:
    """
    Score every grid threshold of every feature on a sample.

    Returns:
        (feature_index, threshold, cost) triples in scan order: features in
        the given order, thresholds ascending within each feature. Features
        that are constant on the sample contribute nothing.
    """
    y = targets(sample)
    candidates = []
    for index, feature in enumerate(features):
        thresholds = levels(sample, feature, grid_size)
        if not thresholds:
            continue
        costs = stump_costs(feature_values(sample, feature), y, thresholds)
        candidates.extend(
            (index, threshold, split_cost) for threshold, split_cost in zip(thresholds, costs)
        )
    return candidates


def best_split(
    sample: Sample,
    features: Sequence[Feature],
    grid_size: int
) -> Optional[Tuple[int, float, float]]:
    """
    Cheapest candidate split, or None when no feature can split the sample.

    Ties go to the first candidate in scan order: the lower feature index,
    then the lower threshold.
    """
    candidates = candidate_splits(sample, features, grid_size)
    if not candidates:
        return None
    return min(candidates, key=lambda candidate: candidate[2])


def learn_tree(
    config: Config,
    features: Sequence[Feature],
    sample: Sample,
    depth: int = 0
) -> Tree:
    """
    Grow a regression tree greedily, depth first.

    Args:
        config: Growth settings.
        features: Candidate split features, in tie-break order.
        sample: Training examples (observation, target).
        depth: Depth of the node being grown; 0 for the root.

    Returns:
        The root of the grown tree.

    Raises:
        EmptySampleError: if the sample is empty.
    """
    sample = as_sample(sample)
    if not sample:
        raise EmptySampleError("Cannot learn a tree from an empty sample.")
    y = targets(sample)

    if depth >= config.max_depth or len(sample) <= config.min_leaf_size:
        return Prediction(float(np.mean(y)))

    split = best_split(sample, features, config.grid_size)
    if split is None:
        if depth == 0:
            logger.warning(
                "No feature can split the %d training examples; "
                "falling back to a single leaf.", len(sample)
            )
        return Prediction(float(np.mean(y)))

    index, threshold, split_cost = split
    feature = features[index]
    mask = feature_values(sample, feature) <= threshold
    under: List[Example] = [example for example, low in zip(sample, mask) if low]
    over: List[Example] = [example for example, low in zip(sample, mask) if not low]
    logger.debug(
        "depth=%d: split %s <= %.6g (cost=%.6g, low=%d, high=%d)",
        depth, feature_name(feature), threshold, split_cost, len(under), len(over)
    )

    return Branch(
        feature,
        threshold,
        learn_tree(config, features, under, depth + 1),
        learn_tree(config, features, over, depth + 1),
    )


def learn(config: Config, features: Sequence[Feature], sample: Sample) -> TreePredictor:
    """Learn a tree from the root and wrap it as a predictor."""
    return TreePredictor(learn_tree(config, features, sample, 0))
