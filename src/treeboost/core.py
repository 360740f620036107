"""
Boosted regression trees and sklearn-style estimators.

Boosting is forward stagewise additive modelling under squared-error loss:

    F_0(x) = mean(y)
    F_m(x) = F_{m-1}(x) + T_m(x),   T_m grown on {(x_i, y_i - F_{m-1}(x_i))}

Every stage enters with unit weight. For squared error the mean residual in a
leaf is already the loss-minimising leaf value, so there is no line search and
no shrinkage.

References:
- Hastie, T., Tibshirani, R., & Friedman, J. (2009). The Elements of Statistical
  Learning (2nd ed.). Springer. Algorithm 10.2 (Forward Stagewise Additive Modelling).
- Friedman, J. H. (2001). Greedy function approximation: A gradient boosting machine.
  Annals of Statistics, 29(5), 1189-1232.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence, Tuple
import logging
import numpy as np
from sklearn.exceptions import NotFittedError

from .exceptions import InvalidConfigError
from .tree import Config, Tree, TreePredictor, count_leaves, format_tree, learn_tree, tree_depth, tree_predict
from .utils import (
    Feature, Observation, Sample,
    as_sample, column_features, cost, make_sample, mean_target, residual_sample
)

logger = logging.getLogger(__name__)


# ===========================
# Boosting
# ===========================

@dataclass(frozen=True)
class Ensemble:
    """
    Additive model: a base constant plus the sum of its trees' predictions.

    Trees are added left to right, so ``Ensemble(b, (t1, t2))(x)`` is
    ``(b + t1(x)) + t2(x)``.
    """

    base: float
    trees: Tuple[Tree, ...] = ()

    def __call__(self, observation: Observation) -> float:
        prediction = self.base
        for tree in self.trees:
            prediction = prediction + tree_predict(tree, observation)
        return prediction

    def add(self, tree: Tree) -> "Ensemble":
        return Ensemble(self.base, self.trees + (tree,))

    def staged(self, n_trees: int) -> "Ensemble":
        """The model after its first ``n_trees`` stages."""
        return Ensemble(self.base, self.trees[:n_trees])


def learn_residuals(
    config: Config,
    features: Sequence[Feature],
    sample: Sample,
    model: Ensemble
) -> Ensemble:
    """One boosting stage: grow a tree on the residuals of ``model`` and add it."""
    tree = learn_tree(config, features, residual_sample(sample, model), 0)
    return model.add(tree)


def _check_rounds(rounds: int) -> None:
    if isinstance(rounds, bool) or not isinstance(rounds, (int, np.integer)) or rounds < 0:
        raise InvalidConfigError(f"Number of boosting rounds must be an integer >= 0, got {rounds!r}")


def boost_stages(
    config: Config,
    features: Sequence[Feature],
    sample: Sample,
    rounds: int
) -> Iterator[Ensemble]:
    """
    Yield the boosted model after 0, 1, ..., ``rounds`` stages.

    Arguments are checked, and the base value computed, before the first
    model is yielded.

    Raises:
        EmptySampleError: if the sample is empty.
        InvalidConfigError: if ``rounds`` is negative or not an integer.
    """
    _check_rounds(rounds)
    sample = as_sample(sample)
    base = Ensemble(mean_target(sample))
    return _stages(config, features, sample, base, rounds)


def _stages(
    config: Config,
    features: Sequence[Feature],
    sample: Sample,
    model: Ensemble,
    rounds: int
) -> Iterator[Ensemble]:
    yield model
    for m in range(rounds):
        model = learn_residuals(config, features, sample, model)
        tree = model.trees[-1]
        logger.debug(
            "stage %d/%d: tree depth=%d, leaves=%d",
            m + 1, rounds, tree_depth(tree), count_leaves(tree)
        )
        yield model


def boosted_learn(
    config: Config,
    features: Sequence[Feature],
    sample: Sample,
    rounds: int
) -> Ensemble:
    """
    Boost ``rounds`` trees on a sample; ``rounds=0`` gives the mean predictor.

    ``config.max_depth`` bounds the depth of each stage's tree, not the number
    of stages.
    """
    model = None
    for model in boost_stages(config, features, sample, rounds):
        pass
    return model


# ===========================
# Estimators
# ===========================

class TreeEstimatorBase:
    """
    Shared plumbing for the estimators: hyperparameters, logging and the
    conversion of ``X``/``y`` into a sample plus features.

    ``X`` may be a 2-D numpy array (rows are observations, one feature per
    column), a pandas DataFrame (records are observations, one feature per
    column name) or any sequence of observations together with explicit
    ``features``.
    """

    def __init__(
        self,
        grid_size: int = 10,
        max_depth: int = 2,
        min_leaf_size: int = 20,
        verbose: bool = False
    ):
        """
        Args:
            grid_size: Segments per feature range; grid_size - 1 thresholds are tried.
            max_depth: Maximum depth of each tree.
            min_leaf_size: Nodes with this many examples or fewer become leaves.
            verbose: Enable logging output.
        """
        self.grid_size = grid_size
        self.max_depth = max_depth
        self.min_leaf_size = min_leaf_size
        self.verbose = verbose

        self.features_: Optional[List[Feature]] = None
        self.model_: Optional[Any] = None
        self.input_kind_: Optional[str] = None

        # Setup logging
        self.logger = logging.getLogger(__name__)
        if self.verbose:
            logging.basicConfig(level=logging.INFO)

    @property
    def config(self) -> Config:
        return Config(
            grid_size=self.grid_size,
            max_depth=self.max_depth,
            min_leaf_size=self.min_leaf_size
        )

    @staticmethod
    def _input_kind(X) -> str:
        if hasattr(X, "to_dict") and hasattr(X, "columns"):
            return "DataFrame"
        if isinstance(X, np.ndarray):
            return "ndarray"
        return "sequence"

    def _observations(self, X) -> Tuple[List[Observation], Optional[List[Any]]]:
        """Observations of X and, when X is tabular, its column keys."""
        kind = self._input_kind(X)
        # column features only understand the kind of input they were built from
        fitted_kind = self.input_kind_
        if fitted_kind is not None and kind != fitted_kind:
            raise ValueError(
                f"{type(self).__name__} was fitted on a {fitted_kind} with column "
                f"features; got a {kind} instead."
            )
        if kind == "DataFrame":
            return X.to_dict("records"), list(X.columns)
        if kind == "ndarray":
            if X.ndim != 2:
                raise ValueError(f"X must be 2-dimensional, got shape {X.shape}")
            return list(X), list(range(X.shape[1]))
        return list(X), None

    def _to_sample(self, X, y) -> Sample:
        observations, _ = self._observations(X)
        y = np.asarray(y, dtype=float)
        if len(observations) != y.shape[0]:
            raise ValueError(
                f"X and y have inconsistent lengths: {len(observations)} != {y.shape[0]}"
            )
        return make_sample(observations, y)

    def _make_sample(self, X, y, features: Optional[Sequence[Feature]]) -> Sample:
        self.input_kind_ = None
        sample = self._to_sample(X, y)
        if features is None:
            _, columns = self._observations(X)
            if columns is None:
                raise ValueError(
                    "features must be given when X is not a numpy array or DataFrame"
                )
            features = column_features(columns)
            self.input_kind_ = self._input_kind(X)
        self.features_ = list(features)
        return sample

    def _check_fitted(self) -> None:
        if self.model_ is None:
            raise NotFittedError(
                f"This {type(self).__name__} instance is not fitted yet. Call 'fit' first."
            )

    def predict(self, X) -> np.ndarray:
        """Predict regression targets."""
        self._check_fitted()
        observations, _ = self._observations(X)
        return np.array([self.model_(observation) for observation in observations], dtype=float)


class RegressionTree(TreeEstimatorBase):
    """A single greedy regression tree (see ``treeboost.tree``)."""

    def fit(self, X, y, features: Optional[Sequence[Feature]] = None) -> "RegressionTree":
        """
        Grow the tree.

        Args:
            X: Training observations.
            y: Training targets, shape (n_samples,).
            features: Split features; defaults to one feature per column of X.

        Returns:
            self
        """
        sample = self._make_sample(X, y, features)
        self.tree_ = learn_tree(self.config, self.features_, sample, 0)
        self.model_ = TreePredictor(self.tree_)
        self.train_score_ = cost(sample, self.model_)

        if self.verbose:
            self.logger.info(
                f"Tree grown: depth={tree_depth(self.tree_)}, "
                f"leaves={count_leaves(self.tree_)}, train_mse={self.train_score_:.6f}"
            )
        return self

    def format(self, precision: int = 2) -> str:
        """Indented text rendering of the fitted tree."""
        self._check_fitted()
        return format_tree(self.tree_, precision=precision)


class BoostedTreeRegressor(TreeEstimatorBase):
    """
    Residual boosting of shallow greedy trees.

    Implements:
    1. Initialisation: f_0(x) = mean(y).
    2. For m = 1 to M:
       a. Residuals: r_im = y_i - f_{m-1}(x_i).
       b. Grow a tree on {(x_i, r_im)}; leaves hold mean residuals.
       c. Update: f_m(x) = f_{m-1}(x) + tree_m(x).
    """

    def __init__(
        self,
        n_rounds: int = 5,
        grid_size: int = 10,
        max_depth: int = 2,
        min_leaf_size: int = 20,
        verbose: bool = False
    ):
        """
        Args:
            n_rounds: Number of boosting stages (M).
            grid_size: Segments per feature range; grid_size - 1 thresholds are tried.
            max_depth: Maximum depth of each stage's tree.
            min_leaf_size: Nodes with this many examples or fewer become leaves.
            verbose: Enable logging output.
        """
        super().__init__(
            grid_size=grid_size,
            max_depth=max_depth,
            min_leaf_size=min_leaf_size,
            verbose=verbose
        )
        self.n_rounds = n_rounds

        # Model state
        self.f0_: float = 0.0
        self.trees_: List[Tree] = []

        # Training history
        self.train_scores_: List[float] = []
        self.val_scores_: List[float] = []

    def fit(
        self,
        X,
        y,
        features: Optional[Sequence[Feature]] = None,
        X_val=None,
        y_val=None
    ) -> "BoostedTreeRegressor":
        """
        Fit the boosted model.

        Args:
            X: Training observations.
            y: Training targets, shape (n_samples,).
            features: Split features; defaults to one feature per column of X.
            X_val: Optional validation observations for tracking generalisation.
            y_val: Optional validation targets.

        Returns:
            self
        """
        sample = self._make_sample(X, y, features)
        val_sample = None
        if X_val is not None and y_val is not None:
            val_sample = self._to_sample(X_val, y_val)

        self.train_scores_ = []
        self.val_scores_ = []

        model = None
        for m, model in enumerate(boost_stages(self.config, self.features_, sample, self.n_rounds)):
            if m == 0:
                self.f0_ = model.base
                if self.verbose:
                    self.logger.info(f"Initial f_0 = {self.f0_:.6f}")
                continue

            train_mse = cost(sample, model)
            self.train_scores_.append(train_mse)

            if val_sample is not None:
                val_mse = cost(val_sample, model)
                self.val_scores_.append(val_mse)

                if self.verbose and m % 10 == 0:
                    self.logger.info(
                        f"Iteration {m}/{self.n_rounds}: "
                        f"train_mse={train_mse:.6f}, val_mse={val_mse:.6f}"
                    )
            elif self.verbose and m % 10 == 0:
                self.logger.info(
                    f"Iteration {m}/{self.n_rounds}: train_mse={train_mse:.6f}"
                )

        self.model_ = model
        self.trees_ = list(model.trees)
        return self

    def staged_predict(self, X) -> Iterator[np.ndarray]:
        """
        Predictions after each stage, starting with the first tree.

        The fitted check and input conversion happen on the call, not on the
        first ``next()``.
        """
        self._check_fitted()
        observations, _ = self._observations(X)
        return self._staged(observations)

    def _staged(self, observations: List[Observation]) -> Iterator[np.ndarray]:
        F = np.full(len(observations), self.f0_)
        for tree in self.trees_:
            F = F + np.array([tree_predict(tree, observation) for observation in observations])
            yield F
