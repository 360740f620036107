"""
Greedy regression trees and residual boosting.

Trees are grown by exhaustive grid search over feature thresholds, minimising
the squared error of each split. Boosting repeatedly grows shallow trees on the
residuals of the running model and adds them up (forward stagewise additive
modelling under squared-error loss).
"""

from .core import BoostedTreeRegressor, Ensemble, RegressionTree, boost_stages, boosted_learn, learn_residuals
from .exceptions import (
    DegenerateFeatureError, DegenerateSplitError, EmptySampleError, InvalidConfigError, TreeBoostError
)
from .tree import Branch, Config, Prediction, TreePredictor, format_tree, learn, learn_tree, tree_predict
from .utils import NamedFeature, column_features, cost, learn_stump, levels, split_cost

__version__ = "0.1.0"
__all__ = [
    "BoostedTreeRegressor", "RegressionTree", "Ensemble",
    "boost_stages", "boosted_learn", "learn_residuals",
    "Branch", "Config", "Prediction", "TreePredictor",
    "format_tree", "learn", "learn_tree", "tree_predict",
    "NamedFeature", "column_features", "cost", "learn_stump", "levels", "split_cost",
    "TreeBoostError", "EmptySampleError", "DegenerateSplitError",
    "DegenerateFeatureError", "InvalidConfigError",
]
