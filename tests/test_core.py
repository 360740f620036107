"""
Unit tests for the tree and boosting primitives.

Tests numerical correctness of:
- Cost, threshold grids and stumps
- Tree growth, prediction and rendering on small hand-checked samples
- Boosting base value, residual stages and argument checks
"""

import numpy as np
import pytest

import sys
from pathlib import Path

# Add src directory to path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from treeboost.core import Ensemble, boost_stages, boosted_learn, learn_residuals
from treeboost.exceptions import (
    DegenerateFeatureError, DegenerateSplitError, EmptySampleError, InvalidConfigError
)
from treeboost.tree import (
    Branch, Config, Prediction, TreePredictor,
    best_split, candidate_splits, count_leaves, format_tree, learn, learn_tree,
    tree_depth, tree_predict
)
from treeboost.utils import (
    NamedFeature, column_features, compute_metrics_regression, cost, feature_range,
    learn_stump, levels, mean_target, residual_sample, split_cost, stump_costs,
    feature_values, targets, train_test_split_sample
)


def identity(x):
    return x


def constant(x):
    return 1.0


@pytest.fixture
def step_sample():
    """Four examples whose targets jump from 2 to 8 between x=2 and x=3."""
    return [(1.0, 2.0), (2.0, 2.0), (3.0, 8.0), (4.0, 8.0)]


# =========================
# Test Cost
# =========================

def test_cost_of_constant_predictor(step_sample):
    """Cost of predicting the mean is the mean squared deviation."""
    assert cost(step_sample, lambda x: 5.0) == pytest.approx(9.0)


def test_cost_of_perfect_predictor(step_sample):
    assert cost(step_sample, lambda x: 2.0 if x < 2.5 else 8.0) == 0.0


def test_cost_empty_sample_raises():
    with pytest.raises(EmptySampleError):
        cost([], lambda x: 0.0)


def test_cost_accepts_generators(step_sample):
    assert cost((example for example in step_sample), lambda x: 5.0) == pytest.approx(9.0)


def test_mean_target(step_sample):
    assert mean_target(step_sample) == pytest.approx(5.0)
    with pytest.raises(EmptySampleError):
        mean_target([])


# =========================
# Test Grid Search
# =========================

def test_levels_interior_points():
    """n segments over [0, 4] give the n-1 interior points."""
    sample = [(0.0, 1.0), (4.0, 1.0), (2.0, 1.0)]
    assert levels(sample, identity, 4) == [1.0, 2.0, 3.0]


def test_levels_count_is_n_minus_one():
    rng = np.random.default_rng(0)
    sample = [(x, 0.0) for x in rng.uniform(-3, 7, size=50)]
    for n in (2, 3, 7, 10, 25):
        grid = levels(sample, identity, n)
        assert len(grid) == n - 1
        assert grid == sorted(grid)
        low, high = feature_range(sample, identity)
        assert all(low < t < high for t in grid)


def test_levels_single_segment_is_empty(step_sample):
    assert levels(step_sample, identity, 1) == []


def test_levels_constant_feature_is_empty(step_sample):
    assert levels(step_sample, constant, 10) == []


def test_levels_invalid_grid_size(step_sample):
    with pytest.raises(InvalidConfigError):
        levels(step_sample, identity, 0)


def test_levels_narrow_range_has_no_duplicates():
    """Points collapsing onto min by rounding are kept once; points at max are dropped."""
    high = float(np.nextafter(1.0, 2.0))
    sample = [(1.0, 0.0), (high, 1.0)]
    grid = levels(sample, identity, 10)

    assert len(grid) == len(set(grid))
    assert grid == [1.0]
    stump = learn_stump(sample, identity, grid[0])
    assert stump(high) == pytest.approx(1.0)


def test_feature_range_constant_raises(step_sample):
    with pytest.raises(DegenerateFeatureError):
        feature_range(step_sample, constant)


# =========================
# Test Stumps
# =========================

def test_stump_predicts_side_means(step_sample):
    stump = learn_stump(step_sample, identity, 2.5)
    assert stump(1.0) == pytest.approx(2.0)
    assert stump(4.0) == pytest.approx(8.0)


def test_stump_threshold_is_inclusive_on_low_side():
    sample = [(1.0, 0.0), (2.0, 0.0), (3.0, 6.0)]
    stump = learn_stump(sample, identity, 2.0)
    assert stump(2.0) == pytest.approx(0.0)
    assert stump(2.0001) == pytest.approx(6.0)


@pytest.mark.parametrize("threshold", [0.5, 4.0, 10.0])
def test_stump_degenerate_split_raises(step_sample, threshold):
    with pytest.raises(DegenerateSplitError) as excinfo:
        learn_stump(step_sample, identity, threshold)
    assert isinstance(excinfo.value, EmptySampleError)


def test_split_cost_matches_vectorised_costs():
    """The tree learner's vectorised costs equal the stump-then-cost route."""
    rng = np.random.default_rng(3)
    sample = [(x, y) for x, y in zip(rng.uniform(0, 10, size=60), rng.standard_normal(60))]
    thresholds = levels(sample, identity, 12)

    expected = [split_cost(sample, identity, t) for t in thresholds]
    actual = stump_costs(feature_values(sample, identity), targets(sample), thresholds)

    np.testing.assert_allclose(actual, expected, rtol=1e-12)


# =========================
# Test Tree Learning
# =========================

def test_scenario_single_split(step_sample):
    """gridSize=2 gives one threshold at 2.5 that separates the targets exactly."""
    config = Config(grid_size=2, max_depth=1, min_leaf_size=1)
    tree = learn_tree(config, [identity], step_sample)

    assert tree == Branch(identity, 2.5, Prediction(2.0), Prediction(8.0))
    assert cost(step_sample, learn(config, [identity], step_sample)) == 0.0


def test_scenario_depth_zero_is_mean_leaf(step_sample):
    config = Config(grid_size=2, max_depth=0, min_leaf_size=1)
    tree = learn_tree(config, [identity], step_sample)

    assert tree == Prediction(5.0)
    assert cost(step_sample, TreePredictor(tree)) == pytest.approx(9.0)


def test_scenario_constant_feature_is_never_selected(step_sample):
    config = Config(grid_size=2, max_depth=1, min_leaf_size=1)
    tree = learn_tree(config, [constant, identity], step_sample)

    assert isinstance(tree, Branch)
    assert tree.feature is identity


def test_only_constant_feature_falls_back_to_leaf(step_sample):
    config = Config(grid_size=10, max_depth=3, min_leaf_size=1)
    assert learn_tree(config, [constant], step_sample) == Prediction(5.0)


def test_no_features_falls_back_to_leaf(step_sample):
    config = Config(grid_size=10, max_depth=3, min_leaf_size=1)
    assert learn_tree(config, [], step_sample) == Prediction(5.0)


def test_min_leaf_size_stops_splitting(step_sample):
    config = Config(grid_size=2, max_depth=5, min_leaf_size=4)
    assert learn_tree(config, [identity], step_sample) == Prediction(5.0)


def test_learn_tree_accepts_generators(step_sample):
    config = Config(grid_size=2, max_depth=2, min_leaf_size=1)
    expected = learn_tree(config, [identity], step_sample)

    assert learn_tree(config, [identity], (example for example in step_sample)) == expected
    model = learn(config, [identity], (example for example in step_sample))
    assert model == TreePredictor(expected)


def test_learn_tree_empty_sample_raises():
    with pytest.raises(EmptySampleError):
        learn_tree(Config(), [identity], [])


def test_candidate_splits_scan_order(step_sample):
    candidates = candidate_splits(step_sample, [constant, identity, identity], 3)
    assert [(index, threshold) for index, threshold, _ in candidates] == [
        (1, 2.0), (1, 3.0), (2, 2.0), (2, 3.0)
    ]


def test_best_split_none_without_candidates(step_sample):
    assert best_split(step_sample, [constant], 5) is None


def test_tree_predict_boundary_goes_low(step_sample):
    """An observation equal to the threshold follows the same side as in training."""
    tree = Branch(identity, 2.5, Prediction(2.0), Prediction(8.0))
    assert tree_predict(tree, 2.5) == 2.0
    assert tree_predict(tree, 2.6) == 8.0


def test_tree_depth_and_leaves():
    tree = Branch(identity, 1.0, Prediction(0.0), Branch(identity, 2.0, Prediction(1.0), Prediction(2.0)))
    assert tree_depth(tree) == 2
    assert count_leaves(tree) == 3
    assert tree_depth(Prediction(1.0)) == 0


def test_format_tree_named_feature(step_sample):
    x = NamedFeature("x", identity)
    tree = learn_tree(Config(grid_size=2, max_depth=1, min_leaf_size=1), [x], step_sample)
    assert format_tree(tree) == "x <= 2.50\n  2.00\nx > 2.50\n  8.00"


def test_format_tree_plain_function_uses_function_name():
    tree = Branch(identity, 1.0, Prediction(0.0), Prediction(1.0))
    assert format_tree(tree, precision=1).splitlines()[0] == "identity <= 1.0"


# =========================
# Test Config
# =========================

@pytest.mark.parametrize("params", [
    {"grid_size": 0},
    {"max_depth": -1},
    {"min_leaf_size": -1},
    {"max_depth": 10_000},
    {"grid_size": 2.5},
    {"max_depth": True},
])
def test_config_rejects_invalid_values(params):
    with pytest.raises(InvalidConfigError):
        Config(**params)


def test_config_errors_are_value_errors():
    with pytest.raises(ValueError):
        Config(grid_size=0)


def test_config_from_dict():
    config = Config.from_dict({"grid_size": 4, "max_depth": 3, "min_leaf_size": 0})
    assert config == Config(grid_size=4, max_depth=3, min_leaf_size=0)
    with pytest.raises(InvalidConfigError, match="learning_rate"):
        Config.from_dict({"grid_size": 4, "learning_rate": 0.1})


# =========================
# Test Boosting
# =========================

def test_zero_rounds_is_mean_predictor(step_sample):
    model = boosted_learn(Config(grid_size=2, max_depth=1, min_leaf_size=1), [identity], step_sample, 0)
    assert model == Ensemble(5.0)
    assert [model(x) for x, _ in step_sample] == [5.0] * 4


def test_first_round_fits_residuals(step_sample):
    config = Config(grid_size=2, max_depth=1, min_leaf_size=1)
    model = learn_residuals(config, [identity], step_sample, Ensemble(5.0))

    assert model.trees == (Branch(identity, 2.5, Prediction(-3.0), Prediction(3.0)),)
    assert model(1.0) == pytest.approx(2.0)
    assert model(4.0) == pytest.approx(8.0)


def test_boosted_learn_reaches_zero_cost(step_sample):
    config = Config(grid_size=2, max_depth=1, min_leaf_size=1)
    model = boosted_learn(config, [identity], step_sample, 3)
    assert len(model.trees) == 3
    assert cost(step_sample, model) == pytest.approx(0.0, abs=1e-15)


def test_boost_stages_yields_every_stage(step_sample):
    config = Config(grid_size=2, max_depth=1, min_leaf_size=1)
    stages = list(boost_stages(config, [identity], step_sample, 4))
    assert [len(model.trees) for model in stages] == [0, 1, 2, 3, 4]
    assert stages[2] == stages[-1].staged(2)


def test_boosting_accepts_generators():
    """The sample is scanned on every round, so a generator must be materialised once."""
    sample = [(x, x ** 2) for x in np.linspace(0.0, 3.0, 12)]
    config = Config(grid_size=4, max_depth=1, min_leaf_size=1)
    expected = boosted_learn(config, [identity], sample, 4)

    model = boosted_learn(config, [identity], (example for example in sample), 4)
    assert model == expected
    assert len(model.trees) == 4

    stages = list(boost_stages(config, [identity], iter(sample), 4))
    assert stages[-1] == expected


def test_boosting_rejects_invalid_rounds(step_sample):
    config = Config()
    with pytest.raises(InvalidConfigError):
        boosted_learn(config, [identity], step_sample, -1)
    with pytest.raises(InvalidConfigError):
        boost_stages(config, [identity], step_sample, 1.5)


def test_boosting_empty_sample_raises():
    with pytest.raises(EmptySampleError):
        boost_stages(Config(), [identity], [], 3)


def test_residual_sample(step_sample):
    residuals = residual_sample(step_sample, lambda x: 5.0)
    assert residuals == [(1.0, -3.0), (2.0, -3.0), (3.0, 3.0), (4.0, 3.0)]


# =========================
# Test Sample Helpers
# =========================

def test_column_features_on_arrays_and_records():
    row = np.array([1.5, -2.0])
    features = column_features(range(2))
    assert [f.name for f in features] == ["x0", "x1"]
    assert [f(row) for f in features] == [1.5, -2.0]

    record = {"alcohol": 10.5, "ph": 3.2}
    features = column_features(["alcohol", "ph"])
    assert [f.name for f in features] == ["alcohol", "ph"]
    assert features[1](record) == 3.2


def test_train_test_split_sample_keeps_order():
    sample = [(i, float(i)) for i in range(10)]
    train, test = train_test_split_sample(sample, test_fraction=0.3)
    assert train == sample[:7]
    assert test == sample[7:]
    with pytest.raises(ValueError):
        train_test_split_sample(sample, test_fraction=1.0)


def test_regression_metrics():
    y_true = np.array([1.0, 2.0, 3.0])
    y_pred = np.array([2.0, 2.0, 2.0])
    result = compute_metrics_regression(y_true, y_pred)
    assert result["mse"] == pytest.approx(2.0 / 3.0)
    assert result["rmse"] == pytest.approx(np.sqrt(2.0 / 3.0))
    assert result["mae"] == pytest.approx(2.0 / 3.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
