"""
Regression experiment on the diabetes dataset.

Walks through single trees of increasing depth (which over-fit), the residuals
left by a stump, and residual boosting of shallow trees, comparing training
and testing cost at each step.
"""

from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.datasets import load_diabetes
from sklearn.model_selection import train_test_split

from treeboost.core import BoostedTreeRegressor, boost_stages
from treeboost.tree import Config, format_tree, learn, learn_tree
from treeboost.utils import column_features, compute_metrics_regression, cost, make_sample, residual_sample

OUTPUT_DIR = Path(__file__).parent

# Set style
plt.style.use('seaborn-v0_8-darkgrid')


def load_and_prepare_data():
    """Load the diabetes dataset as records and split it in half."""
    print("Loading diabetes dataset...")
    data = load_diabetes(as_frame=True)
    frame = data.frame

    train_frame, test_frame = train_test_split(frame, test_size=0.5, random_state=42)
    feature_columns = list(data.feature_names)

    train = make_sample(train_frame[feature_columns].to_dict("records"), train_frame["target"])
    test = make_sample(test_frame[feature_columns].to_dict("records"), test_frame["target"])
    features = column_features(feature_columns)

    print(f"Train: {len(train)}, Test: {len(test)}, Features: {len(features)}")

    return train, test, features


def baseline_comparison(train, test):
    """Baseline: predict the training mean everywhere."""
    print("\n" + "="*60)
    print("Baseline: mean predictor")
    print("="*60)

    model = learn(Config(max_depth=0), [], train)
    train_mse = cost(train, model)
    test_mse = cost(test, model)

    print(f"Train MSE: {train_mse:.3f}")
    print(f"Test MSE:  {test_mse:.3f}")

    return train_mse, test_mse


def experiment_tree_depth(train, test, features):
    """Experiment: single trees over-fit as they get deeper."""
    print("\n" + "="*60)
    print("Experiment 1: Effect of max_depth on a single tree")
    print("="*60)

    results = []
    for depth in range(0, 7):
        config = Config(grid_size=10, max_depth=depth, min_leaf_size=5)
        model = learn(config, features, train)
        results.append({
            'max_depth': depth,
            'train_mse': cost(train, model),
            'test_mse': cost(test, model)
        })

    df = pd.DataFrame(results)
    print(df.to_string(index=False))

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(df['max_depth'], df['train_mse'], marker='o', label='Training')
    ax.plot(df['max_depth'], df['test_mse'], marker='o', label='Testing')
    ax.set_xlabel('max_depth')
    ax.set_ylabel('MSE')
    ax.set_title('Single tree: cost by depth')
    ax.legend()
    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'tree_depth.png', dpi=150)
    print("\nSaved plot: tree_depth.png")

    tree = learn_tree(Config(grid_size=10, max_depth=3, min_leaf_size=20), features, train)
    print("\nTree of depth 3:")
    print(format_tree(tree))

    return df


def experiment_residuals(train, features):
    """Experiment: residuals left by a single stump on bmi."""
    print("\n" + "="*60)
    print("Experiment 2: Residuals of a stump")
    print("="*60)

    bmi = next(f for f in features if f.name == 'bmi')
    stump = learn(Config(grid_size=10, max_depth=1, min_leaf_size=20), [bmi], train)
    residuals = residual_sample(train, stump)

    print(f"Stump cost: {cost(train, stump):.3f}")

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.scatter([bmi(x) for x, _ in residuals], [r for _, r in residuals], alpha=0.3)
    ax.axhline(0.0, color='black', linewidth=1)
    ax.set_xlabel('bmi')
    ax.set_ylabel('Residual')
    ax.set_title('Residuals after a bmi stump')
    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'stump_residuals.png', dpi=150)
    print("Saved plot: stump_residuals.png")


def experiment_boosting(train, test, features):
    """Experiment: boosting shallow trees, cost by number of rounds."""
    print("\n" + "="*60)
    print("Experiment 3: Boosted trees")
    print("="*60)

    config = Config(grid_size=10, max_depth=2, min_leaf_size=20)
    results = []
    for rounds, model in enumerate(boost_stages(config, features, train, 10)):
        results.append({
            'rounds': rounds,
            'train_mse': cost(train, model),
            'test_mse': cost(test, model)
        })

    df = pd.DataFrame(results)
    print(df.to_string(index=False))

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.plot(df['rounds'], df['train_mse'], marker='o', label='Training')
    ax.plot(df['rounds'], df['test_mse'], marker='o', label='Testing')
    ax.set_xlabel('Boosting rounds')
    ax.set_ylabel('MSE')
    ax.set_title('Boosted trees (max_depth=2): cost by rounds')
    ax.legend()
    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'boosting_rounds.png', dpi=150)
    print("\nSaved plot: boosting_rounds.png")

    return df


def experiment_actual_vs_predicted(train, test, features):
    """Fit the estimator and compare actual and predicted targets on the test half."""
    print("\n" + "="*60)
    print("Experiment 4: Actual vs predicted")
    print("="*60)

    X_train = [x for x, _ in train]
    y_train = np.array([y for _, y in train])
    X_test = [x for x, _ in test]
    y_test = np.array([y for _, y in test])

    gbr = BoostedTreeRegressor(n_rounds=5, grid_size=10, max_depth=2, min_leaf_size=20, verbose=True)
    gbr.fit(X_train, y_train, features=features, X_val=X_test, y_val=y_test)
    y_pred = gbr.predict(X_test)

    metrics = compute_metrics_regression(y_test, y_pred)
    for name, value in metrics.items():
        print(f"{name}: {value:.3f}")

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.scatter(y_test, y_pred, alpha=0.4)
    lims = [min(y_test.min(), y_pred.min()), max(y_test.max(), y_pred.max())]
    ax.plot(lims, lims, color='black', linewidth=1)
    ax.set_xlabel('Actual')
    ax.set_ylabel('Predicted')
    ax.set_title('Boosted trees: actual vs predicted (test)')
    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'actual_vs_predicted.png', dpi=150)
    print("Saved plot: actual_vs_predicted.png")

    return metrics


def main():
    train, test, features = load_and_prepare_data()

    baseline_comparison(train, test)
    experiment_tree_depth(train, test, features)
    experiment_residuals(train, features)
    experiment_boosting(train, test, features)
    experiment_actual_vs_predicted(train, test, features)


if __name__ == "__main__":
    main()
