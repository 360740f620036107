"""
Hyperparameter scan for boosted trees.

Grid search over the number of rounds, tree depth, threshold grid size and
leaf size on the diabetes dataset; saves the results table and effect plots.
"""

from itertools import product
from pathlib import Path

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.datasets import load_diabetes
from sklearn.model_selection import train_test_split
from sklearn.metrics import mean_squared_error

from treeboost.core import BoostedTreeRegressor
from treeboost.exceptions import TreeBoostError

OUTPUT_DIR = Path(__file__).parent


def prepare_regression_data():
    """Load and split the diabetes data."""
    print("Loading regression data...")
    X, y = load_diabetes(return_X_y=True)

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=0.3, random_state=42
    )

    return X_train, X_test, y_train, y_test


def regression_grid_search():
    """Grid search for regression."""
    print("\n" + "="*60)
    print("Hyperparameter Grid Search - Boosted Trees")
    print("="*60)

    X_train, X_test, y_train, y_test = prepare_regression_data()

    # Define grid
    param_grid = {
        'n_rounds': [1, 5, 10],
        'max_depth': [1, 2, 3],
        'grid_size': [5, 10, 20],
        'min_leaf_size': [5, 20]
    }

    results = []
    total_combinations = np.prod([len(v) for v in param_grid.values()])

    print(f"\nTotal combinations: {total_combinations}")
    print("Running grid search...")

    combo_idx = 0
    for n_rounds, depth, grid_size, leaf in product(
        param_grid['n_rounds'],
        param_grid['max_depth'],
        param_grid['grid_size'],
        param_grid['min_leaf_size']
    ):
        combo_idx += 1
        print(f"\n[{combo_idx}/{total_combinations}] Testing: "
              f"rounds={n_rounds}, depth={depth}, grid={grid_size}, leaf={leaf}")

        try:
            gbr = BoostedTreeRegressor(
                n_rounds=n_rounds,
                max_depth=depth,
                grid_size=grid_size,
                min_leaf_size=leaf
            )
            gbr.fit(X_train, y_train)
        except TreeBoostError as e:
            print(f"  Error: {e}")
            continue

        train_mse = mean_squared_error(y_train, gbr.predict(X_train))
        test_mse = mean_squared_error(y_test, gbr.predict(X_test))

        results.append({
            'n_rounds': n_rounds,
            'max_depth': depth,
            'grid_size': grid_size,
            'min_leaf_size': leaf,
            'train_mse': train_mse,
            'test_mse': test_mse
        })

        print(f"  Train MSE: {train_mse:.3f}, Test MSE: {test_mse:.3f}")

    df_results = pd.DataFrame(results)
    df_results = df_results.sort_values('test_mse')

    # Save results
    output_path = OUTPUT_DIR / 'regression_grid_search.csv'
    df_results.to_csv(output_path, index=False)
    print(f"\nSaved results to: {output_path}")

    print("\n" + "="*60)
    print("Top 10 Configurations (by Test MSE)")
    print("="*60)
    print(df_results.head(10).to_string(index=False))

    return df_results


def plot_hyperparameter_effects(df_reg):
    """Mean and spread of test MSE for each hyperparameter value."""
    print("\n" + "="*60)
    print("Creating Hyperparameter Effect Plots")
    print("="*60)

    hyperparams = ['n_rounds', 'max_depth', 'grid_size', 'min_leaf_size']
    fig, axes = plt.subplots(1, len(hyperparams), figsize=(20, 5))

    for ax, param in zip(axes, hyperparams):
        grouped = df_reg.groupby(param)['test_mse'].agg(['mean', 'std'])

        ax.errorbar(
            grouped.index, grouped['mean'], yerr=grouped['std'],
            marker='o', capsize=5, linewidth=2, markersize=8
        )
        ax.set_xlabel(param)
        ax.set_ylabel('Test MSE')
        ax.set_title(f'{param} Effect')
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(OUTPUT_DIR / 'hyperparameter_effects.png', dpi=150)
    print("\nSaved plot: hyperparameter_effects.png")


def main():
    """Run the hyperparameter scan."""
    df_reg = regression_grid_search()
    plot_hyperparameter_effects(df_reg)

    print("\nBest Configuration:")
    print(df_reg.iloc[0].to_string())


if __name__ == "__main__":
    main()
