"""
Diagnostic utilities for IRT analysis.

This module provides functions for checking how well a fitted IRT model
describes each item and for drawing item characteristic curves.
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from mctestanalysis.irt import item_probability


def calculate_fit_statistics(
    observed: np.ndarray, expected: np.ndarray
) -> dict[str, float]:
    """
    Calculate fit statistics for comparing observed and expected responses.

    Args:
        observed (np.ndarray): Observed binary responses with shape [n_items, n_participants].
        expected (np.ndarray): Expected response probabilities with shape [n_items, n_participants].

    Returns:
        dict[str, float]: dictionary containing:
            - 'rmse': Root mean squared error.
            - 'mae': Mean absolute error.
            - 'accuracy': Classification accuracy (using 0.5 threshold).
    """
    mask = ~np.isnan(expected)
    residuals = observed[mask] - expected[mask]

    predicted = (expected[mask] >= 0.5).astype(int)
    return {
        "rmse": float(np.sqrt(np.mean(residuals**2))),
        "mae": float(np.mean(np.abs(residuals))),
        "accuracy": float(np.mean(observed[mask] == predicted)),
    }


def expected_responses(abilities: np.ndarray, coefficients: pd.DataFrame) -> np.ndarray:
    """Model probabilities with shape [n_items, n_participants]."""
    return item_probability(
        abilities[None, :],
        coefficients["discrimination"].to_numpy()[:, None],
        coefficients["difficulty"].to_numpy()[:, None],
        coefficients["guessing"].to_numpy()[:, None],
    )


def item_fit_statistics(
    response_matrix: np.ndarray,
    abilities: np.ndarray,
    coefficients: pd.DataFrame,
) -> pd.DataFrame:
    """
    Calculate item fit statistics for a fitted IRT model.

    Participants without an ability estimate are ignored.

    Args:
        response_matrix (np.ndarray): Binary response matrix with shape [n_items, n_participants].
        abilities (np.ndarray): Estimated ability parameters for each participant.
        coefficients (pd.DataFrame): difficulty, discrimination and guessing per item.

    Returns:
        pd.DataFrame: DataFrame containing fit statistics for each item:
            - 'item_id': Item identifier.
            - 'discrimination', 'difficulty', 'guessing': Item parameters.
            - 'p_value': Proportion of correct responses.
            - 'point_biserial': Correlation of the responses with ability.
            - 'infit': Information weighted mean square.
            - 'outfit': Unweighted mean square.
    """
    estimated = ~np.isnan(abilities)
    responses = response_matrix[:, estimated]
    theta = abilities[estimated]

    item_stats = pd.DataFrame(
        {
            "item_id": coefficients.index,
            "discrimination": coefficients["discrimination"].to_numpy(),
            "difficulty": coefficients["difficulty"].to_numpy(),
            "guessing": coefficients["guessing"].to_numpy(),
            "p_value": response_matrix.mean(axis=1),
        }
    )

    point_biserial = np.full(len(item_stats), np.nan)
    for i in range(len(item_stats)):
        if np.std(responses[i]) > 0 and np.std(theta) > 0:
            point_biserial[i] = np.corrcoef(responses[i], theta)[0, 1]
    item_stats["point_biserial"] = point_biserial

    expected = np.clip(expected_responses(theta, coefficients), 1e-9, 1 - 1e-9)
    variance = expected * (1 - expected)
    squared_residuals = (responses - expected) ** 2

    # Infit weights squared standardized residuals by their variance
    item_stats["infit"] = np.sum(squared_residuals, axis=1) / np.sum(variance, axis=1)
    item_stats["outfit"] = np.mean(squared_residuals / variance, axis=1)

    return item_stats


def identify_misfitting_items(
    item_stats: pd.DataFrame,
    infit_threshold: float = 1.3,
    outfit_threshold: float = 1.5,
    min_point_biserial: float = 0.2,
) -> pd.DataFrame:
    """
    Identify items that do not fit well with the IRT model.

    Args:
        item_stats (pd.DataFrame): DataFrame containing item fit statistics.
        infit_threshold (float, optional): Threshold for flagging items with high infit (default: 1.3).
        outfit_threshold (float, optional): Threshold for flagging items with high outfit (default: 1.5).
        min_point_biserial (float, optional): Items correlating less with ability are flagged (default: 0.2).

    Returns:
        pd.DataFrame: DataFrame containing only the misfitting items.
    """
    misfitting = (
        (item_stats["infit"] > infit_threshold)
        | (item_stats["outfit"] > outfit_threshold)
        | (item_stats["point_biserial"] < min_point_biserial)
    )

    return item_stats[misfitting].copy()


def plot_item_characteristic_curve(
    difficulty: float,
    discrimination: float,
    guessing: float = 0.0,
    ability_range: tuple[float, float] | None = None,
    ax: plt.Axes | None = None,
    label: str | None = None,
) -> plt.Axes:
    """
    Plot the item characteristic curve for a given item.

    Args:
        difficulty (float): Item difficulty parameter.
        discrimination (float): Item discrimination parameter.
        guessing (float, optional): Lower asymptote (default: 0).
        ability_range (tuple[float, float] | None, optional): Range of ability values to plot (default: (-4, 4)).
        ax (plt.Axes | None, optional): Matplotlib axes to plot on (default: create new axes).
        label (str | None, optional): Legend label for the curve.

    Returns:
        plt.Axes: Matplotlib axes containing the plot.
    """
    if ability_range is None:
        ability_range = (-4, 4)

    if ax is None:
        _, ax = plt.subplots(figsize=(8, 6))

    abilities = np.linspace(ability_range[0], ability_range[1], 100)
    probs = item_probability(abilities, discrimination, difficulty, guessing)

    ax.plot(abilities, probs, label=label)
    ax.axhline(y=0.5, color="gray", linestyle="--", alpha=0.5)
    ax.axvline(x=difficulty, color="red", linestyle="--", alpha=0.5)
    if guessing > 0:
        ax.axhline(y=guessing, color="gray", linestyle=":", alpha=0.5)

    ax.set_xlabel("Ability")
    ax.set_ylabel("Probability of Correct Response")
    ax.set_title(
        f"Item Characteristic Curve (Difficulty: {difficulty:.2f}, Discrimination: {discrimination:.2f})"
    )

    ax.set_xlim(ability_range)
    ax.set_ylim(0, 1)

    return ax
