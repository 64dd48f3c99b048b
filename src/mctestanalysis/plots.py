"""
Figures for test analysis.

Every function returns the matplotlib Figure it draws so callers can show
it in the browser UI, embed it in the report or save it to disk.
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from scipy.constants import golden

from mctestanalysis.fit import plot_item_characteristic_curve
from mctestanalysis.irt import IRTFit, item_probability

ONE_COL_WIDTH_INCH = 3.25
TWO_COL_WIDTH_INCH = 7.2
ONE_COL_GOLDEN_RATIO_HEIGHT_INCH = ONE_COL_WIDTH_INCH / golden
TWO_COL_GOLDEN_RATIO_HEIGHT_INCH = TWO_COL_WIDTH_INCH / golden

CORRECT_COLOR = "#2A9D8F"
DISTRACTOR_COLOR = "#6A040F"


def range_frame(ax, x, y, pad=0.1):
    """
    Create a range frame for better visualization.

    Parameters
    ----------
    ax : matplotlib.axes.Axes
        Axes object to modify
    x : array-like
        x-values to set boundaries
    y : array-like
        y-values to set boundaries
    pad : float, optional
        Padding around the data (default: 0.1)
    """
    y_min, y_max = np.nanmin(y), np.nanmax(y)
    x_min, x_max = np.nanmin(x), np.nanmax(x)

    if y_max > y_min:
        ax.set_ylim(y_min - pad * (y_max - y_min), y_max + pad * (y_max - y_min))

    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.spines["left"].set_position(("outward", 10))
    ax.spines["bottom"].set_position(("outward", 10))
    ax.spines["left"].set_bounds(y_min, y_max)
    ax.spines["bottom"].set_bounds(x_min, x_max)


def plot_score_distribution(scores: pd.Series, n_items: int | None = None) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(TWO_COL_WIDTH_INCH, TWO_COL_GOLDEN_RATIO_HEIGHT_INCH))

    upper = n_items if n_items is not None else int(scores.max())
    bins = np.arange(-0.5, upper + 1.5, 1)
    sns.histplot(scores, bins=bins, color=DISTRACTOR_COLOR, ax=ax)
    ax.axvline(scores.mean(), color="gray", linestyle="--", alpha=0.7, label="Mean")

    ax.set_xlabel("Total Score")
    ax.set_ylabel("Students")
    ax.legend(frameon=False)
    fig.tight_layout()
    return fig


def plot_item_map(item_analysis: pd.DataFrame, discrimination: str = "item_total") -> plt.Figure:
    """Scatter of item difficulty against discrimination, labelled by question."""
    fig, ax = plt.subplots(figsize=(TWO_COL_WIDTH_INCH, TWO_COL_GOLDEN_RATIO_HEIGHT_INCH))

    x = item_analysis["difficulty"]
    y = item_analysis[discrimination]
    ax.scatter(x, y, color=DISTRACTOR_COLOR, s=15)
    for question, xi, yi in zip(item_analysis.index, x, y):
        if not np.isnan(yi):
            ax.annotate(str(question), (xi, yi), fontsize=7, xytext=(3, 3), textcoords="offset points")

    ax.axhline(0.2, color="gray", linestyle="--", alpha=0.5)
    if y.notna().any():
        range_frame(ax, x, y.dropna())
    ax.set_xlabel("Difficulty (proportion correct)")
    ax.set_ylabel(discrimination.replace("_", " ").title())
    fig.tight_layout()
    return fig


def plot_option_selection(options: pd.DataFrame, question: str) -> plt.Figure:
    """Bar chart of how often each option of one question was chosen."""
    subset = options[options["Question"] == question]
    if subset.empty:
        raise ValueError(f"No option data for question '{question}'")

    fig, ax = plt.subplots(figsize=(ONE_COL_WIDTH_INCH, ONE_COL_GOLDEN_RATIO_HEIGHT_INCH))
    colors = [CORRECT_COLOR if correct else DISTRACTOR_COLOR for correct in subset["is_correct"]]
    ax.bar(subset["option"].astype(str), subset["pct"], color=colors)

    ax.set_ylim(0, 1)
    ax.set_xlabel("Option")
    ax.set_ylabel("Share of students")
    ax.set_title(str(question))
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()
    return fig


def plot_item_characteristic_curves(
    fit: IRTFit, questions: list[str] | None = None, ncols: int = 4
) -> plt.Figure:
    coefficients = fit.coefficients.dropna()
    if questions is not None:
        coefficients = coefficients.loc[[q for q in questions if q in coefficients.index]]
    if coefficients.empty:
        raise ValueError("No item parameters to plot")

    nrows = int(np.ceil(len(coefficients) / ncols))
    ncols = min(ncols, len(coefficients))
    fig, axes = plt.subplots(
        nrows=nrows, ncols=ncols, figsize=(2.5 * ncols, 2.2 * nrows), squeeze=False
    )

    for ax, (question, item) in zip(axes.flat, coefficients.iterrows()):
        plot_item_characteristic_curve(
            item["difficulty"], item["discrimination"], item["guessing"], ax=ax
        )
        ax.set_title(str(question), fontsize=9)
        ax.set_xlabel("")
        ax.set_ylabel("")
    for ax in list(axes.flat)[len(coefficients):]:
        ax.set_visible(False)

    fig.suptitle(f"Item Characteristic Curves ({fit.model.upper()})")
    fig.supxlabel("Ability")
    fig.supylabel("P(correct)")
    fig.tight_layout()
    return fig


def plot_test_information(fits: dict[str, IRTFit], ability_range=(-4, 4)) -> plt.Figure:
    """Test information curve of each fitted model."""
    theta = np.linspace(ability_range[0], ability_range[1], 200)
    fig, ax = plt.subplots(figsize=(TWO_COL_WIDTH_INCH, TWO_COL_GOLDEN_RATIO_HEIGHT_INCH))

    for name, fit in fits.items():
        coef = fit.coefficients.dropna()
        a = coef["discrimination"].to_numpy()[:, None]
        b = coef["difficulty"].to_numpy()[:, None]
        c = coef["guessing"].to_numpy()[:, None]
        probs = np.clip(item_probability(theta[None, :], a, b, c), 1e-9, 1 - 1e-9)
        logistic = (probs - c) / (1 - c)
        information = np.sum(a**2 * logistic**2 * (1 - probs) / probs, axis=0)
        ax.plot(theta, information, label=name.upper())

    ax.set_xlabel("Ability")
    ax.set_ylabel("Information")
    ax.legend(frameon=False)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    fig.tight_layout()
    return fig


def plot_scree(eigen: pd.DataFrame) -> plt.Figure:
    fig, ax = plt.subplots(figsize=(ONE_COL_WIDTH_INCH * 1.5, ONE_COL_GOLDEN_RATIO_HEIGHT_INCH * 1.5))
    ax.plot(eigen["component"], eigen["eigenvalue"], marker="o", color=DISTRACTOR_COLOR)
    ax.axhline(1.0, color="gray", linestyle="--", alpha=0.5)
    range_frame(ax, eigen["component"], eigen["eigenvalue"])
    ax.set_xlabel("Component")
    ax.set_ylabel("Eigenvalue")
    fig.tight_layout()
    return fig
