import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from mctestanalysis import ctt, plots
from mctestanalysis.irt import IRTFit, fit_irt_models


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


@pytest.fixture
def fits(simulated):
    item_score, _, _, _ = simulated
    return fit_irt_models(item_score, models=["rasch", "2pl"], max_iter=10)


def test_plot_score_distribution(simulated):
    item_score, _, _, _ = simulated

    fig = plots.plot_score_distribution(ctt.total_scores(item_score), n_items=item_score.shape[1])

    assert isinstance(fig, plt.Figure)
    assert fig.axes[0].get_xlabel() == "Total Score"


def test_plot_item_map_skips_undefined_discrimination(simulated):
    item_score, _, _, _ = simulated
    analysis = ctt.item_analysis(item_score.assign(Q11=1))

    fig = plots.plot_item_map(analysis)

    labels = [t.get_text() for t in fig.axes[0].texts]
    assert "Q1" in labels
    assert "Q11" not in labels


def test_plot_option_selection():
    options = pd.DataFrame(
        {
            "Question": ["Q1", "Q1", "Q2"],
            "option": ["A", "B", "A"],
            "pct": [0.75, 0.25, 1.0],
            "is_correct": [True, False, True],
        }
    )

    fig = plots.plot_option_selection(options, "Q1")

    assert len(fig.axes[0].patches) == 2
    with pytest.raises(ValueError, match="No option data"):
        plots.plot_option_selection(options, "Q9")


def test_plot_item_characteristic_curves(fits):
    fig = plots.plot_item_characteristic_curves(fits["2pl"], questions=["Q1", "Q2", "Q3"], ncols=2)

    visible = [ax for ax in fig.axes if ax.get_visible()]
    assert len(visible) == 3
    assert visible[0].get_title() == "Q1"


def test_plot_item_characteristic_curves_requires_parameters():
    fit = IRTFit(
        model="rasch",
        coefficients=pd.DataFrame(
            {"difficulty": [np.nan], "discrimination": [np.nan], "guessing": [np.nan]}, index=["Q1"]
        ),
        abilities=pd.Series(dtype=float),
        log_likelihood=0.0,
        n_parameters=0,
        n_observations=0,
        n_iterations=0,
        converged=False,
    )
    with pytest.raises(ValueError, match="No item parameters"):
        plots.plot_item_characteristic_curves(fit)


def test_plot_test_information(fits):
    fig = plots.plot_test_information(fits)

    ax = fig.axes[0]
    assert len(ax.lines) == 2
    assert all(np.all(line.get_ydata() > 0) for line in ax.lines)


def test_plot_scree():
    eigen = ctt.eigen_summary(pd.DataFrame(np.eye(3)))

    fig = plots.plot_scree(eigen)

    assert fig.axes[0].get_ylabel() == "Eigenvalue"
