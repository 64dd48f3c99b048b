import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from mctestanalysis.fit import (
    calculate_fit_statistics,
    expected_responses,
    identify_misfitting_items,
    item_fit_statistics,
    plot_item_characteristic_curve,
)


@pytest.fixture
def true_coefficients(simulated):
    item_score, difficulties, discriminations, _ = simulated
    return pd.DataFrame(
        {
            "difficulty": difficulties,
            "discrimination": discriminations,
            "guessing": np.zeros_like(difficulties),
        },
        index=item_score.columns,
    )


def test_calculate_fit_statistics():
    observed = np.array([[1, 0], [1, 1]], dtype=float)
    expected = np.array([[0.8, 0.4], [0.6, np.nan]])

    result = calculate_fit_statistics(observed, expected)

    assert result["mae"] == pytest.approx((0.2 + 0.4 + 0.4) / 3)
    assert result["rmse"] == pytest.approx(np.sqrt((0.04 + 0.16 + 0.16) / 3))
    assert result["accuracy"] == pytest.approx(1.0)


def test_expected_responses_shape(simulated, true_coefficients):
    item_score, _, _, theta = simulated

    expected = expected_responses(theta, true_coefficients)

    assert expected.shape == (item_score.shape[1], item_score.shape[0])
    assert np.all((expected > 0) & (expected < 1))


def test_item_fit_statistics_true_model_fits(simulated, true_coefficients):
    item_score, _, _, theta = simulated
    responses = item_score.to_numpy(dtype=float).T

    stats = item_fit_statistics(responses, theta, true_coefficients)

    assert list(stats.columns) == [
        "item_id",
        "discrimination",
        "difficulty",
        "guessing",
        "p_value",
        "point_biserial",
        "infit",
        "outfit",
    ]
    assert stats["p_value"].to_numpy() == pytest.approx(responses.mean(axis=1))
    assert stats["infit"].between(0.8, 1.2).all()
    assert (stats["point_biserial"] > 0).all()
    assert identify_misfitting_items(stats, min_point_biserial=0).empty


def test_item_fit_statistics_ignores_missing_abilities(simulated, true_coefficients):
    item_score, _, _, theta = simulated
    abilities = theta.copy()
    abilities[:10] = np.nan

    stats = item_fit_statistics(item_score.to_numpy(dtype=float).T, abilities, true_coefficients)

    assert stats[["infit", "outfit", "point_biserial"]].notna().all().all()


def test_identify_misfitting_items():
    stats = pd.DataFrame(
        {
            "item_id": ["Q1", "Q2", "Q3", "Q4"],
            "infit": [1.0, 1.4, 1.0, 1.0],
            "outfit": [1.0, 1.0, 1.6, 1.0],
            "point_biserial": [0.5, 0.5, 0.5, 0.1],
        }
    )

    misfit = identify_misfitting_items(stats)

    assert misfit["item_id"].tolist() == ["Q2", "Q3", "Q4"]
    assert identify_misfitting_items(stats, infit_threshold=2, outfit_threshold=2, min_point_biserial=0)[
        "item_id"
    ].empty


def test_plot_item_characteristic_curve():
    fig, ax = plt.subplots()

    returned = plot_item_characteristic_curve(0.5, 1.2, guessing=0.2, ax=ax, label="Q1")

    assert returned is ax
    assert len(ax.lines) >= 1
    x, y = ax.lines[0].get_data()
    assert y.min() > 0.2
    assert ax.get_xlim() == (-4, 4)
    plt.close(fig)
