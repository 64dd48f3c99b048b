import numpy as np
import pandas as pd
import pytest

from mctestanalysis import MCTestData, load_all_data, load_test_data
from mctestanalysis.session import BUILDERS, as_frame


@pytest.fixture
def mctd(answer_file, test_file):
    return load_all_data(answer_file, test_file)


def test_item_score_uses_complete_responses(mctd):
    item_score = mctd["item_score"]

    assert list(item_score.index) == ["s1", "s2", "s3", "s4", "s5", "s6"]
    assert item_score.loc["s2"].tolist() == [1, 1, 1, 0]
    assert mctd["scores"].tolist() == [4, 3, 2, 1, 0, 4]
    assert "scores" in mctd


def test_requires_memoizes(mctd):
    first = mctd.requires("item_analysis")["item_analysis"]
    second = mctd.requires("item_analysis")["item_analysis"]

    assert first is second
    assert set(mctd.derived) >= {"item_score", "scores", "item_analysis"}


def test_requires_verbose_logs_additions(mctd, log_messages):
    mctd.requires("pbcc", verbose=True)
    mctd.requires("pbcc", verbose=True)

    added = [m["message"] for m in log_messages if m["message"].startswith("Adding")]
    assert added == ["Adding pbcc to MCTestData"]


def test_requires_unknown_name(mctd):
    with pytest.raises(KeyError, match="Unknown derived table"):
        mctd.requires("not_a_table")


def test_requires_without_data():
    with pytest.raises(ValueError, match="must both be loaded"):
        MCTestData().requires("item_score")


def test_loading_new_data_clears_derived(mctd, test_file):
    mctd.requires("alpha")
    assert "alpha" in mctd

    load_test_data(mctd, test_file)

    assert mctd.derived == []
    assert "alpha" not in mctd


def test_contains_base_tables():
    mctd = MCTestData()
    assert "answer_key" not in mctd
    assert "test" not in mctd


def test_every_ctt_builder_runs(mctd):
    names = [n for n in BUILDERS if n not in ("irt_models", "item_fit")]

    mctd.requires(*names)

    for name in names:
        assert name in mctd


def test_test_summary(mctd):
    summary = mctd["test_summary"]

    assert summary["n_items"] == 4
    assert summary["n_students"] == 6
    assert summary["n_students_total"] == 7
    assert summary["n_students_incomplete"] == 1
    assert summary["mean"] == pytest.approx(14 / 6)


def test_item_review_uses_config(mctd):
    mctd.config["review"]["max_difficulty"] = 0.8

    review = mctd["item_review"]

    assert review.loc["Q1", "too_easy"]
    assert review.loc["Q1", "recommendation"].startswith("Review: too easy")


def test_irt_models_and_item_fit(simulated_files, fast_config):
    answer_file, test_file = simulated_files
    mctd = load_all_data(answer_file, test_file, config=fast_config)

    fits = mctd["irt_models"]
    item_fit = mctd["item_fit"]

    assert list(fits) == ["rasch", "2pl"]
    assert set(item_fit["model"]) == {"rasch", "2pl"}
    assert len(item_fit) == 2 * 6


def test_as_frame():
    frame = pd.DataFrame({"a": [1]})
    assert as_frame(frame) is frame
    assert list(as_frame(pd.Series([1, 2], name="x")).columns) == ["x"]

    table = as_frame({"alpha": 0.8, "alpha_if_deleted": pd.Series([0.1]), "n_items": 4})
    assert list(table.index) == ["alpha", "n_items"]
    assert table.loc["alpha", "value"] == pytest.approx(0.8)

    with pytest.raises(TypeError):
        as_frame([1, 2])


def test_repr(mctd):
    mctd.requires("pbcc")
    assert repr(mctd).startswith("MCTestData(items=4, students=7")
    assert np.isfinite(mctd["pbcc"]["Q2"])


def test_partial_config_is_merged_with_defaults(answer_file, test_file):
    mctd = load_all_data(answer_file, test_file, config={"irt": {"models": ["rasch"]}})

    assert mctd.config["irt"]["models"] == ["rasch"]
    assert mctd.config["analysis"]["group_fraction"] == 0.27
    assert mctd["alpha"]["alpha"] == pytest.approx(5 / 6)


def test_requires_without_complete_students(answer_file, tmp_path):
    path = tmp_path / "test.csv"
    path.write_text("Student,Q1,Q2,Q3,Q4\ns1,A,,C,D\ns2,A,B,C,\n")
    mctd = load_all_data(answer_file, str(path))

    assert mctd.is_ready
    assert mctd.test_complete.empty
    with pytest.raises(ValueError, match="no students with complete responses"):
        mctd.requires("test_summary")
