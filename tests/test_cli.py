import json
import os
import sys

import fire
import pandas as pd
import pytest

from mctestanalysis import cli
from mctestanalysis.cli import SUMMARY_TABLES, MCTestAnalysis


def test_summary_prints_tables(answer_file, test_file, capsys):
    MCTestAnalysis().summary(answer_file, test_file)

    out = capsys.readouterr().out
    assert "Cronbach's alpha: 0.833" in out
    assert "item_total_without_item" in out


def test_summary_writes_tables(answer_file, test_file, tmp_path):
    output_path = tmp_path / "tables"

    MCTestAnalysis().summary(answer_file, test_file, output_path=str(output_path))

    assert sorted(os.listdir(output_path)) == sorted(f"{name}.csv" for name in SUMMARY_TABLES)
    discrimination = pd.read_csv(output_path / "discrimination_index.csv", index_col=0)
    assert discrimination["discrimination_index"].tolist() == pytest.approx([0.5, 1.0, 1.0, 1.0])


def test_summary_rejects_invalid_group_fraction(answer_file, test_file):
    with pytest.raises(ValueError, match="Invalid configuration"):
        MCTestAnalysis().summary(answer_file, test_file, group_fraction=0.9)


def test_irt_through_fire(simulated_files, tmp_path):
    answer_file, test_file = simulated_files
    output_path = str(tmp_path / "results")

    result = fire.Fire(
        MCTestAnalysis,
        command=[
            "irt",
            "--answer_file", answer_file,
            "--test_file", test_file,
            "--output_path", output_path,
            "--models", "rasch",
            "--max_iter", "20",
        ],
    )

    assert result["models_fitted"] == 1
    assert result["items_analyzed"] == 6
    assert result["students_analyzed"] == 150
    for name in ["model_comparison.csv", "abilities.csv", "coefficients_rasch.csv", "item_fit.csv"]:
        assert os.path.exists(os.path.join(output_path, name))
    abilities = pd.read_csv(os.path.join(output_path, "abilities.csv"), index_col=0)
    assert list(abilities.columns) == ["rasch"]


def test_irt_uses_config_file(simulated_files, tmp_path):
    answer_file, test_file = simulated_files
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"irt": {"models": ["2pl"], "max_iter": 20}}))

    result = MCTestAnalysis(config=str(config_path)).irt(
        answer_file, test_file, output_path=str(tmp_path / "out")
    )

    assert result["models_fitted"] == 1
    assert os.path.exists(tmp_path / "out" / "coefficients_2pl.csv")


def test_report_command(simulated_files, tmp_path):
    answer_file, test_file = simulated_files
    output = str(tmp_path / "report.html")
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"irt": {"models": ["rasch"], "max_iter": 20}}))

    written = MCTestAnalysis(config=str(config_path)).report(
        answer_file, test_file, output=output, title="Quiz 1", plots=False
    )

    assert written == output
    with open(output, encoding="utf-8") as f:
        document = f.read()
    assert "<h1>Quiz 1</h1>" in document


def test_main_exits_on_invalid_input(answer_file, tmp_path, monkeypatch):
    test_path = tmp_path / "short.csv"
    test_path.write_text("Student,Q1\ns1,A\n")
    monkeypatch.setattr(cli, "enable_logging", lambda: None)
    monkeypatch.setattr(
        sys,
        "argv",
        ["mctestanalysis", "summary", "--answer_file", answer_file, "--test_file", str(test_path)],
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1


def test_main_exits_without_complete_students(answer_file, tmp_path, monkeypatch):
    test_path = tmp_path / "blank.csv"
    test_path.write_text("Student,Q1,Q2,Q3,Q4\ns1,A,,C,D\n")
    monkeypatch.setattr(cli, "enable_logging", lambda: None)
    monkeypatch.setattr(
        sys,
        "argv",
        ["mctestanalysis", "summary", "--answer_file", answer_file, "--test_file", str(test_path)],
    )

    with pytest.raises(SystemExit) as excinfo:
        cli.main()

    assert excinfo.value.code == 1
