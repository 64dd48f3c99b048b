#!/usr/bin/env python
"""
MC Test Analysis CLI

This script runs classical test theory and Item Response Theory analysis on
multiple-choice test results. It loads the answer key and the student
responses, computes item statistics, fits IRT models and writes tables and
an HTML report.


Examples:
    # Print the test summary and item analysis
    mctestanalysis summary --answer_file=answers.csv --test_file=test.csv

    # Fit IRT models and save coefficients and abilities as CSV
    mctestanalysis irt --answer_file=answers.csv --test_file=test.csv --output_path=results/

    # Fit the Bayesian 2PL model with PyMC instead
    mctestanalysis irt --answer_file=answers.csv --test_file=test.csv --models=2pl --method=bayesian

    # Write the HTML report
    mctestanalysis report --answer_file=answers.csv --test_file=test.csv --output=report.html

    # Launch the browser UI
    mctestanalysis app
"""

import os
import sys
import time

import fire
import numpy as np
import pandas as pd
from loguru import logger

from mctestanalysis.config import get_default_config, load_config, validate_config
from mctestanalysis.data import load_all_data, save_tables
from mctestanalysis.irt import compare_models, fit_irt_models, save_trace
from mctestanalysis.report import generate_report
from mctestanalysis.session import MCTestData, as_frame
from mctestanalysis.utils import enable_logging

SUMMARY_TABLES = [
    "test_summary",
    "item_analysis",
    "discrimination_index",
    "pbcc",
    "pbcc_modified",
    "options_selected",
    "concept_summary",
    "item_review",
]


class MCTestAnalysis:
    """
    MC Test Analysis CLI for multiple-choice tests.

    This class provides commands to summarize test results, fit IRT models,
    generate a report and launch the browser UI.
    """

    def __init__(self, config=None):
        """
        Args:
            config (str | None): Path to a JSON configuration file
        """
        self.config = load_config(config) if config else get_default_config()

    def _load(self, answer_file, test_file, has_student_id, **overrides) -> MCTestData:
        for group, values in overrides.items():
            self.config[group].update({k: v for k, v in values.items() if v is not None})

        issues = validate_config(self.config)
        for issue in issues:
            logger.warning(issue["message"])
        errors = [i["message"] for i in issues if i["type"] == "error"]
        if errors:
            raise ValueError("Invalid configuration: " + "; ".join(errors))

        logger.info(f"Loading answer key from {answer_file} and test data from {test_file}")
        return load_all_data(
            answer_file=answer_file,
            test_file=test_file,
            has_student_id=has_student_id,
            config=self.config,
        )

    def summary(
        self,
        answer_file,
        test_file,
        has_student_id=True,
        output_path=None,
        group_fraction=None,
    ):
        """
        Print the test summary, reliability and item analysis.

        Args:
            answer_file (str): Path to the answer key CSV/TSV file.
            test_file (str): Path to the test results CSV/TSV file.
            has_student_id (bool): Does the first test column hold student identifiers?
            output_path (str | None): Directory to save the tables as CSV.
            group_fraction (float | None): Share of students in the upper and lower groups.

        Returns:
            None
        """
        mctd = self._load(
            answer_file,
            test_file,
            has_student_id,
            analysis={"group_fraction": group_fraction},
        )
        mctd.requires(*SUMMARY_TABLES, "alpha")

        alpha = mctd["alpha"]
        with pd.option_context("display.width", 160, "display.max_columns", 20):
            print(as_frame(mctd["test_summary"]).round(3).to_string())
            print()
            print(
                f"Cronbach's alpha: {alpha['alpha']:.3f} "
                f"[{alpha['ci_lower']:.3f}, {alpha['ci_upper']:.3f}]"
            )
            print()
            print(mctd["item_analysis"].round(3).to_string())

        if output_path is not None:
            save_tables(mctd, output_path, SUMMARY_TABLES)

    def irt(
        self,
        answer_file,
        test_file,
        has_student_id=True,
        output_path="results/",
        models=None,
        method=None,
        max_iter=None,
        n_samples=None,
        tune=None,
        chains=None,
        cores=None,
        target_accept=None,
        seed=None,
    ):
        """
        Fit IRT models and save coefficients, abilities and model comparison.

        Args:
            answer_file (str): Path to the answer key CSV/TSV file.
            test_file (str): Path to the test results CSV/TSV file.
            has_student_id (bool): Does the first test column hold student identifiers?
            output_path (str): Directory to save results.
            models (str | list | None): IRT models to fit ('rasch', '2pl', '3pl').
            method (str | None): 'jml' or 'bayesian' (PyMC).
            max_iter (int | None): Maximum JML iterations.
            n_samples (int | None): Number of MCMC samples (for PyMC).
            tune (int | None): Number of tuning samples (for PyMC).
            chains (int | None): Number of MCMC chains (for PyMC).
            cores (int | None): Number of CPU cores to use for sampling.
            target_accept (float | None): Target acceptance rate for MCMC.
            seed (int | None): Random seed for reproducibility.

        Returns:
            dict: Number of models, items and students analyzed and elapsed time.
        """
        start_time = time.time()

        if isinstance(models, str):
            models = [m.strip() for m in models.split(",")]
        elif models is not None:
            models = list(models)

        mctd = self._load(
            answer_file,
            test_file,
            has_student_id,
            irt={
                "models": models,
                "method": method,
                "max_iter": max_iter,
                "n_samples": n_samples,
                "tune": tune,
                "chains": chains,
                "cores": cores,
                "target_accept": target_accept,
                "seed": seed,
            },
        )
        np.random.seed(self.config["irt"]["seed"])

        os.makedirs(output_path, exist_ok=True)
        logger.info(
            f"Fitting {self.config['irt']['models']} with method={self.config['irt']['method']}"
        )
        fits = mctd["irt_models"]

        comparison = compare_models(fits)
        comparison.to_csv(os.path.join(output_path, "model_comparison.csv"))
        print(comparison.round(3).to_string())

        abilities = pd.DataFrame({name: fit.abilities for name, fit in fits.items()})
        abilities.to_csv(os.path.join(output_path, "abilities.csv"))

        for name, fit in fits.items():
            path = os.path.join(output_path, f"coefficients_{name}.csv")
            fit.coefficients.to_csv(path)
            logger.info(f"Saved {name} coefficients to {path}")

        save_tables(mctd, output_path, ["item_fit"])

        elapsed_time = time.time() - start_time
        logger.info(f"Analysis complete! Total time: {elapsed_time:.2f} seconds")

        return {
            "models_fitted": len(fits),
            "items_analyzed": mctd["item_score"].shape[1],
            "students_analyzed": mctd["item_score"].shape[0],
            "elapsed_time": elapsed_time,
        }

    def trace(
        self,
        answer_file,
        test_file,
        has_student_id=True,
        output_path="results/",
        model="2pl",
    ):
        """
        Sample one Bayesian IRT model with PyMC and save the trace.

        Args:
            answer_file (str): Path to the answer key CSV/TSV file.
            test_file (str): Path to the test results CSV/TSV file.
            has_student_id (bool): Does the first test column hold student identifiers?
            output_path (str): Directory to save the trace.
            model (str): 'rasch', '2pl' or '3pl'.

        Returns:
            str: Path of the saved trace.
        """
        mctd = self._load(answer_file, test_file, has_student_id)
        irt = self.config["irt"]
        traces = {}
        fit_irt_models(
            mctd["item_score"],
            models=[model],
            method="bayesian",
            traces=traces,
            n_samples=irt["n_samples"],
            tune=irt["tune"],
            chains=irt["chains"],
            cores=irt["cores"],
            target_accept=irt["target_accept"],
            seed=irt["seed"],
        )

        os.makedirs(output_path, exist_ok=True)
        trace_path = os.path.join(output_path, f"trace_{model}.pkl")
        save_trace(traces[model], trace_path)
        return trace_path

    def report(
        self,
        answer_file,
        test_file,
        has_student_id=True,
        output="mctestanalysis_report.html",
        title=None,
        tetrachoric=False,
        plots=True,
    ):
        """
        Write the HTML report.

        Args:
            answer_file (str): Path to the answer key CSV/TSV file.
            test_file (str): Path to the test results CSV/TSV file.
            has_student_id (bool): Does the first test column hold student identifiers?
            output (str): Path of the HTML file to write.
            title (str | None): Report title.
            tetrachoric (bool): Include the tetrachoric dimensionality check (slow for long tests).
            plots (bool): Embed figures.

        Returns:
            str: Path of the written report.
        """
        mctd = self._load(
            answer_file,
            test_file,
            has_student_id,
            report={"title": title, "include_plots": plots},
        )
        if tetrachoric:
            mctd.requires("tetrachoric")
        generate_report(mctd, output_path=output)
        return output

    def app(self):
        """Launch the browser UI."""
        from mctestanalysis.app import run_app

        run_app()


def main():
    """Main function to create and run the MC Test Analysis CLI."""
    enable_logging()
    try:
        fire.Fire(MCTestAnalysis, name="mctestanalysis")
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
