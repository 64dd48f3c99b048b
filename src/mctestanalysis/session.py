"""
Session object for test analysis.

This module provides the MCTestData class, which holds the answer key and
response tables together with every derived table computed from them, and
the add_* functions that fill in those derived tables on demand.
"""

from typing import Any, Callable

import numpy as np
import pandas as pd
from loguru import logger

from mctestanalysis import ctt
from mctestanalysis.config import merge_config
from mctestanalysis.fit import item_fit_statistics
from mctestanalysis.irt import fit_irt_models


class MCTestData:
    """
    Mutable container for one test analysis.

    Derived tables are computed once and cached under their name. Loading a
    new answer key or test table clears the cache.

    Attributes:
        answer_key (pd.DataFrame | None): Question, Answer, Title, Concept
        test (pd.DataFrame | None): Raw responses, one row per student
        test_complete (pd.DataFrame | None): Rows of ``test`` without missing responses
        config (dict[str, Any]): Analysis configuration
    """

    def __init__(self, config: dict[str, Any] | None = None):
        self.answer_key: pd.DataFrame | None = None
        self.test: pd.DataFrame | None = None
        self.test_complete: pd.DataFrame | None = None
        self.config: dict[str, Any] = merge_config(config)
        self._derived: dict[str, Any] = {}

    def __contains__(self, name: str) -> bool:
        if name in ("answer_key", "test", "test_complete"):
            return getattr(self, name) is not None
        return name in self._derived

    def __getitem__(self, name: str) -> Any:
        if name in ("answer_key", "test", "test_complete"):
            return getattr(self, name)
        return self.requires(name)._derived[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self._derived[name] = value

    def __repr__(self) -> str:
        n_items = 0 if self.answer_key is None else len(self.answer_key)
        n_students = 0 if self.test is None else len(self.test)
        return (
            f"MCTestData(items={n_items}, students={n_students}, "
            f"derived={sorted(self._derived)})"
        )

    @property
    def derived(self) -> list[str]:
        """Names of the derived tables computed so far."""
        return list(self._derived)

    @property
    def is_ready(self) -> bool:
        """True once both the answer key and the test data are loaded."""
        return self.answer_key is not None and self.test_complete is not None

    def clear_derived(self) -> None:
        self._derived.clear()

    def requires(self, *required: str, verbose: bool = False) -> "MCTestData":
        """
        Make sure the named derived tables are present, computing missing ones.

        Args:
            *required (str): Names of derived tables
            verbose (bool): Log a warning for each table that gets added

        Returns:
            MCTestData: This session object

        Raises:
            KeyError: If a name is not a known derived table
            ValueError: If answer key or test data are missing, or no student
                answered every question
        """
        for requirement in required:
            if requirement not in BUILDERS:
                raise KeyError(
                    f"Unknown derived table '{requirement}', expected one of {sorted(BUILDERS)}"
                )
            if requirement in self._derived:
                continue
            if not self.is_ready:
                raise ValueError(
                    f"Cannot compute '{requirement}': answer key and test data must both be loaded"
                )
            if self.test_complete.empty:
                raise ValueError(
                    f"Cannot compute '{requirement}': no students with complete responses"
                )
            if verbose:
                logger.warning(f"Adding {requirement} to MCTestData")
            BUILDERS[requirement](self)
        return self


def add_item_score(mctd: MCTestData) -> MCTestData:
    item_score = ctt.score_items(mctd.test_complete, mctd.answer_key)
    mctd["item_score"] = item_score
    mctd["scores"] = ctt.total_scores(item_score)
    return mctd


def add_item_analysis(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["item_analysis"] = ctt.item_analysis(
        mctd["item_score"],
        group_fraction=mctd.config["analysis"]["group_fraction"],
    )
    return mctd


def add_alpha(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["alpha"] = ctt.cronbach_alpha(
        mctd["item_score"],
        confidence=mctd.config["analysis"]["alpha_confidence"],
    )
    return mctd


def add_discrimination_index(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["discrimination_index"] = ctt.discrimination_index(
        mctd["item_score"],
        group_fraction=mctd.config["analysis"]["group_fraction"],
    )
    return mctd


def add_pbcc(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["pbcc"] = ctt.pbcc(mctd["item_score"])
    return mctd


def add_pbcc_modified(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["pbcc_modified"] = ctt.pbcc_modified(mctd["item_score"])
    return mctd


def add_tetrachoric(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["tetrachoric"] = ctt.tetrachoric(mctd["item_score"])
    return mctd


def add_irt_fits(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    irt = mctd.config["irt"]
    mctd["irt_models"] = fit_irt_models(
        mctd["item_score"],
        models=irt["models"],
        method=irt["method"],
        max_iter=irt["max_iter"],
        tolerance=irt["tolerance"],
        n_samples=irt["n_samples"],
        tune=irt["tune"],
        chains=irt["chains"],
        cores=irt["cores"],
        target_accept=irt["target_accept"],
        seed=irt["seed"],
    )
    return mctd


def add_item_fit(mctd: MCTestData) -> MCTestData:
    """Item fit statistics for every fitted IRT model, stacked by model."""
    mctd.requires("irt_models")
    tables = []
    for name, fit in mctd["irt_models"].items():
        stats = item_fit_statistics(
            mctd["item_score"].to_numpy(dtype=float).T,
            fit.abilities.to_numpy(),
            fit.coefficients,
        )
        stats.insert(0, "model", name)
        tables.append(stats)
    mctd["item_fit"] = pd.concat(tables, ignore_index=True)
    return mctd


def add_test_summary(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    summary = ctt.summarize_test_scores(mctd["scores"])
    summary["n_items"] = mctd["item_score"].shape[1]
    summary["n_students_total"] = len(mctd.test)
    summary["n_students_incomplete"] = len(mctd.test) - len(mctd.test_complete)
    mctd["test_summary"] = summary
    return mctd


def add_options_selected(mctd: MCTestData) -> MCTestData:
    mctd["options_selected"] = ctt.options_selected(mctd.test_complete, mctd.answer_key)
    return mctd


def add_distractor_analysis(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["distractor_analysis"] = ctt.distractor_analysis(
        mctd.test_complete,
        mctd.answer_key,
        mctd["scores"],
        group_fraction=mctd.config["analysis"]["group_fraction"],
    )
    return mctd


def add_concept_summary(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_score")
    mctd["concept_summary"] = ctt.concept_summary(mctd["item_score"], mctd.answer_key)
    return mctd


def add_item_review(mctd: MCTestData) -> MCTestData:
    mctd.requires("item_analysis", "pbcc")
    mctd["item_review"] = ctt.item_review(
        mctd["item_analysis"], mctd["pbcc"], mctd.config["review"]
    )
    return mctd


BUILDERS: dict[str, Callable[[MCTestData], MCTestData]] = {
    "item_score": add_item_score,
    "scores": add_item_score,
    "item_analysis": add_item_analysis,
    "alpha": add_alpha,
    "discrimination_index": add_discrimination_index,
    "pbcc": add_pbcc,
    "pbcc_modified": add_pbcc_modified,
    "irt_models": add_irt_fits,
    "tetrachoric": add_tetrachoric,
    "item_fit": add_item_fit,
    "test_summary": add_test_summary,
    "options_selected": add_options_selected,
    "distractor_analysis": add_distractor_analysis,
    "concept_summary": add_concept_summary,
    "item_review": add_item_review,
}


def as_frame(table: Any) -> pd.DataFrame:
    """Render a derived table (Series, dict or DataFrame) as a DataFrame."""
    if isinstance(table, pd.DataFrame):
        return table
    if isinstance(table, pd.Series):
        return table.to_frame()
    if isinstance(table, dict):
        scalars = {
            k: v for k, v in table.items()
            if np.isscalar(v) or v is None
        }
        return pd.DataFrame({"value": pd.Series(scalars)})
    raise TypeError(f"Cannot render {type(table)} as a table")
