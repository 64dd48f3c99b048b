"""
Data loading utilities for test analysis.

This module provides functions to load the answer key and the student
response table from CSV or TSV files and join them into an MCTestData
session object.

The answer key holds one row per question with the columns Question,
Answer, Title and Concept, in that order. The test data holds one row per
student and one column per question, in answer key order, optionally
preceded by a student identifier column.
"""

import os
from typing import Any, IO

import pandas as pd
from loguru import logger

from mctestanalysis.session import MCTestData, as_frame

REQUIRED_COLUMNS = ["Question", "Answer"]
OPTIONAL_COLUMNS = ["Title", "Concept"]
TAB_EXTENSIONS = (".tsv", ".tab", ".txt")


def read_table(source: str | IO, **kwargs: Any) -> pd.DataFrame:
    """
    Args:
        source (str | IO): Path or file-like object holding CSV or TSV data
        **kwargs: Arguments passed to ``pd.read_csv``

    Returns:
        pd.DataFrame: The parsed table
    """
    name = source if isinstance(source, str) else getattr(source, "name", "")
    if "sep" not in kwargs and str(name).lower().endswith(TAB_EXTENSIONS):
        kwargs["sep"] = "\t"

    try:
        return pd.read_csv(source, **kwargs)
    except (FileNotFoundError, IOError) as e:
        logger.error(f"Error loading data from {name}: {e}")
        raise
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"Error parsing data from {name}: {e}")
        raise


def check_questions_and_answers(test: pd.DataFrame, answer_key: pd.DataFrame) -> None:
    """
    Raises:
        ValueError: If the answer key and the test disagree on the number of questions
    """
    n_answers = len(answer_key)
    n_questions = test.shape[1]
    if n_answers != n_questions:
        raise ValueError(
            f"Question-Answer mismatch: Answer key has {n_answers} items, "
            f"but Test contains {n_questions}"
        )


def _attach(mctd: MCTestData, answer_key: pd.DataFrame | None, test: pd.DataFrame | None) -> None:
    """Validate the pair before touching the session, then store both."""
    if answer_key is not None and test is not None:
        check_questions_and_answers(test, answer_key)
        test = test.set_axis(list(answer_key["Question"]), axis="columns")

    mctd.answer_key = answer_key
    mctd.test = test
    mctd.test_complete = None if test is None else test.dropna(how="any")
    mctd.clear_derived()


def load_answer_key(
    mctd: MCTestData | None = None,
    answer_file: str | IO | None = None,
    **kwargs: Any,
) -> MCTestData:
    """
    Read the answer key and apply basic preprocessing.

    Args:
        mctd (MCTestData | None): Existing session object, a new one is created if None
        answer_file (str | IO): Path to the answer key file
        **kwargs: Arguments passed to ``pd.read_csv``

    Returns:
        MCTestData: Session object holding the answer key
    """
    if mctd is None:
        mctd = MCTestData()
    if answer_file is None:
        raise ValueError("answer_file is required")

    kwargs.setdefault("dtype", str)
    x = read_table(answer_file, **kwargs)

    n_cols = x.shape[1]
    if n_cols > 4:
        logger.warning("Input data contained more than four columns, using only first four.")
        x = x.iloc[:, :4].copy()
    elif n_cols == 3:
        logger.warning(
            "Input data contained 3 columns, assumed to be Question, Answer, Title. "
            "Default value used for Concept."
        )
        x["Concept"] = "General"
    elif n_cols == 2:
        logger.warning(
            "Input data contained 2 columns, assumed to be Question, Answer. "
            "Default values used for Title and Concept."
        )
        x["Title"] = "Question " + x.iloc[:, 0].astype(str)
        x["Concept"] = "General"
    elif n_cols < 2:
        raise ValueError(
            f"Answer key must contain at least Question and Answer columns, found {n_cols}"
        )

    x.columns = REQUIRED_COLUMNS + OPTIONAL_COLUMNS
    x["Concept"] = x["Concept"].fillna("Missing")
    x["Question"] = x["Question"].astype(str).str.strip()
    x["Answer"] = x["Answer"].astype(str).str.strip()
    x = x.reset_index(drop=True)

    _attach(mctd, x, mctd.test)

    logger.info(f"Loaded answer key with {len(x)} questions")
    return mctd


def load_test_data(
    mctd: MCTestData | None = None,
    test_file: str | IO | None = None,
    has_student_id: bool = True,
    **kwargs: Any,
) -> MCTestData:
    """
    Read student responses and apply basic preprocessing.

    Args:
        mctd (MCTestData | None): Existing session object, a new one is created if None
        test_file (str | IO): Path to the test results file
        has_student_id (bool): Does the first column hold a student identifier?
        **kwargs: Arguments passed to ``pd.read_csv``

    Returns:
        MCTestData: Session object holding the test data
    """
    if mctd is None:
        mctd = MCTestData()
    if test_file is None:
        raise ValueError("test_file is required")

    kwargs.setdefault("dtype", str)
    x = read_table(test_file, **kwargs)

    if has_student_id:
        x = x.set_index(x.columns[0])
        if x.index.has_duplicates:
            logger.warning(
                f"Student identifiers are not unique: {x.index[x.index.duplicated()].unique().tolist()}"
            )

    _attach(mctd, mctd.answer_key, x)

    n_dropped = len(mctd.test) - len(mctd.test_complete)
    if n_dropped:
        logger.warning(f"{n_dropped} students with missing responses excluded from analysis")
    logger.info(f"Loaded test data with {len(x)} students and {x.shape[1]} questions")
    return mctd


def load_all_data(
    answer_file: str | IO | None = None,
    test_file: str | IO | None = None,
    has_student_id: bool = True,
    force_load: bool = False,
    config: dict[str, Any] | None = None,
    **kwargs: Any,
) -> MCTestData:
    """
    Read answer key and test data into a single session object.

    Args:
        answer_file (str | IO | None): Path to the answer key file
        test_file (str | IO | None): Path to the test results file
        has_student_id (bool): Does the first column of the test data hold a student identifier?
        force_load (bool): Compute the analysis tables right away (may be slow).
            By default every analysis computes the tables it needs on the fly.
        config (dict[str, Any] | None): Analysis configuration
        **kwargs: Arguments passed to ``pd.read_csv``

    Returns:
        MCTestData: Session object
    """
    mctd = MCTestData(config=config)
    if answer_file is not None:
        mctd = load_answer_key(mctd, answer_file, **kwargs)
    if test_file is not None:
        mctd = load_test_data(mctd, test_file, has_student_id, **kwargs)
    if mctd.is_ready and force_load:
        mctd.requires(
            "item_analysis",
            "alpha",
            "discrimination_index",
            "pbcc",
            "pbcc_modified",
            "irt_models",
        )
    return mctd


def save_tables(mctd: MCTestData, output_path: str, names: list[str]) -> list[str]:
    """
    Write derived tables to CSV files named after the table.

    Args:
        mctd (MCTestData): Session object
        output_path (str): Directory to write to, created if missing
        names (list[str]): Names of derived tables

    Returns:
        list[str]: Paths of the written files
    """
    os.makedirs(output_path, exist_ok=True)
    written = []
    for name in names:
        path = os.path.join(output_path, f"{name}.csv")
        try:
            as_frame(mctd[name]).to_csv(path)
        except (IOError, OSError) as e:
            logger.error(f"Error saving {name} to {path}: {e}")
            raise
        written.append(path)
        logger.info(f"Saved {name} to {path}")
    return written
