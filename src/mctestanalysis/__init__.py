"""
MC Test Analysis
----------------

A package for analyzing multiple-choice tests with classical test theory
and Item Response Theory.

This package provides tools for:
- Loading answer keys and student response tables
- Scoring responses against the answer key
- Computing item difficulty, discrimination and reliability statistics
- Fitting Rasch, 2PL and 3PL IRT models
- Generating HTML reports and an interactive browser UI
"""

from loguru import logger

from mctestanalysis.data import load_all_data, load_answer_key, load_test_data
from mctestanalysis.session import MCTestData

logger.disable("mctestanalysis")

__all__ = ["MCTestData", "load_all_data", "load_answer_key", "load_test_data"]

__version__ = "0.1.0"
