"""
Classical test theory statistics.

This module scores student responses against the answer key and computes
item and test level statistics from the resulting 0/1 score matrix, which
has one row per student and one column per question.
"""

from typing import Any

import numpy as np
import pandas as pd
from loguru import logger
from scipy import stats
from scipy.optimize import minimize_scalar


def score_items(test: pd.DataFrame, answer_key: pd.DataFrame) -> pd.DataFrame:
    """
    Args:
        test (pd.DataFrame): Responses with question columns named after ``answer_key.Question``
        answer_key (pd.DataFrame): Answer key with Question and Answer columns

    Returns:
        pd.DataFrame: 1 where the response matches the key, 0 otherwise
    """
    key = answer_key.set_index("Question")["Answer"].astype(str).str.strip()
    missing = [q for q in test.columns if q not in key.index]
    if missing:
        raise ValueError(f"Questions {missing} are not in the answer key")

    responses = test.apply(lambda col: col.astype(str).str.strip())
    matches = responses.to_numpy() == key.reindex(test.columns).to_numpy()[None, :]
    return pd.DataFrame(matches, index=test.index, columns=test.columns).astype(int)


def total_scores(item_score: pd.DataFrame) -> pd.Series:
    return item_score.sum(axis=1).rename("score")


def _corr(x: np.ndarray, y: np.ndarray) -> float:
    if np.std(x) == 0 or np.std(y) == 0:
        return np.nan
    return float(np.corrcoef(x, y)[0, 1])


def _group_positions(totals: np.ndarray, group_fraction: float) -> tuple[np.ndarray, np.ndarray]:
    """Positions of the lower and upper scoring groups."""
    if not 0 < group_fraction <= 0.5:
        raise ValueError(f"group_fraction must be in (0, 0.5], got {group_fraction}")
    n_group = max(1, int(round(len(totals) * group_fraction)))
    order = np.argsort(totals, kind="mergesort")
    return order[:n_group], order[-n_group:]


def discrimination_index(item_score: pd.DataFrame, group_fraction: float = 0.27) -> pd.Series:
    """
    Difference in proportion correct between the upper and lower scoring groups.

    Args:
        item_score (pd.DataFrame): 0/1 score matrix
        group_fraction (float): Share of students in each group (default: 0.27)

    Returns:
        pd.Series: Discrimination index per question
    """
    values = item_score.to_numpy(dtype=float)
    lower, upper = _group_positions(values.sum(axis=1), group_fraction)
    index = values[upper].mean(axis=0) - values[lower].mean(axis=0)
    return pd.Series(index, index=item_score.columns, name="discrimination_index")


def item_analysis(item_score: pd.DataFrame, group_fraction: float = 0.27) -> pd.DataFrame:
    """
    Per-item difficulty, discrimination and reliability statistics.

    Args:
        item_score (pd.DataFrame): 0/1 score matrix
        group_fraction (float): Share of students in the upper and lower groups

    Returns:
        pd.DataFrame: DataFrame indexed by question containing:
            - 'difficulty': Proportion of correct responses.
            - 'item_total': Correlation of the item with the total score.
            - 'item_total_without_item': Correlation with the total score excluding the item.
            - 'discrimination': Upper minus lower group proportion correct.
            - 'item_reliability': Item standard deviation times item_total.
            - 'item_reliability_without_item': Item standard deviation times item_total_without_item.
    """
    values = item_score.to_numpy(dtype=float)
    totals = values.sum(axis=1)

    rows = []
    for i in range(values.shape[1]):
        item = values[:, i]
        sd = np.std(item)
        r_total = _corr(item, totals)
        r_rest = _corr(item, totals - item)
        rows.append(
            {
                "difficulty": item.mean(),
                "item_total": r_total,
                "item_total_without_item": r_rest,
                "item_reliability": sd * r_total,
                "item_reliability_without_item": sd * r_rest,
            }
        )

    result = pd.DataFrame(rows, index=item_score.columns)
    result.insert(3, "discrimination", discrimination_index(item_score, group_fraction))
    result.index.name = "Question"
    return result


def _alpha(values: np.ndarray) -> float:
    k = values.shape[1]
    if k < 2:
        return np.nan
    total_var = values.sum(axis=1).var(ddof=1)
    if total_var == 0:
        return np.nan
    return k / (k - 1) * (1 - values.var(axis=0, ddof=1).sum() / total_var)


def cronbach_alpha(item_score: pd.DataFrame, confidence: float = 0.95) -> dict[str, Any]:
    """
    Cronbach's alpha with a Feldt confidence interval.

    Args:
        item_score (pd.DataFrame): 0/1 score matrix
        confidence (float): Coverage of the confidence interval (default: 0.95)

    Returns:
        dict[str, Any]: dictionary containing:
            - 'alpha': Raw alpha.
            - 'std_alpha': Alpha computed from the mean inter-item correlation.
            - 'ci_lower', 'ci_upper': Feldt confidence bounds.
            - 'confidence': Coverage of the interval.
            - 'n_items', 'n_students': Dimensions of the score matrix.
            - 'alpha_if_deleted': Series with alpha after dropping each item.
    """
    values = item_score.to_numpy(dtype=float)
    n_students, n_items = values.shape
    if n_items < 2:
        raise ValueError(f"Cronbach's alpha needs at least two items, got {n_items}")
    if n_students < 2:
        raise ValueError(f"Cronbach's alpha needs at least two students, got {n_students}")

    alpha = _alpha(values)

    varying = values[:, values.std(axis=0) > 0]
    if varying.shape[1] >= 2:
        corr = np.corrcoef(varying, rowvar=False)
        k = corr.shape[0]
        mean_r = (corr.sum() - k) / (k * (k - 1))
        std_alpha = k * mean_r / (1 + (k - 1) * mean_r)
    else:
        std_alpha = np.nan

    df1 = n_students - 1
    df2 = (n_students - 1) * (n_items - 1)
    tail = (1 - confidence) / 2
    ci_lower = 1 - (1 - alpha) * stats.f.ppf(1 - tail, df1, df2)
    ci_upper = 1 - (1 - alpha) * stats.f.ppf(tail, df1, df2)

    alpha_if_deleted = pd.Series(
        [_alpha(np.delete(values, i, axis=1)) for i in range(n_items)],
        index=item_score.columns,
        name="alpha_if_deleted",
    )

    return {
        "alpha": alpha,
        "std_alpha": std_alpha,
        "ci_lower": ci_lower,
        "ci_upper": ci_upper,
        "confidence": confidence,
        "n_items": n_items,
        "n_students": n_students,
        "alpha_if_deleted": alpha_if_deleted,
    }


def pbcc(item_score: pd.DataFrame) -> pd.Series:
    """Point-biserial correlation of each item with the total score."""
    totals = item_score.sum(axis=1).to_numpy(dtype=float)
    return _point_biserial(item_score, lambda item: totals).rename("pbcc")


def pbcc_modified(item_score: pd.DataFrame) -> pd.Series:
    """Point-biserial correlation of each item with the total score excluding that item."""
    totals = item_score.sum(axis=1).to_numpy(dtype=float)
    return _point_biserial(item_score, lambda item: totals - item).rename("pbcc_modified")


def _point_biserial(item_score: pd.DataFrame, criterion) -> pd.Series:
    result = {}
    for question in item_score.columns:
        item = item_score[question].to_numpy(dtype=float)
        other = criterion(item)
        if np.std(item) == 0 or np.std(other) == 0:
            result[question] = np.nan
            continue
        r, _ = stats.pointbiserialr(item, other)
        result[question] = r
    return pd.Series(result, dtype=float)


def _tetrachoric_pair(x: np.ndarray, y: np.ndarray) -> float:
    table = np.array(
        [
            [np.sum((x == 0) & (y == 0)), np.sum((x == 0) & (y == 1))],
            [np.sum((x == 1) & (y == 0)), np.sum((x == 1) & (y == 1))],
        ],
        dtype=float,
    )
    n = table.sum()
    tau_x = stats.norm.ppf(table[0].sum() / n)
    tau_y = stats.norm.ppf(table[:, 0].sum() / n)
    phi_x = stats.norm.cdf(tau_x)
    phi_y = stats.norm.cdf(tau_y)

    def neg_log_likelihood(rho: float) -> float:
        p00 = stats.multivariate_normal.cdf(
            [tau_x, tau_y], mean=[0.0, 0.0], cov=[[1.0, rho], [rho, 1.0]]
        )
        probs = np.array([[p00, phi_x - p00], [phi_y - p00, 1 - phi_x - phi_y + p00]])
        return -np.sum(table * np.log(np.clip(probs, 1e-12, None)))

    result = minimize_scalar(neg_log_likelihood, bounds=(-0.999, 0.999), method="bounded")
    return float(result.x)


def tetrachoric(item_score: pd.DataFrame) -> pd.DataFrame:
    """
    Matrix of tetrachoric correlations between items.

    Each correlation is the maximum likelihood estimate of a bivariate
    normal threshold model with thresholds fixed at the item marginals.
    Items answered all right or all wrong get NaN.

    Args:
        item_score (pd.DataFrame): 0/1 score matrix

    Returns:
        pd.DataFrame: Symmetric correlation matrix indexed by question on both axes
    """
    values = item_score.to_numpy(dtype=int)
    n_items = values.shape[1]
    constant = values.std(axis=0) == 0
    corr = np.full((n_items, n_items), np.nan)

    logger.info(f"Computing tetrachoric correlations for {n_items} items...")
    for i in range(n_items):
        if constant[i]:
            continue
        corr[i, i] = 1.0
        for j in range(i + 1, n_items):
            if constant[j]:
                continue
            corr[i, j] = corr[j, i] = _tetrachoric_pair(values[:, i], values[:, j])

    return pd.DataFrame(corr, index=item_score.columns, columns=item_score.columns)


def eigen_summary(corr: pd.DataFrame) -> pd.DataFrame:
    """
    Eigenvalues of a correlation matrix, for a scree check of unidimensionality.

    Items with undefined correlations are dropped first.
    """
    keep = ~corr.isna().all(axis=1)
    matrix = corr.loc[keep, keep].fillna(0.0).to_numpy()
    eigenvalues = np.sort(np.linalg.eigvalsh(matrix))[::-1]
    explained = eigenvalues / eigenvalues.sum()
    return pd.DataFrame(
        {
            "component": np.arange(1, len(eigenvalues) + 1),
            "eigenvalue": eigenvalues,
            "explained": explained,
            "cumulative": np.cumsum(explained),
        }
    )


def summarize_test_scores(scores: pd.Series) -> dict[str, float]:
    values = scores.to_numpy(dtype=float)
    q1, median, q3 = np.percentile(values, [25, 50, 75])
    return {
        "n_students": len(values),
        "mean": values.mean(),
        "sd": values.std(ddof=1) if len(values) > 1 else np.nan,
        "skewness": stats.skew(values) if len(values) > 2 else np.nan,
        "kurtosis": stats.kurtosis(values) if len(values) > 3 else np.nan,
        "min": values.min(),
        "q1": q1,
        "median": median,
        "q3": q3,
        "max": values.max(),
    }


def options_selected(test: pd.DataFrame, answer_key: pd.DataFrame) -> pd.DataFrame:
    """
    Count how often each option was chosen for each question.

    Returns:
        pd.DataFrame: Long table with columns Question, Title, Concept,
            option, count, pct and is_correct
    """
    key = answer_key.set_index("Question")
    rows = []
    for question in test.columns:
        responses = test[question].dropna().astype(str).str.strip()
        counts = responses.value_counts().sort_index()
        answer = key.loc[question, "Answer"]
        for option, count in counts.items():
            rows.append(
                {
                    "Question": question,
                    "Title": key.loc[question, "Title"],
                    "Concept": key.loc[question, "Concept"],
                    "option": option,
                    "count": int(count),
                    "pct": count / len(responses),
                    "is_correct": option == answer,
                }
            )
    return pd.DataFrame(
        rows,
        columns=["Question", "Title", "Concept", "option", "count", "pct", "is_correct"],
    )


def distractor_analysis(
    test: pd.DataFrame,
    answer_key: pd.DataFrame,
    scores: pd.Series,
    group_fraction: float = 0.27,
) -> pd.DataFrame:
    """
    Share of the upper and lower scoring groups choosing each option.

    A working distractor is chosen more often by the lower group, so its
    ``difference`` is negative; the correct option should be positive.

    Args:
        test (pd.DataFrame): Complete responses, rows aligned with ``scores``
        answer_key (pd.DataFrame): Answer key
        scores (pd.Series): Total score per student
        group_fraction (float): Share of students in each group

    Returns:
        pd.DataFrame: Columns Question, option, is_correct, upper, lower, difference
    """
    if len(test) != len(scores):
        raise ValueError(
            f"Responses have {len(test)} rows but scores have {len(scores)}"
        )
    lower, upper = _group_positions(scores.to_numpy(dtype=float), group_fraction)
    answers = answer_key.set_index("Question")["Answer"]

    rows = []
    for question in test.columns:
        responses = test[question].astype(str).str.strip().to_numpy()
        for option in sorted(set(responses)):
            p_upper = np.mean(responses[upper] == option)
            p_lower = np.mean(responses[lower] == option)
            rows.append(
                {
                    "Question": question,
                    "option": option,
                    "is_correct": option == answers[question],
                    "upper": p_upper,
                    "lower": p_lower,
                    "difference": p_upper - p_lower,
                }
            )
    return pd.DataFrame(rows)


def concept_summary(item_score: pd.DataFrame, answer_key: pd.DataFrame) -> pd.DataFrame:
    """Per concept: number of items, mean proportion correct and spread over students."""
    concepts = answer_key.set_index("Question")["Concept"].reindex(item_score.columns)
    student_pct = item_score.T.groupby(concepts.values).mean().T

    summary = pd.DataFrame(
        {
            "n_items": concepts.value_counts(),
            "questions": concepts.groupby(concepts.values).apply(
                lambda s: ", ".join(s.index)
            ),
            "mean_correct": student_pct.mean(),
            "sd_correct": student_pct.std(ddof=1),
        }
    )
    summary.index.name = "Concept"
    return summary


def item_review(
    item_analysis: pd.DataFrame,
    pbcc: pd.Series,
    thresholds: dict[str, float],
) -> pd.DataFrame:
    """
    Flag items worth a second look.

    Args:
        item_analysis (pd.DataFrame): Output of :func:`item_analysis`
        pbcc (pd.Series): Point-biserial correlations
        thresholds (dict[str, float]): 'min_difficulty', 'max_difficulty' and 'min_discrimination'

    Returns:
        pd.DataFrame: difficulty, pbcc, boolean flags and a recommendation per question
    """
    review = pd.DataFrame(
        {"difficulty": item_analysis["difficulty"], "pbcc": pbcc.reindex(item_analysis.index)}
    )
    review["too_hard"] = review["difficulty"] < thresholds["min_difficulty"]
    review["too_easy"] = review["difficulty"] > thresholds["max_difficulty"]
    review["low_discrimination"] = ~(review["pbcc"] >= thresholds["min_discrimination"])

    labels = {
        "too_hard": "too hard",
        "too_easy": "too easy",
        "low_discrimination": "low discrimination",
    }

    def recommend(row: pd.Series) -> str:
        reasons = [label for flag, label in labels.items() if row[flag]]
        return "Review: " + ", ".join(reasons) if reasons else "Keep"

    review["recommendation"] = review.apply(recommend, axis=1)
    return review
