"""
IRT model implementations for test analysis.

This module provides functions for fitting Rasch, 2PL and 3PL Item Response
Theory models to a 0/1 score matrix, using both joint maximum likelihood
and Bayesian estimation with PyMC.

Response matrices passed to the estimation functions have shape
[n_items, n_participants], except for :func:`fit_pymc`, which takes
[n_participants, n_items] like the observed data it models.
"""

import pickle
import time
from dataclasses import dataclass
from typing import Any, Iterable

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm
from loguru import logger
from scipy import stats
from scipy.optimize import minimize, minimize_scalar

MODEL_ORDER = ("rasch", "2pl", "3pl")

ABILITY_BOUNDS = (-4.0, 4.0)
DIFFICULTY_BOUNDS = (-6.0, 6.0)
DISCRIMINATION_BOUNDS = (0.1, 4.0)
GUESSING_BOUNDS = (0.0, 0.35)
# Log-normal penalty on discriminations, centred on one
DISCRIMINATION_LOG_SD = 0.5


@dataclass
class IRTFit:
    """
    Result of fitting one IRT model.

    Attributes:
        model (str): 'rasch', '2pl' or '3pl'
        coefficients (pd.DataFrame): difficulty, discrimination and guessing per question
        abilities (pd.Series): Ability estimate per student, NaN where none exists
        log_likelihood (float): Log-likelihood of the calibration data
        n_parameters (int): Number of estimated item parameters
        n_observations (int): Number of students used for calibration
        n_iterations (int): Iterations (JML) or posterior draws per chain (Bayesian)
        converged (bool): Whether the estimation converged without issues
        method (str): 'jml' or 'bayesian'
    """

    model: str
    coefficients: pd.DataFrame
    abilities: pd.Series
    log_likelihood: float
    n_parameters: int
    n_observations: int
    n_iterations: int
    converged: bool
    method: str = "jml"

    @property
    def aic(self) -> float:
        return 2 * self.n_parameters - 2 * self.log_likelihood

    @property
    def bic(self) -> float:
        return self.n_parameters * np.log(self.n_observations) - 2 * self.log_likelihood


def item_probability(
    theta: np.ndarray,
    discrimination: np.ndarray | float,
    difficulty: np.ndarray | float,
    guessing: np.ndarray | float = 0.0,
) -> np.ndarray:
    """Three-parameter logistic response function; broadcasts over its arguments."""
    return guessing + (1 - guessing) / (1 + np.exp(-discrimination * (theta - difficulty)))


def log_likelihood(
    response_matrix: np.ndarray,
    abilities: np.ndarray,
    difficulties: np.ndarray,
    discriminations: np.ndarray,
    guessing: np.ndarray,
) -> float:
    """
    Args:
        response_matrix (np.ndarray): Binary response matrix with shape [n_items, n_participants].
        abilities (np.ndarray): Ability parameters.
        difficulties (np.ndarray): Item difficulty parameters.
        discriminations (np.ndarray): Item discrimination parameters.
        guessing (np.ndarray): Item lower asymptotes.

    Returns:
        float: Bernoulli log-likelihood of the responses
    """
    probs = item_probability(
        abilities[None, :],
        discriminations[:, None],
        difficulties[:, None],
        guessing[:, None],
    )
    probs = np.clip(probs, 1e-9, 1 - 1e-9)
    return float(
        np.sum(response_matrix * np.log(probs) + (1 - response_matrix) * np.log(1 - probs))
    )


def _fisher_step(
    response_matrix: np.ndarray,
    theta: np.ndarray,
    difficulties: np.ndarray,
    discriminations: np.ndarray,
    guessing: np.ndarray,
    prior_sd: float | None = None,
) -> np.ndarray:
    a = discriminations[:, None]
    c = guessing[:, None]
    probs = np.clip(item_probability(theta[None, :], a, difficulties[:, None], c), 1e-9, 1 - 1e-9)
    logistic = (probs - c) / (1 - c)

    gradient = np.sum(a * (response_matrix - probs) * logistic / probs, axis=0)
    information = np.sum(a**2 * logistic**2 * (1 - probs) / probs, axis=0)
    if prior_sd is not None:
        gradient = gradient - theta / prior_sd**2
        information = information + 1 / prior_sd**2

    step = np.divide(gradient, information, out=np.zeros_like(gradient), where=information > 0)
    return np.clip(theta + np.clip(step, -1.0, 1.0), *ABILITY_BOUNDS)


def _score_abilities(
    response_matrix: np.ndarray,
    theta: np.ndarray,
    difficulties: np.ndarray,
    discriminations: np.ndarray,
    guessing: np.ndarray,
    max_iter: int,
    tolerance: float,
    prior_sd: float | None = None,
) -> np.ndarray:
    """
    Fisher scoring of all abilities until the largest change drops below tolerance.

    With ``prior_sd`` the abilities get a normal prior and the result is the
    posterior mode instead of the maximum likelihood estimate.
    """
    for _ in range(max_iter):
        old_theta = theta
        theta = _fisher_step(
            response_matrix, theta, difficulties, discriminations, guessing, prior_sd
        )
        if np.max(np.abs(theta - old_theta)) < tolerance:
            break
    return theta


def ability_mle(
    response_matrix: np.ndarray,
    difficulties: np.ndarray,
    discriminations: np.ndarray,
    guessing: np.ndarray | None = None,
    no_estimate: float = np.nan,
    max_iter: int = 50,
    tolerance: float = 1e-3,
) -> np.ndarray:
    """
    Estimate ability parameters using maximum likelihood estimation.

    Args:
        response_matrix (np.ndarray): Binary response matrix with shape [n_items, n_participants].
        difficulties (np.ndarray): Item difficulty parameters.
        discriminations (np.ndarray): Item discrimination parameters.
        guessing (np.ndarray | None): Item lower asymptotes (default: zeros).
        no_estimate (float, optional): Value for participants with all-right or all-wrong
            responses (default: np.nan).
        max_iter (int): Maximum number of Fisher scoring iterations.
        tolerance (float): Convergence threshold on the largest ability change.

    Returns:
        np.ndarray: Estimated ability parameters for each participant.
    """
    if guessing is None:
        guessing = np.zeros_like(difficulties)

    valid = ~np.isnan(difficulties)
    responses = response_matrix[valid]
    b, a, c = difficulties[valid], discriminations[valid], guessing[valid]

    raw = responses.sum(axis=0)
    extreme = (raw == 0) | (raw == responses.shape[0])

    theta = _score_abilities(
        responses, np.zeros(response_matrix.shape[1]), b, a, c, max_iter, tolerance
    )
    theta[extreme] = no_estimate
    return theta


def _fit_item(
    responses: np.ndarray,
    theta: np.ndarray,
    model: str,
    start: tuple[float, float, float],
) -> tuple[float, float, float]:
    """Maximise one item's likelihood given abilities; returns (a, b, c)."""

    def neg_log_likelihood(a: float, b: float, c: float) -> float:
        probs = np.clip(item_probability(theta, a, b, c), 1e-9, 1 - 1e-9)
        nll = -np.sum(responses * np.log(probs) + (1 - responses) * np.log(1 - probs))
        if model == "rasch":
            return nll
        return nll + 0.5 * (np.log(a) / DISCRIMINATION_LOG_SD) ** 2

    a0, b0, c0 = start
    if model == "rasch":
        result = minimize_scalar(
            lambda b: neg_log_likelihood(1.0, b, 0.0),
            bounds=DIFFICULTY_BOUNDS,
            method="bounded",
        )
        return 1.0, float(result.x), 0.0

    if model == "2pl":
        result = minimize(
            lambda p: neg_log_likelihood(p[0], p[1], 0.0),
            x0=[a0, b0],
            bounds=[DISCRIMINATION_BOUNDS, DIFFICULTY_BOUNDS],
            method="L-BFGS-B",
        )
        return float(result.x[0]), float(result.x[1]), 0.0

    result = minimize(
        lambda p: neg_log_likelihood(*p),
        x0=[a0, b0, c0],
        bounds=[DISCRIMINATION_BOUNDS, DIFFICULTY_BOUNDS, GUESSING_BOUNDS],
        method="L-BFGS-B",
    )
    return tuple(float(v) for v in result.x)


def _calibration_masks(response_matrix: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """
    Items that vary, and participants that are neither all right nor all wrong on them.

    Dropping participants can make further items constant, so both masks
    are pruned until neither changes.
    """
    item_mask = np.ones(response_matrix.shape[0], dtype=bool)
    person_mask = np.ones(response_matrix.shape[1], dtype=bool)
    while person_mask.any():
        p_values = response_matrix[:, person_mask].mean(axis=1)
        new_items = item_mask & (p_values > 0) & (p_values < 1)
        raw = response_matrix[new_items].sum(axis=0)
        new_persons = person_mask & (raw > 0) & (raw < new_items.sum())
        if np.array_equal(new_items, item_mask) and np.array_equal(new_persons, person_mask):
            break
        item_mask, person_mask = new_items, new_persons
    return item_mask, person_mask


def fit_jml(
    response_matrix: np.ndarray,
    model: str = "2pl",
    max_iter: int = 50,
    tolerance: float = 1e-3,
) -> dict[str, Any]:
    """
    Fit an IRT model by joint maximum likelihood.

    Abilities and item parameters are updated in turn. Abilities are Fisher
    scored to convergence, then every item's likelihood is optimised within
    bounds. Abilities are centred (Rasch) or standardised (2PL, 3PL) after
    each pass to fix the scale.

    For 2PL and 3PL the joint likelihood has no finite maximum in general,
    so abilities get a standard normal prior and discriminations a
    log-normal penalty centred on one. A discrimination stuck at its upper
    bound marks the fit as not converged.

    Items answered all right or all wrong get NaN parameters. Participants
    with all-right or all-wrong patterns are left out of calibration.

    Args:
        response_matrix (np.ndarray): Binary response matrix with shape [n_items, n_participants].
        model (str): 'rasch', '2pl' or '3pl'
        max_iter (int): Maximum number of iterations
        tolerance (float): Convergence threshold on the largest parameter change

    Returns:
        dict[str, Any]: dictionary containing:
            - 'difficulties', 'discriminations', 'guessing': Item parameters.
            - 'abilities': Ability estimates for every participant.
            - 'log_likelihood': Log-likelihood of the calibration data.
            - 'n_parameters', 'n_observations': For information criteria.
            - 'n_iterations', 'converged': Convergence information.
    """
    if model not in MODEL_ORDER:
        raise ValueError(f"Unknown IRT model '{model}', expected one of {list(MODEL_ORDER)}")

    logger.info(f"Starting {model.upper()} model fitting with JML...")
    start_time = time.time()

    n_items, n_participants = response_matrix.shape
    item_mask, person_mask = _calibration_masks(response_matrix)
    responses = response_matrix[item_mask][:, person_mask].astype(float)
    n_used_items, n_used_persons = responses.shape

    if n_used_items < 2 or n_used_persons < 2:
        raise ValueError(
            f"Not enough informative data to fit {model}: {n_used_items} varying items, "
            f"{n_used_persons} participants with mixed responses"
        )
    if n_used_items < n_items:
        logger.warning(f"{n_items - n_used_items} items answered all right or all wrong were excluded")
    if n_used_persons < n_participants:
        logger.info(
            f"{n_participants - n_used_persons} participants with all-right or all-wrong "
            "responses were excluded from calibration"
        )

    p_items = responses.mean(axis=1)
    p_persons = responses.mean(axis=0)
    difficulties = np.log((1 - p_items) / p_items)
    discriminations = np.ones(n_used_items)
    guessing = np.full(n_used_items, 0.1 if model == "3pl" else 0.0)
    abilities = np.log(p_persons / (1 - p_persons))

    converged = False
    iteration = 0
    for iteration in range(1, max_iter + 1):
        old_difficulties = difficulties.copy()
        old_discriminations = discriminations.copy()
        old_guessing = guessing.copy()
        old_abilities = abilities.copy()

        abilities = _score_abilities(
            responses,
            abilities,
            difficulties,
            discriminations,
            guessing,
            max_iter=20,
            tolerance=tolerance,
            prior_sd=None if model == "rasch" else 1.0,
        )
        abilities = abilities - abilities.mean()
        if model != "rasch" and abilities.std() > 0:
            abilities = abilities / abilities.std()

        for i in range(n_used_items):
            discriminations[i], difficulties[i], guessing[i] = _fit_item(
                responses[i],
                abilities,
                model,
                (discriminations[i], difficulties[i], guessing[i]),
            )

        max_diff = max(
            np.max(np.abs(difficulties - old_difficulties)),
            np.max(np.abs(discriminations - old_discriminations)),
            np.max(np.abs(guessing - old_guessing)),
            np.max(np.abs(abilities - old_abilities)),
        )
        logger.debug(f"Iteration {iteration}: max parameter change = {max_diff:.6f}")

        if max_diff < tolerance:
            converged = True
            logger.info(f"Converged after {iteration} iterations")
            break
    else:
        logger.warning(f"{model.upper()} fit did not converge after {max_iter} iterations")

    at_bound = discriminations >= DISCRIMINATION_BOUNDS[1] - 1e-6
    if model != "rasch" and at_bound.any():
        logger.warning(
            f"{int(at_bound.sum())} {model.upper()} discriminations reached the upper bound "
            f"{DISCRIMINATION_BOUNDS[1]}"
        )
        converged = False

    ll = log_likelihood(responses, abilities, difficulties, discriminations, guessing)

    def expand(values: np.ndarray) -> np.ndarray:
        full = np.full(n_items, np.nan)
        full[item_mask] = values
        return full

    all_abilities = np.full(n_participants, np.nan)
    all_abilities[person_mask] = abilities

    n_free = {"rasch": 1, "2pl": 2, "3pl": 3}[model]

    logger.info(
        f"{model.upper()} model fitting completed in {time.time() - start_time:.2f} seconds"
    )

    return {
        "difficulties": expand(difficulties),
        "discriminations": expand(discriminations),
        "guessing": expand(guessing),
        "abilities": all_abilities,
        "log_likelihood": ll,
        "n_parameters": n_free * n_used_items,
        "n_observations": n_used_persons,
        "n_iterations": iteration,
        "converged": converged,
    }


def fit_pymc(
    response_matrix: np.ndarray,
    model: str = "2pl",
    n_samples: int = 1000,
    tune: int = 1000,
    chains: int = 2,
    target_accept: float = 0.9,
    cores: int = 1,
    seed: int = 42,
) -> Any:
    """
    Fit a Rasch, 2PL or 3PL IRT model using PyMC.

    Args:
        response_matrix (np.ndarray): Binary response matrix with shape [n_participants, n_items].
        model (str): 'rasch', '2pl' or '3pl'
        n_samples (int, optional): Number of samples to draw (default: 1000).
        tune (int, optional): Number of tuning samples (default: 1000).
        chains (int, optional): Number of chains to run (default: 2).
        target_accept (float, optional): Target acceptance rate (default: 0.9).
        cores (int, optional): Number of cores to use (default: 1).
        seed (int, optional): Random seed for sampling (default: 42).

    Returns:
        Any: ArviZ InferenceData containing the posterior samples.
    """
    if model not in MODEL_ORDER:
        raise ValueError(f"Unknown IRT model '{model}', expected one of {list(MODEL_ORDER)}")

    logger.info(f"Starting PyMC {model.upper()} model fitting with {n_samples} samples...")
    start_time = time.time()

    n_participants, n_items = response_matrix.shape
    logger.info(f"Data shape: {n_participants} participants, {n_items} items")

    with pm.Model():
        abilities = pm.Normal("abilities", mu=0, sigma=1, shape=n_participants)
        difficulties = pm.Normal("difficulties", mu=0, sigma=1.5, shape=n_items)

        if model == "rasch":
            a_expanded = 1.0
        else:
            # TruncatedNormal keeps discriminations positive
            discriminations = pm.TruncatedNormal(
                "discriminations", mu=1.0, sigma=0.5, lower=0.25, upper=4.0, shape=n_items
            )
            a_expanded = discriminations[None, :]

        logits = a_expanded * (abilities[:, None] - difficulties[None, :])

        if model == "3pl":
            guessing = pm.Beta("guessing", alpha=2.0, beta=10.0, shape=n_items)
            probs = guessing[None, :] + (1 - guessing[None, :]) * pm.math.sigmoid(logits)
            pm.Bernoulli("responses", p=probs, observed=response_matrix)
        else:
            pm.Bernoulli("responses", logit_p=logits, observed=response_matrix)

        logger.info("Starting MCMC sampling...")
        trace = pm.sample(
            n_samples,
            tune=tune,
            chains=chains,
            target_accept=target_accept,
            cores=cores,
            random_seed=seed,
            return_inferencedata=True,
        )

    logger.info(
        f"PyMC {model.upper()} model fitting completed in {time.time() - start_time:.2f} seconds"
    )
    return trace


def check_model_diagnostics(trace: Any) -> dict[str, Any]:
    """
    Convergence diagnostics for PyMC traces.

    Args:
        trace (Any): ArviZ InferenceData to diagnose.

    Returns:
        dict[str, Any]: dictionary containing:
            - 'max_r_hat': Largest Gelman-Rubin statistic.
            - 'min_ess': Smallest bulk effective sample size.
            - 'divergences': Number of divergent transitions.
            - 'has_issues': Whether any diagnostic is out of range.
    """
    logger.info("Checking model diagnostics...")

    summary = az.summary(trace)
    max_r_hat = float(summary["r_hat"].max())
    min_ess = float(summary["ess_bulk"].min())
    divergences = (
        int(trace.sample_stats["diverging"].sum())
        if hasattr(trace, "sample_stats") and "diverging" in trace.sample_stats
        else 0
    )

    logger.info(f"Maximum R-hat: {max_r_hat:.4f}")
    logger.info(f"Minimum ESS: {min_ess:.1f}")
    logger.info(f"Number of divergences: {divergences}")

    has_issues = (max_r_hat > 1.1) or (min_ess < 400) or (divergences > 0)

    if has_issues:
        logger.warning("Potential convergence issues detected!")
        if max_r_hat > 1.1:
            logger.warning("R-hat values > 1.1 indicate lack of convergence")
        if min_ess < 400:
            logger.warning("Low effective sample size could indicate inefficient sampling")
        if divergences > 0:
            logger.warning("Divergences indicate problems with the model geometry")
    else:
        logger.info("No major convergence issues detected")

    return {
        "max_r_hat": max_r_hat,
        "min_ess": min_ess,
        "divergences": divergences,
        "has_issues": has_issues,
    }


def extract_parameters(trace: Any) -> dict[str, np.ndarray]:
    """
    Extract posterior means as point estimates from a PyMC trace.

    Discriminations default to one and guessing to zero when the model
    does not estimate them.

    Returns:
        dict[str, np.ndarray]: 'abilities', 'difficulties', 'discriminations' and 'guessing'
    """
    posterior = trace.posterior
    difficulties = posterior["difficulties"].mean(dim=["chain", "draw"]).values

    def mean_or(name: str, default: float) -> np.ndarray:
        if name in posterior:
            return posterior[name].mean(dim=["chain", "draw"]).values
        return np.full_like(difficulties, default, dtype=float)

    return {
        "abilities": posterior["abilities"].mean(dim=["chain", "draw"]).values,
        "difficulties": difficulties,
        "discriminations": mean_or("discriminations", 1.0),
        "guessing": mean_or("guessing", 0.0),
    }


def extract_parameter_uncertainties(
    trace: Any, hdi_prob: float = 0.95
) -> dict[str, dict[str, np.ndarray]]:
    """
    Extract uncertainty estimates for parameters from a PyMC trace.

    Args:
        trace (Any): ArviZ InferenceData.
        hdi_prob (float, optional): Probability mass for highest density interval (default: 0.95).

    Returns:
        dict[str, dict[str, np.ndarray]]: For every sampled parameter group,
            'std', 'hdi_lower' and 'hdi_upper'.
    """
    uncertainties = {}
    for name in ("abilities", "difficulties", "discriminations", "guessing"):
        if name not in trace.posterior:
            continue
        hdi = az.hdi(trace, var_names=[name], hdi_prob=hdi_prob)[name]
        uncertainties[name] = {
            "std": trace.posterior[name].std(dim=["chain", "draw"]).values,
            "hdi_lower": hdi.sel(hdi="lower").values,
            "hdi_upper": hdi.sel(hdi="higher").values,
        }
    return uncertainties


def save_trace(trace: Any, file_path: str) -> None:
    """
    Args:
        trace (Any): PyMC trace object to save
        file_path (str): Path where to save the trace
    """
    try:
        with open(file_path, "wb") as f:
            pickle.dump(trace, f)
        logger.info(f"Successfully saved trace to {file_path}")
    except (IOError, pickle.PickleError) as e:
        logger.error(f"Error saving trace to {file_path}: {e}")
        raise


def load_trace(file_path: str) -> Any:
    """
    Args:
        file_path (str): Path to the pickle file containing the trace

    Returns:
        Any: PyMC trace object
    """
    try:
        with open(file_path, "rb") as f:
            trace = pickle.load(f)
        logger.info(f"Successfully loaded trace from {file_path}")
        return trace
    except (FileNotFoundError, IOError) as e:
        logger.error(f"Error loading trace from {file_path}: {e}")
        raise
    except pickle.PickleError as e:
        logger.error(f"Error unpickling trace from {file_path}: {e}")
        raise


def _bayesian_fit(
    response_matrix: np.ndarray, model: str, traces: dict[str, Any] | None, **sampler: Any
) -> dict[str, Any]:
    trace = fit_pymc(response_matrix.T, model=model, **sampler)
    if traces is not None:
        traces[model] = trace
    diagnostics = check_model_diagnostics(trace)
    params = extract_parameters(trace)

    n_free = {"rasch": 1, "2pl": 2, "3pl": 3}[model]
    return {
        **params,
        "log_likelihood": log_likelihood(
            response_matrix,
            params["abilities"],
            params["difficulties"],
            params["discriminations"],
            params["guessing"],
        ),
        "n_parameters": n_free * response_matrix.shape[0],
        "n_observations": response_matrix.shape[1],
        "n_iterations": sampler.get("n_samples", 1000),
        "converged": not diagnostics["has_issues"],
    }


def fit_irt_models(
    item_score: pd.DataFrame,
    models: Iterable[str] = MODEL_ORDER,
    method: str = "jml",
    max_iter: int = 50,
    tolerance: float = 1e-3,
    traces: dict[str, Any] | None = None,
    **sampler: Any,
) -> dict[str, IRTFit]:
    """
    Fit several IRT models to a score matrix.

    Args:
        item_score (pd.DataFrame): 0/1 score matrix, students by questions
        models (Iterable[str]): Any of 'rasch', '2pl', '3pl'
        method (str): 'jml' for joint maximum likelihood or 'bayesian' for PyMC
        max_iter (int): Maximum JML iterations
        tolerance (float): JML convergence threshold
        traces (dict[str, Any] | None): If given, PyMC traces are stored here by model name
        **sampler: n_samples, tune, chains, cores, target_accept and seed for PyMC

    Returns:
        dict[str, IRTFit]: Fits keyed by model name, in Rasch, 2PL, 3PL order
    """
    models = [m for m in MODEL_ORDER if m in set(models)]
    if not models:
        raise ValueError(f"No known IRT model requested, expected any of {list(MODEL_ORDER)}")
    if method not in ("jml", "bayesian"):
        raise ValueError(f"Unknown IRT method '{method}', expected 'jml' or 'bayesian'")

    response_matrix = item_score.to_numpy(dtype=float).T

    fits = {}
    for model in models:
        if method == "jml":
            result = fit_jml(response_matrix, model=model, max_iter=max_iter, tolerance=tolerance)
        else:
            result = _bayesian_fit(response_matrix, model, traces, **sampler)

        coefficients = pd.DataFrame(
            {
                "difficulty": result["difficulties"],
                "discrimination": result["discriminations"],
                "guessing": result["guessing"],
            },
            index=item_score.columns,
        )
        coefficients.index.name = "Question"

        fits[model] = IRTFit(
            model=model,
            coefficients=coefficients,
            abilities=pd.Series(result["abilities"], index=item_score.index, name="ability"),
            log_likelihood=result["log_likelihood"],
            n_parameters=result["n_parameters"],
            n_observations=result["n_observations"],
            n_iterations=result["n_iterations"],
            converged=result["converged"],
            method=method,
        )
    return fits


def compare_models(fits: dict[str, IRTFit]) -> pd.DataFrame:
    """
    Compare fitted models by information criteria and likelihood ratio tests.

    Each model is tested against the previous, more constrained one
    (Rasch < 2PL < 3PL) when both were calibrated on the same participants.

    Returns:
        pd.DataFrame: log_likelihood, n_parameters, aic, bic, lr_statistic, df and p_value per model
    """
    rows = []
    previous = None
    for name in MODEL_ORDER:
        if name not in fits:
            continue
        fit = fits[name]
        row = {
            "model": name,
            "log_likelihood": fit.log_likelihood,
            "n_parameters": fit.n_parameters,
            "aic": fit.aic,
            "bic": fit.bic,
            "lr_statistic": np.nan,
            "df": np.nan,
            "p_value": np.nan,
        }
        if previous is not None and previous.n_observations == fit.n_observations:
            lr = max(0.0, 2 * (fit.log_likelihood - previous.log_likelihood))
            df = fit.n_parameters - previous.n_parameters
            row.update(lr_statistic=lr, df=df, p_value=stats.chi2.sf(lr, df))
        rows.append(row)
        previous = fit
    return pd.DataFrame(rows).set_index("model")
