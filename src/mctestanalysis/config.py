"""
Configuration defaults for test analysis.

Values are kept in a nested dictionary. User settings (from a JSON file or
command line flags) are merged over the defaults group by group.
"""

import copy
import json
from typing import Any

from loguru import logger

IRT_MODELS = ("rasch", "2pl", "3pl")
IRT_METHODS = ("jml", "bayesian")

DEFAULT_CONFIG: dict[str, Any] = {
    "analysis": {
        "group_fraction": 0.27,
        "alpha_confidence": 0.95,
    },
    "review": {
        "min_difficulty": 0.2,
        "max_difficulty": 0.9,
        "min_discrimination": 0.2,
    },
    "irt": {
        "models": list(IRT_MODELS),
        "method": "jml",
        "max_iter": 50,
        "tolerance": 1e-3,
        "n_samples": 1000,
        "tune": 1000,
        "chains": 2,
        "cores": 1,
        "target_accept": 0.9,
        "seed": 42,
    },
    "fit": {
        "infit_threshold": 1.3,
        "outfit_threshold": 1.5,
        "min_point_biserial": 0.2,
    },
    "report": {
        "title": "MC Test Analysis Report",
        "decimals": 3,
        "include_plots": True,
    },
}


def get_default_config() -> dict[str, Any]:
    """Return a deep copy of the default configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(user_config: dict[str, Any] | None) -> dict[str, Any]:
    """
    Merge user configuration with defaults.

    User values override defaults key by key inside each group. Unknown
    groups are kept as given.

    Args:
        user_config (dict[str, Any] | None): Partial configuration

    Returns:
        dict[str, Any]: Complete configuration
    """
    result = get_default_config()
    if not user_config:
        return result

    for group, values in user_config.items():
        if isinstance(values, dict) and isinstance(result.get(group), dict):
            result[group].update(values)
        else:
            result[group] = copy.deepcopy(values)

    return result


def load_config(file_path: str) -> dict[str, Any]:
    """
    Args:
        file_path (str): Path to a JSON configuration file

    Returns:
        dict[str, Any]: Configuration merged over the defaults
    """
    try:
        with open(file_path, "r") as f:
            user_config = json.load(f)
    except (FileNotFoundError, IOError) as e:
        logger.error(f"Error loading configuration from {file_path}: {e}")
        raise
    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {file_path}: {e}")
        raise

    if not isinstance(user_config, dict):
        raise ValueError(f"Configuration must be a JSON object, got {type(user_config)}")

    config = merge_config(user_config)
    for issue in validate_config(config):
        logger.warning(issue["message"])
    return config


def validate_config(config: dict[str, Any]) -> list[dict[str, str]]:
    """
    Validate configuration and return list of issues.

    Returns:
        list[dict[str, str]]: Dicts with 'type' (error/warning) and 'message'.
    """
    issues = []

    fraction = config["analysis"]["group_fraction"]
    if not 0 < fraction <= 0.5:
        issues.append({
            "type": "error",
            "message": f"group_fraction must be in (0, 0.5], got {fraction}",
        })

    confidence = config["analysis"]["alpha_confidence"]
    if not 0 < confidence < 1:
        issues.append({
            "type": "error",
            "message": f"alpha_confidence must be in (0, 1), got {confidence}",
        })

    review = config["review"]
    if review["min_difficulty"] >= review["max_difficulty"]:
        issues.append({
            "type": "error",
            "message": (
                f"min_difficulty ({review['min_difficulty']}) must be below "
                f"max_difficulty ({review['max_difficulty']})"
            ),
        })

    irt = config["irt"]
    unknown = [m for m in irt["models"] if m not in IRT_MODELS]
    if unknown:
        issues.append({
            "type": "error",
            "message": f"Unknown IRT models {unknown}, expected any of {list(IRT_MODELS)}",
        })
    if irt["method"] not in IRT_METHODS:
        issues.append({
            "type": "error",
            "message": f"Unknown IRT method '{irt['method']}', expected one of {list(IRT_METHODS)}",
        })
    if irt["method"] == "bayesian" and irt["chains"] < 2:
        issues.append({
            "type": "warning",
            "message": "At least two chains are needed for R-hat diagnostics",
        })

    return issues
