import json

import pytest

from mctestanalysis.config import (
    DEFAULT_CONFIG,
    get_default_config,
    load_config,
    merge_config,
    validate_config,
)


def test_get_default_config_is_a_copy():
    config = get_default_config()
    config["irt"]["models"].append("4pl")

    assert DEFAULT_CONFIG["irt"]["models"] == ["rasch", "2pl", "3pl"]


def test_merge_config_keeps_other_values():
    config = merge_config({"irt": {"method": "bayesian"}, "extra": {"a": 1}})

    assert config["irt"]["method"] == "bayesian"
    assert config["irt"]["max_iter"] == 50
    assert config["analysis"]["group_fraction"] == 0.27
    assert config["extra"] == {"a": 1}
    assert merge_config(None) == get_default_config()


def test_load_config(tmp_path, log_messages):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"irt": {"method": "bayesian", "chains": 1}}))

    config = load_config(str(path))

    assert config["irt"]["chains"] == 1
    assert any("two chains" in m["message"] for m in log_messages)


def test_load_config_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.json"))

    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        load_config(str(broken))

    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]")
    with pytest.raises(ValueError, match="JSON object"):
        load_config(str(listing))


def test_validate_config_defaults_are_valid():
    assert validate_config(get_default_config()) == []


def test_validate_config_reports_errors():
    config = merge_config(
        {
            "analysis": {"group_fraction": 0.7, "alpha_confidence": 1.5},
            "review": {"min_difficulty": 0.9, "max_difficulty": 0.2},
            "irt": {"models": ["rasch", "4pl"], "method": "em"},
        }
    )

    issues = validate_config(config)

    assert [i["type"] for i in issues] == ["error"] * 5
    messages = " ".join(i["message"] for i in issues)
    assert "group_fraction" in messages
    assert "alpha_confidence" in messages
    assert "min_difficulty" in messages
    assert "4pl" in messages
    assert "em" in messages
