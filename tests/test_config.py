from pathlib import Path

import pytest

from gridsim.config import GameConfig, OvertimeMode, build_config, load_config
from gridsim.errors import ConfigurationError
from gridsim.state import Side

DEFAULT_YAML = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"


def test_default_yaml_matches_model_defaults():
    cfg = load_config(str(DEFAULT_YAML))
    assert cfg == GameConfig()


def test_yaml_overrides(tmp_path):
    p = tmp_path / "cfg.yaml"
    p.write_text(
        "seed: 7\n"
        "rules:\n"
        "  quarter_length: 600\n"
        "  overtime_mode: timed_period\n"
        "  overtime_receiver: away\n"
        "resolver:\n"
        "  momentum_affects_odds: true\n"
    )
    cfg = load_config(str(p))
    assert cfg.seed == 7
    assert cfg.rules.quarter_length == 600
    assert cfg.rules.overtime_mode is OvertimeMode.TIMED_PERIOD
    assert cfg.rules.overtime_receiver is Side.AWAY
    assert cfg.resolver.momentum_affects_odds
    assert cfg.rules.touchback_spot == 25


def test_empty_yaml_gives_defaults(tmp_path):
    p = tmp_path / "empty.yaml"
    p.write_text("")
    assert load_config(str(p)) == GameConfig()


@pytest.mark.parametrize("raw", [
    {"rules": {"quarter_length": -1}},
    {"rules": {"touchback_spot": 0}},
    {"rules": {"timeouts_per_half": 4}},
    {"rules": {"overtime_mode": "shootout"}},
    {"rules": {"overtime_periods": 0}},
    {"resolver": {"penalty_rate": 2.0}},
])
def test_bad_values_rejected(raw):
    with pytest.raises(ConfigurationError):
        build_config(raw)


def test_no_overtime_allows_zero_periods():
    cfg = build_config({"rules": {"overtime_mode": "none", "overtime_periods": 0}})
    assert cfg.rules.overtime_mode is OvertimeMode.NONE


def test_non_mapping_yaml_rejected(tmp_path):
    p = tmp_path / "list.yaml"
    p.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_config(str(p))
