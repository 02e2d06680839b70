import types
from pathlib import Path

import pytest

from births_forecaster_src import config_utils
from births_forecaster_src.config_utils import (
    ConfigurationManager, PipelineSettings, get_config_value, initialize_config
)
from births_forecaster_src.exceptions import ConfigurationError


def _write_config(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_configuration():
    settings = PipelineSettings.from_sources(None)
    assert settings.horizon == 10
    assert settings.significance_threshold == 0.05
    assert settings.split_year == 2000
    assert settings.metric == "RMSE"
    assert settings.interval_level == 95.0
    assert (settings.max_p, settings.max_q, settings.max_d) == (5, 5, 2)


def test_cli_overrides_file_overrides_default(tmp_path: Path):
    cfg = _write_config(tmp_path / "cfg.yaml", (
        "evaluation:\n"
        "  horizon: 7\n"
        "  metric: mae\n"
        "hypothesis:\n"
        "  split_year: 1995\n"
    ))
    initialize_config(cfg)

    from_file = PipelineSettings.from_sources(types.SimpleNamespace(horizon=None, metric=None))
    assert from_file.horizon == 7
    assert from_file.metric == "MAE"
    assert from_file.split_year == 1995
    assert from_file.max_p == 5

    from_cli = PipelineSettings.from_sources(types.SimpleNamespace(horizon=4, metric="MAPE", split_year=None))
    assert from_cli.horizon == 4
    assert from_cli.metric == "MAPE"
    assert from_cli.split_year == 1995


def test_get_config_value_dot_paths(tmp_path: Path):
    cfg = _write_config(tmp_path / "cfg.yaml", "model:\n  arima:\n    max_p: 3\n")
    initialize_config(cfg)
    assert get_config_value("model.arima.max_p", 5) == 3
    assert get_config_value("model.arima.max_q", 5) == 5
    assert get_config_value("model.arima.max_p", 5, types.SimpleNamespace(max_p=1), "max_p") == 1


@pytest.mark.parametrize("kwargs", [
    {"horizon": 0},
    {"significance_threshold": 1.5},
    {"metric": "SMAPE"},
    {"interval_level": 100.0},
    {"max_p": -1},
    {"n_jobs": 0},
])
def test_invalid_settings_raise(kwargs):
    with pytest.raises(ConfigurationError):
        PipelineSettings(**kwargs)


def test_validate_configuration_reports_problems(tmp_path: Path):
    cfg = _write_config(tmp_path / "cfg.yaml", (
        "evaluation:\n"
        "  horizon: -2\n"
        "  metric: sMAPE\n"
        "stationarity:\n"
        "  significance_threshold: 2\n"
    ))
    problems = ConfigurationManager(cfg).validate_configuration()
    assert len(problems["evaluation"]) == 2
    assert len(problems["stationarity"]) == 1


def test_unreadable_configuration_falls_back_to_defaults(tmp_path: Path):
    cfg = _write_config(tmp_path / "cfg.yaml", "evaluation: [unclosed\n")
    initialize_config(cfg)
    assert config_utils.config_manager is None
    assert PipelineSettings.from_sources(None).horizon == 10


def test_shipped_configuration_matches_defaults():
    manager = ConfigurationManager()
    assert manager.validate_configuration() == {}
    assert manager.get("evaluation.horizon") == 10
    assert manager.get("data.sheet_name") == "Birth"
