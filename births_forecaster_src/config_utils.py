# births_forecaster_src/config_utils.py

import argparse
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

VALID_METRICS = ("RMSE", "MAE", "MAPE")

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "forecaster.yaml"

# Initialize the global configuration manager
config_manager = None


class ConfigurationManager:
    """
    Read-only view over a YAML configuration file with dot-path lookups.

    Parameters
    ----------
    config_path : Path
        YAML file to load. A missing file yields an empty configuration.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._data: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if not self.config_path.is_file():
            logger.info("No configuration file at %s - using defaults", self.config_path)
            return
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", config_path=str(self.config_path)) from e
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigurationError("Top level of configuration must be a mapping",
                                     config_path=str(self.config_path))
        self._data = loaded
        logger.info("Loaded configuration from %s", self.config_path)

    def get(self, key_path: str, default=None):
        """Return the value at a dotted key path such as ``'evaluation.metric'``."""
        node: Any = self._data
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> Dict[str, List[str]]:
        """Check known keys; returns a mapping of section -> list of problems."""
        errors: Dict[str, List[str]] = {}

        def _add(section: str, msg: str) -> None:
            errors.setdefault(section, []).append(msg)

        horizon = self.get("evaluation.horizon")
        if horizon is not None and (not isinstance(horizon, int) or horizon < 1):
            _add("evaluation", f"horizon must be a positive integer, got {horizon!r}")

        metric = self.get("evaluation.metric")
        if metric is not None and str(metric).upper() not in VALID_METRICS:
            _add("evaluation", f"metric must be one of {VALID_METRICS}, got {metric!r}")

        sig = self.get("stationarity.significance_threshold")
        if sig is not None and not (isinstance(sig, (int, float)) and 0.0 < sig < 1.0):
            _add("stationarity", f"significance_threshold must be in (0, 1), got {sig!r}")

        level = self.get("model.interval_level")
        if level is not None and not (isinstance(level, (int, float)) and 0.0 < level < 100.0):
            _add("model", f"interval_level must be in (0, 100), got {level!r}")

        return errors


def initialize_config(config_path: Optional[Path] = None) -> None:
    """
    Initializes the global configuration manager.
    Loads the YAML configuration and logs validation warnings. An unreadable
    file is reported and the run proceeds with default settings.
    """
    global config_manager
    try:
        config_manager = ConfigurationManager(config_path)
        validation_errors = config_manager.validate_configuration()
        if validation_errors:
            logger.warning("Configuration validation warnings: %s", validation_errors)
    except ConfigurationError as e:
        logger.error("Failed to initialize configuration: %s. Using defaults.", e)
        config_manager = None


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager:
        config_value = config_manager.get(key_path, default)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default


@dataclass(frozen=True)
class PipelineSettings:
    """Resolved settings for one pipeline run."""

    horizon: int = 10
    significance_threshold: float = 0.05
    split_year: int = 2000
    metric: str = "RMSE"
    interval_level: float = 95.0
    max_p: int = 5
    max_q: int = 5
    max_d: int = 2
    n_jobs: int = 1
    sheet_name: str = "Birth"
    skip_rows: int = 5
    year_column: str = "year"
    births_column: str = "number_of_live_births_united_kingdom"
    fertility_column: str = "total_fertility_rate_united_kingdom"

    def __post_init__(self):
        if self.horizon < 1:
            raise ConfigurationError(f"horizon must be >= 1, got {self.horizon}", key="horizon")
        if not 0.0 < self.significance_threshold < 1.0:
            raise ConfigurationError(
                f"significance_threshold must be in (0, 1), got {self.significance_threshold}",
                key="significance_threshold",
            )
        if self.metric not in VALID_METRICS:
            raise ConfigurationError(f"metric must be one of {VALID_METRICS}, got {self.metric!r}", key="metric")
        if not 0.0 < self.interval_level < 100.0:
            raise ConfigurationError(f"interval_level must be in (0, 100), got {self.interval_level}",
                                     key="interval_level")
        if min(self.max_p, self.max_q, self.max_d) < 0:
            raise ConfigurationError("ARIMA search bounds must be non-negative", key="model.arima")
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {self.n_jobs}", key="n_jobs")

    @classmethod
    def from_sources(cls, args: Optional[argparse.Namespace] = None) -> "PipelineSettings":
        """Build settings honouring CLI > configuration file > default."""
        defaults = cls.__dataclass_fields__
        return cls(
            horizon=int(get_config_value("evaluation.horizon", defaults["horizon"].default, args, "horizon")),
            significance_threshold=float(get_config_value(
                "stationarity.significance_threshold", defaults["significance_threshold"].default,
                args, "significance_threshold")),
            split_year=int(get_config_value("hypothesis.split_year", defaults["split_year"].default,
                                            args, "split_year")),
            metric=str(get_config_value("evaluation.metric", defaults["metric"].default, args, "metric")).upper(),
            interval_level=float(get_config_value("model.interval_level", defaults["interval_level"].default,
                                                  args, "interval_level")),
            max_p=int(get_config_value("model.arima.max_p", defaults["max_p"].default, args, "max_p")),
            max_q=int(get_config_value("model.arima.max_q", defaults["max_q"].default, args, "max_q")),
            max_d=int(get_config_value("model.arima.max_d", defaults["max_d"].default, args, "max_d")),
            n_jobs=int(get_config_value("model.n_jobs", defaults["n_jobs"].default, args, "n_jobs")),
            sheet_name=str(get_config_value("data.sheet_name", defaults["sheet_name"].default, args, "sheet")),
            skip_rows=int(get_config_value("data.skip_rows", defaults["skip_rows"].default, args, "skip_rows")),
            year_column=str(get_config_value("data.columns.year", defaults["year_column"].default)),
            births_column=str(get_config_value("data.columns.births", defaults["births_column"].default)),
            fertility_column=str(get_config_value("data.columns.fertility", defaults["fertility_column"].default)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
