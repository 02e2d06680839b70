# births_forecaster_src/parsing_utils.py

import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)


def validate_metric(metric: str) -> str:
    """
    Validate and normalize the ranking metric.

    Parameters
    ----------
    metric : str
        Metric name, case-insensitive

    Returns
    -------
    str
        Upper-cased metric name

    Raises
    ------
    ValueError
        If the metric is not one of RMSE, MAE, MAPE

    Examples
    --------
    >>> validate_metric("mape")
    'MAPE'
    """
    valid_metrics = ["RMSE", "MAE", "MAPE"]
    metric_upper = str(metric).upper()
    if metric_upper not in valid_metrics:
        raise ValueError(f"Invalid metric '{metric}'. Must be one of: {valid_metrics}")
    return metric_upper


def parse_sheet_arg(sheet: Optional[str], default: Union[str, int] = "Birth") -> Union[str, int]:
    """
    Interpret a sheet argument as a sheet index when it is all digits.

    Examples
    --------
    >>> parse_sheet_arg("2")
    2
    >>> parse_sheet_arg("Birth")
    'Birth'
    >>> parse_sheet_arg(None)
    'Birth'
    """
    if sheet is None or str(sheet).strip() == "":
        return default
    txt = str(sheet).strip()
    return int(txt) if txt.isdigit() else txt


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper
