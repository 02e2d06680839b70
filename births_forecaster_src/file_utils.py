# births_forecaster_src/file_utils.py

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .forecasting_utils import ForecastResult
from .metrics_utils import comparison_frame

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create

    Notes
    -----
    No error is raised if the directory already exists.
    """
    path.mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/births.xlsx", Path("/project"))
    PosixPath('/project/data/births.xlsx')
    >>> resolve_path("/absolute/births.csv", Path("/project"))
    PosixPath('/absolute/births.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def append_csv_row(csv_path: Optional[Path],
                   row: Dict[str, Any],
                   header: List[str]) -> None:
    """
    Append a single row to CSV, creating the header on first write.

    Parameters
    ----------
    csv_path : Optional[Path]
        Path to CSV file (None to skip writing)
    row : Dict[str, Any]
        Values keyed by column name
    header : List[str]
        Column names for the CSV
    """
    if csv_path is None:
        return

    ensure_dir(csv_path.parent)
    exists = csv_path.exists()
    with csv_path.open("a", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=header)
        if not exists:
            writer.writeheader()
        writer.writerow(row)


def write_comparison_csv(reports: Mapping, out_path: Path, metric: str = "RMSE") -> pd.DataFrame:
    """
    Write the ranked model comparison table.

    Returns
    -------
    pd.DataFrame
        The table that was written (index ``model``)
    """
    ensure_dir(out_path.parent)
    table = comparison_frame(reports, metric)
    table.to_csv(out_path, float_format="%.6f")
    logger.info("Saved model comparison: %s", out_path)
    return table


def write_forecast_csv(forecast: ForecastResult, out_path: Path) -> None:
    """Write a forecast as ``year, point, lower_<level>, upper_<level>`` rows."""
    ensure_dir(out_path.parent)
    frame = forecast.to_frame()
    frame.insert(0, "model", forecast.model_id)
    frame.to_csv(out_path, float_format="%.6f")
    logger.info("Saved %s forecast (%d periods): %s", forecast.model_id, len(forecast), out_path)


def append_run_summary(csv_path: Optional[Path], summary: Dict[str, Any]) -> None:
    """Append one row per run: selected model, metric value and test outcome."""
    header = [
        "input", "n", "train_len", "test_len", "metric", "best_model", "best_value",
        "final_first_year", "final_last_year", "welch_t", "welch_p",
    ]
    append_csv_row(csv_path, {k: summary.get(k, "") for k in header}, header)
