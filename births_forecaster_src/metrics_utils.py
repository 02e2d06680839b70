# births_forecaster_src/metrics_utils.py

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import DivisionByZeroError, PeriodMismatchError
from .forecasting_utils import ForecastResult
from .series_utils import TimeSeries

logger = logging.getLogger(__name__)

METRIC_PRIORITY = ("RMSE", "MAE", "MAPE")
REPORT_COLUMNS = ("RMSE", "MAE", "MAPE", "ME", "MPE", "MASE")

ArrayLike = Union[List[float], np.ndarray, pd.Series]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to a flat float numpy array.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D float array
    """
    return np.asarray(x, dtype=float).ravel()


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    RMSE penalizes large errors more heavily than MAE, making it useful when
    large errors are particularly undesirable.
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yh - yt) ** 2)))


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    MAE provides a robust measure of prediction accuracy that is less sensitive
    to outliers compared to RMSE.
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yh - yt)))


def mean_error(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """Mean of ``actual - forecast``; positive values mean under-forecasting."""
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(yt - yh))


def _check_nonzero(metric: str, y_true: np.ndarray, periods: Optional[ArrayLike]) -> None:
    zero = y_true == 0.0
    if np.any(zero):
        idx = np.asarray(periods) if periods is not None else np.arange(len(y_true))
        raise DivisionByZeroError(metric, idx[zero])


def mape(y_true: ArrayLike, y_hat: ArrayLike, periods: Optional[ArrayLike] = None) -> float:
    """
    Calculate Mean Absolute Percentage Error.

    Parameters
    ----------
    y_true : array-like
        True values
    y_hat : array-like
        Predicted values
    periods : array-like, optional
        Period labels used in the error message when an actual is zero

    Returns
    -------
    float
        MAPE as percentage (0-100+)

    Raises
    ------
    DivisionByZeroError
        If any actual value is exactly zero; the metric is never reported as inf/NaN.
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")
    _check_nonzero("MAPE", yt, periods)
    return float(np.mean(np.abs(yh - yt) / np.abs(yt)) * 100.0)


def mpe(y_true: ArrayLike, y_hat: ArrayLike, periods: Optional[ArrayLike] = None) -> float:
    """Mean Percentage Error (signed); same zero-actual rule as MAPE."""
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")
    _check_nonzero("MPE", yt, periods)
    return float(np.mean((yt - yh) / yt) * 100.0)


def mase_metric(y_true: ArrayLike,
                y_hat: ArrayLike,
                y_train: ArrayLike,
                m: int = 1) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    MASE scales the MAE by the in-sample MAE of a naive (lag-``m``) forecast
    on the training data. For annual data ``m=1``.

    Returns
    -------
    float
        MASE value, or NaN if the training data cannot provide a scale

    Notes
    -----
    Values < 1 indicate the forecast beats the in-sample naive forecast.
    """
    yt = to_1d_array(y_true)
    yh = to_1d_array(y_hat)
    if yt.size == 0:
        return float("nan")

    num = np.mean(np.abs(yh - yt))
    tr = to_1d_array(y_train)
    if len(tr) <= m:
        return float("nan")

    denom = np.mean(np.abs(tr[m:] - tr[:-m]))
    if not np.isfinite(denom) or denom <= 0.0:
        return float("nan")
    return float(num / denom)


@dataclass(frozen=True)
class AccuracyReport(Mapping):
    """
    Accuracy of one model's forecast against held-out actuals.

    Behaves as a read-only mapping from metric name (``"RMSE"``, ``"MAE"``,
    ``"MAPE"``, ``"ME"``, ``"MPE"``, ``"MASE"``) to value. ``MASE`` is NaN
    when no training series was supplied.
    """

    model_id: str
    n: int
    rmse: float
    mae: float
    mape: float
    me: float = float("nan")
    mpe: float = float("nan")
    mase: float = float("nan")

    def _as_dict(self) -> Dict[str, float]:
        return {
            "RMSE": self.rmse,
            "MAE": self.mae,
            "MAPE": self.mape,
            "ME": self.me,
            "MPE": self.mpe,
            "MASE": self.mase,
        }

    def __getitem__(self, key: str) -> float:
        try:
            return self._as_dict()[key.upper()]
        except KeyError:
            raise KeyError(f"Unknown metric {key!r}; expected one of {REPORT_COLUMNS}") from None

    def __iter__(self) -> Iterator[str]:
        return iter(REPORT_COLUMNS)

    def __len__(self) -> int:
        return len(REPORT_COLUMNS)

    def to_dict(self) -> Dict[str, float]:
        return self._as_dict()


def evaluate(forecast: ForecastResult, actual: TimeSeries, train: Optional[TimeSeries] = None) -> AccuracyReport:
    """
    Score a forecast against the actual values of the same periods.

    Parameters
    ----------
    forecast : ForecastResult
        Model output for the test window
    actual : TimeSeries
        Held-out observations
    train : TimeSeries, optional
        Training data; enables the MASE scale

    Returns
    -------
    AccuracyReport

    Raises
    ------
    PeriodMismatchError
        If the forecast and actual periods differ in any way (set or order)
    DivisionByZeroError
        If an actual value is zero (MAPE/MPE undefined)
    """
    if len(forecast.periods) != len(actual.periods) or not np.array_equal(forecast.periods, actual.periods):
        raise PeriodMismatchError(forecast.periods, actual.periods)

    y_true = actual.values
    y_hat = forecast.point
    report = AccuracyReport(
        model_id=forecast.model_id,
        n=len(y_true),
        rmse=rmse(y_true, y_hat),
        mae=mae(y_true, y_hat),
        mape=mape(y_true, y_hat, periods=actual.periods),
        me=mean_error(y_true, y_hat),
        mpe=mpe(y_true, y_hat, periods=actual.periods),
        mase=mase_metric(y_true, y_hat, train.values, m=1) if train is not None else float("nan"),
    )
    logger.info("%s accuracy over %d-%d: RMSE=%.3f MAE=%.3f MAPE=%.3f%%",
                forecast.model_id, actual.start_period, actual.end_period,
                report.rmse, report.mae, report.mape)
    return report


def _sort_value(value: float) -> float:
    return value if value is not None and not math.isnan(value) else math.inf


def compare(reports: Mapping, metric: str = "RMSE") -> List[Tuple[str, AccuracyReport]]:
    """
    Rank models ascending by ``metric``.

    Ties are broken by RMSE, then MAE, then MAPE, then model id; NaN values
    sort last.

    Parameters
    ----------
    reports : Mapping[str, AccuracyReport]
        Model id -> accuracy report
    metric : str, default="RMSE"
        One of RMSE, MAE, MAPE

    Returns
    -------
    List[Tuple[str, AccuracyReport]]
        Best model first
    """
    key_metric = str(metric).upper()
    if key_metric not in METRIC_PRIORITY:
        raise ValueError(f"Invalid ranking metric '{metric}'. Must be one of: {list(METRIC_PRIORITY)}")

    def _key(item):
        model_id, report = item
        return (_sort_value(report[key_metric]),) + tuple(_sort_value(report[m]) for m in METRIC_PRIORITY) + (model_id,)

    return sorted(reports.items(), key=_key)


def comparison_frame(reports: Mapping, metric: str = "RMSE") -> pd.DataFrame:
    """
    Tabulate reports in ranking order, one row per model.

    Columns are RMSE, MAE, MAPE followed by ME, MPE and MASE.
    """
    ranking = compare(reports, metric)
    rows = [[model_id] + [report[c] for c in REPORT_COLUMNS] for model_id, report in ranking]
    frame = pd.DataFrame(rows, columns=["model"] + list(REPORT_COLUMNS)).set_index("model")
    frame.insert(0, "rank", np.arange(1, len(frame) + 1))
    return frame
