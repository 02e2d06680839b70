# births_forecaster_src/hypothesis_utils.py

import logging
import math
from dataclasses import dataclass
from typing import Tuple, Union, List

import numpy as np
import pandas as pd
from scipy import stats

from .exceptions import DataError, InsufficientDataError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TTestResult:
    """Welch two-sample t-test outcome (two-sided)."""

    statistic: float
    p_value: float
    df: float
    mean_a: float
    mean_b: float
    n_a: int
    n_b: int
    conf_int: Tuple[float, float]
    confidence: float = 0.95

    @property
    def mean_difference(self) -> float:
        return self.mean_a - self.mean_b

    def is_significant(self, significance: float = 0.05) -> bool:
        return self.p_value < significance

    def summary(self) -> str:
        lo, hi = self.conf_int
        return (f"Welch t = {self.statistic:.4f}, df = {self.df:.2f}, p-value = {self.p_value:.4g}; "
                f"means {self.mean_a:.4f} vs {self.mean_b:.4f}; "
                f"{self.confidence:.0%} CI for difference [{lo:.4f}, {hi:.4f}]")


def _clean_sample(sample: Union[List[float], np.ndarray, pd.Series], label: str) -> np.ndarray:
    arr = np.asarray(sample, dtype=float).ravel()
    arr = arr[np.isfinite(arr)]
    if arr.size < 2:
        raise InsufficientDataError(
            f"Sample {label} needs at least 2 observations, got {arr.size}",
            stage="two_sample_test", length=int(arr.size), required=2,
        )
    return arr


def two_sample_test(sample_a: Union[List[float], np.ndarray, pd.Series],
                    sample_b: Union[List[float], np.ndarray, pd.Series],
                    confidence: float = 0.95) -> TTestResult:
    """
    Welch's unequal-variance t-test for a difference in means.

    The statistic is ``(mean_a - mean_b) / sqrt(var_a/n_a + var_b/n_b)`` with
    sample variances (ddof=1); degrees of freedom follow Welch-Satterthwaite.

    Parameters
    ----------
    sample_a, sample_b : array-like
        Observations; non-finite values are dropped
    confidence : float, default=0.95
        Coverage of the reported interval for ``mean_a - mean_b``

    Returns
    -------
    TTestResult

    Raises
    ------
    InsufficientDataError
        If either sample has fewer than 2 finite observations
    DataError
        If both samples have zero variance (statistic undefined)
    """
    a = _clean_sample(sample_a, "a")
    b = _clean_sample(sample_b, "b")
    n_a, n_b = a.size, b.size
    mean_a, mean_b = float(a.mean()), float(b.mean())
    va = float(a.var(ddof=1)) / n_a
    vb = float(b.var(ddof=1)) / n_b
    se2 = va + vb
    if se2 <= 0.0:
        raise DataError("Welch t-test is undefined when both samples have zero variance",
                        {"stage": "two_sample_test", "n_a": n_a, "n_b": n_b})

    se = math.sqrt(se2)
    statistic = (mean_a - mean_b) / se
    df = se2 ** 2 / ((va ** 2) / (n_a - 1) + (vb ** 2) / (n_b - 1))
    p_value = float(2.0 * stats.t.sf(abs(statistic), df))
    p_value = min(max(p_value, 0.0), 1.0)

    t_crit = float(stats.t.ppf(0.5 + confidence / 2.0, df))
    diff = mean_a - mean_b
    result = TTestResult(
        statistic=float(statistic),
        p_value=p_value,
        df=float(df),
        mean_a=mean_a,
        mean_b=mean_b,
        n_a=n_a,
        n_b=n_b,
        conf_int=(diff - t_crit * se, diff + t_crit * se),
        confidence=confidence,
    )
    logger.info("Welch t-test (n_a=%d, n_b=%d): %s", n_a, n_b, result.summary())
    return result


def split_by_year(frame: pd.DataFrame, column: str, split_year: int,
                  year_column: str = "year") -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a column into (early, late) samples around ``split_year``.

    Early covers years ``<= split_year``; late covers years ``> split_year``.
    Missing values are dropped.
    """
    if column not in frame.columns or year_column not in frame.columns:
        raise DataError(f"Columns '{year_column}' and '{column}' are required for the year split",
                        {"stage": "split_by_year", "columns": list(frame.columns)})
    data = frame[[year_column, column]].dropna()
    early = data.loc[data[year_column] <= split_year, column].to_numpy(dtype=float)
    late = data.loc[data[year_column] > split_year, column].to_numpy(dtype=float)
    logger.info("Split '%s' at %d: %d early, %d late observations", column, split_year, len(early), len(late))
    return early, late
