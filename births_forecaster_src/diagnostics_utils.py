# births_forecaster_src/diagnostics_utils.py

import inspect
import math
import logging
import warnings
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf, adfuller, pacf

from .exceptions import DataError, InsufficientDataError
from .series_utils import TimeSeries

logger = logging.getLogger(__name__)

# newer statsmodels can return a result object from adfuller; keep the tuple form
_ADF_KWARGS = {"result_object": False} if "result_object" in inspect.signature(adfuller).parameters else {}


@dataclass(frozen=True)
class StationarityReport:
    """Autocorrelation diagnostics and ADF outcome for one series."""

    acf: Tuple[float, ...]
    pacf: Tuple[float, ...]
    adf_statistic: float
    adf_pvalue: float
    adf_lags: int
    is_stationary: bool
    nobs: int
    significance: float = 0.05

    @property
    def interpretation(self) -> str:
        if self.is_stationary:
            return f"Unit root rejected at {self.significance:.0%} (p={self.adf_pvalue:.4f}): stationary"
        return f"Unit root not rejected at {self.significance:.0%} (p={self.adf_pvalue:.4f}): non-stationary"


@dataclass(frozen=True)
class LjungBoxResult:
    """Portmanteau test of residual autocorrelation."""

    statistic: float
    p_value: float
    lags: int
    model_df: int = 0

    def is_white_noise(self, significance: float = 0.05) -> bool:
        return bool(np.isfinite(self.p_value) and self.p_value >= significance)


def _values(series: Union[TimeSeries, pd.Series, np.ndarray]) -> np.ndarray:
    if isinstance(series, TimeSeries):
        return np.asarray(series.values, dtype=float)
    return pd.Series(series).dropna().to_numpy(dtype=float)


def default_nlags(n: int) -> int:
    """Lag bound ``min(10*log10(n), n-1)`` for ACF/PACF displays."""
    if n < 2:
        return 0
    return int(max(1, min(math.floor(10.0 * math.log10(n)), n - 1)))


def adf_lag_order(n: int) -> int:
    """Fixed ADF lag order ``trunc((n-1)^(1/3))``."""
    return int(math.trunc((n - 1) ** (1.0 / 3.0))) if n > 1 else 0


def adf_test(series: Union[TimeSeries, pd.Series, np.ndarray]) -> Tuple[float, float, int]:
    """
    Run the Augmented Dickey-Fuller (ADF) test for unit roots.

    The test regression includes a constant and a linear trend, and the lag
    order is fixed at ``trunc((n-1)^(1/3))`` (capped to what the sample can
    support) rather than chosen by information criterion.

    Parameters
    ----------
    series : Union[TimeSeries, pd.Series, np.ndarray]
        Input series. NaNs are dropped prior to testing for non-TimeSeries input.

    Returns
    -------
    Tuple[float, float, int]
        (test_statistic, p_value, lags_used)

    Raises
    ------
    InsufficientDataError
        If the sample is too short for the trend regression
    DataError
        If the series is constant

    Notes
    -----
    - ADF null hypothesis: the series has a unit root (non-stationary)
    - Lower p-values (< 0.05) suggest rejection of null (series is stationary)
    """
    x = _values(series)
    n = len(x)
    # constant + trend regressors
    max_supported = n // 2 - 3
    if n <= 2 or max_supported < 0:
        raise InsufficientDataError(
            f"ADF test with trend needs at least 6 observations, got {n}",
            stage="adf_test", length=n, required=6,
        )
    if np.ptp(x) == 0.0:
        raise DataError("ADF test is undefined for a constant series", {"stage": "adf_test", "length": n})

    lags = min(adf_lag_order(n), max_supported)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", FutureWarning)
            res = adfuller(x, maxlag=lags, regression="ct", autolag=None, **_ADF_KWARGS)
    except ValueError as e:
        raise InsufficientDataError(f"ADF test failed: {e}", stage="adf_test", length=n) from e
    return float(res[0]), float(res[1]), int(res[2])


def analyze(series: TimeSeries, significance: float = 0.05, nlags: Optional[int] = None) -> StationarityReport:
    """
    Compute ACF/PACF and the ADF unit-root test for a series.

    Parameters
    ----------
    series : TimeSeries
        Series to diagnose
    significance : float, default=0.05
        Threshold on the ADF p-value below which the series is deemed stationary
    nlags : int, optional
        Lag bound; defaults to ``min(10*log10(n), n-1)``

    Returns
    -------
    StationarityReport
        Coefficients exclude lag 0. PACF is truncated below n/2 lags.

    Raises
    ------
    InsufficientDataError
        For series with 2 or fewer observations or too short for ADF
    """
    n = len(series)
    if n <= 2:
        raise InsufficientDataError(
            f"Stationarity analysis needs more than 2 observations, got {n}",
            stage="stationarity", length=n, required=3,
        )

    x = np.asarray(series.values, dtype=float)
    lag_bound = default_nlags(n) if nlags is None else int(min(nlags, n - 1))
    acf_vals = acf(x, nlags=lag_bound, fft=False)[1:]

    pacf_bound = min(lag_bound, n // 2 - 1)
    pacf_vals = pacf(x, nlags=pacf_bound, method="ywadjusted")[1:] if pacf_bound >= 1 else np.array([])

    stat, p_value, used_lags = adf_test(series)
    report = StationarityReport(
        acf=tuple(float(v) for v in acf_vals),
        pacf=tuple(float(v) for v in pacf_vals),
        adf_statistic=stat,
        adf_pvalue=p_value,
        adf_lags=used_lags,
        is_stationary=bool(p_value < significance),
        nobs=n,
        significance=significance,
    )
    logger.info("ADF on %s (n=%d, lags=%d): statistic=%.3f, p-value=%.4f -> %s",
                series.name or "series", n, used_lags, stat, p_value,
                "stationary" if report.is_stationary else "non-stationary")
    return report


def ljung_box(residuals: Union[pd.Series, np.ndarray, TimeSeries],
              lags: Optional[int] = None,
              model_df: int = 0) -> LjungBoxResult:
    """
    Ljung-Box test for remaining autocorrelation in model residuals.

    Parameters
    ----------
    residuals : array-like
        Residual vector from a fitted model
    lags : int, optional
        Number of lags; defaults to ``min(10, n // 5)`` (at least 1)
    model_df : int, default=0
        Degrees of freedom consumed by the model; subtracted from the chi-square df

    Returns
    -------
    LjungBoxResult
        Statistic and p-value at the requested lag
    """
    resid = _values(residuals)
    resid = resid[np.isfinite(resid)]
    n = len(resid)
    if n < 3:
        raise InsufficientDataError("Ljung-Box test needs at least 3 residuals",
                                    stage="ljung_box", length=n, required=3)
    if lags is None:
        lags = max(1, min(10, n // 5))
    lags = int(min(max(lags, model_df + 1), n - 1))
    if lags <= model_df:
        model_df = 0

    frame = acorr_ljungbox(resid, lags=[lags], model_df=model_df, return_df=True)
    return LjungBoxResult(
        statistic=float(frame["lb_stat"].iloc[-1]),
        p_value=float(frame["lb_pvalue"].iloc[-1]),
        lags=lags,
        model_df=model_df,
    )
