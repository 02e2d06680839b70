# births_forecaster_src/transform_utils.py

import logging
from typing import List, Tuple

import numpy as np

from .diagnostics_utils import StationarityReport, adf_test, analyze
from .exceptions import DataError, InsufficientDataError
from .series_utils import TimeSeries

logger = logging.getLogger(__name__)

MIN_DIFFERENCED_LENGTH = 3


def difference(series: TimeSeries, order: int = 1) -> TimeSeries:
    """
    Apply first differencing ``order`` times.

    Each differenced value is labelled with the period of the later
    observation in its pair, so the result starts ``order`` years after the
    input.

    Parameters
    ----------
    series : TimeSeries
        Input series
    order : int, default=1
        Number of differencing passes

    Returns
    -------
    TimeSeries
        Series of length ``len(series) - order``

    Raises
    ------
    InsufficientDataError
        If fewer than 3 observations remain after differencing
    """
    if order < 1:
        raise ValueError(f"Differencing order must be >= 1, got {order}")

    remaining = len(series) - order
    if remaining < MIN_DIFFERENCED_LENGTH:
        raise InsufficientDataError(
            f"Differencing a series of length {len(series)} {order} time(s) leaves {max(remaining, 0)} observations",
            stage="difference", length=len(series), required=order + MIN_DIFFERENCED_LENGTH,
        )

    values = np.diff(series.values, n=order)
    name = f"diff{order}({series.name})" if series.name else None
    return TimeSeries(series.periods[order:], values, name)


def integrate(differenced: TimeSeries, initial_value: float) -> TimeSeries:
    """
    Invert a single first difference.

    ``initial_value`` is the original observation one period before the first
    differenced period; cumulative summation seeded by it reproduces the
    original series.
    """
    values = np.concatenate([[float(initial_value)], float(initial_value) + np.cumsum(differenced.values)])
    periods = np.arange(differenced.start_period - 1, differenced.end_period + 1)
    return TimeSeries(periods, values)


def log_transform(series: TimeSeries) -> TimeSeries:
    """Natural log of a strictly positive series."""
    if np.any(series.values <= 0):
        raise DataError("Log transform requires strictly positive values",
                        {"stage": "log_transform", "length": len(series)})
    return series.with_values(np.log(series.values))


def select_differencing_order(series: TimeSeries, alpha: float = 0.05, max_d: int = 2) -> int:
    """
    Choose a non-seasonal differencing order by repeated ADF testing.

    The level series is tested first; while the test fails to reject a unit
    root (p >= alpha) the series is differenced again, up to ``max_d``.
    When a test cannot be run because too few observations remain, the last
    order that could be tested is kept.

    Parameters
    ----------
    series : TimeSeries
        Series to analyse (already log-transformed where applicable)
    alpha : float, default=0.05
        Significance level for the ADF test
    max_d : int, default=2
        Upper bound on the differencing order

    Returns
    -------
    int
        Differencing order in ``[0, max_d]``
    """
    current = series
    for d in range(0, max_d + 1):
        try:
            _, p_value, _ = adf_test(current)
        except InsufficientDataError:
            logger.debug("ADF not computable at d=%d (n=%d); keeping d=%d", d, len(current), max(d - 1, 0))
            return max(d - 1, 0)
        logger.debug("ADF at d=%d: p=%.4f", d, p_value)
        if np.isfinite(p_value) and p_value < alpha:
            return d
        if d == max_d:
            break
        try:
            current = difference(current, 1)
        except InsufficientDataError:
            return d
    return max_d


def difference_until_stationary(series: TimeSeries,
                                significance: float = 0.05,
                                max_order: int = 2) -> Tuple[TimeSeries, int, List[StationarityReport]]:
    """
    Difference repeatedly, re-testing for stationarity after every pass.

    Returns
    -------
    Tuple[TimeSeries, int, List[StationarityReport]]
        (final_series, differencing_order, report_per_round). The first report
        describes the undifferenced series.
    """
    reports: List[StationarityReport] = []
    current = series
    order = 0
    while True:
        report = analyze(current, significance=significance)
        reports.append(report)
        if report.is_stationary or order >= max_order:
            break
        current = difference(current, 1)
        order += 1
        logger.info("Differenced %s (pass %d): ADF p=%.4f before this pass",
                    series.name or "series", order, report.adf_pvalue)
    return current, order, reports
