import warnings

import numpy as np
import pytest

from births_forecaster_src.diagnostics_utils import (
    adf_lag_order, adf_test, analyze, default_nlags, ljung_box
)
from births_forecaster_src.exceptions import DataError, InsufficientDataError
from births_forecaster_src.series_utils import TimeSeries


def test_lag_rules():
    assert default_nlags(40) == 16
    assert default_nlags(5) == 4
    assert adf_lag_order(30) == 3
    assert adf_lag_order(60) == 3
    assert adf_lag_order(70) == 4


def test_analyze_reports_correlograms_without_lag_zero():
    rng = np.random.default_rng(0)
    series = TimeSeries.from_values(rng.normal(size=60), start_period=1950, name="noise")
    report = analyze(series, significance=0.05)

    assert report.nobs == 60
    assert len(report.acf) == default_nlags(60)
    assert 1 <= len(report.pacf) <= len(report.acf)
    assert all(abs(v) <= 1.0 for v in report.acf)
    assert 0.0 <= report.adf_pvalue <= 1.0
    assert report.is_stationary == (report.adf_pvalue < 0.05)
    assert report.adf_lags == adf_lag_order(60)
    assert "stationary" in report.interpretation


def test_trending_levels_are_not_stationary():
    rng = np.random.default_rng(2)
    levels = TimeSeries.from_values(np.cumsum(np.cumsum(rng.normal(size=80))) + 500.0)
    assert not analyze(levels).is_stationary


@pytest.mark.parametrize("values", [[1.0], [1.0, 2.0]])
def test_analyze_rejects_tiny_series(values):
    with pytest.raises(InsufficientDataError):
        analyze(TimeSeries.from_values(values))


def test_adf_rejects_short_and_constant_input():
    with pytest.raises(InsufficientDataError):
        adf_test(np.array([1.0, 3.0, 2.0, 5.0, 4.0]))
    with pytest.raises(DataError):
        adf_test(np.full(20, 3.0))


def test_ljung_box_on_white_noise_and_ar_residuals():
    rng = np.random.default_rng(4)
    noise = rng.normal(size=300)
    assert ljung_box(noise, lags=10).is_white_noise(0.01)

    ar = np.zeros(300)
    for t in range(1, 300):
        ar[t] = 0.9 * ar[t - 1] + noise[t]
    result = ljung_box(ar, lags=10)
    assert result.lags == 10
    assert result.p_value < 0.01
    assert not result.is_white_noise()


def test_ljung_box_needs_residuals():
    with pytest.raises(InsufficientDataError):
        ljung_box(np.array([0.1, -0.2]))


def test_adf_test_raises_no_future_warning():
    rng = np.random.default_rng(5)
    series = TimeSeries.from_values(np.cumsum(rng.normal(size=50)), start_period=1970)
    with warnings.catch_warnings():
        warnings.simplefilter("error", FutureWarning)
        stat, p_value, used_lags = adf_test(series)
        report = analyze(series)

    assert np.isfinite(stat)
    assert 0.0 <= p_value <= 1.0
    assert used_lags == adf_lag_order(50)
    assert report.adf_pvalue == pytest.approx(p_value)
