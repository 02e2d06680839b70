from dataclasses import replace
from types import SimpleNamespace

import numpy as np
import pytest

from births_forecaster_src import forecasting_utils
from births_forecaster_src.exceptions import InvalidHorizonError, ModelFitError, NonInvertibleModelError
from births_forecaster_src.forecasting_utils import (
    ARIMAFit, ARIMAForecaster, ETS_CANDIDATES, ETS_SIMULATION_SEED, ETSForecaster, NaiveForecaster,
    aicc, arima_trend, build_models, ets_label, score_ets_candidate, simulation_seed_kwargs
)
from births_forecaster_src.series_utils import TimeSeries, split

EXAMPLE = [100, 102, 99, 105, 110, 108, 115, 120, 118, 125]


def _trending_series(n=30, start=1980, seed=1):
    rng = np.random.default_rng(seed)
    values = 650000.0 + 2500.0 * np.arange(n) + rng.normal(0.0, 5000.0, size=n)
    return TimeSeries.from_values(values, start_period=start, name="births")


def test_naive_repeats_last_value():
    series = TimeSeries.from_values(EXAMPLE, start_period=2000)
    model = NaiveForecaster()
    fitted, fc = model.fit_forecast(series, 3)

    assert list(fc.point) == [125.0, 125.0, 125.0]
    assert list(fc.periods) == [2010, 2011, 2012]
    assert fitted.last_value == 125.0


def test_naive_on_training_window_uses_train_tail():
    series = TimeSeries.from_values(EXAMPLE, start_period=2000)
    data = split(series, 3)
    _, fc = NaiveForecaster().fit_forecast(data.train, 3)

    assert list(fc.point) == [data.train.last_value] * 3
    assert list(fc.periods) == list(data.test.periods)


def test_naive_interval_widens_with_step():
    series = TimeSeries.from_values(EXAMPLE)
    fc = NaiveForecaster(level=95).fit_forecast(series, 4)[1]
    widths = fc.upper - fc.lower

    assert np.all(np.diff(widths) > 0)
    sigma = np.sqrt(np.mean(np.diff(EXAMPLE) ** 2.0))
    assert widths[0] == pytest.approx(2 * 1.959964 * sigma, rel=1e-5)


def test_naive_needs_two_points_and_positive_horizon():
    with pytest.raises(ModelFitError):
        NaiveForecaster().fit(TimeSeries.from_values([5.0]))
    fitted = NaiveForecaster().fit(TimeSeries.from_values([5.0, 6.0]))
    with pytest.raises(InvalidHorizonError):
        NaiveForecaster().forecast(fitted, 0)


def test_aicc_formula():
    assert aicc(-10.0, 2, 20) == pytest.approx(20.0 + 4.0 + 12.0 / 17.0)
    assert aicc(-10.0, 5, 6) == float("inf")


def test_arima_trend_terms():
    assert arima_trend(0, True) == "c"
    assert arima_trend(1, True) == "t"
    assert arima_trend(2, True) == "n"
    assert arima_trend(1, False) == "n"


def test_candidate_orders_respect_sample_size():
    model = ARIMAForecaster(max_p=5, max_q=5)
    for p, d, q, trend in model.candidate_orders(6, 1):
        assert 6 > p + d + q + (1 if trend != "n" else 0)
    assert (0, 1, 0, "t") in model.candidate_orders(6, 1)
    assert model.candidate_orders(1, 1) == []


def test_ets_search_skips_multiplicative_on_non_positive_data():
    values = np.array([1.0, -2.0, 3.0, 0.5, 2.0, 4.0, 3.5, 5.0])
    score = score_ets_candidate(values, ("mul", None, False))
    assert not score.admissible
    assert "positive" in score.error
    assert ets_label(("mul", "add", True)) == "ETS(M,Ad,N)"
    assert len(ETS_CANDIDATES) == 6


def test_ets_forecast_shape_and_ordering():
    data = split(_trending_series(), 5)
    model = ETSForecaster(level=95)
    fitted, fc = model.fit_forecast(data.train, 5)

    assert fitted.description.startswith("ETS(")
    assert np.isfinite(fitted.aicc)
    assert list(fc.periods) == list(data.test.periods)
    assert np.all(fc.lower <= fc.point)
    assert np.all(fc.point <= fc.upper)
    assert fitted.search_table is not None and len(fitted.search_table) == len(ETS_CANDIDATES)


def test_arima_forecast_is_positive_and_ordered():
    series = _trending_series(n=35)
    model = ARIMAForecaster(level=95, max_p=1, max_q=1)
    fitted, fc = model.fit_forecast(series, 6)

    assert isinstance(fitted, ARIMAFit)
    assert fitted.order[1] in (0, 1, 2)
    assert list(fc.periods) == list(range(series.end_period + 1, series.end_period + 7))
    assert np.all(fc.lower > 0)
    assert np.all(fc.lower <= fc.point)
    assert np.all(fc.point <= fc.upper)


def test_arima_rejects_non_positive_data():
    series = TimeSeries.from_values([5.0, 3.0, 0.0, 4.0, 6.0, 7.0, 8.0, 9.0])
    with pytest.raises(ModelFitError):
        ARIMAForecaster(max_p=1, max_q=1).fit(series)


def test_arima_with_fixed_d_and_too_short_series():
    series = TimeSeries.from_values([5.0, 6.0])
    with pytest.raises(ModelFitError):
        ARIMAForecaster(max_p=0, max_q=0, d=2).fit(series)


def test_build_models_returns_all_variants_in_order():
    models = build_models(level=90, max_p=2, max_q=2)
    assert list(models) == ["Naive", "ETS", "ARIMA"]
    assert all(m.level == 90.0 for m in models.values())
    assert models["ARIMA"].max_p == 2


def test_additive_ets_predicts_from_plain_array_fit():
    series = _trending_series(n=25)
    model = ETSForecaster(level=80, candidates=[("add", "add", False)])
    fitted, fc = model.fit_forecast(series, 4)

    assert fitted.description == "ETS(A,A,N)"
    assert fitted.residuals.shape == (25,)
    assert list(fc.periods) == [2005, 2006, 2007, 2008]
    assert np.all(np.isfinite(fc.point))
    assert np.all(fc.upper - fc.lower > 0)


def test_multiplicative_ets_intervals_are_simulated_reproducibly():
    series = _trending_series(n=30)
    model = ETSForecaster(level=95, candidates=[("mul", "add", False)])
    fitted = model.fit(series)
    first = model.forecast(fitted, 5)
    second = model.forecast(fitted, 5)

    assert fitted.description == "ETS(M,A,N)"
    assert np.all(first.lower <= first.point)
    assert np.all(first.point <= first.upper)
    assert np.all(first.upper > first.lower)
    np.testing.assert_allclose(first.lower, second.lower)
    np.testing.assert_allclose(first.upper, second.upper)


def test_simulation_seed_keyword_follows_installed_signature():
    def new_simulate(nsimulations, rng=None):
        return None

    def old_simulate(nsimulations, random_state=None):
        return None

    assert simulation_seed_kwargs(SimpleNamespace(simulate=new_simulate)) == {"rng": ETS_SIMULATION_SEED}
    assert simulation_seed_kwargs(SimpleNamespace(simulate=old_simulate), seed=3) == {"random_state": 3}


def test_ets_forecast_library_error_becomes_model_fit_error():
    def broken_prediction(**kwargs):
        raise AttributeError("'numpy.ndarray' object has no attribute 'index'")

    series = _trending_series(n=20)
    model = ETSForecaster(candidates=[("add", None, False)])
    fitted = model.fit(series)
    broken = replace(fitted, results=SimpleNamespace(simulate=lambda nsimulations, rng=None: None,
                                                     get_prediction=broken_prediction))

    with pytest.raises(ModelFitError) as excinfo:
        model.forecast(broken, 3)
    assert excinfo.value.details["stage"] == "forecast"
    assert excinfo.value.details["length"] == 20
    assert isinstance(excinfo.value.__cause__, AttributeError)


def test_arima_without_admissible_roots_is_non_invertible(monkeypatch):
    monkeypatch.setattr(forecasting_utils, "roots_are_stable", lambda results: False)
    series = _trending_series(n=30)

    with pytest.raises(NonInvertibleModelError) as excinfo:
        ARIMAForecaster(max_p=1, max_q=1, d=1).fit(series)
    assert excinfo.value.details["model"] == "ARIMA"
    assert excinfo.value.details["d"] == 1


def test_arima_parallel_search_matches_sequential():
    series = _trending_series(n=30, seed=4)
    sequential = ARIMAForecaster(max_p=1, max_q=1, n_jobs=1)
    parallel = ARIMAForecaster(max_p=1, max_q=1, n_jobs=2)
    fit_seq, fc_seq = sequential.fit_forecast(series, 3)
    fit_par, fc_par = parallel.fit_forecast(series, 3)

    assert fit_par.order == fit_seq.order
    assert fit_par.trend == fit_seq.trend
    assert fit_par.aicc == pytest.approx(fit_seq.aicc)
    np.testing.assert_allclose(fc_par.point, fc_seq.point, rtol=1e-6)
