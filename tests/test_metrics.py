import math

import numpy as np
import pytest

from births_forecaster_src.exceptions import DivisionByZeroError, PeriodMismatchError
from births_forecaster_src.forecasting_utils import ForecastResult
from births_forecaster_src.metrics_utils import (
    AccuracyReport, compare, comparison_frame, evaluate, mae, mape, mase_metric, rmse
)
from births_forecaster_src.series_utils import TimeSeries


def _forecast(periods, point, model_id="Naive"):
    point = np.asarray(point, dtype=float)
    return ForecastResult(model_id, periods, point, point - 1.0, point + 1.0)


def _report(model_id, rmse_value, mae_value=1.0, mape_value=1.0):
    return AccuracyReport(model_id=model_id, n=3, rmse=rmse_value, mae=mae_value, mape=mape_value)


def test_basic_metrics():
    y = [100.0, 110.0, 120.0]
    yhat = [102.0, 108.0, 126.0]
    assert rmse(y, yhat) == pytest.approx(math.sqrt((4 + 4 + 36) / 3))
    assert mae(y, yhat) == pytest.approx((2 + 2 + 6) / 3)
    assert mape(y, yhat) == pytest.approx((2 / 100 + 2 / 110 + 6 / 120) / 3 * 100)


def test_mase_scales_by_in_sample_naive_error():
    assert mase_metric([4.0, 6.0], [5.0, 5.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert math.isnan(mase_metric([4.0], [5.0], [2.0, 2.0, 2.0]))


def test_evaluate_reports_all_metrics():
    actual = TimeSeries([2010, 2011, 2012], [100.0, 110.0, 120.0])
    train = TimeSeries([2007, 2008, 2009], [90.0, 95.0, 100.0])
    report = evaluate(_forecast([2010, 2011, 2012], [100.0, 100.0, 100.0]), actual, train=train)

    assert report.model_id == "Naive"
    assert report["rmse"] == pytest.approx(math.sqrt((0 + 100 + 400) / 3))
    assert report["MAE"] == pytest.approx(10.0)
    assert report["ME"] == pytest.approx(10.0)
    assert report["MASE"] == pytest.approx(2.0)
    assert set(report) == {"RMSE", "MAE", "MAPE", "ME", "MPE", "MASE"}


def test_mape_with_zero_actual_raises():
    actual = TimeSeries([2010, 2011], [0.0, 5.0])
    with pytest.raises(DivisionByZeroError) as exc:
        evaluate(_forecast([2010, 2011], [1.0, 5.0]), actual)
    assert exc.value.periods == [2010]


def test_period_mismatch_is_rejected():
    actual = TimeSeries([2010, 2011, 2012], [1.0, 2.0, 3.0])
    with pytest.raises(PeriodMismatchError):
        evaluate(_forecast([2011, 2012, 2013], [1.0, 2.0, 3.0]), actual)
    with pytest.raises(PeriodMismatchError):
        evaluate(_forecast([2010, 2011], [1.0, 2.0]), actual)


def test_compare_ranks_by_metric():
    reports = {"Naive": _report("Naive", 50.0), "ETS": _report("ETS", 30.0), "ARIMA": _report("ARIMA", 40.0)}
    ranking = compare(reports, "RMSE")
    assert [model_id for model_id, _ in ranking] == ["ETS", "ARIMA", "Naive"]


def test_compare_breaks_ties_and_sorts_nan_last():
    reports = {
        "B": _report("B", 10.0, mae_value=2.0),
        "A": _report("A", 10.0, mae_value=2.0),
        "C": _report("C", 10.0, mae_value=1.0),
        "D": _report("D", float("nan")),
    }
    assert [m for m, _ in compare(reports)] == ["C", "A", "B", "D"]


def test_compare_rejects_unknown_metric():
    with pytest.raises(ValueError):
        compare({"Naive": _report("Naive", 1.0)}, "sMAPE")


def test_comparison_frame_is_in_rank_order():
    reports = {"Naive": _report("Naive", 5.0, mape_value=3.0), "ETS": _report("ETS", 6.0, mape_value=1.0)}
    table = comparison_frame(reports, metric="MAPE")
    assert list(table.index) == ["ETS", "Naive"]
    assert list(table["rank"]) == [1, 2]
    assert list(table.columns[:4]) == ["rank", "RMSE", "MAE", "MAPE"]
