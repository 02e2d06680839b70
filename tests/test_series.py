import numpy as np
import pytest

from births_forecaster_src.exceptions import DataError, InvalidHorizonError
from births_forecaster_src.series_utils import TimeSeries, split


def test_split_partitions_series_chronologically():
    series = TimeSeries.from_values(np.arange(10.0, 22.0), start_period=1990, name="births")
    result = split(series, 4)

    assert len(result.train) + len(result.test) == len(series)
    assert result.horizon == 4
    assert result.train.end_period + 1 == result.test.start_period
    assert list(result.test.periods) == [1998, 1999, 2000, 2001]
    assert list(result.test.values) == [18.0, 19.0, 20.0, 21.0]
    assert result.train.name == "births"


@pytest.mark.parametrize("horizon", [0, -1, 5, 6])
def test_split_rejects_invalid_horizon(horizon):
    series = TimeSeries.from_values([1.0, 2.0, 3.0, 4.0, 5.0])
    with pytest.raises(InvalidHorizonError):
        split(series, horizon)


def test_split_leaves_at_least_one_training_point():
    series = TimeSeries.from_values([1.0, 2.0, 3.0])
    result = split(series, 2)
    assert len(result.train) == 1


def test_time_series_rejects_gaps_and_non_finite_values():
    with pytest.raises(DataError):
        TimeSeries([2000, 2001, 2003], [1.0, 2.0, 3.0])
    with pytest.raises(DataError):
        TimeSeries([2000, 2001, 2002], [1.0, np.nan, 3.0])
    with pytest.raises(DataError):
        TimeSeries([2000, 2001], [1.0, 2.0, 3.0])


def test_time_series_is_read_only():
    series = TimeSeries([2000, 2001, 2002], [1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        series.values[0] = 10.0
    with pytest.raises(AttributeError):
        series.name = "other"


def test_pandas_round_trip_keeps_years():
    series = TimeSeries([2001, 2002, 2003], [5.0, 6.0, 7.0], name="births")
    s = series.to_series()
    assert list(s.index) == [2001, 2002, 2003]
    assert TimeSeries.from_series(s) == series
