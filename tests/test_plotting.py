from pathlib import Path

import numpy as np
import pandas as pd

from births_forecaster_src.diagnostics_utils import analyze
from births_forecaster_src.plotting_utils import plot_correlograms, plot_series
from births_forecaster_src.series_utils import TimeSeries
from births_forecaster_src.transform_utils import difference


def test_correlograms_drawn_from_series(tmp_path: Path):
    rng = np.random.default_rng(2)
    series = TimeSeries.from_values(np.cumsum(rng.normal(size=40)), start_period=1980, name="births")
    out = tmp_path / "figs" / "Correlogram_levels.png"
    plot_correlograms(series, analyze(series), out, "Levels")
    assert out.exists() and out.stat().st_size > 0

    diffed = difference(series)
    out_diff = tmp_path / "figs" / "Correlogram_diff1.png"
    plot_correlograms(diffed, analyze(diffed), out_diff)
    assert out_diff.exists()


def test_correlograms_on_short_series(tmp_path: Path):
    series = TimeSeries.from_values([3.0, 1.0, 4.0, 1.0, 5.0, 9.0, 2.0, 6.0], start_period=2000)
    report = analyze(series)
    out = tmp_path / "short.png"
    plot_correlograms(series, report, out)

    assert len(report.pacf) < len(series) // 2
    assert out.exists()


def test_series_plot_accepts_year_indexed_rates_with_gaps(tmp_path: Path):
    rates = pd.Series([1.82, 1.79, 1.75, 1.71], index=[1990, 1991, 1994, 1995], name="fertility")
    out = tmp_path / "Fertility.png"
    plot_series(rates, out, ylabel="Total fertility rate")
    assert out.exists()
