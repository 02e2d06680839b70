# births_forecaster_src/plotting_utils.py

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Mapping, Union
import logging

from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

from .diagnostics_utils import StationarityReport
from .file_utils import ensure_dir
from .forecasting_utils import ForecastResult
from .series_utils import TimeSeries

logger = logging.getLogger(__name__)

COLORS = ["tab:red", "tab:blue", "tab:green", "tab:orange", "tab:purple"]


def plot_series(series: Union[TimeSeries, pd.Series], out_path: Path, ylabel: str = "Live births") -> None:
    """
    Render and save an annual series.

    Parameters
    ----------
    series : TimeSeries or pd.Series
        Annual observations; a pandas Series is indexed by year and may skip years
    out_path : Path
        File path to save the rendered PNG (parents are created if missing)
    ylabel : str, default="Live births"
        Y-axis label
    """
    if isinstance(series, TimeSeries):
        periods, values, name = series.periods, series.values, series.name
    else:
        periods, values, name = np.asarray(series.index), np.asarray(series, dtype=float), series.name
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots()
    ax.plot(periods, values, color="black", linewidth=1)
    ax.set_xlabel("Year")
    ax.set_ylabel(ylabel)
    ax.set_title(f"{name or 'series'} {periods[0]}-{periods[-1]}")
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_correlograms(series: TimeSeries, report: StationarityReport, out_path: Path, title: str = "") -> None:
    """
    ACF and PACF of ``series`` without lag 0, with statsmodels' 95% bands.

    Lag bounds are taken from ``report`` so the figure matches the logged
    diagnostics; the PACF bound already respects ``nlags < n // 2``.
    """
    ensure_dir(out_path.parent)
    x = np.asarray(series.values, dtype=float)
    fig, axes = plt.subplots(2, 1, figsize=(8, 6), dpi=150)
    plot_acf(x, ax=axes[0], lags=max(len(report.acf), 1), zero=False)
    if len(report.pacf):
        plot_pacf(x, ax=axes[1], lags=len(report.pacf), zero=False, method="ywadjusted")
    else:
        axes[1].set_axis_off()
    if title:
        fig.suptitle(title)
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_forecast_comparison(train: TimeSeries,
                             test: TimeSeries,
                             forecasts: Mapping[str, ForecastResult],
                             out_path: Path,
                             title: str = "Hold-out forecasts") -> None:
    """
    Overlay each model's hold-out forecast on the actual series.

    Parameters
    ----------
    train, test : TimeSeries
        Training history and held-out actuals
    forecasts : Mapping[str, ForecastResult]
        Model id -> forecast over the test periods
    out_path : Path
        Output file path for the plot
    """
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4.5))

    ax.plot(train.periods, train.values, color="black", linewidth=1, label="train")
    ax.plot(test.periods, test.values, color="black", linewidth=1.5, linestyle=":", label="actual")

    for i, (model_id, fc) in enumerate(forecasts.items()):
        color = COLORS[i % len(COLORS)]
        ax.plot(fc.periods, fc.point, color=color, linestyle="--", label=model_id)

    ax.set_xlabel("Year")
    ax.set_ylabel(train.name or "value")
    ax.set_title(title)
    ax.legend()
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)


def plot_final_forecast(series: TimeSeries, forecast: ForecastResult, out_path: Path) -> None:
    """History followed by the refit model's forecast and its prediction interval."""
    ensure_dir(out_path.parent)
    fig, ax = plt.subplots(figsize=(9, 4.5))

    ax.plot(series.periods, series.values, color="black", linewidth=1, label="observed")
    ax.plot(forecast.periods, forecast.point, color="tab:red", linewidth=1.5, label=f"{forecast.model_id} forecast")
    ax.fill_between(forecast.periods, forecast.lower, forecast.upper, color="tab:red", alpha=0.2,
                    label=f"{forecast.level:g}% interval")

    ax.set_xlabel("Year")
    ax.set_ylabel(series.name or "value")
    ax.set_title(f"{forecast.model_id} forecast {forecast.periods[0]}-{forecast.periods[-1]}")
    ax.legend(loc="best")
    plt.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)
    logger.info("Saved final forecast figure: %s", out_path)
