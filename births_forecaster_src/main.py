# births_forecaster_src/main.py

"""
Forecast evaluation of annual UK live births.

This is the main entry point of the births forecasting system.

Purpose
-------
- Load the vital-statistics table (Excel sheet or CSV) and clean it into a
  contiguous annual births series plus the total fertility rate
- Run stationarity diagnostics (ACF/PACF, ADF) on the levels and on the first
  differences
- Hold out the last ``horizon`` years, fit naive, ETS and ARIMA models on the
  remainder and score each against the hold-out (RMSE, MAE, MAPE, ME, MPE, MASE)
- Rank the models, refit the best on the full series and forecast ``horizon``
  years ahead; check its residuals with a Ljung-Box test
- Welch t-test for a shift in the fertility rate before/after ``split_year``

Configuration-Driven Workflow
-----------------------------
Settings are read from ``config/forecaster.yaml`` (or ``--config``). CLI
arguments override configuration values; built-in defaults apply last.
"""

import argparse
import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd

from .config_utils import PipelineSettings, initialize_config
from .data_utils import BIRTHS, FERTILITY, YEAR, births_series, load_vital_statistics
from .diagnostics_utils import LjungBoxResult, StationarityReport, analyze, ljung_box
from .exceptions import (
    ConfigurationError, DataError, ForecasterError, InsufficientDataError, ModelFitError
)
from .file_utils import append_run_summary, resolve_path, write_comparison_csv, write_forecast_csv
from .forecasting_utils import ARIMAFit, FittedModel, ForecastModel, ForecastResult, build_models
from .hypothesis_utils import TTestResult, split_by_year, two_sample_test
from .metrics_utils import AccuracyReport, compare, comparison_frame, evaluate
from .parsing_utils import parse_sheet_arg, validate_log_level, validate_metric
from .series_utils import Split, TimeSeries, split
from .transform_utils import difference

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PipelineResult:
    """Everything a run produces, stage by stage."""

    settings: PipelineSettings
    series: TimeSeries
    level_diagnostics: Optional[StationarityReport]
    difference_diagnostics: Optional[StationarityReport]
    split: Split
    backtest_forecasts: Dict[str, ForecastResult]
    reports: Dict[str, AccuracyReport]
    ranking: List[Tuple[str, AccuracyReport]]
    best_model: str
    final_fit: FittedModel
    final_forecast: ForecastResult
    residual_check: Optional[LjungBoxResult] = None
    fertility_test: Optional[TTestResult] = None
    failures: Dict[str, str] = field(default_factory=dict)
    fertility: Optional[pd.Series] = None

    @property
    def comparison(self) -> pd.DataFrame:
        return comparison_frame(self.reports, self.settings.metric)


def _diagnose(series: TimeSeries, significance: float) -> Optional[StationarityReport]:
    try:
        report = analyze(series, significance=significance)
    except (InsufficientDataError, DataError) as e:
        logger.warning("Stationarity diagnostics skipped for %s: %s", series.name or "series", e)
        return None
    logger.info("%s: %s", series.name or "series", report.interpretation)
    return report


def run_diagnostics(series: TimeSeries,
                    significance: float) -> Tuple[Optional[StationarityReport], Optional[StationarityReport]]:
    """
    Diagnose the levels and the first differences.

    The differenced series is only inspected; models receive the levels and
    choose their own differencing.
    """
    level_report = _diagnose(series, significance)
    try:
        diffed = difference(series, 1)
    except InsufficientDataError as e:
        logger.warning("First difference not available: %s", e)
        return level_report, None
    return level_report, _diagnose(diffed, significance)


def backtest_models(models: Mapping[str, ForecastModel],
                    data_split: Split) -> Tuple[Dict[str, ForecastResult], Dict[str, AccuracyReport], Dict[str, str]]:
    """
    Fit every model on the training window and score it on the hold-out.

    A model that fails at fit, forecast or evaluation is logged and left out;
    its error message is returned in the failures mapping.

    Raises
    ------
    ModelFitError
        If no model produced an accuracy report
    """
    train, test = data_split.train, data_split.test
    forecasts: Dict[str, ForecastResult] = {}
    reports: Dict[str, AccuracyReport] = {}
    failures: Dict[str, str] = {}

    for model_id, model in models.items():
        try:
            _, fc = model.fit_forecast(train, data_split.horizon)
            report = evaluate(fc, test, train=train)
        except Exception as e:
            logger.error("%s skipped during back-test (train n=%d, horizon=%d): %s",
                         model_id, len(train), data_split.horizon, e)
            failures[model_id] = str(e)
            continue
        forecasts[model_id] = fc
        reports[model_id] = report

    if not reports:
        raise ModelFitError("Every model failed during the back-test", length=len(train),
                            horizon=data_split.horizon, failures=failures)
    return forecasts, reports, failures


def refit_best(models: Mapping[str, ForecastModel],
               ranking: List[Tuple[str, AccuracyReport]],
               series: TimeSeries,
               horizon: int) -> Tuple[str, FittedModel, ForecastResult]:
    """
    Refit the top-ranked model on the full series and forecast ``horizon`` years.

    If the refit fails, the next model in the ranking is tried.
    """
    errors = {}
    for model_id, _ in ranking:
        try:
            fitted, fc = models[model_id].fit_forecast(series, horizon)
        except Exception as e:
            logger.error("Refit of %s on the full series (n=%d) failed: %s", model_id, len(series), e)
            errors[model_id] = str(e)
            continue
        logger.info("Final model: %s (%s), forecast %d-%d",
                    model_id, fitted.description, fc.periods[0], fc.periods[-1])
        return model_id, fitted, fc
    raise ModelFitError("No ranked model could be refitted on the full series",
                        length=len(series), failures=errors)


def check_residuals(fitted: FittedModel, significance: float) -> Optional[LjungBoxResult]:
    model_df = 0
    if isinstance(fitted, ARIMAFit):
        model_df = fitted.order[0] + fitted.order[2]
    try:
        result = ljung_box(fitted.residuals, model_df=model_df)
    except InsufficientDataError as e:
        logger.warning("Residual check skipped: %s", e)
        return None
    logger.info("Ljung-Box on %s residuals (lags=%d): Q=%.3f, p-value=%.4f -> %s",
                fitted.model_id, result.lags, result.statistic, result.p_value,
                "white noise" if result.is_white_noise(significance) else "autocorrelated")
    return result


def fertility_shift_test(frame: pd.DataFrame, split_year: int) -> Optional[TTestResult]:
    """Welch test of mean fertility up to ``split_year`` against after it."""
    if FERTILITY not in frame.columns or frame[FERTILITY].isna().all():
        logger.warning("No fertility data; hypothesis test skipped")
        return None
    early, late = split_by_year(frame, FERTILITY, split_year)
    try:
        return two_sample_test(early, late)
    except (InsufficientDataError, DataError) as e:
        logger.warning("Fertility test around %d skipped: %s", split_year, e)
        return None


def fertility_series(frame: pd.DataFrame) -> Optional[pd.Series]:
    """Year-indexed fertility rates with missing years dropped, or None when there are none."""
    if FERTILITY not in frame.columns:
        return None
    rates = frame.dropna(subset=[FERTILITY]).set_index(YEAR)[FERTILITY].astype(float)
    return rates if len(rates) else None


def run_pipeline(frame: pd.DataFrame,
                 settings: Optional[PipelineSettings] = None,
                 models: Optional[Mapping[str, ForecastModel]] = None) -> PipelineResult:
    """
    Run every stage on an already cleaned frame.

    Parameters
    ----------
    frame : pd.DataFrame
        Columns ``year``, ``births`` and optionally ``fertility``
    settings : PipelineSettings, optional
        Defaults to ``PipelineSettings()``
    models : Mapping[str, ForecastModel], optional
        Competing models; defaults to naive, ETS and ARIMA built from ``settings``

    Returns
    -------
    PipelineResult
    """
    settings = settings or PipelineSettings()
    if models is None:
        models = build_models(level=settings.interval_level, max_p=settings.max_p, max_q=settings.max_q,
                              max_d=settings.max_d, significance=settings.significance_threshold,
                              n_jobs=settings.n_jobs)

    series = births_series(frame, BIRTHS)
    logger.info("Births series: n=%d, %d-%d", len(series), series.start_period, series.end_period)

    level_report, diff_report = run_diagnostics(series, settings.significance_threshold)

    data_split = split(series, settings.horizon)
    forecasts, reports, failures = backtest_models(models, data_split)

    ranking = compare(reports, settings.metric)
    table = comparison_frame(reports, settings.metric)
    logger.info("Model comparison (ranked by %s):\n%s", settings.metric, table.to_string())

    best_id, final_fit, final_fc = refit_best(models, ranking, series, settings.horizon)
    residual_check = check_residuals(final_fit, settings.significance_threshold)
    fertility_test = fertility_shift_test(frame, settings.split_year)

    return PipelineResult(
        settings=settings,
        series=series,
        level_diagnostics=level_report,
        difference_diagnostics=diff_report,
        split=data_split,
        backtest_forecasts=forecasts,
        reports=reports,
        ranking=ranking,
        best_model=best_id,
        final_fit=final_fit,
        final_forecast=final_fc,
        residual_check=residual_check,
        fertility_test=fertility_test,
        failures=failures,
        fertility=fertility_series(frame),
    )


def write_outputs(result: PipelineResult, output_dir: Optional[Path], figures_dir: Optional[Path]) -> None:
    """Optional CSV and figure exports."""
    if output_dir is not None:
        write_comparison_csv(result.reports, output_dir / "model_comparison.csv", result.settings.metric)
        write_forecast_csv(result.final_forecast, output_dir / "final_forecast.csv")
        for model_id, fc in result.backtest_forecasts.items():
            write_forecast_csv(fc, output_dir / f"backtest_{model_id}.csv")

    if figures_dir is not None:
        from .plotting_utils import (
            plot_correlograms, plot_final_forecast, plot_forecast_comparison, plot_series
        )
        plot_series(result.series, figures_dir / "Births.png")
        if result.fertility is not None:
            plot_series(result.fertility, figures_dir / "Fertility.png", ylabel="Total fertility rate")
        if result.level_diagnostics is not None:
            plot_correlograms(result.series, result.level_diagnostics,
                              figures_dir / "Correlogram_levels.png", "Levels")
        if result.difference_diagnostics is not None:
            plot_correlograms(difference(result.series), result.difference_diagnostics,
                              figures_dir / "Correlogram_diff1.png", "First differences")
        plot_forecast_comparison(result.split.train, result.split.test, result.backtest_forecasts,
                                 figures_dir / "Backtest.png",
                                 f"Hold-out forecasts ({result.split.horizon} years)")
        plot_final_forecast(result.series, result.final_forecast, figures_dir / "FinalForecast.png")


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Numeric settings default to ``None`` so that configuration file values
    apply unless overridden on the command line.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Forecast evaluation of annual UK live births (naive vs ETS vs ARIMA)."
    )

    # Data and output arguments
    parser.add_argument(
        "--data", type=str, default="data/births_uk.xlsx",
        help="Path to the vital-statistics workbook (.xlsx) or a CSV export of the births sheet."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML configuration file. Defaults to config/forecaster.yaml."
    )
    parser.add_argument(
        "--sheet", type=str, default=None,
        help="Workbook sheet name or index (ignored for CSV)."
    )
    parser.add_argument(
        "--skip-rows", type=int, default=None,
        help="Leading note rows to skip before the header row."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="If provided, write comparison and forecast CSVs to this directory."
    )
    parser.add_argument(
        "--figures-dir", type=str, default=None,
        help="If provided, write figures to this directory."
    )
    parser.add_argument(
        "--summary-csv", type=str, default=None,
        help="If provided, append a one-line run summary to this CSV."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )

    # Evaluation controls
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Years held out for the back-test and forecast after the final refit."
    )
    parser.add_argument(
        "--metric", type=validate_metric, default=None,
        help="Ranking metric: RMSE, MAE or MAPE."
    )
    parser.add_argument(
        "--significance-threshold", type=float, default=None,
        help="ADF p-value below which a series is treated as stationary."
    )
    parser.add_argument(
        "--split-year", type=int, default=None,
        help="Last year of the early fertility sample in the Welch test."
    )

    # Model controls
    parser.add_argument(
        "--interval-level", type=float, default=None,
        help="Prediction interval coverage in percent (e.g., 95)."
    )
    parser.add_argument("--max-p", type=int, default=None, help="Largest AR order searched.")
    parser.add_argument("--max-q", type=int, default=None, help="Largest MA order searched.")
    parser.add_argument("--max-d", type=int, default=None, help="Largest differencing order for ARIMA.")
    parser.add_argument(
        "--n-jobs", type=int, default=None,
        help="Worker processes for the ETS/ARIMA candidate search."
    )

    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from statsmodels.tools.sm_exceptions import ConvergenceWarning
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv: Optional[List[str]] = None) -> PipelineResult:
    """
    Main entry point for the births forecasting application.

    Exits with status 2 on invalid configuration and 1 when the data cannot
    be loaded or no model can be fitted.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    base_dir = Path(__file__).resolve().parent.parent
    config_path = resolve_path(args.config, base_dir) if args.config else None
    initialize_config(config_path)

    try:
        settings = PipelineSettings.from_sources(args)
    except ConfigurationError as e:
        logger.error("Invalid settings: %s", e)
        raise SystemExit(2) from e
    logger.info("Settings: %s", settings.to_dict())

    data_path = resolve_path(args.data, base_dir)
    try:
        frame = load_vital_statistics(
            data_path,
            sheet_name=parse_sheet_arg(settings.sheet_name),
            skip_rows=settings.skip_rows,
            year_column=settings.year_column,
            births_column=settings.births_column,
            fertility_column=settings.fertility_column,
        )
        result = run_pipeline(frame, settings)
    except ForecasterError as e:
        logger.error("Run aborted: %s", e)
        raise SystemExit(1) from e

    output_dir = resolve_path(args.output_dir, base_dir) if args.output_dir else None
    figures_dir = resolve_path(args.figures_dir, base_dir) if args.figures_dir else None
    write_outputs(result, output_dir, figures_dir)

    best_report = result.reports[result.best_model]
    logger.info("Best model by %s: %s (%.3f)", settings.metric, result.best_model, best_report[settings.metric])
    logger.info("Final forecast:\n%s", result.final_forecast.to_frame().to_string())
    if result.fertility_test is not None:
        logger.info("Fertility before/after %d: %s", settings.split_year, result.fertility_test.summary())

    if args.summary_csv:
        append_run_summary(resolve_path(args.summary_csv, base_dir), {
            "input": str(data_path),
            "n": len(result.series),
            "train_len": len(result.split.train),
            "test_len": len(result.split.test),
            "metric": settings.metric,
            "best_model": result.best_model,
            "best_value": best_report[settings.metric],
            "final_first_year": int(result.final_forecast.periods[0]),
            "final_last_year": int(result.final_forecast.periods[-1]),
            "welch_t": result.fertility_test.statistic if result.fertility_test else "",
            "welch_p": result.fertility_test.p_value if result.fertility_test else "",
        })
    return result


if __name__ == "__main__":
    main()
