# births_forecaster_src/__init__.py

"""
Births Forecaster - Annual Time Series Forecast Evaluation

This package compares naive, exponential smoothing (ETS) and ARIMA forecasts
of annual UK live births on a held-out window, refits the best model on the
full series and tests for a shift in the total fertility rate.

Key Components
--------------
- config_utils: Configuration management and CLI override support
- data_utils: Loading and cleaning of the vital-statistics table
- series_utils: Immutable annual series and the train/test split
- transform_utils: Differencing, integration and log transform
- diagnostics_utils: ACF/PACF, ADF unit-root and Ljung-Box tests
- forecasting_utils: Naive, ETS and ARIMA models with AICc order search
- metrics_utils: Accuracy metrics and model ranking
- hypothesis_utils: Welch two-sample t-test
- plotting_utils: Visualization and charting capabilities
- file_utils: File operations, CSV handling, and path utilities
- main: Main entry point and workflow orchestration

Usage
-----
The package can be used as a command-line tool or imported for programmatic use:

    # Command-line usage
    python -m births_forecaster_src.main --data data/births_uk.xlsx --horizon 10

    # Programmatic usage
    from births_forecaster_src import load_vital_statistics, run_pipeline
"""

__version__ = "1.0.0"
__author__ = "Births Forecaster Development Team"

# Import key functions for easy access
from .config_utils import initialize_config, get_config_value, PipelineSettings
from .data_utils import load_vital_statistics, births_series
from .series_utils import TimeSeries, split
from .diagnostics_utils import analyze
from .forecasting_utils import NaiveForecaster, ETSForecaster, ARIMAForecaster, build_models
from .metrics_utils import evaluate, compare
from .hypothesis_utils import two_sample_test
from .main import main, run_pipeline

__all__ = [
    # Core functionality
    "main",
    "run_pipeline",
    "initialize_config",
    "get_config_value",
    "PipelineSettings",
    "load_vital_statistics",
    "births_series",
    "TimeSeries",
    "split",
    "analyze",
    "NaiveForecaster",
    "ETSForecaster",
    "ARIMAForecaster",
    "build_models",
    "evaluate",
    "compare",
    "two_sample_test",
    # Version info
    "__version__",
    "__author__"
]
