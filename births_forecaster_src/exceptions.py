# births_forecaster_src/exceptions.py

"""
Exception hierarchy for the births forecaster.

Every error carries a ``details`` mapping naming the stage that failed and the
shape of the offending input (series length, horizon, order, ...), so log
lines and tracebacks are enough to diagnose a failed run.
"""

from typing import Any, Dict, Optional


class ForecasterError(Exception):
    """Base exception for all births forecaster errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(ForecasterError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, config_path: str = None, key: str = None):
        details = {}
        if config_path:
            details["config_path"] = config_path
        if key:
            details["key"] = key
        super().__init__(message, details)


class DataError(ForecasterError):
    """Malformed or missing input data."""


class InsufficientDataError(ForecasterError):
    """Series too short for the requested operation."""

    def __init__(self, message: str, stage: str = None, length: int = None, required: int = None):
        details = {}
        if stage:
            details["stage"] = stage
        if length is not None:
            details["length"] = length
        if required is not None:
            details["required"] = required
        super().__init__(message, details)


class InvalidHorizonError(ForecasterError):
    """Horizon is not positive or leaves no training data."""

    def __init__(self, horizon: int, length: Optional[int] = None):
        if length is None:
            message = f"Horizon must be >= 1, got {horizon}"
        else:
            message = f"Horizon {horizon} is invalid for a series of length {length}"
        super().__init__(message, {"horizon": horizon, "length": length})
        self.horizon = horizon
        self.length = length


class ModelFitError(ForecasterError):
    """A model could not be fitted (too little data, no convergence, no admissible order)."""

    def __init__(self, message: str, model: str = None, length: int = None, **details):
        info = {}
        if model:
            info["model"] = model
        if length is not None:
            info["length"] = length
        info.update(details)
        super().__init__(message, info)


class NonInvertibleModelError(ModelFitError):
    """No candidate order satisfied the stationarity/invertibility constraints."""


class PeriodMismatchError(ForecasterError):
    """Forecast periods do not line up with the actual periods."""

    def __init__(self, expected, actual):
        expected = [int(p) for p in expected]
        actual = [int(p) for p in actual]
        message = f"Forecast periods {expected} do not match actual periods {actual}"
        super().__init__(message, {"expected_length": len(expected), "actual_length": len(actual)})
        self.expected = expected
        self.actual = actual


class DivisionByZeroError(ForecasterError):
    """A percentage metric is undefined because an actual value is zero."""

    def __init__(self, metric: str, periods):
        periods = [int(p) for p in periods]
        message = f"{metric} is undefined: actual value is zero at periods {periods}"
        super().__init__(message, {"metric": metric, "periods": periods})
        self.metric = metric
        self.periods = periods
