# births_forecaster_src/series_utils.py

"""
Annual series containers and the train/test splitter.

A ``TimeSeries`` is an immutable pair of read-only numpy arrays: integer
periods (years) increasing by exactly one, and finite float values. Every
stage of the pipeline returns a new ``TimeSeries`` instead of mutating one.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from .exceptions import DataError, InvalidHorizonError

logger = logging.getLogger(__name__)


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class TimeSeries:
    """
    Ordered annual observations.

    Parameters
    ----------
    periods : array-like of int
        Years, strictly increasing by 1 with no gaps.
    values : array-like of float
        Observations aligned with ``periods``; must be finite.
    name : str, optional
        Label used in logs and exported tables.

    Raises
    ------
    DataError
        If the arrays differ in length, periods are not contiguous, or
        values contain NaN/inf.
    """

    periods: np.ndarray
    values: np.ndarray
    name: Optional[str] = None

    def __post_init__(self):
        periods = np.asarray(self.periods)
        values = np.asarray(self.values, dtype=float).ravel()
        if periods.ndim != 1:
            periods = periods.ravel()
        if len(periods) != len(values):
            raise DataError(
                f"periods and values differ in length ({len(periods)} != {len(values)})",
                {"stage": "series", "periods": len(periods), "values": len(values)},
            )
        if len(periods) and not np.all(np.equal(np.mod(periods, 1), 0)):
            raise DataError("periods must be whole years", {"stage": "series", "length": len(periods)})
        periods = periods.astype(np.int64)
        if len(periods) > 1 and not np.all(np.diff(periods) == 1):
            gaps = periods[1:][np.diff(periods) != 1]
            raise DataError(
                "periods must increase by exactly 1 with no gaps",
                {"stage": "series", "length": len(periods), "first_break": int(gaps[0])},
            )
        if not np.all(np.isfinite(values)):
            raise DataError("values must be finite", {"stage": "series", "length": len(values)})
        object.__setattr__(self, "periods", _readonly(periods))
        object.__setattr__(self, "values", _readonly(values))

    def __len__(self) -> int:
        return len(self.values)

    def __repr__(self) -> str:
        if len(self) == 0:
            return f"TimeSeries(name={self.name!r}, empty)"
        return (f"TimeSeries(name={self.name!r}, n={len(self)}, "
                f"{self.start_period}-{self.end_period})")

    def __eq__(self, other) -> bool:
        if not isinstance(other, TimeSeries):
            return NotImplemented
        return (np.array_equal(self.periods, other.periods)
                and np.array_equal(self.values, other.values))

    __hash__ = None

    @property
    def start_period(self) -> int:
        return int(self.periods[0])

    @property
    def end_period(self) -> int:
        return int(self.periods[-1])

    @property
    def last_value(self) -> float:
        return float(self.values[-1])

    def slice(self, start: Optional[int] = None, stop: Optional[int] = None) -> "TimeSeries":
        """Positional slice returning a new series."""
        return TimeSeries(self.periods[start:stop], self.values[start:stop], self.name)

    def with_values(self, values: Iterable[float], name: Optional[str] = None) -> "TimeSeries":
        """Same periods, new values (e.g. after a log transform)."""
        return TimeSeries(self.periods, np.asarray(values, dtype=float), name or self.name)

    def to_series(self) -> pd.Series:
        """Return a ``pandas.Series`` indexed by year."""
        return pd.Series(np.array(self.values), index=pd.Index(np.array(self.periods), name="year"),
                         name=self.name)

    @classmethod
    def from_series(cls, series: pd.Series, name: Optional[str] = None) -> "TimeSeries":
        """Build from a year-indexed ``pandas.Series`` (sorted by year first)."""
        s = series.sort_index()
        return cls(np.asarray(s.index), np.asarray(s.values, dtype=float), name or s.name)

    @classmethod
    def from_values(cls, values: Iterable[float], start_period: int = 1,
                    name: Optional[str] = None) -> "TimeSeries":
        """Build a contiguous series starting at ``start_period``."""
        vals = np.asarray(list(values), dtype=float)
        return cls(np.arange(start_period, start_period + len(vals)), vals, name)


@dataclass(frozen=True)
class Split:
    """Chronological train/test partition of a series."""

    train: TimeSeries
    test: TimeSeries

    @property
    def horizon(self) -> int:
        return len(self.test)


def split(series: TimeSeries, horizon: Union[int, np.integer]) -> Split:
    """
    Hold out the final ``horizon`` observations as the test window.

    Parameters
    ----------
    series : TimeSeries
        Full series to partition.
    horizon : int
        Number of trailing observations in the test set.

    Returns
    -------
    Split
        ``train`` holds everything before the test window.

    Raises
    ------
    InvalidHorizonError
        If ``horizon < 1`` or ``horizon >= len(series)``.
    """
    horizon = int(horizon)
    n = len(series)
    if horizon < 1:
        raise InvalidHorizonError(horizon)
    if n <= horizon:
        raise InvalidHorizonError(horizon, n)

    cut = n - horizon
    result = Split(train=series.slice(None, cut), test=series.slice(cut, None))
    logger.info("Split %s: train %d-%d (n=%d), test %d-%d (h=%d)",
                series.name or "series", result.train.start_period, result.train.end_period,
                len(result.train), result.test.start_period, result.test.end_period, horizon)
    return result
