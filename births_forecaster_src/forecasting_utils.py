# births_forecaster_src/forecasting_utils.py

"""
Forecasting models: naive, exponential smoothing (ETS) and ARIMA.

Each model exposes ``fit(train) -> FittedModel`` and
``forecast(fitted, horizon) -> ForecastResult``. ETS and ARIMA structure is
chosen by an explicit enumerated search: every candidate is fitted by maximum
likelihood and scored with the small-sample corrected AIC

    AICc = -2 * loglik + 2k + 2k(k + 1) / (n - k - 1)

and the candidate with the lowest AICc wins, ties going to the earlier
candidate. Scoring can run in a process pool; selection only happens once all
candidates are scored, so the outcome does not depend on ``n_jobs``.
"""

import inspect
import logging
import warnings
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from itertools import product, repeat
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.exponential_smoothing.ets import ETSModel
from tqdm.auto import tqdm

from .exceptions import InvalidHorizonError, ModelFitError, NonInvertibleModelError
from .series_utils import TimeSeries
from .transform_utils import log_transform, select_differencing_order

logger = logging.getLogger(__name__)

# AR/MA roots must lie at least this far outside the unit circle
ROOT_TOLERANCE = 1.01
ETS_SIMULATION_SEED = 20240101


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class ForecastResult:
    """Point forecasts with prediction-interval bounds, one row per period."""

    model_id: str
    periods: np.ndarray
    point: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    level: float = 95.0

    def __post_init__(self):
        arrays = {}
        for name in ("periods", "point", "lower", "upper"):
            arr = np.array(getattr(self, name), dtype=np.int64 if name == "periods" else float)
            arr.setflags(write=False)
            arrays[name] = arr
        lengths = {len(a) for a in arrays.values()}
        if len(lengths) != 1:
            raise ValueError(f"ForecastResult arrays differ in length: {sorted(lengths)}")
        for name, arr in arrays.items():
            object.__setattr__(self, name, arr)

    def __len__(self) -> int:
        return len(self.point)

    def rows(self) -> List[Tuple[int, float, float, float]]:
        """(period, point_estimate, lower_bound, upper_bound) tuples."""
        return [(int(p), float(m), float(lo), float(hi))
                for p, m, lo, hi in zip(self.periods, self.point, self.lower, self.upper)]

    def to_frame(self) -> pd.DataFrame:
        level = int(self.level) if float(self.level).is_integer() else self.level
        return pd.DataFrame(
            {
                "point": self.point,
                f"lower_{level}": self.lower,
                f"upper_{level}": self.upper,
            },
            index=pd.Index(self.periods, name="year"),
        )


@dataclass(frozen=True, eq=False)
class FittedModel:
    """State captured by ``fit``; subclasses add the variant-specific pieces."""

    model_id: str
    description: str
    last_period: int
    nobs: int
    residuals: np.ndarray
    aicc: float = float("nan")
    search_table: Optional[pd.DataFrame] = None


@dataclass(frozen=True, eq=False)
class NaiveFit(FittedModel):
    last_value: float = float("nan")
    sigma: float = float("nan")


@dataclass(frozen=True, eq=False)
class ETSFit(FittedModel):
    spec: Tuple[str, Optional[str], bool] = ("add", None, False)
    results: object = None


@dataclass(frozen=True, eq=False)
class ARIMAFit(FittedModel):
    order: Tuple[int, int, int] = (0, 0, 0)
    trend: str = "n"
    results: object = None


@dataclass(frozen=True)
class CandidateScore:
    """Outcome of fitting one candidate structure."""

    spec: tuple
    aicc: float = float("inf")
    loglik: float = float("nan")
    n_params: int = 0
    admissible: bool = False
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Information criterion and candidate search
# ---------------------------------------------------------------------------

def aicc(loglik: float, n_params: int, nobs: int) -> float:
    """
    Small-sample corrected Akaike information criterion.

    Returns ``inf`` when ``nobs - n_params - 1 <= 0`` (correction undefined).
    """
    k = float(n_params)
    denom = nobs - k - 1.0
    if denom <= 0 or not np.isfinite(loglik):
        return float("inf")
    return float(-2.0 * loglik + 2.0 * k + (2.0 * k * (k + 1.0)) / denom)


def score_candidates(score_fn: Callable[[np.ndarray, tuple], CandidateScore],
                     values: np.ndarray,
                     candidates: Sequence[tuple],
                     n_jobs: int = 1,
                     desc: str = "Model search") -> List[CandidateScore]:
    """
    Score every candidate; order of the returned list matches ``candidates``.

    ``score_fn`` must be a module-level function so it can be sent to worker
    processes when ``n_jobs > 1``.
    """
    if n_jobs > 1 and len(candidates) > 1:
        with ProcessPoolExecutor(max_workers=n_jobs) as pool:
            return list(pool.map(score_fn, repeat(values), candidates))
    return [score_fn(values, c) for c in tqdm(candidates, desc=desc, leave=False)]


def select_best(scores: Sequence[CandidateScore]) -> Optional[CandidateScore]:
    """Lowest finite AICc among admissible candidates; earliest wins ties."""
    best = None
    for score in scores:
        if not score.admissible or not np.isfinite(score.aicc):
            continue
        if best is None or score.aicc < best.aicc:
            best = score
    return best


def scores_to_frame(scores: Sequence[CandidateScore], spec_label: str) -> pd.DataFrame:
    """Candidate table sorted by AICc (failed fits last)."""
    frame = pd.DataFrame(
        [[s.spec, s.aicc, s.loglik, s.n_params, s.admissible, s.error] for s in scores],
        columns=[spec_label, "AICc", "loglik", "k", "admissible", "error"],
    )
    return frame.sort_values(by="AICc", ascending=True, kind="mergesort").reset_index(drop=True)


def _z_value(level: float) -> float:
    return float(stats.norm.ppf(0.5 + level / 200.0))


def _forecast_periods(fitted: FittedModel, horizon: int) -> np.ndarray:
    return np.arange(fitted.last_period + 1, fitted.last_period + 1 + horizon)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ForecastModel:
    """Common interface for the forecasting variants."""

    model_id = "model"

    def __init__(self, level: float = 95.0):
        if not 0.0 < level < 100.0:
            raise ValueError(f"Interval level must be in (0, 100), got {level}")
        self.level = float(level)

    def fit(self, train: TimeSeries) -> FittedModel:
        raise NotImplementedError

    def forecast(self, fitted: FittedModel, horizon: int) -> ForecastResult:
        raise NotImplementedError

    def fit_forecast(self, train: TimeSeries, horizon: int) -> Tuple[FittedModel, ForecastResult]:
        self._check_horizon(horizon)
        fitted = self.fit(train)
        return fitted, self.forecast(fitted, horizon)

    @staticmethod
    def _check_horizon(horizon: int) -> int:
        horizon = int(horizon)
        if horizon < 1:
            raise InvalidHorizonError(horizon)
        return horizon

    def _check_fitted(self, fitted: FittedModel, fit_type: type) -> None:
        if not isinstance(fitted, fit_type):
            raise TypeError(f"{type(self).__name__} cannot forecast from {type(fitted).__name__}")

    def __repr__(self) -> str:
        return f"{type(self).__name__}(level={self.level:g})"


class NaiveForecaster(ForecastModel):
    """
    Random-walk forecast: every future value equals the last observation.

    The interval half-width at step ``h`` is ``z * sigma * sqrt(h)`` where
    ``sigma`` is the root mean square of the one-step in-sample residuals
    ``y_t - y_{t-1}``.
    """

    model_id = "Naive"

    def fit(self, train: TimeSeries) -> NaiveFit:
        n = len(train)
        if n < 2:
            raise ModelFitError("Naive model needs at least 2 observations for its residual variance",
                                model=self.model_id, length=n, required=2)
        resid = np.diff(train.values)
        sigma = float(np.sqrt(np.mean(resid ** 2)))
        return NaiveFit(
            model_id=self.model_id,
            description="Naive (last value)",
            last_period=train.end_period,
            nobs=n,
            residuals=resid,
            last_value=train.last_value,
            sigma=sigma,
        )

    def forecast(self, fitted: NaiveFit, horizon: int) -> ForecastResult:
        horizon = self._check_horizon(horizon)
        self._check_fitted(fitted, NaiveFit)
        steps = np.arange(1, horizon + 1, dtype=float)
        point = np.full(horizon, fitted.last_value)
        half_width = _z_value(self.level) * fitted.sigma * np.sqrt(steps)
        return ForecastResult(self.model_id, _forecast_periods(fitted, horizon), point,
                              point - half_width, point + half_width, self.level)


# ETS candidates: (error, trend, damped); seasonality is always none for annual data
ETS_CANDIDATES: List[Tuple[str, Optional[str], bool]] = [
    (error, trend, damped)
    for error, (trend, damped) in product(("add", "mul"), ((None, False), ("add", False), ("add", True)))
]


def ets_label(spec: Tuple[str, Optional[str], bool]) -> str:
    """Compact ETS(E,T,N) label, e.g. ``ETS(M,Ad,N)``."""
    error, trend, damped = spec
    e = "A" if error == "add" else "M"
    t = "N" if trend is None else ("Ad" if damped else "A")
    return f"ETS({e},{t},N)"


def _ets_param_count(spec: Tuple[str, Optional[str], bool]) -> int:
    _, trend, damped = spec
    # alpha + l0, then beta + b0, then phi
    return 2 + (2 if trend else 0) + (1 if damped else 0)


def _fit_ets(values: np.ndarray, spec: Tuple[str, Optional[str], bool]):
    error, trend, damped = spec
    # get_prediction needs an indexed endog; a RangeIndex keeps out-of-sample steps at nobs onwards
    endog = pd.Series(np.asarray(values, dtype=float))
    model = ETSModel(endog, error=error, trend=trend, damped_trend=damped, seasonal=None,
                     initialization_method="estimated")
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        return model.fit(disp=False)


def simulation_seed_kwargs(results, seed: int = ETS_SIMULATION_SEED) -> Dict[str, int]:
    """
    Keyword that seeds ETS interval simulation.

    statsmodels 0.15 renamed ``simulate(random_state=...)`` to ``rng``; the
    installed signature decides which name is passed.
    """
    params = inspect.signature(results.simulate).parameters
    name = "rng" if "rng" in params else "random_state"
    return {name: seed}


def score_ets_candidate(values: np.ndarray, spec: Tuple[str, Optional[str], bool]) -> CandidateScore:
    """Fit one ETS structure and compute its AICc."""
    n = len(values)
    k = _ets_param_count(spec) + 1
    if spec[0] == "mul" and np.any(values <= 0):
        return CandidateScore(spec, error="multiplicative error needs positive data")
    if n <= k + 1:
        return CandidateScore(spec, n_params=k, error=f"needs more than {k + 1} observations")
    try:
        res = _fit_ets(values, spec)
    except Exception as e:
        logger.debug("ETS candidate %s failed: %s", spec, e)
        return CandidateScore(spec, n_params=k, error=str(e))
    k = len(res.params) + 1
    llf = float(res.llf)
    return CandidateScore(spec, aicc=aicc(llf, k, n), loglik=llf, n_params=k, admissible=np.isfinite(llf))


class ETSForecaster(ForecastModel):
    """
    Exponential smoothing state-space model with automatic structure selection.

    Searches error {additive, multiplicative} x trend {none, additive,
    additive damped}; smoothing parameters and initial states are estimated
    by maximum likelihood for every candidate.
    """

    model_id = "ETS"

    def __init__(self, level: float = 95.0, n_jobs: int = 1,
                 candidates: Optional[Sequence[Tuple[str, Optional[str], bool]]] = None):
        super().__init__(level)
        self.n_jobs = n_jobs
        self.candidates = list(candidates) if candidates is not None else list(ETS_CANDIDATES)

    def fit(self, train: TimeSeries) -> ETSFit:
        values = np.asarray(train.values, dtype=float)
        n = len(values)
        if n < 3:
            raise ModelFitError("ETS needs at least 3 observations", model=self.model_id, length=n, required=3)

        scores = score_candidates(score_ets_candidate, values, self.candidates, self.n_jobs, desc="ETS search")
        table = scores_to_frame(scores, "(error,trend,damped)")
        best = select_best(scores)
        if best is None:
            raise ModelFitError("No ETS candidate could be fitted", model=self.model_id, length=n,
                                candidates=len(self.candidates))
        logger.debug("ETS candidates by AICc:\n%s", table.head().to_string())

        label = ets_label(best.spec)
        try:
            res = _fit_ets(values, best.spec)
        except Exception as e:
            raise ModelFitError(f"Refitting {label} failed: {e}", model=self.model_id, length=n,
                                stage="fit", spec=best.spec) from e
        logger.info("Selected %s with AICc=%.3f (n=%d)", label, best.aicc, n)
        return ETSFit(
            model_id=self.model_id,
            description=label,
            last_period=train.end_period,
            nobs=n,
            residuals=values - np.asarray(res.fittedvalues, dtype=float),
            aicc=best.aicc,
            search_table=table,
            spec=best.spec,
            results=res,
        )

    def forecast(self, fitted: ETSFit, horizon: int) -> ForecastResult:
        horizon = self._check_horizon(horizon)
        self._check_fitted(fitted, ETSFit)
        start = fitted.nobs
        try:
            pred = fitted.results.get_prediction(start=start, end=start + horizon - 1,
                                                 **simulation_seed_kwargs(fitted.results))
            point = np.asarray(pred.predicted_mean, dtype=float)
            bounds = np.asarray(pred.pred_int(alpha=1.0 - self.level / 100.0), dtype=float)
        except Exception as e:
            raise ModelFitError(f"{fitted.description} forecast failed: {e}", model=self.model_id,
                                length=fitted.nobs, stage="forecast", horizon=horizon) from e
        # simulated quantiles may straddle the analytical point forecast
        lower = np.minimum(bounds[:, 0], point)
        upper = np.maximum(bounds[:, 1], point)
        return ForecastResult(self.model_id, _forecast_periods(fitted, horizon), point, lower, upper, self.level)


def arima_trend(d: int, with_constant: bool) -> str:
    """Constant for d=0, drift for d=1, nothing otherwise."""
    if not with_constant:
        return "n"
    return {0: "c", 1: "t"}.get(d, "n")


def _fit_arima(values: np.ndarray, order: Tuple[int, int, int], trend: str):
    model = ARIMA(values, order=order, trend=trend,
                  enforce_stationarity=True, enforce_invertibility=True)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", ConvergenceWarning)
        warnings.simplefilter("ignore", UserWarning)
        warnings.simplefilter("ignore", RuntimeWarning)
        return model.fit()


def roots_are_stable(results) -> bool:
    """True when every AR and MA root lies outside the unit circle (with tolerance)."""
    for roots in (getattr(results, "arroots", None), getattr(results, "maroots", None)):
        if roots is None:
            continue
        roots = np.asarray(roots)
        if roots.size and np.min(np.abs(roots)) <= ROOT_TOLERANCE:
            return False
    return True


def score_arima_candidate(values: np.ndarray, spec: Tuple[int, int, int, str]) -> CandidateScore:
    """Fit one ARIMA(p,d,q) with the given trend and compute its AICc."""
    p, d, q, trend = spec
    try:
        res = _fit_arima(values, (p, d, q), trend)
    except Exception as e:
        logger.debug("ARIMA candidate %s failed: %s", spec, e)
        return CandidateScore(spec, error=str(e))
    llf = float(res.llf)
    k = len(res.params)
    nobs = int(getattr(res, "nobs_effective", len(values) - d))
    stable = roots_are_stable(res)
    return CandidateScore(spec, aicc=aicc(llf, k, nobs), loglik=llf, n_params=k,
                          admissible=bool(stable and np.isfinite(llf)),
                          error=None if stable else "roots inside tolerance of unit circle")


class ARIMAForecaster(ForecastModel):
    """
    Non-seasonal ARIMA on the log scale with automatic order selection.

    The differencing order is found by repeated ADF testing (unless ``d`` is
    given); p and q are searched over ``0..max_p`` and ``0..max_q`` with and
    without a constant/drift term. Forecast means and interval bounds are
    exponentiated separately back to the original scale.
    """

    model_id = "ARIMA"

    def __init__(self, level: float = 95.0, max_p: int = 5, max_q: int = 5, max_d: int = 2,
                 d: Optional[int] = None, significance: float = 0.05, n_jobs: int = 1):
        super().__init__(level)
        self.max_p = max_p
        self.max_q = max_q
        self.max_d = max_d
        self.d = d
        self.significance = significance
        self.n_jobs = n_jobs

    def candidate_orders(self, n: int, d: int) -> List[Tuple[int, int, int, str]]:
        """Admissible (p, d, q, trend) candidates for a series of length ``n``."""
        out = []
        for p, q in product(range(self.max_p + 1), range(self.max_q + 1)):
            for with_constant in (True, False):
                trend = arima_trend(d, with_constant)
                if with_constant and trend == "n":
                    continue
                n_terms = p + d + q + (1 if trend != "n" else 0)
                if n > n_terms:
                    out.append((p, d, q, trend))
        return out

    def fit(self, train: TimeSeries) -> ARIMAFit:
        n = len(train)
        if np.any(train.values <= 0):
            raise ModelFitError("ARIMA on the log scale needs strictly positive data",
                                model=self.model_id, length=n)
        log_train = log_transform(train)

        d = self.d if self.d is not None else select_differencing_order(
            log_train, alpha=self.significance, max_d=self.max_d)
        candidates = self.candidate_orders(n, d)
        if not candidates:
            raise ModelFitError(f"Series of length {n} is too short for any ARIMA order with d={d}",
                                model=self.model_id, length=n, d=d)

        values = np.asarray(log_train.values, dtype=float)
        scores = score_candidates(score_arima_candidate, values, candidates, self.n_jobs, desc="ARIMA search")
        table = scores_to_frame(scores, "(p,d,q,trend)")
        best = select_best(scores)
        if best is None:
            fitted_any = any(np.isfinite(s.loglik) for s in scores)
            if fitted_any:
                raise NonInvertibleModelError("No ARIMA candidate satisfied stationarity/invertibility",
                                              model=self.model_id, length=n, d=d, candidates=len(candidates))
            raise ModelFitError("No ARIMA candidate could be fitted", model=self.model_id, length=n,
                                d=d, candidates=len(candidates))
        logger.debug("ARIMA candidates by AICc:\n%s", table.head().to_string())

        p, d, q, trend = best.spec
        description = f"ARIMA({p},{d},{q})" + {"c": " with constant", "t": " with drift"}.get(trend, "")
        try:
            res = _fit_arima(values, (p, d, q), trend)
        except Exception as e:
            raise ModelFitError(f"Refitting {description} failed: {e}", model=self.model_id, length=n,
                                stage="fit", order=(p, d, q), trend=trend) from e
        logger.info("Selected %s on log scale with AICc=%.3f (n=%d)", description, best.aicc, n)
        return ARIMAFit(
            model_id=self.model_id,
            description=description,
            last_period=train.end_period,
            nobs=n,
            residuals=np.asarray(res.resid, dtype=float)[d:],
            aicc=best.aicc,
            search_table=table,
            order=(p, d, q),
            trend=trend,
            results=res,
        )

    def forecast(self, fitted: ARIMAFit, horizon: int) -> ForecastResult:
        horizon = self._check_horizon(horizon)
        self._check_fitted(fitted, ARIMAFit)
        try:
            fc = fitted.results.get_forecast(steps=horizon)
            log_mean = np.asarray(fc.predicted_mean, dtype=float)
            log_ci = np.asarray(fc.conf_int(alpha=1.0 - self.level / 100.0), dtype=float)
        except Exception as e:
            raise ModelFitError(f"{fitted.description} forecast failed: {e}", model=self.model_id,
                                length=fitted.nobs, stage="forecast", horizon=horizon) from e
        return ForecastResult(
            self.model_id,
            _forecast_periods(fitted, horizon),
            np.exp(log_mean),
            np.exp(log_ci[:, 0]),
            np.exp(log_ci[:, 1]),
            self.level,
        )


def build_models(level: float = 95.0, max_p: int = 5, max_q: int = 5, max_d: int = 2,
                 significance: float = 0.05, n_jobs: int = 1) -> Dict[str, ForecastModel]:
    """The three competing models keyed by model id, in reporting order."""
    return {
        NaiveForecaster.model_id: NaiveForecaster(level=level),
        ETSForecaster.model_id: ETSForecaster(level=level, n_jobs=n_jobs),
        ARIMAForecaster.model_id: ARIMAForecaster(level=level, max_p=max_p, max_q=max_q, max_d=max_d,
                                                  significance=significance, n_jobs=n_jobs),
    }
