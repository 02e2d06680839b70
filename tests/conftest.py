import numpy as np
import pandas as pd
import pytest

from births_forecaster_src import config_utils


def make_births_frame(n: int = 40, start: int = 1980, seed: int = 7) -> pd.DataFrame:
    """Trending annual births with noise plus a fertility rate that drops after 2000."""
    rng = np.random.default_rng(seed)
    years = np.arange(start, start + n)
    births = 700000.0 + 1500.0 * np.arange(n) + rng.normal(0.0, 4000.0, size=n)
    fertility = np.where(years <= 2000, 1.80, 1.70) + rng.normal(0.0, 0.03, size=n)
    return pd.DataFrame({"year": years, "births": births, "fertility": fertility})


@pytest.fixture
def births_frame() -> pd.DataFrame:
    return make_births_frame()


@pytest.fixture(autouse=True)
def no_global_config(monkeypatch: pytest.MonkeyPatch):
    """Each test starts without a loaded configuration file."""
    monkeypatch.setattr(config_utils, "config_manager", None)


@pytest.fixture
def make_frame():
    return make_births_frame
