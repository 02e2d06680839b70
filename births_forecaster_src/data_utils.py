# births_forecaster_src/data_utils.py

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd

from .exceptions import DataError
from .series_utils import TimeSeries

logger = logging.getLogger(__name__)

BIRTHS = "births"
FERTILITY = "fertility"
YEAR = "year"


def clean_column_name(name) -> str:
    """
    Normalise a header to snake_case.

    Lower-cases, turns every run of non-alphanumeric characters into a single
    underscore and trims underscores. Names that would be empty or start with
    a digit are prefixed with ``x`` so they stay valid identifiers.

    Examples
    --------
    >>> clean_column_name("Number of live births: United Kingdom")
    'number_of_live_births_united_kingdom'
    >>> clean_column_name("2019")
    'x2019'
    """
    text = str(name).strip().lower()
    text = re.sub(r"[^0-9a-z]+", "_", text).strip("_")
    if not text or text[0].isdigit():
        text = "x" + text
    return text


def clean_names(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with snake_case, de-duplicated column names."""
    seen = {}
    names: List[str] = []
    for col in df.columns:
        base = clean_column_name(col)
        count = seen.get(base, 0) + 1
        seen[base] = count
        names.append(base if count == 1 else f"{base}_{count}")
    out = df.copy()
    out.columns = names
    return out


def drop_junk_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Drop placeholder columns (blank headers cleaned to ``x...`` or pandas ``unnamed_...``)."""
    junk = [c for c in df.columns if c.startswith("x") or c.startswith("unnamed")]
    if junk:
        logger.debug("Dropping %d placeholder columns: %s", len(junk), junk)
    return df.drop(columns=junk)


def coerce_numeric(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert text columns to numbers.

    Every character other than digits and the decimal point is removed
    (thousands separators, footnote markers, stray spaces) before parsing;
    cells that end up empty become NaN.
    """
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == object or pd.api.types.is_string_dtype(out[col]):
            stripped = out[col].astype(str).str.replace(r"[^0-9.]", "", regex=True)
            out[col] = pd.to_numeric(stripped.replace("", np.nan), errors="coerce")
    return out


def read_table(path: Path, sheet_name: Union[str, int] = "Birth", skip_rows: int = 5) -> pd.DataFrame:
    """
    Read the raw input table from CSV or an Excel workbook.

    Parameters
    ----------
    path : Path
        ``.csv``, ``.xlsx`` or ``.xls`` file
    sheet_name : str or int, default="Birth"
        Workbook sheet (ignored for CSV)
    skip_rows : int, default=5
        Leading note rows to skip so the header row is read as the header

    Raises
    ------
    DataError
        If the file does not exist, has an unsupported extension, or cannot be parsed
    """
    path = Path(path)
    if not path.is_file():
        raise DataError(f"Input table not found: {path}", {"stage": "load", "path": str(path)})

    suffix = path.suffix.lower()
    logger.info("Loading vital statistics from: %s", path)
    try:
        if suffix == ".csv":
            return pd.read_csv(path, skiprows=skip_rows)
        if suffix in (".xlsx", ".xlsm", ".xls"):
            return pd.read_excel(path, sheet_name=sheet_name, skiprows=skip_rows)
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise DataError(f"Failed to read {path}: {e}", {"stage": "load", "path": str(path)}) from e
    raise DataError(f"Unsupported input format '{suffix}'", {"stage": "load", "path": str(path)})


def prepare_vital_statistics(raw: pd.DataFrame,
                             year_column: str = "year",
                             births_column: str = "number_of_live_births_united_kingdom",
                             fertility_column: Optional[str] = "total_fertility_rate_united_kingdom") -> pd.DataFrame:
    """
    Clean a raw vital-statistics table into ``year``, ``births``, ``fertility``.

    Column names are normalised, placeholder columns dropped, text cells parsed
    as numbers, rows sorted by year and rows without a births value removed.
    ``fertility`` may be missing from the input, in which case it is all NaN.

    Raises
    ------
    DataError
        If the year or births column is missing, or no usable rows remain
    """
    df = drop_junk_columns(clean_names(raw))
    df = coerce_numeric(df)

    year_key = clean_column_name(year_column)
    births_key = clean_column_name(births_column)
    missing = [c for c in (year_key, births_key) if c not in df.columns]
    if missing:
        raise DataError(f"Required columns missing after cleaning: {missing}",
                        {"stage": "clean", "columns": list(df.columns)})

    out = pd.DataFrame({YEAR: df[year_key], BIRTHS: df[births_key]})
    fert_key = clean_column_name(fertility_column) if fertility_column else None
    if fert_key and fert_key in df.columns:
        out[FERTILITY] = df[fert_key]
    else:
        logger.warning("Fertility column '%s' not found; hypothesis test will be skipped", fertility_column)
        out[FERTILITY] = np.nan

    out = out.dropna(subset=[YEAR])
    out[YEAR] = out[YEAR].astype(int)
    out = out.sort_values(YEAR).reset_index(drop=True)

    n_before = len(out)
    out = out.dropna(subset=[BIRTHS]).reset_index(drop=True)
    if len(out) < n_before:
        logger.info("Dropped %d rows without a births value", n_before - len(out))
    if out.empty:
        raise DataError("No rows with a births value after cleaning", {"stage": "clean", "rows": n_before})
    return out


def load_vital_statistics(path: Path,
                          sheet_name: Union[str, int] = "Birth",
                          skip_rows: int = 5,
                          year_column: str = "year",
                          births_column: str = "number_of_live_births_united_kingdom",
                          fertility_column: Optional[str] = "total_fertility_rate_united_kingdom") -> pd.DataFrame:
    """Read and clean the input table in one step."""
    raw = read_table(path, sheet_name=sheet_name, skip_rows=skip_rows)
    frame = prepare_vital_statistics(raw, year_column, births_column, fertility_column)
    logger.info("Loaded %d annual rows (%d-%d)", len(frame), frame[YEAR].min(), frame[YEAR].max())
    return frame


def births_series(frame: pd.DataFrame, column: str = BIRTHS) -> TimeSeries:
    """
    Extract a contiguous annual ``TimeSeries`` from a cleaned frame.

    Raises
    ------
    DataError
        If years repeat or leave gaps
    """
    if frame[YEAR].duplicated().any():
        dupes = sorted(frame.loc[frame[YEAR].duplicated(), YEAR].unique().tolist())
        raise DataError(f"Duplicate years in input: {dupes}", {"stage": "series", "rows": len(frame)})
    return TimeSeries(frame[YEAR].to_numpy(), frame[column].to_numpy(dtype=float), name=column)
