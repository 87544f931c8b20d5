"""
yield_data.py

Load and clean the daily 10-year Treasury constant-maturity yield.

Two sources:
- a FRED download (DGS10.csv: date column + value column, '.' for holidays)
- yfinance (^TNX close, quoted in percent)
"""

from __future__ import annotations
import logging
from typing import Optional

import numpy as np
import pandas as pd
import yfinance as yf
from scipy import stats

logger = logging.getLogger(__name__)

MIN_OBS = 30
TRANSFORMS = ("diff_bp", "log_pct")

# ------------------ Sources ------------------

def read_fred_csv(path: str, column: Optional[str] = None) -> pd.Series:
    """Read a FRED-style CSV into a float Series indexed by date.

    The first column holds the dates (FRED uses 'DATE' or 'observation_date').
    column: value column to use; defaults to the first non-date column.
    """
    try:
        df = pd.read_csv(path, na_values=["."])
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"No observations in {path}") from e
    if df.empty or df.shape[1] < 2:
        raise ValueError(f"No observations in {path}")

    date_col = df.columns[0]
    if column is None:
        column = df.columns[1]
    elif column not in df.columns:
        raise KeyError(f"Column {column!r} not in {path}; available: {list(df.columns[1:])}")

    series = pd.Series(
        pd.to_numeric(df[column], errors="coerce").values,
        index=pd.to_datetime(df[date_col]),
        name=column,
    )
    series.index.name = "date"
    logger.info("Read %d rows of %s from %s", len(series), column, path)
    return series


def fetch_yield_history(ticker: str = "^TNX", start: Optional[str] = None, end: Optional[str] = None) -> pd.Series:
    df = yf.download(ticker, start=start, end=end, progress=False, auto_adjust=True)
    if df is None or df.empty:
        raise ValueError(f"No data for {ticker}")

    close = df["Close"]
    # recent yfinance returns (field, ticker) MultiIndex columns even for one ticker
    if isinstance(close, pd.DataFrame):
        close = close.iloc[:, 0]
    close = close.astype(float)
    close.name = ticker
    close.index = pd.DatetimeIndex(close.index)
    if close.index.tz is not None:
        close.index = close.index.tz_localize(None)
    close.index.name = "date"
    logger.info("Downloaded %d closes for %s", len(close), ticker)
    return close

# ------------------ Cleaning ------------------

def clean_yields(series: pd.Series, start: Optional[str] = None, end: Optional[str] = None) -> pd.Series:
    """Drop holidays/missing values and duplicate dates, sort, apply the date window."""
    s = pd.to_numeric(series, errors="coerce").copy()
    s.index = pd.DatetimeIndex(s.index)
    n_raw = len(s)

    s = s[~s.index.duplicated(keep="last")].sort_index()
    if start is not None:
        s = s.loc[pd.Timestamp(start):]
    if end is not None:
        s = s.loc[:pd.Timestamp(end)]
    s = s.replace([np.inf, -np.inf], np.nan).dropna()

    logger.info("Cleaned yields: %d -> %d observations", n_raw, len(s))
    if len(s) < MIN_OBS:
        raise ValueError(f"Only {len(s)} observations after cleaning; need at least {MIN_OBS}")
    return s


def yield_changes(series: pd.Series, transform: str = "diff_bp", max_abs_change_bp: Optional[float] = None) -> pd.Series:
    """Daily yield changes on the trading-day sequence.

    diff_bp: 100 * (y_t - y_{t-1}), i.e. basis points for yields in percent
    log_pct: 100 * log(y_t / y_{t-1})
    """
    if transform not in TRANSFORMS:
        raise ValueError(f"Unknown transform {transform!r}; expected one of {TRANSFORMS}")

    if transform == "diff_bp":
        changes = 100 * series.diff()
        name = "dy_bp"
    else:
        if (series <= 0).any():
            raise ValueError("log_pct transform needs strictly positive yields")
        changes = 100 * np.log(series).diff()
        name = "dlogy_pct"
    changes = changes.dropna()

    if max_abs_change_bp is not None:
        bp_moves = (100 * series.diff()).reindex(changes.index)
        bad = bp_moves.abs() > max_abs_change_bp
        if bad.any():
            logger.warning("Dropping %d changes larger than %.1fbp: %s",
                           int(bad.sum()), max_abs_change_bp, list(changes.index[bad].date))
            changes = changes[~bad]

    changes.name = name
    return changes


def load_yields(config) -> pd.Series:
    if config.csv_path:
        raw = read_fred_csv(config.csv_path, column=config.series_column)
    else:
        raw = fetch_yield_history(config.ticker, start=config.start, end=config.end)
    return clean_yields(raw, start=config.start, end=config.end)


def describe_series(series: pd.Series) -> pd.DataFrame:
    jb = stats.jarque_bera(series.values)
    row = {
        "n": int(series.count()),
        "start": series.index.min().date(),
        "end": series.index.max().date(),
        "mean": series.mean(),
        "std": series.std(),
        "skew": series.skew(),
        "excess_kurtosis": series.kurt(),
        "min": series.min(),
        "max": series.max(),
        "jb_stat": float(jb[0]),
        "jb_pvalue": float(jb[1]),
    }
    return pd.DataFrame([row], index=[series.name])
