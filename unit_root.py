"""
unit_root.py

Stationarity tests for the yield level and its changes.

ADF and KPSS are run as a pair because their nulls are opposite: ADF assumes
a unit root, KPSS assumes stationarity. Phillips-Perron (arch.unitroot) is
robust to serially correlated errors, and Zivot-Andrews allows one break in the
level, which matters for a 10y yield with regime changes in policy.
"""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from arch.unitroot import PhillipsPerron
from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.stattools import adfuller, kpss, zivot_andrews

logger = logging.getLogger(__name__)


@dataclass
class UnitRootResult:
    test: str
    statistic: float
    pvalue: float
    lags: Optional[int]
    null_hypothesis: str
    stationary: bool
    critical_values: Dict[str, float] = field(default_factory=dict)
    break_index: Optional[int] = None
    break_date: Optional[pd.Timestamp] = None

    def as_row(self) -> dict:
        row = {
            "test": self.test,
            "statistic": self.statistic,
            "pvalue": self.pvalue,
            "lags": self.lags,
            "null": self.null_hypothesis,
            "stationary": self.stationary,
        }
        for k, v in self.critical_values.items():
            row[f"cv_{k}"] = v
        if self.break_date is not None:
            row["break_date"] = self.break_date
        return row


def _values(series: pd.Series) -> np.ndarray:
    x = pd.Series(series).dropna().values.astype(float)
    if len(x) < 20:
        raise ValueError(f"Need at least 20 observations for unit-root tests, got {len(x)}")
    return x


def adf_test(series: pd.Series, regression: str = "c", autolag: str = "AIC", significance: float = 0.05) -> UnitRootResult:
    stat, pvalue, lags, _, crit, _ = adfuller(_values(series), regression=regression, autolag=autolag)
    return UnitRootResult(
        test="ADF",
        statistic=float(stat),
        pvalue=float(pvalue),
        lags=int(lags),
        null_hypothesis="unit root",
        stationary=bool(pvalue < significance),
        critical_values={k: float(v) for k, v in crit.items()},
    )


def kpss_test(series: pd.Series, regression: str = "c", significance: float = 0.05) -> UnitRootResult:
    # kpss p-values are interpolated from a table bounded at [0.01, 0.10]
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", InterpolationWarning)
        stat, pvalue, lags, crit = kpss(_values(series), regression=regression, nlags="auto")
    for w in caught:
        if issubclass(w.category, InterpolationWarning):
            logger.info("KPSS p-value outside lookup table, reported bound %.3f", pvalue)
        else:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
    return UnitRootResult(
        test="KPSS",
        statistic=float(stat),
        pvalue=float(pvalue),
        lags=int(lags),
        null_hypothesis="stationary",
        stationary=bool(pvalue >= significance),
        critical_values={k: float(v) for k, v in crit.items()},
    )


def pp_test(series: pd.Series, trend: str = "c", significance: float = 0.05) -> UnitRootResult:
    pp = PhillipsPerron(_values(series), trend=trend)
    return UnitRootResult(
        test="PP",
        statistic=float(pp.stat),
        pvalue=float(pp.pvalue),
        lags=int(pp.lags),
        null_hypothesis="unit root",
        stationary=bool(pp.pvalue < significance),
        critical_values={k: float(v) for k, v in pp.critical_values.items()},
    )


def zivot_andrews_test(series: pd.Series, regression: str = "c", significance: float = 0.05) -> UnitRootResult:
    s = pd.Series(series).dropna()
    stat, pvalue, crit, lags, bpidx = zivot_andrews(s.values.astype(float), regression=regression)
    break_date = s.index[int(bpidx)] if isinstance(s.index, pd.DatetimeIndex) else None
    return UnitRootResult(
        test="Zivot-Andrews",
        statistic=float(stat),
        pvalue=float(pvalue),
        lags=int(lags),
        null_hypothesis="unit root",
        stationary=bool(pvalue < significance),
        critical_values={k: float(v) for k, v in crit.items()},
        break_index=int(bpidx),
        break_date=break_date,
    )


def stationarity_table(series: pd.Series, significance: float = 0.05, include_za: bool = True) -> pd.DataFrame:
    results = [
        adf_test(series, significance=significance),
        kpss_test(series, significance=significance),
        pp_test(series, significance=significance),
    ]
    if include_za:
        results.append(zivot_andrews_test(series, significance=significance))
    table = pd.DataFrame([r.as_row() for r in results]).set_index("test")
    table.insert(0, "series", getattr(series, "name", None))
    return table


def is_stationary(series: pd.Series, significance: float = 0.05) -> bool:
    """ADF rejects a unit root and KPSS does not reject stationarity."""
    adf = adf_test(series, significance=significance)
    kp = kpss_test(series, significance=significance)
    return adf.stationary and kp.stationary


def integration_order(series: pd.Series, max_diff: int = 2, significance: float = 0.05) -> int:
    x = pd.Series(series).dropna()
    for d in range(max_diff + 1):
        if is_stationary(x, significance=significance):
            logger.info("Series %s is I(%d)", getattr(series, "name", ""), d)
            return d
        x = x.diff().dropna()
    logger.warning("Series %s not stationary after %d differences", getattr(series, "name", ""), max_diff)
    return max_diff
