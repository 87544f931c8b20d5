"""
structural_breaks.py

Multiple structural breaks in the yield-change series, Bai-Perron style:
exact dynamic-programming segmentation (ruptures.Dynp) for every number of
breaks m = 0..max_breaks under a trimming constraint, with m picked by BIC or
an LWZ-type penalty.

Break dates are reported as the first trading day of the new regime.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd
import ruptures as rpt
from ruptures.exceptions import BadSegmentationParameters

logger = logging.getLogger(__name__)

COSTS = ("l2", "normal")
CRITERIA = ("bic", "lwz")


@dataclass
class BreakResult:
    n_breaks: int
    break_indices: List[int]
    break_dates: List[pd.Timestamp]
    segments: pd.DataFrame
    criterion_table: pd.DataFrame
    cost: str
    min_size: int = 0
    ends: List[int] = field(default_factory=list)


def segment_statistics(series: pd.Series, ends: List[int]) -> pd.DataFrame:
    rows = []
    start = 0
    for regime, end in enumerate(ends, start=1):
        seg = series.iloc[start:end]
        rows.append({
            "regime": regime,
            "start": seg.index[0],
            "end": seg.index[-1],
            "n": len(seg),
            "mean": seg.mean(),
            "std": seg.std(),
        })
        start = end
    return pd.DataFrame(rows).set_index("regime")


def _fit_term(y: np.ndarray, ends: List[int], cost: str) -> float:
    """-2 log-likelihood (up to a constant) of the piecewise model."""
    n = len(y)
    start = 0
    if cost == "l2":
        ssr = 0.0
        for end in ends:
            seg = y[start:end]
            ssr += float(np.sum((seg - seg.mean()) ** 2))
            start = end
        return n * np.log(max(ssr, 1e-300) / n)

    total = 0.0
    for end in ends:
        seg = y[start:end]
        var = max(float(np.var(seg)), 1e-300)
        total += len(seg) * (np.log(2 * np.pi * var) + 1)
        start = end
    return total


def _n_params(m: int, cost: str) -> int:
    per_segment = 1 if cost == "l2" else 2
    return per_segment * (m + 1) + m


def detect_breaks(series: pd.Series, max_breaks: int = 5, trim: float = 0.15, cost: str = "l2", jump: int = 5,
                  criterion: str = "bic") -> BreakResult:
    """
    cost: 'l2' for shifts in mean, 'normal' for shifts in mean and variance.
    trim: minimum regime length as a fraction of the sample.
    jump: candidate break dates are restricted to every `jump`-th observation.
    """
    if cost not in COSTS:
        raise ValueError(f"cost must be one of {COSTS}, got {cost!r}")
    if criterion not in CRITERIA:
        raise ValueError(f"criterion must be one of {CRITERIA}, got {criterion!r}")

    s = series.dropna()
    y = s.values.astype(float)
    n = len(y)
    min_size = max(int(np.floor(trim * n)), 2 * jump, 10)

    if n < 2 * min_size:
        logger.warning("Series too short (%d obs) for a break search with min_size=%d", n, min_size)
        table = pd.DataFrame({"m": [0], "bic": [np.nan], "lwz": [np.nan]}).set_index("m")
        return BreakResult(0, [], [], segment_statistics(s, [n]), table, cost, min_size, [n])

    algo = rpt.Dynp(model=cost, min_size=min_size, jump=jump).fit(y.reshape(-1, 1))
    log_n = np.log(n)

    rows = []
    for m in range(0, max_breaks + 1):
        if (m + 1) * min_size > n:
            break
        try:
            ends = sorted(algo.predict(n_bkps=m))
        except BadSegmentationParameters:
            logger.info("No admissible segmentation with %d breaks", m)
            break
        fit = _fit_term(y, ends, cost)
        k = _n_params(m, cost)
        rows.append({
            "m": m,
            "bic": fit + k * log_n,
            "lwz": fit + k * 0.299 * log_n ** 2.1,
            "ends": ends,
        })

    table = pd.DataFrame(rows).set_index("m")
    best_m = int(table[criterion].idxmin())
    ends = list(table.loc[best_m, "ends"])
    break_idx = ends[:-1]
    dates = [s.index[i] for i in break_idx]
    logger.info("Selected %d break(s) by %s: %s", best_m, criterion.upper(), [str(pd.Timestamp(d).date()) for d in dates])

    return BreakResult(
        n_breaks=best_m,
        break_indices=break_idx,
        break_dates=dates,
        segments=segment_statistics(s, ends),
        criterion_table=table.drop(columns="ends"),
        cost=cost,
        min_size=min_size,
        ends=ends,
    )


def volatility_regime_breaks(cond_vol: pd.Series, n_bkps: int = 3, model: str = "l2",
                             min_size: int = 60, jump: int = 5) -> List[pd.Timestamp]:
    """Binary segmentation of a conditional volatility path.

    'l2' is linear in the sample length. 'rbf' builds an n x n Gram matrix, so
    keep it for short paths.
    """
    vol = cond_vol.dropna()
    signal = vol.values.reshape(-1, 1)
    if len(signal) < (n_bkps + 1) * min_size:
        logger.warning("Volatility series too short for %d breaks of min_size %d", n_bkps, min_size)
        return []
    algo = rpt.Binseg(model=model, min_size=min_size, jump=jump).fit(signal)
    bkps = [bp for bp in algo.predict(n_bkps=n_bkps) if bp < len(signal)]
    return [vol.index[bp] for bp in bkps]
