"""
arima_selection.py

Pick the ARIMA(p,d,q) mean equation for the yield changes by grid search on
AIC/BIC, then check whether its residuals still carry serial correlation or
ARCH effects (the latter being the case for a GARCH variance equation).
"""

from __future__ import annotations
import itertools
import logging
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox, het_arch
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.arima.model import ARIMA

from unit_root import integration_order

logger = logging.getLogger(__name__)

CRITERIA = ("aic", "bic")


@dataclass
class ArimaCandidate:
    order: Tuple[int, int, int]
    aic: float
    bic: float
    llf: float
    converged: bool

    @property
    def n_params(self) -> int:
        return self.order[0] + self.order[2]


@dataclass
class ArimaSelection:
    best_order: Tuple[int, int, int]
    result: Any
    candidates: pd.DataFrame
    failures: Dict[Tuple[int, int, int], str] = field(default_factory=dict)


def _fit_arima(series: pd.Series, order: Tuple[int, int, int]):
    trend = "c" if order[1] == 0 else "n"
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", ConvergenceWarning)
        res = ARIMA(series, order=order, trend=trend).fit()
    converged = not any(issubclass(w.category, ConvergenceWarning) for w in caught)
    if res.mle_retvals:
        converged = converged and bool(res.mle_retvals.get("converged", True))
    return res, converged


def select_arima_order(series: pd.Series, d: Optional[int] = None, max_p: int = 3, max_q: int = 3,
                       criterion: str = "aic", significance: float = 0.05) -> ArimaSelection:
    """Fit every (p, d, q) up to (max_p, max_q) and keep the lowest criterion.

    d: integration order; estimated with ADF/KPSS when None.
    Ties go to the smaller model.
    """
    if criterion not in CRITERIA:
        raise ValueError(f"criterion must be one of {CRITERIA}, got {criterion!r}")
    series = series.dropna()
    if d is None:
        d = integration_order(series, significance=significance)

    candidates: List[ArimaCandidate] = []
    failures: Dict[Tuple[int, int, int], str] = {}
    results = {}
    for p, q in itertools.product(range(max_p + 1), range(max_q + 1)):
        order = (p, d, q)
        try:
            res, converged = _fit_arima(series, order)
        except Exception as e:
            logger.warning("ARIMA%s failed: %s", order, e)
            failures[order] = str(e)
            continue
        if not np.isfinite(res.aic):
            failures[order] = "non-finite likelihood"
            continue
        candidates.append(ArimaCandidate(order, float(res.aic), float(res.bic), float(res.llf), converged))
        results[order] = res
        logger.debug("ARIMA%s %s=%.2f converged=%s", order, criterion, getattr(res, criterion), converged)

    if not candidates:
        raise RuntimeError(f"No ARIMA order could be fitted (tried {len(failures)})")

    table = pd.DataFrame([
        {"order": c.order, "p": c.order[0], "d": c.order[1], "q": c.order[2],
         "aic": c.aic, "bic": c.bic, "llf": c.llf, "n_params": c.n_params, "converged": c.converged}
        for c in candidates
    ])
    table = table.sort_values([criterion, "n_params"]).reset_index(drop=True)
    best = tuple(table.loc[0, "order"])
    logger.info("Selected ARIMA%s by %s (%d fits, %d failures)", best, criterion.upper(), len(candidates), len(failures))
    return ArimaSelection(best_order=best, result=results[best], candidates=table, failures=failures)

# ------------------ Residual diagnostics ------------------

def ljung_box(resid: pd.Series, lags: int = 10) -> pd.DataFrame:
    return acorr_ljungbox(pd.Series(resid).dropna(), lags=[lags], return_df=True)


def arch_lm_test(resid: pd.Series, nlags: int = 10, significance: float = 0.05) -> Dict[str, float]:
    """Engle's LM test: regress squared residuals on their own lags."""
    lm, lm_p, f, f_p = het_arch(pd.Series(resid).dropna().values, nlags=nlags)
    return {
        "lm_stat": float(lm),
        "lm_pvalue": float(lm_p),
        "f_stat": float(f),
        "f_pvalue": float(f_p),
        "arch_effects": bool(lm_p < significance),
    }


def residual_diagnostics(resid: pd.Series, lags: int = 10) -> Dict[str, Any]:
    resid = pd.Series(resid).dropna()
    lb = ljung_box(resid, lags)
    lb_sq = ljung_box(resid ** 2, lags)
    return {
        "lb_stat": float(lb["lb_stat"].iloc[0]),
        "lb_pvalue": float(lb["lb_pvalue"].iloc[0]),
        "lb_sq_stat": float(lb_sq["lb_stat"].iloc[0]),
        "lb_sq_pvalue": float(lb_sq["lb_pvalue"].iloc[0]),
        **{f"arch_{k}": v for k, v in arch_lm_test(resid, nlags=lags).items()},
    }
