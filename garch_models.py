"""
garch_models.py

GARCH-family models for daily 10y yield changes, fitted with `arch`.

A specification is a mean model (Constant, Zero, AR, ARX/LS with regressors),
a variance model (GARCH, GJR, EGARCH, ARCH) with its (p, o, q) orders and an
innovation distribution (normal, Student-t, skew-t, GED). The grid search fits
each candidate, skips the ones the optimizer cannot handle, and ranks the rest
by information criterion.
"""

from __future__ import annotations
import itertools
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from arch import arch_model

from arima_selection import arch_lm_test, ljung_box

logger = logging.getLogger(__name__)

MEANS = ("Constant", "Zero", "AR", "ARX", "LS")
EXOG_MEANS = ("ARX", "LS")
VOLS = ("GARCH", "GJR", "EGARCH", "ARCH")
DISTS = ("normal", "t", "skewt", "ged")
CRITERIA = ("aic", "bic")


@dataclass(frozen=True)
class GarchSpec:
    mean: str = "Constant"
    lags: int = 0
    vol: str = "GARCH"
    p: int = 1
    o: int = 0
    q: int = 1
    dist: str = "normal"

    def __post_init__(self):
        if self.mean not in MEANS:
            raise ValueError(f"Unknown mean {self.mean!r}; expected one of {MEANS}")
        if self.vol not in VOLS:
            raise ValueError(f"Unknown vol {self.vol!r}; expected one of {VOLS}")
        if self.dist not in DISTS:
            raise ValueError(f"Unknown dist {self.dist!r}; expected one of {DISTS}")
        if self.vol == "GJR" and self.o < 1:
            # GJR is GARCH with a leverage term, so force at least one
            object.__setattr__(self, "o", 1)

    @property
    def label(self) -> str:
        mean = f"{self.mean}({self.lags})" if self.mean in ("AR", "ARX") and self.lags else self.mean
        if self.vol == "ARCH":
            return f"{mean}-ARCH({self.p})-{self.dist}"
        return f"{mean}-{self.vol}({self.p},{self.o},{self.q})-{self.dist}"

    @property
    def uses_exog(self) -> bool:
        return self.mean in EXOG_MEANS

    def arch_kwargs(self) -> Dict[str, Any]:
        vol = "GARCH" if self.vol == "GJR" else self.vol
        kwargs = dict(mean=self.mean, vol=vol, p=self.p, dist=self.dist)
        if self.mean in ("AR", "ARX"):
            kwargs["lags"] = self.lags
        if vol != "ARCH":
            kwargs["o"] = self.o
            kwargs["q"] = self.q
        return kwargs


@dataclass
class GarchFit:
    spec: GarchSpec
    result: Any
    aic: float
    bic: float
    loglik: float
    params: pd.Series
    persistence: float
    half_life: float
    nobs: int
    converged: bool
    exog: Optional[pd.DataFrame] = None

    def as_row(self) -> Dict[str, Any]:
        return {
            "model": self.spec.label,
            "mean": self.spec.mean,
            "vol": self.spec.vol,
            "p": self.spec.p,
            "o": self.spec.o,
            "q": self.spec.q,
            "dist": self.spec.dist,
            "loglik": self.loglik,
            "aic": self.aic,
            "bic": self.bic,
            "persistence": self.persistence,
            "half_life": self.half_life,
            "nobs": self.nobs,
            "converged": self.converged,
        }

# ------------------ Fitting ------------------

def persistence(params: pd.Series, vol: str) -> float:
    """alpha + beta + gamma/2 for GARCH/GJR, sum of betas for EGARCH."""
    def total(prefix):
        return float(sum(v for k, v in params.items() if k.startswith(prefix)))

    if vol == "EGARCH":
        return total("beta[")
    return total("alpha[") + total("beta[") + 0.5 * total("gamma[")


def half_life(persist: float) -> float:
    if persist <= 0:
        return 0.0
    if persist >= 1:
        return float("inf")
    return math.log(0.5) / math.log(persist)


def _check_exog(spec: GarchSpec, x) -> None:
    if spec.uses_exog and x is None:
        raise ValueError(f"{spec.label} needs exogenous regressors (x)")
    if not spec.uses_exog and x is not None:
        raise ValueError(f"{spec.label} does not take exogenous regressors; use mean='ARX' or 'LS'")


def fit_garch(series: pd.Series, spec: GarchSpec, x: Optional[pd.DataFrame] = None, rescale: bool = False) -> GarchFit:
    if series.isna().any():
        raise ValueError("Input series contains NaN values.")
    _check_exog(spec, x)
    if x is not None:
        x = x.loc[series.index]

    logger.info("Fitting %s on %d observations", spec.label, len(series))
    am = arch_model(series, x=x, rescale=rescale, **spec.arch_kwargs())
    res = am.fit(disp="off", show_warning=False)

    persist = persistence(res.params, spec.vol)
    converged = res.convergence_flag == 0
    if not converged:
        logger.warning("%s: optimizer did not converge (flag %s)", spec.label, res.convergence_flag)
    return GarchFit(
        spec=spec,
        result=res,
        aic=float(res.aic),
        bic=float(res.bic),
        loglik=float(res.loglikelihood),
        params=res.params,
        persistence=persist,
        half_life=half_life(persist),
        nobs=int(res.nobs),
        converged=converged,
        exog=x,
    )


def build_spec_grid(means: Iterable[str] = ("Constant", "AR"), vols: Iterable[str] = ("GARCH", "GJR", "EGARCH"),
                    dists: Iterable[str] = ("normal", "t"), max_p: int = 2, max_q: int = 2,
                    ar_lags: int = 1) -> List[GarchSpec]:
    specs = []
    for mean, vol, dist in itertools.product(means, vols, dists):
        lags = ar_lags if mean in ("AR", "ARX") else 0
        o = 1 if vol in ("GJR", "EGARCH") else 0
        if vol == "ARCH":
            for p in range(1, max_p + 1):
                specs.append(GarchSpec(mean=mean, lags=lags, vol=vol, p=p, o=0, q=0, dist=dist))
            continue
        for p, q in itertools.product(range(1, max_p + 1), range(1, max_q + 1)):
            specs.append(GarchSpec(mean=mean, lags=lags, vol=vol, p=p, o=o, q=q, dist=dist))
    return specs


def garch_grid(series: pd.Series, specs: Iterable[GarchSpec], x: Optional[pd.DataFrame] = None,
               criterion: str = "bic") -> Tuple[List[GarchFit], pd.DataFrame]:
    """Fit every spec; failures are logged and left out of the ranking."""
    if criterion not in CRITERIA:
        raise ValueError(f"criterion must be one of {CRITERIA}, got {criterion!r}")
    fits = []
    for spec in specs:
        try:
            fits.append(fit_garch(series, spec, x=x if spec.uses_exog else None))
        except Exception as e:
            logger.warning("GARCH spec %s failed: %s", spec.label, e)
    if not fits:
        raise RuntimeError("No GARCH specification could be fitted")

    fits.sort(key=lambda f: (getattr(f, criterion), len(f.params)))
    table = pd.DataFrame([f.as_row() for f in fits])
    logger.info("Best GARCH by %s: %s", criterion.upper(), fits[0].spec.label)
    return fits, table

# ------------------ Post-fit ------------------

def garch_diagnostics(fit: GarchFit, lags: int = 10) -> Dict[str, float]:
    z = pd.Series(fit.result.std_resid).dropna()
    lb = ljung_box(z, lags)
    lb_sq = ljung_box(z ** 2, lags)
    lm = arch_lm_test(z, nlags=lags)
    return {
        "model": fit.spec.label,
        "lb_z_pvalue": float(lb["lb_pvalue"].iloc[0]),
        "lb_z2_pvalue": float(lb_sq["lb_pvalue"].iloc[0]),
        "arch_lm_pvalue": lm["lm_pvalue"],
        "remaining_arch": lm["arch_effects"],
    }


def _future_exog(x: pd.DataFrame, horizon: int) -> Dict[str, np.ndarray]:
    """Hold the last regressor row flat over the horizon, shaped for arch."""
    last = x.iloc[-1]
    return {col: np.full((1, horizon), float(last[col])) for col in x.columns}


def forecast_volatility(fit: GarchFit, horizon: int = 10, x: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """h-step conditional mean/variance from the end of the sample.

    x: future regressor values (horizon rows) for ARX/LS means; if omitted the
    last in-sample regressor row is carried forward.
    """
    kwargs = {}
    if fit.spec.uses_exog:
        if x is None:
            kwargs["x"] = _future_exog(fit.exog, horizon)
        else:
            kwargs["x"] = {col: x[col].values[:horizon].reshape(1, -1) for col in x.columns}
    f = fit.result.forecast(horizon=horizon, reindex=False, **kwargs)
    variance = f.variance.iloc[-1].values
    out = pd.DataFrame({
        "h": np.arange(1, horizon + 1),
        "mean": f.mean.iloc[-1].values,
        "variance": variance,
        "volatility": np.sqrt(variance),
    })
    out["cum_volatility"] = np.sqrt(np.cumsum(variance))
    return out.set_index("h")


def news_impact_curve(fit: GarchFit, shocks: Optional[np.ndarray] = None) -> pd.DataFrame:
    """Next-period variance as a function of today's shock, starting from the
    unconditional variance. Uses the first-lag coefficients."""
    params = fit.params
    if shocks is None:
        scale = float(np.sqrt(np.nanmean(fit.result.conditional_volatility ** 2)))
        shocks = np.linspace(-5 * scale, 5 * scale, 201)
    shocks = np.asarray(shocks, dtype=float)

    omega = params["omega"]
    alpha = params.get("alpha[1]", 0.0)
    gamma = params.get("gamma[1]", 0.0)
    beta = params.get("beta[1]", 0.0)

    if fit.spec.vol == "EGARCH":
        log_bar = omega / (1 - beta) if beta < 1 else np.log(np.nanmean(fit.result.conditional_volatility ** 2))
        sigma_bar = np.sqrt(np.exp(log_bar))
        z = shocks / sigma_bar
        log_next = omega + alpha * (np.abs(z) - np.sqrt(2 / np.pi)) + gamma * z + beta * log_bar
        nic = np.exp(log_next)
    else:
        denom = 1 - fit.persistence
        sigma2_bar = omega / denom if denom > 0 else np.nanmean(fit.result.conditional_volatility ** 2)
        nic = omega + alpha * shocks ** 2 + gamma * shocks ** 2 * (shocks < 0) + beta * sigma2_bar
    return pd.DataFrame({"shock": shocks, "next_variance": nic})
