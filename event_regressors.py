"""
event_regressors.py

External event regressors for the yield-change GARCH models.

- event_dummies / break_dummies build the regressor matrix (pulse dummies for
  announcement days, step dummies for regimes).
- fit_garch_with_mean_events puts them in the mean equation via arch's ARX.
- GarchX puts them in the variance equation:

      r_t       = mu + eps_t,   eps_t = sigma_t * z_t
      sigma^2_t = omega + alpha * eps^2_{t-1} + beta * sigma^2_{t-1} + sum_j delta_j * x_{j,t}

  arch has no variance regressors, so this one is estimated directly by
  maximum likelihood with scipy (L-BFGS-B, a few starting points), with z_t
  either standard normal or unit-variance Student-t.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from scipy.optimize import minimize
from scipy.signal import lfilter
from scipy.special import gammaln
from scipy.stats import chi2
import statsmodels.api as sm
from statsmodels.tools.numdiff import approx_hess

from garch_models import GarchFit, GarchSpec, fit_garch

logger = logging.getLogger(__name__)

PENALTY = 1e10
DUMMY_KINDS = ("pulse", "step")

# ------------------ Regressor matrices ------------------

def event_dummies(index: pd.DatetimeIndex, events: Dict[str, Iterable[str]], window: Tuple[int, int] = (0, 0),
                  kind: str = "pulse") -> pd.DataFrame:
    """One 0/1 column per event category.

    Event dates on weekends/holidays map to the next trading day in `index`.
    window: (trading days before, trading days after) each event, pulse only.
    kind='step' switches the column on from the event onwards.
    Columns that end up constant (no event in sample) are dropped.
    """
    if kind not in DUMMY_KINDS:
        raise ValueError(f"kind must be one of {DUMMY_KINDS}, got {kind!r}")
    idx = pd.DatetimeIndex(index)
    before, after = window
    out = pd.DataFrame(0.0, index=idx, columns=list(events))

    for col_pos, (name, dates) in enumerate(events.items()):
        skipped = []
        for d in dates:
            ts = pd.Timestamp(d)
            pos = idx.searchsorted(ts)
            if ts < idx[0] or pos >= len(idx):
                skipped.append(str(ts.date()))
                continue
            if kind == "pulse":
                lo = max(pos - before, 0)
                hi = min(pos + after, len(idx) - 1)
                out.iloc[lo:hi + 1, col_pos] = 1.0
            else:
                out.iloc[pos:, col_pos] = 1.0
        if skipped:
            logger.info("%s: %d event(s) outside sample: %s", name, len(skipped), skipped)

    constant = [c for c in out.columns if out[c].nunique() < 2]
    if constant:
        logger.warning("Dropping constant event columns: %s", constant)
        out = out.drop(columns=constant)
    return out


def break_dummies(index: pd.DatetimeIndex, break_dates: Iterable[pd.Timestamp]) -> pd.DataFrame:
    """Step dummies regime_2..regime_{m+1}; regime_1 is the baseline."""
    events = {f"regime_{i + 2}": [d] for i, d in enumerate(sorted(pd.Timestamp(b) for b in break_dates))}
    if not events:
        return pd.DataFrame(index=pd.DatetimeIndex(index))
    return event_dummies(index, events, kind="step")


def fit_garch_with_mean_events(series: pd.Series, dummies: pd.DataFrame, dist: str = "t", lags: int = 0,
                               vol: str = "GARCH") -> GarchFit:
    o = 1 if vol in ("GJR", "EGARCH") else 0
    spec = GarchSpec(mean="ARX", lags=lags, vol=vol, p=1, o=o, q=1, dist=dist)
    return fit_garch(series, spec, x=dummies)

# ------------------ GARCH-X ------------------

@dataclass
class GarchXResult:
    params: pd.Series
    std_errors: pd.Series
    loglik: float
    nobs: int
    conditional_volatility: pd.Series
    std_resid: pd.Series
    dist: str
    converged: bool

    @property
    def tvalues(self) -> pd.Series:
        return self.params / self.std_errors

    @property
    def n_params(self) -> int:
        return len(self.params)

    @property
    def aic(self) -> float:
        return -2 * self.loglik + 2 * self.n_params

    @property
    def bic(self) -> float:
        return -2 * self.loglik + self.n_params * np.log(self.nobs)

    @property
    def persistence(self) -> float:
        return float(self.params["alpha"] + self.params["beta"])

    def summary_table(self) -> pd.DataFrame:
        return pd.DataFrame({"coef": self.params, "std_err": self.std_errors, "t": self.tvalues})


class GarchX:
    """GARCH(1,1) with exogenous variance regressors, constant mean."""

    def __init__(self, y: pd.Series, exog: Optional[pd.DataFrame] = None, dist: str = "t"):
        if dist not in ("normal", "t"):
            raise ValueError(f"GarchX supports dist 'normal' or 't', got {dist!r}")
        y = pd.Series(y).dropna()
        if len(y) < 50:
            raise ValueError(f"Need at least 50 observations, got {len(y)}")
        self.index = y.index
        self.y = y.values.astype(float)
        self.dist = dist
        if exog is None or exog.shape[1] == 0:
            self.x = np.zeros((len(y), 0))
            self.exog_names: List[str] = []
        else:
            aligned = exog.reindex(y.index)
            if aligned.isna().any().any():
                raise ValueError("exog does not cover every observation of y")
            self.x = aligned.values.astype(float)
            self.exog_names = [str(c) for c in exog.columns]
        self.T = len(self.y)
        self.k = self.x.shape[1]

    @property
    def param_names(self) -> List[str]:
        names = ["mu", "omega", "alpha", "beta"] + [f"delta[{c}]" for c in self.exog_names]
        if self.dist == "t":
            names.append("nu")
        return names

    def _unpack(self, theta: np.ndarray):
        mu, omega, alpha, beta = theta[:4]
        delta = theta[4:4 + self.k]
        nu = theta[4 + self.k] if self.dist == "t" else None
        return mu, omega, alpha, beta, delta, nu

    def conditional_variance(self, theta: np.ndarray) -> np.ndarray:
        mu, omega, alpha, beta, delta, _ = self._unpack(theta)
        eps = self.y - mu
        u = np.empty(self.T)
        u[0] = np.var(eps)
        u[1:] = omega + alpha * eps[:-1] ** 2
        if self.k:
            u[1:] += self.x[1:] @ delta
        # sigma2_t = u_t + beta * sigma2_{t-1}
        return lfilter([1.0], [1.0, -beta], u)

    def loglikelihood(self, theta: np.ndarray) -> float:
        mu, omega, alpha, beta, delta, nu = self._unpack(theta)
        if omega <= 0 or alpha < 0 or beta < 0 or alpha + beta >= 1:
            return -PENALTY
        sigma2 = self.conditional_variance(theta)
        if not np.all(np.isfinite(sigma2)) or np.any(sigma2 <= 0):
            return -PENALTY
        e2 = (self.y - mu) ** 2
        if self.dist == "normal":
            return float(-0.5 * np.sum(np.log(2 * np.pi) + np.log(sigma2) + e2 / sigma2))
        if nu <= 2:
            return -PENALTY
        const = gammaln((nu + 1) / 2) - gammaln(nu / 2) - 0.5 * np.log(np.pi * (nu - 2))
        ll = const - 0.5 * np.log(sigma2) - (nu + 1) / 2 * np.log1p(e2 / (sigma2 * (nu - 2)))
        return float(np.sum(ll))

    def _starting_values(self) -> List[np.ndarray]:
        """Grid over (alpha, beta); delta at zero and at the OLS slope of the
        squared demeaned changes on the regressors."""
        var = np.var(self.y)
        delta_starts = [np.zeros(self.k)]
        if self.k:
            e2 = (self.y - np.mean(self.y)) ** 2
            ols = sm.OLS(e2, sm.add_constant(self.x, has_constant="add")).fit()
            delta_starts.append(np.asarray(ols.params[1:], dtype=float))
            delta_starts.append(np.full(self.k, var))
        starts = []
        for alpha, beta in [(0.05, 0.90), (0.10, 0.85), (0.03, 0.95)]:
            for delta in delta_starts:
                theta = [np.mean(self.y), var * (1 - alpha - beta), alpha, beta] + list(delta)
                if self.dist == "t":
                    theta.append(8.0)
                starts.append(np.array(theta))
        return starts

    def _bounds(self):
        bounds = [(None, None), (1e-8, None), (0.0, 0.999), (0.0, 0.999)] + [(None, None)] * self.k
        if self.dist == "t":
            bounds.append((2.05, 200.0))
        return bounds

    def fit(self, start: Optional[np.ndarray] = None) -> GarchXResult:
        """Maximum likelihood from several starting points, keeping the best.

        start: extra starting vector (e.g. a restricted fit padded with delta=0).
        A start that beats every optimizer run is kept as the estimate.
        """
        def objective(theta):
            return -self.loglikelihood(theta)

        starts = self._starting_values()
        if start is not None:
            starts.insert(0, np.asarray(start, dtype=float))

        best_fun, best_x, success, message = np.inf, None, False, ""
        for x0 in starts:
            f0 = objective(x0)
            if f0 >= PENALTY:
                continue
            res = minimize(objective, x0, method="L-BFGS-B", bounds=self._bounds())
            if res.fun < best_fun:
                best_fun, best_x, success, message = float(res.fun), res.x, bool(res.success), res.message
            if f0 < best_fun:
                best_fun, best_x, success, message = float(f0), x0, False, "starting value not improved"
        if best_x is None or best_fun >= PENALTY:
            raise RuntimeError("GARCH-X likelihood could not be evaluated at any starting point")
        if not success:
            logger.warning("GARCH-X optimizer: %s", message)

        theta = best_x
        names = self.param_names
        try:
            hess = approx_hess(theta, objective)
            cov = np.linalg.inv(hess)
            diag = np.diag(cov)
            se = np.where(diag > 0, np.sqrt(np.abs(diag)), np.nan)
        except np.linalg.LinAlgError:
            logger.warning("Singular Hessian in GARCH-X; standard errors unavailable")
            se = np.full(len(theta), np.nan)

        sigma2 = self.conditional_variance(theta)
        vol = pd.Series(np.sqrt(sigma2), index=self.index, name="conditional_volatility")
        z = pd.Series((self.y - theta[0]) / vol.values, index=self.index, name="std_resid")
        return GarchXResult(
            params=pd.Series(theta, index=names),
            std_errors=pd.Series(se, index=names),
            loglik=-best_fun,
            nobs=self.T,
            conditional_volatility=vol,
            std_resid=z,
            dist=self.dist,
            converged=success,
        )


def fit_garchx(series: pd.Series, exog: Optional[pd.DataFrame] = None, dist: str = "t",
               start: Optional[np.ndarray] = None) -> GarchXResult:
    k = 0 if exog is None else exog.shape[1]
    logger.info("Fitting GARCH(1,1)-X with %d variance regressor(s), dist=%s", k, dist)
    return GarchX(series, exog, dist=dist).fit(start=start)


def variance_regressor_lr_test(series: pd.Series, exog: pd.DataFrame, dist: str = "t") -> Dict[str, Any]:
    """LR test of H0: all delta = 0 (plain GARCH(1,1)) against the GARCH-X.

    The full model is started from the restricted estimates with delta = 0, so
    its likelihood is never below the restricted one.
    """
    restricted = fit_garchx(series, None, dist=dist)
    df = exog.shape[1]
    r = restricted.params.values
    nested = np.concatenate([r[:4], np.zeros(df), r[4:]])
    full = fit_garchx(series, exog, dist=dist, start=nested)
    lr = max(2 * (full.loglik - restricted.loglik), 0.0)
    return {
        "lr_stat": lr,
        "df": df,
        "pvalue": float(chi2.sf(lr, df)),
        "loglik_full": full.loglik,
        "loglik_restricted": restricted.loglik,
        "full": full,
        "restricted": restricted,
    }
