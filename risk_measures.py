"""
risk_measures.py

One-day VaR / Expected Shortfall on yield changes from a conditional
volatility, and the coverage tests used to backtest them.

Sign convention: VaR and ES are reported as positive numbers for the lower
tail of the change series (a fall in yield, i.e. a bond price rally for a
short-duration position). Use -series for the other tail.
"""

from __future__ import annotations
import math
from typing import Dict

import numpy as np
import pandas as pd
from scipy.stats import chi2, norm, t

from garch_models import forecast_volatility


def student_t_var_es(sigma: float, nu: float, alpha: float = 0.01, mu: float = 0.0) -> Dict[str, float]:
    """VaR/ES for unit-variance Student-t innovations with nu degrees of freedom."""
    if nu <= 2:
        raise ValueError(f"nu must exceed 2 for a finite variance, got {nu}")
    scale = math.sqrt((nu - 2) / nu)
    q_alpha = t.ppf(alpha, df=nu)
    pdf_q = t.pdf(q_alpha, df=nu)

    var = -(mu + sigma * scale * q_alpha)
    es = -(mu - sigma * scale * (nu + q_alpha ** 2) / ((nu - 1) * alpha) * pdf_q)
    return {"VaR": float(var), "ES": float(es)}


def normal_var_es(sigma: float, alpha: float = 0.01, mu: float = 0.0) -> Dict[str, float]:
    q_alpha = norm.ppf(alpha)
    var = -(mu + sigma * q_alpha)
    es = -(mu - sigma * norm.pdf(q_alpha) / alpha)
    return {"VaR": float(var), "ES": float(es)}


def garch_var_es(fit, alpha: float = 0.01, n_sim: int = 100_000, seed: int = 42) -> Dict[str, float]:
    """Next-day VaR/ES from a fitted GarchFit, using its own innovation distribution."""
    res = fit.result
    fc = forecast_volatility(fit, horizon=1)
    mu, sigma = float(fc["mean"].iloc[0]), float(fc["volatility"].iloc[0])

    dist = fit.spec.dist
    if dist == "normal":
        out = normal_var_es(sigma, alpha, mu)
    elif dist == "t":
        out = student_t_var_es(sigma, float(fit.params["nu"]), alpha, mu)
    else:
        dist_params = fit.params[res.model.distribution.parameter_names()].values
        q = float(res.model.distribution.ppf(alpha, dist_params))
        rng = np.random.default_rng(seed)
        z = np.asarray(res.model.distribution.ppf(rng.uniform(size=n_sim), dist_params))
        tail = z[z <= q]
        out = {"VaR": float(-(mu + sigma * q)), "ES": float(-(mu + sigma * tail.mean()))}
    out.update({"mu": mu, "sigma": sigma, "alpha": alpha})
    return out

# ------------------ Backtests ------------------

def kupiec_test(hits: pd.Series, alpha: float = 0.01) -> Dict[str, float]:
    """Proportion-of-failures LR test: is the hit rate equal to alpha?"""
    h = np.asarray(pd.Series(hits).dropna(), dtype=int)
    n = len(h)
    x = int(h.sum())
    if n == 0:
        raise ValueError("No hits to test")
    pi_hat = x / n

    def loglik(p):
        # 0*log(0) terms are zero
        ll = 0.0
        if x > 0:
            ll += x * math.log(p) if p > 0 else -np.inf
        if n - x > 0:
            ll += (n - x) * math.log(1 - p) if p < 1 else -np.inf
        return ll

    lr = max(-2 * (loglik(alpha) - loglik(pi_hat)), 0.0)
    return {"n": n, "hits": x, "hit_rate": pi_hat, "expected": alpha, "lr_pof": lr, "pvalue": float(chi2.sf(lr, 1))}


def christoffersen_test(hits: pd.Series) -> Dict[str, float]:
    """Independence LR test: does a hit today change the chance of a hit tomorrow?"""
    h = np.asarray(pd.Series(hits).dropna(), dtype=int)
    prev, curr = h[:-1], h[1:]
    n00 = int(np.sum((prev == 0) & (curr == 0)))
    n01 = int(np.sum((prev == 0) & (curr == 1)))
    n10 = int(np.sum((prev == 1) & (curr == 0)))
    n11 = int(np.sum((prev == 1) & (curr == 1)))

    def term(count, p):
        return count * math.log(p) if count > 0 else 0.0

    pi0 = n01 / (n00 + n01) if (n00 + n01) else 0.0
    pi1 = n11 / (n10 + n11) if (n10 + n11) else 0.0
    pi = (n01 + n11) / (n00 + n01 + n10 + n11) if len(curr) else 0.0

    ll_ind = term(n00, 1 - pi0) + term(n01, pi0) + term(n10, 1 - pi1) + term(n11, pi1)
    ll_null = term(n00 + n10, 1 - pi) + term(n01 + n11, pi)
    lr = max(-2 * (ll_null - ll_ind), 0.0)
    return {"n01": n01, "n11": n11, "pi0": pi0, "pi1": pi1, "lr_ind": lr, "pvalue": float(chi2.sf(lr, 1))}
