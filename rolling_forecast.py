"""
rolling_forecast.py

Out-of-sample one-day-ahead variance forecasts with periodic re-estimation.

For each date t after the first `window` observations the model is estimated
on the preceding window (rolling) or on everything before t (expanding),
re-estimated only every `refit_every` days, and held at the last estimates in
between via arch's `fix`. The forecast for t uses data up to t-1 only.
"""

from __future__ import annotations
import logging
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from arch import arch_model

from garch_models import GarchSpec
from risk_measures import christoffersen_test, kupiec_test

logger = logging.getLogger(__name__)


def _dist_params(model, params: pd.Series) -> Optional[np.ndarray]:
    names = model.distribution.parameter_names()
    return params[names].values if names else None


def rolling_forecast(series: pd.Series, spec: GarchSpec, window: int = 1000, refit_every: int = 20,
                     expanding: bool = False, x: Optional[pd.DataFrame] = None, alpha: float = 0.01) -> pd.DataFrame:
    s = series.dropna()
    n = len(s)
    if window >= n:
        raise ValueError(f"window ({window}) must be smaller than the sample ({n})")
    if refit_every < 1:
        raise ValueError("refit_every must be >= 1")
    if spec.uses_exog and x is None:
        raise ValueError(f"{spec.label} needs exogenous regressors (x)")
    if x is not None:
        x = x.loc[s.index]

    rows = []
    params = None
    since_fit = refit_every
    n_failed = 0
    for i in range(window, n):
        lo = 0 if expanding else i - window
        train = s.iloc[lo:i]
        x_train = x.iloc[lo:i] if x is not None else None
        am = arch_model(train, x=x_train, rescale=False, **spec.arch_kwargs())

        if params is None or since_fit >= refit_every:
            try:
                start = params.values if params is not None else None
                params = am.fit(disp="off", show_warning=False, starting_values=start).params
                since_fit = 0
            except Exception as e:
                n_failed += 1
                logger.warning("%s refit at %s failed: %s", spec.label, s.index[i].date(), e)
                if params is None:
                    continue

        kwargs = {}
        if x is not None:
            kwargs["x"] = {c: np.array([[float(x.iloc[i][c])]]) for c in x.columns}
        f = am.fix(params.values).forecast(horizon=1, reindex=False, **kwargs)
        mean = float(f.mean.iloc[-1, 0])
        variance = float(f.variance.iloc[-1, 0])
        sigma = np.sqrt(variance)
        q = float(am.distribution.ppf(alpha, _dist_params(am, params)))
        threshold = mean + sigma * q
        actual = float(s.iloc[i])
        rows.append({
            "date": s.index[i],
            "mean": mean,
            "variance": variance,
            "volatility": sigma,
            "actual": actual,
            "var": -threshold,
            "hit": int(actual < threshold),
        })
        since_fit += 1

    if n_failed:
        logger.info("%s: %d refit(s) failed, previous estimates kept", spec.label, n_failed)
    return pd.DataFrame(rows).set_index("date")


def forecast_losses(forecasts: pd.DataFrame) -> Dict[str, float]:
    """Variance-forecast losses against the squared demeaned outcome.

    QLIKE is the log(h) + r^2/h form, which tolerates zero outcomes.
    Mincer-Zarnowitz: r^2 = a + b*h + e; a good forecast has a=0, b=1.
    """
    h = forecasts["variance"].values
    proxy = (forecasts["actual"] - forecasts["mean"]).values ** 2
    mz = sm.OLS(proxy, sm.add_constant(h)).fit()
    return {
        "n": len(h),
        "mse": float(np.mean((proxy - h) ** 2)),
        "mae": float(np.mean(np.abs(proxy - h))),
        "qlike": float(np.mean(np.log(h) + proxy / h)),
        "mz_intercept": float(mz.params[0]),
        "mz_slope": float(mz.params[1]),
        "mz_r2": float(mz.rsquared),
    }


def compare_rolling(series: pd.Series, specs: Iterable[GarchSpec], window: int = 1000, refit_every: int = 20,
                    expanding: bool = False, alpha: float = 0.01,
                    x: Optional[pd.DataFrame] = None) -> Tuple[Dict[str, pd.DataFrame], pd.DataFrame]:
    """Rolling forecasts for several specs, scored on losses and VaR coverage."""
    forecasts = {}
    rows = []
    for spec in specs:
        try:
            fc = rolling_forecast(series, spec, window=window, refit_every=refit_every, expanding=expanding,
                                  x=x if spec.uses_exog else None, alpha=alpha)
        except Exception as e:
            logger.warning("Rolling forecast for %s failed: %s", spec.label, e)
            continue
        forecasts[spec.label] = fc
        kup = kupiec_test(fc["hit"], alpha)
        ind = christoffersen_test(fc["hit"])
        rows.append({
            "model": spec.label,
            **forecast_losses(fc),
            "hit_rate": kup["hit_rate"],
            "kupiec_pvalue": kup["pvalue"],
            "christoffersen_pvalue": ind["pvalue"],
        })
    if not rows:
        raise RuntimeError("No rolling forecast could be produced")
    table = pd.DataFrame(rows).set_index("model").sort_values("qlike")
    return forecasts, table
