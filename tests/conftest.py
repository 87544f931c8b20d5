import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def simulate_garch_changes(n=1500, omega=0.5, alpha=0.08, beta=0.9, nu=6.0, mu=0.0, seed=0, variance_shift=None):
    """Daily yield changes in bp with GARCH(1,1) Student-t dynamics.

    variance_shift: optional array added to sigma^2_t (variance regressor effect).
    """
    rng = np.random.default_rng(seed)
    z = rng.standard_t(nu, size=n) * np.sqrt((nu - 2) / nu)
    eps = np.empty(n)
    sigma2 = np.empty(n)
    sigma2[0] = omega / (1 - alpha - beta)
    eps[0] = np.sqrt(sigma2[0]) * z[0]
    for t in range(1, n):
        sigma2[t] = omega + alpha * eps[t - 1] ** 2 + beta * sigma2[t - 1]
        if variance_shift is not None:
            sigma2[t] += variance_shift[t]
        eps[t] = np.sqrt(sigma2[t]) * z[t]
    index = pd.bdate_range("2015-01-01", periods=n, name="date")
    return pd.Series(mu + eps, index=index, name="dy_bp")


@pytest.fixture
def garch_changes():
    return simulate_garch_changes()


@pytest.fixture
def yield_levels(garch_changes):
    levels = 2.5 + garch_changes.cumsum() / 100
    levels.name = "DGS10"
    return levels


@pytest.fixture
def fred_csv(tmp_path, yield_levels):
    """A FRED download: DATE column, '.' on holidays."""
    df = pd.DataFrame({"DATE": yield_levels.index.strftime("%Y-%m-%d"),
                       "DGS10": yield_levels.round(2).astype(str).values})
    df.loc[[10, 50, 51], "DGS10"] = "."
    path = tmp_path / "DGS10.csv"
    df.to_csv(path, index=False)
    return path
