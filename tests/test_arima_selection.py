import numpy as np
import pandas as pd
import pytest

import arima_selection
from arima_selection import arch_lm_test, ljung_box, residual_diagnostics, select_arima_order


@pytest.fixture
def ar1():
    rng = np.random.default_rng(11)
    e = rng.normal(size=800)
    y = np.empty(800)
    y[0] = e[0]
    for t in range(1, 800):
        y[t] = 0.5 * y[t - 1] + e[t]
    return pd.Series(y, index=pd.bdate_range("2012-01-02", periods=800), name="ar1")


def test_select_arima_finds_dependence(ar1):
    sel = select_arima_order(ar1, d=0, max_p=2, max_q=1)
    assert len(sel.candidates) == 6
    assert sel.best_order != (0, 0, 0)
    assert sel.best_order[1] == 0
    assert sel.candidates["aic"].is_monotonic_increasing
    assert sel.failures == {}


def test_select_arima_records_failures(ar1, monkeypatch):
    real_fit = arima_selection._fit_arima

    def flaky(series, order):
        if order == (1, 0, 1):
            raise np.linalg.LinAlgError("singular")
        return real_fit(series, order)

    monkeypatch.setattr(arima_selection, "_fit_arima", flaky)
    sel = select_arima_order(ar1, d=0, max_p=1, max_q=1, criterion="bic")
    assert (1, 0, 1) in sel.failures
    assert len(sel.candidates) == 3


def test_select_arima_all_fail(ar1, monkeypatch):
    def broken(series, order):
        raise ValueError("no")

    monkeypatch.setattr(arima_selection, "_fit_arima", broken)
    with pytest.raises(RuntimeError):
        select_arima_order(ar1, d=0, max_p=1, max_q=0)


def test_select_arima_bad_criterion(ar1):
    with pytest.raises(ValueError):
        select_arima_order(ar1, d=0, criterion="hqic")


def test_arch_lm_detects_garch(garch_changes):
    res = arch_lm_test(garch_changes, nlags=5)
    assert res["arch_effects"]
    assert res["lm_pvalue"] < 0.01


def test_ljung_box_and_residual_diagnostics(garch_changes):
    lb = ljung_box(garch_changes, lags=10)
    assert {"lb_stat", "lb_pvalue"} <= set(lb.columns)
    diag = residual_diagnostics(garch_changes, lags=10)
    # volatility clustering shows up in squared changes
    assert diag["lb_sq_pvalue"] < 0.01
    assert diag["arch_arch_effects"]
