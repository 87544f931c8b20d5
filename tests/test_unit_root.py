import logging
import warnings

import numpy as np
import pandas as pd
import pytest
from statsmodels.tools.sm_exceptions import InterpolationWarning

import unit_root
from unit_root import (adf_test, integration_order, is_stationary, kpss_test, pp_test, stationarity_table,
                       zivot_andrews_test)


@pytest.fixture
def random_walk():
    rng = np.random.default_rng(7)
    idx = pd.bdate_range("2010-01-01", periods=1000)
    return pd.Series(np.cumsum(rng.normal(size=1000)), index=idx, name="level")


def test_adf_and_pp_do_not_reject_on_random_walk(random_walk):
    assert not adf_test(random_walk).stationary
    assert not pp_test(random_walk).stationary


def test_kpss_rejects_on_random_walk(random_walk):
    res = kpss_test(random_walk)
    assert res.null_hypothesis == "stationary"
    assert not res.stationary


def test_changes_are_stationary(garch_changes):
    adf = adf_test(garch_changes)
    assert adf.stationary
    assert adf.pvalue < 0.01
    assert set(adf.critical_values) == {"1%", "5%", "10%"}


def test_integration_order_of_random_walk(random_walk):
    assert integration_order(random_walk, significance=0.01) == 1
    assert not is_stationary(random_walk, significance=0.01)


def test_integration_order_stops_at_max_diff(random_walk, caplog):
    twice_integrated = random_walk.cumsum().cumsum()
    with caplog.at_level(logging.WARNING, logger="unit_root"):
        assert integration_order(twice_integrated, max_diff=1) == 1
    assert "not stationary after 1 differences" in caplog.text


def test_kpss_passes_through_unrelated_warnings(random_walk, monkeypatch):
    def noisy_kpss(x, regression="c", nlags="auto"):
        warnings.warn("p-value is smaller than the indicated p-value", InterpolationWarning)
        warnings.warn("lag selection fell back", RuntimeWarning)
        return 2.5, 0.01, 12, {"10%": 0.347, "5%": 0.463, "2.5%": 0.574, "1%": 0.739}

    monkeypatch.setattr(unit_root, "kpss", noisy_kpss)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        res = kpss_test(random_walk)
    categories = [w.category for w in caught]
    assert RuntimeWarning in categories
    assert InterpolationWarning not in categories
    assert not res.stationary


def test_zivot_andrews_reports_break_date():
    rng = np.random.default_rng(3)
    idx = pd.bdate_range("2010-01-01", periods=400)
    y = rng.normal(size=400) + np.where(np.arange(400) >= 200, 8.0, 0.0)
    res = zivot_andrews_test(pd.Series(y, index=idx))
    assert res.break_date is not None
    assert abs(res.break_index - 200) < 20


def test_stationarity_table_has_all_tests(garch_changes):
    table = stationarity_table(garch_changes.iloc[:500])
    assert list(table.index) == ["ADF", "KPSS", "PP", "Zivot-Andrews"]
    assert (table["series"] == "dy_bp").all()


def test_short_series_rejected():
    with pytest.raises(ValueError):
        adf_test(pd.Series(np.arange(5.0)))
