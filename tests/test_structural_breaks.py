import numpy as np
import pandas as pd
import pytest

from structural_breaks import detect_breaks, segment_statistics, volatility_regime_breaks


@pytest.fixture
def mean_shift():
    rng = np.random.default_rng(21)
    idx = pd.bdate_range("2018-01-01", periods=600)
    y = rng.normal(size=600) + np.where(np.arange(600) >= 300, 3.0, 0.0)
    return pd.Series(y, index=idx, name="dy_bp")


def test_detects_single_mean_shift(mean_shift):
    res = detect_breaks(mean_shift, max_breaks=3, trim=0.15, jump=5)
    assert res.n_breaks >= 1
    assert any(abs(i - 300) <= 10 for i in res.break_indices)
    assert res.break_dates[0] == mean_shift.index[res.break_indices[0]]
    assert res.segments["n"].sum() == len(mean_shift)
    assert list(res.criterion_table.index)[0] == 0


def test_no_break_in_white_noise():
    rng = np.random.default_rng(2)
    s = pd.Series(rng.normal(size=500), index=pd.bdate_range("2018-01-01", periods=500))
    res = detect_breaks(s, max_breaks=3, criterion="lwz")
    assert res.n_breaks == 0
    assert res.break_dates == []
    assert len(res.segments) == 1


def test_variance_shift_with_normal_cost():
    rng = np.random.default_rng(4)
    idx = pd.bdate_range("2018-01-01", periods=600)
    y = rng.normal(size=600) * np.where(np.arange(600) >= 400, 4.0, 1.0)
    res = detect_breaks(pd.Series(y, index=idx), max_breaks=2, cost="normal")
    assert any(abs(i - 400) <= 15 for i in res.break_indices)
    seg = res.segments
    assert seg["std"].iloc[-1] > 2 * seg["std"].iloc[0]


def test_short_series_returns_no_breaks():
    s = pd.Series(np.arange(15.0), index=pd.bdate_range("2018-01-01", periods=15))
    res = detect_breaks(s)
    assert res.n_breaks == 0
    assert res.ends == [15]


def test_invalid_arguments(mean_shift):
    with pytest.raises(ValueError):
        detect_breaks(mean_shift, cost="rbf")
    with pytest.raises(ValueError):
        detect_breaks(mean_shift, criterion="aic")


def test_segment_statistics(mean_shift):
    seg = segment_statistics(mean_shift, [300, 600])
    assert list(seg.index) == [1, 2]
    assert seg.loc[2, "mean"] - seg.loc[1, "mean"] == pytest.approx(3.0, abs=0.3)
    assert seg.loc[2, "start"] == mean_shift.index[300]


def test_volatility_regime_breaks():
    idx = pd.bdate_range("2018-01-01", periods=500)
    vol = pd.Series(np.where(np.arange(500) >= 250, 8.0, 4.0), index=idx)
    dates = volatility_regime_breaks(vol, n_bkps=1, min_size=60)
    assert dates == [idx[250]]
    assert volatility_regime_breaks(vol.iloc[:100], n_bkps=3) == []


def test_volatility_regime_breaks_on_long_path():
    n = 8000
    idx = pd.bdate_range("1990-01-02", periods=n)
    rng = np.random.default_rng(11)
    level = np.select([np.arange(n) < 3000, np.arange(n) < 6000], [4.0, 9.0], 5.0)
    vol = pd.Series(level + 0.2 * rng.normal(size=n), index=idx)
    dates = volatility_regime_breaks(vol, n_bkps=2, jump=20)
    positions = sorted(idx.get_loc(d) for d in dates)
    assert len(positions) == 2
    assert abs(positions[0] - 3000) <= 20 and abs(positions[1] - 6000) <= 20
