import numpy as np
import pandas as pd
import pytest

import yield_data
from analysis_config import AnalysisConfig
from yield_data import (clean_yields, describe_series, fetch_yield_history, load_yields, read_fred_csv,
                        yield_changes)


def test_read_fred_csv_treats_dot_as_missing(fred_csv):
    s = read_fred_csv(fred_csv)
    assert s.name == "DGS10"
    assert isinstance(s.index, pd.DatetimeIndex)
    assert s.isna().sum() == 3


def test_read_fred_csv_observation_date_header(tmp_path):
    path = tmp_path / "DGS10.csv"
    path.write_text("observation_date,DGS10\n2024-01-02,3.95\n2024-01-03,.\n2024-01-04,3.99\n")
    s = read_fred_csv(path, column="DGS10")
    assert list(s.dropna().values) == [3.95, 3.99]
    assert s.index[0] == pd.Timestamp("2024-01-02")


def test_read_fred_csv_missing_column(fred_csv):
    with pytest.raises(KeyError):
        read_fred_csv(fred_csv, column="DGS30")


def test_read_fred_csv_empty_files(tmp_path):
    header_only = tmp_path / "header.csv"
    header_only.write_text("DATE,DGS10\n")
    with pytest.raises(ValueError, match="No observations"):
        read_fred_csv(header_only)
    blank = tmp_path / "blank.csv"
    blank.write_text("")
    with pytest.raises(ValueError, match="No observations"):
        read_fred_csv(blank)


def test_clean_yields_drops_missing_duplicates_and_sorts():
    idx = pd.to_datetime(["2024-01-03", "2024-01-02", "2024-01-02", "2024-01-04"] + list(pd.bdate_range("2024-01-05", periods=40)))
    values = [4.0, 3.9, 3.95, np.nan] + list(np.linspace(4.0, 4.4, 40))
    s = clean_yields(pd.Series(values, index=idx))
    assert s.index.is_monotonic_increasing
    assert not s.index.duplicated().any()
    assert s.loc[pd.Timestamp("2024-01-02")] == 3.95  # last duplicate kept
    assert pd.Timestamp("2024-01-04") not in s.index


def test_clean_yields_window_and_minimum(yield_levels):
    s = clean_yields(yield_levels, start="2016-01-01", end="2016-12-31")
    assert s.index.min() >= pd.Timestamp("2016-01-01")
    assert s.index.max() <= pd.Timestamp("2016-12-31")
    with pytest.raises(ValueError):
        clean_yields(yield_levels.iloc[:10])


def test_yield_changes_in_basis_points():
    s = pd.Series([4.00, 4.05, 3.95], index=pd.bdate_range("2024-01-02", periods=3))
    dy = yield_changes(s)
    assert dy.name == "dy_bp"
    assert np.allclose(dy.values, [5.0, -10.0])


def test_yield_changes_log_pct_requires_positive():
    s = pd.Series([0.5, -0.1, 0.2], index=pd.bdate_range("2024-01-02", periods=3))
    with pytest.raises(ValueError):
        yield_changes(s, transform="log_pct")
    with pytest.raises(ValueError):
        yield_changes(s, transform="levels")


def test_yield_changes_drops_data_errors():
    s = pd.Series([4.0, 4.05, 6.0, 4.1, 4.12], index=pd.bdate_range("2024-01-02", periods=5))
    dy = yield_changes(s, max_abs_change_bp=50)
    assert len(dy) == 2
    assert (dy.abs() <= 50).all()


def test_fetch_yield_history_flattens_multiindex(monkeypatch):
    idx = pd.bdate_range("2024-01-02", periods=5)
    cols = pd.MultiIndex.from_product([["Close", "Open"], ["^TNX"]])
    frame = pd.DataFrame(np.full((5, 2), 4.2), index=idx, columns=cols)
    monkeypatch.setattr(yield_data.yf, "download", lambda *a, **k: frame)
    s = fetch_yield_history("^TNX")
    assert isinstance(s, pd.Series)
    assert s.name == "^TNX"
    assert len(s) == 5


def test_fetch_yield_history_empty(monkeypatch):
    monkeypatch.setattr(yield_data.yf, "download", lambda *a, **k: pd.DataFrame())
    with pytest.raises(ValueError):
        fetch_yield_history("^TNX")


def test_load_yields_from_csv(fred_csv):
    s = load_yields(AnalysisConfig(csv_path=str(fred_csv)))
    assert not s.isna().any()
    assert len(s) == 1497


def test_describe_series(garch_changes):
    d = describe_series(garch_changes)
    assert d.loc["dy_bp", "n"] == len(garch_changes)
    # Student-t innovations with GARCH: fat tails
    assert d.loc["dy_bp", "excess_kurtosis"] > 0
    assert d.loc["dy_bp", "jb_pvalue"] < 0.05
