import os

import numpy as np
import pandas as pd

import plots
from structural_breaks import segment_statistics


def test_series_figures_are_written(tmp_path, yield_levels, garch_changes):
    save_dir = str(tmp_path / "figs")
    paths = [
        plots.plot_yields(yield_levels, garch_changes, save_dir),
        plots.plot_acf_pacf(garch_changes, save_dir, lags=20),
    ]
    vol = garch_changes.abs().rolling(20, min_periods=1).mean()
    paths.append(plots.plot_conditional_volatility({"rolling": vol}, garch_changes, save_dir,
                                                   [garch_changes.index[700]]))
    segments = segment_statistics(garch_changes, [700, len(garch_changes)])
    paths.append(plots.plot_breaks(garch_changes, segments, save_dir))
    for p in paths:
        assert os.path.isfile(p)
        assert p.endswith(".png")


def test_rolling_and_news_impact_figures(tmp_path):
    idx = pd.bdate_range("2020-01-01", periods=50)
    rng = np.random.default_rng(1)
    actual = rng.normal(size=50)
    fc = pd.DataFrame({"actual": actual, "volatility": np.ones(50), "var": np.full(50, 2.33),
                       "hit": (actual < -2.33).astype(int)}, index=idx)
    shocks = np.linspace(-3, 3, 11)
    nic = pd.DataFrame({"shock": shocks, "next_variance": 0.1 + 0.05 * shocks ** 2})

    p1 = plots.plot_rolling_forecast({"GARCH": fc}, str(tmp_path))
    p2 = plots.plot_news_impact({"GARCH": nic}, str(tmp_path))
    assert os.path.basename(p1) == "rolling_forecast.png"
    assert os.path.basename(p2) == "news_impact.png"
    assert os.path.getsize(p1) > 0 and os.path.getsize(p2) > 0
