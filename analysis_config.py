"""
analysis_config.py

Run settings for the 10-year Treasury volatility workflow.

Defaults live on the AnalysisConfig dataclass; a YAML file can override any of
them (see analysis_config.yaml for the full list).
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

# ------------------ Event calendar ------------------

# Dates are the announcement day (Eastern time); non-trading days roll forward.
DEFAULT_EVENTS: Dict[str, List[str]] = {
    "fomc": [
        "2008-12-16",  # zero lower bound
        "2013-06-19",  # taper guidance
        "2015-12-16",  # first hike since 2006
        "2018-12-19",
        "2019-07-31",  # first cut since 2008
        "2020-03-03",  # emergency cut
        "2020-03-15",  # emergency cut to zero, Sunday
        "2022-03-16",  # liftoff
        "2022-06-15",  # 75bp
        "2023-07-26",
        "2024-09-18",  # 50bp cut
    ],
    "qe": [
        "2008-11-25",  # QE1 announced
        "2009-03-18",  # QE1 expanded to Treasuries
        "2010-11-03",  # QE2
        "2012-09-13",  # QE3
        "2013-05-22",  # taper tantrum testimony
        "2020-03-23",  # open-ended purchases
        "2021-11-03",  # taper announced
    ],
    "stress": [
        "2008-09-15",  # Lehman
        "2011-08-08",  # first trading day after S&P downgrade
        "2016-11-09",  # election
        "2020-03-09",
        "2023-03-10",  # SVB
        "2025-04-09",  # tariff pause
    ],
}


@dataclass
class AnalysisConfig:
    # data
    csv_path: Optional[str] = None
    ticker: str = "^TNX"
    series_column: str = "DGS10"
    start: Optional[str] = None
    end: Optional[str] = None
    transform: str = "diff_bp"
    max_abs_change_bp: Optional[float] = None

    # stationarity
    significance: float = 0.05
    max_diff: int = 2

    # ARIMA grid
    arima_max_p: int = 3
    arima_max_q: int = 3
    arima_criterion: str = "aic"
    diagnostic_lags: int = 10

    # GARCH grid
    garch_max_p: int = 2
    garch_max_q: int = 2
    garch_vols: List[str] = field(default_factory=lambda: ["GARCH", "GJR", "EGARCH"])
    garch_dists: List[str] = field(default_factory=lambda: ["normal", "t", "skewt"])
    garch_means: List[str] = field(default_factory=lambda: ["Constant", "AR"])
    garch_criterion: str = "bic"
    forecast_horizon: int = 10

    # events
    events: Dict[str, List[str]] = field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_EVENTS.items()})
    event_window: Tuple[int, int] = (0, 1)

    # structural breaks
    max_breaks: int = 5
    trim: float = 0.15
    break_jump: int = 20
    break_cost: str = "l2"

    # rolling forecasts
    rolling_window: int = 1000
    refit_every: int = 20
    expanding: bool = False
    var_alpha: float = 0.01

    # output
    save_dir: str = "results"
    make_plots: bool = True

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["event_window"] = list(self.event_window)
        return d


def load_config(path: str | Path) -> AnalysisConfig:
    """Read a YAML file and overlay its keys on the defaults.

    Raises FileNotFoundError if the file is missing and ValueError for a
    non-mapping document or keys AnalysisConfig does not know about.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Config {path} must be a mapping, got {type(raw).__name__}")

    known = {f.name for f in fields(AnalysisConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown config keys in {path}: {unknown}")

    if "event_window" in raw:
        before, after = raw["event_window"]
        raw["event_window"] = (int(before), int(after))
    return AnalysisConfig(**raw)
