"""
treasury_volatility.py

End-to-end volatility study of the daily 10-year Treasury yield:

1. Load the yield (FRED CSV or yfinance ^TNX) and clean it
2. Unit-root tests on the level and on the daily changes
3. ARIMA order selection for the mean, residual / ARCH-LM diagnostics
4. GARCH-family grid (mean x variance x distribution), best model diagnostics,
   volatility forecast, VaR/ES
5. Event regressors: event dummies in the mean (ARX-GARCH) and in the
   variance (GARCH-X) with an LR test
6. Bai-Perron style breaks in the changes, volatility regime breaks, and a
   GARCH-X with the break regimes in the variance
7. Rolling re-estimated forecasts: best spec vs GARCH(1,1)-normal, losses and
   VaR backtests
8. Figures

Usage:
    python treasury_volatility.py --csv data/DGS10.csv --start 2000-01-01
    python treasury_volatility.py --config analysis_config.yaml
"""

from __future__ import annotations
import argparse
import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd
import yaml

import plots
from analysis_config import AnalysisConfig, load_config
from arima_selection import residual_diagnostics, select_arima_order
from event_regressors import (break_dummies, event_dummies, fit_garch_with_mean_events,
                              fit_garchx, variance_regressor_lr_test)
from garch_models import (GarchSpec, build_spec_grid, forecast_volatility, garch_diagnostics,
                          garch_grid, news_impact_curve)
from risk_measures import garch_var_es
from rolling_forecast import compare_rolling
from structural_breaks import detect_breaks, volatility_regime_breaks
from unit_root import integration_order, stationarity_table
from yield_data import describe_series, load_yields, yield_changes

logger = logging.getLogger(__name__)

BENCHMARK = GarchSpec(mean="Constant", vol="GARCH", p=1, q=1, dist="normal")


def _to_csv(df: pd.DataFrame, save_dir: str, name: str) -> str:
    path = os.path.join(save_dir, name)
    df.to_csv(path)
    return path


def run_workflow(config: Optional[AnalysisConfig] = None) -> Dict[str, Any]:
    """Run the full pipeline, write tables/figures to config.save_dir and
    return a summary dictionary."""
    config = config or AnalysisConfig()
    save_dir = config.save_dir
    os.makedirs(save_dir, exist_ok=True)
    with open(os.path.join(save_dir, "run_config.yaml"), "w", encoding="utf-8") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)

    summary: Dict[str, Any] = {"errors": {}, "files": []}
    files: List[str] = summary["files"]

    # 1. data
    levels = load_yields(config)
    changes = yield_changes(levels, config.transform, config.max_abs_change_bp)
    desc = pd.concat([describe_series(levels), describe_series(changes)])
    files.append(_to_csv(desc, save_dir, "describe.csv"))
    summary["nobs"] = len(changes)
    summary["sample"] = (str(levels.index[0].date()), str(levels.index[-1].date()))

    # 2. stationarity
    st = pd.concat([
        stationarity_table(levels, config.significance),
        stationarity_table(changes, config.significance),
    ])
    files.append(_to_csv(st, save_dir, "stationarity.csv"))
    d_level = integration_order(levels, config.max_diff, config.significance)
    summary["integration_order_level"] = d_level

    # 3. ARIMA mean on the changes
    arima = select_arima_order(changes, d=None, max_p=config.arima_max_p, max_q=config.arima_max_q,
                               criterion=config.arima_criterion, significance=config.significance)
    files.append(_to_csv(arima.candidates, save_dir, "arima_candidates.csv"))
    arima_diag = residual_diagnostics(arima.result.resid, lags=config.diagnostic_lags)
    summary["arima_order"] = arima.best_order
    summary["arima_diagnostics"] = arima_diag
    if not arima_diag["arch_arch_effects"]:
        logger.warning("No ARCH effects in ARIMA residuals (p=%.3f); GARCH may be unnecessary",
                       arima_diag["arch_lm_pvalue"])

    # 4. GARCH grid
    ar_lags = max(arima.best_order[0], 1)
    specs = build_spec_grid(config.garch_means, config.garch_vols, config.garch_dists,
                            config.garch_max_p, config.garch_max_q, ar_lags=ar_lags)
    fits, garch_table = garch_grid(changes, specs, criterion=config.garch_criterion)
    files.append(_to_csv(garch_table, save_dir, "garch_grid.csv"))
    best = fits[0]
    summary["best_garch"] = best.spec.label
    summary["best_garch_params"] = best.params.to_dict()
    summary["best_garch_persistence"] = best.persistence
    summary["garch_diagnostics"] = garch_diagnostics(best, config.diagnostic_lags)
    fc = forecast_volatility(best, horizon=config.forecast_horizon)
    files.append(_to_csv(fc, save_dir, "garch_forecast.csv"))
    summary["var_es"] = garch_var_es(best, alpha=config.var_alpha)

    vols = {best.spec.label: best.result.conditional_volatility}

    # 5. event regressors
    try:
        dummies = event_dummies(changes.index, config.events, window=config.event_window)
        if dummies.shape[1] == 0:
            raise ValueError("no event falls inside the sample")
        mean_ev = fit_garch_with_mean_events(changes, dummies, dist=best.spec.dist)
        summary["mean_events"] = {"model": mean_ev.spec.label, "aic": mean_ev.aic, "bic": mean_ev.bic,
                                  "params": mean_ev.params.to_dict(),
                                  "pvalues": mean_ev.result.pvalues.to_dict()}
        lr = variance_regressor_lr_test(changes, dummies, dist="t")
        files.append(_to_csv(lr["full"].summary_table(), save_dir, "garchx_events.csv"))
        summary["variance_events"] = {k: lr[k] for k in ("lr_stat", "df", "pvalue")}
        vols["GARCH-X events"] = lr["full"].conditional_volatility
    except Exception as e:
        logger.error("Event regressor stage failed: %s", e)
        summary["errors"]["events"] = str(e)

    # 6. structural breaks
    breaks = detect_breaks(changes, max_breaks=config.max_breaks, trim=config.trim,
                           cost=config.break_cost, jump=config.break_jump)
    files.append(_to_csv(breaks.segments, save_dir, "break_segments.csv"))
    files.append(_to_csv(breaks.criterion_table, save_dir, "break_criteria.csv"))
    summary["break_dates"] = [str(pd.Timestamp(d).date()) for d in breaks.break_dates]

    var_breaks = detect_breaks(changes ** 2, max_breaks=config.max_breaks, trim=config.trim,
                               cost="l2", jump=config.break_jump)
    summary["variance_break_dates"] = [str(pd.Timestamp(d).date()) for d in var_breaks.break_dates]
    vol_breaks = volatility_regime_breaks(best.result.conditional_volatility, jump=config.break_jump)
    summary["volatility_regime_breaks"] = [str(pd.Timestamp(d).date()) for d in vol_breaks]

    if var_breaks.n_breaks:
        try:
            regimes = break_dummies(changes.index, var_breaks.break_dates)
            gx = fit_garchx(changes, regimes, dist="t")
            files.append(_to_csv(gx.summary_table(), save_dir, "garchx_breaks.csv"))
            summary["break_garchx"] = {"persistence": gx.persistence, "bic": gx.bic,
                                       "params": gx.params.to_dict()}
            vols["GARCH-X regimes"] = gx.conditional_volatility
        except Exception as e:
            logger.error("GARCH-X with break regimes failed: %s", e)
            summary["errors"]["break_garchx"] = str(e)

    # 7. rolling forecasts
    rolling = {}
    if config.rolling_window < len(changes):
        try:
            rolling_specs = [best.spec] if best.spec == BENCHMARK else [best.spec, BENCHMARK]
            rolling, roll_table = compare_rolling(changes, rolling_specs, window=config.rolling_window,
                                                  refit_every=config.refit_every, expanding=config.expanding,
                                                  alpha=config.var_alpha)
            files.append(_to_csv(roll_table, save_dir, "rolling_evaluation.csv"))
            summary["rolling"] = roll_table.to_dict(orient="index")
        except Exception as e:
            logger.error("Rolling forecast stage failed: %s", e)
            summary["errors"]["rolling"] = str(e)
    else:
        logger.warning("Sample of %d too short for rolling window %d; skipping", len(changes), config.rolling_window)

    # 8. figures
    if config.make_plots:
        files.append(plots.plot_yields(levels, changes, save_dir))
        files.append(plots.plot_acf_pacf(changes, save_dir, lags=min(30, len(changes) // 4)))
        files.append(plots.plot_conditional_volatility(vols, changes, save_dir, breaks.break_dates))
        files.append(plots.plot_breaks(changes, breaks.segments, save_dir))
        nic = {f.spec.label: news_impact_curve(f) for f in fits[:3] if f.spec.vol != "ARCH"}
        if nic:
            files.append(plots.plot_news_impact(nic, save_dir))
        if rolling:
            files.append(plots.plot_rolling_forecast(rolling, save_dir))

    logger.info("Workflow finished; %d files written to %s", len(files), save_dir)
    return summary


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GARCH volatility study of the daily 10-year Treasury yield.")
    parser.add_argument("--config", type=str, default=None, help="YAML file overriding the default settings.")
    parser.add_argument("--csv", type=str, default=None, help="FRED-style CSV (e.g. DGS10.csv) instead of yfinance.")
    parser.add_argument("--ticker", type=str, default=None, help="yfinance ticker (default: ^TNX).")
    parser.add_argument("--start", type=str, default=None, help="First date, YYYY-MM-DD.")
    parser.add_argument("--end", type=str, default=None, help="Last date, YYYY-MM-DD.")
    parser.add_argument("--save-dir", type=str, default=None, help="Output directory (default: results).")
    parser.add_argument("--no-plots", action="store_true", help="Skip the figures.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config) if args.config else AnalysisConfig()
    if args.csv:
        config.csv_path = args.csv
    if args.ticker:
        config.ticker = args.ticker
    if args.start:
        config.start = args.start
    if args.end:
        config.end = args.end
    if args.save_dir:
        config.save_dir = args.save_dir
    if args.no_plots:
        config.make_plots = False

    summary = run_workflow(config)
    print('Workflow summary:')
    for k, v in summary.items():
        if k == "files":
            continue
        print(k, ':', v)
    return summary


if __name__ == '__main__':
    main()
