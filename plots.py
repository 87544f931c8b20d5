"""
plots.py

Figures for the yield volatility workflow. Each function saves a PNG into
save_dir, closes the figure and returns the file path.
"""

from __future__ import annotations
import os
from typing import Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf


def _save(fig, save_dir: str, name: str) -> str:
    os.makedirs(save_dir, exist_ok=True)
    path = os.path.join(save_dir, name)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_yields(levels: pd.Series, changes: pd.Series, save_dir: str) -> str:
    fig, axes = plt.subplots(2, 1, figsize=(11, 7), sharex=True)
    axes[0].plot(levels.index, levels.values, linewidth=0.8)
    axes[0].set_title("10-Year Treasury Constant Maturity Yield")
    axes[0].set_ylabel("Yield (%)")
    axes[0].grid(True)
    axes[1].plot(changes.index, changes.values, linewidth=0.5, color="tab:gray")
    axes[1].set_title(f"Daily changes ({changes.name})")
    axes[1].grid(True)
    return _save(fig, save_dir, "yields.png")


def plot_acf_pacf(series: pd.Series, save_dir: str, lags: int = 30, name: str = "acf_pacf.png") -> str:
    fig, axes = plt.subplots(2, 2, figsize=(11, 7))
    s = series.dropna()
    plot_acf(s, lags=lags, ax=axes[0, 0], title=f"ACF {s.name}")
    plot_pacf(s, lags=lags, ax=axes[0, 1], title=f"PACF {s.name}", method="ywm")
    plot_acf(s ** 2, lags=lags, ax=axes[1, 0], title="ACF squared")
    plot_pacf(s ** 2, lags=lags, ax=axes[1, 1], title="PACF squared", method="ywm")
    fig.tight_layout()
    return _save(fig, save_dir, name)


def plot_conditional_volatility(vols: Dict[str, pd.Series], changes: pd.Series, save_dir: str,
                                break_dates: Optional[List[pd.Timestamp]] = None) -> str:
    fig, ax = plt.subplots(figsize=(11, 5))
    ax.plot(changes.index, changes.abs().values, color="lightgray", linewidth=0.5, label="|change|")
    for label, vol in vols.items():
        ax.plot(vol.index, vol.values, linewidth=0.9, label=label)
    for d in break_dates or []:
        ax.axvline(d, color="k", linestyle="--", linewidth=0.8)
    ax.set_title("Conditional volatility")
    ax.set_ylabel(changes.name)
    ax.legend()
    ax.grid(True)
    return _save(fig, save_dir, "conditional_volatility.png")


def plot_breaks(series: pd.Series, segments: pd.DataFrame, save_dir: str, name: str = "breaks.png") -> str:
    fig, ax = plt.subplots(figsize=(11, 5))
    ax.plot(series.index, series.values, linewidth=0.5, color="tab:gray", label=series.name)
    for regime, row in segments.iterrows():
        ax.hlines(row["mean"], row["start"], row["end"], colors="tab:red", linewidth=2)
        if regime > 1:
            ax.axvline(row["start"], color="k", linestyle="--", linewidth=0.8)
    ax.set_title(f"Structural breaks: {len(segments) - 1} break(s)")
    ax.legend()
    ax.grid(True)
    return _save(fig, save_dir, name)


def plot_rolling_forecast(forecasts: Dict[str, pd.DataFrame], save_dir: str) -> str:
    fig, axes = plt.subplots(2, 1, figsize=(11, 8), sharex=True)
    first = next(iter(forecasts.values()))
    axes[0].plot(first.index, first["actual"].abs(), color="lightgray", linewidth=0.5, label="|actual|")
    for label, fc in forecasts.items():
        axes[0].plot(fc.index, fc["volatility"], linewidth=0.8, label=label)
    axes[0].set_title("Rolling one-day volatility forecasts")
    axes[0].legend()
    axes[0].grid(True)

    axes[1].plot(first.index, first["actual"], color="tab:gray", linewidth=0.5, label="actual")
    for label, fc in forecasts.items():
        axes[1].plot(fc.index, -fc["var"], linewidth=0.8, label=f"VaR {label}")
        hits = fc[fc["hit"] == 1]
        axes[1].scatter(hits.index, hits["actual"], s=8, marker="x")
    axes[1].set_title("VaR threshold and exceedances")
    axes[1].legend()
    axes[1].grid(True)
    return _save(fig, save_dir, "rolling_forecast.png")


def plot_news_impact(curves: Dict[str, pd.DataFrame], save_dir: str) -> str:
    fig, ax = plt.subplots(figsize=(8, 5))
    for label, nic in curves.items():
        ax.plot(nic["shock"], nic["next_variance"], label=label)
    ax.set_title("News impact curves")
    ax.set_xlabel("shock")
    ax.set_ylabel("next-day variance")
    ax.legend()
    ax.grid(True)
    return _save(fig, save_dir, "news_impact.png")
