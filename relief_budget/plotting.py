"""
Visualisation routines for forecasts, batches and the historical corpus.

All figures use matplotlib only.  Every function shows the figure, or
saves it when *save_path* is given.
"""

from typing import Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .analytics import (
    allocation_rows,
    format_total,
    variance_direction,
    variance_vs_baseline,
)
from .models import BatchResult, ForecastResult, HistoricalDisasterRecord


# ── Style defaults ───────────────────────────────────────────
_RC = {
    "font.size": 11,
    "axes.titlesize": 12,
    "axes.labelsize": 11,
    "xtick.labelsize": 10,
    "ytick.labelsize": 10,
    "legend.fontsize": 9,
    "figure.dpi": 150,
}


def _apply_style():
    plt.rcParams.update(_RC)


def _finish(fig, save_path: Optional[str]) -> None:
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, bbox_inches="tight")
        plt.close(fig)
    else:
        plt.show()


# ── 1. Allocation donut ──────────────────────────────────────

def plot_allocation_donut(forecast: ForecastResult, save_path: Optional[str] = None):
    """Category allocation of one forecast as a ring chart."""
    _apply_style()
    rows = [r for r in allocation_rows(forecast) if r[1] > 0]
    fig, ax = plt.subplots(figsize=(6, 5))
    if rows:
        labels = [f"{label} ({share * 100:.1f}%)" for label, _, share in rows]
        ax.pie(
            [value for _, value, _ in rows],
            labels=labels,
            startangle=90,
            counterclock=False,
            wedgeprops={"width": 0.35},
            textprops={"fontsize": 8},
        )
    ax.text(0, 0, "ALLOCATION", ha="center", va="center", fontweight="bold")
    ax.set_title(f"Fiscal allocation (total {format_total(forecast.predicted_total)} Cr)")
    ax.axis("equal")
    _finish(fig, save_path)
    return fig


# ── 2. Variance vs baseline ──────────────────────────────────

def plot_variance_bar(predicted_total: float, baseline: float, save_path: Optional[str] = None):
    """Predicted total next to the historical baseline."""
    _apply_style()
    variance = variance_vs_baseline(predicted_total, baseline)
    color = "tab:red" if variance_direction(variance) == "over" else "tab:green"
    fig, ax = plt.subplots(figsize=(5, 3))
    ax.barh(["Baseline", "Predicted"], [baseline, predicted_total], color=["tab:gray", color])
    ax.set_xlabel("Budget (INR)")
    ax.set_title(f"Historic variance: {variance * 100:+.1f}% vs baseline")
    ax.grid(True, axis="x", alpha=0.3)
    _finish(fig, save_path)
    return fig


# ── 3. Batch totals ──────────────────────────────────────────

def plot_batch_totals(results: Sequence[BatchResult], save_path: Optional[str] = None):
    """Predicted total per successful batch scenario, in input order."""
    _apply_style()
    ok = [r for r in results if r.forecast is not None]
    fig, ax = plt.subplots(figsize=(max(5, 1.2 * len(ok) + 2), 4))
    x = np.arange(len(ok))
    totals = np.array([r.forecast.predicted_total for r in ok], dtype=float)
    ax.bar(x, totals, color="tab:blue")
    ax.set_xticks(x)
    ax.set_xticklabels(
        [f"{r.scenario.area}\n{r.scenario.severity.value}" for r in ok], fontsize=8
    )
    ax.set_ylabel("Predicted total (INR)")
    ax.set_title(f"Consolidated batch evaluation ({format_total(totals.sum())} Cr)")
    ax.grid(True, axis="y", alpha=0.3)
    _finish(fig, save_path)
    return fig


# ── 4. Historical corpus ─────────────────────────────────────

def plot_corpus_totals(corpus: Sequence[HistoricalDisasterRecord], save_path: Optional[str] = None):
    """Total budget per historical record with the baseline drawn across."""
    _apply_style()
    fig, ax = plt.subplots(figsize=(max(5, 0.9 * len(corpus) + 2), 4))
    x = np.arange(len(corpus))
    totals = np.array([r.total_budget for r in corpus], dtype=float)
    ax.bar(x, totals, color="tab:purple", alpha=0.8)
    if len(corpus):
        ax.axhline(totals.mean(), color="k", linewidth=0.8, linestyle="--", label="Baseline")
        ax.legend()
    ax.set_xticks(x)
    ax.set_xticklabels([f"{r.area}\n{r.year}" for r in corpus], fontsize=8)
    ax.set_ylabel("Total budget (INR)")
    ax.set_title("Historical audit records")
    ax.grid(True, axis="y", alpha=0.3)
    _finish(fig, save_path)
    return fig
