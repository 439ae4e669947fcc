"""
Derived quantities for display and comparison.

Pure functions over a forecast, the corpus and batch results: category
shares, variance against the historical baseline, cost per capita,
batch aggregates, and crore-scaled currency formatting.
"""

import re
from typing import Dict, List, Sequence, Tuple

import numpy as np

from . import config as cfg
from .models import (
    CATEGORY_FIELDS,
    CATEGORY_LABELS,
    BatchResult,
    ForecastResult,
    HistoricalDisasterRecord,
)


# ── Shares and baseline ──────────────────────────────────────

def category_shares(forecast: ForecastResult) -> Dict[str, float]:
    """
    Fraction of the predicted total per category.

    A zero total is replaced by 1, so the shares then equal the raw
    category values.
    """
    denom = forecast.predicted_total or 1.0
    return {c: float(forecast.breakdown.get(c, 0.0)) / denom for c in CATEGORY_FIELDS}


def allocation_rows(forecast: ForecastResult) -> List[Tuple[str, float, float]]:
    """``(label, value, share)`` per category, in canonical order, for charts."""
    shares = category_shares(forecast)
    return [
        (CATEGORY_LABELS[c], float(forecast.breakdown.get(c, 0.0)), shares[c])
        for c in CATEGORY_FIELDS
    ]


def historical_baseline(corpus: Sequence[HistoricalDisasterRecord]) -> float:
    """Mean total budget of the corpus; 0 for an empty corpus."""
    if not corpus:
        return 0.0
    return float(np.mean([r.total_budget for r in corpus]))


def variance_vs_baseline(predicted_total: float, baseline: float) -> float:
    """Signed relative difference ``(p - b) / max(b, 1)``."""
    return (predicted_total - baseline) / max(baseline, 1.0)


def variance_direction(variance: float) -> str:
    return "over" if variance > 0 else "under"


def cost_per_capita(predicted_total: float, population: int) -> float:
    return predicted_total / max(population, 1)


def batch_aggregate(results: Sequence[BatchResult]) -> float:
    """Sum of predicted totals over the successful batch entries."""
    return float(sum(r.forecast.predicted_total for r in results if r.forecast is not None))


def summarize_forecast(
    forecast: ForecastResult,
    corpus: Sequence[HistoricalDisasterRecord],
    population: int,
) -> Dict[str, object]:
    """All derived values for one forecast, keyed for display."""
    baseline = historical_baseline(corpus)
    variance = variance_vs_baseline(forecast.predicted_total, baseline)
    return {
        "predicted_total": forecast.predicted_total,
        "confidence": forecast.confidence,
        "shares": category_shares(forecast),
        "baseline": baseline,
        "variance": variance,
        "variance_direction": variance_direction(variance),
        "cost_per_capita": cost_per_capita(forecast.predicted_total, population),
        "key_factors": forecast.key_factors[: cfg.KEY_FACTORS_SHOWN],
    }


# ── Currency formatting ──────────────────────────────────────

_SCALED_RE = re.compile(r"-?\d+(?:\.\d+)?")


def format_total(value: float) -> str:
    """Express *value* in crore (``cfg.CRORE`` units) with two decimals."""
    return f"{value / cfg.CRORE:.2f}"


def parse_total(text: str) -> float:
    """Inverse of :func:`format_total`; also accepts ``format_crore`` output."""
    m = _SCALED_RE.search((text or "").replace(",", ""))
    if not m:
        raise ValueError(f"No scaled amount in {text!r}")
    return float(m.group()) * cfg.CRORE


def format_crore(value: float) -> str:
    return f"{cfg.CURRENCY_SYMBOL}{format_total(value)} Cr"


def format_percent(fraction: float, signed: bool = False) -> str:
    pct = fraction * 100.0
    return f"{pct:+.1f}%" if signed else f"{pct:.1f}%"
