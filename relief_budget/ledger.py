"""
Plain-text "Fiscal Readiness Briefing" for one forecast.
"""

from typing import Sequence

from .analytics import (
    allocation_rows,
    cost_per_capita,
    format_crore,
    format_percent,
    historical_baseline,
    variance_direction,
    variance_vs_baseline,
)
from .models import BatchScenarioRequest, ForecastResult, HistoricalDisasterRecord

_RULE = "-" * 64


def render_ledger(
    scenario: BatchScenarioRequest,
    forecast: ForecastResult,
    corpus: Sequence[HistoricalDisasterRecord],
) -> str:
    baseline = historical_baseline(corpus)
    variance = variance_vs_baseline(forecast.predicted_total, baseline)
    lines = [
        "FISCAL READINESS BRIEFING",
        _RULE,
        f"Scenario      : {scenario.category} ({scenario.severity.value}) in {scenario.area}",
        f"Population    : {scenario.population:,}",
        f"Duration      : {scenario.duration_days} days",
        f"Predicted     : {format_crore(forecast.predicted_total)}",
        f"Confidence    : {forecast.confidence * 100:.0f}%",
        f"Per capita    : {cost_per_capita(forecast.predicted_total, scenario.population):,.2f}",
        f"Baseline      : {format_crore(baseline)} over {len(corpus)} record(s)",
        f"Variance      : {format_percent(variance, signed=True)} "
        f"({variance_direction(variance)} baseline)",
        "",
        "Allocation",
        _RULE,
    ]
    for label, value, share in allocation_rows(forecast):
        lines.append(f"{label:<20} {format_crore(value):>16} {format_percent(share):>8}")

    if forecast.key_factors:
        lines += ["", "Key factors", _RULE]
        lines += [f"* {f}" for f in forecast.key_factors]

    lines += ["", "Reasoning", _RULE, forecast.reasoning or "-"]
    lines += ["", "Strategic overview", _RULE, forecast.executive_briefing or "-"]
    return "\n".join(lines) + "\n"


def write_ledger(
    path: str,
    scenario: BatchScenarioRequest,
    forecast: ForecastResult,
    corpus: Sequence[HistoricalDisasterRecord],
) -> str:
    text = render_ledger(scenario, forecast, corpus)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(text)
    print(f"[LEDGER] wrote {path}")
    return text
