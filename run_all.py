#!/usr/bin/env python3
"""
Generate all reports and figures for the sample datasets.

Uses the LLM client when OPENROUTER_API_KEY is set, otherwise the
offline analog estimator.

Usage:
    export OPENROUTER_API_KEY="sk-or-v1-..."   # optional
    python run_all.py
"""

import os

import matplotlib
matplotlib.use("Agg")

from relief_budget import config as cfg
from relief_budget.analytics import batch_aggregate, format_crore, historical_baseline
from relief_budget.batch import export_batch_csv
from relief_budget.data_loading import read_csv_text
from relief_budget.forecasting import make_client
from relief_budget.ledger import write_ledger
from relief_budget.models import BatchScenarioRequest, Severity
from relief_budget.plotting import (
    plot_allocation_donut,
    plot_batch_totals,
    plot_corpus_totals,
    plot_variance_bar,
)
from relief_budget.session import (
    SessionState,
    finish_training,
    ingest_batch,
    ingest_historical,
    run_forecast,
)

FIGS = cfg.FIGURES_DIR
os.makedirs(FIGS, exist_ok=True)

print("=" * 60)
print("RELIEF BUDGET FORECASTING — FULL RESULTS GENERATION")
print("=" * 60)

offline = not cfg.OPENROUTER_API_KEY
client = make_client(offline=offline)
print(f"Forecast client: {client.name}")

# ══════════════════════════════════════════════════════════════
# CALIBRATION
# ══════════════════════════════════════════════════════════════
state = ingest_historical(SessionState(), read_csv_text(cfg.SAMPLE_HISTORY_CSV))
state = finish_training(state, sleep=lambda _s: None, verbose=False)
baseline = historical_baseline(state.corpus)
print(f"Corpus: {len(state.corpus)} records, baseline {format_crore(baseline)}")

plot_corpus_totals(state.corpus, save_path=os.path.join(FIGS, "fig01_corpus_totals.png"))

# ══════════════════════════════════════════════════════════════
# SINGLE FORECAST
# ══════════════════════════════════════════════════════════════
print("\n[FIG 2-3] Single scenario forecast ...")
scenario = BatchScenarioRequest(
    category="Flood",
    severity=Severity.HIGH,
    population=750_000,
    duration_days=15,
    area="Odisha Delta Region",
)
state = run_forecast(state, scenario, client)
plot_allocation_donut(state.forecast, save_path=os.path.join(FIGS, "fig02_allocation.png"))
plot_variance_bar(
    state.forecast.predicted_total, baseline,
    save_path=os.path.join(FIGS, "fig03_variance.png"),
)
write_ledger(os.path.join(FIGS, "ledger_single.txt"), scenario, state.forecast, state.corpus)

# ══════════════════════════════════════════════════════════════
# BATCH
# ══════════════════════════════════════════════════════════════
print("\n[FIG 4] Batch scenarios ...")
state = ingest_batch(state, read_csv_text(cfg.SAMPLE_SCENARIOS_CSV), client)
export_batch_csv(state.batch_results, os.path.join(FIGS, "batch_results.csv"))
if state.batch_results:
    plot_batch_totals(state.batch_results, save_path=os.path.join(FIGS, "fig04_batch_totals.png"))

print(
    f"\nBatch: {len(state.batch_results)}/{len(state.batch_scenarios)} succeeded, "
    f"consolidated {format_crore(batch_aggregate(state.batch_results))}"
)
print(f"All outputs written to {FIGS}")
