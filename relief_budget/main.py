#!/usr/bin/env python3
"""
Command-line entry point for the relief budget forecasting pipeline.

Usage:
    export OPENROUTER_API_KEY="sk-or-v1-..."
    python -m relief_budget.main forecast --history data/sample_history.csv \
        --type Flood --severity High --population 750000 --duration 15 \
        --area "Odisha Delta Region"
    python -m relief_budget.main batch --history data/sample_history.csv \
        --scenarios data/sample_scenarios.csv --out batch.csv
    python -m relief_budget.main demo --offline
"""

import argparse
import os
import sys
import time
from typing import List, Optional

from . import config as cfg
from .analytics import (
    batch_aggregate,
    format_crore,
    historical_baseline,
)
from .batch import export_batch_csv
from .data_loading import (
    HISTORY_HEADER,
    SCENARIO_HEADER,
    corpus_to_frame,
    read_csv_text,
    standardize_severity,
)
from .errors import ReliefBudgetError
from .forecasting import make_client
from .ledger import render_ledger, write_ledger
from .models import BatchScenarioRequest
from .session import (
    SessionState,
    finish_training,
    ingest_batch,
    ingest_historical,
    load_demo,
    run_forecast,
)


def _no_sleep(_seconds: float) -> None:
    return None


def _calibrate(args) -> SessionState:
    state = SessionState()
    if args.history:
        state = ingest_historical(state, read_csv_text(args.history))
        step, interval = cfg.TRAINING_STEP, cfg.TRAINING_INTERVAL_S
    else:
        print("[CALIB] no history file given, booting demonstration corpus")
        state = load_demo(state)
        step, interval = cfg.DEMO_TRAINING_STEP, cfg.DEMO_TRAINING_INTERVAL_S
    return finish_training(
        state, step=step, interval=interval,
        sleep=_no_sleep if args.fast else time.sleep,
    )


def _print_forecast(state: SessionState) -> None:
    print(render_ledger(state.scenario, state.forecast, state.corpus))


def _save_figures(state: SessionState, fig_dir: str) -> None:
    from .plotting import (
        plot_allocation_donut,
        plot_batch_totals,
        plot_corpus_totals,
        plot_variance_bar,
    )

    os.makedirs(fig_dir, exist_ok=True)
    plot_corpus_totals(state.corpus, save_path=os.path.join(fig_dir, "corpus_totals.png"))
    if state.forecast is not None:
        plot_allocation_donut(state.forecast, save_path=os.path.join(fig_dir, "allocation.png"))
        plot_variance_bar(
            state.forecast.predicted_total,
            historical_baseline(state.corpus),
            save_path=os.path.join(fig_dir, "variance.png"),
        )
    if state.batch_results:
        plot_batch_totals(state.batch_results, save_path=os.path.join(fig_dir, "batch_totals.png"))
    print(f"[PLOT] figures saved under {fig_dir}")


# ── Subcommands ──────────────────────────────────────────────

def cmd_inspect(args) -> int:
    state = _calibrate(args)
    df = corpus_to_frame(state.corpus)
    print(df.to_string(index=False))
    print(f"\n{len(df)} valid records, baseline {format_crore(historical_baseline(state.corpus))}")
    return 0


def cmd_forecast(args) -> int:
    state = _calibrate(args)
    scenario = BatchScenarioRequest(
        category=args.type,
        severity=standardize_severity(args.severity),
        population=args.population,
        duration_days=args.duration,
        area=args.area,
    )
    state = run_forecast(state, scenario, make_client(args.offline))
    _print_forecast(state)
    if args.ledger:
        write_ledger(args.ledger, state.scenario, state.forecast, state.corpus)
    if args.figures:
        _save_figures(state, args.figures)
    return 0


def cmd_batch(args) -> int:
    state = _calibrate(args)

    def _progress(fraction, outcome):
        status = "ok" if outcome.forecast is not None else "skipped"
        print(f"[BATCH] {fraction * 100:.0f}% ({outcome.scenario.area}: {status})", flush=True)

    state = ingest_batch(
        state, read_csv_text(args.scenarios), make_client(args.offline), on_progress=_progress
    )
    for r in state.batch_results:
        s = r.scenario
        print(
            f"  {s.category:<12} {s.severity.value:<9} {s.area:<28} "
            f"{format_crore(r.forecast.predicted_total):>16}"
        )
    print(
        f"\n{len(state.batch_results)}/{len(state.batch_scenarios)} scenarios forecast, "
        f"consolidated {format_crore(batch_aggregate(state.batch_results))}"
    )
    if args.out:
        export_batch_csv(state.batch_results, args.out)
    if args.figures:
        _save_figures(state, args.figures)
    return 0


def cmd_demo(args) -> int:
    args.history = None
    args.type, args.severity = "Flood", "High"
    args.population, args.duration = 750_000, 15
    args.area = "Odisha Delta Region"
    return cmd_forecast(args)


def cmd_format(args) -> int:
    print("Historical CSV columns:\n  " + ",".join(HISTORY_HEADER))
    print("Batch scenario CSV columns:\n  " + ",".join(SCENARIO_HEADER))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="relief-budget",
        description="Disaster relief budget forecasting from historical audit CSVs.",
    )
    sub = p.add_subparsers(dest="command", required=True)

    def common(sp, history=True):
        if history:
            sp.add_argument("--history", help="historical expenditure CSV (demo corpus if omitted)")
        sp.add_argument("--offline", action="store_true",
                        help="use the local analog estimator instead of the LLM")
        sp.add_argument("--fast", action="store_true",
                        help="skip the training progress cadence")
        sp.add_argument("--figures", help="directory to save charts into")

    sp = sub.add_parser("inspect", help="sanitize a history file and print the corpus")
    sp.add_argument("--history", help="historical expenditure CSV (demo corpus if omitted)")
    sp.add_argument("--fast", action="store_true", help="skip the training progress cadence")
    sp.set_defaults(func=cmd_inspect)

    sp = sub.add_parser("forecast", help="forecast a single scenario")
    common(sp)
    sp.add_argument("--type", default="Flood")
    sp.add_argument("--severity", default="High")
    sp.add_argument("--population", type=int, default=750_000)
    sp.add_argument("--duration", type=int, default=15)
    sp.add_argument("--area", default="Odisha Delta Region")
    sp.add_argument("--ledger", help="write the briefing ledger to this path")
    sp.set_defaults(func=cmd_forecast)

    sp = sub.add_parser("batch", help="forecast every scenario in a CSV")
    common(sp)
    sp.add_argument("--scenarios", required=True, help="batch scenario CSV")
    sp.add_argument("--out", help="write successful results to this CSV")
    sp.set_defaults(func=cmd_batch)

    sp = sub.add_parser("demo", help="demonstration corpus + default flood scenario")
    common(sp, history=False)
    sp.add_argument("--ledger", help="write the briefing ledger to this path")
    sp.set_defaults(func=cmd_demo)

    sp = sub.add_parser("format", help="print the expected CSV column order")
    sp.set_defaults(func=cmd_format)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (ReliefBudgetError, OSError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
