"""
Batch runner: forecast many scenarios against one calibrated corpus.

Scenarios are processed strictly one after another; each forecast call
returns before the next one starts.  A failing scenario is reported and
left out of the result set, it never stops the rest of the batch.
Results are kept in slots indexed by input position.
"""

import time
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd

from .analytics import cost_per_capita
from .errors import AdapterError, PreconditionError
from .forecasting import CALIBRATION_REQUIRED, ForecastClient
from .models import (
    CATEGORY_FIELDS,
    BatchResult,
    BatchScenarioRequest,
    HistoricalDisasterRecord,
)

ProgressCallback = Callable[[float, BatchResult], None]


class BatchRun:
    """
    One sequential pass over *scenarios*.

    ``progress`` (completed / total) and ``results`` can be read while
    :meth:`run` is in flight, e.g. from *on_progress*, which is called
    after every attempt with the progress and that scenario's
    :class:`BatchResult` (``forecast`` is None when it failed).
    """

    def __init__(
        self,
        corpus: Sequence[HistoricalDisasterRecord],
        scenarios: Sequence[BatchScenarioRequest],
        client: ForecastClient,
        on_progress: Optional[ProgressCallback] = None,
        verbose: bool = True,
    ):
        self.corpus = tuple(corpus)
        self.scenarios = tuple(scenarios)
        self.client = client
        self.on_progress = on_progress
        self.verbose = verbose
        self.completed = 0
        self.failures: List[Tuple[int, BatchScenarioRequest, str]] = []
        self.runtime_s = 0.0
        self._slots: List[Optional[BatchResult]] = [None] * len(self.scenarios)

    @property
    def total(self) -> int:
        return len(self.scenarios)

    @property
    def progress(self) -> float:
        return self.completed / self.total if self.total else 1.0

    @property
    def finished(self) -> bool:
        return self.completed == self.total

    @property
    def results(self) -> Tuple[BatchResult, ...]:
        """Successful results so far, in input order."""
        return tuple(s for s in self._slots if s is not None)

    def run(self) -> Tuple[BatchResult, ...]:
        """Process every scenario in order; a repeated call starts over."""
        if not self.corpus:
            raise PreconditionError(CALIBRATION_REQUIRED)

        self.completed = 0
        self.failures = []
        self._slots = [None] * self.total

        t0 = time.time()
        for i, scenario in enumerate(self.scenarios):
            if self.verbose:
                print(
                    f"[BATCH] node {i + 1}/{self.total}: {scenario.category} "
                    f"({scenario.severity.value}) in {scenario.area}",
                    flush=True,
                )
            try:
                forecast = self.client.forecast_scenario(self.corpus, scenario)
            except AdapterError as e:
                print(f"[BATCH] node failure for {scenario.area}: {e}", flush=True)
                self.failures.append((i, scenario, str(e)))
                outcome = BatchResult(scenario=scenario)
            else:
                outcome = BatchResult(scenario=scenario, forecast=forecast)
                self._slots[i] = outcome

            self.completed += 1
            if self.on_progress is not None:
                self.on_progress(self.progress, outcome)

        self.runtime_s = time.time() - t0
        if self.verbose:
            print(
                f"[BATCH] done: {len(self.results)}/{self.total} succeeded "
                f"in {self.runtime_s:.1f} s",
                flush=True,
            )
        return self.results


def run_batch(
    corpus: Sequence[HistoricalDisasterRecord],
    scenarios: Sequence[BatchScenarioRequest],
    client: ForecastClient,
    on_progress: Optional[ProgressCallback] = None,
) -> Tuple[BatchResult, ...]:
    """Convenience wrapper around :class:`BatchRun`."""
    return BatchRun(corpus, scenarios, client, on_progress=on_progress).run()


# ── Tabular export ───────────────────────────────────────────

def batch_to_frame(results: Sequence[BatchResult]) -> pd.DataFrame:
    """One row per successful result, with the scenario and forecast columns."""
    rows = []
    for r in results:
        if r.forecast is None:
            continue
        s, f = r.scenario, r.forecast
        row = {
            "category": s.category,
            "severity": s.severity.value,
            "population": s.population,
            "duration_days": s.duration_days,
            "area": s.area,
            "predicted_total": f.predicted_total,
            "confidence": f.confidence,
            "cost_per_capita": cost_per_capita(f.predicted_total, s.population),
        }
        row.update({c: f.breakdown.get(c, 0.0) for c in CATEGORY_FIELDS})
        row["key_factors"] = "; ".join(f.key_factors)
        rows.append(row)
    return pd.DataFrame(rows, columns=[
        "category", "severity", "population", "duration_days", "area",
        "predicted_total", "confidence", "cost_per_capita", *CATEGORY_FIELDS,
        "key_factors",
    ])


def export_batch_csv(results: Sequence[BatchResult], path: str) -> pd.DataFrame:
    df = batch_to_frame(results)
    df.to_csv(path, index=False)
    print(f"[BATCH] wrote {len(df)} rows to {path}")
    return df
