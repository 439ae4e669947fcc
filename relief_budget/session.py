"""
Session state and the actions that move it forward.

``SessionState`` is an immutable value; every action takes the current
state and returns a new one, or raises one of the errors in
:mod:`relief_budget.errors` and leaves the caller's state untouched.

:class:`Workbench` is a thin holder for interactive front ends: it keeps
the current state behind a lock, runs the scripted training cadence on a
:class:`~relief_budget.calibration.TrainingTimer`, and refuses ingestion
while a forecast or batch is outstanding.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Optional, Tuple

from . import config as cfg
from .analytics import batch_aggregate, summarize_forecast
from .batch import BatchRun, ProgressCallback
from .calibration import Calibration, Phase, TrainingTimer, drive_training
from .data_loading import DEMO_CORPUS, sanitize_history, sanitize_scenarios
from .errors import PreconditionError, ValidationError
from .forecasting import CALIBRATION_REQUIRED, ForecastClient
from .models import (
    BatchResult,
    BatchScenarioRequest,
    ForecastResult,
    HistoricalDisasterRecord,
)

BUSY = "A forecast or batch is still outstanding."


@dataclass(frozen=True)
class SessionState:
    calibration: Calibration = field(default_factory=Calibration)
    scenario: Optional[BatchScenarioRequest] = None
    forecast: Optional[ForecastResult] = None
    batch_scenarios: Tuple[BatchScenarioRequest, ...] = ()
    batch_results: Tuple[BatchResult, ...] = ()
    batch_failures: Tuple[BatchScenarioRequest, ...] = ()
    batch_progress: float = 0.0
    busy: bool = False

    @property
    def corpus(self) -> Tuple[HistoricalDisasterRecord, ...]:
        return self.calibration.corpus

    @property
    def phase(self) -> Phase:
        return self.calibration.phase


def _ensure_idle(state: SessionState) -> None:
    if state.busy:
        raise PreconditionError(BUSY)


def _ensure_ready(state: SessionState) -> None:
    if not state.calibration.is_ready:
        raise PreconditionError(CALIBRATION_REQUIRED)


# ── Actions ──────────────────────────────────────────────────

def begin_ingest(state: SessionState) -> SessionState:
    """Enter CLEANING for a new file; any training in progress is abandoned."""
    _ensure_idle(state)
    return replace(state, calibration=state.calibration.begin_cleaning())


def accept_history(
    state: SessionState, records: Tuple[HistoricalDisasterRecord, ...]
) -> SessionState:
    """CLEANING -> TRAINING with already-sanitized records."""
    print(f"[CALIB] {len(records)} valid records, training …", flush=True)
    return replace(state, calibration=state.calibration.accept(records))


def reject_history(state: SessionState) -> SessionState:
    """CLEANING -> READY with the previous corpus, or EMPTY when there was none."""
    return replace(state, calibration=state.calibration.reject())


def ingest_historical(state: SessionState, text: str) -> SessionState:
    """
    Sanitize historical CSV text and enter TRAINING with the new records.

    Goes through CLEANING; on :class:`ValidationError` nothing is returned
    and the caller keeps its own state.
    """
    cleaning = begin_ingest(state)
    try:
        records = sanitize_history(text)
    except ValidationError as e:
        print(f"[CALIB] ingest rejected: {e}", flush=True)
        raise
    return accept_history(cleaning, records)


def load_demo(state: SessionState) -> SessionState:
    """Calibrate on the built-in demonstration corpus."""
    return accept_history(begin_ingest(state), DEMO_CORPUS)


def advance_training(state: SessionState, step: int = cfg.TRAINING_STEP) -> SessionState:
    return replace(state, calibration=state.calibration.tick(step))


def finish_training(
    state: SessionState,
    step: int = cfg.TRAINING_STEP,
    interval: float = cfg.TRAINING_INTERVAL_S,
    sleep: Callable[[float], None] = time.sleep,
    verbose: bool = True,
) -> SessionState:
    """Run the training cadence to completion (blocking)."""
    cal = drive_training(state.calibration, step=step, interval=interval, sleep=sleep, verbose=verbose)
    return replace(state, calibration=cal)


def run_forecast(
    state: SessionState, scenario: BatchScenarioRequest, client: ForecastClient
) -> SessionState:
    """Forecast one scenario against the calibrated corpus."""
    _ensure_ready(state)
    forecast = client.forecast_scenario(state.corpus, scenario)
    return replace(state, scenario=scenario, forecast=forecast)


def ingest_batch(
    state: SessionState,
    text: str,
    client: ForecastClient,
    on_progress: Optional[ProgressCallback] = None,
) -> SessionState:
    """Sanitize batch CSV text and forecast every scenario in order."""
    _ensure_idle(state)
    _ensure_ready(state)
    scenarios = sanitize_scenarios(text)
    run = BatchRun(state.corpus, scenarios, client, on_progress=on_progress)
    results = run.run()
    return replace(
        state,
        batch_scenarios=scenarios,
        batch_results=results,
        batch_failures=tuple(s for _, s, _ in run.failures),
        batch_progress=run.progress,
    )


def select_batch_result(state: SessionState, index: int) -> SessionState:
    """Make one batch result the current scenario and forecast."""
    picked = state.batch_results[index]
    return replace(state, scenario=picked.scenario, forecast=picked.forecast)


def clear_corpus(state: SessionState) -> SessionState:
    """Discard the corpus together with any outstanding forecast and batch."""
    _ensure_idle(state)
    return SessionState()


def analytics_for(state: SessionState) -> Optional[Dict[str, object]]:
    """Derived values for the current forecast, or None when there is none."""
    if state.forecast is None or state.scenario is None:
        return None
    summary = summarize_forecast(state.forecast, state.corpus, state.scenario.population)
    summary["batch_total"] = batch_aggregate(state.batch_results)
    return summary


# ── Stateful holder ──────────────────────────────────────────

class Workbench:
    """
    Owns one :class:`SessionState` for an interactive front end.

    A new ingest publishes CLEANING before the file is sanitized, then
    either starts training or rolls back.  Training ticks arrive on a
    background timer which is cancelled whenever a new ingest or a clear
    supersedes the running lifecycle.  A timer is only ever cancelled
    outside ``_lock``, after the transition that retires it.
    """

    def __init__(self, client: ForecastClient, step: int = cfg.TRAINING_STEP,
                 interval: float = cfg.TRAINING_INTERVAL_S):
        self.client = client
        self.step = step
        self.interval = interval
        self._lock = threading.Lock()
        self._state = SessionState()
        self._timer: Optional[TrainingTimer] = None
        self._tick_step = step
        self._ingest_seq = 0
        self.error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    def _on_tick(self) -> bool:
        with self._lock:
            self._state = advance_training(self._state, self._tick_step)
            return self._state.phase is Phase.TRAINING

    def _apply(self, action, *args) -> SessionState:
        with self._lock:
            try:
                self._state = action(self._state, *args)
            except Exception as e:
                self.error = str(e)
                raise
            self.error = None
            return self._state

    def _begin_ingest(self) -> int:
        """Publish CLEANING, then stop the previous training timer."""
        with self._lock:
            try:
                self._state = begin_ingest(self._state)
            except PreconditionError as e:
                self.error = str(e)
                raise
            self._ingest_seq += 1
            seq = self._ingest_seq
            stale, self._timer = self._timer, None
        if stale is not None:
            stale.cancel()
        return seq

    def _finish_ingest(self, seq: int, records, step: int, interval: float) -> SessionState:
        with self._lock:
            if seq != self._ingest_seq:
                return self._state
            self._state = accept_history(self._state, records)
            self._tick_step = step
            self._timer = TrainingTimer(self._on_tick, interval=interval)
            self._timer.start()
            self.error = None
            return self._state

    def ingest_historical(self, text: str) -> SessionState:
        seq = self._begin_ingest()
        try:
            records = sanitize_history(text)
        except ValidationError as e:
            with self._lock:
                if seq == self._ingest_seq:
                    self._state = reject_history(self._state)
                self.error = str(e)
            print(f"[CALIB] ingest rejected: {e}", flush=True)
            raise
        return self._finish_ingest(seq, records, self.step, self.interval)

    def load_demo(self) -> SessionState:
        seq = self._begin_ingest()
        return self._finish_ingest(
            seq, DEMO_CORPUS, cfg.DEMO_TRAINING_STEP, cfg.DEMO_TRAINING_INTERVAL_S
        )

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        timer = self._timer
        if timer is not None:
            timer.done.wait(timeout)
        return self.state.calibration.is_ready

    def _begin_busy(self) -> SessionState:
        with self._lock:
            _ensure_idle(self._state)
            _ensure_ready(self._state)
            self._state = replace(self._state, busy=True)
            return self._state

    def _end_busy(self) -> None:
        with self._lock:
            self._state = replace(self._state, busy=False)

    def run_forecast(self, scenario: BatchScenarioRequest) -> SessionState:
        start = self._begin_busy()
        try:
            forecast = self.client.forecast_scenario(start.corpus, scenario)
        except Exception as e:
            self.error = str(e)
            raise
        finally:
            self._end_busy()
        with self._lock:
            self._state = replace(self._state, scenario=scenario, forecast=forecast)
            self.error = None
            return self._state

    def ingest_batch(self, text: str) -> SessionState:
        _ensure_idle(self.state)
        try:
            scenarios = sanitize_scenarios(text)
        except ValidationError as e:
            self.error = str(e)
            raise
        start = self._begin_busy()
        with self._lock:
            self._state = replace(
                self._state, batch_scenarios=scenarios, batch_results=(),
                batch_failures=(), batch_progress=0.0,
            )

        def _progress(fraction: float, _outcome: BatchResult) -> None:
            with self._lock:
                self._state = replace(self._state, batch_progress=fraction)

        try:
            run = BatchRun(start.corpus, scenarios, self.client, on_progress=_progress)
            results = run.run()
        finally:
            self._end_busy()
        with self._lock:
            self._state = replace(
                self._state,
                batch_results=results,
                batch_failures=tuple(s for _, s, _ in run.failures),
                batch_progress=run.progress,
            )
            return self._state

    def select_batch_result(self, index: int) -> SessionState:
        return self._apply(select_batch_result, index)

    def clear_corpus(self) -> SessionState:
        with self._lock:
            try:
                self._state = clear_corpus(self._state)
            except PreconditionError as e:
                self.error = str(e)
                raise
            self._ingest_seq += 1
            stale, self._timer = self._timer, None
            self.error = None
            state = self._state
        if stale is not None:
            stale.cancel()
        return state
