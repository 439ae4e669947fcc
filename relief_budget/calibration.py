"""
Lifecycle of the historical corpus: EMPTY -> CLEANING -> TRAINING -> READY.

Training progress is a scripted simulation (a fixed step on a fixed
cadence) that only exists to give the operator feedback.  It is modelled
as explicit timer-driven ticks so that a real fitting step can replace
it later without touching the transition methods below.
"""

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional, Tuple

from . import config as cfg
from .models import HistoricalDisasterRecord


class Phase(str, Enum):
    EMPTY = "empty"
    CLEANING = "cleaning"
    TRAINING = "training"
    READY = "ready"


@dataclass(frozen=True)
class Calibration:
    phase: Phase = Phase.EMPTY
    corpus: Tuple[HistoricalDisasterRecord, ...] = ()
    progress: int = 0
    pending: Tuple[HistoricalDisasterRecord, ...] = ()

    @property
    def is_ready(self) -> bool:
        return self.phase is Phase.READY and bool(self.corpus)

    def begin_cleaning(self) -> "Calibration":
        return replace(self, phase=Phase.CLEANING, progress=0, pending=())

    def accept(self, records: Tuple[HistoricalDisasterRecord, ...]) -> "Calibration":
        if self.phase is not Phase.CLEANING:
            raise RuntimeError(f"cannot accept records while {self.phase.value}")
        return replace(self, phase=Phase.TRAINING, progress=0, pending=tuple(records))

    def reject(self) -> "Calibration":
        """Sanitization failed: fall back to the pre-ingest phase, corpus unchanged."""
        phase = Phase.READY if self.corpus else Phase.EMPTY
        return replace(self, phase=phase, progress=0, pending=())

    def tick(self, step: int = cfg.TRAINING_STEP) -> "Calibration":
        """Advance training by *step*; the READY transition fires at exactly 100."""
        if self.phase is not Phase.TRAINING:
            return self
        progress = min(100, self.progress + int(step))
        if progress < 100:
            return replace(self, progress=progress)
        return Calibration(phase=Phase.READY, corpus=self.pending, progress=100)

    def clear(self) -> "Calibration":
        return Calibration()


# ── Tick scheduling ──────────────────────────────────────────

class TrainingTimer:
    """
    Fires ``on_tick()`` every *interval* seconds on a background timer until
    it returns False or :meth:`cancel` is called.

    Cancelling bumps a generation counter under a lock, so a tick that was
    already scheduled when the lifecycle moved on becomes a no-op.
    """

    def __init__(self, on_tick: Callable[[], bool], interval: float = cfg.TRAINING_INTERVAL_S):
        self.on_tick = on_tick
        self.interval = float(interval)
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self.done = threading.Event()

    def start(self) -> None:
        with self._lock:
            self._generation += 1
            self.done.clear()
            self._schedule(self._generation)

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self.done.set()

    def _schedule(self, generation: int) -> None:
        self._timer = threading.Timer(self.interval, self._fire, args=(generation,))
        self._timer.daemon = True
        self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            keep_going = self.on_tick()
            if keep_going:
                self._schedule(generation)
                return
            self._timer = None
        self.done.set()


def drive_training(
    calibration: Calibration,
    step: int = cfg.TRAINING_STEP,
    interval: float = cfg.TRAINING_INTERVAL_S,
    sleep: Callable[[float], None] = time.sleep,
    verbose: bool = True,
) -> Calibration:
    """Run the scripted training cadence synchronously until READY."""
    while calibration.phase is Phase.TRAINING:
        sleep(interval)
        calibration = calibration.tick(step)
        if verbose:
            print(f"[CALIB] training progress {calibration.progress}%", flush=True)
    return calibration
