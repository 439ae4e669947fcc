"""
Forecast clients: the single seam between the pipeline and whatever
produces a budget prediction.

``ForecastClient.forecast`` checks the calibration precondition, then
delegates to ``_predict``.  Every failure inside ``_predict`` is reported
as one coarse :class:`AdapterError`; nothing is retried here.
"""

from typing import Sequence, Tuple

import numpy as np

from . import config as cfg
from .analytics import format_crore
from .data_loading import standardize_severity
from .errors import AdapterError, PreconditionError
from .llm_interface import build_forecast_prompt, call_llm_forecast, parse_forecast_response
from .models import (
    CATEGORY_FIELDS,
    CATEGORY_LABELS,
    BatchScenarioRequest,
    ForecastResult,
    HistoricalDisasterRecord,
)

CALIBRATION_REQUIRED = "Calibration required. Please upload regional audit history."
LOGIC_TIMEOUT = "Multi-output regressor encountered a logic timeout."


class ForecastClient:
    """Base class for forecast clients."""

    name = "base"

    def forecast(
        self,
        corpus: Sequence[HistoricalDisasterRecord],
        category: str,
        population: int,
        area: str,
        severity: str,
        duration_days: int,
    ) -> ForecastResult:
        """Block until the forecasting capability answers for one scenario."""
        if not corpus:
            raise PreconditionError(CALIBRATION_REQUIRED)
        try:
            return self._predict(
                tuple(corpus), category, int(population), area, str(severity), int(duration_days)
            )
        except Exception as e:
            print(f"[{self.name.upper()}] forecast failed for {area}: {e}", flush=True)
            raise AdapterError(LOGIC_TIMEOUT) from e

    def forecast_scenario(
        self, corpus: Sequence[HistoricalDisasterRecord], scenario: BatchScenarioRequest
    ) -> ForecastResult:
        return self.forecast(
            corpus,
            scenario.category,
            scenario.population,
            scenario.area,
            scenario.severity.value,
            scenario.duration_days,
        )

    def _predict(
        self,
        corpus: Tuple[HistoricalDisasterRecord, ...],
        category: str,
        population: int,
        area: str,
        severity: str,
        duration_days: int,
    ) -> ForecastResult:
        raise NotImplementedError


class OpenRouterForecastClient(ForecastClient):
    """Remote LLM regressor reached through an OpenRouter chat endpoint."""

    name = "llm"

    def __init__(self, api_key: str = None, max_records: int = cfg.MAX_CONTEXT_RECORDS):
        self.api_key = api_key
        self.max_records = max_records

    def _predict(self, corpus, category, population, area, severity, duration_days):
        prompt = build_forecast_prompt(
            corpus, category, population, area, severity, duration_days,
            max_records=self.max_records,
        )
        raw = call_llm_forecast(prompt, api_key=self.api_key)
        return parse_forecast_response(raw)


# ── Offline analog estimator ─────────────────────────────────

def _analog_features(
    corpus: Tuple[HistoricalDisasterRecord, ...],
    category: str,
    population: int,
    severity_rank: int,
    duration_days: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Feature matrix for the corpus and the query vector, on a shared scale."""
    pops = np.array([r.population for r in corpus] + [population], dtype=np.float64)
    durs = np.array([r.duration_days for r in corpus] + [duration_days], dtype=np.float64)
    pop_scale = float(np.log1p(pops).max()) or 1.0
    dur_scale = float(durs.max()) or 1.0

    X = np.array(
        [
            [
                r.severity.rank / 3.0,
                np.log1p(r.population) / pop_scale,
                r.duration_days / dur_scale,
                0.0 if r.category.lower() == category.lower() else cfg.ANALOG_CATEGORY_PENALTY,
            ]
            for r in corpus
        ],
        dtype=np.float64,
    )
    q = np.array(
        [severity_rank / 3.0, np.log1p(population) / pop_scale, duration_days / dur_scale, 0.0],
        dtype=np.float64,
    )
    return X, q


class AnalogForecastClient(ForecastClient):
    """
    Inverse-distance weighted blend of the nearest historical analogs.

    Each analog's budgets are scaled by the population and duration ratio
    to the scenario before blending.  Deterministic and offline.
    """

    name = "analog"

    def __init__(self, k: int = cfg.ANALOG_K):
        self.k = int(k)

    def _predict(self, corpus, category, population, area, severity, duration_days):
        sev = standardize_severity(severity)
        X, q = _analog_features(corpus, category, population, sev.rank, duration_days)

        d = np.sqrt(np.sum((X - q[None, :]) ** 2, axis=1))
        k = min(self.k, len(corpus))
        nn = np.argsort(d, kind="stable")[:k]

        w = 1.0 / (d[nn] + 1e-6)
        w = w / np.sum(w)

        analogs = [corpus[i] for i in nn]
        scale = np.array(
            [
                (max(population, 1) / max(r.population, 1)) ** cfg.ANALOG_POPULATION_ELASTICITY
                * (max(duration_days, 1) / max(r.duration_days, 1)) ** cfg.ANALOG_DURATION_ELASTICITY
                for r in analogs
            ]
        )
        B = np.array([[r.breakdown()[c] for c in CATEGORY_FIELDS] for r in analogs])
        T = np.array([r.total_budget for r in analogs])

        blend = (B * (w * scale)[:, None]).sum(axis=0)
        breakdown = {c: float(v) for c, v in zip(CATEGORY_FIELDS, blend)}
        total = float(np.sum(T * w * scale))

        mean_d = float(np.sum(w * d[nn]))
        confidence = float(
            np.clip(1.0 / (1.0 + mean_d), cfg.ANALOG_MIN_CONFIDENCE, cfg.ANALOG_MAX_CONFIDENCE)
        )

        nearest = analogs[0]
        ranked = sorted(CATEGORY_FIELDS, key=lambda c: breakdown[c], reverse=True)
        top = [CATEGORY_LABELS[c] for c in ranked[:2]]
        factors = (
            f"Severity: {sev.value}",
            f"Population scale x{max(population, 1) / max(nearest.population, 1):.2f}",
            f"Duration: {duration_days} days",
            f"Dominant need: {top[0]}",
        )
        reasoning = (
            f"Inverse-distance blend of {k} historical analog(s); nearest is "
            f"{nearest.category} ({nearest.severity.value}) in {nearest.area}, {nearest.year}."
        )
        briefing = (
            f"A {sev.value.lower()} {category.lower()} affecting {population:,} people in {area} "
            f"for {duration_days} days is projected to require {format_crore(total)}. "
            f"The largest allocations are {top[0]} and {top[1]}."
        )
        return ForecastResult(
            predicted_total=total,
            breakdown=breakdown,
            confidence=confidence,
            reasoning=reasoning,
            executive_briefing=briefing,
            key_factors=factors,
        )


def make_client(offline: bool = False) -> ForecastClient:
    """Return the analog estimator when *offline*, else the LLM client."""
    return AnalogForecastClient() if offline else OpenRouterForecastClient()
