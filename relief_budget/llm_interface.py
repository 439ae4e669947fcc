"""
LLM API interface: prompt construction, HTTP call, and JSON parsing.

The LLM receives a compact JSON payload with the calibrated historical
corpus and the scenario to cost, and must return a single JSON object
describing the budget forecast.
"""

import json
import re
from typing import Any, Dict, Optional, Sequence

import requests

from . import config as cfg
from .errors import AdapterError
from .models import CATEGORY_FIELDS, ForecastResult, HistoricalDisasterRecord

# ── Prompt construction ──────────────────────────────────────

_SYSTEM_PROMPT = (
    "You are a multi-output regression model for disaster relief budgeting. "
    "Estimate budgets from the historical audit records supplied. "
    "Return ONLY JSON. No prose. No markdown."
)


def _record_payload(r: HistoricalDisasterRecord) -> Dict[str, Any]:
    obj: Dict[str, Any] = {
        "type": r.category,
        "severity": r.severity.value,
        "durationDays": r.duration_days,
        "year": r.year,
        "area": r.area,
        "populationImpacted": r.population,
    }
    obj.update({f"{c}Budget": float(v) for c, v in r.breakdown().items()})
    obj["totalBudget"] = float(r.total_budget)
    return obj


def build_forecast_prompt(
    corpus: Sequence[HistoricalDisasterRecord],
    category: str,
    population: int,
    area: str,
    severity: str,
    duration_days: int,
    max_records: int = cfg.MAX_CONTEXT_RECORDS,
) -> str:
    """
    Build the user-message prompt.

    Only the last *max_records* rows of the corpus are embedded.
    """
    history = [_record_payload(r) for r in list(corpus)[-max_records:]]
    obj = {
        "history": history,
        "scenario": {
            "type": category,
            "severity": str(severity),
            "populationImpacted": int(population),
            "area": area,
            "durationDays": int(duration_days),
        },
    }
    keys = ", ".join(CATEGORY_FIELDS)
    return (
        "Predict the relief budget (INR) for the scenario using the history.\n"
        "Output ONLY a JSON object with keys: predictedTotal (number), "
        f"breakdown (object with numeric keys {keys}), "
        "confidenceScore (0-1), reasoning (string), executiveBriefing (string), "
        "keyFactors (list of short strings).\n"
        f"INPUT={json.dumps(obj, separators=(',', ':'), ensure_ascii=False)}"
    )


# ── Response parsing ─────────────────────────────────────────

def _extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        obj = json.loads(text)
    except (TypeError, ValueError):
        obj = None

    if obj is None:
        m = re.search(r"\{.*\}", (text or "").replace("\n", " "), re.DOTALL)
        if m:
            try:
                obj = json.loads(m.group())
            except ValueError:
                obj = None

    return obj if isinstance(obj, dict) else None


def _as_float(x: Any) -> float:
    if isinstance(x, bool):
        raise ValueError("boolean is not a number")
    if isinstance(x, str):
        x = x.replace(",", "").strip()
    return float(x)


def parse_forecast_response(text: str) -> ForecastResult:
    """
    Parse the LLM response into a :class:`ForecastResult`.

    Strategy:
        1. Strict ``json.loads``
        2. Regex extraction of an embedded ``{...}``

    Breakdown values are clamped at 0, the confidence is clipped to [0, 1]
    and a missing category counts as 0.  A missing or non-numeric total
    raises :class:`AdapterError`.
    """
    obj = _extract_json_object(text)
    if obj is None:
        raise AdapterError(f"Forecast response is not valid JSON: {str(text)[:300]}")

    try:
        total = max(0.0, _as_float(obj["predictedTotal"]))
        raw_bd = obj.get("breakdown") or {}
        if not isinstance(raw_bd, dict):
            raise ValueError("breakdown must be an object")
        breakdown = {c: max(0.0, _as_float(raw_bd.get(c, 0.0))) for c in CATEGORY_FIELDS}
        confidence = min(1.0, max(0.0, _as_float(obj.get("confidenceScore", 0.0))))
    except (KeyError, TypeError, ValueError) as e:
        raise AdapterError(f"Forecast response is missing required fields: {e}") from e

    factors = obj.get("keyFactors") or []
    if isinstance(factors, str):
        factors = [factors]

    return ForecastResult(
        predicted_total=total,
        breakdown=breakdown,
        confidence=confidence,
        reasoning=str(obj.get("reasoning") or ""),
        executive_briefing=str(obj.get("executiveBriefing") or ""),
        key_factors=tuple(str(f) for f in factors),
    )


# ── LLM call ────────────────────────────────────────────────

def call_llm_forecast(prompt: str, api_key: Optional[str] = None) -> str:
    """
    POST one chat-completion request and return the message content.

    No retries: any HTTP or transport failure raises :class:`AdapterError`.
    """
    key = api_key if api_key is not None else cfg.OPENROUTER_API_KEY
    if not key:
        raise AdapterError(
            "OPENROUTER_API_KEY is not set. "
            "Export it as an environment variable before running."
        )

    headers = {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
        "X-Title": "Relief-Budget-Forecast",
    }
    payload: Dict[str, Any] = {
        "model": cfg.LLM_MODEL,
        "messages": [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        "temperature": float(cfg.LLM_TEMPERATURE),
        "max_tokens": int(cfg.LLM_MAX_TOKENS),
    }
    if cfg.USE_RESPONSE_FORMAT_JSON:
        payload["response_format"] = {"type": "json_object"}

    try:
        resp = requests.post(
            cfg.CHAT_ENDPOINT, headers=headers, json=payload, timeout=cfg.LLM_TIMEOUT
        )
    except requests.exceptions.RequestException as e:
        raise AdapterError(f"LLM request failed: {e}") from e

    if resp.status_code != 200:
        raise AdapterError(f"LLM HTTP {resp.status_code}: {resp.text[:800]}")

    try:
        return resp.json()["choices"][0]["message"]["content"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise AdapterError(f"Unexpected LLM response envelope: {resp.text[:300]}") from e
