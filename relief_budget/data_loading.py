"""
Dataset I/O: sanitizing historical expenditure and batch scenario CSV text.

Both sanitizers are lenient by design of the input format: incomplete
rows are dropped silently, blank text cells become ``"Unknown"`` and
unparseable numbers become 0.  They only fail when nothing usable is
left.
"""

import re
from typing import List, Tuple

import pandas as pd

from . import config as cfg
from .errors import ValidationError
from .models import (
    CATEGORY_FIELDS,
    BatchScenarioRequest,
    HistoricalDisasterRecord,
    Severity,
)

HISTORY_HEADER = (
    "category", "severity", "durationDays", "year", "area", "population",
    "food", "water", "shelter", "rescue", "medical", "logistics", "comm",
    "rehab", "total",
)
SCENARIO_HEADER = ("category", "severity", "population", "duration", "area")

DEMO_CORPUS: Tuple[HistoricalDisasterRecord, ...] = (
    HistoricalDisasterRecord(
        category="Flood", severity=Severity.HIGH, duration_days=14, year=2021,
        area="Odisha Coastal", population=500_000,
        food=40_000_000, water=20_000_000, shelter=150_000_000, rescue=80_000_000,
        medical=60_000_000, logistics=45_000_000, comm=12_000_000, rehab=300_000_000,
        total_budget=707_000_000,
    ),
    HistoricalDisasterRecord(
        category="Cyclone", severity=Severity.CRITICAL, duration_days=10, year=2022,
        area="West Bengal Delta", population=1_200_000,
        food=95_000_000, water=50_000_000, shelter=400_000_000, rescue=200_000_000,
        medical=150_000_000, logistics=120_000_000, comm=40_000_000, rehab=800_000_000,
        total_budget=1_855_000_000,
    ),
    HistoricalDisasterRecord(
        category="Flood", severity=Severity.MEDIUM, duration_days=30, year=2023,
        area="Assam Valley", population=300_000,
        food=35_000_000, water=18_000_000, shelter=90_000_000, rescue=45_000_000,
        medical=40_000_000, logistics=30_000_000, comm=8_000_000, rehab=150_000_000,
        total_budget=416_000_000,
    ),
)


# ── Cell helpers ─────────────────────────────────────────────

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]+")
_LEADING_FLOAT_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def sanitize_string(val: str) -> str:
    """Trim a text cell; blank cells become ``cfg.UNKNOWN_TEXT``."""
    s = (val or "").strip()
    return s if s else cfg.UNKNOWN_TEXT


def parse_numeric(val: str) -> float:
    """
    Parse a numeric cell leniently.

    Every character other than digits, ``.`` and ``-`` is removed, then the
    leading float of what remains is read (``"₹1,20,000"`` -> 120000.0,
    ``"1.2.3"`` -> 1.2).  Anything unparseable yields 0.
    """
    cleaned = _NON_NUMERIC_RE.sub("", val or "")
    m = _LEADING_FLOAT_RE.match(cleaned)
    if not m:
        return 0.0
    try:
        return float(m.group())
    except ValueError:
        return 0.0


def standardize_severity(val: str) -> Severity:
    """Classify free-text severity by substring, in priority crit > high > med."""
    s = (val or "").strip().lower()
    if "crit" in s:
        return Severity.CRITICAL
    if "high" in s:
        return Severity.HIGH
    if "med" in s:
        return Severity.MEDIUM
    return Severity.LOW


def _amount(val: str) -> float:
    return max(0.0, parse_numeric(val))


def _count(val: str) -> int:
    return int(max(0.0, parse_numeric(val)))


def _data_rows(text: str) -> List[List[str]]:
    lines = [ln.strip() for ln in (text or "").split("\n")]
    lines = [ln for ln in lines if ln]
    return [
        [sanitize_string(v) for v in ln.split(cfg.CSV_DELIMITER)] for ln in lines[1:]
    ]


# ── Sanitizers ───────────────────────────────────────────────

def _record_from_fields(v: List[str]) -> HistoricalDisasterRecord:
    amounts = {c: _amount(v[6 + i]) for i, c in enumerate(CATEGORY_FIELDS)}
    total = parse_numeric(v[14])
    if total <= 0:
        total = sum(amounts.values())
    return HistoricalDisasterRecord(
        category=v[0],
        severity=standardize_severity(v[1]),
        duration_days=_count(v[2]),
        year=int(parse_numeric(v[3])),
        area=v[4],
        population=_count(v[5]),
        total_budget=total,
        **amounts,
    )


def sanitize_history(text: str) -> Tuple[HistoricalDisasterRecord, ...]:
    """
    Turn raw historical CSV text into an ordered tuple of records.

    The first non-empty line is a header.  Rows with fewer than
    ``cfg.HISTORY_MIN_FIELDS`` fields are dropped.  Raises
    :class:`ValidationError` if there are no data lines or if no row survives.
    """
    non_empty = [ln for ln in (text or "").split("\n") if ln.strip()]
    if len(non_empty) < 2:
        raise ValidationError("Dataset is too small to initialize the forecasting node.")

    records = tuple(
        _record_from_fields(v)
        for v in _data_rows(text)
        if len(v) >= cfg.HISTORY_MIN_FIELDS
    )
    if not records:
        raise ValidationError("No valid financial records detected after cleaning.")
    return records


def sanitize_scenarios(text: str) -> Tuple[BatchScenarioRequest, ...]:
    """Turn raw batch CSV text into scenarios; rows need at least 5 fields."""
    scenarios = tuple(
        BatchScenarioRequest(
            category=v[0],
            severity=standardize_severity(v[1]),
            population=_count(v[2]),
            duration_days=_count(v[3]),
            area=v[4],
        )
        for v in _data_rows(text)
        if len(v) >= cfg.SCENARIO_MIN_FIELDS
    )
    if not scenarios:
        raise ValidationError("Batch input is empty or incorrectly formatted.")
    return scenarios


# ── File and table helpers ───────────────────────────────────

def read_csv_text(path: str) -> str:
    """Read a UTF-8 CSV file as text (a leading BOM is dropped)."""
    with open(path, encoding="utf-8-sig") as handle:
        return handle.read()


def corpus_to_frame(corpus) -> pd.DataFrame:
    """Tabular view of a corpus, one row per record in corpus order."""
    rows = []
    for r in corpus:
        row = {
            "category": r.category,
            "severity": r.severity.value,
            "duration_days": r.duration_days,
            "year": r.year,
            "area": r.area,
            "population": r.population,
        }
        row.update(r.breakdown())
        row["total_budget"] = r.total_budget
        rows.append(row)
    return pd.DataFrame(rows, columns=[
        "category", "severity", "duration_days", "year", "area", "population",
        *CATEGORY_FIELDS, "total_budget",
    ])
