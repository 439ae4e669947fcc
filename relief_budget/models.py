"""
Typed records flowing through the pipeline.

Historical rows and scenarios are immutable once sanitized; a corpus is
simply an ordered tuple of :class:`HistoricalDisasterRecord` in file-row
order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

CATEGORY_FIELDS: Tuple[str, ...] = (
    "food",
    "water",
    "shelter",
    "rescue",
    "medical",
    "logistics",
    "comm",
    "rehab",
)

CATEGORY_LABELS: Dict[str, str] = {
    "food": "Food & Logistics",
    "water": "Water & Sanitation",
    "shelter": "Shelter Hubs",
    "rescue": "Rescue Vehicles",
    "medical": "Medical Assets",
    "logistics": "Logistics Link",
    "comm": "Comm Infra",
    "rehab": "Regional Rehab",
}


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    def __str__(self) -> str:
        return self.value


_SEVERITY_ORDER = [Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]


@dataclass(frozen=True)
class HistoricalDisasterRecord:
    """One sanitized row of the historical expenditure file."""
    category: str
    severity: Severity
    duration_days: int
    year: int
    area: str
    population: int
    food: float
    water: float
    shelter: float
    rescue: float
    medical: float
    logistics: float
    comm: float
    rehab: float
    total_budget: float

    def breakdown(self) -> Dict[str, float]:
        return {c: getattr(self, c) for c in CATEGORY_FIELDS}


@dataclass(frozen=True)
class BatchScenarioRequest:
    """A hypothetical disaster submitted for forecasting."""
    category: str
    severity: Severity
    population: int
    duration_days: int
    area: str


@dataclass(frozen=True)
class ForecastResult:
    """
    Structured budget prediction returned by a forecast client.

    The breakdown is not required to sum to ``predicted_total``.
    """
    predicted_total: float
    breakdown: Dict[str, float]
    confidence: float
    reasoning: str = ""
    executive_briefing: str = ""
    key_factors: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BatchResult:
    scenario: BatchScenarioRequest
    forecast: Optional[ForecastResult] = None

    @property
    def succeeded(self) -> bool:
        return self.forecast is not None
