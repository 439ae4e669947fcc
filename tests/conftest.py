import os

import matplotlib
import pytest

from relief_budget.data_loading import DEMO_CORPUS
from relief_budget.forecasting import ForecastClient
from relief_budget.models import (
    CATEGORY_FIELDS,
    BatchScenarioRequest,
    ForecastResult,
    Severity,
)

matplotlib.use("Agg")

DATA_DIR = os.path.join(os.path.dirname(__file__), "..", "data")

HEADER = (
    "category,severity,durationDays,year,area,population,food,water,shelter,"
    "rescue,medical,logistics,comm,rehab,total"
)
ODISHA_ROW = (
    "Flood,High,14,2021,Odisha,500000,40000000,20000000,150000000,80000000,"
    "60000000,45000000,12000000,300000000,707000000"
)
CYCLONE_ROW = (
    "Cyclone,Critical,10,2022,West Bengal Delta,1200000,95000000,50000000,"
    "400000000,200000000,150000000,120000000,40000000,800000000,1855000000"
)


class FakeClient(ForecastClient):
    """Records every call; raises for scenarios whose area is in *fail_areas*."""

    name = "fake"

    def __init__(self, fail_areas=(), total=10_000_000.0):
        self.fail_areas = set(fail_areas)
        self.total = total
        self.calls = []

    def _predict(self, corpus, category, population, area, severity, duration_days):
        self.calls.append((category, population, area, severity, duration_days))
        if area in self.fail_areas:
            raise RuntimeError("upstream timeout")
        return ForecastResult(
            predicted_total=self.total,
            breakdown={c: self.total / len(CATEGORY_FIELDS) for c in CATEGORY_FIELDS},
            confidence=0.8,
            reasoning="fixed",
            executive_briefing="fixed briefing",
            key_factors=("a", "b", "c", "d"),
        )


@pytest.fixture
def history_text():
    return "\n".join([HEADER, ODISHA_ROW, CYCLONE_ROW]) + "\n"


@pytest.fixture
def corpus():
    return DEMO_CORPUS


@pytest.fixture
def fake_client_cls():
    return FakeClient


@pytest.fixture
def scenarios():
    return tuple(
        BatchScenarioRequest(
            category="Flood",
            severity=Severity.HIGH,
            population=100_000 * (i + 1),
            duration_days=10,
            area=area,
        )
        for i, area in enumerate(["A", "B", "C", "D", "E"])
    )


@pytest.fixture
def sample_history_path():
    return os.path.join(DATA_DIR, "sample_history.csv")


@pytest.fixture
def sample_scenarios_path():
    return os.path.join(DATA_DIR, "sample_scenarios.csv")
