import os

import matplotlib.pyplot as plt

from relief_budget.forecasting import AnalogForecastClient
from relief_budget.ledger import render_ledger, write_ledger
from relief_budget.models import BatchResult, ForecastResult
from relief_budget.plotting import (
    plot_allocation_donut,
    plot_batch_totals,
    plot_corpus_totals,
    plot_variance_bar,
)


def _forecast():
    return ForecastResult(
        predicted_total=707_000_000,
        breakdown={"food": 40_000_000, "rehab": 300_000_000},
        confidence=0.87,
        reasoning="Nearest analog is Odisha.",
        executive_briefing="Front-load shelter spending.",
        key_factors=("Coastal", "Monsoon"),
    )


def test_render_ledger(corpus, scenarios):
    text = render_ledger(scenarios[0], _forecast(), corpus)
    lines = text.splitlines()
    assert lines[0] == "FISCAL READINESS BRIEFING"
    assert "₹70.70 Cr" in text
    assert "Confidence    : 87%" in text
    assert "(under baseline)" in text
    assert "Regional Rehab" in text
    assert "* Monsoon" in text
    assert "Front-load shelter spending." in text


def test_write_ledger(tmp_path, corpus, scenarios):
    path = tmp_path / "ledger.txt"
    text = write_ledger(str(path), scenarios[0], _forecast(), corpus)
    assert path.read_text(encoding="utf-8") == text


def test_plots_save_files(tmp_path, corpus, scenarios):
    client = AnalogForecastClient()
    forecast = client.forecast_scenario(corpus, scenarios[0])
    results = [BatchResult(s, client.forecast_scenario(corpus, s)) for s in scenarios[:3]]

    paths = {
        "donut": str(tmp_path / "donut.png"),
        "variance": str(tmp_path / "variance.png"),
        "batch": str(tmp_path / "batch.png"),
        "corpus": str(tmp_path / "corpus.png"),
    }
    plot_allocation_donut(forecast, save_path=paths["donut"])
    plot_variance_bar(forecast.predicted_total, 900_000_000, save_path=paths["variance"])
    plot_batch_totals(results + [BatchResult(scenarios[4])], save_path=paths["batch"])
    plot_corpus_totals(corpus, save_path=paths["corpus"])

    for p in paths.values():
        assert os.path.getsize(p) > 0
    assert plt.get_fignums() == []
