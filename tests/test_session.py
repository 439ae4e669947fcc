from dataclasses import replace

import pytest

from relief_budget import session
from relief_budget.calibration import Phase
from relief_budget.data_loading import DEMO_CORPUS, read_csv_text
from relief_budget.errors import AdapterError, PreconditionError, ValidationError
from relief_budget.session import (
    SessionState,
    Workbench,
    analytics_for,
    begin_ingest,
    clear_corpus,
    finish_training,
    ingest_batch,
    ingest_historical,
    load_demo,
    reject_history,
    run_forecast,
    select_batch_result,
)

from conftest import CYCLONE_ROW, HEADER, ODISHA_ROW


def _no_sleep(_):
    return None


def _ready(text):
    state = ingest_historical(SessionState(), text)
    return finish_training(state, sleep=_no_sleep, verbose=False)


def test_ingest_then_train_until_ready(history_text):
    state = ingest_historical(SessionState(), history_text)
    assert state.phase is Phase.TRAINING
    assert state.corpus == ()

    state = finish_training(state, sleep=_no_sleep, verbose=False)
    assert state.phase is Phase.READY
    assert [r.area for r in state.corpus] == ["Odisha", "West Bengal Delta"]


def test_invalid_ingest_keeps_previous_state(history_text):
    ready = _ready(history_text)
    with pytest.raises(ValidationError):
        ingest_historical(ready, HEADER)
    assert ready.phase is Phase.READY
    assert len(ready.corpus) == 2


def test_ingest_passes_through_cleaning(history_text):
    ready = _ready(history_text)
    cleaning = begin_ingest(ready)
    assert cleaning.phase is Phase.CLEANING
    assert cleaning.corpus == ready.corpus

    rolled_back = reject_history(cleaning)
    assert rolled_back.phase is Phase.READY
    assert rolled_back.corpus == ready.corpus

    assert reject_history(begin_ingest(SessionState())).phase is Phase.EMPTY


def test_forecast_requires_calibration(fake_client_cls, scenarios):
    client = fake_client_cls()
    with pytest.raises(PreconditionError):
        run_forecast(SessionState(), scenarios[0], client)

    training = load_demo(SessionState())
    with pytest.raises(PreconditionError):
        run_forecast(training, scenarios[0], client)
    assert client.calls == []


def test_forecast_and_analytics(fake_client_cls, scenarios):
    state = finish_training(load_demo(SessionState()), sleep=_no_sleep, verbose=False)
    assert state.corpus == DEMO_CORPUS
    assert analytics_for(state) is None

    state = run_forecast(state, scenarios[0], fake_client_cls())
    assert state.forecast.predicted_total == 10_000_000
    summary = analytics_for(state)
    assert summary["cost_per_capita"] == pytest.approx(100.0)
    assert summary["variance_direction"] == "under"
    assert summary["batch_total"] == 0.0


def test_failed_forecast_leaves_state(fake_client_cls, scenarios, history_text):
    state = _ready(history_text)
    with pytest.raises(AdapterError):
        run_forecast(state, scenarios[0], fake_client_cls(fail_areas={"A"}))
    assert state.forecast is None


def test_batch_and_select(fake_client_cls, history_text, sample_scenarios_path):
    state = _ready(history_text)
    client = fake_client_cls(fail_areas={"Andhra Coast"})
    state = ingest_batch(state, read_csv_text(sample_scenarios_path), client)

    assert len(state.batch_scenarios) == 4
    assert [s.area for s in state.batch_failures] == ["Andhra Coast"]
    assert len(state.batch_results) == 3
    assert state.batch_progress == 1.0

    state = select_batch_result(state, 0)
    assert state.scenario == state.batch_results[0].scenario
    assert analytics_for(state)["batch_total"] == pytest.approx(
        10_000_000 * len(state.batch_results)
    )


def test_busy_session_refuses_ingestion(history_text, fake_client_cls):
    busy = replace(_ready(history_text), busy=True)
    with pytest.raises(PreconditionError):
        ingest_historical(busy, history_text)
    with pytest.raises(PreconditionError):
        ingest_batch(busy, "c,s,p,d,a\nFlood,High,1,1,X", fake_client_cls())
    with pytest.raises(PreconditionError):
        clear_corpus(busy)


def test_clear_resets_everything(fake_client_cls, scenarios, history_text):
    state = run_forecast(_ready(history_text), scenarios[0], fake_client_cls())
    cleared = clear_corpus(state)
    assert cleared == SessionState()
    assert cleared.phase is Phase.EMPTY


# ── Workbench ────────────────────────────────────────────────

def test_workbench_trains_in_background(fake_client_cls, history_text, scenarios):
    bench = Workbench(fake_client_cls(), step=50, interval=0.01)
    state = bench.ingest_historical(history_text)
    assert state.phase is Phase.TRAINING

    assert bench.wait_until_ready(timeout=5.0)
    assert bench.state.calibration.progress == 100

    state = bench.run_forecast(scenarios[0])
    assert state.forecast is not None
    assert not state.busy


def test_workbench_newer_ingest_supersedes_training(fake_client_cls):
    bench = Workbench(fake_client_cls(), step=10, interval=0.05)
    bench.ingest_historical("\n".join([HEADER, ODISHA_ROW]))
    bench.ingest_historical("\n".join([HEADER, CYCLONE_ROW, ODISHA_ROW]))
    assert bench.wait_until_ready(timeout=5.0)
    assert [r.category for r in bench.state.corpus] == ["Cyclone", "Flood"]


def test_workbench_rejected_file_keeps_corpus(fake_client_cls, history_text):
    bench = Workbench(fake_client_cls(), step=100, interval=0.01)
    bench.ingest_historical(history_text)
    assert bench.wait_until_ready(timeout=5.0)

    with pytest.raises(ValidationError):
        bench.ingest_historical("only a header")
    assert bench.error
    assert bench.state.phase is Phase.READY
    assert len(bench.state.corpus) == 2


def test_workbench_clear_cancels_training(fake_client_cls, history_text):
    bench = Workbench(fake_client_cls(), step=10, interval=0.05)
    bench.ingest_historical(history_text)
    state = bench.clear_corpus()
    assert state.phase is Phase.EMPTY
    assert not bench.wait_until_ready(timeout=1.0)
    assert bench.state.phase is Phase.EMPTY


def test_workbench_batch_reports_progress(fake_client_cls, scenarios):
    bench = Workbench(fake_client_cls(fail_areas={"Nowhere"}), step=100, interval=0.01)
    bench.load_demo()
    assert bench.wait_until_ready(timeout=5.0)

    text = "\n".join(
        ["category,severity,population,duration,area"]
        + [f"Flood,High,{s.population},{s.duration_days},{s.area}" for s in scenarios]
        + ["Flood,High,1000,3,Nowhere"]
    )
    state = bench.ingest_batch(text)
    assert [r.scenario.area for r in state.batch_results] == ["A", "B", "C", "D", "E"]
    assert [s.area for s in state.batch_failures] == ["Nowhere"]
    assert state.batch_progress == 1.0
    assert not state.busy

    state = bench.select_batch_result(2)
    assert state.scenario.area == "C"


def test_workbench_publishes_cleaning_while_sanitizing(monkeypatch, fake_client_cls, history_text):
    bench = Workbench(fake_client_cls(), step=100, interval=0.01)
    seen = []
    real = session.sanitize_history

    def spy(text):
        seen.append(bench.state.phase)
        return real(text)

    monkeypatch.setattr(session, "sanitize_history", spy)
    bench.ingest_historical(history_text)
    assert seen == [Phase.CLEANING]
    assert bench.wait_until_ready(timeout=5.0)

    with pytest.raises(ValidationError):
        bench.ingest_historical(HEADER)
    assert seen == [Phase.CLEANING, Phase.CLEANING]
    assert bench.state.phase is Phase.READY


def test_workbench_rejected_file_abandons_first_training(fake_client_cls, history_text):
    bench = Workbench(fake_client_cls(), step=10, interval=0.05)
    bench.ingest_historical(history_text)
    assert bench.state.phase is Phase.TRAINING

    with pytest.raises(ValidationError):
        bench.ingest_historical("only a header")
    assert bench.state.phase is Phase.EMPTY
    assert bench.state.corpus == ()
    assert not bench.wait_until_ready(timeout=0.5)
    assert bench.state.phase is Phase.EMPTY


def test_workbench_failed_forecast_clears_busy(fake_client_cls, history_text, scenarios):
    bench = Workbench(fake_client_cls(fail_areas={"A"}), step=100, interval=0.01)
    bench.ingest_historical(history_text)
    assert bench.wait_until_ready(timeout=5.0)

    with pytest.raises(AdapterError):
        bench.run_forecast(scenarios[0])
    assert not bench.state.busy
    assert bench.error
    assert bench.state.forecast is None

    state = bench.ingest_historical(history_text)
    assert state.phase is Phase.TRAINING
    assert bench.wait_until_ready(timeout=5.0)


def test_workbench_refuses_ingest_during_forecast(fake_client_cls, history_text, scenarios):
    refusals = []

    class ReentrantClient(fake_client_cls):
        def _predict(self, *args):
            for action in (lambda: bench.ingest_historical(history_text), bench.load_demo,
                           bench.clear_corpus):
                try:
                    action()
                except PreconditionError:
                    refusals.append(bench.state.phase)
            return super()._predict(*args)

    bench = Workbench(ReentrantClient(), step=100, interval=0.01)
    bench.ingest_historical(history_text)
    assert bench.wait_until_ready(timeout=5.0)

    state = bench.run_forecast(scenarios[0])
    assert refusals == [Phase.READY, Phase.READY, Phase.READY]
    assert state.phase is Phase.READY
    assert len(state.corpus) == 2
    assert state.forecast is not None

    bench.ingest_historical("\n".join([HEADER, ODISHA_ROW]))
    assert bench.wait_until_ready(timeout=5.0)
    assert len(bench.state.corpus) == 1
