"""
relief_budget — historical-audit driven disaster relief budget forecasting.

Modules:
    config          Global configuration and constants
    models          Typed records (history rows, scenarios, forecasts)
    errors          Validation / precondition / adapter error taxonomy
    data_loading    CSV sanitization for history and batch scenario files
    calibration     Corpus lifecycle and scripted training progress
    llm_interface   OpenRouter / LLM prompt, HTTP call and JSON parsing
    forecasting     Forecast clients (LLM and offline analog estimator)
    batch           Sequential batch runner with partial-failure tolerance
    analytics       Shares, baseline variance, per-capita cost, formatting
    session         Owned session state and the actions on it
    ledger          Plain-text fiscal briefing export
    plotting        All visualisation routines
"""
