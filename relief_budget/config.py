"""
Global configuration for the relief budget forecasting pipeline.

All tuneable constants live here so that runs are reproducible and easy
to modify from a single location.  Environment variables (or a ``.env``
file in the project root) override the defaults below.
"""

import os

from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), "..", ".env"))

# ── Paths ────────────────────────────────────────────────────
BASE_DIR = os.environ.get(
    "RELIEF_BUDGET_BASE_DIR",
    os.path.abspath(os.path.join(os.path.dirname(__file__), "..")),
)
DATA_DIR = os.path.join(BASE_DIR, "data")
FIGURES_DIR = os.path.join(BASE_DIR, "figures")
SAMPLE_HISTORY_CSV = os.path.join(DATA_DIR, "sample_history.csv")
SAMPLE_SCENARIOS_CSV = os.path.join(DATA_DIR, "sample_scenarios.csv")

# ── CSV layout ───────────────────────────────────────────────
CSV_DELIMITER = ","
HISTORY_MIN_FIELDS = 15
SCENARIO_MIN_FIELDS = 5
UNKNOWN_TEXT = "Unknown"

# ── LLM / OpenRouter ────────────────────────────────────────
OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
CHAT_ENDPOINT = os.environ.get(
    "RELIEF_BUDGET_CHAT_ENDPOINT", "https://openrouter.ai/api/v1/chat/completions"
)
LLM_MODEL = os.environ.get("RELIEF_BUDGET_MODEL", "openai/gpt-4o-mini")
LLM_TIMEOUT = int(os.environ.get("RELIEF_BUDGET_LLM_TIMEOUT", "60"))
LLM_MAX_TOKENS = 900
LLM_TEMPERATURE = 0.2
USE_RESPONSE_FORMAT_JSON = True
MAX_CONTEXT_RECORDS = 200

# ── Calibration (scripted training progress) ────────────────
TRAINING_STEP = 10
TRAINING_INTERVAL_S = 0.15
DEMO_TRAINING_STEP = 20
DEMO_TRAINING_INTERVAL_S = 0.10

# ── Offline analog estimator ─────────────────────────────────
ANALOG_K = 3
ANALOG_POPULATION_ELASTICITY = 0.85
ANALOG_DURATION_ELASTICITY = 0.30
ANALOG_CATEGORY_PENALTY = 1.0
ANALOG_MIN_CONFIDENCE = 0.35
ANALOG_MAX_CONFIDENCE = 0.95

# ── Display ──────────────────────────────────────────────────
CRORE = 10_000_000
CURRENCY_SYMBOL = "₹"
KEY_FACTORS_SHOWN = 3
