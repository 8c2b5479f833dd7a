import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parents[1]

OPEN_METEO_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
OPEN_METEO_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
OPEN_METEO_ARCHIVE_URL = "https://archive-api.open-meteo.com/v1/archive"
TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}

HUGGINGFACE_TOKEN = os.getenv("HUGGINGFACEHUB_API_TOKEN") or os.getenv("HUGGINGFACE_API_KEY")
HUGGINGFACE_REPO_ID = os.getenv("HUGGINGFACE_REPO_ID", "mistralai/Mistral-7B-Instruct-v0.2")

SESSION_DB_PATH = os.getenv("SESSION_DB_PATH")
SUPPORTED_LANGUAGES = ("en", "ja")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = str(raw).strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        return default


HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 10.0)
LLM_TIMEOUT = _env_float("LLM_TIMEOUT", 30.0)

# Open-Meteo serves daily forecasts up to 16 days ahead.
FORECAST_HORIZON_DAYS = _env_int("FORECAST_HORIZON_DAYS", 16)

SESSION_BACKEND = str(os.getenv("SESSION_BACKEND") or "memory").strip().lower()
SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 86400)
SESSION_MAX_ENTRIES = _env_int("SESSION_MAX_ENTRIES", 10000)

DEFAULT_LANGUAGE = str(os.getenv("DEFAULT_LANGUAGE") or "en").strip().lower()
if DEFAULT_LANGUAGE not in SUPPORTED_LANGUAGES:
    DEFAULT_LANGUAGE = "en"

LOG_LEVEL = str(os.getenv("LOG_LEVEL") or "INFO").strip().upper()
# Log the raw LLM text at debug level; prompts can carry user input.
LOG_LLM_OUTPUT = _env_flag("LOG_LLM_OUTPUT", False)
