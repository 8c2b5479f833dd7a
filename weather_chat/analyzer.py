import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from . import llm_service
from .config import FORECAST_HORIZON_DAYS
from .dates import classify
from .errors import ParseFailure
from .prompts import build_analysis_prompt
from .schemas import DATE_TYPE_CURRENT, DateSpec, SessionContext

LOGGER = logging.getLogger("weather_chat.analyzer")

Completion = Callable[..., str]


@dataclass(frozen=True)
class QueryAnalysis:
    needs_weather_data: bool
    city: str | None = None
    date_spec: DateSpec | None = None
    chat_response: str | None = None


def decode_analysis_payload(raw_text: str) -> dict[str, Any] | None:
    text = str(raw_text or "")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _clean_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned or cleaned.lower() in {"null", "none"}:
        return None
    return cleaned


def _date_spec_from_payload(payload: dict[str, Any], today: date, horizon_days: int) -> DateSpec | None:
    raw_date = _clean_str(payload.get("targetDate"))
    if raw_date is None:
        if _clean_str(payload.get("dateType")) == DATE_TYPE_CURRENT:
            return DateSpec.current()
        return None
    try:
        target = date.fromisoformat(raw_date)
    except ValueError:
        LOGGER.info("analysis_date_ignored value=%s", raw_date)
        return None
    # The model's dateType is not trusted; the date is classified again.
    return classify(target, today, horizon_days=horizon_days)


def analyze(
    utterance: str,
    language: str,
    session: SessionContext | None,
    today: date,
    complete: Completion | None = None,
    horizon_days: int = FORECAST_HORIZON_DAYS,
) -> QueryAnalysis:
    """Ask the LLM to pull a city and date out of an utterance.

    Raises ParseFailure when no JSON object can be recovered from the answer,
    ForecastLimitExceeded when the model's date is past the horizon, and
    whatever the completion callable raises for upstream trouble.
    """
    runner = complete or llm_service.complete
    raw = runner(build_analysis_prompt(session, today, language), utterance, temperature=0.1, max_new_tokens=300)

    payload = decode_analysis_payload(raw)
    if payload is None:
        LOGGER.warning("analysis_unparseable preview=%s", str(raw)[:200])
        raise ParseFailure(raw)

    city = _clean_str(payload.get("city"))
    needs_weather = payload.get("needsWeatherData") is True or (
        payload.get("needsWeatherData") is None and city is not None
    )
    analysis = QueryAnalysis(
        needs_weather_data=needs_weather,
        city=city,
        date_spec=_date_spec_from_payload(payload, today, horizon_days) if needs_weather else None,
        chat_response=_clean_str(payload.get("chatResponse")),
    )
    LOGGER.info(
        "analysis needs_weather=%s city=%s date=%s",
        analysis.needs_weather_data,
        analysis.city,
        analysis.date_spec,
    )
    return analysis
