import logging
from typing import Callable

from . import llm_service
from .errors import LlmNotConfigured
from .messages import message, normalize_language
from .prompts import build_compose_prompt, build_compose_request
from .schemas import DATE_TYPE_CURRENT, DATE_TYPE_FORECAST, WeatherRecord

LOGGER = logging.getLogger("weather_chat.composer")

HOT_THRESHOLD_C = 25
MILD_THRESHOLD_C = 15
STRONG_UV_INDEX = 6
WET_WEATHER_CODES = frozenset({51, 53, 55, 56, 57, 61, 63, 65, 66, 67, 71, 73, 75, 77, 80, 81, 82, 85, 86, 95, 96, 99})


def _clean_response(text: str) -> str:
    return str(text or "").replace("```", "").replace("**", "").strip()


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"


def _when(record: WeatherRecord, language: str) -> str:
    if record.date_type == DATE_TYPE_CURRENT or record.target_date is None:
        return message("summary_when_current", language)
    key = "summary_when_forecast" if record.date_type == DATE_TYPE_FORECAST else "summary_when_historical"
    return message(key, language, date=record.target_date.isoformat())


def _tips(record: WeatherRecord, language: str) -> list[str]:
    tips = []
    reference = record.temperature if record.temperature is not None else record.temperature_max
    if reference is not None:
        if reference >= HOT_THRESHOLD_C:
            tips.append(message("tip_hot", language))
        elif reference >= MILD_THRESHOLD_C:
            tips.append(message("tip_mild", language))
        else:
            tips.append(message("tip_cold", language))
    wet = (record.precipitation or 0) > 0 or record.weather_code in WET_WEATHER_CODES
    if wet:
        tips.append(message("tip_rain", language))
    if record.uv_index is not None and record.uv_index >= STRONG_UV_INDEX:
        tips.append(message("tip_uv", language))
    return tips


def render_summary(record: WeatherRecord, language: str = "en") -> str:
    """Plain bilingual summary built only from the record's fields."""
    language = normalize_language(language)
    lines = [message("summary_heading", language, city=record.city or "?")]
    if not record.has_measurements():
        lines.append(message("summary_unavailable", language))
        return "\n".join(lines)

    lines.append(message("summary_condition", language, when=_when(record, language), description=record.description))
    if record.temperature is not None:
        lines.append(message("summary_temperature", language, temperature=record.temperature))
    if record.temperature_max is not None and record.temperature_min is not None:
        lines.append(message("summary_range", language, high=record.temperature_max, low=record.temperature_min))
    if record.humidity is not None:
        lines.append(message("summary_humidity", language, humidity=_fmt(record.humidity)))
    if record.wind_speed is not None:
        lines.append(message("summary_wind", language, wind=_fmt(record.wind_speed)))
    if record.precipitation is not None:
        lines.append(message("summary_precipitation", language, precipitation=_fmt(record.precipitation)))
    lines.extend(_tips(record, language))
    return "\n".join(lines)


def compose(
    record: WeatherRecord,
    utterance: str,
    language: str = "en",
    complete: Callable[..., str] | None = None,
) -> str:
    """Narrate a weather record with clothing and travel advice.

    Falls back to :func:`render_summary` when no LLM token is configured;
    other upstream failures propagate to the caller.
    """
    language = normalize_language(language)
    runner = complete or llm_service.complete
    try:
        text = runner(
            build_compose_prompt(record, language),
            build_compose_request(utterance),
            temperature=0.7,
            max_new_tokens=500,
        )
    except LlmNotConfigured:
        LOGGER.info("compose_without_llm city=%s", record.city)
        return render_summary(record, language)

    cleaned = _clean_response(text)
    return cleaned or render_summary(record, language)
