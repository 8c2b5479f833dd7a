import logging
import math
from typing import Any

import requests

from .config import (
    HTTP_TIMEOUT,
    OPEN_METEO_ARCHIVE_URL,
    OPEN_METEO_FORECAST_URL,
    OPEN_METEO_GEOCODING_URL,
    TRANSIENT_STATUS_CODES,
)
from .errors import LocationNotFound, MissingLocation, UpstreamUnavailable
from .schemas import (
    DATE_TYPE_CURRENT,
    DATE_TYPE_HISTORICAL,
    DateSpec,
    LocationRecord,
    WeatherRecord,
)

LOGGER = logging.getLogger("weather_chat.weather")

DAILY_FIELDS = (
    "temperature_2m_max",
    "temperature_2m_min",
    "relative_humidity_2m_max",
    "precipitation_sum",
    "wind_speed_10m_max",
    "uv_index_max",
    "weather_code",
)
# The archive endpoint has no UV series.
ARCHIVE_DAILY_FIELDS = tuple(field for field in DAILY_FIELDS if field != "uv_index_max")
CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation",
    "cloud_cover",
    "wind_speed_10m",
    "uv_index",
    "weather_code",
)

WEATHER_CODE_DESCRIPTIONS = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    56: "Light freezing drizzle",
    57: "Dense freezing drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    66: "Light freezing rain",
    67: "Heavy freezing rain",
    71: "Slight snow fall",
    73: "Moderate snow fall",
    75: "Heavy snow fall",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}

WEATHER_CODE_DESCRIPTIONS_JA = {
    0: "快晴",
    1: "晴れ",
    2: "一部曇り",
    3: "曇り",
    45: "霧",
    48: "霧氷を伴う霧",
    51: "霧雨（弱い）",
    53: "霧雨（中程度）",
    55: "霧雨（強い）",
    56: "着氷性の霧雨（弱い）",
    57: "着氷性の霧雨（強い）",
    61: "雨（弱い）",
    63: "雨（中程度）",
    65: "雨（強い）",
    66: "着氷性の雨（弱い）",
    67: "着氷性の雨（強い）",
    71: "雪（弱い）",
    73: "雪（中程度）",
    75: "雪（強い）",
    77: "霧雪",
    80: "にわか雨（弱い）",
    81: "にわか雨（中程度）",
    82: "にわか雨（激しい）",
    85: "にわか雪（弱い）",
    86: "にわか雪（強い）",
    95: "雷雨",
    96: "雷雨とひょう（弱い）",
    99: "雷雨とひょう（強い）",
}

UNKNOWN_DESCRIPTION = {"en": "Unknown", "ja": "不明"}
UNAVAILABLE_DESCRIPTION = {
    "en": "Weather data unavailable for the requested date",
    "ja": "指定日の天気データは利用できません",
}

COUNTRY_CAPITALS = {
    "united states": "Washington, D.C.",
    "usa": "Washington, D.C.",
    "us": "Washington, D.C.",
    "america": "Washington, D.C.",
    "united kingdom": "London",
    "uk": "London",
    "england": "London",
    "japan": "Tokyo",
    "日本": "Tokyo",
    "china": "Beijing",
    "中国": "Beijing",
    "india": "New Delhi",
    "インド": "New Delhi",
    "germany": "Berlin",
    "ドイツ": "Berlin",
    "france": "Paris",
    "フランス": "Paris",
    "italy": "Rome",
    "イタリア": "Rome",
    "spain": "Madrid",
    "スペイン": "Madrid",
    "canada": "Ottawa",
    "australia": "Canberra",
    "brazil": "Brasília",
    "russia": "Moscow",
    "south korea": "Seoul",
    "korea": "Seoul",
    "韓国": "Seoul",
    "mexico": "Mexico City",
    "netherlands": "Amsterdam",
    "sweden": "Stockholm",
    "norway": "Oslo",
    "denmark": "Copenhagen",
    "finland": "Helsinki",
    "switzerland": "Bern",
    "austria": "Vienna",
    "belgium": "Brussels",
    "portugal": "Lisbon",
    "greece": "Athens",
    "turkey": "Ankara",
    "egypt": "Cairo",
    "south africa": "Cape Town",
    "argentina": "Buenos Aires",
    "chile": "Santiago",
    "colombia": "Bogotá",
    "peru": "Lima",
    "venezuela": "Caracas",
    "thailand": "Bangkok",
    "タイ": "Bangkok",
    "vietnam": "Hanoi",
    "singapore": "Singapore",
    "malaysia": "Kuala Lumpur",
    "indonesia": "Jakarta",
    "philippines": "Manila",
    "new zealand": "Wellington",
    "israel": "Jerusalem",
    "saudi arabia": "Riyadh",
    "uae": "Abu Dhabi",
    "united arab emirates": "Abu Dhabi",
    "poland": "Warsaw",
    "czech republic": "Prague",
    "hungary": "Budapest",
    "romania": "Bucharest",
    "bulgaria": "Sofia",
    "croatia": "Zagreb",
    "serbia": "Belgrade",
    "ukraine": "Kyiv",
    "belarus": "Minsk",
    "lithuania": "Vilnius",
    "latvia": "Riga",
    "estonia": "Tallinn",
}


def _request_json(endpoint_url: str, params: dict[str, Any]) -> dict[str, Any]:
    last_failure = "no response"
    for attempt in range(1, 3):
        try:
            response = requests.get(endpoint_url, params=params, timeout=HTTP_TIMEOUT)
        except requests.RequestException as exc:
            last_failure = f"{type(exc).__name__}: {exc}"
            LOGGER.warning("open_meteo_request_error url=%s attempt=%s error=%s", endpoint_url, attempt, exc)
            continue

        if response.status_code in TRANSIENT_STATUS_CODES:
            last_failure = f"HTTP {response.status_code}"
            LOGGER.warning(
                "open_meteo_transient_status url=%s attempt=%s status=%s",
                endpoint_url,
                attempt,
                response.status_code,
            )
            continue
        if response.status_code != 200:
            raise UpstreamUnavailable(f"Open-Meteo returned HTTP {response.status_code} for {endpoint_url}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamUnavailable(f"Open-Meteo returned invalid JSON for {endpoint_url}") from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailable(f"Open-Meteo returned an unexpected payload for {endpoint_url}")
        return payload

    raise UpstreamUnavailable(f"Open-Meteo unavailable for {endpoint_url} ({last_failure})")


def capital_for(place: str) -> str | None:
    return COUNTRY_CAPITALS.get(" ".join(str(place or "").strip().lower().split()))


def geocode(name: str, language: str = "en") -> LocationRecord:
    """Resolve a free-text place name to coordinates via Open-Meteo geocoding.

    Country names are swapped for their capital before the lookup. Display
    names come back in English whatever the user's language, so the session
    keeps a single spelling per city.
    """
    place = str(name or "").strip()
    if not place:
        raise MissingLocation("No place name given")

    query = capital_for(place) or place
    payload = _request_json(
        OPEN_METEO_GEOCODING_URL,
        {"name": query, "count": 1, "language": "en", "format": "json"},
    )
    results = payload.get("results")
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise LocationNotFound(place)

    top = results[0]
    latitude = top.get("latitude")
    longitude = top.get("longitude")
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        raise UpstreamUnavailable(f"Geocoding result for {query!r} has no coordinates")

    country = top.get("country")
    timezone = top.get("timezone")
    LOGGER.info("geocoded query=%s name=%s country=%s language=%s", query, top.get("name"), country, language)
    return LocationRecord(
        display_name=str(top.get("name") or query),
        country=country if isinstance(country, str) else None,
        latitude=float(latitude),
        longitude=float(longitude),
        timezone=timezone if isinstance(timezone, str) else None,
    )


def build_weather_request(location: LocationRecord, date_spec: DateSpec) -> tuple[str, dict[str, Any]]:
    params: dict[str, Any] = {
        "latitude": location.latitude,
        "longitude": location.longitude,
        "timezone": "auto",
    }
    if date_spec.date_type == DATE_TYPE_CURRENT or date_spec.target_date is None:
        params["current"] = ",".join(CURRENT_FIELDS)
        return OPEN_METEO_FORECAST_URL, params

    day = date_spec.target_date.isoformat()
    params["start_date"] = day
    params["end_date"] = day
    if date_spec.date_type == DATE_TYPE_HISTORICAL:
        params["daily"] = ",".join(ARCHIVE_DAILY_FIELDS)
        return OPEN_METEO_ARCHIVE_URL, params
    params["daily"] = ",".join(DAILY_FIELDS)
    return OPEN_METEO_FORECAST_URL, params


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _round_half_up(value: float | None) -> int | None:
    if value is None:
        return None
    return int(math.floor(value + 0.5))


def _first(values: Any) -> Any:
    if isinstance(values, (list, tuple)) and values:
        return values[0]
    return None


def describe_weather_code(code: int | None, language: str = "en") -> str:
    table = WEATHER_CODE_DESCRIPTIONS_JA if language == "ja" else WEATHER_CODE_DESCRIPTIONS
    unknown = UNKNOWN_DESCRIPTION["ja" if language == "ja" else "en"]
    if code is None:
        return unknown
    return table.get(code, unknown)


def _unavailable(language: str) -> str:
    return UNAVAILABLE_DESCRIPTION["ja" if language == "ja" else "en"]


def _normalize_current(payload: dict[str, Any], language: str) -> WeatherRecord:
    current = payload.get("current") if isinstance(payload.get("current"), dict) else {}
    code = _number(current.get("weather_code"))
    weather_code = int(code) if code is not None else None
    record = WeatherRecord(
        timezone=payload.get("timezone") if isinstance(payload.get("timezone"), str) else None,
        date_type=DATE_TYPE_CURRENT,
        target_date=None,
        temperature=_round_half_up(_number(current.get("temperature_2m"))),
        humidity=_number(current.get("relative_humidity_2m")),
        wind_speed=_number(current.get("wind_speed_10m")),
        precipitation=_number(current.get("precipitation")),
        cloud_cover=_number(current.get("cloud_cover")),
        uv_index=_number(current.get("uv_index")),
        weather_code=weather_code,
        description=describe_weather_code(weather_code, language),
        timestamp=str(current["time"]) if current.get("time") else None,
    )
    if not record.has_measurements():
        record.description = _unavailable(language)
    return record


def _normalize_daily(payload: dict[str, Any], date_spec: DateSpec, language: str) -> WeatherRecord:
    daily = payload.get("daily") if isinstance(payload.get("daily"), dict) else {}
    temp_max = _number(_first(daily.get("temperature_2m_max")))
    temp_min = _number(_first(daily.get("temperature_2m_min")))
    average = (temp_max + temp_min) / 2 if temp_max is not None and temp_min is not None else None
    code = _number(_first(daily.get("weather_code")))
    weather_code = int(code) if code is not None else None
    day = _first(daily.get("time"))
    if not day and date_spec.target_date is not None:
        day = date_spec.target_date.isoformat()

    record = WeatherRecord(
        timezone=payload.get("timezone") if isinstance(payload.get("timezone"), str) else None,
        date_type=date_spec.date_type,
        target_date=date_spec.target_date,
        temperature=_round_half_up(average),
        temperature_max=_round_half_up(temp_max),
        temperature_min=_round_half_up(temp_min),
        humidity=_number(_first(daily.get("relative_humidity_2m_max"))),
        wind_speed=_number(_first(daily.get("wind_speed_10m_max"))),
        precipitation=_number(_first(daily.get("precipitation_sum"))),
        uv_index=_number(_first(daily.get("uv_index_max"))),
        weather_code=weather_code,
        description=describe_weather_code(weather_code, language),
        timestamp=str(day) if day else None,
    )
    if not record.has_measurements():
        record.description = _unavailable(language)
    return record


def normalize_weather_payload(payload: dict[str, Any], date_spec: DateSpec, language: str = "en") -> WeatherRecord:
    """Map an Open-Meteo response onto a WeatherRecord.

    Current requests read the instantaneous ``current`` block; historical and
    forecast requests read index 0 of the ``daily`` arrays. Missing or null
    values never raise: they come back as ``None`` and the description says
    the data is unavailable.
    """
    if not isinstance(payload, dict):
        payload = {}
    if date_spec.date_type == DATE_TYPE_CURRENT:
        return _normalize_current(payload, language)
    return _normalize_daily(payload, date_spec, language)


def _with_location(record: WeatherRecord, location: LocationRecord) -> WeatherRecord:
    return record.model_copy(
        update={
            "city": location.display_name,
            "country": location.country,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "timezone": record.timezone or location.timezone,
        }
    )


def _current_conditions(location: LocationRecord, language: str) -> WeatherRecord | None:
    url, params = build_weather_request(location, DateSpec.current())
    try:
        payload = _request_json(url, params)
    except UpstreamUnavailable as exc:
        LOGGER.warning("current_fallback_failed city=%s error=%s", location.display_name, exc)
        return None
    record = normalize_weather_payload(payload, DateSpec.current(), language)
    if not record.has_measurements():
        return None
    return record


def fetch_weather(location: LocationRecord, date_spec: DateSpec, language: str = "en") -> WeatherRecord:
    url, params = build_weather_request(location, date_spec)
    LOGGER.info(
        "fetch_weather city=%s date_type=%s target_date=%s",
        location.display_name,
        date_spec.date_type,
        date_spec.target_date,
    )
    payload = _request_json(url, params)
    record = normalize_weather_payload(payload, date_spec, language)

    if date_spec.date_type != DATE_TYPE_CURRENT and not record.has_measurements():
        LOGGER.warning(
            "daily_aggregate_missing city=%s target_date=%s; falling back to current conditions",
            location.display_name,
            date_spec.target_date,
        )
        fallback = _current_conditions(location, language)
        if fallback is not None:
            record = fallback

    return _with_location(record, location)
