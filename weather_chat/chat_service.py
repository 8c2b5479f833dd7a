import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Sequence

from .analyzer import analyze
from .classifier import is_weather_related
from .composer import compose
from .config import FORECAST_HORIZON_DAYS
from .context import ContextExtractor
from .dates import find_date, has_date_expression
from .errors import (
    ForecastLimitExceeded,
    LlmNotConfigured,
    LocationNotFound,
    MissingDate,
    MissingLocation,
    ParseFailure,
    UpstreamUnavailable,
)
from .messages import message, normalize_language
from .schemas import ConversationTurn, DateSpec, LocationRecord, WeatherRecord
from .session_store import SessionStore, create_session_store
from .weather_service import fetch_weather, geocode

LOGGER = logging.getLogger("weather_chat.chat")


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _log_step(trace: list[dict[str, Any]], phase: str, detail: dict[str, Any]) -> None:
    item = {"step": len(trace) + 1, "phase": phase, "detail": detail}
    trace.append(item)
    LOGGER.info("chat_step step=%s phase=%s detail=%s", item["step"], phase, detail)


class ChatService:
    """Runs one conversational turn: classify, resolve context, fetch, narrate.

    Every failure along the way ends as a localized reply; ``reply`` never
    raises. ``weather`` is the structured variant used by the JSON endpoint and
    lets the domain errors through for the caller to map.
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        context: ContextExtractor | None = None,
        geocoder: Callable[[str, str], LocationRecord] = geocode,
        fetcher: Callable[[LocationRecord, DateSpec, str], WeatherRecord] = fetch_weather,
        complete: Callable[..., str] | None = None,
        today: Callable[[], date] = _utc_today,
        horizon_days: int = FORECAST_HORIZON_DAYS,
    ):
        self.store = store if store is not None else create_session_store()
        self.context = context or ContextExtractor(horizon_days=horizon_days)
        self.geocoder = geocoder
        self.fetcher = fetcher
        self.complete = complete
        self.today = today
        self.horizon_days = horizon_days

    def reply(
        self,
        messages: Sequence[ConversationTurn],
        language: str = "en",
        session_id: str | None = None,
    ) -> str:
        language = normalize_language(language)
        trace: list[dict[str, Any]] = []
        try:
            return self._reply(list(messages), language, session_id, trace)
        except Exception:
            LOGGER.exception("chat_failed session=%s steps=%s", session_id, len(trace))
            return message("upstream_error", language)

    def _reply(
        self,
        messages: list[ConversationTurn],
        language: str,
        session_id: str | None,
        trace: list[dict[str, Any]],
    ) -> str:
        if not messages or messages[-1].role != "user" or not messages[-1].text.strip():
            _log_step(trace, "welcome", {"turns": len(messages)})
            return message("welcome", language)

        utterance = messages[-1].text.strip()
        history = messages[:-1]
        if not is_weather_related(utterance, language):
            _log_step(trace, "classify", {"weather_related": False})
            return message("non_weather", language)

        today = self.today()
        session = self.store.get(session_id)
        _log_step(
            trace,
            "context",
            {"session": session_id, "last_city": session.last_city, "last_date_type": session.last_date_type},
        )

        try:
            date_spec = self.context.resolve_date_context(utterance, history, session, today, language=language)
        except ForecastLimitExceeded as exc:
            _log_step(trace, "date", {"error": "forecast_limit", "days_ahead": exc.days_ahead})
            return message("forecast_limit", language)
        except MissingDate as exc:
            _log_step(trace, "date", {"error": "missing_date", "detail": str(exc)})
            return message("missing_date", language)
        if date_spec is None:
            date_spec = DateSpec.current()

        city = self.context.resolve_location(utterance, history, session)
        if not city:
            try:
                analysis = analyze(
                    utterance,
                    language,
                    session,
                    today,
                    complete=self.complete,
                    horizon_days=self.horizon_days,
                )
            except ParseFailure:
                _log_step(trace, "analyze", {"error": "parse_failure"})
                return message("parse_failure", language)
            except LlmNotConfigured:
                _log_step(trace, "analyze", {"error": "llm_not_configured"})
                return message("missing_location", language)
            except UpstreamUnavailable as exc:
                LOGGER.warning("analysis_unavailable error=%s", exc)
                return message("upstream_error", language)
            except ForecastLimitExceeded:
                return message("forecast_limit", language)

            _log_step(
                trace,
                "analyze",
                {"needs_weather": analysis.needs_weather_data, "city": analysis.city},
            )
            if not analysis.needs_weather_data:
                return analysis.chat_response or message("non_weather", language)
            if not analysis.city:
                return message("missing_location", language)
            city = analysis.city
            if analysis.date_spec is not None and not has_date_expression(utterance):
                date_spec = analysis.date_spec

        _log_step(trace, "plan", {"city": city, "date_type": date_spec.date_type, "target": date_spec.target_date})

        try:
            location = self.geocoder(city, language)
            record = self.fetcher(location, date_spec, language)
        except LocationNotFound as exc:
            _log_step(trace, "fetch", {"error": "location_not_found", "city": exc.name})
            return message("location_not_found", language, name=exc.name)
        except MissingLocation:
            return message("missing_location", language)
        except UpstreamUnavailable as exc:
            LOGGER.warning("weather_unavailable city=%s error=%s", city, exc)
            return message("upstream_error", language)

        self.store.update(
            session_id,
            last_city=location.display_name,
            last_country=location.country,
            last_date=date_spec.target_date or today,
            last_date_type=date_spec.date_type,
        )
        _log_step(
            trace,
            "fetch",
            {"city": location.display_name, "date_type": record.date_type, "description": record.description},
        )

        try:
            reply = compose(record, utterance, language, complete=self.complete)
        except UpstreamUnavailable as exc:
            LOGGER.warning("compose_unavailable city=%s error=%s", location.display_name, exc)
            return message("upstream_error", language)
        _log_step(trace, "compose", {"chars": len(reply)})
        return reply

    def weather(self, query: str | None = None, language: str = "en", city: str | None = None) -> WeatherRecord:
        language = normalize_language(language)
        text = str(query or "").strip()
        place = str(city or "").strip() or (self.context.resolve_location(text, [], None) if text else None)
        if not place:
            raise MissingLocation("No location in query")

        date_spec = None
        if text:
            date_spec = find_date(text, self.today(), language=language, horizon_days=self.horizon_days)
        location = self.geocoder(place, language)
        return self.fetcher(location, date_spec or DateSpec.current(), language)
