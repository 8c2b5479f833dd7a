from datetime import date, timedelta

import pytest

from conftest import TODAY, assistant, user
from weather_chat.context import ContextExtractor, PatternLocationExtractor
from weather_chat.errors import ForecastLimitExceeded
from weather_chat.schemas import DateSpec, SessionContext


@pytest.fixture()
def extractor():
    return ContextExtractor()


@pytest.mark.parametrize(
    "utterance, expected",
    [
        ("weather in Tokyo tomorrow", "Tokyo"),
        ("What's the weather like in New York today?", "New York"),
        ("Will it rain in London?", "London"),
        ("forecast for St. Louis on 2025-03-05", "St. Louis"),
        ("Paris weather", "Paris"),
        ("how about Berlin?", "Berlin"),
        ("東京の天気は？", "Tokyo"),
        ("明日の京都の天気", "Kyoto"),
        ("函館の天気", "函館"),
        ("Osaka", "Osaka"),
    ],
)
def test_location_from_utterance(extractor, utterance, expected):
    assert extractor.resolve_location(utterance, [], None) == expected


def test_utterance_location_beats_session(extractor):
    session = SessionContext(last_city="Paris")
    assert extractor.resolve_location("weather in London", [], session) == "London"


def test_session_city_used_for_follow_up(extractor):
    session = SessionContext(last_city="Paris")
    assert extractor.resolve_location("what about tomorrow?", [], session) == "Paris"


@pytest.mark.parametrize(
    "utterance", ["Any rain tomorrow?", "Windy tomorrow?", "Need an umbrella?", "明日は寒い？", "傘はいりますか"]
)
def test_weather_words_are_not_bare_places(extractor, utterance):
    session = SessionContext(last_city="Tokyo")
    assert extractor.resolve_location(utterance, [], session) == "Tokyo"


def test_history_scanned_newest_first(extractor):
    history = [
        user("weather in Delhi"),
        assistant("Weather Summary for Delhi\nConditions right now: Clear sky."),
        user("and in Kyoto?"),
        assistant("Weather Summary for Kyoto\nConditions right now: Overcast."),
    ]
    assert extractor.resolve_location("and tomorrow?", history, None) == "Kyoto"


def test_history_does_not_accept_bare_words(extractor):
    history = [user("Thanks"), assistant("Sure thing")]
    assert extractor.resolve_location("and tomorrow?", history, None) is None


@pytest.mark.parametrize("utterance", ["what's the weather tomorrow?", "how about tomorrow?", "明日の天気は？"])
def test_no_location_in_query_words(utterance):
    assert PatternLocationExtractor(allow_bare_names=True).extract(utterance) is None


def test_date_from_utterance_first(extractor):
    history = [user("weather in Tokyo on 2025-03-05")]
    spec = extractor.resolve_date_context("and tomorrow?", history, None, TODAY)
    assert spec == DateSpec(TODAY + timedelta(days=1), "forecast")


def test_date_carried_from_history(extractor):
    history = [
        user("weather in Tokyo on 2025-03-05"),
        assistant("Weather Summary for Tokyo. On 2025-03-05 it will be cloudy."),
    ]
    spec = extractor.resolve_date_context("what about Paris?", history, None, TODAY)
    assert spec == DateSpec(date(2025, 3, 5), "forecast")


def test_history_dates_past_horizon_are_skipped(extractor):
    history = [user("weather in Tokyo on 2025-03-05"), user("and on 2025-12-25?")]
    spec = extractor.resolve_date_context("what about Paris?", history, None, TODAY)
    assert spec == DateSpec(date(2025, 3, 5), "forecast")


def test_utterance_date_past_horizon_propagates(extractor):
    with pytest.raises(ForecastLimitExceeded):
        extractor.resolve_date_context("weather on 2025-12-25", [], None, TODAY)


def test_session_date_is_reclassified(extractor):
    session = SessionContext(last_city="Tokyo", last_date=date(2025, 2, 27), last_date_type="forecast")
    spec = extractor.resolve_date_context("what about Paris?", [], session, TODAY)
    assert spec == DateSpec(date(2025, 2, 27), "historical")


def test_session_current_stays_current(extractor):
    session = SessionContext(last_city="Tokyo", last_date=date(2025, 2, 20), last_date_type="current")
    assert extractor.resolve_date_context("what about Paris?", [], session, TODAY) == DateSpec.current()


def test_nothing_found_returns_none(extractor):
    assert extractor.resolve_date_context("what about Paris?", [], None, TODAY) is None


def test_extraction_is_deterministic(extractor):
    history = [user("weather in Delhi tomorrow")]
    first = extractor.resolve_location("how about it?", history, None)
    second = extractor.resolve_location("how about it?", history, None)
    assert first == second == "Delhi"
