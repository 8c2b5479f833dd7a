from datetime import date

import pytest

from conftest import TODAY, FakeCompletion, assistant, user
from weather_chat.errors import LocationNotFound, MissingLocation, UpstreamUnavailable
from weather_chat.messages import MESSAGES
from weather_chat.schemas import DateSpec


def test_empty_conversation_gets_welcome(make_service):
    service = make_service()
    assert service.reply([], "en") == MESSAGES["en"]["welcome"]
    assert service.reply([assistant("Hi")], "ja") == MESSAGES["ja"]["welcome"]


def test_non_weather_utterance_short_circuits(make_service, fake_weather):
    service = make_service()
    assert service.reply([user("bharatnatyam")], "en") == MESSAGES["en"]["non_weather"]
    assert service.reply([user("bharatnatyam")], "ja") == MESSAGES["ja"]["non_weather"]
    assert fake_weather.geocoded == []


def test_weather_query_is_fetched_and_narrated(make_service, fake_weather, completion, store):
    service = make_service(completion)
    reply = service.reply([user("weather in Tokyo tomorrow")], "en", session_id="s1")

    assert reply == completion.narration
    assert fake_weather.geocoded == ["Tokyo"]
    _, date_spec = fake_weather.fetched[0]
    assert date_spec == DateSpec(date(2025, 3, 2), "forecast")
    session = store.get("s1")
    assert session.last_city == "Tokyo"
    assert session.last_date == date(2025, 3, 2)
    assert session.last_date_type == "forecast"


def test_follow_up_reuses_session_city(make_service, fake_weather, completion):
    service = make_service(completion)
    first = [user("weather in Tokyo")]
    service.reply(first, "en", session_id="s1")
    service.reply(first + [assistant(completion.narration), user("how about tomorrow?")], "en", session_id="s1")

    assert fake_weather.geocoded == ["Tokyo", "Tokyo"]
    assert fake_weather.fetched[0][1] == DateSpec.current()
    assert fake_weather.fetched[1][1] == DateSpec(date(2025, 3, 2), "forecast")


def test_weather_word_follow_up_keeps_session_city(make_service, fake_weather, completion):
    service = make_service(completion)
    service.reply([user("weather in Tokyo")], "en", session_id="s1")
    service.reply([user("Any rain tomorrow?")], "en", session_id="s1")
    service.reply([user("明日は寒い？")], "ja", session_id="s1")

    assert fake_weather.geocoded == ["Tokyo", "Tokyo", "Tokyo"]
    assert fake_weather.fetched[1][1] == DateSpec(date(2025, 3, 2), "forecast")


def test_follow_up_keeps_session_date(make_service, fake_weather, completion):
    service = make_service(completion)
    service.reply([user("weather in Tokyo tomorrow")], "en", session_id="s1")
    service.reply([user("what about Paris?")], "en", session_id="s1")

    assert fake_weather.geocoded == ["Tokyo", "Paris"]
    assert fake_weather.fetched[1][1] == DateSpec(date(2025, 3, 2), "forecast")


def test_sessions_are_isolated(make_service, fake_weather):
    service = make_service()
    service.reply([user("weather in Tokyo")], "en", session_id="s1")
    reply = service.reply([user("how about tomorrow?")], "en", session_id="s2")

    assert reply == MESSAGES["en"]["missing_location"]
    assert fake_weather.geocoded == ["Tokyo"]


def test_forecast_limit_message(make_service, fake_weather):
    service = make_service()
    assert service.reply([user("weather in Tokyo on 2025-04-30")], "en") == MESSAGES["en"]["forecast_limit"]
    assert service.reply([user("2025年4月30日の東京の天気")], "ja") == MESSAGES["ja"]["forecast_limit"]
    assert fake_weather.fetched == []


def test_impossible_date_asks_for_a_date(make_service):
    service = make_service()
    assert service.reply([user("weather in Tokyo on February 30")], "en") == MESSAGES["en"]["missing_date"]


def test_unknown_location_message(make_service, fake_weather):
    fake_weather.geocode_error = LocationNotFound("Atlantis")
    reply = make_service().reply([user("weather in Atlantis")], "en")
    assert reply == MESSAGES["en"]["location_not_found"].format(name="Atlantis")


def test_upstream_failure_apologizes_and_leaves_session(make_service, fake_weather, store):
    fake_weather.fetch_error = UpstreamUnavailable("archive down")
    reply = make_service().reply([user("東京の昨日の天気")], "ja", session_id="s1")
    assert reply == MESSAGES["ja"]["upstream_error"]
    assert store.get("s1").last_city is None


def test_unexpected_error_never_escapes(make_service, fake_weather):
    fake_weather.fetch_error = RuntimeError("bug")
    assert make_service().reply([user("weather in Tokyo")], "en") == MESSAGES["en"]["upstream_error"]


def test_no_location_without_llm_asks_for_city(make_service, fake_weather):
    reply = make_service().reply([user("what's the weather tomorrow?")], "en")
    assert reply == MESSAGES["en"]["missing_location"]
    assert fake_weather.geocoded == []


def test_analyzer_supplies_city(make_service, fake_weather):
    complete = FakeCompletion(
        analysis='{"needsWeatherData": true, "city": "Kyoto", "targetDate": "2025-03-03", "dateType": "forecast"}',
        narration="Kyoto looks lovely.",
    )
    reply = make_service(complete).reply([user("what's the weather like there?")], "en")
    assert reply == "Kyoto looks lovely."
    assert fake_weather.geocoded == ["Kyoto"]
    assert fake_weather.fetched[0][1] == DateSpec(date(2025, 3, 3), "forecast")


def test_utterance_date_beats_analyzer_date(make_service, fake_weather):
    complete = FakeCompletion(
        analysis='{"needsWeatherData": true, "city": "Kyoto", "targetDate": "2025-03-03", "dateType": "forecast"}'
    )
    make_service(complete).reply([user("what's the weather tomorrow?")], "en")
    assert fake_weather.fetched[0][1] == DateSpec(date(2025, 3, 2), "forecast")


def test_analyzer_chat_response_is_returned(make_service):
    complete = FakeCompletion(analysis='{"needsWeatherData": false, "chatResponse": "Happy to help with the weather!"}')
    reply = make_service(complete).reply([user("what's the weather like?")], "en")
    assert reply == "Happy to help with the weather!"


def test_unparseable_analysis_asks_to_clarify(make_service):
    complete = FakeCompletion(analysis="no idea, sorry")
    reply = make_service(complete).reply([user("what's the weather like?")], "ja")
    assert reply == MESSAGES["ja"]["parse_failure"]


def test_weather_endpoint_helper(make_service, fake_weather):
    service = make_service()
    record = service.weather("weather in Paris tomorrow", "en")
    assert record.city == "Paris"
    assert record.date_type == "forecast"
    assert record.target_date == date(2025, 3, 2)

    record = service.weather(city="Oslo")
    assert record.city == "Oslo"
    assert record.date_type == "current"


def test_weather_helper_requires_location(make_service):
    with pytest.raises(MissingLocation):
        make_service().weather("what's the weather tomorrow?")


def test_today_comes_from_injected_clock(make_service, fake_weather):
    service = make_service()
    service.reply([user("weather in Tokyo yesterday")], "en")
    assert fake_weather.fetched[0][1] == DateSpec(date(2025, 2, 28), "historical")
    assert service.today() == TODAY
