from datetime import date

import pytest

from conftest import FakeCompletion
from weather_chat.composer import compose, render_summary
from weather_chat.errors import LlmNotConfigured, UpstreamUnavailable
from weather_chat.schemas import WeatherRecord


def make_record(**overrides):
    values = dict(
        city="Tokyo",
        country="Japan",
        date_type="forecast",
        target_date=date(2025, 3, 2),
        temperature=15,
        temperature_max=20,
        temperature_min=10,
        humidity=65.0,
        wind_speed=12.5,
        precipitation=0.0,
        uv_index=2.0,
        weather_code=3,
        description="Overcast",
    )
    values.update(overrides)
    return WeatherRecord(**values)


def test_compose_cleans_markdown():
    complete = FakeCompletion(narration="```\n**Weather Summary for Tokyo**\nGrey but mild.\n```")
    reply = compose(make_record(), "weather in Tokyo tomorrow", "en", complete=complete)
    assert reply == "Weather Summary for Tokyo\nGrey but mild."


def test_compose_prompt_carries_record_and_language():
    complete = FakeCompletion(narration="東京の天気のまとめ")
    compose(make_record(), "明日の東京の天気", "ja", complete=complete)
    call = complete.calls[0]
    assert '"city": "Tokyo"' in call["system"]
    assert '"target_date": "2025-03-02"' in call["system"]
    assert "respond in Japanese" in call["system"]
    assert "明日の東京の天気" in call["user"]


def test_compose_without_llm_renders_summary():
    complete = FakeCompletion(error=LlmNotConfigured("no token"))
    reply = compose(make_record(), "weather in Tokyo tomorrow", "en", complete=complete)
    assert reply.startswith("Weather Summary for Tokyo")
    assert "2025-03-02" in reply


def test_compose_propagates_other_upstream_errors():
    complete = FakeCompletion(error=UpstreamUnavailable("503"))
    with pytest.raises(UpstreamUnavailable):
        compose(make_record(), "weather in Tokyo", "en", complete=complete)


def test_summary_lists_measurements_and_tips():
    summary = render_summary(make_record(), "en")
    lines = summary.splitlines()
    assert lines[0] == "Weather Summary for Tokyo"
    assert "Conditions on 2025-03-02 (forecast): Overcast." in lines
    assert "Temperature: 15°C." in lines
    assert "High 20°C, low 10°C." in lines
    assert "Humidity: 65%." in lines
    assert "Wind: 12.5 km/h." in lines
    assert "A light layer such as a cardigan or thin jacket works well." in lines


def test_summary_in_japanese():
    summary = render_summary(make_record(date_type="current", target_date=None, temperature=30), "ja")
    assert summary.splitlines()[0] == "Tokyoの天気のまとめ"
    assert "現在の天気: Overcast。" in summary
    assert "気温: 30°C。" in summary
    assert "麻や綿など通気性の良い軽い服装がおすすめです。" in summary


def test_summary_rain_and_uv_tips():
    summary = render_summary(make_record(temperature=5, precipitation=3.2, uv_index=8.0), "en")
    assert "Bundle up with a warm coat, scarf and gloves." in summary
    assert "Take an umbrella or a rain jacket." in summary
    assert "UV is strong: bring sunglasses, a hat and sunscreen." in summary


def test_summary_for_missing_data():
    record = make_record(
        temperature=None,
        temperature_max=None,
        temperature_min=None,
        weather_code=None,
        description="Weather data unavailable for the requested date",
    )
    assert render_summary(record, "en") == (
        "Weather Summary for Tokyo\nWeather data is not available for this date yet."
    )
