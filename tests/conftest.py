from datetime import date

import pytest

from weather_chat.chat_service import ChatService
from weather_chat.errors import LlmNotConfigured
from weather_chat.schemas import ConversationTurn, LocationRecord, WeatherRecord
from weather_chat.session_store import InMemorySessionStore

TODAY = date(2025, 3, 1)


def user(text):
    return ConversationTurn(role="user", text=text)


def assistant(text):
    return ConversationTurn(role="assistant", text=text)


class FakeCompletion:
    """Stands in for the LLM: answers analysis prompts with ``analysis`` and
    everything else with ``narration``; records every call."""

    def __init__(self, analysis=None, narration="Weather Summary for somewhere", error=None):
        self.analysis = analysis
        self.narration = narration
        self.error = error
        self.calls = []

    def __call__(self, system_prompt, user_text, **kwargs):
        self.calls.append({"system": system_prompt, "user": user_text, **kwargs})
        if self.error is not None:
            raise self.error
        if "RESPOND WITH ONLY THIS JSON" in system_prompt:
            return self.analysis if self.analysis is not None else "{}"
        return self.narration


class FakeWeather:
    def __init__(self):
        self.geocoded = []
        self.fetched = []
        self.geocode_error = None
        self.fetch_error = None

    def geocode(self, name, language="en"):
        self.geocoded.append(name)
        if self.geocode_error is not None:
            raise self.geocode_error
        return LocationRecord(display_name=name, country="Somewhere", latitude=35.0, longitude=139.0, timezone="UTC")

    def fetch(self, location, date_spec, language="en"):
        self.fetched.append((location, date_spec))
        if self.fetch_error is not None:
            raise self.fetch_error
        return WeatherRecord(
            city=location.display_name,
            country=location.country,
            latitude=location.latitude,
            longitude=location.longitude,
            date_type=date_spec.date_type,
            target_date=date_spec.target_date,
            temperature=15,
            temperature_max=20,
            temperature_min=10,
            humidity=60.0,
            wind_speed=12.0,
            precipitation=0.0,
            weather_code=3,
            description="Overcast",
        )


@pytest.fixture()
def store():
    return InMemorySessionStore(today=lambda: TODAY)


@pytest.fixture()
def fake_weather():
    return FakeWeather()


@pytest.fixture()
def completion():
    return FakeCompletion(narration="Weather Summary for Tokyo: grey skies, take a light jacket.")


@pytest.fixture()
def make_service(store, fake_weather):
    def _make(complete=None):
        return ChatService(
            store=store,
            geocoder=fake_weather.geocode,
            fetcher=fake_weather.fetch,
            complete=complete or FakeCompletion(error=LlmNotConfigured("no token")),
            today=lambda: TODAY,
        )

    return _make
