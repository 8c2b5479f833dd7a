from dataclasses import dataclass
from datetime import date
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

DATE_TYPE_CURRENT = "current"
DATE_TYPE_HISTORICAL = "historical"
DATE_TYPE_FORECAST = "forecast"
DATE_TYPES = (DATE_TYPE_CURRENT, DATE_TYPE_HISTORICAL, DATE_TYPE_FORECAST)

DateType = Literal["current", "historical", "forecast"]
Language = Literal["en", "ja"]


@dataclass(frozen=True)
class DateSpec:
    target_date: date | None
    date_type: str

    def __post_init__(self) -> None:
        if self.date_type not in DATE_TYPES:
            raise ValueError(f"Unknown date type: {self.date_type!r}")
        if self.date_type == DATE_TYPE_CURRENT and self.target_date is not None:
            raise ValueError("current date spec cannot carry a target date")
        if self.date_type != DATE_TYPE_CURRENT and self.target_date is None:
            raise ValueError(f"{self.date_type} date spec needs a target date")

    @classmethod
    def current(cls) -> "DateSpec":
        return cls(target_date=None, date_type=DATE_TYPE_CURRENT)


@dataclass(frozen=True)
class LocationRecord:
    display_name: str
    country: str | None
    latitude: float
    longitude: float
    timezone: str | None = None


@dataclass
class SessionContext:
    last_city: str | None = None
    last_country: str | None = None
    last_date: date | None = None
    last_date_type: str | None = None


class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str = Field(validation_alias=AliasChoices("text", "content"), max_length=4000)


class ChatRequest(BaseModel):
    messages: list[ConversationTurn] = Field(default_factory=list, max_length=100)
    language: Language = "en"
    session_id: str | None = Field(default=None, max_length=64)


class WeatherRecord(BaseModel):
    city: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None
    date_type: DateType = "current"
    target_date: date | None = None
    temperature: int | None = None
    temperature_max: int | None = None
    temperature_min: int | None = None
    humidity: float | None = None
    wind_speed: float | None = None
    precipitation: float | None = None
    cloud_cover: float | None = None
    uv_index: float | None = None
    weather_code: int | None = None
    description: str = "Unknown"
    timestamp: str | None = None

    def has_measurements(self) -> bool:
        values = (self.temperature, self.temperature_max, self.temperature_min, self.weather_code)
        return any(value is not None for value in values)
