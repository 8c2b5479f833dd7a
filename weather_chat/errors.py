from datetime import date


class WeatherChatError(Exception):
    """Base class for failures that end up as a user-facing message."""


class MissingLocation(WeatherChatError):
    pass


class LocationNotFound(MissingLocation):
    def __init__(self, name: str):
        super().__init__(f"Location not found: {name}")
        self.name = name


class MissingDate(WeatherChatError):
    pass


class ForecastLimitExceeded(WeatherChatError):
    def __init__(self, target_date: date, days_ahead: int, horizon_days: int):
        super().__init__(
            f"{target_date.isoformat()} is {days_ahead} days ahead; forecasts cover {horizon_days} days"
        )
        self.target_date = target_date
        self.days_ahead = days_ahead
        self.horizon_days = horizon_days


class UpstreamUnavailable(WeatherChatError):
    """LLM or weather provider returned an error or an unusable payload."""


class LlmNotConfigured(UpstreamUnavailable):
    pass


class ParseFailure(WeatherChatError):
    def __init__(self, raw_text: str):
        super().__init__("Could not parse structured data from model output")
        self.raw_text = raw_text
