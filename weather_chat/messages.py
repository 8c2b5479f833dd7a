from types import MappingProxyType
from typing import Mapping

from .config import DEFAULT_LANGUAGE, FORECAST_HORIZON_DAYS


def _freeze(table: dict[str, dict[str, str]]) -> Mapping[str, Mapping[str, str]]:
    return MappingProxyType({language: MappingProxyType(dict(entries)) for language, entries in table.items()})


MESSAGES = _freeze(
    {
        "en": {
            "welcome": (
                "Hello! I'm your friendly weather assistant. I can check weather forecasts, "
                "suggest what to wear, and give travel advice. Which city's weather would you like to know about?"
            ),
            "non_weather": (
                "I specialize in weather, fashion and travel advice. "
                "Ask me about the weather in a city, for example \"weather in Tokyo tomorrow\"."
            ),
            "missing_location": (
                "Which city would you like to know the weather for? "
                "You can say something like \"weather in Tokyo\" or \"Delhi weather\"!"
            ),
            "missing_date": "When would you like to know the weather for? (today, tomorrow, yesterday, etc.)",
            "forecast_limit": (
                f"Weather forecasts are only available up to {FORECAST_HORIZON_DAYS} days in the future. "
                f"Please choose a date within the next {FORECAST_HORIZON_DAYS} days."
            ),
            "location_not_found": "I couldn't find a place called \"{name}\". Could you check the spelling or try a nearby city?",
            "parse_failure": "I'm not quite sure what you're looking for! Which city's weather would you like to know about?",
            "upstream_error": "Sorry, something went wrong. Please try again.",
            "summary_heading": "Weather Summary for {city}",
            "summary_when_current": "right now",
            "summary_when_forecast": "on {date} (forecast)",
            "summary_when_historical": "on {date}",
            "summary_condition": "Conditions {when}: {description}.",
            "summary_temperature": "Temperature: {temperature}°C.",
            "summary_range": "High {high}°C, low {low}°C.",
            "summary_humidity": "Humidity: {humidity}%.",
            "summary_wind": "Wind: {wind} km/h.",
            "summary_precipitation": "Precipitation: {precipitation} mm.",
            "summary_unavailable": "Weather data is not available for this date yet.",
            "tip_hot": "Wear light, breathable fabrics like linen or cotton.",
            "tip_mild": "A light layer such as a cardigan or thin jacket works well.",
            "tip_cold": "Bundle up with a warm coat, scarf and gloves.",
            "tip_rain": "Take an umbrella or a rain jacket.",
            "tip_uv": "UV is strong: bring sunglasses, a hat and sunscreen.",
        },
        "ja": {
            "welcome": (
                "こんにちは！天気アシスタントです。天気予報を確認したり、その日の服装を提案したり、"
                "旅行のアドバイスをしたりできます。どちらの都市の天気をお知りになりたいですか？"
            ),
            "non_weather": "天気・ファッション・旅行のご相談が専門です。「明日の東京の天気」のように聞いてください。",
            "missing_location": (
                "どちらの都市の天気をお知りになりたいですか？"
                "例えば「東京の天気」や「デリーの天気」のように教えてください！"
            ),
            "missing_date": "いつの天気を知りたいですか？（今日、明日、昨日など）",
            "forecast_limit": (
                f"天気予報は{FORECAST_HORIZON_DAYS}日先までしか利用できません。"
                f"{FORECAST_HORIZON_DAYS}日以内の日付を選んでください。"
            ),
            "location_not_found": "「{name}」という場所が見つかりませんでした。綴りを確認するか、近くの都市で試してください。",
            "parse_failure": "すみません、よく理解できませんでした。どちらの都市の天気をお知りになりたいですか？",
            "upstream_error": "すみません、エラーが発生しました。もう一度お試しください。",
            "summary_heading": "{city}の天気のまとめ",
            "summary_when_current": "現在",
            "summary_when_forecast": "{date}（予報）",
            "summary_when_historical": "{date}",
            "summary_condition": "{when}の天気: {description}。",
            "summary_temperature": "気温: {temperature}°C。",
            "summary_range": "最高{high}°C、最低{low}°C。",
            "summary_humidity": "湿度: {humidity}%。",
            "summary_wind": "風速: {wind} km/h。",
            "summary_precipitation": "降水量: {precipitation} mm。",
            "summary_unavailable": "この日の天気データはまだ利用できません。",
            "tip_hot": "麻や綿など通気性の良い軽い服装がおすすめです。",
            "tip_mild": "カーディガンや薄手のジャケットなど軽い羽織りものがあると安心です。",
            "tip_cold": "暖かいコート、マフラー、手袋でしっかり防寒しましょう。",
            "tip_rain": "傘かレインジャケットを持って行きましょう。",
            "tip_uv": "紫外線が強いので、サングラス・帽子・日焼け止めを忘れずに。",
        },
    }
)


def normalize_language(language: str | None) -> str:
    key = str(language or "").strip().lower()
    if key in MESSAGES:
        return key
    return DEFAULT_LANGUAGE


def message(key: str, language: str | None, **values: object) -> str:
    table = MESSAGES[normalize_language(language)]
    template = table.get(key) or MESSAGES["en"][key]
    if values:
        return template.format(**values)
    return template
