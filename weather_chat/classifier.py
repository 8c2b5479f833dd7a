import re

from .dates import has_date_expression, normalize_text

WEATHER_QUERY_MARKERS = (
    "weather",
    "forecast",
    "temperature",
    "temp",
    "rain",
    "drizzle",
    "shower",
    "snow",
    "sunny",
    "sunshine",
    "cloud",
    "humid",
    "wind",
    "storm",
    "thunder",
    "thunderstorm",
    "fog",
    "hot",
    "hotter",
    "cold",
    "colder",
    "warm",
    "warmer",
    "chilly",
    "freezing",
    "degrees",
    "uv",
    "umbrella",
    "climate",
    "wear",
    "outfit",
    "jacket",
    "coat",
    "travel",
    "trip",
    "sightseeing",
)

JA_WEATHER_MARKERS = (
    "天気",
    "天候",
    "気温",
    "気候",
    "予報",
    "雨",
    "雪",
    "晴",
    "曇",
    "湿度",
    "風",
    "台風",
    "暑",
    "寒",
    "暖か",
    "涼し",
    "紫外線",
    "傘",
    "服装",
    "着る",
    "コーデ",
    "旅行",
    "観光",
)

JA_PLACE_NAMES = {
    "東京": "Tokyo",
    "京都": "Kyoto",
    "大阪": "Osaka",
    "横浜": "Yokohama",
    "名古屋": "Nagoya",
    "札幌": "Sapporo",
    "福岡": "Fukuoka",
    "神戸": "Kobe",
    "仙台": "Sendai",
    "広島": "Hiroshima",
    "奈良": "Nara",
    "金沢": "Kanazawa",
    "那覇": "Naha",
    "沖縄": "Okinawa",
    "ロンドン": "London",
    "パリ": "Paris",
    "ニューヨーク": "New York",
    "デリー": "Delhi",
    "ソウル": "Seoul",
    "北京": "Beijing",
    "上海": "Shanghai",
    "シンガポール": "Singapore",
    "バンコク": "Bangkok",
    "シドニー": "Sydney",
    "ローマ": "Rome",
    "ベルリン": "Berlin",
}

FOLLOW_UP_PATTERNS = (
    re.compile(r"\b(?:how|what)\s+about\b", re.IGNORECASE),
    re.compile(r"\band\s+(?:in|for|at)\s+[A-Za-z]", re.IGNORECASE),
    re.compile(r"(?:は|って)(?:どう|[?？])"),
)

# "windy", "raining", "humidity" count as their stems.
WEATHER_WORD_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(marker) for marker in WEATHER_QUERY_MARKERS) + r")(?:s|y|ing|ity)?\b",
    re.IGNORECASE,
)


def mentions_weather(text: str) -> bool:
    normalized = normalize_text(text)
    return bool(WEATHER_WORD_PATTERN.search(normalized)) or any(marker in normalized for marker in JA_WEATHER_MARKERS)


def is_weather_related(utterance: str, language: str = "en") -> bool:
    """True when the utterance reads as a weather question or a follow-up to one.

    English and Japanese markers are both checked whatever ``language`` says.
    """
    text = normalize_text(utterance).strip()
    if not text:
        return False

    if mentions_weather(text):
        return True
    if has_date_expression(text):
        return True
    if any(pattern.search(text) for pattern in FOLLOW_UP_PATTERNS):
        return True
    return any(name in text for name in JA_PLACE_NAMES)
