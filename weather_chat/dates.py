"""Date expression resolution.

Turns phrases like "tomorrow", "明後日", "October 10" or "2025-03-15" into a
concrete :class:`DateSpec` relative to a caller-supplied ``today``. Nothing in
this module reads the clock.
"""

import re
import unicodedata
from datetime import date, timedelta

from .config import FORECAST_HORIZON_DAYS
from .errors import ForecastLimitExceeded, MissingDate
from .schemas import DATE_TYPE_FORECAST, DATE_TYPE_HISTORICAL, DateSpec

MONTHS = {
    "january": 1,
    "jan": 1,
    "february": 2,
    "feb": 2,
    "march": 3,
    "mar": 3,
    "april": 4,
    "apr": 4,
    "may": 5,
    "june": 6,
    "jun": 6,
    "july": 7,
    "jul": 7,
    "august": 8,
    "aug": 8,
    "september": 9,
    "sept": 9,
    "sep": 9,
    "october": 10,
    "oct": 10,
    "november": 11,
    "nov": 11,
    "december": 12,
    "dec": 12,
}

EN_RELATIVE_DAYS = {
    "day after tomorrow": 2,
    "day before yesterday": -2,
    "tomorrow": 1,
    "yesterday": -1,
    "today": 0,
    "tonight": 0,
    "right now": 0,
    "now": 0,
    "currently": 0,
    "current": 0,
}

JA_RELATIVE_DAYS = {
    "明後日": 2,
    "あさって": 2,
    "一昨日": -2,
    "おととい": -2,
    "おとつい": -2,
    "明日": 1,
    "あした": 1,
    "あす": 1,
    "昨日": -1,
    "きのう": -1,
    "今日": 0,
    "本日": 0,
    "現在": 0,
    "今夜": 0,
    "今晩": 0,
}

_MONTH_ALTERNATION = "|".join(sorted(MONTHS, key=len, reverse=True))
_ORDINAL = r"(?:st|nd|rd|th)?"

ISO_DATE_PATTERN = re.compile(r"(?<!\d)(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?!\d)")
JA_DATE_PATTERN = re.compile(r"(?:(\d{4})年)?(\d{1,2})月(\d{1,2})日")
MONTH_DAY_PATTERN = re.compile(
    rf"\b({_MONTH_ALTERNATION})\b\.?\s+(\d{{1,2}}){_ORDINAL}(?!\d)(?:,?\s+(\d{{4}})(?!\d))?",
    re.IGNORECASE,
)
DAY_MONTH_PATTERN = re.compile(
    rf"(?<!\d)(\d{{1,2}}){_ORDINAL}\s+(?:of\s+)?({_MONTH_ALTERNATION})\b\.?(?:,?\s+(\d{{4}})(?!\d))?",
    re.IGNORECASE,
)
DMY_PATTERN = re.compile(r"(?<!\d)(\d{1,2})[/-](\d{1,2})[/-](\d{4})(?!\d)")


def _phrase_pattern(phrases: dict[str, int], word_bounded: bool) -> re.Pattern:
    parts = []
    for phrase in sorted(phrases, key=len, reverse=True):
        escaped = r"\s+".join(re.escape(word) for word in phrase.split())
        parts.append(rf"\b{escaped}\b" if word_bounded else escaped)
    return re.compile("|".join(parts), re.IGNORECASE)


EN_RELATIVE_PATTERN = _phrase_pattern(EN_RELATIVE_DAYS, word_bounded=True)
JA_RELATIVE_PATTERN = _phrase_pattern(JA_RELATIVE_DAYS, word_bounded=False)


def normalize_text(text: str) -> str:
    return unicodedata.normalize("NFKC", str(text or ""))


def _build_date(year: int, month: int, day: int, raw: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise MissingDate(f"Not a calendar date: {raw!r}") from exc


def _find_absolute_date(text: str, today: date) -> date | None:
    match = ISO_DATE_PATTERN.search(text)
    if match:
        return _build_date(int(match.group(1)), int(match.group(2)), int(match.group(3)), match.group(0))

    match = JA_DATE_PATTERN.search(text)
    if match:
        year = int(match.group(1)) if match.group(1) else today.year
        return _build_date(year, int(match.group(2)), int(match.group(3)), match.group(0))

    match = MONTH_DAY_PATTERN.search(text)
    if match:
        month = MONTHS[match.group(1).lower()]
        year = int(match.group(3)) if match.group(3) else today.year
        return _build_date(year, month, int(match.group(2)), match.group(0))

    match = DAY_MONTH_PATTERN.search(text)
    if match:
        month = MONTHS[match.group(2).lower()]
        year = int(match.group(3)) if match.group(3) else today.year
        return _build_date(year, month, int(match.group(1)), match.group(0))

    match = DMY_PATTERN.search(text)
    if match:
        return _build_date(int(match.group(3)), int(match.group(2)), int(match.group(1)), match.group(0))
    return None


def _relative_offset(match: re.Match, table: dict[str, int]) -> int:
    key = " ".join(match.group(0).lower().split())
    return table[key]


def _find_relative_offset(text: str, language: str) -> int | None:
    searches = [(EN_RELATIVE_PATTERN, EN_RELATIVE_DAYS), (JA_RELATIVE_PATTERN, JA_RELATIVE_DAYS)]
    if language == "ja":
        searches.reverse()
    offsets = [_relative_offset(match, table) for pattern, table in searches for match in pattern.finditer(text)]
    if not offsets:
        return None
    # "tonight or tomorrow" asks about tomorrow; a same-day word only wins alone.
    return next((offset for offset in offsets if offset != 0), 0)


def has_date_expression(text: str) -> bool:
    normalized = normalize_text(text)
    patterns = (
        ISO_DATE_PATTERN,
        JA_DATE_PATTERN,
        MONTH_DAY_PATTERN,
        DAY_MONTH_PATTERN,
        DMY_PATTERN,
        EN_RELATIVE_PATTERN,
        JA_RELATIVE_PATTERN,
    )
    return any(pattern.search(normalized) for pattern in patterns)


def classify(target: date, today: date, horizon_days: int = FORECAST_HORIZON_DAYS) -> DateSpec:
    days_ahead = (target - today).days
    if days_ahead == 0:
        return DateSpec.current()
    if days_ahead < 0:
        return DateSpec(target_date=target, date_type=DATE_TYPE_HISTORICAL)
    if days_ahead > horizon_days:
        raise ForecastLimitExceeded(target, days_ahead, horizon_days)
    return DateSpec(target_date=target, date_type=DATE_TYPE_FORECAST)


def find_date(
    text: str,
    today: date,
    language: str = "en",
    horizon_days: int = FORECAST_HORIZON_DAYS,
) -> DateSpec | None:
    """Return the date the text refers to, or None when it names no date.

    Raises MissingDate for date-shaped text that is not a real calendar day
    and ForecastLimitExceeded for dates past the forecast horizon.
    """
    normalized = normalize_text(text)
    target = _find_absolute_date(normalized, today)
    if target is None:
        offset = _find_relative_offset(normalized, language)
        if offset is None:
            return None
        target = today + timedelta(days=offset)
    return classify(target, today, horizon_days=horizon_days)


def resolve(
    expression: str,
    language: str,
    today: date,
    previous: DateSpec | None = None,
    horizon_days: int = FORECAST_HORIZON_DAYS,
) -> DateSpec:
    found = find_date(expression, today, language=language, horizon_days=horizon_days)
    if found is not None:
        return found
    if previous is not None:
        return previous
    return DateSpec.current()
