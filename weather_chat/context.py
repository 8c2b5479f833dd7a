"""Recover the city and date a user means from the utterance, the prior
turns and the per-session record.

Location extraction is heuristic: false positives on unrelated phrases are
possible, but matching is deterministic for a given input.
"""

import re
from datetime import date
from typing import Protocol, Sequence

from .classifier import JA_PLACE_NAMES, mentions_weather
from .config import FORECAST_HORIZON_DAYS
from .dates import ISO_DATE_PATTERN, JA_RELATIVE_PATTERN, MONTHS, classify, find_date, normalize_text
from .errors import ForecastLimitExceeded, MissingDate
from .schemas import DATE_TYPE_CURRENT, ConversationTurn, DateSpec, SessionContext

_PLACE_CHARS = r"[A-Za-z][A-Za-z .'-]{0,80}"

LOCATION_PHRASE_PATTERN = re.compile(rf"\b(?:in|at|for)\s+({_PLACE_CHARS})", re.IGNORECASE)
SUMMARY_HEADING_PATTERN = re.compile(rf"\bweather\s+summary\s+(?:for|in|of)\s+({_PLACE_CHARS})", re.IGNORECASE)
FOLLOW_UP_PATTERN = re.compile(rf"\b(?:how|what)\s+about\s+({_PLACE_CHARS})", re.IGNORECASE)
WEATHER_SUFFIX_PATTERN = re.compile(
    r"^\s*([A-Za-z][A-Za-z .'-]{0,80}?)(?:'s)?\s+(?:weather|forecast|temperature)\b",
    re.IGNORECASE,
)

_JA_NAME_CHARS = r"[^\s、。！？!?,.「」『』()（）の]+"
JA_POSSESSIVE_PATTERN = re.compile(rf"({_JA_NAME_CHARS})の(?:天気|気温|天候|予報|服装)")
JA_TOPIC_PATTERN = re.compile(rf"^({_JA_NAME_CHARS})(?:は|って)(?:どう|[?？]|$)")
JA_BARE_PATTERN = re.compile(r"^[一-龥ぁ-んァ-ヶー]{1,10}$")
# "傘はいりますか" keeps only "傘"; a leading particle is left alone.
JA_PREDICATE_PATTERN = re.compile(r"(?<=.)(?:は|って).*$")
JA_QUERY_WORDS = ("天気", "気温", "天候", "予報", "服装", "雨", "雪", "晴れ", "曇り", "どう", "何", "いつ")

TRAILING_NOISE_PATTERN = re.compile(
    r"\b(?:today|tonight|tomorrow|yesterday|now|please|currently|right now|on|this|next|last|"
    r"day after|day before|and|with|during|what|how|should|will|would|is|was|it|like)\b.*$",
    re.IGNORECASE,
)
MONTH_TAIL_PATTERN = re.compile(
    r"\b(?:" + "|".join(sorted(MONTHS, key=len, reverse=True)) + r")\b.*$",
    re.IGNORECASE,
)
LEADING_ARTICLE_PATTERN = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)

NON_LOCATION_WORDS = {
    "what",
    "whats",
    "what's",
    "how",
    "can",
    "could",
    "would",
    "should",
    "tell",
    "show",
    "help",
    "me",
    "my",
    "you",
    "your",
    "that",
    "this",
    "home",
    "all",
    "us",
    "it",
    "is",
    "are",
    "the",
    "weather",
    "forecast",
    "temperature",
    "humidity",
    "rain",
    "wind",
    "snow",
    "sunny",
    "today",
    "tonight",
    "tomorrow",
    "yesterday",
    "now",
    "morning",
    "afternoon",
    "evening",
    "night",
    "week",
    "weekend",
    "day",
    "days",
    "trip",
    "travel",
    "outfit",
    "clothes",
    "wear",
    "hello",
    "hi",
    "thanks",
    "thank",
    "please",
    "about",
    "like",
    "there",
    "be",
    "summary",
}


def _sanitize_candidate(candidate: str) -> str:
    value = candidate.strip("`\"' \n\t")
    value = re.split(r"[?!;,。、？！]", value, maxsplit=1)[0].strip()
    value = TRAILING_NOISE_PATTERN.sub("", value).strip()
    value = MONTH_TAIL_PATTERN.sub("", value).strip()
    value = re.sub(r"\d.*$", "", value).strip()
    value = LEADING_ARTICLE_PATTERN.sub("", value).strip("`\"' .\n\t-")
    value = re.sub(r"\s{2,}", " ", value)
    return value


def _acceptable_place(candidate: str) -> bool:
    words = [word.lower() for word in re.findall(r"[A-Za-z']+", candidate)]
    if not words or len(words) > 4:
        return False
    if words[0] in NON_LOCATION_WORDS:
        return False
    return not all(word in NON_LOCATION_WORDS or word in MONTHS for word in words)


def _title_cased(candidate: str) -> bool:
    words = re.findall(r"[A-Za-z']+", candidate)
    return bool(words) and all(word[0].isupper() for word in words)


def _strip_ja_date_words(text: str) -> str:
    return JA_RELATIVE_PATTERN.sub("", text).replace("のの", "の").lstrip("の")


class LocationExtractor(Protocol):
    def extract(self, text: str) -> str | None: ...


class PatternLocationExtractor:
    """Regex-based place name extraction for English and Japanese text.

    With ``allow_bare_names`` a short utterance that is nothing but a place
    name ("Tokyo", "New York tomorrow") is accepted as well; that is only
    safe for the user's current utterance, not for narrative history.
    """

    def __init__(self, allow_bare_names: bool = False):
        self.allow_bare_names = allow_bare_names

    def extract(self, text: str) -> str | None:
        raw = normalize_text(text).strip()
        if not raw:
            return None

        for pattern in (SUMMARY_HEADING_PATTERN, LOCATION_PHRASE_PATTERN, FOLLOW_UP_PATTERN):
            for match in pattern.finditer(raw):
                candidate = _sanitize_candidate(match.group(1))
                if _acceptable_place(candidate):
                    return candidate

        match = WEATHER_SUFFIX_PATTERN.search(raw)
        if match:
            candidate = _sanitize_candidate(match.group(1))
            if _acceptable_place(candidate):
                return candidate

        japanese = self._extract_japanese(raw)
        if japanese:
            return japanese

        if self.allow_bare_names:
            return self._extract_bare(raw)
        return None

    def _extract_japanese(self, text: str) -> str | None:
        known = [(text.find(name), name) for name in sorted(JA_PLACE_NAMES, key=len, reverse=True) if name in text]
        if known:
            _, name = min(known, key=lambda item: item[0])
            return JA_PLACE_NAMES[name]

        stripped = _strip_ja_date_words(text)
        for pattern in (JA_POSSESSIVE_PATTERN, JA_TOPIC_PATTERN):
            match = pattern.search(stripped)
            if not match:
                continue
            candidate = match.group(1).strip()
            if candidate and not any(word in candidate for word in JA_QUERY_WORDS):
                return JA_PLACE_NAMES.get(candidate, candidate)
        return None

    def _extract_bare(self, text: str) -> str | None:
        # Bare names must be capitalized and free of weather words ("Any rain", "Windy").
        candidate = _sanitize_candidate(text)
        if (
            re.fullmatch(_PLACE_CHARS, candidate or "")
            and _title_cased(candidate)
            and not mentions_weather(candidate)
            and _acceptable_place(candidate)
        ):
            return candidate

        stripped = re.sub(r"[\s、。！？!?]+", "", _strip_ja_date_words(text))
        stripped = JA_PREDICATE_PATTERN.sub("", stripped)
        stripped = re.sub(r"(?:の|で)$", "", stripped)
        if not JA_BARE_PATTERN.fullmatch(stripped or "") or mentions_weather(stripped):
            return None
        if any(word in stripped for word in JA_QUERY_WORDS):
            return None
        return stripped


class ContextExtractor:
    def __init__(
        self,
        utterance_extractor: LocationExtractor | None = None,
        history_extractor: LocationExtractor | None = None,
        horizon_days: int = FORECAST_HORIZON_DAYS,
    ):
        self.utterance_extractor = utterance_extractor or PatternLocationExtractor(allow_bare_names=True)
        self.history_extractor = history_extractor or PatternLocationExtractor()
        self.horizon_days = horizon_days

    def resolve_location(
        self,
        utterance: str,
        history: Sequence[ConversationTurn],
        session: SessionContext | None,
    ) -> str | None:
        found = self.utterance_extractor.extract(utterance)
        if found:
            return found

        if session is not None and isinstance(session.last_city, str) and session.last_city.strip():
            return session.last_city.strip()

        for turn in reversed(history):
            found = self.history_extractor.extract(turn.text)
            if found:
                return found
        return None

    def resolve_date_context(
        self,
        utterance: str,
        history: Sequence[ConversationTurn],
        session: SessionContext | None,
        today: date,
        language: str = "en",
    ) -> DateSpec | None:
        found = find_date(utterance, today, language=language, horizon_days=self.horizon_days)
        if found is not None:
            return found

        for turn in reversed(history):
            found = self._date_from_turn(turn.text, today, language)
            if found is not None:
                return found

        return self._date_from_session(session, today)

    def _date_from_turn(self, text: str, today: date, language: str) -> DateSpec | None:
        normalized = normalize_text(text)
        iso_match = ISO_DATE_PATTERN.search(normalized)
        if iso_match:
            normalized = iso_match.group(0)
        try:
            return find_date(normalized, today, language=language, horizon_days=self.horizon_days)
        except (MissingDate, ForecastLimitExceeded):
            return None

    def _date_from_session(self, session: SessionContext | None, today: date) -> DateSpec | None:
        if session is None or not session.last_date_type:
            return None
        if session.last_date_type == DATE_TYPE_CURRENT or session.last_date is None:
            return DateSpec.current()
        try:
            return classify(session.last_date, today, horizon_days=self.horizon_days)
        except ForecastLimitExceeded:
            return None
