import pytest

from weather_chat.classifier import is_weather_related


@pytest.mark.parametrize(
    "utterance, language",
    [
        ("明日の天気は？", "ja"),
        ("What's the weather in Tokyo?", "en"),
        ("Will it rain in London tomorrow?", "en"),
        ("Is it sunny in Rome?", "en"),
        ("What should I wear in Paris?", "en"),
        ("how about Berlin?", "en"),
        ("and tomorrow?", "en"),
        ("2025-03-15", "en"),
        ("大阪は？", "ja"),
        ("東京", "ja"),
        ("傘はいりますか", "ja"),
    ],
)
def test_weather_questions_are_recognized(utterance, language):
    assert is_weather_related(utterance, language) is True


@pytest.mark.parametrize(
    "utterance, language",
    [
        ("bharatnatyam", "en"),
        ("hello there", "en"),
        ("Tell me a joke", "en"),
        ("Which hotel is best?", "en"),
        ("", "en"),
        ("   ", "ja"),
    ],
)
def test_other_utterances_are_not(utterance, language):
    assert is_weather_related(utterance, language) is False


def test_japanese_marker_counts_even_in_english_mode():
    assert is_weather_related("天気", "en") is True
