"""Tests for review sentiment helpers."""

import pytest

from healthspot.core.sentiment import (
    aggregate_sentiment,
    analyze_text_sentiment,
    determine_sentiment,
    sentiment_breakdown,
)


@pytest.mark.parametrize(
    "rating,expected",
    [(5, "positive"), (4, "positive"), (3, "neutral"), (2, "negative"), (1, "negative"), (None, "neutral")],
)
def test_determine_sentiment(rating, expected):
    assert determine_sentiment(rating) == expected


def test_analyze_text_sentiment_needs_a_clear_margin():
    assert analyze_text_sentiment("Great staff, excellent care, amazing, would recommend") == "positive"
    assert analyze_text_sentiment("Great and good") == "neutral"
    assert analyze_text_sentiment("Rude receptionist and terrible wait") == "negative"
    assert analyze_text_sentiment("") == "neutral"
    assert analyze_text_sentiment(None) == "neutral"


def test_analyze_text_sentiment_matches_whole_words_only():
    assert analyze_text_sentiment("badminton badger badge") == "neutral"


def test_sentiment_breakdown_ignores_unknown_labels():
    items = [{"sentiment": "positive"}, {"sentiment": "mixed"}, {"sentiment": "negative"}]

    assert sentiment_breakdown(items) == {"positive": 1, "neutral": 0, "negative": 1}


def test_aggregate_sentiment_requires_strict_majority():
    positive = [{"sentiment": "positive"}] * 3 + [{"sentiment": "neutral"}]
    tied = [{"sentiment": "positive"}, {"sentiment": "negative"}]

    assert aggregate_sentiment(positive)["primary"] == "positive"
    assert aggregate_sentiment(tied)["primary"] == "neutral"
    assert aggregate_sentiment([])["breakdown"] == {"positive": 0, "neutral": 0, "negative": 0}
