"""Lightweight review sentiment helpers."""

import re
from typing import Any, Iterable, Mapping

POSITIVE_WORDS = (
    "great",
    "excellent",
    "good",
    "wonderful",
    "fantastic",
    "amazing",
    "outstanding",
    "helpful",
    "recommend",
    "best",
    "caring",
)

NEGATIVE_WORDS = (
    "bad",
    "terrible",
    "awful",
    "horrible",
    "poor",
    "disappointed",
    "disappointing",
    "rude",
    "unprofessional",
    "avoid",
    "worst",
)

SENTIMENTS = ("positive", "neutral", "negative")

_POSITIVE_RE = re.compile(r"\b(" + "|".join(POSITIVE_WORDS) + r")\b", re.IGNORECASE)
_NEGATIVE_RE = re.compile(r"\b(" + "|".join(NEGATIVE_WORDS) + r")\b", re.IGNORECASE)


def determine_sentiment(
    rating: float | None,
    positive_threshold: float = 4,
    negative_threshold: float = 2,
) -> str:
    """Map a 1-5 star rating to a sentiment label."""
    if rating is None:
        return "neutral"
    if rating >= positive_threshold:
        return "positive"
    if rating <= negative_threshold:
        return "negative"
    return "neutral"


def analyze_text_sentiment(content: str | None) -> str:
    """Count marker words; a clear margin is required to leave neutral."""
    if not content:
        return "neutral"
    positive = len(_POSITIVE_RE.findall(content))
    negative = len(_NEGATIVE_RE.findall(content))
    if positive > negative + 2:
        return "positive"
    if negative > positive + 1:
        return "negative"
    return "neutral"


def sentiment_breakdown(items: Iterable[Any]) -> dict[str, int]:
    breakdown = {label: 0 for label in SENTIMENTS}
    for item in items:
        if isinstance(item, Mapping):
            label = item.get("sentiment")
        else:
            label = getattr(item, "sentiment", None)
        if label in breakdown:
            breakdown[label] += 1
    return breakdown


def aggregate_sentiment(items: Iterable[Any]) -> dict[str, Any]:
    """Breakdown plus the label that strictly outnumbers both others."""
    breakdown = sentiment_breakdown(items)
    primary = "neutral"
    if (
        breakdown["positive"] > breakdown["negative"]
        and breakdown["positive"] > breakdown["neutral"]
    ):
        primary = "positive"
    elif (
        breakdown["negative"] > breakdown["positive"]
        and breakdown["negative"] > breakdown["neutral"]
    ):
        primary = "negative"
    return {"primary": primary, "breakdown": breakdown}
