"""Google reviews, AI-generated discussions and review analysis."""

import json
import re
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.v1.reviews.models import RedditDiscussion, ReviewAnalysis, ReviewRecord
from healthspot.core.config import settings
from healthspot.core.logging import get_logger
from healthspot.core.sentiment import (
    SENTIMENTS,
    aggregate_sentiment,
    analyze_text_sentiment,
    determine_sentiment,
)
from healthspot.database.base import utcnow
from healthspot.database.models import ProviderModel
from healthspot.database.repositories import ProviderRepository, ReviewRepository
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.google_maps import PlacesClient

logger = get_logger().bind(module="review_service")

REDDIT_SYSTEM_PROMPT = (
    "You are a helpful assistant that generates realistic Reddit discussions "
    "about healthcare providers."
)
ANALYSIS_SYSTEM_PROMPT = (
    "You are an AI assistant that analyzes healthcare provider reviews to extract "
    "meaningful insights."
)
ANALYSIS_CONTENT_LIMIT = 2000

NO_REVIEWS_SUMMARY = "No reviews available for analysis."
NO_API_KEY_SUMMARY = "Analysis not available due to missing API key."

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)


def build_reddit_prompt(provider_name: str) -> str:
    return f"""Generate 3 realistic Reddit discussions about the healthcare provider "{provider_name}".
Each discussion should include:
1. A post title asking about experiences with {provider_name}
2. A main post with a personal question
3. 2-3 comments with varied experiences (positive, neutral, and negative)
4. Realistic usernames, writing styles, and details

Format each discussion as JSON with the following structure:
{{
  "title": "Post title",
  "mainPost": "Post content",
  "comments": [
    {{
      "username": "username1",
      "content": "Comment content",
      "sentiment": "positive|neutral|negative"
    }}
  ]
}}"""


def build_analysis_prompt(provider_name: str, review_content: str) -> str:
    return f"""Analyze the following reviews for the healthcare provider "{provider_name}":

{review_content[:ANALYSIS_CONTENT_LIMIT]}... (content truncated)

Provide a concise summary that includes:
1. Overall sentiment and satisfaction level
2. Common positive points mentioned
3. Common negative points or concerns
4. Key insights about the provider
5. Recommendations for potential patients

Keep your analysis factual, balanced, and helpful for someone deciding whether to use this provider."""


def parse_discussions(raw: str, provider_name: str) -> List[RedditDiscussion]:
    """Decode model output; anything that is not JSON becomes one discussion."""
    text = _CODE_FENCE_RE.sub("", raw or "").strip()
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [
            RedditDiscussion(title=f"Discussion about {provider_name}", main_post=raw or "")
        ]

    items = payload if isinstance(payload, list) else [payload]
    discussions = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            discussions.append(RedditDiscussion.model_validate(item))
        except PydanticValidationError as e:
            logger.warning("discussion_skipped", error=str(e))
    return discussions


def discussions_to_reviews(
    discussions: List[RedditDiscussion], provider: ProviderModel, place_id: Optional[str]
) -> List[Dict[str, Any]]:
    reviews: List[Dict[str, Any]] = []
    for discussion in discussions:
        reviews.append(
            {
                "provider_id": provider.id,
                "place_id": place_id,
                "source": "reddit",
                "content": f"{discussion.title}\n\n{discussion.main_post}",
                "author": "RedditUser",
                "sentiment": "neutral",
            }
        )
        for comment in discussion.comments:
            content = str(comment.get("content") or "").strip()
            if not content:
                continue
            sentiment = comment.get("sentiment")
            if sentiment not in SENTIMENTS:
                sentiment = analyze_text_sentiment(content)
            reviews.append(
                {
                    "provider_id": provider.id,
                    "place_id": place_id,
                    "source": "reddit",
                    "content": content,
                    "author": comment.get("username") or "RedditCommenter",
                    "sentiment": sentiment,
                }
            )
    return reviews


class ReviewService:
    """Fetches, synthesizes and summarizes provider reviews.

    Reviews are cached per source; Google reviews stay fresh for
    ``GOOGLE_REVIEWS_FRESH_DAYS`` and generated discussions for
    ``REDDIT_REVIEWS_FRESH_DAYS``.
    """

    def __init__(
        self,
        session: AsyncSession,
        places: PlacesClient,
        llm: DeepSeekClient,
        google_fresh_days: Optional[int] = None,
        reddit_fresh_days: Optional[int] = None,
    ):
        self.providers = ProviderRepository(session)
        self.reviews = ReviewRepository(session)
        self.places = places
        self.llm = llm
        self.google_fresh_days = (
            settings.GOOGLE_REVIEWS_FRESH_DAYS if google_fresh_days is None else google_fresh_days
        )
        self.reddit_fresh_days = (
            settings.REDDIT_REVIEWS_FRESH_DAYS if reddit_fresh_days is None else reddit_fresh_days
        )

    async def _cached(self, provider: ProviderModel, source: str, days: int) -> List[ReviewRecord]:
        since = utcnow() - timedelta(days=days)
        cached = await self.reviews.recent_for_provider(provider.id, source, since)
        return [ReviewRecord.model_validate(review) for review in cached]

    async def get_google_reviews(self, provider_id: str) -> List[ReviewRecord]:
        """Google reviews for a provider (id or placeId); unknown providers yield []."""
        provider = await self.providers.get_by_id_or_place_id(provider_id)
        if provider is None:
            return []

        cached = await self._cached(provider, "google", self.google_fresh_days)
        if cached:
            return cached
        if not provider.place_id or not self.places.is_configured:
            return []

        details = await self.places.place_details(provider.place_id, fields=("reviews",))
        google_reviews = [
            {
                "provider_id": provider.id,
                "place_id": provider.place_id,
                "source": "google",
                "content": review.get("text") or "",
                "author": review.get("author_name"),
                "rating": review.get("rating"),
                "sentiment": determine_sentiment(review.get("rating")),
            }
            for review in (details or {}).get("reviews") or []
        ]
        if not google_reviews:
            return []

        stored = await self.reviews.bulk_create(google_reviews)
        logger.info("google_reviews_cached", provider_id=provider.id, count=len(stored))
        return [ReviewRecord.model_validate(review) for review in stored]

    async def get_reddit_reviews(
        self, provider_id: str, provider_name: Optional[str] = None
    ) -> List[ReviewRecord]:
        """Synthetic discussions for a provider.

        These are generated by a language model, not scraped from Reddit.
        Without an API key nothing is generated and an empty list is returned.
        """
        provider = await self.providers.get_by_id_or_place_id(provider_id)
        if provider is None:
            return []

        cached = await self._cached(provider, "reddit", self.reddit_fresh_days)
        if cached:
            return cached

        if not self.llm.is_configured:
            logger.warning("reddit_reviews_unavailable", reason="missing API key")
            return []

        name = provider_name or provider.name
        raw = await self.llm.complete(
            [
                {"role": "system", "content": REDDIT_SYSTEM_PROMPT},
                {"role": "user", "content": build_reddit_prompt(name)},
            ],
            temperature=0.7,
            max_tokens=1500,
        )
        reviews = discussions_to_reviews(
            parse_discussions(raw, name), provider, provider.place_id
        )
        if not reviews:
            return []

        stored = await self.reviews.bulk_create(reviews)
        logger.info("reddit_reviews_generated", provider_id=provider.id, count=len(stored))
        return [ReviewRecord.model_validate(review) for review in stored]

    async def analyze_reviews(
        self, provider_id: str, provider_name: Optional[str] = None
    ) -> ReviewAnalysis:
        google_reviews = await self.get_google_reviews(provider_id)
        reddit_reviews = await self.get_reddit_reviews(provider_id, provider_name)
        all_reviews = [*google_reviews, *reddit_reviews]

        if not all_reviews:
            return ReviewAnalysis(
                summary=NO_REVIEWS_SUMMARY,
                sentiment_breakdown={label: 0 for label in SENTIMENTS},
                review_count=0,
            )

        sentiment = aggregate_sentiment(all_reviews)
        generated_at = datetime.now(UTC).isoformat()

        if not self.llm.is_configured:
            return ReviewAnalysis(
                summary=NO_API_KEY_SUMMARY,
                sentiment_breakdown=sentiment["breakdown"],
                primary_sentiment=sentiment["primary"],
                review_count=len(all_reviews),
                generated_at=generated_at,
            )

        name = provider_name or provider_id
        content = "\n\n".join(review.content for review in all_reviews)
        summary = await self.llm.complete(
            [
                {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
                {"role": "user", "content": build_analysis_prompt(name, content)},
            ],
            temperature=0.5,
            max_tokens=800,
        )
        return ReviewAnalysis(
            summary=summary,
            sentiment_breakdown=sentiment["breakdown"],
            primary_sentiment=sentiment["primary"],
            review_count=len(all_reviews),
            generated_at=generated_at,
        )
