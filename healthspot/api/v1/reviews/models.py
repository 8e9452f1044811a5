"""Response models for the reviews API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    provider_id: int = Field(serialization_alias="providerId")
    place_id: Optional[str] = Field(default=None, serialization_alias="placeId")
    source: str
    content: str
    author: Optional[str] = None
    rating: Optional[float] = None
    sentiment: str = "neutral"
    created_at: Optional[datetime] = Field(default=None, serialization_alias="createdAt")


class ReviewAnalysis(BaseModel):
    summary: str
    sentiment_breakdown: Dict[str, int] = Field(serialization_alias="sentimentBreakdown")
    primary_sentiment: str = Field(
        default="neutral", serialization_alias="primarySentiment"
    )
    review_count: int = Field(serialization_alias="reviewCount")
    generated_at: Optional[str] = Field(default=None, serialization_alias="generatedAt")


class RedditDiscussion(BaseModel):
    """One synthetic thread as returned by the completion model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = ""
    main_post: str = Field(default="", alias="mainPost")
    comments: List[Dict[str, Any]] = Field(default_factory=list)
