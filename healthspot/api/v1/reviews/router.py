"""Review endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.deps import get_llm, get_places
from healthspot.api.v1.reviews.models import ReviewAnalysis, ReviewRecord
from healthspot.api.v1.reviews.service import ReviewService
from healthspot.core.db import get_session
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.google_maps import PlacesClient

router = APIRouter(prefix="/reviews", tags=["reviews"])


def get_review_service(
    session: AsyncSession = Depends(get_session),
    places: PlacesClient = Depends(get_places),
    llm: DeepSeekClient = Depends(get_llm),
) -> ReviewService:
    return ReviewService(session, places, llm)


@router.get("/google/{provider_id}", response_model=List[ReviewRecord])
async def get_google_reviews(
    provider_id: str,
    service: ReviewService = Depends(get_review_service),
) -> List[ReviewRecord]:
    return await service.get_google_reviews(provider_id)


@router.get("/reddit/{provider_id}", response_model=List[ReviewRecord])
async def get_reddit_reviews(
    provider_id: str,
    name: Optional[str] = Query(None, description="Provider name used in the prompt"),
    service: ReviewService = Depends(get_review_service),
) -> List[ReviewRecord]:
    """AI-generated discussions about a provider (synthetic content)."""
    return await service.get_reddit_reviews(provider_id, name)


@router.get("/analysis/{provider_id}", response_model=ReviewAnalysis)
async def get_review_analysis(
    provider_id: str,
    name: str = Query(..., min_length=1, description="Provider name"),
    service: ReviewService = Depends(get_review_service),
) -> ReviewAnalysis:
    return await service.analyze_reviews(provider_id, name)
