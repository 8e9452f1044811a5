"""API router aggregating every endpoint area plus health checks."""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from healthspot.api.deps import get_llm, get_places, get_sms_gateway
from healthspot.api.v1.maps import router as maps_router
from healthspot.api.v1.reviews import router as reviews_router
from healthspot.api.v1.saved import router as saved_router
from healthspot.api.v1.sms import router as sms_router
from healthspot.core.config import settings
from healthspot.core.db import get_session
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.google_maps import PlacesClient
from healthspot.integrations.twilio import TwilioGateway

router = APIRouter(default_response_class=JSONResponse)

router.include_router(maps_router)
router.include_router(reviews_router)
router.include_router(sms_router)
router.include_router(saved_router)


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


@router.get("/health")
async def health_check(
    request: Request,
    places: PlacesClient = Depends(get_places),
    gateway: TwilioGateway = Depends(get_sms_gateway),
    llm: DeepSeekClient = Depends(get_llm),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns
    -------
        Service status plus which external integrations have credentials
    """
    return {
        "status": "healthy",
        "version": settings.version,
        "services": {
            "googleMaps": "configured" if places.is_configured else "unconfigured",
            "sms": "configured" if gateway.is_configured else "unconfigured",
            "ai": "configured" if llm.is_configured else "unconfigured",
        },
        "correlation_id": _correlation_id(request),
    }


@router.get("/health/ai")
async def ai_health_check(
    request: Request, llm: DeepSeekClient = Depends(get_llm)
) -> dict[str, Any]:
    """Probe the completion API with a tiny request."""
    return {**await llm.check_health(), "correlation_id": _correlation_id(request)}


@router.get("/health/db")
async def db_health_check(
    request: Request, session: AsyncSession = Depends(get_session)
) -> dict[str, Any]:
    """Database health check endpoint."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "correlation_id": _correlation_id(request),
        }
    return {
        "status": "healthy",
        "database": session.bind.dialect.name if session.bind else "unknown",
        "correlation_id": _correlation_id(request),
    }
