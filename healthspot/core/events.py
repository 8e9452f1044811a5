"""Application startup and shutdown events."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from prometheus_client import Counter

from healthspot.core.config import settings
from healthspot.core.db import dispose_engine, init_models
from healthspot.integrations.google_maps import close_places_client
from healthspot.integrations.twilio import close_twilio_gateway

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "healthspot_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "healthspot_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

GEOCODING_ATTEMPTS_TOTAL = Counter(
    "healthspot_geocoding_attempts_total",
    "Postal code geocoding attempts by strategy and outcome",
    labelnames=["strategy", "outcome"],
)

PROVIDER_CACHE_LOOKUPS_TOTAL = Counter(
    "healthspot_provider_cache_lookups_total",
    "Nearby provider searches answered from the local cache or the Places API",
    labelnames=["result"],
)

logger: logging.Logger = logging.getLogger("healthspot.core.events")


def create_start_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create startup event handler.

    Args:
        app: FastAPI application instance

    Returns:
        Startup handler function
    """

    async def start_app() -> None:
        await init_models()

        logger.info(
            "Application startup complete - "
            f"Google Maps: {'configured' if settings.google_maps_configured else 'missing key'}, "
            f"AI completions: {'configured' if settings.DEEPSEEK_API_KEY else 'missing key'}"
        )

    return start_app


def create_stop_app_handler(app: Any) -> Callable[[], Awaitable[None]]:
    """Create shutdown event handler.

    Args:
        app: FastAPI application instance

    Returns:
        Shutdown handler function
    """

    async def stop_app() -> None:
        try:
            await close_places_client()
            await close_twilio_gateway()
            await dispose_engine()
            logger.info("Application shutdown complete")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")
            raise

    return stop_app
