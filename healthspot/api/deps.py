"""Shared FastAPI dependencies."""

from typing import Optional

from fastapi import Request

from healthspot.core.config import settings
from healthspot.core.geocoding import GeocodeResolver, get_geocode_resolver
from healthspot.integrations.deepseek import DeepSeekClient, get_deepseek_client
from healthspot.integrations.google_maps import PlacesClient, get_places_client
from healthspot.integrations.twilio import TwilioGateway, get_twilio_gateway


def get_anonymous_id(request: Request) -> Optional[str]:
    """Anonymous id assigned by the middleware, or the raw cookie."""
    return getattr(request.state, "anonymous_id", None) or request.cookies.get(
        settings.ANONYMOUS_ID_COOKIE
    )


def get_places() -> PlacesClient:
    return get_places_client()


def get_resolver() -> GeocodeResolver:
    return get_geocode_resolver()


def get_llm() -> DeepSeekClient:
    return get_deepseek_client()


def get_sms_gateway() -> TwilioGateway:
    return get_twilio_gateway()

