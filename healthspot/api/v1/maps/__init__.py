"""Provider search, details and routing endpoints."""

from healthspot.api.v1.maps.router import router

__all__ = ["router"]
